"""
URL configuration for the custody API.

Routes:
    Escrows:
        /escrows/                          - List (GET), create (POST)
        /escrows/{id}/                     - Detail (GET)
        /escrows/by-order/{order_id}/      - Detail by order (GET)
        /escrows/{id}/confirm-delivery/    - Buyer confirmation (POST)
        /escrows/{id}/admin-action/        - Operator override (POST)
        /escrows/stats/                    - Statistics (GET)

    Withdrawals:
        /withdrawals/                      - List (GET), request (POST)
        /withdrawals/{id}/                 - Detail (GET)
        /withdrawals/{id}/mark-paid/       - Record payout (POST)
        /withdrawals/{id}/reject/          - Reject (POST)
        /withdrawals/batch-mark-paid/      - Batch payout (POST)
        /withdrawals/stats/                - Statistics (GET)

    Wallet:
        /wallet/                           - Own balance (GET)
"""

from django.urls import path

from rest_framework.routers import DefaultRouter

from custody.views import EscrowViewSet, WalletView, WithdrawalViewSet

router = DefaultRouter()
router.register(r"escrows", EscrowViewSet, basename="escrow")
router.register(r"withdrawals", WithdrawalViewSet, basename="withdrawal")

app_name = "custody"
urlpatterns = router.urls + [
    path("wallet/", WalletView.as_view(), name="wallet"),
]
