"""
Views for the custody API.

ViewSets:
    EscrowViewSet: Escrow creation, lookup, buyer confirmation and admin overrides
    WithdrawalViewSet: Withdrawal requests and payout settlement
    WalletView: Authenticated user's wallet balance

Endpoints:
    Escrows:
        POST /api/v1/custody/escrows/ - Place a captured payment in escrow (admin)
        GET  /api/v1/custody/escrows/ - List escrows (admin, filterable)
        GET  /api/v1/custody/escrows/{id}/ - Escrow detail (parties or admin)
        GET  /api/v1/custody/escrows/by-order/{order_id}/ - Escrow of an order
        POST /api/v1/custody/escrows/{id}/confirm-delivery/ - Buyer confirmation
        POST /api/v1/custody/escrows/{id}/admin-action/ - Operator override (admin)
        GET  /api/v1/custody/escrows/stats/ - Dashboard counters (admin)

    Withdrawals:
        POST /api/v1/custody/withdrawals/ - Request a withdrawal
        GET  /api/v1/custody/withdrawals/ - Own requests (admin: all, filterable)
        GET  /api/v1/custody/withdrawals/{id}/ - Request detail
        POST /api/v1/custody/withdrawals/{id}/mark-paid/ - Record payout (admin)
        POST /api/v1/custody/withdrawals/{id}/reject/ - Reject and refund (admin)
        POST /api/v1/custody/withdrawals/batch-mark-paid/ - Batch payout (admin)
        GET  /api/v1/custody/withdrawals/stats/ - Counters (admin)

    Wallet:
        GET /api/v1/custody/wallet/ - Own wallet balance

Domain errors raised by the services are rendered by DomainErrorMixin.
"""

from __future__ import annotations

from django.conf import settings
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)

from authentication.models import User
from core.api import DomainErrorMixin
from core.exceptions import NotFoundError

from custody.exceptions import NotAuthorized
from custody.filters import EscrowTransactionFilter, WithdrawalRequestFilter
from custody.models import EscrowTransaction, WithdrawalRequest
from custody.serializers import (
    AdminActionSerializer,
    BatchItemResultSerializer,
    BatchMarkPaidSerializer,
    ConfirmDeliverySerializer,
    CreateEscrowSerializer,
    CreateWithdrawalSerializer,
    EscrowStatisticsSerializer,
    EscrowTransactionSerializer,
    MarkPaidSerializer,
    RejectWithdrawalSerializer,
    WalletBalanceSerializer,
    WithdrawalRequestSerializer,
    WithdrawalStatisticsSerializer,
)
from custody.services import EscrowService, WithdrawalService
from custody.splits import FixedSplitPolicy
from custody.workers import process_withdrawal_batch

UUID_REGEX = "[0-9a-fA-F-]{36}"

ADMIN_ACTIONS = {"create", "list", "admin_action", "stats", "mark_paid", "reject", "batch_mark_paid"}


def _get_user(user_id, field: str) -> User:
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise NotFoundError(
            f"User {user_id} not found",
            error_code="USER_NOT_FOUND",
            details={field: str(user_id)},
        )


@extend_schema_view(
    list=extend_schema(
        operation_id="list_escrows",
        summary="List escrows",
        description="Admin listing, filterable by status and searchable by escrow or order id.",
        tags=["Custody - Escrow"],
    ),
    retrieve=extend_schema(
        operation_id="get_escrow",
        summary="Get escrow",
        description="Escrow detail for the buyer, seller, driver or an admin.",
        tags=["Custody - Escrow"],
    ),
)
class EscrowViewSet(DomainErrorMixin, viewsets.GenericViewSet):
    """
    ViewSet for escrow operations.

    Permissions:
    - create, list, admin-action, stats: admin only
    - retrieve, by-order: parties of the escrow or admin
    - confirm-delivery: authenticated; the service checks the actor is the buyer
    """

    serializer_class = EscrowTransactionSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = EscrowTransactionFilter
    lookup_value_regex = UUID_REGEX

    def get_queryset(self):
        return EscrowTransaction.objects.select_related("buyer", "seller", "driver")

    def get_permissions(self):
        if self.action in ADMIN_ACTIONS:
            return [IsAdminUser()]
        return [IsAuthenticated()]

    def _check_party(self, escrow: EscrowTransaction) -> None:
        user = self.request.user
        if not user.is_staff and not escrow.is_party(user.id):
            raise NotAuthorized(
                "You are not a party to this escrow",
                details={"escrow_id": str(escrow.id)},
            )

    def list(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request, pk=None):
        escrow = EscrowService.get_escrow(pk)
        self._check_party(escrow)
        return Response(self.get_serializer(escrow).data)

    @extend_schema(
        operation_id="create_escrow",
        summary="Place a payment in escrow",
        description=(
            "Called once the payment for an order has been captured. "
            "Amounts are split with the configured percentages unless an explicit split is given."
        ),
        request=CreateEscrowSerializer,
        responses={
            201: EscrowTransactionSerializer,
            400: OpenApiResponse(description="Invalid amounts or split"),
            409: OpenApiResponse(description="Escrow already exists for the order"),
        },
        tags=["Custody - Escrow"],
    )
    def create(self, request):
        serializer = CreateEscrowSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        driver_id = data.get("driver_id")
        split = data.get("split")
        escrow = EscrowService.create_escrow(
            order_id=data["order_id"],
            buyer=_get_user(data["buyer_id"], "buyer_id"),
            seller=_get_user(data["seller_id"], "seller_id"),
            total_amount=data["total_amount"],
            split_policy=FixedSplitPolicy(**split) if split else None,
            driver=_get_user(driver_id, "driver_id") if driver_id else None,
            currency=data.get("currency"),
        )
        return Response(self.get_serializer(escrow).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="get_escrow_by_order",
        summary="Get escrow of an order",
        responses={200: EscrowTransactionSerializer, 404: OpenApiResponse(description="No escrow")},
        tags=["Custody - Escrow"],
    )
    @action(detail=False, methods=["get"], url_path=rf"by-order/(?P<order_id>{UUID_REGEX})")
    def by_order(self, request, order_id=None):
        escrow = EscrowService.get_by_order(order_id)
        self._check_party(escrow)
        return Response(self.get_serializer(escrow).data)

    @extend_schema(
        operation_id="confirm_escrow_delivery",
        summary="Confirm delivery",
        description=(
            "The buyer confirms the order was delivered, releasing the funds to the "
            "seller, the driver and the platform. Returns 409 if the escrow was already processed."
        ),
        request=ConfirmDeliverySerializer,
        responses={
            200: EscrowTransactionSerializer,
            403: OpenApiResponse(description="Not the buyer"),
            409: OpenApiResponse(description="Escrow is no longer held"),
        },
        tags=["Custody - Escrow"],
    )
    @action(detail=True, methods=["post"], url_path="confirm-delivery")
    def confirm_delivery(self, request, pk=None):
        serializer = ConfirmDeliverySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        escrow = EscrowService.confirm_delivery(
            pk,
            actor_id=request.user.id,
            confirmation=serializer.validated_data,
        )
        return Response(self.get_serializer(escrow).data)

    @extend_schema(
        operation_id="escrow_admin_action",
        summary="Operator override",
        description=(
            "force_release, force_refund, open_dispute (reason required) or "
            "resolve_dispute (resolution required). Pass expected_version to refuse "
            "acting on an outdated copy."
        ),
        request=AdminActionSerializer,
        responses={
            200: EscrowTransactionSerializer,
            409: OpenApiResponse(description="Wrong status or stale version"),
        },
        tags=["Custody - Escrow"],
    )
    @action(detail=True, methods=["post"], url_path="admin-action")
    def admin_action(self, request, pk=None):
        serializer = AdminActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        escrow = EscrowService.admin_action(
            pk,
            action=data["action"],
            actor_id=request.user.id,
            notes=data.get("notes", ""),
            resolution=data.get("resolution"),
            reason=data.get("reason"),
            expected_version=data.get("expected_version"),
        )
        return Response(self.get_serializer(escrow).data)

    @extend_schema(
        operation_id="escrow_statistics",
        summary="Escrow statistics",
        responses={200: EscrowStatisticsSerializer},
        tags=["Custody - Escrow"],
    )
    @action(detail=False, methods=["get"])
    def stats(self, request):
        return Response(EscrowStatisticsSerializer(EscrowService.get_statistics()).data)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_withdrawals",
        summary="List withdrawal requests",
        description=(
            "Users see their own requests. Admins see every request and can filter by "
            "status, provider, user_type, max_amount and search."
        ),
        tags=["Custody - Withdrawals"],
    ),
    retrieve=extend_schema(
        operation_id="get_withdrawal",
        summary="Get withdrawal request",
        tags=["Custody - Withdrawals"],
    ),
)
class WithdrawalViewSet(DomainErrorMixin, viewsets.GenericViewSet):
    """
    ViewSet for withdrawal requests.

    Permissions:
    - create, list (own), retrieve (own): authenticated
    - mark-paid, reject, batch-mark-paid, stats: admin only
    """

    serializer_class = WithdrawalRequestSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = WithdrawalRequestFilter
    lookup_value_regex = UUID_REGEX

    def get_queryset(self):
        queryset = WithdrawalRequest.objects.select_related("user")
        if self.request.user.is_staff:
            return queryset
        return queryset.filter(user=self.request.user)

    def get_permissions(self):
        if self.action in ADMIN_ACTIONS - {"create", "list"}:
            return [IsAdminUser()]
        return [IsAuthenticated()]

    def list(self, request):
        queryset = self.get_queryset()
        if request.user.is_staff:
            queryset = self.filter_queryset(queryset)
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request, pk=None):
        withdrawal = WithdrawalService.get_request(pk)
        if not request.user.is_staff and withdrawal.user_id != request.user.id:
            raise NotAuthorized(
                "You can only view your own withdrawal requests",
                details={"request_id": str(pk)},
            )
        return Response(self.get_serializer(withdrawal).data)

    @extend_schema(
        operation_id="create_withdrawal",
        summary="Request a withdrawal",
        description="Reserves the amount from the wallet until an operator pays or rejects it.",
        request=CreateWithdrawalSerializer,
        responses={
            201: WithdrawalRequestSerializer,
            400: OpenApiResponse(description="Invalid request"),
            422: OpenApiResponse(description="Insufficient balance"),
        },
        tags=["Custody - Withdrawals"],
    )
    def create(self, request):
        serializer = CreateWithdrawalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        withdrawal = WithdrawalService.request_withdrawal(
            user_id=request.user.id,
            user_type=data["user_type"],
            amount=data["amount"],
            method=data["method"],
            payout_details={"provider": data.get("provider"), "phone": data.get("phone")},
            currency=data.get("currency"),
        )
        return Response(self.get_serializer(withdrawal).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="mark_withdrawal_paid",
        summary="Mark withdrawal paid",
        description="Idempotent: a request that is already paid returns 200 with already_processed.",
        request=MarkPaidSerializer,
        responses={
            200: WithdrawalRequestSerializer,
            409: OpenApiResponse(description="Rejected request or reference already used"),
        },
        tags=["Custody - Withdrawals"],
    )
    @action(detail=True, methods=["post"], url_path="mark-paid")
    def mark_paid(self, request, pk=None):
        serializer = MarkPaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = WithdrawalService.mark_paid(
            pk,
            admin_reference=serializer.validated_data["admin_reference"],
            notes=serializer.validated_data.get("notes"),
            actor_id=request.user.id,
        )
        return Response(
            {
                **self.get_serializer(outcome.request).data,
                "already_processed": outcome.already_processed,
            }
        )

    @extend_schema(
        operation_id="reject_withdrawal",
        summary="Reject withdrawal",
        description="Returns the reserved amount to the wallet.",
        request=RejectWithdrawalSerializer,
        responses={
            200: WithdrawalRequestSerializer,
            409: OpenApiResponse(description="Request already paid"),
        },
        tags=["Custody - Withdrawals"],
    )
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        serializer = RejectWithdrawalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = WithdrawalService.reject(
            pk,
            reason=serializer.validated_data["reason"],
            actor_id=request.user.id,
        )
        return Response(
            {
                **self.get_serializer(outcome.request).data,
                "already_processed": outcome.already_processed,
            }
        )

    @extend_schema(
        operation_id="batch_mark_withdrawals_paid",
        summary="Mark a payout batch paid",
        description=(
            "Each request gets the reference '<batch_reference>-<request id>'. "
            "With ?async=true the batch is queued and 202 is returned."
        ),
        request=BatchMarkPaidSerializer,
        parameters=[
            OpenApiParameter(
                name="async",
                type=bool,
                location=OpenApiParameter.QUERY,
                description="Queue the batch instead of settling it in the request",
                required=False,
            ),
        ],
        responses={
            200: BatchItemResultSerializer(many=True),
            202: OpenApiResponse(description="Batch queued"),
        },
        tags=["Custody - Withdrawals"],
    )
    @action(detail=False, methods=["post"], url_path="batch-mark-paid")
    def batch_mark_paid(self, request):
        serializer = BatchMarkPaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        request_ids = [str(rid) for rid in data["request_ids"]]

        if request.query_params.get("async", "").lower() == "true":
            process_withdrawal_batch.delay(
                request_ids,
                data["batch_reference"],
                notes=data.get("notes"),
                actor_id=str(request.user.id),
            )
            return Response(
                {"status": "queued", "count": len(request_ids)},
                status=status.HTTP_202_ACCEPTED,
            )

        results = WithdrawalService.batch_mark_paid(
            request_ids,
            batch_reference=data["batch_reference"],
            notes=data.get("notes"),
            actor_id=request.user.id,
        )
        return Response(
            {"results": BatchItemResultSerializer([r.to_dict() for r in results], many=True).data}
        )

    @extend_schema(
        operation_id="withdrawal_statistics",
        summary="Withdrawal statistics",
        responses={200: WithdrawalStatisticsSerializer},
        tags=["Custody - Withdrawals"],
    )
    @action(detail=False, methods=["get"])
    def stats(self, request):
        return Response(WithdrawalStatisticsSerializer(WithdrawalService.get_statistics()).data)


class WalletView(DomainErrorMixin, APIView):
    """Balance of the authenticated user's wallet."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_wallet_balance",
        summary="Get wallet balance",
        parameters=[
            OpenApiParameter(
                name="currency",
                type=str,
                location=OpenApiParameter.QUERY,
                description="ISO 4217 code, defaults to the platform currency",
                required=False,
            ),
        ],
        responses={200: WalletBalanceSerializer},
        tags=["Custody - Wallet"],
    )
    def get(self, request):
        currency = request.query_params.get("currency") or settings.DEFAULT_CURRENCY
        balance = WithdrawalService.get_wallet_balance(request.user.id, currency=currency.upper())
        return Response(
            WalletBalanceSerializer({"amount": balance.amount, "currency": balance.currency}).data
        )
