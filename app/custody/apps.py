"""
Custody app configuration.

This app holds buyer payments in escrow and settles them:
- Ledger Store backing wallet balances
- Escrow engine (confirmation, admin override, timeout sweep)
- Withdrawal settlement (manual mobile-money payouts)
"""

from django.apps import AppConfig


class CustodyConfig(AppConfig):
    """Configuration for the custody application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "custody"
    verbose_name = "Custody"
