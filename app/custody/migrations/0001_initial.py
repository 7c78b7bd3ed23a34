import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # =====================================================================
        # Ledger
        # =====================================================================
        migrations.CreateModel(
            name="LedgerAccount",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("user_wallet", "User Wallet"),
                            ("platform_escrow", "Platform Escrow"),
                            ("platform_revenue", "Platform Revenue"),
                            ("payout_clearing", "Payout Clearing"),
                            ("external_payments", "External Payments"),
                            ("external_mobile_money", "External Mobile Money"),
                        ],
                        help_text="Category of this account",
                        max_length=50,
                    ),
                ),
                (
                    "owner_id",
                    models.UUIDField(
                        blank=True,
                        db_index=True,
                        help_text="UUID of the user that owns this account (wallets only)",
                        null=True,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="CDF", help_text="ISO 4217 currency code", max_length=3
                    ),
                ),
                (
                    "balance",
                    models.BigIntegerField(
                        default=0,
                        help_text="Current balance in minor units, maintained by LedgerService",
                    ),
                ),
                (
                    "allow_negative",
                    models.BooleanField(
                        default=False,
                        help_text="Whether this account can have a negative balance",
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        db_index=True, default=True, help_text="Whether this account is active"
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this account was created",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["type", "currency"], name="ledger_acct_type_currency_idx"
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("type", "owner_id", "currency"),
                        name="unique_account_per_owner",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("owner_id__isnull", True)),
                        fields=("type", "currency"),
                        name="unique_platform_account",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("allow_negative", True), ("balance__gte", 0), _connector="OR"),
                        name="ledger_account_balance_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this entry was recorded",
                    ),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Amount in minor units (always positive)"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="CDF", help_text="ISO 4217 currency code", max_length=3
                    ),
                ),
                (
                    "entry_type",
                    models.CharField(
                        choices=[
                            ("payment_captured", "Payment Captured"),
                            ("escrow_released", "Escrow Released"),
                            ("fee_collected", "Fee Collected"),
                            ("escrow_refunded", "Escrow Refunded"),
                            ("withdrawal_reserved", "Withdrawal Reserved"),
                            ("withdrawal_paid", "Withdrawal Paid"),
                            ("withdrawal_reversed", "Withdrawal Reversed"),
                            ("adjustment", "Adjustment"),
                        ],
                        help_text="Category of this entry",
                        max_length=50,
                    ),
                ),
                (
                    "reference_id",
                    models.UUIDField(
                        blank=True,
                        help_text="UUID of the business record (escrow, withdrawal request)",
                        null=True,
                    ),
                ),
                (
                    "reference_type",
                    models.CharField(
                        blank=True,
                        help_text="Type of the business record (e.g. 'escrow', 'withdrawal')",
                        max_length=50,
                        null=True,
                    ),
                ),
                (
                    "description",
                    models.TextField(
                        blank=True,
                        help_text="Human-readable description of this entry",
                        null=True,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON data for extensibility",
                    ),
                ),
                (
                    "created_by",
                    models.CharField(
                        blank=True,
                        help_text="Identifier of service/operator that created this entry",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Unique key to prevent duplicate entries",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "credit_account",
                    models.ForeignKey(
                        help_text="Account money is added to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="credit_entries",
                        to="custody.ledgeraccount",
                    ),
                ),
                (
                    "debit_account",
                    models.ForeignKey(
                        help_text="Account money is taken from",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="debit_entries",
                        to="custody.ledgeraccount",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "ledger entries",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["reference_type", "reference_id"],
                        name="ledger_entry_reference_idx",
                    ),
                    models.Index(fields=["entry_type"], name="ledger_entry_type_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="ledger_entry_amount_positive",
                    ),
                ],
            },
        ),
        # =====================================================================
        # Escrow
        # =====================================================================
        migrations.CreateModel(
            name="EscrowTransaction",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True, help_text="Timestamp when this record was last modified"
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Optimistic locking version, incremented on every save",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "order_id",
                    models.UUIDField(
                        help_text="Commercial order this escrow belongs to (one escrow per order)",
                        unique=True,
                    ),
                ),
                ("total_amount", models.BigIntegerField(help_text="Captured amount in minor units")),
                ("seller_amount", models.BigIntegerField(help_text="Seller share in minor units")),
                (
                    "driver_amount",
                    models.BigIntegerField(
                        default=0, help_text="Driver share in minor units (0 without a driver)"
                    ),
                ),
                (
                    "platform_fee",
                    models.BigIntegerField(
                        default=0, help_text="Platform commission in minor units"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="CDF", help_text="ISO 4217 currency code", max_length=3
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("held", "Held"),
                            ("disputed", "Disputed"),
                            ("released", "Released"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="held",
                        help_text="Current status of the escrow (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("held_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "timeout_date",
                    models.DateTimeField(
                        db_index=True,
                        help_text="Funds are released automatically once this passes",
                    ),
                ),
                ("released_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("disputed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "completed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the escrow reached a terminal status",
                        null=True,
                    ),
                ),
                ("confirmation_code", models.CharField(blank=True, default="", max_length=64)),
                ("client_comments", models.TextField(blank=True, default="")),
                ("dispute_reason", models.TextField(blank=True, default="")),
                ("auto_released", models.BooleanField(default=False)),
                (
                    "release_reason",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("buyer_confirmed", "Buyer Confirmed"),
                            ("admin_forced", "Admin Forced"),
                            ("dispute_resolved", "Dispute Resolved"),
                            ("timeout", "Timeout"),
                        ],
                        default="",
                        max_length=32,
                    ),
                ),
                (
                    "resolution",
                    models.CharField(
                        blank=True,
                        choices=[("release", "Release to Seller"), ("refund", "Refund to Buyer")],
                        default="",
                        max_length=16,
                    ),
                ),
                ("admin_notes", models.TextField(blank=True, default="")),
                (
                    "buyer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrows_as_buyer",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "driver",
                    models.ForeignKey(
                        blank=True,
                        help_text="Delivery driver, absent for pickup marketplace sales",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrows_as_driver",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "last_actor",
                    models.ForeignKey(
                        blank=True,
                        help_text="Last operator or party that changed this escrow",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "seller",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrows_as_seller",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Escrow Transaction",
                "verbose_name_plural": "Escrow Transactions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "timeout_date"], name="escrow_status_timeout_idx"
                    ),
                    models.Index(fields=["buyer", "status"], name="escrow_buyer_status_idx"),
                    models.Index(fields=["seller", "status"], name="escrow_seller_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_amount__gt", 0)),
                        name="escrow_total_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("seller_amount__gte", 0),
                            ("driver_amount__gte", 0),
                            ("platform_fee__gte", 0),
                        ),
                        name="escrow_parts_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            (
                                "total_amount",
                                models.F("seller_amount")
                                + models.F("driver_amount")
                                + models.F("platform_fee"),
                            )
                        ),
                        name="escrow_split_conserves_total",
                    ),
                ],
            },
        ),
        # =====================================================================
        # Withdrawals
        # =====================================================================
        migrations.CreateModel(
            name="WithdrawalRequest",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True, help_text="Timestamp when this record was last modified"
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Optimistic locking version, incremented on every save",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "user_type",
                    models.CharField(
                        choices=[
                            ("client", "Client"),
                            ("driver", "Driver"),
                            ("seller", "Seller"),
                            ("partner", "Partner"),
                        ],
                        db_index=True,
                        max_length=16,
                    ),
                ),
                ("amount", models.BigIntegerField(help_text="Requested amount in minor units")),
                (
                    "fee",
                    models.BigIntegerField(default=0, help_text="Withdrawal fee in minor units"),
                ),
                ("net_amount", models.BigIntegerField(help_text="Amount paid out (amount - fee)")),
                ("currency", models.CharField(default="CDF", max_length=3)),
                (
                    "withdrawal_method",
                    models.CharField(
                        choices=[("mobile_money", "Mobile Money"), ("kwenda_pay", "KwendaPay")],
                        max_length=16,
                    ),
                ),
                (
                    "mobile_money_provider",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("airtel", "Airtel Money"),
                            ("orange", "Orange Money"),
                            ("mpesa", "M-Pesa"),
                        ],
                        db_index=True,
                        default="",
                        max_length=16,
                    ),
                ),
                ("mobile_money_phone", models.CharField(blank=True, default="", max_length=32)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("rejected", "Rejected")],
                        db_index=True,
                        default="pending",
                        help_text="Current status of the request (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "admin_reference",
                    models.CharField(
                        blank=True,
                        help_text="Provider transaction id proving the transfer",
                        max_length=128,
                        null=True,
                        unique=True,
                    ),
                ),
                ("admin_notes", models.TextField(blank=True, default="")),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                (
                    "processed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="withdrawal_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Withdrawal Request",
                "verbose_name_plural": "Withdrawal Requests",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"], name="withdrawal_status_created_idx"
                    ),
                    models.Index(fields=["user", "status"], name="withdrawal_user_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="withdrawal_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("fee__gte", 0),
                            ("net_amount", models.F("amount") - models.F("fee")),
                        ),
                        name="withdrawal_net_amount_matches_fee",
                    ),
                ],
            },
        ),
    ]
