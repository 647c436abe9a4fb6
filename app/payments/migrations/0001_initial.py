import uuid

import django.utils.timezone
import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Charge",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
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
                ("merchant_id", models.UUIDField(db_index=True, help_text="Merchant that receives the funds")),
                ("amount_cents", models.PositiveBigIntegerField(help_text="Requested amount in centavos")),
                ("currency", models.CharField(default="BRL", help_text="ISO 4217 currency code", max_length=3)),
                (
                    "method",
                    models.CharField(
                        choices=[("pix", "Pix"), ("boleto", "Boleto")],
                        default="pix",
                        help_text="Payment instrument",
                        max_length=16,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("expired", "Expired"),
                            ("canceled", "Canceled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current charge status",
                        max_length=16,
                    ),
                ),
                (
                    "external_ref",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Caller-supplied correlation id (provider integration_id)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "pix_txid",
                    models.CharField(
                        blank=True,
                        help_text="Provider transaction id for the Pix charge",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(blank=True, help_text="When the payment was reconciled", null=True),
                ),
                (
                    "description",
                    models.CharField(
                        blank=True, default="", help_text="Description shown to the payer", max_length=255
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["merchant_id", "status"], name="payments_ch_merchan_4f1a2c_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gte", 1)),
                        name="charge_amount_cents_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("paid_at__isnull", False), ("status", "paid")),
                            models.Q(models.Q(("status", "paid"), _negated=True), ("paid_at__isnull", True)),
                            _connector="OR",
                        ),
                        name="charge_paid_iff_paid_at",
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
                    "user_id",
                    models.UUIDField(db_index=True, help_text="Owner of the account this entry belongs to"),
                ),
                (
                    "entry_type",
                    models.CharField(
                        choices=[
                            ("charge_net", "Charge Net"),
                            ("withdrawal_debit", "Withdrawal Debit"),
                            ("withdrawal_fee", "Withdrawal Fee"),
                            ("adjustment", "Adjustment"),
                        ],
                        help_text="Category of this entry",
                        max_length=50,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("posted", "Posted"), ("canceled", "Canceled")],
                        default="pending",
                        help_text="Settlement status",
                        max_length=16,
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(help_text="Amount in centavos (always positive)"),
                ),
                (
                    "is_credit",
                    models.BooleanField(help_text="Direction: True adds to the balance, False subtracts"),
                ),
                (
                    "reference_type",
                    models.CharField(
                        choices=[("charge", "Charge"), ("withdrawal", "Withdrawal"), ("manual", "Manual")],
                        help_text="Kind of business record this entry belongs to",
                        max_length=50,
                    ),
                ),
                ("reference_id", models.UUIDField(help_text="UUID of the related business record")),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Unique key to prevent duplicate entries", max_length=255, unique=True
                    ),
                ),
                (
                    "description",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Human-readable description of this entry",
                        max_length=255,
                    ),
                ),
                (
                    "occurred_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now, help_text="When the money movement happened"
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this entry was recorded"
                    ),
                ),
                (
                    "status_changed_at",
                    models.DateTimeField(blank=True, help_text="When the entry left PENDING", null=True),
                ),
            ],
            options={
                "verbose_name_plural": "Ledger entries",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user_id", "status"], name="payments_le_user_id_8c1d3e_idx"),
                    models.Index(fields=["reference_type", "reference_id"], name="payments_le_referen_b2e7a9_idx"),
                    models.Index(fields=["entry_type"], name="payments_le_entry_t_5d0f61_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="ledger_entry_amount_cents_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PixKey",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
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
                ("user_id", models.UUIDField(db_index=True, help_text="User who owns this key")),
                (
                    "key_type",
                    models.CharField(
                        choices=[
                            ("CPF", "CPF"),
                            ("CNPJ", "CNPJ"),
                            ("EMAIL", "E-mail"),
                            ("TELEFONE", "Phone"),
                            ("CHAVE_ALEATORIA", "Random key"),
                        ],
                        help_text="Kind of Pix key",
                        max_length=20,
                    ),
                ),
                ("key", models.CharField(help_text="Pix key value", max_length=140)),
                (
                    "owner_document",
                    models.CharField(help_text="CPF or CNPJ digits of the account holder", max_length=14),
                ),
                (
                    "is_verified",
                    models.BooleanField(default=False, help_text="Whether key ownership was verified"),
                ),
                (
                    "verified_at",
                    models.DateTimeField(blank=True, help_text="When key ownership was verified", null=True),
                ),
            ],
            options={
                "verbose_name": "Pix key",
                "verbose_name_plural": "Pix keys",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("user_id", "key_type", "key"), name="pix_key_unique_per_user"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProviderWebhookConfig",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
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
                    "merchant_id",
                    models.UUIDField(db_index=True, help_text="Merchant that owns this webhook registration"),
                ),
                (
                    "provider",
                    models.CharField(default="transfeera", help_text="Webhook source provider", max_length=50),
                ),
                (
                    "account_id",
                    models.CharField(
                        db_index=True, help_text="Provider account id carried by inbound events", max_length=255
                    ),
                ),
                (
                    "webhook_id",
                    models.CharField(help_text="Provider-side webhook id", max_length=255, unique=True),
                ),
                (
                    "url",
                    models.URLField(help_text="Delivery URL registered at the provider", max_length=500),
                ),
                (
                    "signature_secret",
                    models.CharField(help_text="Shared secret used to sign deliveries", max_length=255),
                ),
                (
                    "object_types",
                    models.JSONField(
                        blank=True, default=list, help_text="Event kinds this webhook is subscribed to"
                    ),
                ),
                (
                    "active",
                    models.BooleanField(default=True, help_text="Whether deliveries for this config are accepted"),
                ),
            ],
            options={
                "verbose_name": "Provider webhook config",
                "verbose_name_plural": "Provider webhook configs",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["provider", "account_id", "active"], name="payments_pr_provide_9a3c47_idx"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookAttempt",
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
                ("provider", models.CharField(db_index=True, help_text="Webhook source provider", max_length=50)),
                (
                    "event_type",
                    models.CharField(help_text="Event kind (payload 'object' field)", max_length=100),
                ),
                (
                    "event_id",
                    models.CharField(
                        help_text="Provider-assigned event id used for dedup and diagnosis", max_length=255
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("received", "Received"),
                            ("processed", "Processed"),
                            ("rejected", "Rejected"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="received",
                        help_text="Processing status of this delivery",
                        max_length=16,
                    ),
                ),
                (
                    "attempt",
                    models.PositiveIntegerField(
                        default=1, help_text="Ordinal of this delivery among deliveries of the same event"
                    ),
                ),
                (
                    "signature_valid",
                    models.BooleanField(default=False, help_text="Whether the delivery carried a valid signature"),
                ),
                (
                    "error_message",
                    models.TextField(blank=True, help_text="Rejection or failure reason", null=True),
                ),
                ("payload", models.JSONField(blank=True, help_text="Parsed event body", null=True)),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="When the delivery was received"
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(blank=True, help_text="When processing concluded", null=True),
                ),
            ],
            options={
                "verbose_name": "Webhook attempt",
                "verbose_name_plural": "Webhook attempts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["provider", "event_id"], name="payments_we_provide_1e6b82_idx"),
                    models.Index(fields=["provider", "-created_at"], name="payments_we_provide_c40d15_idx"),
                    models.Index(
                        fields=["provider", "event_type", "status"], name="payments_we_provide_7f2a90_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("attempt__gte", 1)),
                        name="webhook_attempt_ordinal_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Withdrawal",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1, help_text="Optimistic locking version, incremented on each update"
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
                    "user_id",
                    models.UUIDField(db_index=True, help_text="User whose balance funds this withdrawal"),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(help_text="Amount sent to the Pix key, in centavos"),
                ),
                (
                    "fee_cents",
                    models.PositiveBigIntegerField(default=0, help_text="Withdrawal fee in centavos"),
                ),
                (
                    "total_debited_cents",
                    models.PositiveBigIntegerField(help_text="amount_cents + fee_cents, debited from the balance"),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("requested", "Requested"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="requested",
                        help_text="Current state of the withdrawal (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "provider_transfer_id",
                    models.CharField(
                        blank=True,
                        help_text="Transfer id assigned by the provider",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "provider_batch_id",
                    models.CharField(
                        blank=True, help_text="Batch id assigned by the provider", max_length=255, null=True
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Client token; unique per user so retries never duplicate a payout",
                        max_length=255,
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True, help_text="Human-readable reason when the withdrawal failed", null=True
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True, help_text="When the withdrawal reached a terminal state", null=True
                    ),
                ),
            ],
            options={
                "verbose_name": "Withdrawal",
                "verbose_name_plural": "Withdrawals",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user_id", "status"], name="payments_wi_user_id_3b8e5f_idx"),
                    models.Index(fields=["status", "updated_at"], name="payments_wi_status_d96c20_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user_id", "idempotency_key"),
                        name="withdrawal_unique_idempotency_key_per_user",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="withdrawal_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("total_debited_cents", models.F("amount_cents") + models.F("fee_cents"))
                        ),
                        name="withdrawal_total_is_amount_plus_fee",
                    ),
                ],
            },
        ),
    ]
