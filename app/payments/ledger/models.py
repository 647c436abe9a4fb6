"""
Ledger models for per-account money movements.

Each LedgerEntry is one side of a money movement on a single owner's
account: a credit (money in) or a debit (money out). Entries carry a status
so funds committed to an in-flight payout are visible before the provider
confirms it.

    PENDING  -> POSTED     (movement confirmed)
    PENDING  -> CANCELED   (movement abandoned, funds released)

Amount, direction and type never change after insert; only status moves.

Usage:
    from payments.ledger.models import EntryStatus, EntryType, LedgerEntry

    LedgerEntry.objects.filter(user_id=merchant_id, status=EntryStatus.POSTED)
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin


class EntryType(models.TextChoices):
    """
    Types of ledger entries.

    Values:
        CHARGE_NET: Credit for a reconciled incoming payment
        WITHDRAWAL_DEBIT: Debit for the amount sent out by a withdrawal
        WITHDRAWAL_FEE: Debit for the fee charged on a withdrawal
        ADJUSTMENT: Manual correction entered by an operator
    """

    CHARGE_NET = "charge_net", "Charge Net"
    WITHDRAWAL_DEBIT = "withdrawal_debit", "Withdrawal Debit"
    WITHDRAWAL_FEE = "withdrawal_fee", "Withdrawal Fee"
    ADJUSTMENT = "adjustment", "Adjustment"

    @classmethod
    def withdrawal_types(cls) -> tuple:
        """Entry types whose PENDING amounts reduce the available balance."""
        return (cls.WITHDRAWAL_DEBIT, cls.WITHDRAWAL_FEE)


class EntryStatus(models.TextChoices):
    """
    Settlement status of a ledger entry.

    Values:
        PENDING: Recorded, awaiting confirmation
        POSTED: Confirmed; counts toward the posted balance
        CANCELED: Abandoned; counts toward nothing
    """

    PENDING = "pending", "Pending"
    POSTED = "posted", "Posted"
    CANCELED = "canceled", "Canceled"


class ReferenceType(models.TextChoices):
    """Business records a ledger entry can point back to."""

    CHARGE = "charge", "Charge"
    WITHDRAWAL = "withdrawal", "Withdrawal"
    MANUAL = "manual", "Manual"


class LedgerEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    An append-only money movement on one owner's account.

    Fields:
        id: UUID primary key (from UUIDPrimaryKeyMixin)
        user_id: Account owner (user or merchant id)
        entry_type: Category of this entry
        status: PENDING, POSTED or CANCELED
        amount_cents: Magnitude in centavos (always positive)
        is_credit: True for money in, False for money out
        reference_type: Kind of business record this entry belongs to
        reference_id: UUID of that record
        idempotency_key: Unique key preventing duplicate entries
        description: Human-readable description
        occurred_at: When the movement happened in the business sense
        created_at: When the row was inserted
        status_changed_at: When status last left PENDING

    Constraints:
        - amount_cents must be positive
        - idempotency_key must be unique

    Example:
        entry = LedgerEntry.objects.create(
            user_id=merchant_id,
            entry_type=EntryType.CHARGE_NET,
            status=EntryStatus.POSTED,
            amount_cents=10000,
            is_credit=True,
            reference_type=ReferenceType.CHARGE,
            reference_id=charge.id,
            idempotency_key=f"charge_net:{charge.id}",
        )
    """

    user_id = models.UUIDField(
        db_index=True,
        help_text="Owner of the account this entry belongs to",
    )
    entry_type = models.CharField(
        max_length=50,
        choices=EntryType.choices,
        help_text="Category of this entry",
    )
    status = models.CharField(
        max_length=16,
        choices=EntryStatus.choices,
        default=EntryStatus.PENDING,
        help_text="Settlement status",
    )
    amount_cents = models.PositiveBigIntegerField(
        help_text="Amount in centavos (always positive)",
    )
    is_credit = models.BooleanField(
        help_text="Direction: True adds to the balance, False subtracts",
    )
    reference_type = models.CharField(
        max_length=50,
        choices=ReferenceType.choices,
        help_text="Kind of business record this entry belongs to",
    )
    reference_id = models.UUIDField(
        help_text="UUID of the related business record",
    )
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique key to prevent duplicate entries",
    )
    description = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Human-readable description of this entry",
    )
    occurred_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the money movement happened",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this entry was recorded",
    )
    status_changed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the entry left PENDING",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "Ledger entries"
        indexes = [
            models.Index(fields=["user_id", "status"], name="payments_le_user_id_8c1d3e_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="payments_le_referen_b2e7a9_idx"),
            models.Index(fields=["entry_type"], name="payments_le_entry_t_5d0f61_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_cents__gt=0),
                name="ledger_entry_amount_cents_positive",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        sign = "+" if self.is_credit else "-"
        return f"{self.get_entry_type_display()}: {sign}{self.amount_cents} cents ({self.status})"

    @property
    def signed_amount(self) -> int:
        """Amount with sign applied (positive for credits)."""
        return self.amount_cents if self.is_credit else -self.amount_cents


class LedgerAccount(models.Model):
    """
    One row per account owner, used as the account's write lock.

    Entries are keyed by user_id alone, so there is no row to lock for an
    owner until this one exists. Code that checks the balance before
    debiting locks this row first (LedgerService.lock_account) and reads
    the entries afterwards.

    Fields:
        user_id: Account owner (primary key)
        created_at: When the row was first needed
    """

    user_id = models.UUIDField(
        primary_key=True,
        help_text="Owner of the account",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="Timestamp when the account row was created",
    )

    class Meta:
        verbose_name = "Ledger account"
        verbose_name_plural = "Ledger accounts"

    def __str__(self) -> str:
        return f"LedgerAccount({self.user_id})"
