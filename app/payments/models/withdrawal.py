"""
Withdrawal model for payouts to the user's Pix key.

A Withdrawal is created REQUESTED together with its two PENDING ledger
debits (amount + fee), then submitted to the transfer provider. The provider
outcome arrives later by webhook (or by the reconciliation poll) and moves
the withdrawal to a terminal state, posting or canceling the debits.

Usage:
    from payments.models import Withdrawal

    withdrawal.start_processing(transfer_id="123", batch_id="45")  # requested -> processing
    withdrawal.save()

    withdrawal.complete()  # processing -> completed
    withdrawal.save()
"""

from __future__ import annotations

from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from payments.state_machines import WithdrawalState


class Withdrawal(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A payout request from a user's balance to their Pix key.

    State Flow:
        REQUESTED -> PROCESSING -> COMPLETED
        REQUESTED -> PROCESSING -> FAILED
        REQUESTED -> FAILED (provider refused, and no earlier attempt timed out)

    Fields:
        user_id: Owner of the ledger being debited
        amount_cents: Amount delivered to the Pix key
        fee_cents: Withdrawal fee kept by the platform
        total_debited_cents: amount_cents + fee_cents
        status: Current FSM state
        provider_transfer_id: Transfeera transfer id once submitted
        provider_batch_id: Transfeera batch the transfer belongs to
        outcome_unknown_at: Set when a create_transfer call timed out
        failure_reason: Human-readable cause when FAILED
        idempotency_key: Caller token, unique per user
        version: Optimistic locking version (VersionedMixin)
        processed_at: When a terminal state was reached

    Note:
        COMPLETED and FAILED are terminal. No transition leaves them.
    """

    # ==========================================================================
    # Ownership & Amounts
    # ==========================================================================

    user_id = models.UUIDField(
        db_index=True,
        help_text="User whose balance funds this withdrawal",
    )
    amount_cents = models.PositiveBigIntegerField(
        help_text="Amount sent to the Pix key, in centavos",
    )
    fee_cents = models.PositiveBigIntegerField(
        default=0,
        help_text="Withdrawal fee in centavos",
    )
    total_debited_cents = models.PositiveBigIntegerField(
        help_text="amount_cents + fee_cents, debited from the balance",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=WithdrawalState.REQUESTED,
        choices=WithdrawalState.choices,
        db_index=True,
        help_text="Current state of the withdrawal (managed by FSM)",
    )

    # ==========================================================================
    # Provider Integration
    # ==========================================================================

    provider_transfer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Transfer id assigned by the provider",
    )
    provider_batch_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Batch id assigned by the provider",
    )
    outcome_unknown_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When a transfer request last went unanswered; the transfer may exist",
    )

    # ==========================================================================
    # Idempotency, Errors & Timestamps
    # ==========================================================================

    idempotency_key = models.CharField(
        max_length=255,
        help_text="Client token; unique per user so retries never duplicate a payout",
    )
    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Human-readable reason when the withdrawal failed",
    )
    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the withdrawal reached a terminal state",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Withdrawal"
        verbose_name_plural = "Withdrawals"
        indexes = [
            models.Index(fields=["user_id", "status"], name="payments_wi_user_id_3b8e5f_idx"),
            models.Index(fields=["status", "updated_at"], name="payments_wi_status_d96c20_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "idempotency_key"],
                name="withdrawal_unique_idempotency_key_per_user",
            ),
            models.CheckConstraint(
                condition=Q(amount_cents__gt=0),
                name="withdrawal_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(total_debited_cents=F("amount_cents") + F("fee_cents")),
                name="withdrawal_total_is_amount_plus_fee",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, state, and amount."""
        return f"Withdrawal({self.id}, {self.status}, {self.amount_cents / 100:.2f} BRL)"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=WithdrawalState.REQUESTED,
        target=WithdrawalState.PROCESSING,
    )
    def start_processing(self, transfer_id: str | None = None, batch_id: str | None = None):
        """
        Record that the provider accepted the transfer.

        Transition: REQUESTED -> PROCESSING

        Args:
            transfer_id: Provider transfer id, when known
            batch_id: Provider batch id, when known
        """
        if transfer_id:
            self.provider_transfer_id = transfer_id
        if batch_id:
            self.provider_batch_id = batch_id

    @transition(
        field=status,
        source=WithdrawalState.PROCESSING,
        target=WithdrawalState.COMPLETED,
    )
    def complete(self):
        """
        Mark the payout as delivered.

        Transition: PROCESSING -> COMPLETED
        """
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=[WithdrawalState.REQUESTED, WithdrawalState.PROCESSING],
        target=WithdrawalState.FAILED,
    )
    def fail(self, reason: str):
        """
        Mark the payout as failed.

        Transition: REQUESTED/PROCESSING -> FAILED

        Args:
            reason: Human-readable failure cause exposed to the user
        """
        self.failure_reason = reason
        self.processed_at = timezone.now()

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_terminal(self) -> bool:
        """Check if the withdrawal reached COMPLETED or FAILED."""
        return self.status in WithdrawalState.terminal()

    @property
    def was_submitted(self) -> bool:
        """Check if a provider transfer exists or the payout is past REQUESTED."""
        return bool(self.provider_transfer_id) or self.status != WithdrawalState.REQUESTED

    @property
    def may_exist_at_provider(self) -> bool:
        """Check if an earlier submission may have created a transfer we never heard about."""
        return self.outcome_unknown_at is not None

    @property
    def ledger_keys(self) -> tuple[str, str]:
        """Idempotency keys of the debit and fee ledger entries."""
        return (f"withdrawal_debit:{self.id}", f"withdrawal_fee:{self.id}")
