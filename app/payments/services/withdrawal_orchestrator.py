"""
Withdrawal orchestration: balance reservation, provider submission and
outcome reconciliation.

Lifecycle:
    1. request_withdrawal() creates the Withdrawal (REQUESTED) and two
       PENDING ledger debits (amount + fee) in one transaction, then
       enqueues submission once the transaction commits.
    2. submit() creates a Transfeera batch and transfer outside any
       database transaction and moves the withdrawal to PROCESSING.
    3. handle_provider_status() applies the outcome reported by webhook or
       by the reconciliation poll: COMPLETED posts the debits, FAILED
       cancels them and returns the funds to the available balance.

Provider calls never run inside a transaction. A timeout on
create_transfer stamps outcome_unknown_at and leaves the withdrawal
REQUESTED, since Transfeera may have accepted the transfer. The Celery task
retries in the same batch with the same idempotency key, and from then on a
refusal never fails the withdrawal. The transfer is found later through its
integration_id (the withdrawal id), either from its webhook or by listing
the batch in reconcile_stale().

Usage:
    from payments.services import WithdrawalOrchestrator

    result = WithdrawalOrchestrator.request_withdrawal(user_id, 10000, "req-42")
    if not result:
        print(result.error_code)  # e.g. INSUFFICIENT_BALANCE

    WithdrawalOrchestrator.handle_provider_status("transfer-123", "FINALIZADO")
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from core.services import BaseService, ServiceResult
from payments.adapters import TransfeeraAdapter, TransferRequest, TransferResult
from payments.exceptions import (
    InvalidStateTransitionError,
    PixKeyNotFoundError,
    PixKeyNotVerifiedError,
    ProviderError,
    WithdrawalNotFoundError,
)
from payments.ledger import (
    EntryStatus,
    EntryType,
    InsufficientBalance,
    LedgerEntryParams,
    ReferenceType,
    ledger,
)
from payments.models import PixKey, Withdrawal
from payments.state_machines import ProviderTransferStatus, WithdrawalState

if TYPE_CHECKING:
    from datetime import datetime


# =============================================================================
# Constants
# =============================================================================

REASON_RETURNED = "Transferência devolvida pelo banco"
REASON_FAILED = "Transferência falhou"

# Maximum withdrawals handled per reconciliation run, per state
RECONCILE_BATCH_SIZE = 100


# =============================================================================
# Result Types
# =============================================================================


class StatusAction:
    """What handle_provider_status() did with a provider status."""

    COMPLETED = "completed"
    FAILED = "failed"
    PROCESSING = "processing"
    NO_CHANGE = "no_change"
    UNKNOWN_TRANSFER = "unknown_transfer"
    ALREADY_TERMINAL = "already_terminal"
    UNKNOWN_STATUS = "unknown_status"


@dataclass
class StatusOutcome:
    """
    Result of applying a provider status to a withdrawal.

    Attributes:
        action: One of the StatusAction values
        withdrawal: The withdrawal after the update (None for an unknown transfer)
    """

    action: str
    withdrawal: Withdrawal | None = None

    @property
    def changed(self) -> bool:
        return self.action in (StatusAction.COMPLETED, StatusAction.FAILED, StatusAction.PROCESSING)


@dataclass
class StaleReconciliationSummary:
    """Counters from one reconcile_stale() run."""

    polled: int = 0
    updated: int = 0
    resubmitted: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "polled": self.polled,
            "updated": self.updated,
            "resubmitted": self.resubmitted,
            "errors": self.errors,
        }


# =============================================================================
# Withdrawal Orchestrator
# =============================================================================


class WithdrawalOrchestrator(BaseService):
    """
    Drives withdrawals from request to a terminal state.

    All methods are classmethods. The provider gateway is held at class level
    and can be replaced with set_gateway() (tests inject a mock).
    """

    _gateway: TransfeeraAdapter | None = None

    @classmethod
    def get_gateway(cls) -> TransfeeraAdapter:
        """Get the provider gateway, creating the default adapter on first use."""
        if cls._gateway is None:
            cls._gateway = TransfeeraAdapter()
        return cls._gateway

    @classmethod
    def set_gateway(cls, gateway: TransfeeraAdapter | None) -> None:
        """Set the provider gateway (for testing). None restores the default."""
        cls._gateway = gateway

    # ==========================================================================
    # Request
    # ==========================================================================

    @classmethod
    def request_withdrawal(
        cls,
        user_id: uuid.UUID,
        amount_cents: int,
        idempotency_key: str,
    ) -> ServiceResult[Withdrawal]:
        """
        Reserve funds for a withdrawal and schedule its submission.

        The user's ledger account row is locked while the available balance is
        checked, so two concurrent requests cannot both spend the same money.
        Replaying a (user_id, idempotency_key) pair returns the original
        withdrawal without writing anything.

        Args:
            user_id: Account to debit
            amount_cents: Amount to deliver to the user's Pix key
            idempotency_key: Caller token identifying this request

        Returns:
            ServiceResult with the Withdrawal, or a failure with error_code
            INVALID_AMOUNT, MISSING_IDEMPOTENCY_KEY or INSUFFICIENT_BALANCE
        """
        logger = cls.get_logger()
        log_context = {"user_id": str(user_id), "amount_cents": amount_cents, "idempotency_key": idempotency_key}

        if amount_cents is None or amount_cents <= 0:
            return ServiceResult.failure("Withdrawal amount must be positive", error_code="INVALID_AMOUNT")
        if not idempotency_key:
            return ServiceResult.failure("An idempotency key is required", error_code="MISSING_IDEMPOTENCY_KEY")

        existing = Withdrawal.objects.filter(user_id=user_id, idempotency_key=idempotency_key).first()
        if existing is not None:
            logger.info("Withdrawal request replayed", extra={**log_context, "withdrawal_id": str(existing.id)})
            return ServiceResult.success(existing)

        fee_cents = settings.WITHDRAWAL_FEE_CENTS
        total_cents = amount_cents + fee_cents

        try:
            with cls.atomic():
                balance = ledger.get_balance(user_id, for_update=True)
                if total_cents > balance.available:
                    raise InsufficientBalance(user_id=user_id, required=total_cents, available=balance.available)

                withdrawal = Withdrawal.objects.create(
                    user_id=user_id,
                    amount_cents=amount_cents,
                    fee_cents=fee_cents,
                    total_debited_cents=total_cents,
                    idempotency_key=idempotency_key,
                )
                ledger.append_entries(cls._debit_entries(withdrawal))

                withdrawal_id = str(withdrawal.id)
                transaction.on_commit(lambda: cls._enqueue_submission(withdrawal_id))

        except InsufficientBalance as e:
            logger.info("Withdrawal rejected for insufficient balance", extra={**log_context, **e.details})
            return ServiceResult.from_exception(e)

        except IntegrityError:
            # a concurrent request with the same key won the insert
            existing = Withdrawal.objects.filter(user_id=user_id, idempotency_key=idempotency_key).first()
            if existing is None:
                raise
            logger.info("Concurrent withdrawal request replayed", extra={**log_context, "withdrawal_id": str(existing.id)})
            return ServiceResult.success(existing)

        logger.info(
            "Withdrawal requested",
            extra={**log_context, "withdrawal_id": str(withdrawal.id), "fee_cents": fee_cents},
        )
        return ServiceResult.success(withdrawal)

    # ==========================================================================
    # Submission
    # ==========================================================================

    @classmethod
    def submit(cls, withdrawal_id: uuid.UUID | str) -> ServiceResult[Withdrawal]:
        """
        Send a REQUESTED withdrawal to the provider.

        Safe to call repeatedly: once the withdrawal has a transfer or has
        left REQUESTED, the call returns success without contacting the
        provider. A resubmission reuses the batch created by the first
        attempt and sends the same idempotency key and integration_id.

        Args:
            withdrawal_id: Withdrawal to submit

        Returns:
            ServiceResult with the withdrawal. Failure codes:
                PIX_KEY_NOT_FOUND / PIX_KEY_NOT_VERIFIED: left REQUESTED
                PROVIDER_OUTCOME_UNKNOWN: timeout, outcome_unknown_at set,
                    left REQUESTED for a retry
                PROVIDER_*: provider refused. The withdrawal is FAILED and its
                    debits canceled, unless an earlier attempt timed out, in
                    which case it stays REQUESTED for reconcile_stale()

        Raises:
            WithdrawalNotFoundError: If no withdrawal has this id
        """
        logger = cls.get_logger()
        withdrawal = cls._get_withdrawal(withdrawal_id)
        log_context = {"withdrawal_id": str(withdrawal.id), "user_id": str(withdrawal.user_id)}

        if withdrawal.was_submitted:
            logger.info(
                "Withdrawal already submitted, skipping provider call",
                extra={**log_context, "status": withdrawal.status},
            )
            return ServiceResult.success(withdrawal)

        try:
            pix_key = cls._get_payout_key(withdrawal.user_id)
        except (PixKeyNotFoundError, PixKeyNotVerifiedError) as e:
            logger.warning("Withdrawal cannot be submitted", extra={**log_context, "error_code": e.error_code})
            return ServiceResult.failure(e.message, error_code=e.error_code, data=withdrawal)

        label = f"Saque #{str(withdrawal.id)[:8]}"
        gateway = cls.get_gateway()
        try:
            batch_id = withdrawal.provider_batch_id or cls._create_batch(gateway, withdrawal, label)
        except ProviderError as e:
            return cls._submission_failed(withdrawal, e)

        try:
            transfer = gateway.create_transfer(
                batch_id,
                TransferRequest(
                    amount_cents=withdrawal.amount_cents,
                    idempotency_key=withdrawal.idempotency_key,
                    pix_key=pix_key.key,
                    pix_key_type=pix_key.key_type,
                    owner_document=pix_key.owner_document,
                    description=label,
                    integration_id=str(withdrawal.id),
                ),
            )
        except ProviderError as e:
            if e.outcome_unknown:
                cls._mark_outcome_unknown(withdrawal)
            return cls._submission_failed(withdrawal, e)

        if not transfer.id:
            logger.warning(
                "Provider response carried no transfer id",
                extra={**log_context, "batch_id": batch_id},
            )
            cls._mark_outcome_unknown(withdrawal)
            return ServiceResult.failure(
                "Provider did not return a transfer id",
                error_code="PROVIDER_OUTCOME_UNKNOWN",
                data=withdrawal,
            )

        with cls.atomic():
            withdrawal = Withdrawal.objects.select_for_update().get(id=withdrawal.id)
            if withdrawal.status == WithdrawalState.REQUESTED and not withdrawal.provider_transfer_id:
                withdrawal.start_processing(transfer_id=transfer.id, batch_id=batch_id)
                withdrawal.save()
            else:
                logger.info(
                    "Withdrawal moved on during submission",
                    extra={**log_context, "status": withdrawal.status, "transfer_id": transfer.id},
                )

        logger.info(
            "Withdrawal submitted to provider",
            extra={**log_context, "transfer_id": transfer.id, "batch_id": batch_id, "provider_status": transfer.status},
        )

        if transfer.status and transfer.status.upper() in cls._terminal_provider_statuses():
            outcome = cls.handle_provider_status(transfer.id, transfer.status, transfer.error_message)
            if outcome.withdrawal is not None:
                withdrawal = outcome.withdrawal

        return ServiceResult.success(withdrawal)

    # ==========================================================================
    # Provider Outcome
    # ==========================================================================

    @classmethod
    def handle_provider_status(
        cls,
        transfer_id: str,
        provider_status: str | None,
        reason: str | None = None,
        integration_id: str | None = None,
    ) -> StatusOutcome:
        """
        Apply a provider transfer status to the matching withdrawal.

        The withdrawal is found by provider_transfer_id. When no withdrawal
        carries that id yet (the create_transfer call timed out), the
        integration_id the transfer was created with is tried instead and
        the transfer id is stored on the match.

        Status mapping:
            FINALIZADO / COMPLETED  -> COMPLETED, debits POSTED
            DEVOLVIDO / FALHA / FAILED -> FAILED, debits CANCELED
            CRIADA / RECEBIDO / TRANSFERIDO -> PROCESSING (or no change)
            anything else -> logged, no change

        Terminal withdrawals and unknown transfer ids are ignored, so
        redelivered and out-of-order events are harmless.

        Args:
            transfer_id: Provider transfer id
            provider_status: Status reported by the provider
            reason: Provider explanation, used as failure_reason when present
            integration_id: integration_id echoed by the provider (our withdrawal id)

        Returns:
            StatusOutcome describing what happened
        """
        logger = cls.get_logger()
        status = (provider_status or "").strip().upper()
        log_context = {"transfer_id": str(transfer_id), "provider_status": status}

        with cls.atomic():
            withdrawal = Withdrawal.objects.select_for_update().filter(provider_transfer_id=str(transfer_id)).first()
            matched_by_integration_id = False
            if withdrawal is None and integration_id:
                withdrawal = cls._find_unlinked(integration_id)
                matched_by_integration_id = withdrawal is not None

            if withdrawal is None:
                logger.warning(
                    "Status received for unknown transfer",
                    extra={**log_context, "integration_id": integration_id},
                )
                return StatusOutcome(action=StatusAction.UNKNOWN_TRANSFER)

            log_context["withdrawal_id"] = str(withdrawal.id)

            if withdrawal.is_terminal:
                logger.info(
                    "Withdrawal already terminal, ignoring status",
                    extra={**log_context, "status": withdrawal.status},
                )
                return StatusOutcome(action=StatusAction.ALREADY_TERMINAL, withdrawal=withdrawal)

            if matched_by_integration_id:
                withdrawal.provider_transfer_id = str(transfer_id)
                withdrawal.save()
                logger.info("Transfer linked to withdrawal by integration_id", extra=log_context)

            try:
                if status in ProviderTransferStatus.successful():
                    if withdrawal.status == WithdrawalState.REQUESTED:
                        withdrawal.start_processing()
                    withdrawal.complete()
                    withdrawal.save()
                    cls._settle_entries(withdrawal, EntryStatus.POSTED)
                    action = StatusAction.COMPLETED

                elif status in ProviderTransferStatus.unsuccessful():
                    default = REASON_RETURNED if status == ProviderTransferStatus.DEVOLVIDO else REASON_FAILED
                    withdrawal.fail(reason or default)
                    withdrawal.save()
                    cls._settle_entries(withdrawal, EntryStatus.CANCELED)
                    action = StatusAction.FAILED

                elif status in ProviderTransferStatus.intermediate():
                    if withdrawal.status != WithdrawalState.REQUESTED:
                        return StatusOutcome(action=StatusAction.NO_CHANGE, withdrawal=withdrawal)
                    withdrawal.start_processing()
                    withdrawal.save()
                    action = StatusAction.PROCESSING

                else:
                    logger.warning("Unknown provider transfer status", extra=log_context)
                    return StatusOutcome(action=StatusAction.UNKNOWN_STATUS, withdrawal=withdrawal)

            except TransitionNotAllowed as e:
                raise InvalidStateTransitionError(
                    f"Cannot apply provider status {status} to withdrawal in {withdrawal.status}",
                    details={"withdrawal_id": str(withdrawal.id), "current_state": withdrawal.status},
                ) from e

        logger.info("Withdrawal updated from provider status", extra={**log_context, "action": action})
        return StatusOutcome(action=action, withdrawal=withdrawal)

    # ==========================================================================
    # Reconciliation
    # ==========================================================================

    @classmethod
    def reconcile_stale(cls, older_than: timedelta | None = None) -> StaleReconciliationSummary:
        """
        Recover withdrawals whose outcome never arrived.

        PROCESSING withdrawals untouched since the cutoff are polled with
        get_transfer and the answer goes through handle_provider_status().
        REQUESTED withdrawals older than the cutoff whose transfer call
        timed out are looked up in their batch first; the rest, and those
        whose transfer is not in the batch, are enqueued for submission
        again.

        Args:
            older_than: Age threshold (default WITHDRAWAL_RECONCILE_AFTER_MINUTES)

        Returns:
            StaleReconciliationSummary
        """
        logger = cls.get_logger()
        if older_than is None:
            older_than = timedelta(minutes=settings.WITHDRAWAL_RECONCILE_AFTER_MINUTES)
        cutoff: datetime = timezone.now() - older_than
        summary = StaleReconciliationSummary()

        processing = (
            Withdrawal.objects.filter(status=WithdrawalState.PROCESSING, updated_at__lt=cutoff)
            .exclude(provider_transfer_id__isnull=True)
            .order_by("updated_at")[:RECONCILE_BATCH_SIZE]
        )
        gateway = cls.get_gateway()
        for withdrawal in processing:
            summary.polled += 1
            try:
                transfer = gateway.get_transfer(withdrawal.provider_transfer_id)
            except ProviderError as e:
                summary.errors += 1
                logger.warning(
                    "Could not poll transfer status",
                    extra={"withdrawal_id": str(withdrawal.id), "error_code": e.error_code},
                )
                continue

            outcome = cls.handle_provider_status(withdrawal.provider_transfer_id, transfer.status, transfer.error_message)
            if outcome.changed:
                summary.updated += 1

        requested = Withdrawal.objects.filter(
            status=WithdrawalState.REQUESTED,
            provider_transfer_id__isnull=True,
            created_at__lt=cutoff,
        ).order_by("created_at")[:RECONCILE_BATCH_SIZE]
        for withdrawal in requested:
            if withdrawal.may_exist_at_provider and withdrawal.provider_batch_id:
                summary.polled += 1
                try:
                    transfer = cls._find_transfer_in_batch(gateway, withdrawal)
                except ProviderError as e:
                    summary.errors += 1
                    logger.warning(
                        "Could not list batch transfers",
                        extra={"withdrawal_id": str(withdrawal.id), "error_code": e.error_code},
                    )
                    continue

                if transfer is not None:
                    outcome = cls.handle_provider_status(
                        transfer.id,
                        transfer.status,
                        transfer.error_message,
                        integration_id=str(withdrawal.id),
                    )
                    if outcome.changed:
                        summary.updated += 1
                    continue

            cls._enqueue_submission(str(withdrawal.id))
            summary.resubmitted += 1

        logger.info("Stale withdrawal reconciliation finished", extra=summary.to_dict())
        return summary

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @classmethod
    def _get_withdrawal(cls, withdrawal_id: uuid.UUID | str) -> Withdrawal:
        try:
            return Withdrawal.objects.get(id=withdrawal_id)
        except (Withdrawal.DoesNotExist, DjangoValidationError, ValueError, TypeError):
            raise WithdrawalNotFoundError(
                f"Withdrawal {withdrawal_id} not found",
                details={"withdrawal_id": str(withdrawal_id)},
            )

    @staticmethod
    def _get_payout_key(user_id: uuid.UUID) -> PixKey:
        pix_key = PixKey.objects.filter(user_id=user_id).order_by("-created_at").first()
        if pix_key is None:
            raise PixKeyNotFoundError(
                "User has no Pix key registered",
                details={"user_id": str(user_id)},
            )
        if not pix_key.is_verified:
            raise PixKeyNotVerifiedError(
                "User's Pix key is not verified",
                details={"user_id": str(user_id), "pix_key_id": str(pix_key.id)},
            )
        return pix_key

    @staticmethod
    def _debit_entries(withdrawal: Withdrawal) -> list[LedgerEntryParams]:
        debit_key, fee_key = withdrawal.ledger_keys
        entries = [
            LedgerEntryParams(
                user_id=withdrawal.user_id,
                entry_type=EntryType.WITHDRAWAL_DEBIT,
                status=EntryStatus.PENDING,
                amount_cents=withdrawal.amount_cents,
                is_credit=False,
                reference_type=ReferenceType.WITHDRAWAL,
                reference_id=withdrawal.id,
                idempotency_key=debit_key,
                description=f"Withdrawal {withdrawal.id}",
            )
        ]
        if withdrawal.fee_cents:
            entries.append(
                LedgerEntryParams(
                    user_id=withdrawal.user_id,
                    entry_type=EntryType.WITHDRAWAL_FEE,
                    status=EntryStatus.PENDING,
                    amount_cents=withdrawal.fee_cents,
                    is_credit=False,
                    reference_type=ReferenceType.WITHDRAWAL,
                    reference_id=withdrawal.id,
                    idempotency_key=fee_key,
                    description=f"Withdrawal fee {withdrawal.id}",
                )
            )
        return entries

    @classmethod
    def _settle_entries(cls, withdrawal: Withdrawal, new_status: str) -> int:
        entries = ledger.get_entries_by_reference(ReferenceType.WITHDRAWAL, withdrawal.id)
        changed = ledger.transition_status([entry.id for entry in entries], new_status)
        if changed != len(entries):
            cls.get_logger().warning(
                "Withdrawal ledger entries were not all pending",
                extra={"withdrawal_id": str(withdrawal.id), "entries": len(entries), "changed": changed},
            )
        return changed

    @staticmethod
    def _create_batch(gateway: TransfeeraAdapter, withdrawal: Withdrawal, label: str) -> str:
        """Create the withdrawal's batch and store its id for resubmissions."""
        batch = gateway.create_batch(label)
        Withdrawal.objects.filter(id=withdrawal.id).update(provider_batch_id=batch.id)
        withdrawal.provider_batch_id = batch.id
        return batch.id

    @staticmethod
    def _mark_outcome_unknown(withdrawal: Withdrawal) -> None:
        now = timezone.now()
        Withdrawal.objects.filter(id=withdrawal.id).update(outcome_unknown_at=now)
        withdrawal.outcome_unknown_at = now

    @classmethod
    def _submission_failed(cls, withdrawal: Withdrawal, error: ProviderError) -> ServiceResult[Withdrawal]:
        """
        Turn a provider error raised during submit() into a result.

        The withdrawal is failed only when the provider refused and no
        earlier transfer request went unanswered.
        """
        logger = cls.get_logger()
        log_context = {
            "withdrawal_id": str(withdrawal.id),
            "user_id": str(withdrawal.user_id),
            "error_code": error.error_code,
            "status_code": error.status_code,
        }

        if error.outcome_unknown:
            logger.warning("Provider outcome unknown, leaving withdrawal requested", extra=log_context)
        elif withdrawal.may_exist_at_provider:
            logger.error(
                "Provider refused a resubmission after an unanswered transfer request, leaving withdrawal requested",
                extra={**log_context, "batch_id": withdrawal.provider_batch_id},
            )
        else:
            logger.error("Provider refused withdrawal", extra=log_context)
            withdrawal = cls._fail_unsubmitted(withdrawal.id, error.message)

        return ServiceResult.failure(error.message, error_code=error.error_code, data=withdrawal)

    @staticmethod
    def _find_unlinked(integration_id: str) -> Withdrawal | None:
        """Lock the withdrawal a transfer was created for, if it has no transfer id yet."""
        try:
            return (
                Withdrawal.objects.select_for_update()
                .filter(id=integration_id, provider_transfer_id__isnull=True)
                .first()
            )
        except (DjangoValidationError, ValueError):
            return None

    @staticmethod
    def _find_transfer_in_batch(gateway: TransfeeraAdapter, withdrawal: Withdrawal) -> TransferResult | None:
        for transfer in gateway.list_batch_transfers(withdrawal.provider_batch_id):
            if transfer.id and transfer.integration_id == str(withdrawal.id):
                return transfer
        return None

    @classmethod
    def _fail_unsubmitted(cls, withdrawal_id: uuid.UUID, reason: str) -> Withdrawal:
        """Fail a withdrawal the provider never accepted and release its funds."""
        with cls.atomic():
            withdrawal = Withdrawal.objects.select_for_update().get(id=withdrawal_id)
            if (
                withdrawal.status != WithdrawalState.REQUESTED
                or withdrawal.provider_transfer_id
                or withdrawal.may_exist_at_provider
            ):
                cls.get_logger().info(
                    "Withdrawal moved on before it could be failed",
                    extra={"withdrawal_id": str(withdrawal.id), "status": withdrawal.status},
                )
                return withdrawal

            withdrawal.fail(reason)
            withdrawal.save()
            cls._settle_entries(withdrawal, EntryStatus.CANCELED)
        return withdrawal

    @staticmethod
    def _terminal_provider_statuses() -> tuple[str, ...]:
        return ProviderTransferStatus.successful() + ProviderTransferStatus.unsuccessful()

    @staticmethod
    def _enqueue_submission(withdrawal_id: str) -> None:
        from payments.tasks import submit_withdrawal

        submit_withdrawal.delay(withdrawal_id)
