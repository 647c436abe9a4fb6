"""
Charge matching and reconciliation for incoming-payment events.

Provider payloads are inconsistent about which correlation field they fill,
so a CashIn event is resolved to a Charge with an ordered strategy:

1. ``pix_txid == data.txid``
2. ``external_ref == data.integration_id``
3. otherwise CHARGE_NOT_FOUND, listing the keys that were tried

A matched PENDING charge is marked PAID and its merchant is credited in the
same transaction. Redeliveries find the charge already PAID and change
nothing.

Usage:
    from payments.services.charge_matcher import ChargeMatcher

    outcome = ChargeMatcher.reconcile(event["data"])
    if outcome.amount_mismatch:
        ...  # already logged for manual review
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from django.db import transaction
from django.utils import timezone

from core.services import BaseService
from payments.exceptions import (
    ChargeNotFoundError,
    ChargeNotPayableError,
    MalformedWebhookPayloadError,
)
from payments.ledger import EntryStatus, EntryType, LedgerEntryParams, ReferenceType, ledger
from payments.models import Charge
from payments.state_machines import ChargeStatus

# =============================================================================
# Result Types
# =============================================================================


@dataclass
class ChargeMatch:
    """
    A resolved charge and how it was found.

    Attributes:
        charge: The matched Charge
        matched_by: "pix_txid" or "external_ref"
        attempted_keys: Correlation values taken from the payload
    """

    charge: Charge
    matched_by: str
    attempted_keys: dict[str, str | None] = field(default_factory=dict)


@dataclass
class ReconciliationOutcome:
    """
    Result of applying a CashIn event to a charge.

    Attributes:
        charge: The charge, reloaded after the update
        credited: True if this call marked the charge PAID and credited it
        already_paid: True if the charge was PAID before this call
        amount_mismatch: True if the paid amount differs from the charge
        credited_cents: Amount credited (0 when nothing was credited)
        matched_by: Correlation key that found the charge
    """

    charge: Charge
    credited: bool
    already_paid: bool = False
    amount_mismatch: bool = False
    credited_cents: int = 0
    matched_by: str = ""


# =============================================================================
# Charge Matcher
# =============================================================================


class ChargeMatcher(BaseService):
    """
    Resolves incoming-payment events to charges and applies them.

    All methods are classmethods - no instance state is maintained.
    """

    @classmethod
    def resolve(cls, event_data: dict[str, Any]) -> ChargeMatch:
        """
        Find the charge an event refers to.

        Args:
            event_data: The ``data`` object of a CashIn event

        Returns:
            ChargeMatch for the first strategy that finds a charge

        Raises:
            MalformedWebhookPayloadError: If the event has neither txid nor
                integration_id
            ChargeNotFoundError: If no strategy finds a charge
        """
        txid = cls._clean(event_data.get("txid"))
        integration_id = cls._clean(event_data.get("integration_id"))
        attempted_keys = {"pix_txid": txid, "external_ref": integration_id}

        if not txid and not integration_id:
            raise MalformedWebhookPayloadError(
                "CashIn event carries neither txid nor integration_id",
                details={"attempted_keys": attempted_keys},
            )

        if txid:
            charge = Charge.objects.filter(pix_txid=txid).first()
            if charge is not None:
                return ChargeMatch(charge=charge, matched_by="pix_txid", attempted_keys=attempted_keys)

        if integration_id:
            charge = Charge.objects.filter(external_ref=integration_id).order_by("-created_at").first()
            if charge is not None:
                return ChargeMatch(charge=charge, matched_by="external_ref", attempted_keys=attempted_keys)

        cls.get_logger().warning(
            "No charge matches incoming payment",
            extra={"attempted_keys": attempted_keys},
        )
        raise ChargeNotFoundError(
            "No charge matches the incoming payment",
            attempted_keys=attempted_keys,
        )

    @classmethod
    def reconcile(cls, event_data: dict[str, Any]) -> ReconciliationOutcome:
        """
        Apply a CashIn event: mark the charge PAID and credit the merchant.

        The charge update is conditional on status PENDING. When another
        delivery already won, nothing is written and the outcome reports
        ``already_paid``. A paid amount that differs from the charge amount
        is logged and flagged; the provider amount is what gets credited.

        Args:
            event_data: The ``data`` object of a CashIn event

        Returns:
            ReconciliationOutcome

        Raises:
            MalformedWebhookPayloadError: On missing keys or unreadable value
            ChargeNotFoundError: If no charge matches
            ChargeNotPayableError: If the charge is EXPIRED or CANCELED
        """
        match = cls.resolve(event_data)
        charge = match.charge
        logger = cls.get_logger()
        log_context = {
            "charge_id": str(charge.id),
            "merchant_id": str(charge.merchant_id),
            "matched_by": match.matched_by,
        }

        paid_cents = cls.to_cents(event_data.get("value"))
        amount_mismatch = paid_cents is not None and paid_cents != charge.amount_cents
        if amount_mismatch:
            logger.warning(
                "Charge amount mismatch",
                extra={**log_context, "expected_cents": charge.amount_cents, "paid_cents": paid_cents},
            )
        credit_cents = paid_cents if paid_cents is not None else charge.amount_cents

        with transaction.atomic():
            now = timezone.now()
            updated = Charge.objects.filter(id=charge.id, status=ChargeStatus.PENDING).update(
                status=ChargeStatus.PAID,
                paid_at=now,
                updated_at=now,
            )

            if updated:
                ledger.append_entries(
                    [
                        LedgerEntryParams(
                            user_id=charge.merchant_id,
                            entry_type=EntryType.CHARGE_NET,
                            status=EntryStatus.POSTED,
                            amount_cents=credit_cents,
                            is_credit=True,
                            reference_type=ReferenceType.CHARGE,
                            reference_id=charge.id,
                            idempotency_key=f"charge_net:{charge.id}",
                            description=f"Payment received for charge {charge.id}",
                            occurred_at=now,
                        )
                    ]
                )

        charge.refresh_from_db()

        if updated:
            logger.info("Charge paid", extra={**log_context, "credited_cents": credit_cents})
            return ReconciliationOutcome(
                charge=charge,
                credited=True,
                amount_mismatch=amount_mismatch,
                credited_cents=credit_cents,
                matched_by=match.matched_by,
            )

        if charge.status == ChargeStatus.PAID:
            logger.info("Charge already paid, ignoring redelivery", extra=log_context)
            return ReconciliationOutcome(
                charge=charge,
                credited=False,
                already_paid=True,
                amount_mismatch=amount_mismatch,
                matched_by=match.matched_by,
            )

        logger.error(
            "Payment received for charge that cannot be paid",
            extra={**log_context, "charge_status": charge.status, "paid_cents": credit_cents},
        )
        raise ChargeNotPayableError(
            f"Charge {charge.id} is {charge.status} and cannot be marked paid",
            details={"charge_id": str(charge.id), "charge_status": charge.status, "paid_cents": credit_cents},
        )

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def to_cents(value: Any) -> int | None:
        """
        Convert a provider amount in reais to centavos.

        Uses Decimal with half-up rounding so 100.005 becomes 10001 rather
        than falling victim to float representation.

        Args:
            value: Amount as number or numeric string, or None

        Returns:
            Amount in centavos, or None when value is None

        Raises:
            MalformedWebhookPayloadError: If value is not a finite number
        """
        if value is None or value == "":
            return None
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            raise MalformedWebhookPayloadError(
                "Event value is not a number",
                details={"value": str(value)},
            )
        if not amount.is_finite() or amount <= 0:
            raise MalformedWebhookPayloadError(
                "Event value is not a valid amount",
                details={"value": str(value)},
            )
        return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @staticmethod
    def _clean(value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None
