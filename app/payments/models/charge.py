"""
Charge model for incoming payment requests.

A Charge is issued to a payer (Pix QR code or boleto) by the charge-issuing
flow. The reconciliation path is the only writer after creation: it moves a
PENDING charge to PAID when the provider reports the money arrived.

Usage:
    from payments.models import Charge
    from payments.state_machines import ChargeStatus

    charge = Charge.objects.create(
        merchant_id=merchant_id,
        amount_cents=10000,
        pix_txid="E123",
    )

    # Conditional transition used by reconciliation
    Charge.objects.filter(id=charge.id, status=ChargeStatus.PENDING).update(
        status=ChargeStatus.PAID,
        paid_at=timezone.now(),
    )
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import ChargeMethod, ChargeStatus


class Charge(UUIDPrimaryKeyMixin, BaseModel):
    """
    An internal request for an incoming payment.

    Correlation identifiers are inconsistent across provider payloads, so a
    charge can be found either by the provider transaction id (pix_txid) or
    by the caller-supplied reference (external_ref).

    Fields:
        merchant_id: Owner whose ledger is credited on payment
        amount_cents: Requested amount in centavos (>= 1)
        currency: ISO 4217 code, always BRL
        method: PIX or BOLETO
        status: PENDING, PAID, EXPIRED or CANCELED
        external_ref: Caller-supplied correlation id (integration_id)
        pix_txid: Provider transaction id
        paid_at: Set exactly when status is PAID
        description: Free text shown to the payer

    Constraints:
        - amount_cents >= 1
        - status = PAID if and only if paid_at is set
        - pix_txid unique when present
    """

    merchant_id = models.UUIDField(
        db_index=True,
        help_text="Merchant that receives the funds",
    )
    amount_cents = models.PositiveBigIntegerField(
        help_text="Requested amount in centavos",
    )
    currency = models.CharField(
        max_length=3,
        default="BRL",
        help_text="ISO 4217 currency code",
    )
    method = models.CharField(
        max_length=16,
        choices=ChargeMethod.choices,
        default=ChargeMethod.PIX,
        help_text="Payment instrument",
    )
    status = models.CharField(
        max_length=16,
        choices=ChargeStatus.choices,
        default=ChargeStatus.PENDING,
        db_index=True,
        help_text="Current charge status",
    )
    external_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Caller-supplied correlation id (provider integration_id)",
    )
    pix_txid = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Provider transaction id for the Pix charge",
    )
    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment was reconciled",
    )
    description = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Description shown to the payer",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["merchant_id", "status"], name="payments_ch_merchan_4f1a2c_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_cents__gte=1),
                name="charge_amount_cents_positive",
            ),
            models.CheckConstraint(
                condition=(
                    Q(status=ChargeStatus.PAID, paid_at__isnull=False)
                    | (~Q(status=ChargeStatus.PAID) & Q(paid_at__isnull=True))
                ),
                name="charge_paid_iff_paid_at",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, status, and amount."""
        return f"Charge({self.id}, {self.status}, {self.amount_cents / 100:.2f} {self.currency})"

    @property
    def is_paid(self) -> bool:
        """Check if the charge has been reconciled."""
        return self.status == ChargeStatus.PAID
