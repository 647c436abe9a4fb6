"""
State enums for reconciliation and payout models.

These are Django TextChoices for database storage and admin integration.
Withdrawal states are driven by django-fsm transitions on the model.

State Machines Overview:

Charge Status:
    pending → paid (reconciled incoming payment)
    pending → expired / canceled (owned by the charge-issuing flow)

Withdrawal States:
    requested → processing → completed
    requested → processing → failed
    requested → failed (provider rejected before a transfer existed)

Ledger Entry Status:
    pending → posted
    pending → canceled

Webhook Attempt Status:
    received → processed / rejected / failed
"""

from django.db import models


class ChargeStatus(models.TextChoices):
    """
    Lifecycle of an incoming-payment request.

    Only the reconciliation path moves a charge to PAID, and only from
    PENDING. PAID, EXPIRED and CANCELED are terminal.
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    EXPIRED = "expired", "Expired"
    CANCELED = "canceled", "Canceled"


class ChargeMethod(models.TextChoices):
    """Payment instrument the charge was issued for."""

    PIX = "pix", "Pix"
    BOLETO = "boleto", "Boleto"


class WithdrawalState(models.TextChoices):
    """
    States for the Withdrawal model lifecycle.

    Terminal states: COMPLETED, FAILED. Nothing leaves a terminal state.

    State Flow:
        REQUESTED → PROCESSING → COMPLETED
        REQUESTED → PROCESSING → FAILED
        REQUESTED → FAILED
    """

    REQUESTED = "requested", "Requested"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"

    @classmethod
    def terminal(cls) -> tuple:
        return (cls.COMPLETED, cls.FAILED)


class WebhookAttemptStatus(models.TextChoices):
    """
    Processing status for one inbound webhook delivery.

    State Flow:
        RECEIVED → PROCESSED (handled, or idempotent no-op)
        RECEIVED → REJECTED (signature or payload refused)
        RECEIVED → FAILED (handler error, kept for diagnosis)
    """

    RECEIVED = "received", "Received"
    PROCESSED = "processed", "Processed"
    REJECTED = "rejected", "Rejected"
    FAILED = "failed", "Failed"


class PixKeyType(models.TextChoices):
    """Pix key kinds accepted by the transfer provider."""

    CPF = "CPF", "CPF"
    CNPJ = "CNPJ", "CNPJ"
    EMAIL = "EMAIL", "E-mail"
    PHONE = "TELEFONE", "Phone"
    EVP = "CHAVE_ALEATORIA", "Random key"


class ProviderTransferStatus(models.TextChoices):
    """
    Transfer status vocabulary reported by Transfeera.

    FINALIZADO settles the payout. DEVOLVIDO (returned by the receiving
    bank) and the deprecated FALHA fail it. CRIADA, RECEBIDO and TRANSFERIDO
    are intermediate. The English aliases show up on some API versions.
    """

    CRIADA = "CRIADA", "Created"
    RECEBIDO = "RECEBIDO", "Received by provider"
    TRANSFERIDO = "TRANSFERIDO", "Sent to bank"
    FINALIZADO = "FINALIZADO", "Finalized"
    DEVOLVIDO = "DEVOLVIDO", "Returned"
    FALHA = "FALHA", "Failed (deprecated)"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"

    @classmethod
    def successful(cls) -> tuple:
        return (cls.FINALIZADO, cls.COMPLETED)

    @classmethod
    def unsuccessful(cls) -> tuple:
        return (cls.DEVOLVIDO, cls.FALHA, cls.FAILED)

    @classmethod
    def intermediate(cls) -> tuple:
        return (cls.CRIADA, cls.RECEBIDO, cls.TRANSFERIDO)


__all__ = [
    "ChargeMethod",
    "ChargeStatus",
    "PixKeyType",
    "ProviderTransferStatus",
    "WebhookAttemptStatus",
    "WithdrawalState",
]
