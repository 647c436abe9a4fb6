"""
PixKey model: a user's registered payout destination.

Withdrawals are sent to the user's most recently registered key, and only
once the key has been verified against the account holder's document.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import PixKeyType


class PixKey(UUIDPrimaryKeyMixin, BaseModel):
    """
    A Pix key registered by a user for withdrawals.

    Fields:
        user_id: Key owner
        key_type: CPF, CNPJ, EMAIL, TELEFONE or CHAVE_ALEATORIA
        key: The key value as the provider expects it
        owner_document: CPF/CNPJ of the account holder, sent for validation
        is_verified: Whether ownership was confirmed
        verified_at: When ownership was confirmed
    """

    user_id = models.UUIDField(
        db_index=True,
        help_text="User who owns this key",
    )
    key_type = models.CharField(
        max_length=20,
        choices=PixKeyType.choices,
        help_text="Kind of Pix key",
    )
    key = models.CharField(
        max_length=140,
        help_text="Pix key value",
    )
    owner_document = models.CharField(
        max_length=14,
        help_text="CPF or CNPJ digits of the account holder",
    )
    is_verified = models.BooleanField(
        default=False,
        help_text="Whether key ownership was verified",
    )
    verified_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When key ownership was verified",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Pix key"
        verbose_name_plural = "Pix keys"
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "key_type", "key"],
                name="pix_key_unique_per_user",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"PixKey({self.key_type}, verified={self.is_verified})"
