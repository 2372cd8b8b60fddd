"""
RecipientPayoutProfile model.

One per user. Holds the address the payout provider sends the recipient
leg to. A payment request cannot be created, and a payout cannot be
attempted, without a destination.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel


class RecipientPayoutProfile(BaseModel):
    """
    Payout destination for a recipient.

    Fields:
        user: Owning user (one-to-one)
        payout_destination: Payout provider receiver (email)
        destination_verified: Set when the destination passed validation
        verified_at: When the destination was last verified
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payout_profile",
        help_text="User this payout profile belongs to",
    )

    payout_destination = models.EmailField(
        max_length=254,
        blank=True,
        default="",
        help_text="Payout provider receiver email",
    )

    destination_verified = models.BooleanField(
        default=False,
        help_text="Whether the payout destination has been verified",
    )

    verified_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payout destination was last verified",
    )

    class Meta:
        verbose_name = "Recipient Payout Profile"
        verbose_name_plural = "Recipient Payout Profiles"

    def __str__(self) -> str:
        return f"RecipientPayoutProfile({self.user_id}, {self.payout_destination or '-'})"

    @property
    def has_destination(self) -> bool:
        return bool(self.payout_destination)

    def set_destination(self, destination: str) -> None:
        """
        Replace the payout destination and mark it verified.

        Note: Does not save - caller must save after calling.
        """
        self.payout_destination = destination.strip()
        self.destination_verified = True
        self.verified_at = timezone.now()
