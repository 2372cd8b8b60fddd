"""
Recipient payout profile management.

Recipients must register a payout destination (a PayPal email) before
they can create payment requests.
"""

from __future__ import annotations

from core.services import BaseService, ServiceResult

from settlements.config import is_valid_payout_email
from settlements.models import RecipientPayoutProfile


class PayoutProfileService(BaseService):
    """Read and update a user's RecipientPayoutProfile."""

    @classmethod
    def get_profile(cls, user) -> RecipientPayoutProfile:
        """Return the user's profile, creating an empty one if needed."""
        profile, _ = RecipientPayoutProfile.objects.get_or_create(user=user)
        return profile

    @classmethod
    def set_destination(
        cls,
        user,
        destination: str,
    ) -> ServiceResult[RecipientPayoutProfile]:
        """
        Validate and store a new payout destination.

        Returns:
            ServiceResult with the saved profile, or INVALID_PAYOUT_DESTINATION
        """
        destination = (destination or "").strip()
        if not is_valid_payout_email(destination):
            return ServiceResult.failure(
                "Payout destination must be a valid email address",
                error_code="INVALID_PAYOUT_DESTINATION",
                errors={"payout_destination": ["Enter a valid email address."]},
            )

        profile = cls.get_profile(user)
        profile.set_destination(destination)
        profile.save()

        cls.get_logger().info(
            "Payout destination updated",
            extra={"user_id": str(user.pk)},
        )
        return ServiceResult.success(profile)
