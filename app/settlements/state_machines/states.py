"""
State enums for settlement models.

These are Django TextChoices for database storage and admin integration.

State Machines Overview:

PaymentRequest status (payment leg, django-fsm):
    pending → paid
    pending → expired
    pending → cancelled

PaymentRequest payout_status (settlement substate, only once paid):
    unset → processing → completed
    unset → processing → failed → processing (retry via claim)
    pending → processing (reserved for externally queued requests)

WebhookEvent status:
    pending → processing → processed
    pending → processing → failed → processing (redelivery)
"""

from django.db import models


class PaymentRequestStatus(models.TextChoices):
    """
    States for the PaymentRequest payment leg.

    Terminal states: PAID, EXPIRED, CANCELLED
    Only PENDING has outgoing transitions, and PAID is never reversed.
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    EXPIRED = "expired", "Expired"
    CANCELLED = "cancelled", "Cancelled"


class PayoutStatus(models.TextChoices):
    """
    Settlement substate of a paid PaymentRequest.

    UNSET until the request is paid and a claim is taken. The claim is
    the only way into PROCESSING; COMPLETED and FAILED are written only
    by the claim holder. FAILED is retriable through a new claim.
    """

    UNSET = "unset", "Unset"
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"

    @classmethod
    def claimable(cls) -> list[str]:
        """Statuses from which a payout attempt may be claimed."""
        return [cls.UNSET, cls.PENDING, cls.FAILED]


class PayoutLeg(models.TextChoices):
    """The two outbound transfers a settlement is split into."""

    RECIPIENT = "recipient", "Recipient"
    PLATFORM = "platform", "Platform"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for gateway webhook events.

    Flow:
        PENDING → PROCESSING → PROCESSED (success)
        PENDING → PROCESSING → FAILED (error, redelivery retries)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
