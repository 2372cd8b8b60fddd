"""
Settlement models.

Usage:
    from settlements.models import (
        PaymentRequest,
        RecipientPayoutProfile,
        WebhookEvent,
    )
"""

from settlements.models.payment_request import PaymentRequest
from settlements.models.payout_profile import RecipientPayoutProfile
from settlements.models.webhook_event import WebhookEvent

__all__ = [
    "PaymentRequest",
    "RecipientPayoutProfile",
    "WebhookEvent",
]
