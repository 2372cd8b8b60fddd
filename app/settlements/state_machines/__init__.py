"""
State machine enums for settlement models.

This module defines the state enums used by settlement models with django-fsm.
"""

from settlements.state_machines.states import (
    PaymentRequestStatus,
    PayoutLeg,
    PayoutStatus,
    WebhookEventStatus,
)

__all__ = [
    "PaymentRequestStatus",
    "PayoutLeg",
    "PayoutStatus",
    "WebhookEventStatus",
]
