"""
Settlement adapters for external services.

All payment gateway and payout provider calls go through these adapters
to ensure consistent error handling, timeouts, idempotency, and
observability.

Usage:
    from settlements.adapters import PayPalAdapter, StripeAdapter
"""

from settlements.adapters.idempotency import IdempotencyKeyGenerator
from settlements.adapters.paypal_adapter import (
    PayoutBatchStatus,
    PayoutResult,
    PayPalAdapter,
    SendPayoutParams,
    format_amount,
)
from settlements.adapters.stripe_adapter import (
    CreatePaymentLinkParams,
    PaymentLinkResult,
    StripeAdapter,
)

__all__ = [
    "CreatePaymentLinkParams",
    "IdempotencyKeyGenerator",
    "PaymentLinkResult",
    "PayoutBatchStatus",
    "PayoutResult",
    "PayPalAdapter",
    "SendPayoutParams",
    "StripeAdapter",
    "format_amount",
]
