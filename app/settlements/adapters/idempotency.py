"""
Deterministic idempotency keys for provider calls.

Keys depend only on the operation and the entity, never on the attempt
number, so a retried payout leg reuses the key of the attempt whose
response may have been lost.
"""

from __future__ import annotations

import hashlib
import uuid

from django.conf import settings


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for gateway and payout-provider calls.

    Format: "{operation}:{entity_id}:{hash}"

    The hash is salted with SECRET_KEY so keys cannot be predicted from
    public payment request ids.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="payout_recipient",
            entity_id=payment_request.id,
        )
        # Result: "payout_recipient:550e8400-e29b-41d4-a716-446655440000:a1b2c3d4"
    """

    @staticmethod
    def generate(operation: str, entity_id: uuid.UUID | str) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]
        return f"{operation}:{entity_str}:{short_hash}"

    @classmethod
    def for_payout_leg(cls, payment_request_id: uuid.UUID | str, leg: str) -> str:
        """Key for one payout leg of one payment request."""
        return cls.generate(f"payout_{str(leg)}", payment_request_id)
