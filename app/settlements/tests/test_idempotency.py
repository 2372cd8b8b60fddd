"""
Tests for IdempotencyKeyGenerator.
"""

import uuid

from settlements.adapters import IdempotencyKeyGenerator
from settlements.state_machines import PayoutLeg


class TestIdempotencyKeyGenerator:
    def test_format(self):
        entity_id = uuid.UUID("550e8400-e29b-41d4-a716-446655440000")

        key = IdempotencyKeyGenerator.generate("payment_link", entity_id)

        operation, entity, short_hash = key.split(":")
        assert operation == "payment_link"
        assert entity == str(entity_id)
        assert len(short_hash) == 8

    def test_deterministic(self):
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "payment_link", entity_id
        ) == IdempotencyKeyGenerator.generate("payment_link", str(entity_id))

    def test_salted_with_secret_key(self, settings):
        entity_id = uuid.uuid4()
        first = IdempotencyKeyGenerator.generate("payment_link", entity_id)

        settings.SECRET_KEY = "another-secret"

        assert IdempotencyKeyGenerator.generate("payment_link", entity_id) != first

    def test_payout_legs_have_distinct_keys(self):
        entity_id = uuid.uuid4()

        recipient = IdempotencyKeyGenerator.for_payout_leg(entity_id, PayoutLeg.RECIPIENT)
        platform = IdempotencyKeyGenerator.for_payout_leg(entity_id, PayoutLeg.PLATFORM)

        assert recipient.startswith("payout_recipient:")
        assert platform.startswith("payout_platform:")
        assert recipient != platform
