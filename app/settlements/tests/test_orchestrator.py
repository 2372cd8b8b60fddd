"""
Tests for PayoutOrchestrator.

Tests cover:
- Two-leg payout with fee split, notes and idempotency keys
- Zero-fee payouts skip the platform leg
- Partial and total leg failures recorded as FAILED
- Configuration failures before any provider call
- Retries reuse the stored split and skip legs that already went through
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from settlements.adapters import IdempotencyKeyGenerator
from settlements.exceptions import InvalidStateTransitionError
from settlements.models import PaymentRequest
from settlements.services import PayoutOrchestrator, StatusReconciler
from settlements.services.payout_orchestrator import (
    MISSING_HOST_DESTINATION,
    MISSING_RECIPIENT_DESTINATION,
)
from settlements.state_machines import PayoutStatus
from settlements.tests.factories import (
    HOST_DESTINATION,
    PaymentRequestFactory,
    RecipientPayoutProfileFactory,
    payout_failed,
    payout_ok,
)


def stored(payment_request) -> PaymentRequest:
    return PaymentRequest.objects.get(pk=payment_request.pk)


# =============================================================================
# Successful Payouts
# =============================================================================


class TestSuccessfulPayout:
    """Both required legs succeed."""

    def test_sends_both_legs(
        self, claimed_request, recipient_profile, payout_adapter, platform_config
    ):
        outcome = PayoutOrchestrator.execute(claimed_request, config=platform_config)

        assert outcome.success
        assert payout_adapter.send_payout.call_count == 2

        recipient_leg = payout_adapter.send_payout.call_args_list[0].args[0]
        assert recipient_leg.destination == recipient_profile.payout_destination
        assert recipient_leg.amount_cents == 800
        assert recipient_leg.currency == "usd"
        assert recipient_leg.note == "Payment for: Lunch"
        assert recipient_leg.idempotency_key == IdempotencyKeyGenerator.for_payout_leg(
            claimed_request.id, "recipient"
        )
        assert recipient_leg.sender_item_id == f"recipient-{claimed_request.id}"

        platform_leg = payout_adapter.send_payout.call_args_list[1].args[0]
        assert platform_leg.destination == HOST_DESTINATION
        assert platform_leg.amount_cents == 200
        assert platform_leg.note == "Platform fee for: Lunch"
        assert platform_leg.idempotency_key == IdempotencyKeyGenerator.for_payout_leg(
            claimed_request.id, "platform"
        )

    def test_records_completed_outcome(
        self, claimed_request, payout_adapter, platform_config
    ):
        outcome = PayoutOrchestrator.execute(claimed_request, config=platform_config)

        payment_request = stored(claimed_request)
        assert outcome.payment_request == payment_request
        assert payment_request.payout_status == PayoutStatus.COMPLETED
        assert payment_request.platform_fee_cents == 200
        assert payment_request.payout_amount_cents == 800
        assert payment_request.recipient_payout_ref == "BATCH-RECIPIENT-1"
        assert payment_request.recipient_payout_item_ref == "ITEM-RECIPIENT-1"
        assert payment_request.platform_payout_ref == "BATCH-PLATFORM-1"
        assert payment_request.payout_completed_at is not None
        assert payment_request.payout_error is None

    def test_zero_fee_skips_platform_leg(
        self, claimed_request, payout_adapter, platform_config
    ):
        config = replace(platform_config, fee_fraction=Decimal("0"))

        outcome = PayoutOrchestrator.execute(claimed_request, config=config)

        assert outcome.success
        assert outcome.platform_result is None
        payout_adapter.send_payout.assert_called_once()
        assert payout_adapter.send_payout.call_args.args[0].amount_cents == 1000

        payment_request = stored(claimed_request)
        assert payment_request.payout_status == PayoutStatus.COMPLETED
        assert payment_request.platform_fee_cents == 0
        assert payment_request.platform_payout_ref is None

    def test_default_note_subject(self, recipient, payout_adapter, platform_config):
        payment_request = PaymentRequestFactory(
            recipient=recipient, paid=True, description=""
        )
        claim = StatusReconciler.claim(payment_request.id)

        PayoutOrchestrator.execute(claim.payment_request, config=platform_config)

        notes = [c.args[0].note for c in payout_adapter.send_payout.call_args_list]
        assert notes == [
            "Payment for: QR Code Payment",
            "Platform fee for: QR Code Payment",
        ]


# =============================================================================
# Leg Failures
# =============================================================================


class TestLegFailures:
    """Any failed leg ends the run as FAILED."""

    def test_recipient_leg_failure(
        self, claimed_request, payout_adapter, platform_config
    ):
        payout_adapter.send_payout.side_effect = [
            payout_failed("Receiver is unregistered"),
            payout_ok("platform"),
        ]

        outcome = PayoutOrchestrator.execute(claimed_request, config=platform_config)

        assert not outcome.success
        assert outcome.error == "Recipient payout failed: Receiver is unregistered"
        payment_request = stored(claimed_request)
        assert payment_request.payout_status == PayoutStatus.FAILED
        assert payment_request.payout_error == outcome.error
        assert payment_request.recipient_payout_ref is None
        assert payment_request.platform_payout_ref == "BATCH-PLATFORM-1"
        assert payment_request.payout_completed_at is None

    def test_platform_leg_failure(
        self, claimed_request, payout_adapter, platform_config
    ):
        payout_adapter.send_payout.side_effect = [
            payout_ok("recipient"),
            payout_failed("Limit exceeded"),
        ]

        outcome = PayoutOrchestrator.execute(claimed_request, config=platform_config)

        assert not outcome.success
        assert outcome.error == "Platform payout failed: Limit exceeded"
        payment_request = stored(claimed_request)
        assert payment_request.payout_status == PayoutStatus.FAILED
        assert payment_request.recipient_payout_ref == "BATCH-RECIPIENT-1"

    def test_both_legs_fail(self, claimed_request, payout_adapter, platform_config):
        payout_adapter.send_payout.side_effect = [
            payout_failed("A"),
            payout_failed("B"),
        ]

        outcome = PayoutOrchestrator.execute(claimed_request, config=platform_config)

        assert outcome.error == (
            "Recipient payout failed: A | Platform payout failed: B"
        )
        assert stored(claimed_request).payout_error == outcome.error


# =============================================================================
# Configuration Failures
# =============================================================================


class TestConfigurationFailures:
    """Missing destinations fail the run without any provider call."""

    def test_recipient_without_destination(self, db, payout_adapter, platform_config):
        profile = RecipientPayoutProfileFactory(
            payout_destination="", destination_verified=False
        )
        payment_request = PaymentRequestFactory(recipient=profile.user, paid=True)
        claim = StatusReconciler.claim(payment_request.id)

        outcome = PayoutOrchestrator.execute(claim.payment_request, config=platform_config)

        assert not outcome.success
        assert outcome.error == MISSING_RECIPIENT_DESTINATION
        payout_adapter.send_payout.assert_not_called()
        stored_request = stored(payment_request)
        assert stored_request.payout_status == PayoutStatus.FAILED
        assert stored_request.payout_error == MISSING_RECIPIENT_DESTINATION
        assert stored_request.platform_fee_cents is None

    def test_recipient_without_profile(self, user, payout_adapter, platform_config):
        payment_request = PaymentRequestFactory(recipient=user, paid=True)
        claim = StatusReconciler.claim(payment_request.id)

        outcome = PayoutOrchestrator.execute(claim.payment_request, config=platform_config)

        assert outcome.error == MISSING_RECIPIENT_DESTINATION
        payout_adapter.send_payout.assert_not_called()

    def test_missing_host_destination(
        self, claimed_request, payout_adapter, platform_config
    ):
        config = replace(platform_config, host_payout_destination="")

        outcome = PayoutOrchestrator.execute(claimed_request, config=config)

        assert not outcome.success
        assert outcome.error == MISSING_HOST_DESTINATION
        payout_adapter.send_payout.assert_not_called()
        assert stored(claimed_request).payout_status == PayoutStatus.FAILED

    def test_missing_host_destination_ignored_without_fee(
        self, claimed_request, payout_adapter, platform_config
    ):
        config = replace(
            platform_config, host_payout_destination="", fee_fraction=Decimal("0")
        )

        outcome = PayoutOrchestrator.execute(claimed_request, config=config)

        assert outcome.success
        payout_adapter.send_payout.assert_called_once()

    def test_unclaimed_request_rejected(
        self, paid_request, payout_adapter, platform_config
    ):
        with pytest.raises(InvalidStateTransitionError):
            PayoutOrchestrator.execute(paid_request, config=platform_config)

        payout_adapter.send_payout.assert_not_called()
        assert stored(paid_request).payout_status == PayoutStatus.UNSET


# =============================================================================
# Retries
# =============================================================================


class TestRetry:
    """Re-running after FAILED."""

    def test_retry_uses_stored_split(
        self, claimed_request, payout_adapter, platform_config
    ):
        payout_adapter.send_payout.side_effect = [
            payout_failed("A"),
            payout_failed("B"),
        ]
        PayoutOrchestrator.execute(claimed_request, config=platform_config)

        payout_adapter.send_payout.side_effect = [
            payout_ok("recipient", 2),
            payout_ok("platform", 2),
        ]
        claim = StatusReconciler.claim(claimed_request.id)
        changed = replace(platform_config, fee_fraction=Decimal("0.50"))
        outcome = PayoutOrchestrator.execute(claim.payment_request, config=changed)

        assert outcome.success
        amounts = [c.args[0].amount_cents for c in payout_adapter.send_payout.call_args_list]
        assert amounts == [800, 200, 800, 200]
        payment_request = stored(claimed_request)
        assert payment_request.payout_status == PayoutStatus.COMPLETED
        assert payment_request.payout_attempts == 2

    def test_retry_reuses_idempotency_keys(
        self, claimed_request, payout_adapter, platform_config
    ):
        payout_adapter.send_payout.side_effect = [
            payout_failed("timeout"),
            payout_failed("timeout"),
        ]
        PayoutOrchestrator.execute(claimed_request, config=platform_config)
        payout_adapter.send_payout.side_effect = [
            payout_ok("recipient", 2),
            payout_ok("platform", 2),
        ]
        claim = StatusReconciler.claim(claimed_request.id)
        PayoutOrchestrator.execute(claim.payment_request, config=platform_config)

        keys = [c.args[0].idempotency_key for c in payout_adapter.send_payout.call_args_list]
        assert keys[0] == keys[2]
        assert keys[1] == keys[3]
        assert keys[0] != keys[1]

    def test_retry_skips_leg_that_succeeded(
        self, claimed_request, payout_adapter, platform_config
    ):
        payout_adapter.send_payout.side_effect = [
            payout_ok("recipient"),
            payout_failed("Limit exceeded"),
        ]
        PayoutOrchestrator.execute(claimed_request, config=platform_config)

        payout_adapter.send_payout.side_effect = [payout_ok("platform", 2)]
        claim = StatusReconciler.claim(claimed_request.id)
        outcome = PayoutOrchestrator.execute(claim.payment_request, config=platform_config)

        assert outcome.success
        assert payout_adapter.send_payout.call_count == 3
        last_call = payout_adapter.send_payout.call_args_list[-1].args[0]
        assert last_call.destination == HOST_DESTINATION
        payment_request = stored(claimed_request)
        assert payment_request.payout_status == PayoutStatus.COMPLETED
        assert payment_request.recipient_payout_ref == "BATCH-RECIPIENT-1"
        assert payment_request.platform_payout_ref == "BATCH-PLATFORM-2"


# =============================================================================
# Unexpected Errors
# =============================================================================


class TestUnexpectedErrors:
    """Errors that are not provider results still end the run."""

    def test_adapter_exception_fails_run(
        self, claimed_request, payout_adapter, platform_config
    ):
        payout_adapter.send_payout.side_effect = ValueError("unexpected response body")

        outcome = PayoutOrchestrator.execute(claimed_request, config=platform_config)

        assert not outcome.success
        assert outcome.error == "Unexpected payout error: unexpected response body"
        payment_request = stored(claimed_request)
        assert payment_request.payout_status == PayoutStatus.FAILED
        assert payment_request.payout_error == outcome.error

    def test_platform_leg_exception_keeps_recipient_ref(
        self, claimed_request, payout_adapter, platform_config
    ):
        payout_adapter.send_payout.side_effect = [
            payout_ok("recipient"),
            KeyError("items"),
        ]

        PayoutOrchestrator.execute(claimed_request, config=platform_config)

        payment_request = stored(claimed_request)
        assert payment_request.payout_status == PayoutStatus.FAILED
        assert payment_request.recipient_payout_ref == "BATCH-RECIPIENT-1"
        assert payment_request.platform_payout_ref is None

    def test_fee_split_write_error_fails_run(
        self, claimed_request, payout_adapter, platform_config, mocker
    ):
        mocker.patch.object(
            StatusReconciler,
            "record_fee_split",
            side_effect=RuntimeError("write failed"),
        )

        outcome = PayoutOrchestrator.execute(claimed_request, config=platform_config)

        assert not outcome.success
        assert stored(claimed_request).payout_status == PayoutStatus.FAILED
        payout_adapter.send_payout.assert_not_called()

    def test_failed_run_can_be_retried(
        self, claimed_request, payout_adapter, platform_config
    ):
        payout_adapter.send_payout.side_effect = ValueError("unexpected response body")
        PayoutOrchestrator.execute(claimed_request, config=platform_config)

        payout_adapter.send_payout.side_effect = [payout_ok("recipient"), payout_ok("platform")]
        claim = StatusReconciler.claim(claimed_request.id)
        outcome = PayoutOrchestrator.execute(claim.payment_request, config=platform_config)

        assert claim.claimed
        assert outcome.success
        assert stored(claimed_request).payout_status == PayoutStatus.COMPLETED
