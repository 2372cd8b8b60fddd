"""
Tests for SettlementService.

Tests cover:
- trigger_payout claim outcomes mapped to error codes
- Ownership checks for manual triggers
- Payout hand-off after payment
- Payout batch status lookups
"""

import uuid

from settlements.adapters import IdempotencyKeyGenerator, PayoutBatchStatus, PayoutResult
from settlements.exceptions import PayoutProviderUnavailableError
from settlements.models import PaymentRequest
from settlements.services import PayoutOrchestrator, SettlementService
from settlements.state_machines import PayoutLeg, PayoutStatus
from settlements.tests.factories import (
    PaymentRequestFactory,
    UserFactory,
    payout_failed,
    payout_ok,
)


# =============================================================================
# trigger_payout
# =============================================================================


class TestTriggerPayout:
    def test_successful_payout(self, paid_request, payout_adapter, platform_config):
        result = SettlementService.trigger_payout(paid_request.id)

        assert result.success
        assert result.data.success
        assert result.data.payment_request.payout_status == PayoutStatus.COMPLETED

    def test_failed_payout_carries_outcome(
        self, paid_request, payout_adapter, platform_config
    ):
        payout_adapter.send_payout.side_effect = [payout_failed("A"), payout_failed("B")]

        result = SettlementService.trigger_payout(paid_request.id)

        assert not result.success
        assert result.error_code == "PAYOUT_FAILED"
        assert result.error == "Recipient payout failed: A | Platform payout failed: B"
        assert result.data.payment_request.payout_status == PayoutStatus.FAILED

    def test_unexpected_error_leaves_request_retriable(
        self, paid_request, payout_adapter, platform_config
    ):
        payout_adapter.send_payout.side_effect = ValueError("bad body")

        first = SettlementService.trigger_payout(paid_request.id)

        assert first.error_code == "PAYOUT_FAILED"
        assert first.data.payment_request.payout_status == PayoutStatus.FAILED

        payout_adapter.send_payout.side_effect = [
            payout_ok("recipient"),
            payout_ok("platform"),
        ]
        retry = SettlementService.trigger_payout(paid_request.id)

        assert retry.success
        assert retry.data.payment_request.payout_status == PayoutStatus.COMPLETED

    def test_in_progress(self, claimed_request, payout_adapter, platform_config):
        result = SettlementService.trigger_payout(claimed_request.id)

        assert result.error_code == "PAYOUT_IN_PROGRESS"
        payout_adapter.send_payout.assert_not_called()

    def test_not_eligible(self, pending_request, payout_adapter, platform_config):
        result = SettlementService.trigger_payout(pending_request.id)

        assert result.error_code == "PAYOUT_NOT_ELIGIBLE"

    def test_already_completed_is_not_resent(
        self, paid_request, payout_adapter, platform_config
    ):
        SettlementService.trigger_payout(paid_request.id)

        result = SettlementService.trigger_payout(paid_request.id)

        assert result.error_code == "PAYOUT_NOT_ELIGIBLE"
        assert payout_adapter.send_payout.call_count == 2

    def test_not_found(self, db, payout_adapter, platform_config):
        result = SettlementService.trigger_payout(uuid.uuid4())

        assert result.error_code == "PAYMENT_REQUEST_NOT_FOUND"

    def test_other_user_cannot_trigger(
        self, paid_request, payout_adapter, platform_config
    ):
        stranger = UserFactory()

        result = SettlementService.trigger_payout(paid_request.id, actor=stranger)

        assert result.error_code == "PAYMENT_REQUEST_NOT_FOUND"
        stored = PaymentRequest.objects.get(pk=paid_request.pk)
        assert stored.payout_status == PayoutStatus.UNSET

    def test_owner_can_trigger(
        self, paid_request, recipient, payout_adapter, platform_config
    ):
        result = SettlementService.trigger_payout(paid_request.id, actor=recipient)

        assert result.success

    def test_staff_can_trigger(
        self, paid_request, staff_user, payout_adapter, platform_config
    ):
        result = SettlementService.trigger_payout(paid_request.id, actor=staff_user)

        assert result.success


class TestSettlePaidRequest:
    def test_runs_payout(self, paid_request, payout_adapter, platform_config):
        SettlementService.settle_paid_request(paid_request.id)

        stored = PaymentRequest.objects.get(pk=paid_request.pk)
        assert stored.payout_status == PayoutStatus.COMPLETED

    def test_in_progress_is_noop(self, claimed_request, payout_adapter, platform_config):
        SettlementService.settle_paid_request(claimed_request.id)

        payout_adapter.send_payout.assert_not_called()


# =============================================================================
# get_payout_batch_status
# =============================================================================


class TestGetPayoutBatchStatus:
    def test_nothing_sent(self, paid_request, payout_adapter):
        result = SettlementService.get_payout_batch_status(paid_request)

        assert result.error_code == "PAYOUT_NOT_SENT"
        payout_adapter.get_payout_batch_status.assert_not_called()

    def test_returns_provider_status(self, recipient, payout_adapter):
        payment_request = PaymentRequestFactory(
            recipient=recipient,
            paid=True,
            payout_status=PayoutStatus.COMPLETED,
            recipient_payout_ref="BATCH-1",
        )
        payout_adapter.get_payout_batch_status.return_value = PayoutBatchStatus(
            batch_id="BATCH-1", batch_status="SUCCESS"
        )

        result = SettlementService.get_payout_batch_status(payment_request)

        assert result.success
        assert result.data.batch_status == "SUCCESS"
        payout_adapter.get_payout_batch_status.assert_called_once_with("BATCH-1")

    def test_provider_error(self, recipient, payout_adapter):
        payment_request = PaymentRequestFactory(
            recipient=recipient,
            paid=True,
            payout_status=PayoutStatus.COMPLETED,
            recipient_payout_ref="BATCH-1",
        )
        payout_adapter.get_payout_batch_status.side_effect = (
            PayoutProviderUnavailableError("PayPal API returned status 503")
        )

        result = SettlementService.get_payout_batch_status(payment_request)

        assert not result.success
        assert result.error_code == "PAYOUT_PROVIDER_UNAVAILABLE"


    def test_duplicate_batch_ref_not_sent_to_provider(
        self, claimed_request, payout_adapter, platform_config
    ):
        recipient_key = IdempotencyKeyGenerator.for_payout_leg(
            claimed_request.id, PayoutLeg.RECIPIENT
        )
        payout_adapter.send_payout.side_effect = [
            PayoutResult(success=True, provider_batch_ref=recipient_key, duplicate=True),
            payout_ok("platform"),
        ]
        outcome = PayoutOrchestrator.execute(claimed_request, config=platform_config)

        result = SettlementService.get_payout_batch_status(outcome.payment_request)

        assert result.error_code == "PAYOUT_BATCH_ID_UNKNOWN"
        payout_adapter.get_payout_batch_status.assert_not_called()
