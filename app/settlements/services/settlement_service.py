"""
Settlement entry points: claim a paid request, then run its payout.

Used by the webhook ingestor right after a request becomes PAID and by
the manual payout trigger endpoint for retries of FAILED runs.

Usage:
    from settlements.services import SettlementService

    result = SettlementService.trigger_payout(payment_request_id)
    if result.success:
        result.data.payment_request.payout_status  # "completed"
    elif result.error_code == "PAYOUT_IN_PROGRESS":
        ...
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult

from settlements.adapters import IdempotencyKeyGenerator
from settlements.exceptions import PayoutProviderError
from settlements.models import PaymentRequest
from settlements.services.payout_orchestrator import PayoutOrchestrator, PayoutOutcome
from settlements.services.reconciler import ClaimOutcome, StatusReconciler
from settlements.state_machines import PayoutLeg

if TYPE_CHECKING:
    from settlements.adapters import PayoutBatchStatus
    from settlements.config import PlatformConfig


CLAIM_FAILURES = {
    ClaimOutcome.NOT_FOUND: (
        "Payment request not found",
        "PAYMENT_REQUEST_NOT_FOUND",
    ),
    ClaimOutcome.IN_PROGRESS: (
        "A payout for this payment request is already in progress",
        "PAYOUT_IN_PROGRESS",
    ),
    ClaimOutcome.NOT_ELIGIBLE: (
        "Payment request is not eligible for payout",
        "PAYOUT_NOT_ELIGIBLE",
    ),
}


class SettlementService(BaseService):
    """Coordinates the reconciler claim and the payout orchestrator."""

    @classmethod
    def trigger_payout(
        cls,
        payment_request_id: uuid.UUID,
        actor=None,
        config: PlatformConfig | None = None,
    ) -> ServiceResult[PayoutOutcome]:
        """
        Claim and settle a paid payment request.

        Args:
            payment_request_id: Request to settle
            actor: User asking for the payout. When given, only the
                recipient or a staff user may trigger it; anyone else
                gets PAYMENT_REQUEST_NOT_FOUND.
            config: Platform configuration (defaults to the process config)

        Returns:
            ServiceResult with the PayoutOutcome. Failure codes:
            PAYMENT_REQUEST_NOT_FOUND, PAYOUT_IN_PROGRESS,
            PAYOUT_NOT_ELIGIBLE, or PAYOUT_FAILED (data holds the outcome).
        """
        if actor is not None and not actor.is_staff:
            owned = PaymentRequest.objects.filter(
                pk=payment_request_id, recipient=actor
            ).exists()
            if not owned:
                return ServiceResult.failure(*CLAIM_FAILURES[ClaimOutcome.NOT_FOUND])

        claim = StatusReconciler.claim(payment_request_id)
        if not claim.claimed:
            return ServiceResult.failure(*CLAIM_FAILURES[claim.outcome])

        outcome = PayoutOrchestrator.execute(claim.payment_request, config=config)
        if outcome.success:
            return ServiceResult.success(outcome)
        return ServiceResult.failure(
            outcome.error or "Payout failed",
            error_code="PAYOUT_FAILED",
            data=outcome,
        )

    @classmethod
    def settle_paid_request(cls, payment_request_id: uuid.UUID) -> None:
        """
        Payout hand-off after a request became PAID.

        Runs after the webhook transaction commits. Outcomes are recorded
        on the request itself, so the result is only logged here.
        """
        result = cls.trigger_payout(payment_request_id)
        cls.get_logger().info(
            "Payout hand-off finished",
            extra={
                "payment_request_id": str(payment_request_id),
                "success": result.success,
                "error_code": result.error_code,
            },
        )

    @classmethod
    def get_payout_batch_status(
        cls,
        payment_request: PaymentRequest,
    ) -> ServiceResult[PayoutBatchStatus]:
        """
        Look up the provider-side status of the recipient leg batch.

        Returns:
            ServiceResult with PayoutBatchStatus. Failure codes:
            PAYOUT_NOT_SENT, PAYOUT_BATCH_ID_UNKNOWN, or the provider
            error code.
        """
        batch_id = payment_request.payout_provider_ref
        if not batch_id:
            return ServiceResult.failure(
                "No payout has been sent for this payment request",
                error_code="PAYOUT_NOT_SENT",
            )

        # A leg accepted as a duplicate batch only has our sender_batch_id
        if batch_id == IdempotencyKeyGenerator.for_payout_leg(
            payment_request.id, PayoutLeg.RECIPIENT
        ):
            return ServiceResult.failure(
                "Provider batch id is unknown; the payout was accepted as a "
                "duplicate of an earlier batch",
                error_code="PAYOUT_BATCH_ID_UNKNOWN",
            )

        try:
            status = PayoutOrchestrator.get_payout_adapter().get_payout_batch_status(
                batch_id
            )
        except PayoutProviderError as e:
            cls.get_logger().warning(
                "Payout batch status lookup failed",
                extra={
                    "payment_request_id": str(payment_request.id),
                    "batch_id": batch_id,
                    "error_code": e.error_code,
                },
            )
            return ServiceResult.from_exception(e)

        return ServiceResult.success(status)
