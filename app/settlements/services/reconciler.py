"""
Status reconciler: the only writer of PaymentRequest.payout_status.

Every payout_status change is a single conditional UPDATE whose WHERE
clause names the state it expects. A payout run starts with claim();
whoever gets the row count of 1 owns the run until it records a final
outcome with complete() or fail(). Both final writes only match rows
still in PROCESSING, so a stale or duplicate runner cannot overwrite
another's result.

Usage:
    from settlements.services import StatusReconciler

    claim = StatusReconciler.claim(payment_request.id)
    if claim.claimed:
        PayoutOrchestrator.execute(claim.payment_request)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from django.db.models import F
from django.utils import timezone

from core.services import BaseService

from settlements.models import PaymentRequest
from settlements.state_machines import PaymentRequestStatus, PayoutStatus

if TYPE_CHECKING:
    from settlements.adapters import PayoutResult
    from settlements.fees import FeeSplit


class ClaimOutcome(str, Enum):
    """Result of an attempt to take ownership of a payout run."""

    CLAIMED = "claimed"
    IN_PROGRESS = "in_progress"
    NOT_ELIGIBLE = "not_eligible"
    NOT_FOUND = "not_found"


@dataclass
class ClaimResult:
    outcome: ClaimOutcome
    payment_request: PaymentRequest | None = None

    @property
    def claimed(self) -> bool:
        return self.outcome is ClaimOutcome.CLAIMED


class StatusReconciler(BaseService):
    """
    Atomic compare-and-set writes on the settlement substate.

    All methods are class methods and issue one UPDATE each; none of
    them read-modify-write through model.save().
    """

    @classmethod
    def claim(cls, payment_request_id: uuid.UUID) -> ClaimResult:
        """
        Move a paid request into PROCESSING if nobody else holds it.

        Eligible rows are PAID with payout_status UNSET, PENDING or
        FAILED. Exactly one of any number of concurrent callers sees
        CLAIMED; the others see IN_PROGRESS.

        Returns:
            ClaimResult; payment_request is the freshly loaded row when
            the claim succeeded.
        """
        logger = cls.get_logger()

        updated = PaymentRequest.objects.filter(
            pk=payment_request_id,
            status=PaymentRequestStatus.PAID,
            payout_status__in=PayoutStatus.claimable(),
        ).update(
            payout_status=PayoutStatus.PROCESSING,
            payout_error=None,
            payout_attempts=F("payout_attempts") + 1,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )

        if updated == 1:
            payment_request = PaymentRequest.objects.get(pk=payment_request_id)
            logger.info(
                "Payout claimed",
                extra={
                    "payment_request_id": str(payment_request_id),
                    "attempt": payment_request.payout_attempts,
                },
            )
            return ClaimResult(ClaimOutcome.CLAIMED, payment_request)

        current = (
            PaymentRequest.objects.filter(pk=payment_request_id)
            .values("status", "payout_status")
            .first()
        )
        if current is None:
            return ClaimResult(ClaimOutcome.NOT_FOUND)

        if current["payout_status"] == PayoutStatus.PROCESSING:
            logger.info(
                "Payout already in progress",
                extra={"payment_request_id": str(payment_request_id)},
            )
            return ClaimResult(ClaimOutcome.IN_PROGRESS)

        logger.info(
            "Payment request not eligible for payout",
            extra={
                "payment_request_id": str(payment_request_id),
                "status": current["status"],
                "payout_status": current["payout_status"],
            },
        )
        return ClaimResult(ClaimOutcome.NOT_ELIGIBLE)

    @classmethod
    def record_fee_split(cls, payment_request_id: uuid.UUID, split: FeeSplit) -> bool:
        """
        Persist the fee split if none has been stored yet.

        Returns:
            True if this call stored the split
        """
        updated = PaymentRequest.objects.filter(
            pk=payment_request_id,
            payout_status=PayoutStatus.PROCESSING,
            platform_fee_cents__isnull=True,
            payout_amount_cents__isnull=True,
        ).update(
            platform_fee_cents=split.platform_fee_cents,
            payout_amount_cents=split.payout_amount_cents,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        return updated == 1

    @classmethod
    def complete(
        cls,
        payment_request_id: uuid.UUID,
        recipient_result: PayoutResult,
        platform_result: PayoutResult | None = None,
    ) -> bool:
        """
        Record a successful run: PROCESSING -> COMPLETED.

        platform_result is None when the fee was zero and no platform
        leg was sent.
        """
        now = timezone.now()
        fields = {
            "payout_status": PayoutStatus.COMPLETED,
            "payout_error": None,
            "payout_completed_at": now,
            "recipient_payout_ref": recipient_result.provider_batch_ref,
            "recipient_payout_item_ref": recipient_result.provider_item_ref,
        }
        if platform_result is not None:
            fields["platform_payout_ref"] = platform_result.provider_batch_ref
            fields["platform_payout_item_ref"] = platform_result.provider_item_ref

        return cls._finish(payment_request_id, fields, now)

    @classmethod
    def fail(
        cls,
        payment_request_id: uuid.UUID,
        error: str,
        recipient_result: PayoutResult | None = None,
        platform_result: PayoutResult | None = None,
    ) -> bool:
        """
        Record a failed run: PROCESSING -> FAILED.

        References of any leg that did succeed are kept so that the next
        attempt and operators can see what was already transferred.
        """
        now = timezone.now()
        fields = {
            "payout_status": PayoutStatus.FAILED,
            "payout_error": error,
        }
        if recipient_result is not None and recipient_result.success:
            fields["recipient_payout_ref"] = recipient_result.provider_batch_ref
            fields["recipient_payout_item_ref"] = recipient_result.provider_item_ref
        if platform_result is not None and platform_result.success:
            fields["platform_payout_ref"] = platform_result.provider_batch_ref
            fields["platform_payout_item_ref"] = platform_result.provider_item_ref

        return cls._finish(payment_request_id, fields, now)

    @classmethod
    def _finish(cls, payment_request_id: uuid.UUID, fields: dict, now) -> bool:
        updated = PaymentRequest.objects.filter(
            pk=payment_request_id,
            payout_status=PayoutStatus.PROCESSING,
        ).update(
            version=F("version") + 1,
            updated_at=now,
            **fields,
        )
        if updated != 1:
            cls.get_logger().error(
                "Payout outcome not recorded, request no longer processing",
                extra={
                    "payment_request_id": str(payment_request_id),
                    "payout_status": fields["payout_status"],
                },
            )
        return updated == 1
