"""
Payout orchestrator: settles a claimed payment request in two legs.

Leg 1 sends payout_amount_cents to the recipient's payout destination.
Leg 2 sends platform_fee_cents to the platform host destination and is
skipped when the fee is zero. Both legs are attempted once per run;
the run is COMPLETED only when every required leg succeeded.

The orchestrator never changes payout_status itself. It only runs on a
request already claimed by StatusReconciler and reports its outcome
through StatusReconciler.complete() or fail().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.services import BaseService

from settlements.adapters import (
    IdempotencyKeyGenerator,
    PayoutResult,
    PayPalAdapter,
    SendPayoutParams,
)
from settlements.config import get_platform_config
from settlements.exceptions import InvalidStateTransitionError
from settlements.fees import FeeSplit, calculate_platform_fee
from settlements.models import PaymentRequest, RecipientPayoutProfile
from settlements.services.reconciler import StatusReconciler
from settlements.state_machines import PayoutLeg, PayoutStatus

if TYPE_CHECKING:
    from settlements.config import PlatformConfig


MISSING_RECIPIENT_DESTINATION = "Recipient has no payout destination configured"
MISSING_HOST_DESTINATION = "Platform host payout destination is not configured"


@dataclass
class PayoutOutcome:
    """
    Result of one orchestrator run.

    Attributes:
        payment_request: Row as stored after the outcome was recorded
        success: Whether all required legs succeeded
        error: Combined failure reasons when success is False
        split: Fee split the legs were sent with (None on config failure)
        recipient_result: Leg 1 result (None if never attempted)
        platform_result: Leg 2 result (None if skipped or never attempted)
    """

    payment_request: PaymentRequest
    success: bool
    error: str | None = None
    split: FeeSplit | None = None
    recipient_result: PayoutResult | None = None
    platform_result: PayoutResult | None = None


class PayoutOrchestrator(BaseService):
    """
    Runs both payout legs for a claimed payment request.

    Nothing raises out of execute() once the request is claimed; every
    failure ends the run as FAILED with the reason stored in payout_error.
    """

    # Payout adapter - can be injected for testing
    _payout_adapter: type | None = None

    @classmethod
    def get_payout_adapter(cls) -> type:
        """Get the payout provider adapter class."""
        return cls._payout_adapter or PayPalAdapter

    @classmethod
    def set_payout_adapter(cls, adapter: type | None) -> None:
        """Set the payout provider adapter class (for testing)."""
        cls._payout_adapter = adapter

    @classmethod
    def execute(
        cls,
        payment_request: PaymentRequest,
        config: PlatformConfig | None = None,
    ) -> PayoutOutcome:
        """
        Send both legs for a request in PROCESSING and record the outcome.

        Any unexpected error after the claim still ends the run as FAILED,
        so the request stays retriable.

        Args:
            payment_request: Request returned by a successful claim
            config: Platform configuration (defaults to the process config)

        Returns:
            PayoutOutcome describing what was sent

        Raises:
            InvalidStateTransitionError: If the request was not claimed
        """
        config = config or get_platform_config()
        request_id = payment_request.id

        if payment_request.payout_status != PayoutStatus.PROCESSING:
            raise InvalidStateTransitionError(
                "Payout can only run on a claimed payment request",
                details={
                    "payment_request_id": str(request_id),
                    "payout_status": payment_request.payout_status,
                },
            )

        legs: dict[str, PayoutResult] = {}
        try:
            return cls._run(payment_request, config, legs)
        except Exception as e:
            error = f"Unexpected payout error: {e}"
            cls.get_logger().error(
                "Unexpected payout error",
                extra={"payment_request_id": str(request_id), "error": str(e)},
                exc_info=True,
            )
            recipient_result = legs.get(PayoutLeg.RECIPIENT.value)
            platform_result = legs.get(PayoutLeg.PLATFORM.value)
            StatusReconciler.fail(
                request_id,
                error,
                recipient_result=recipient_result,
                platform_result=platform_result,
            )
            return PayoutOutcome(
                payment_request=PaymentRequest.objects.get(pk=request_id),
                success=False,
                error=error,
                recipient_result=recipient_result,
                platform_result=platform_result,
            )

    @classmethod
    def _run(
        cls,
        payment_request: PaymentRequest,
        config: PlatformConfig,
        legs: dict[str, PayoutResult],
    ) -> PayoutOutcome:
        """Send the legs; each leg result is put in legs as soon as it is known."""
        logger = cls.get_logger()
        request_id = payment_request.id

        profile = RecipientPayoutProfile.objects.filter(
            user_id=payment_request.recipient_id
        ).first()
        if profile is None or not profile.has_destination:
            return cls._record_failure(payment_request, MISSING_RECIPIENT_DESTINATION)

        split = cls._resolve_split(payment_request, config)

        if split.platform_fee_cents > 0 and not config.host_payout_destination:
            return cls._record_failure(
                payment_request, MISSING_HOST_DESTINATION, split=split
            )

        adapter = cls.get_payout_adapter()
        subject = payment_request.note_subject

        logger.info(
            "Starting payout",
            extra={
                "payment_request_id": str(request_id),
                "payout_amount_cents": split.payout_amount_cents,
                "platform_fee_cents": split.platform_fee_cents,
                "attempt": payment_request.payout_attempts,
            },
        )

        if payment_request.recipient_payout_ref:
            # Sent by an earlier attempt whose platform leg failed
            recipient_result = PayoutResult(
                success=True,
                provider_batch_ref=payment_request.recipient_payout_ref,
                provider_item_ref=payment_request.recipient_payout_item_ref,
            )
        else:
            recipient_result = adapter.send_payout(
                SendPayoutParams(
                    destination=profile.payout_destination,
                    amount_cents=split.payout_amount_cents,
                    currency=payment_request.currency,
                    note=f"Payment for: {subject}",
                    idempotency_key=IdempotencyKeyGenerator.for_payout_leg(
                        request_id, PayoutLeg.RECIPIENT
                    ),
                    sender_item_id=f"{PayoutLeg.RECIPIENT.value}-{request_id}",
                )
            )
        legs[PayoutLeg.RECIPIENT.value] = recipient_result

        platform_result = None
        if split.platform_fee_cents > 0:
            if payment_request.platform_payout_ref:
                platform_result = PayoutResult(
                    success=True,
                    provider_batch_ref=payment_request.platform_payout_ref,
                    provider_item_ref=payment_request.platform_payout_item_ref,
                )
            else:
                platform_result = adapter.send_payout(
                    SendPayoutParams(
                        destination=config.host_payout_destination,
                        amount_cents=split.platform_fee_cents,
                        currency=payment_request.currency,
                        note=f"Platform fee for: {subject}",
                        idempotency_key=IdempotencyKeyGenerator.for_payout_leg(
                            request_id, PayoutLeg.PLATFORM
                        ),
                        sender_item_id=f"{PayoutLeg.PLATFORM.value}-{request_id}",
                    )
                )
            legs[PayoutLeg.PLATFORM.value] = platform_result

        errors = []
        if not recipient_result.success:
            errors.append(f"Recipient payout failed: {recipient_result.error}")
        if platform_result is not None and not platform_result.success:
            errors.append(f"Platform payout failed: {platform_result.error}")

        if errors:
            error = " | ".join(errors)
            StatusReconciler.fail(
                request_id,
                error,
                recipient_result=recipient_result,
                platform_result=platform_result,
            )
            logger.error(
                "Payout failed",
                extra={
                    "payment_request_id": str(request_id),
                    "recipient_leg_ok": recipient_result.success,
                    "platform_leg_ok": (
                        platform_result.success if platform_result else None
                    ),
                    "error": error,
                },
            )
            return PayoutOutcome(
                payment_request=PaymentRequest.objects.get(pk=request_id),
                success=False,
                error=error,
                split=split,
                recipient_result=recipient_result,
                platform_result=platform_result,
            )

        StatusReconciler.complete(request_id, recipient_result, platform_result)
        logger.info(
            "Payout completed",
            extra={
                "payment_request_id": str(request_id),
                "recipient_payout_ref": recipient_result.provider_batch_ref,
                "platform_payout_ref": (
                    platform_result.provider_batch_ref if platform_result else None
                ),
            },
        )
        return PayoutOutcome(
            payment_request=PaymentRequest.objects.get(pk=request_id),
            success=True,
            split=split,
            recipient_result=recipient_result,
            platform_result=platform_result,
        )

    @classmethod
    def _resolve_split(
        cls,
        payment_request: PaymentRequest,
        config: PlatformConfig,
    ) -> FeeSplit:
        """Use the stored split if there is one, else compute and store it."""
        if payment_request.has_fee_split:
            return FeeSplit(
                platform_fee_cents=payment_request.platform_fee_cents,
                payout_amount_cents=payment_request.payout_amount_cents,
                fee_fraction=config.fee_fraction,
            )

        split = calculate_platform_fee(payment_request.amount_cents, config)
        StatusReconciler.record_fee_split(payment_request.id, split)
        return split

    @classmethod
    def _record_failure(
        cls,
        payment_request: PaymentRequest,
        error: str,
        split: FeeSplit | None = None,
    ) -> PayoutOutcome:
        """Fail the run before any provider call."""
        cls.get_logger().error(
            "Payout configuration error",
            extra={
                "payment_request_id": str(payment_request.id),
                "error": error,
            },
        )
        StatusReconciler.fail(payment_request.id, error)
        return PayoutOutcome(
            payment_request=PaymentRequest.objects.get(pk=payment_request.id),
            success=False,
            error=error,
            split=split,
        )
