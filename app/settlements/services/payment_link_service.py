"""
Payment link issuer.

Creates the gateway checkout (a Stripe Payment Link) and the matching
local PaymentRequest, and cancels pending requests on the recipient's
behalf.

Usage:
    from settlements.services import PaymentLinkService

    result = PaymentLinkService.create_payment_request(
        recipient=request.user,
        amount_cents=1000,
        description="Lunch",
    )
    if result.success:
        result.data.checkout_url
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult

from settlements.adapters import (
    CreatePaymentLinkParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from settlements.config import get_platform_config
from settlements.exceptions import GatewayError
from settlements.models import PaymentRequest, RecipientPayoutProfile
from settlements.state_machines import PaymentRequestStatus

if TYPE_CHECKING:
    from settlements.config import PlatformConfig


class PaymentLinkService(BaseService):
    """
    Service for issuing and cancelling payment requests.

    Creating a request is a gateway call followed by a local insert.
    The request id is generated up front so it can be attached to the
    link's metadata and used for the link's idempotency key.
    """

    # Stripe adapter - can be injected for testing
    _stripe_adapter: type | None = None

    @classmethod
    def get_stripe_adapter(cls) -> type:
        """Get the Stripe adapter class."""
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def set_stripe_adapter(cls, adapter: type | None) -> None:
        """Set the Stripe adapter class (for testing)."""
        cls._stripe_adapter = adapter

    @classmethod
    def create_payment_request(
        cls,
        recipient,
        amount_cents: int,
        description: str = "",
        config: PlatformConfig | None = None,
    ) -> ServiceResult[PaymentRequest]:
        """
        Create a payment link and its PaymentRequest.

        Args:
            recipient: User who will receive the funds
            amount_cents: Amount to charge the payer, in cents
            description: Optional text shown at checkout and in payout notes
            config: Platform configuration (defaults to the process config)

        Returns:
            ServiceResult with the created PaymentRequest. Failure codes:
            INVALID_AMOUNT, PAYOUT_DESTINATION_REQUIRED, or the gateway
            error code when link creation failed.
        """
        config = config or get_platform_config()
        logger = cls.get_logger()

        if (
            isinstance(amount_cents, bool)
            or not isinstance(amount_cents, int)
            or amount_cents <= 0
        ):
            return ServiceResult.failure(
                "Amount must be a positive number of cents",
                error_code="INVALID_AMOUNT",
            )

        profile = RecipientPayoutProfile.objects.filter(user=recipient).first()
        if profile is None or not profile.has_destination:
            return ServiceResult.failure(
                "Set up a payout destination before requesting payments",
                error_code="PAYOUT_DESTINATION_REQUIRED",
            )

        payment_request_id = uuid.uuid4()
        display_name = recipient.get_full_name() or recipient.get_username()
        params = CreatePaymentLinkParams(
            amount_cents=amount_cents,
            currency=config.currency,
            product_name=f"Payment to {display_name}",
            description=description,
            idempotency_key=IdempotencyKeyGenerator.generate(
                "payment_link", payment_request_id
            ),
            metadata={
                "payment_request_id": str(payment_request_id),
                "recipient_id": str(recipient.pk),
                "payout_destination": profile.payout_destination,
            },
        )

        try:
            link = cls.get_stripe_adapter().create_payment_link(params)
        except GatewayError as e:
            logger.error(
                "Payment link creation failed",
                extra={
                    "payment_request_id": str(payment_request_id),
                    "recipient_id": str(recipient.pk),
                    "error_code": e.error_code,
                },
            )
            return ServiceResult.from_exception(e)

        payment_request = PaymentRequest.objects.create(
            id=payment_request_id,
            recipient=recipient,
            amount_cents=amount_cents,
            currency=config.currency,
            description=description,
            checkout_reference=link.id,
            checkout_url=link.url,
        )

        logger.info(
            "Payment request created",
            extra={
                "payment_request_id": str(payment_request.id),
                "recipient_id": str(recipient.pk),
                "amount_cents": amount_cents,
                "checkout_reference": link.id,
            },
        )
        return ServiceResult.success(payment_request)

    @classmethod
    def cancel_payment_request(
        cls,
        payment_request_id: uuid.UUID,
        actor,
    ) -> ServiceResult[PaymentRequest]:
        """
        Cancel a pending payment request owned by actor.

        The gateway link is deactivated first so the payer can no longer
        pay; the local transition is then applied under a row lock and
        re-checked, since a checkout may have completed in between.

        Returns:
            ServiceResult with the cancelled PaymentRequest. Failure codes:
            PAYMENT_REQUEST_NOT_FOUND, INVALID_STATE_TRANSITION, or the
            gateway error code when deactivation failed.
        """
        logger = cls.get_logger()
        payment_request = PaymentRequest.objects.filter(
            pk=payment_request_id, recipient=actor
        ).first()

        if payment_request is None:
            return ServiceResult.failure(
                "Payment request not found",
                error_code="PAYMENT_REQUEST_NOT_FOUND",
            )

        if not payment_request.is_pending:
            return ServiceResult.failure(
                f"Cannot cancel payment request in '{payment_request.status}' status",
                error_code="INVALID_STATE_TRANSITION",
            )

        try:
            cls.get_stripe_adapter().deactivate_payment_link(
                payment_request.checkout_reference
            )
        except GatewayError as e:
            logger.error(
                "Payment link deactivation failed",
                extra={
                    "payment_request_id": str(payment_request_id),
                    "error_code": e.error_code,
                },
            )
            return ServiceResult.from_exception(e)

        with cls.atomic():
            locked = PaymentRequest.objects.select_for_update().get(
                pk=payment_request_id
            )
            if locked.status != PaymentRequestStatus.PENDING:
                logger.warning(
                    "Payment request left pending before cancellation",
                    extra={
                        "payment_request_id": str(payment_request_id),
                        "status": locked.status,
                    },
                )
                return ServiceResult.failure(
                    f"Cannot cancel payment request in '{locked.status}' status",
                    error_code="INVALID_STATE_TRANSITION",
                )
            locked.cancel()
            locked.save()

        logger.info(
            "Payment request cancelled",
            extra={"payment_request_id": str(payment_request_id)},
        )
        return ServiceResult.success(locked)
