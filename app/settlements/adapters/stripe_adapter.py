"""
Stripe API adapter for the payment gateway side of settlement.

All Stripe calls go through this adapter to ensure consistent error
handling, timeouts, idempotency, and observability.

Features:
- Configurable timeout on every API call, no in-process retries
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Webhook signature verification against the shared secret

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_WEBHOOK_TOLERANCE_SECONDS: Signature timestamp tolerance (default: 300)

Usage:
    from settlements.adapters import StripeAdapter, CreatePaymentLinkParams

    link = StripeAdapter.create_payment_link(
        CreatePaymentLinkParams(
            amount_cents=1000,
            currency="usd",
            product_name="Payment to Alice",
            idempotency_key="payment_link:...",
        )
    )
    link.id, link.url
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import stripe
from django.conf import settings

from settlements.exceptions import (
    GatewayError,
    GatewayInvalidRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    WebhookSignatureError,
)

DEFAULT_LINK_DESCRIPTION = "P2P Payment via QR Code"


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreatePaymentLinkParams:
    """
    Parameters for creating a Stripe Payment Link.

    Attributes:
        amount_cents: Amount charged to the payer, in cents
        currency: ISO 4217 currency code
        product_name: Line item name shown at checkout
        idempotency_key: Unique key for idempotent creation
        description: Line item description (default: P2P Payment via QR Code)
        metadata: Key-value pairs attached to the link
    """

    amount_cents: int
    currency: str
    product_name: str
    idempotency_key: str
    description: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class PaymentLinkResult:
    """
    Result from Stripe Payment Link operations.

    Attributes:
        id: Payment Link ID (plink_xxx)
        url: Shareable checkout URL
        active: Whether the link still accepts payments
        raw_response: Full Stripe response (for debugging)
    """

    id: str
    url: str
    active: bool = True
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are class methods - no instance state is maintained.

    Usage:
        link = StripeAdapter.create_payment_link(params)
        StripeAdapter.deactivate_payment_link(link.id)
        event = StripeAdapter.verify_webhook_signature(payload, signature)
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key and timeout."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
        # Timeouts are failures, not retried in-process
        stripe.max_network_retries = 0

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Payment Links
    # =========================================================================

    @classmethod
    def create_payment_link(
        cls,
        params: CreatePaymentLinkParams,
    ) -> PaymentLinkResult:
        """
        Create a Stripe Payment Link for a single fixed-amount line item.

        Args:
            params: Parameters for creating the link

        Returns:
            PaymentLinkResult with the link id and shareable URL

        Raises:
            GatewayInvalidRequestError: Invalid parameters or credentials
            GatewayUnavailableError: Stripe service unavailable
            GatewayTimeoutError: Request timed out
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_payment_link",
            "amount_cents": params.amount_cents,
            "currency": params.currency,
            "idempotency_key": params.idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            link = stripe.PaymentLink.create(
                line_items=[
                    {
                        "price_data": {
                            "currency": params.currency,
                            "product_data": {
                                "name": params.product_name,
                                "description": params.description
                                or DEFAULT_LINK_DESCRIPTION,
                            },
                            "unit_amount": params.amount_cents,
                        },
                        "quantity": 1,
                    }
                ],
                metadata=params.metadata,
                idempotency_key=params.idempotency_key,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "payment_link_id": link.id,
                    "duration_ms": duration_ms,
                },
            )

            return PaymentLinkResult(
                id=link.id,
                url=link.url,
                active=bool(getattr(link, "active", True)),
                raw_response=dict(link),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

    @classmethod
    def deactivate_payment_link(cls, payment_link_id: str) -> PaymentLinkResult:
        """
        Deactivate a Payment Link so it no longer accepts payments.

        Raises:
            GatewayInvalidRequestError: Unknown link or invalid credentials
            GatewayUnavailableError: Stripe service unavailable
            GatewayTimeoutError: Request timed out
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "deactivate_payment_link",
            "payment_link_id": payment_link_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            link = stripe.PaymentLink.modify(payment_link_id, active=False)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={**log_context, "duration_ms": duration_ms},
            )

            return PaymentLinkResult(
                id=link.id,
                url=link.url,
                active=bool(getattr(link, "active", False)),
                raw_response=dict(link),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Webhooks
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw webhook payload bytes
            signature: Stripe-Signature header value

        Returns:
            Parsed event data dict

        Raises:
            WebhookSignatureError: Missing secret or invalid signature
            GatewayInvalidRequestError: Signature valid but body is not JSON
        """
        secret = settings.STRIPE_WEBHOOK_SECRET
        if not secret:
            raise WebhookSignatureError(
                "Webhook signing secret is not configured",
                gateway_code="webhook_secret_missing",
            )

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise WebhookSignatureError(
                "Webhook payload is not valid UTF-8",
                gateway_code="invalid_payload_encoding",
            ) from e

        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                secret,
                getattr(settings, "STRIPE_WEBHOOK_TOLERANCE_SECONDS", 300),
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(
                "Invalid webhook signature",
                gateway_code="signature_verification_failed",
                details={"error": str(e)},
            ) from e

        try:
            event = json.loads(body)
        except ValueError as e:
            raise GatewayInvalidRequestError(
                "Malformed webhook payload",
                gateway_code="invalid_json",
            ) from e

        if not isinstance(event, dict):
            raise GatewayInvalidRequestError(
                "Malformed webhook payload",
                gateway_code="invalid_event",
            )
        return event

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Raises:
            GatewayInvalidRequestError: Invalid request or credentials
            GatewayUnavailableError: Rate limited, connection or server error
            GatewayTimeoutError: Request timed out
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, GatewayError):
            raise error

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise GatewayInvalidRequestError(
                str(error.user_message or error),
                gateway_code=error.code,
            ) from error

        elif isinstance(error, (stripe.AuthenticationError, stripe.PermissionError)):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise GatewayInvalidRequestError(
                "Stripe authentication failed",
                gateway_code="authentication_error",
            ) from error

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise GatewayUnavailableError(
                "Stripe rate limit exceeded. Please retry.",
                gateway_code="rate_limit",
            ) from error

        elif isinstance(error, stripe.APIConnectionError):
            if "timed out" in str(error).lower() or "timeout" in str(error).lower():
                logger.error("Stripe request timed out", extra=log_context)
                raise GatewayTimeoutError(
                    "Stripe request timed out",
                    gateway_code="timeout",
                ) from error

            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayUnavailableError(
                "Could not connect to Stripe. Please retry.",
                gateway_code="api_connection_error",
            ) from error

        elif isinstance(error, stripe.StripeError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise GatewayUnavailableError(
                "Stripe service error. Please retry.",
                gateway_code="api_error",
            ) from error

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise GatewayUnavailableError(
            f"Unexpected Stripe error: {error}",
            gateway_code="unknown_error",
        ) from error
