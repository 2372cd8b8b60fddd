"""
Settlement-specific exceptions.

Exception Hierarchy:
    SettlementError (base for the settlement domain)
    ├── SettlementValidationError - Invalid input (non-positive amount, bad email)
    └── PayoutConfigurationError - Missing payout destination or credentials

    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

    GatewayError (base for payment gateway failures, inherits ExternalServiceError)
    ├── GatewayInvalidRequestError - Rejected request or bad credentials (permanent)
    ├── GatewayUnavailableError - Network / 5xx / rate limit (transient)
    ├── GatewayTimeoutError - No response within timeout (transient)
    └── WebhookSignatureError - Webhook signature verification failed

    PayoutProviderError (base for payout provider failures, inherits ExternalServiceError)
    ├── PayoutProviderRejectedError - Provider refused the payout (permanent)
    ├── PayoutProviderUnavailableError - Network / 5xx (transient)
    └── PayoutProviderTimeoutError - No response within timeout (transient)

Usage:
    from settlements.exceptions import SettlementValidationError

    if total_amount_cents <= 0:
        raise SettlementValidationError(
            "Amount must be positive",
            details={"total_amount_cents": total_amount_cents},
        )

Note:
    Provider errors are never propagated to the webhook sender. The
    orchestrator records them on the payment request as payout_error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Settlement Domain Exceptions
# =============================================================================


class SettlementError(BaseApplicationError):
    """Base exception for all settlement operations."""

    default_error_code: str = "SETTLEMENT_ERROR"


class SettlementValidationError(SettlementError):
    """
    Raised when settlement input is invalid.

    Raised before any state is mutated.
    """

    default_error_code: str = "VALIDATION_ERROR"


class PayoutConfigurationError(SettlementError):
    """
    Raised when a payout cannot be attempted because of configuration.

    Use for:
    - Recipient has no payout destination
    - Platform host destination is not configured
    - Payout provider credentials are missing

    The orchestrator checks these before any provider call is made.
    """

    default_error_code: str = "PAYOUT_CONFIGURATION_ERROR"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when an FSM transition is not allowed from the current state.

    Example:
        raise InvalidStateTransitionError(
            "Cannot cancel payment request in 'paid' status",
            details={"current_status": "paid", "action": "cancel"},
        )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Payment Gateway Exceptions
# =============================================================================


class GatewayError(ExternalServiceError):
    """
    Base exception for payment gateway (Stripe) errors.

    Attributes:
        gateway_code: The gateway's own error code, when available
        is_retryable: Whether the same call may succeed later
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway_code:
            details["gateway_code"] = gateway_code
        super().__init__(message, error_code=error_code, details=details)
        self.gateway_code = gateway_code


class GatewayInvalidRequestError(GatewayError):
    """
    The gateway rejected the request.

    Covers invalid parameters, unknown resources and authentication
    failures. Permanent: retrying with the same input will not help.
    """

    default_error_code: str = "GATEWAY_INVALID_REQUEST"
    is_retryable: bool = False


class GatewayUnavailableError(GatewayError):
    """Network errors, gateway 5xx responses and rate limiting."""

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayTimeoutError(GatewayError):
    """
    Gateway call exceeded STRIPE_API_TIMEOUT_SECONDS.

    The operation may have succeeded on the gateway's side.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"
    is_retryable: bool = True


class WebhookSignatureError(GatewayError):
    """
    Webhook signature verification failed.

    The payload must be discarded without any state change.
    """

    default_error_code: str = "INVALID_WEBHOOK_SIGNATURE"
    is_retryable: bool = False


# =============================================================================
# Payout Provider Exceptions
# =============================================================================


class PayoutProviderError(ExternalServiceError):
    """
    Base exception for payout provider (PayPal) errors.

    Attributes:
        status_code: HTTP status returned by the provider, if any
        debug_id: Provider correlation id for support tickets
    """

    default_error_code: str = "PAYOUT_PROVIDER_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        debug_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        if debug_id:
            details["debug_id"] = debug_id
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code
        self.debug_id = debug_id


class PayoutProviderRejectedError(PayoutProviderError):
    """The provider refused the payout (validation, limits, receiver)."""

    default_error_code: str = "PAYOUT_REJECTED"
    is_retryable: bool = False


class PayoutProviderUnavailableError(PayoutProviderError):
    """Network errors and provider 5xx responses."""

    default_error_code: str = "PAYOUT_PROVIDER_UNAVAILABLE"
    is_retryable: bool = True


class PayoutProviderTimeoutError(PayoutProviderError):
    """
    Provider call exceeded PAYPAL_API_TIMEOUT_SECONDS.

    The payout may have been created upstream. Retrying is safe only
    because every leg reuses its deterministic sender_batch_id.
    """

    default_error_code: str = "PAYOUT_PROVIDER_TIMEOUT"
    is_retryable: bool = True
