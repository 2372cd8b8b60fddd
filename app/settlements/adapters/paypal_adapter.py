"""
PayPal Payouts adapter for the payout provider side of settlement.

Each payout leg is sent as a single-item PayPal payout batch. The batch's
sender_batch_id is the leg's deterministic idempotency key, so re-sending
a leg after a lost response cannot create a second transfer: PayPal
rejects the duplicate batch id and the adapter reports it as success.

Configuration (via settings):
- PAYPAL_CLIENT_ID / PAYPAL_CLIENT_SECRET: REST app credentials
- PAYPAL_MODE: "sandbox" or "live" (selects the API base URL)
- PAYPAL_API_TIMEOUT_SECONDS: Timeout for every HTTP call (default: 10)

Usage:
    from settlements.adapters import PayPalAdapter, SendPayoutParams

    result = PayPalAdapter.send_payout(
        SendPayoutParams(
            destination="alice@example.com",
            amount_cents=800,
            currency="usd",
            note="Payment for: Lunch",
            idempotency_key="payout_recipient:...",
            sender_item_id="recipient-...",
        )
    )
    if result.success:
        result.provider_batch_ref, result.provider_item_ref
    else:
        result.error
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import requests
from django.conf import settings

from settlements.config import is_valid_payout_email
from settlements.exceptions import (
    PayoutConfigurationError,
    PayoutProviderError,
    PayoutProviderRejectedError,
    PayoutProviderTimeoutError,
    PayoutProviderUnavailableError,
)

SANDBOX_BASE_URL = "https://api-m.sandbox.paypal.com"
LIVE_BASE_URL = "https://api-m.paypal.com"

DEFAULT_EMAIL_SUBJECT = "You have a payment!"
DEFAULT_NOTE = "Payment via QR Code"


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class SendPayoutParams:
    """
    Parameters for a single payout leg.

    Attributes:
        destination: Receiver email
        amount_cents: Amount to transfer, in cents
        currency: ISO 4217 currency code
        note: Note shown to the receiver
        idempotency_key: Deterministic key, used as sender_batch_id
        sender_item_id: Caller's id for the single batch item
    """

    destination: str
    amount_cents: int
    currency: str
    note: str
    idempotency_key: str
    sender_item_id: str = ""


@dataclass
class PayoutResult:
    """
    Outcome of a payout leg.

    Attributes:
        success: Whether the provider accepted the payout
        provider_batch_ref: payout_batch_id (or sender_batch_id for a
            duplicate of an earlier accepted batch)
        provider_item_ref: payout_item_id of the single item
        error: Human-readable failure reason
        error_code: Machine-readable failure code
        duplicate: True when the provider reported the batch as already sent
        raw_response: Provider response body (for debugging)
    """

    success: bool
    provider_batch_ref: str | None = None
    provider_item_ref: str | None = None
    error: str | None = None
    error_code: str | None = None
    duplicate: bool = False
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failed(cls, error: str, error_code: str | None = None) -> PayoutResult:
        return cls(success=False, error=error, error_code=error_code)


@dataclass
class PayoutBatchStatus:
    """Provider-side status of a payout batch."""

    batch_id: str
    batch_status: str
    items: list[dict[str, Any]] = field(default_factory=list)


def format_amount(amount_cents: int) -> str:
    """Format cents as the two-decimal major-unit string PayPal expects."""
    return f"{amount_cents // 100}.{amount_cents % 100:02d}"


# =============================================================================
# PayPal Adapter
# =============================================================================


class PayPalAdapter:
    """
    Adapter for PayPal Payouts REST API operations.

    All methods are class methods - no instance state is maintained.
    A fresh OAuth token is requested per payout call.
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @staticmethod
    def _base_url() -> str:
        mode = getattr(settings, "PAYPAL_MODE", "sandbox")
        return LIVE_BASE_URL if mode == "live" else SANDBOX_BASE_URL

    @staticmethod
    def _timeout() -> int:
        return getattr(settings, "PAYPAL_API_TIMEOUT_SECONDS", 10)

    @classmethod
    def _get_access_token(cls) -> str:
        """
        Obtain an OAuth2 access token with the client-credentials grant.

        Raises:
            PayoutConfigurationError: Credentials are not configured
            PayoutProviderError: Token request failed
        """
        client_id = settings.PAYPAL_CLIENT_ID
        client_secret = settings.PAYPAL_CLIENT_SECRET
        if not client_id or not client_secret:
            raise PayoutConfigurationError(
                "PayPal credentials are not configured",
                error_code="PAYPAL_CREDENTIALS_MISSING",
            )

        response = cls._request(
            "post",
            f"{cls._base_url()}/v1/oauth2/token",
            auth=(client_id, client_secret),
            data={"grant_type": "client_credentials"},
            headers={
                "Accept": "application/json",
                "Accept-Language": "en_US",
            },
        )

        if response.status_code != 200:
            raise cls._error_from_response(
                response,
                prefix="Failed to get PayPal access token",
            )

        token = cls._json(response).get("access_token")
        if not token:
            raise PayoutProviderRejectedError(
                "PayPal token response did not include an access token",
                status_code=response.status_code,
            )
        return token

    # =========================================================================
    # Payouts
    # =========================================================================

    @classmethod
    def send_payout(cls, params: SendPayoutParams) -> PayoutResult:
        """
        Send one payout leg as a single-item batch.

        Never raises for provider or transport failures: every failure is
        returned as PayoutResult(success=False, error=...).

        Args:
            params: Payout leg parameters

        Returns:
            PayoutResult describing the outcome
        """
        logger = cls.get_logger()
        log_context = {
            "operation": "send_payout",
            "amount_cents": params.amount_cents,
            "currency": params.currency,
            "idempotency_key": params.idempotency_key,
        }

        if params.amount_cents <= 0:
            return PayoutResult.failed(
                f"Invalid amount: {params.amount_cents} cents",
                error_code="INVALID_AMOUNT",
            )

        if not is_valid_payout_email(params.destination):
            return PayoutResult.failed(
                f"Invalid email format: {params.destination}",
                error_code="INVALID_DESTINATION",
            )

        start_time = time.time()
        logger.info("Starting PayPal operation", extra=log_context)

        try:
            result = cls._create_batch(params)
        except (PayoutProviderError, PayoutConfigurationError) as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "PayPal payout failed",
                extra={
                    **log_context,
                    "error_code": e.error_code,
                    "error": e.message,
                    "duration_ms": duration_ms,
                },
            )
            return PayoutResult.failed(e.message, error_code=e.error_code)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "PayPal operation completed",
            extra={
                **log_context,
                "payout_batch_id": result.provider_batch_ref,
                "duplicate": result.duplicate,
                "duration_ms": duration_ms,
            },
        )
        return result

    @classmethod
    def _create_batch(cls, params: SendPayoutParams) -> PayoutResult:
        access_token = cls._get_access_token()
        note = params.note or DEFAULT_NOTE

        body = {
            "sender_batch_header": {
                "sender_batch_id": params.idempotency_key,
                "email_subject": DEFAULT_EMAIL_SUBJECT,
                "email_message": note,
            },
            "items": [
                {
                    "recipient_type": "EMAIL",
                    "amount": {
                        "value": format_amount(params.amount_cents),
                        "currency": params.currency.upper(),
                    },
                    "receiver": params.destination,
                    "note": note,
                    "sender_item_id": params.sender_item_id or params.idempotency_key,
                }
            ],
        }

        response = cls._request(
            "post",
            f"{cls._base_url()}/v1/payments/payouts",
            json=body,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Authorization": f"Bearer {access_token}",
                "PayPal-Request-Id": params.idempotency_key,
            },
        )
        data = cls._json(response)

        if response.status_code == 201:
            items = data.get("items") or [{}]
            return PayoutResult(
                success=True,
                provider_batch_ref=(data.get("batch_header") or {}).get(
                    "payout_batch_id"
                ),
                provider_item_ref=items[0].get("payout_item_id"),
                raw_response=data,
            )

        if cls._is_duplicate_batch(response.status_code, data):
            cls.get_logger().warning(
                "PayPal reported duplicate sender_batch_id, treating as already sent",
                extra={"idempotency_key": params.idempotency_key},
            )
            return PayoutResult(
                success=True,
                provider_batch_ref=params.idempotency_key,
                duplicate=True,
                raw_response=data,
            )

        raise cls._error_from_response(response, data=data)

    @classmethod
    def get_payout_batch_status(cls, batch_id: str) -> PayoutBatchStatus:
        """
        Read the provider-side status of a payout batch.

        Raises:
            PayoutConfigurationError: Credentials are not configured
            PayoutProviderError: Lookup failed
        """
        access_token = cls._get_access_token()
        response = cls._request(
            "get",
            f"{cls._base_url()}/v1/payments/payouts/{batch_id}",
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Authorization": f"Bearer {access_token}",
            },
        )
        data = cls._json(response)

        if response.status_code != 200:
            raise cls._error_from_response(response, data=data)

        return PayoutBatchStatus(
            batch_id=batch_id,
            batch_status=(data.get("batch_header") or {}).get("batch_status", ""),
            items=data.get("items") or [],
        )

    # =========================================================================
    # HTTP Helpers
    # =========================================================================

    @classmethod
    def _request(cls, method: str, url: str, **kwargs) -> requests.Response:
        """
        Perform an HTTP call bounded by PAYPAL_API_TIMEOUT_SECONDS.

        Raises:
            PayoutProviderTimeoutError: No response within the timeout
            PayoutProviderUnavailableError: Connection or transport failure
        """
        try:
            return requests.request(method, url, timeout=cls._timeout(), **kwargs)
        except requests.Timeout as e:
            raise PayoutProviderTimeoutError(
                f"PayPal request timed out after {cls._timeout()}s",
            ) from e
        except requests.RequestException as e:
            raise PayoutProviderUnavailableError(
                f"Could not connect to PayPal: {e}",
            ) from e

    @staticmethod
    def _json(response: requests.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _is_duplicate_batch(status_code: int, data: dict[str, Any]) -> bool:
        if status_code not in (400, 409, 422):
            return False
        texts = [str(data.get("name", "")), str(data.get("message", ""))]
        for detail in data.get("details") or []:
            if isinstance(detail, dict):
                texts.append(str(detail.get("field", "")))
                texts.append(str(detail.get("issue", "")))
                texts.append(str(detail.get("description", "")))
        combined = " ".join(texts).lower()
        if "duplicate_request_id" in combined:
            return True
        return "sender_batch_id" in combined and "already" in combined

    @classmethod
    def _error_from_response(
        cls,
        response: requests.Response,
        data: dict[str, Any] | None = None,
        prefix: str | None = None,
    ) -> PayoutProviderError:
        """Build a typed error whose message carries status, details and debug id."""
        if data is None:
            data = cls._json(response)

        message = prefix or f"PayPal API returned status {response.status_code}"
        if prefix:
            message += f": {response.status_code}"
        if data.get("message"):
            message += f": {data['message']}"
        if data.get("details"):
            message += f" | Details: {json.dumps(data['details'])}"
        debug_id = data.get("debug_id")
        if debug_id:
            message += f" | Debug ID: {debug_id}"

        error_class = (
            PayoutProviderUnavailableError
            if response.status_code >= 500
            else PayoutProviderRejectedError
        )
        return error_class(
            message,
            status_code=response.status_code,
            debug_id=debug_id,
        )
