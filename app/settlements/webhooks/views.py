"""
Webhook endpoint view for Stripe.

The view:
1. Verifies the webhook signature
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Processes the event synchronously
4. Returns 200 once the event is recorded as processed

Payout hand-off happens after the processing transaction commits, so
the response does not depend on the payout outcome.

Usage:
    # In urls.py
    from settlements.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.db import DatabaseError
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from settlements.adapters import StripeAdapter
from settlements.exceptions import GatewayInvalidRequestError, WebhookSignatureError
from settlements.models import WebhookEvent
from settlements.state_machines import WebhookEventStatus
from settlements.webhooks.handlers import process_webhook_event


logger = logging.getLogger(__name__)
security_logger = logging.getLogger("settlements.security")


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and process Stripe webhook events.

    Returns:
        HttpResponse with status:
        - 200: Event processed, acknowledged, or a duplicate
        - 400: Missing/invalid signature or malformed payload
        - 500: Datastore failure (the gateway will redeliver)

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    payload = request.body
    signature = request.headers.get("Stripe-Signature", "")

    if not signature:
        security_logger.warning(
            "Webhook received without Stripe-Signature header",
            extra={"remote_addr": request.META.get("REMOTE_ADDR")},
        )
        return HttpResponse("Missing signature", status=400)

    # Step 1: Verify signature
    try:
        event_data = StripeAdapter.verify_webhook_signature(payload, signature)
    except WebhookSignatureError as e:
        security_logger.warning(
            "Webhook signature verification failed",
            extra={
                "error": e.message,
                "remote_addr": request.META.get("REMOTE_ADDR"),
            },
        )
        return HttpResponse("Invalid signature", status=400)
    except GatewayInvalidRequestError as e:
        logger.warning(
            "Webhook payload could not be parsed",
            extra={"error": e.message},
        )
        return HttpResponse("Invalid payload", status=400)

    gateway_event_id = event_data.get("id")
    event_type = event_data.get("type")

    if not gateway_event_id or not event_type:
        logger.warning("Webhook missing required fields")
        return HttpResponse("Invalid event", status=400)

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={
            "gateway_event_id": gateway_event_id,
            "event_type": event_type,
        },
    )

    try:
        # Step 2: Create/get WebhookEvent (idempotent)
        webhook_event, created = WebhookEvent.objects.get_or_create(
            gateway_event_id=gateway_event_id,
            defaults={
                "event_type": event_type,
                "payload": event_data,
                "status": WebhookEventStatus.PENDING,
            },
        )

        # Step 3: If already processed, return success
        if not created and webhook_event.is_processed:
            logger.info(
                "Webhook already processed, returning success",
                extra={"gateway_event_id": gateway_event_id},
            )
            return HttpResponse("Already processed", status=200)

        # Step 4: Process
        result = process_webhook_event(webhook_event)
    except DatabaseError:
        logger.error(
            "Datastore error while processing webhook",
            extra={"gateway_event_id": gateway_event_id, "event_type": event_type},
            exc_info=True,
        )
        _record_failure(gateway_event_id, "Datastore error while processing event")
        return HttpResponse("Processing error", status=500)

    if not result.success:
        logger.warning(
            "Webhook rejected by handler",
            extra={
                "gateway_event_id": gateway_event_id,
                "error_code": result.error_code,
            },
        )
        return HttpResponse("Invalid event", status=400)

    return HttpResponse("Accepted", status=200)


def _record_failure(gateway_event_id: str, error_message: str) -> None:
    """Best-effort FAILED mark after a datastore error."""
    try:
        WebhookEvent.objects.filter(gateway_event_id=gateway_event_id).exclude(
            status=WebhookEventStatus.PROCESSED
        ).update(status=WebhookEventStatus.FAILED, error_message=error_message)
    except DatabaseError:
        logger.error(
            "Could not mark webhook event failed",
            extra={"gateway_event_id": gateway_event_id},
            exc_info=True,
        )
