"""
Webhook event handlers for Stripe events.

Handlers are registered per event type and receive the stored
WebhookEvent. Each handler runs inside the transaction opened by
process_webhook_event(), so a state change and the event's PROCESSED
mark commit together.

Handled events:
- checkout.session.completed: PENDING -> PAID, then payout hand-off
- payment_link.updated: PENDING -> EXPIRED when the link was deactivated

Usage:
    from settlements.webhooks.handlers import process_webhook_event

    result = process_webhook_event(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Callable

from django.db import transaction

from core.services import ServiceResult

from settlements.models import PaymentRequest, WebhookEvent
from settlements.services import SettlementService
from settlements.state_machines import PaymentRequestStatus


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("checkout.session.completed")
        def handle_checkout_completed(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to its handler.

    Unknown event types are acknowledged with a success result so the
    gateway stops redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"gateway_event_id": webhook_event.gateway_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"gateway_event_id": webhook_event.gateway_event_id},
    )
    return handler(webhook_event)


def process_webhook_event(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Run the handler for a stored event and record the result on it.

    The event row is locked for the duration, so two deliveries of the
    same event are handled one after the other and the second one sees
    PROCESSED.

    Returns:
        ServiceResult from the handler (success for already processed
        events)

    Raises:
        DatabaseError: Propagated; nothing done inside is committed
    """
    with transaction.atomic():
        event = WebhookEvent.objects.select_for_update().get(pk=webhook_event.pk)

        if event.is_processed:
            logger.info(
                "WebhookEvent already processed, skipping",
                extra={"gateway_event_id": event.gateway_event_id},
            )
            return ServiceResult.success(None)

        event.mark_processing()
        result = dispatch_webhook(event)

        if result.success:
            event.mark_processed()
        else:
            event.mark_failed(result.error or "Handler failed")
        event.save()

    logger.info(
        f"Webhook {event.event_type} {event.status}",
        extra={
            "gateway_event_id": event.gateway_event_id,
            "webhook_event_id": str(event.id),
            "error_code": result.error_code,
        },
    )
    return result


# =============================================================================
# Checkout Handlers
# =============================================================================


@register_handler("checkout.session.completed")
def handle_checkout_session_completed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Mark the matching payment request PAID and hand it to settlement.

    The request is looked up by payment link id first and by checkout
    URL second. Events that match nothing are acknowledged and logged,
    since redelivery cannot make them match. Requests that already left
    PENDING are not touched and no payout is started.
    """
    session = webhook_event.get_object()
    if not session:
        return ServiceResult.failure(
            "Event payload has no data.object",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    link_id = session.get("payment_link")
    checkout_url = session.get("url")
    session_id = session.get("id")
    customer_details = session.get("customer_details") or {}
    payer = customer_details.get("email")

    queryset = PaymentRequest.objects.select_for_update()
    payment_request = None
    if link_id:
        payment_request = queryset.filter(checkout_reference=link_id).first()
    if payment_request is None and checkout_url:
        payment_request = queryset.filter(checkout_url=checkout_url).first()

    if payment_request is None:
        logger.warning(
            "checkout.session.completed did not match any payment request",
            extra={
                "gateway_event_id": webhook_event.gateway_event_id,
                "payment_link": link_id,
                "checkout_session_id": session_id,
            },
        )
        return ServiceResult.success(None)

    webhook_event.payment_request = payment_request

    if payment_request.status != PaymentRequestStatus.PENDING:
        logger.info(
            "Payment request already left pending, ignoring checkout",
            extra={
                "payment_request_id": str(payment_request.id),
                "status": payment_request.status,
                "gateway_event_id": webhook_event.gateway_event_id,
            },
        )
        return ServiceResult.success(payment_request)

    payment_request.mark_paid(
        checkout_session_id=session_id,
        paid_by_identifier=payer,
    )
    payment_request.save()

    payment_request_id = payment_request.id
    transaction.on_commit(
        lambda: SettlementService.settle_paid_request(payment_request_id),
        robust=True,
    )

    logger.info(
        "Payment request paid",
        extra={
            "payment_request_id": str(payment_request_id),
            "checkout_session_id": session_id,
            "gateway_event_id": webhook_event.gateway_event_id,
        },
    )
    return ServiceResult.success(payment_request)


# =============================================================================
# Payment Link Handlers
# =============================================================================


@register_handler("payment_link.updated")
def handle_payment_link_updated(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Expire a pending request whose payment link was deactivated.

    Deactivations caused by our own cancel flow arrive after the request
    is already CANCELLED and are ignored.
    """
    link = webhook_event.get_object()
    link_id = link.get("id")
    if not link_id:
        return ServiceResult.failure(
            "Event payload has no payment link id",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    if link.get("active", True):
        return ServiceResult.success(None)

    payment_request = (
        PaymentRequest.objects.select_for_update()
        .filter(checkout_reference=link_id)
        .first()
    )
    if payment_request is None:
        logger.warning(
            "payment_link.updated did not match any payment request",
            extra={
                "gateway_event_id": webhook_event.gateway_event_id,
                "payment_link": link_id,
            },
        )
        return ServiceResult.success(None)

    webhook_event.payment_request = payment_request

    if not payment_request.is_pending:
        logger.info(
            "Payment request already left pending, ignoring link deactivation",
            extra={
                "payment_request_id": str(payment_request.id),
                "status": payment_request.status,
                "gateway_event_id": webhook_event.gateway_event_id,
            },
        )
        return ServiceResult.success(payment_request)

    payment_request.expire()
    payment_request.save()

    logger.info(
        "Payment request expired",
        extra={
            "payment_request_id": str(payment_request.id),
            "gateway_event_id": webhook_event.gateway_event_id,
        },
    )
    return ServiceResult.success(payment_request)
