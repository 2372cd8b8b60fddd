"""
WebhookEvent model for gateway webhook event tracking.

Stores every webhook event received from the payment gateway for
idempotent processing and audit trails. The unique gateway_event_id
constraint ensures redelivered events are detected.

Usage:
    from settlements.models import WebhookEvent

    event, created = WebhookEvent.objects.get_or_create(
        gateway_event_id="evt_1234567890",
        defaults={
            "event_type": "checkout.session.completed",
            "payload": webhook_payload,
        },
    )

    if not created and event.is_processed:
        # Duplicate delivery - already processed
        return HttpResponse("Already processed", status=200)
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from settlements.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Durable record of a gateway webhook delivery.

    Processing Flow:
        1. Webhook arrives, verify signature
        2. Insert/get WebhookEvent by gateway_event_id
        3. If exists and PROCESSED -> acknowledge (duplicate)
        4. Set status to PROCESSING and dispatch to the handler
        5. Set status to PROCESSED, or FAILED on datastore errors so the
           gateway's redelivery retries it

    Fields:
        gateway_event_id: Unique gateway event ID (evt_xxx)
        event_type: Type of webhook event
        payload: Full JSON payload
        payment_request: Request the event resolved to, if any
        status: Processing status
        processed_at: When event was successfully processed
        error_message: Error details if processing failed
        retry_count: Number of processing attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    gateway_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway event ID (evt_xxx) - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Gateway event type (e.g., 'checkout.session.completed')",
    )

    payload = models.JSONField(
        help_text="Full webhook payload (JSON)",
    )

    payment_request = models.ForeignKey(
        "settlements.PaymentRequest",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="webhook_events",
        help_text="Payment request this event was matched to",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(
                fields=["status", "created_at"], name="webhook_status_created_idx"
            ),
            models.Index(
                fields=["event_type", "created_at"], name="webhook_type_created_idx"
            ),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.gateway_event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    def mark_processing(self) -> None:
        """
        Mark event as being processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        """
        Mark event as successfully processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """
        Mark event as failed with error message.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def get_object(self) -> dict:
        """Return payload.data.object, or an empty dict if absent."""
        data = self.payload.get("data") if isinstance(self.payload, dict) else None
        obj = data.get("object") if isinstance(data, dict) else None
        return obj if isinstance(obj, dict) else {}

    def get_object_id(self) -> str | None:
        """Extract the primary object ID from the webhook payload."""
        return self.get_object().get("id")
