"""
Initial settlement schema.

Changes:
    - Create PaymentRequest with payment leg FSM state, settlement substate
      and check constraints on amount, fee split and payout eligibility
    - Create RecipientPayoutProfile (one per user)
    - Create WebhookEvent for idempotent gateway event processing
"""

import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentRequest",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Amount charged to the payer in smallest currency unit",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="usd",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "description",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Optional description shown to the payer",
                        max_length=500,
                    ),
                ),
                (
                    "checkout_reference",
                    models.CharField(
                        help_text="Gateway payment link ID (plink_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "checkout_url",
                    models.URLField(
                        db_index=True,
                        help_text="Gateway payment link URL shared with the payer",
                        max_length=500,
                    ),
                ),
                (
                    "checkout_session_id",
                    models.CharField(
                        blank=True,
                        help_text="Gateway checkout session ID (cs_xxx) that paid this request",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("expired", "Expired"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Payment leg state (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "paid_by_identifier",
                    models.CharField(
                        blank=True,
                        help_text="Payer identifier (email) reported by the gateway",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the gateway confirmed payment",
                        null=True,
                    ),
                ),
                (
                    "expired_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the payment link was deactivated unpaid",
                        null=True,
                    ),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the recipient cancelled the request",
                        null=True,
                    ),
                ),
                (
                    "payout_status",
                    models.CharField(
                        choices=[
                            ("unset", "Unset"),
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="unset",
                        help_text="Settlement substate, valid once paid",
                        max_length=20,
                    ),
                ),
                (
                    "platform_fee_cents",
                    models.PositiveBigIntegerField(
                        blank=True,
                        help_text="Platform fee, persisted on first payout attempt",
                        null=True,
                    ),
                ),
                (
                    "payout_amount_cents",
                    models.PositiveBigIntegerField(
                        blank=True,
                        help_text="Recipient payout amount, persisted on first payout attempt",
                        null=True,
                    ),
                ),
                (
                    "recipient_payout_ref",
                    models.CharField(
                        blank=True,
                        help_text="Provider batch ID of the recipient leg",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "recipient_payout_item_ref",
                    models.CharField(
                        blank=True,
                        help_text="Provider item ID of the recipient leg",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "platform_payout_ref",
                    models.CharField(
                        blank=True,
                        help_text="Provider batch ID of the platform fee leg",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "platform_payout_item_ref",
                    models.CharField(
                        blank=True,
                        help_text="Provider item ID of the platform fee leg",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "payout_completed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When both required legs succeeded",
                        null=True,
                    ),
                ),
                (
                    "payout_error",
                    models.TextField(
                        blank=True,
                        help_text="Failure reason(s) of the last payout attempt",
                        null=True,
                    ),
                ),
                (
                    "payout_attempts",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Number of payout claims taken",
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each write",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON metadata",
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        help_text="User receiving the funds",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Request",
                "verbose_name_plural": "Payment Requests",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["recipient", "status"],
                        name="payreq_recipient_status_idx",
                    ),
                    models.Index(
                        fields=["recipient", "created_at"],
                        name="payreq_recipient_created_idx",
                    ),
                    models.Index(
                        fields=["status", "payout_status"],
                        name="payreq_status_payout_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="payment_request_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("platform_fee_cents__isnull", True),
                            ("payout_amount_cents__isnull", True),
                            (
                                "amount_cents",
                                models.F("platform_fee_cents")
                                + models.F("payout_amount_cents"),
                            ),
                            _connector="OR",
                        ),
                        name="payment_request_split_sums_to_amount",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("payout_status", "unset"),
                            ("status", "paid"),
                            _connector="OR",
                        ),
                        name="payment_request_payout_requires_paid",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RecipientPayoutProfile",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "payout_destination",
                    models.EmailField(
                        blank=True,
                        default="",
                        help_text="Payout provider receiver email",
                        max_length=254,
                    ),
                ),
                (
                    "destination_verified",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the payout destination has been verified",
                    ),
                ),
                (
                    "verified_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the payout destination was last verified",
                        null=True,
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        help_text="User this payout profile belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payout_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Recipient Payout Profile",
                "verbose_name_plural": "Recipient Payout Profiles",
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "gateway_event_id",
                    models.CharField(
                        help_text="Gateway event ID (evt_xxx) - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Gateway event type (e.g., 'checkout.session.completed')",
                        max_length=100,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Full webhook payload (JSON)"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When event was successfully processed",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if processing failed",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of processing attempts",
                    ),
                ),
                (
                    "payment_request",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payment request this event was matched to",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="webhook_events",
                        to="settlements.paymentrequest",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="webhook_status_created_idx",
                    ),
                    models.Index(
                        fields=["event_type", "created_at"],
                        name="webhook_type_created_idx",
                    ),
                ],
            },
        ),
    ]
