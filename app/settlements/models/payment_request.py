"""
PaymentRequest model, the unit of settlement.

A PaymentRequest is created by its recipient together with a gateway
payment link, moves to PAID when the gateway confirms checkout, and is
then settled through two payout legs tracked by payout_status.

Usage:
    from settlements.models import PaymentRequest

    payment_request = PaymentRequest.objects.create(
        recipient=user,
        amount_cents=1000,
        description="Lunch",
        checkout_reference="plink_123",
        checkout_url="https://buy.stripe.com/test_123",
    )

    # State transitions using django-fsm
    payment_request.mark_paid(
        checkout_session_id="cs_123",
        paid_by_identifier="payer@example.com",
    )
    payment_request.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from settlements.state_machines import PaymentRequestStatus, PayoutStatus

DEFAULT_NOTE_SUBJECT = "QR Code Payment"


class PaymentRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    A request for funds and its settlement outcome.

    Payment leg (django-fsm, protected):
        PENDING -> PAID | EXPIRED | CANCELLED

    Settlement substate (payout_status), written only through the
    conditional updates in StatusReconciler and PayoutOrchestrator:
        UNSET -> PROCESSING -> COMPLETED | FAILED
        FAILED -> PROCESSING (retry)

    Fields:
        recipient: User receiving the funds (immutable)
        amount_cents: Amount charged to the payer (immutable, positive)
        description: Optional free text shown on checkout and payout notes
        checkout_reference: Gateway payment link id (immutable)
        checkout_url: Gateway payment link URL (immutable, secondary lookup)
        checkout_session_id: Gateway checkout session that paid the request
        status: Payment leg state
        paid_by_identifier/paid_at: Set once on PENDING -> PAID
        payout_status: Settlement substate
        platform_fee_cents/payout_amount_cents: Fee split, persisted on the
            first payout attempt
        *_payout_ref/*_payout_item_ref: Provider batch and item ids per leg
        payout_error: Joined failure reasons from the last failed attempt
        payout_attempts: Number of claims taken
        version: Incremented on every write for optimistic checks
    """

    # ==========================================================================
    # Ownership & Amount
    # ==========================================================================

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payment_requests",
        help_text="User receiving the funds",
    )

    amount_cents = models.PositiveBigIntegerField(
        help_text="Amount charged to the payer in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )

    description = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Optional description shown to the payer",
    )

    # ==========================================================================
    # Gateway Checkout
    # ==========================================================================

    checkout_reference = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway payment link ID (plink_xxx)",
    )

    checkout_url = models.URLField(
        max_length=500,
        db_index=True,
        help_text="Gateway payment link URL shared with the payer",
    )

    checkout_session_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Gateway checkout session ID (cs_xxx) that paid this request",
    )

    # ==========================================================================
    # Payment State
    # ==========================================================================

    status = FSMField(
        default=PaymentRequestStatus.PENDING,
        choices=PaymentRequestStatus.choices,
        db_index=True,
        protected=True,
        help_text="Payment leg state (managed by FSM)",
    )

    paid_by_identifier = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Payer identifier (email) reported by the gateway",
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the gateway confirmed payment",
    )

    expired_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment link was deactivated unpaid",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the recipient cancelled the request",
    )

    # ==========================================================================
    # Settlement
    # ==========================================================================

    payout_status = models.CharField(
        max_length=20,
        choices=PayoutStatus.choices,
        default=PayoutStatus.UNSET,
        db_index=True,
        help_text="Settlement substate, valid once paid",
    )

    platform_fee_cents = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Platform fee, persisted on first payout attempt",
    )

    payout_amount_cents = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Recipient payout amount, persisted on first payout attempt",
    )

    recipient_payout_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Provider batch ID of the recipient leg",
    )

    recipient_payout_item_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Provider item ID of the recipient leg",
    )

    platform_payout_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Provider batch ID of the platform fee leg",
    )

    platform_payout_item_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Provider item ID of the platform fee leg",
    )

    payout_completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When both required legs succeeded",
    )

    payout_error = models.TextField(
        null=True,
        blank=True,
        help_text="Failure reason(s) of the last payout attempt",
    )

    payout_attempts = models.PositiveIntegerField(
        default=0,
        help_text="Number of payout claims taken",
    )

    # ==========================================================================
    # Concurrency Control & Metadata
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each write",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Request"
        verbose_name_plural = "Payment Requests"
        indexes = [
            models.Index(
                fields=["recipient", "status"], name="payreq_recipient_status_idx"
            ),
            models.Index(
                fields=["recipient", "created_at"], name="payreq_recipient_created_idx"
            ),
            models.Index(
                fields=["status", "payout_status"], name="payreq_status_payout_idx"
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_cents__gt=0),
                name="payment_request_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(platform_fee_cents__isnull=True)
                | Q(payout_amount_cents__isnull=True)
                | Q(amount_cents=F("platform_fee_cents") + F("payout_amount_cents")),
                name="payment_request_split_sums_to_amount",
            ),
            models.CheckConstraint(
                condition=Q(payout_status=PayoutStatus.UNSET)
                | Q(status=PaymentRequestStatus.PAID),
                name="payment_request_payout_requires_paid",
            ),
        ]

    def __str__(self) -> str:
        amount_display = f"{self.amount_cents / 100:.2f} {self.currency.upper()}"
        return f"PaymentRequest({self.id}, {self.status}/{self.payout_status}, {amount_display})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.

        On update (not force_insert), atomically increments the version
        field to detect concurrent modifications.
        """
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentRequestStatus.PENDING,
        target=PaymentRequestStatus.PAID,
    )
    def mark_paid(
        self,
        checkout_session_id: str | None = None,
        paid_by_identifier: str | None = None,
    ):
        """
        Record gateway checkout completion.

        Transition: PENDING -> PAID

        Only called from the webhook ingestor after signature verification.
        """
        self.checkout_session_id = checkout_session_id
        self.paid_by_identifier = paid_by_identifier
        self.paid_at = timezone.now()

    @transition(
        field=status,
        source=PaymentRequestStatus.PENDING,
        target=PaymentRequestStatus.EXPIRED,
    )
    def expire(self):
        """
        Mark the request expired after its payment link was deactivated.

        Transition: PENDING -> EXPIRED
        """
        self.expired_at = timezone.now()

    @transition(
        field=status,
        source=PaymentRequestStatus.PENDING,
        target=PaymentRequestStatus.CANCELLED,
    )
    def cancel(self):
        """
        Cancel at the recipient's request.

        Transition: PENDING -> CANCELLED
        """
        self.cancelled_at = timezone.now()

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentRequestStatus.PENDING

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentRequestStatus.PAID

    @property
    def is_settled(self) -> bool:
        """Whether both required payout legs have succeeded."""
        return self.payout_status == PayoutStatus.COMPLETED

    @property
    def has_fee_split(self) -> bool:
        return (
            self.platform_fee_cents is not None
            and self.payout_amount_cents is not None
        )

    @property
    def payout_provider_ref(self) -> str | None:
        """Primary provider reference (the recipient leg batch)."""
        return self.recipient_payout_ref

    @property
    def note_subject(self) -> str:
        """Text used in payout notes to identify this request."""
        return self.description or DEFAULT_NOTE_SUBJECT
