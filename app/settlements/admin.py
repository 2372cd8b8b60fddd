"""
Settlement admin configuration.

Payment and payout state is read-only here; it only changes through
the webhook ingestor and the settlement services. The one write path is
the "Retry payout" action, which goes through SettlementService.
"""

from django.contrib import admin, messages

from settlements.models import PaymentRequest, RecipientPayoutProfile, WebhookEvent
from settlements.services import SettlementService

__all__ = [
    "PaymentRequestAdmin",
    "RecipientPayoutProfileAdmin",
    "WebhookEventAdmin",
]


@admin.register(PaymentRequest)
class PaymentRequestAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentRequest.

    Provides visibility into payment and settlement state, with a bulk
    action to retry failed payouts.
    """

    list_display = [
        "id",
        "recipient",
        "amount_display",
        "status",
        "payout_status",
        "payout_attempts",
        "created_at",
    ]
    list_filter = ["status", "payout_status", "currency", "created_at"]
    search_fields = [
        "id",
        "checkout_reference",
        "checkout_session_id",
        "recipient__email",
        "recipient_payout_ref",
    ]
    readonly_fields = [
        "id",
        "recipient",
        "amount_cents",
        "currency",
        "checkout_reference",
        "checkout_url",
        "checkout_session_id",
        "status",
        "paid_by_identifier",
        "paid_at",
        "expired_at",
        "cancelled_at",
        "payout_status",
        "platform_fee_cents",
        "payout_amount_cents",
        "recipient_payout_ref",
        "recipient_payout_item_ref",
        "platform_payout_ref",
        "platform_payout_item_ref",
        "payout_completed_at",
        "payout_error",
        "payout_attempts",
        "version",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["retry_payout"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "recipient", "status", "description"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount_cents", "currency"),
            },
        ),
        (
            "Checkout",
            {
                "fields": (
                    "checkout_reference",
                    "checkout_url",
                    "checkout_session_id",
                    "paid_by_identifier",
                    "paid_at",
                    "expired_at",
                    "cancelled_at",
                ),
            },
        ),
        (
            "Settlement",
            {
                "fields": (
                    "payout_status",
                    "platform_fee_cents",
                    "payout_amount_cents",
                    "recipient_payout_ref",
                    "recipient_payout_item_ref",
                    "platform_payout_ref",
                    "platform_payout_item_ref",
                    "payout_completed_at",
                    "payout_attempts",
                ),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("payout_error",),
                "classes": ("collapse",),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata", "version"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: PaymentRequest) -> str:
        return f"{obj.amount_cents / 100:.2f} {obj.currency.upper()}"

    @admin.action(description="Retry payout for selected payment requests")
    def retry_payout(self, request, queryset):
        """Claim and settle each selected request; ineligible ones are skipped."""
        completed = failed = skipped = 0
        for payment_request_id in queryset.values_list("id", flat=True):
            result = SettlementService.trigger_payout(payment_request_id)
            if result.success:
                completed += 1
            elif result.error_code == "PAYOUT_FAILED":
                failed += 1
            else:
                skipped += 1

        level = messages.WARNING if failed else messages.SUCCESS
        self.message_user(
            request,
            f"Payouts completed: {completed}, failed: {failed}, skipped: {skipped}.",
            level=level,
        )

    def has_add_permission(self, request) -> bool:
        """Payment requests are created through the API with a payment link."""
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(RecipientPayoutProfile)
class RecipientPayoutProfileAdmin(admin.ModelAdmin):
    list_display = [
        "user",
        "payout_destination",
        "destination_verified",
        "verified_at",
        "updated_at",
    ]
    list_filter = ["destination_verified"]
    search_fields = ["user__email", "user__username", "payout_destination"]
    readonly_fields = ["verified_at", "created_at", "updated_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "gateway_event_id",
        "event_type",
        "status",
        "payment_request",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "gateway_event_id", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "gateway_event_id",
        "event_type",
        "payload",
        "payment_request",
        "status",
        "processed_at",
        "error_message",
        "retry_count",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": (
                    "id",
                    "gateway_event_id",
                    "event_type",
                    "status",
                    "payment_request",
                ),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        return False
