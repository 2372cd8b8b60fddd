"""
Serializers for payment requests, payouts and payout profiles.

Provides:
- PaymentRequestCreateSerializer: Validate a new payment request
- PaymentRequestSerializer: Read-only serializer for API responses
- PaymentRequestPublicSerializer: Payer-facing view of a request
- PayoutTriggerSerializer: Validate a manual payout trigger
- PayoutResultSerializer: Settlement outcome returned by the trigger
- PayoutProfileSerializer: Read/update the recipient payout destination
"""

from __future__ import annotations

from rest_framework import serializers

from settlements.models import PaymentRequest, RecipientPayoutProfile


class PaymentRequestCreateSerializer(serializers.Serializer):
    """
    Input for creating a payment request.

    Usage:
        serializer = PaymentRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        PaymentLinkService.create_payment_request(
            recipient=request.user,
            **serializer.validated_data,
        )
    """

    amount_cents = serializers.IntegerField(
        min_value=1,
        help_text="Amount to request, in cents",
    )
    description = serializers.CharField(
        max_length=500,
        required=False,
        allow_blank=True,
        default="",
        help_text="Optional description shown to the payer",
    )


class PaymentRequestSerializer(serializers.ModelSerializer):
    """
    Read-only serializer for payment request responses.

    Excludes internal fields such as the version counter and the
    idempotency metadata.
    """

    recipient_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = PaymentRequest
        fields = [
            "id",
            "recipient_id",
            "amount_cents",
            "currency",
            "description",
            "checkout_url",
            "status",
            "paid_by_identifier",
            "paid_at",
            "expired_at",
            "cancelled_at",
            "payout_status",
            "platform_fee_cents",
            "payout_amount_cents",
            "recipient_payout_ref",
            "platform_payout_ref",
            "payout_completed_at",
            "payout_error",
            "payout_attempts",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PaymentRequestPublicSerializer(serializers.ModelSerializer):
    """
    What a payer holding the request id may see.

    Settlement fields, payer identity and payout references are omitted.
    """

    recipient_name = serializers.SerializerMethodField()

    class Meta:
        model = PaymentRequest
        fields = [
            "id",
            "recipient_name",
            "amount_cents",
            "currency",
            "description",
            "checkout_url",
            "status",
            "created_at",
        ]
        read_only_fields = fields

    def get_recipient_name(self, obj: PaymentRequest) -> str:
        return obj.recipient.get_full_name() or obj.recipient.get_username()


class PayoutTriggerSerializer(serializers.Serializer):
    payment_request_id = serializers.UUIDField(
        help_text="Paid payment request to settle",
    )


class PayoutResultSerializer(serializers.Serializer):
    """Outcome of a manual payout trigger."""

    success = serializers.BooleanField(read_only=True)
    error = serializers.CharField(read_only=True, allow_null=True)
    payment_request = PaymentRequestSerializer(read_only=True)


class PayoutProfileSerializer(serializers.ModelSerializer):
    """
    Recipient payout destination.

    Only payout_destination is writable; verification fields are set by
    PayoutProfileService.
    """

    class Meta:
        model = RecipientPayoutProfile
        fields = [
            "payout_destination",
            "destination_verified",
            "verified_at",
            "updated_at",
        ]
        read_only_fields = ["destination_verified", "verified_at", "updated_at"]
        extra_kwargs = {
            "payout_destination": {"required": True, "allow_blank": False},
        }
