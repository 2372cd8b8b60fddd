"""
Factory Boy factories for settlement test data.

Usage:
    from settlements.tests.factories import (
        PaymentRequestFactory,
        RecipientPayoutProfileFactory,
        UserFactory,
        WebhookEventFactory,
    )

    # Pending request for a recipient with a payout destination
    profile = RecipientPayoutProfileFactory()
    payment_request = PaymentRequestFactory(recipient=profile.user)

    # Paid request, ready to be claimed
    payment_request = PaymentRequestFactory(paid=True)
"""

import uuid

import factory
from django.utils import timezone

from settlements.adapters import PayoutResult
from settlements.models import PaymentRequest, RecipientPayoutProfile, WebhookEvent
from settlements.state_machines import (
    PaymentRequestStatus,
    PayoutStatus,
    WebhookEventStatus,
)

HOST_DESTINATION = "host@platform.example.com"


class UserFactory(factory.django.DjangoModelFactory):
    """Factory for the default Django user model."""

    class Meta:
        model = "auth.User"
        django_get_or_create = ("username",)
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    first_name = "Test"
    last_name = factory.Sequence(lambda n: f"Recipient{n}")
    password = factory.PostGenerationMethodCall("set_password", "testpass123")
    is_active = True


class RecipientPayoutProfileFactory(factory.django.DjangoModelFactory):
    """
    Factory for RecipientPayoutProfile.

    Default creates a verified destination for a new user.

    Example:
        # Recipient without a destination
        profile = RecipientPayoutProfileFactory(
            payout_destination="",
            destination_verified=False,
        )
    """

    class Meta:
        model = RecipientPayoutProfile

    user = factory.SubFactory(UserFactory)
    payout_destination = factory.Sequence(lambda n: f"recipient{n}@paypal.example.com")
    destination_verified = True
    verified_at = factory.LazyFunction(timezone.now)


class PaymentRequestFactory(factory.django.DjangoModelFactory):
    """
    Factory for PaymentRequest.

    Default creates a PENDING $10.00 request.

    Example:
        # Paid, not yet settled
        payment_request = PaymentRequestFactory(paid=True)

        # Paid with a failed payout
        payment_request = PaymentRequestFactory(
            paid=True,
            payout_status=PayoutStatus.FAILED,
            payout_error="Recipient payout failed: boom",
        )
    """

    class Meta:
        model = PaymentRequest

    recipient = factory.SubFactory(UserFactory)
    amount_cents = 1000
    currency = "usd"
    description = "Lunch"
    checkout_reference = factory.Sequence(lambda n: f"plink_test_{n}")
    checkout_url = factory.Sequence(lambda n: f"https://buy.stripe.com/test_{n}")
    status = PaymentRequestStatus.PENDING
    payout_status = PayoutStatus.UNSET

    class Params:
        paid = factory.Trait(
            status=PaymentRequestStatus.PAID,
            paid_at=factory.LazyFunction(timezone.now),
            checkout_session_id=factory.Sequence(lambda n: f"cs_test_{n}"),
            paid_by_identifier="payer@example.com",
        )


def checkout_completed_payload(payment_request=None, **overrides) -> dict:
    """Build a checkout.session.completed event body."""
    session = {
        "id": f"cs_test_{uuid.uuid4().hex[:12]}",
        "object": "checkout.session",
        "payment_link": payment_request.checkout_reference if payment_request else None,
        "url": None,
        "payment_status": "paid",
        "customer_details": {"email": "payer@example.com"},
    }
    session.update(overrides)
    return {
        "id": f"evt_test_{uuid.uuid4().hex[:12]}",
        "type": "checkout.session.completed",
        "data": {"object": session},
    }


class WebhookEventFactory(factory.django.DjangoModelFactory):
    """
    Factory for WebhookEvent.

    Default creates a PENDING checkout.session.completed event that
    matches no payment request.
    """

    class Meta:
        model = WebhookEvent

    gateway_event_id = factory.Sequence(lambda n: f"evt_test_{n}_{uuid.uuid4().hex[:8]}")
    event_type = "checkout.session.completed"
    payload = factory.LazyFunction(lambda: checkout_completed_payload())
    status = WebhookEventStatus.PENDING


def payout_ok(leg: str = "recipient", n: int = 1) -> PayoutResult:
    """Successful leg result with predictable provider references."""
    return PayoutResult(
        success=True,
        provider_batch_ref=f"BATCH-{leg.upper()}-{n}",
        provider_item_ref=f"ITEM-{leg.upper()}-{n}",
    )


def payout_failed(error: str = "Receiver is unregistered") -> PayoutResult:
    return PayoutResult.failed(error, error_code="PAYOUT_REJECTED")
