"""
Pytest fixtures for settlement tests.

Adapters are injected through the services' set_*_adapter hooks, so no
test reaches Stripe or PayPal.

Usage:
    def test_payout(claimed_request, payout_adapter, platform_config):
        payout_adapter.send_payout.side_effect = [payout_ok(), payout_failed()]
        PayoutOrchestrator.execute(claimed_request, config=platform_config)
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from rest_framework.test import APIClient

from settlements.adapters import PaymentLinkResult
from settlements.config import PlatformConfig
from settlements.services import (
    PaymentLinkService,
    PayoutOrchestrator,
    StatusReconciler,
)
from settlements.tests.factories import (
    HOST_DESTINATION,
    PaymentRequestFactory,
    RecipientPayoutProfileFactory,
    UserFactory,
    payout_ok,
)

# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def platform_config(mocker):
    """
    20% fee, no bounds, host destination set.

    Also installed as the process config for code paths that do not take
    a config argument (webhook hand-off, manual trigger).
    """
    config = PlatformConfig(
        host_payout_destination=HOST_DESTINATION,
        fee_fraction=Decimal("0.20"),
    )
    mocker.patch(
        "settlements.services.payout_orchestrator.get_platform_config",
        return_value=config,
    )
    return config


# =============================================================================
# Adapter Fixtures
# =============================================================================


@pytest.fixture
def payout_adapter():
    """Mock payout adapter; both legs succeed by default."""
    adapter = MagicMock()
    adapter.send_payout.side_effect = [payout_ok("recipient"), payout_ok("platform")]
    PayoutOrchestrator.set_payout_adapter(adapter)
    yield adapter
    PayoutOrchestrator.set_payout_adapter(None)


@pytest.fixture
def stripe_adapter():
    """Mock Stripe adapter returning a fixed payment link."""
    adapter = MagicMock()
    adapter.create_payment_link.return_value = PaymentLinkResult(
        id="plink_test_created",
        url="https://buy.stripe.com/test_created",
    )
    PaymentLinkService.set_stripe_adapter(adapter)
    yield adapter
    PaymentLinkService.set_stripe_adapter(None)


# =============================================================================
# User and Profile Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """A user without a payout profile."""
    return UserFactory()


@pytest.fixture
def recipient_profile(db):
    """Payout profile with a verified destination."""
    return RecipientPayoutProfileFactory()


@pytest.fixture
def recipient(recipient_profile):
    """A user with a payout destination."""
    return recipient_profile.user


@pytest.fixture
def staff_user(db):
    return UserFactory(is_staff=True)


# =============================================================================
# PaymentRequest State Fixtures
# =============================================================================


@pytest.fixture
def pending_request(recipient):
    """A pending $10.00 request."""
    return PaymentRequestFactory(recipient=recipient)


@pytest.fixture
def paid_request(recipient):
    """A paid $10.00 request that has not been settled."""
    return PaymentRequestFactory(recipient=recipient, paid=True)


@pytest.fixture
def claimed_request(paid_request):
    """A paid request already claimed for payout (PROCESSING)."""
    claim = StatusReconciler.claim(paid_request.id)
    assert claim.claimed
    return claim.payment_request


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def recipient_client(api_client, recipient):
    """API client authenticated as the recipient."""
    api_client.force_authenticate(user=recipient)
    return api_client
