"""
URL configuration for the settlements app.

All routes are prefixed with /api/v1/settlements/ when included in the
main URLconf.
"""

from django.urls import path

from settlements import views
from settlements.webhooks.views import stripe_webhook

app_name = "settlements"

urlpatterns = [
    # Payment requests
    path(
        "payment-requests/",
        views.PaymentRequestListCreateView.as_view(),
        name="payment-request-list",
    ),
    path(
        "payment-requests/<uuid:request_id>/",
        views.PaymentRequestDetailView.as_view(),
        name="payment-request-detail",
    ),
    path(
        "payment-requests/<uuid:request_id>/cancel/",
        views.PaymentRequestCancelView.as_view(),
        name="payment-request-cancel",
    ),
    path(
        "payment-requests/<uuid:request_id>/payout-batch/",
        views.PaymentRequestPayoutBatchView.as_view(),
        name="payment-request-payout-batch",
    ),
    # Payouts
    path(
        "payouts/trigger/",
        views.PayoutTriggerView.as_view(),
        name="payout-trigger",
    ),
    path(
        "payout-profile/",
        views.PayoutProfileView.as_view(),
        name="payout-profile",
    ),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
]
