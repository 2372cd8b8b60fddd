"""
API views for payment requests, manual payouts and payout profiles.

Provides:
- PaymentRequestListCreateView: Create a payment link / list own requests
- PaymentRequestDetailView: Get one payment request
- PaymentRequestCancelView: Cancel a pending payment request
- PaymentRequestPayoutBatchView: Provider status of the recipient payout
- PayoutTriggerView: Retry settlement of a paid request
- PayoutProfileView: Read/update the payout destination

The Stripe webhook endpoint lives in settlements.webhooks.views.
"""

from __future__ import annotations

from dataclasses import asdict

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from settlements.models import PaymentRequest
from settlements.serializers import (
    PaymentRequestCreateSerializer,
    PaymentRequestPublicSerializer,
    PaymentRequestSerializer,
    PayoutProfileSerializer,
    PayoutResultSerializer,
    PayoutTriggerSerializer,
)
from settlements.services import (
    PaymentLinkService,
    PayoutProfileService,
    SettlementService,
)

# Service error codes -> HTTP status
ERROR_STATUS = {
    "INVALID_AMOUNT": status.HTTP_400_BAD_REQUEST,
    "PAYOUT_DESTINATION_REQUIRED": status.HTTP_400_BAD_REQUEST,
    "INVALID_PAYOUT_DESTINATION": status.HTTP_400_BAD_REQUEST,
    "PAYMENT_REQUEST_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_STATE_TRANSITION": status.HTTP_409_CONFLICT,
    "PAYOUT_IN_PROGRESS": status.HTTP_409_CONFLICT,
    "PAYOUT_NOT_ELIGIBLE": status.HTTP_409_CONFLICT,
    "PAYOUT_NOT_SENT": status.HTTP_409_CONFLICT,
    "PAYOUT_BATCH_ID_UNKNOWN": status.HTTP_409_CONFLICT,
}


def _error_response(result) -> Response:
    """Map a failed ServiceResult to an error response."""
    body = {"error": result.error, "error_code": result.error_code}
    if result.errors:
        body["errors"] = result.errors
    return Response(
        body,
        status=ERROR_STATUS.get(result.error_code, status.HTTP_502_BAD_GATEWAY),
    )


def _get_visible_request(user, request_id) -> PaymentRequest | None:
    """Owner sees their own requests; staff see all."""
    queryset = PaymentRequest.objects.all()
    if not user.is_staff:
        queryset = queryset.filter(recipient=user)
    return queryset.filter(pk=request_id).first()


class PaymentRequestListCreateView(APIView):
    """
    Create and list the caller's payment requests.

    POST /api/v1/settlements/payment-requests/
        Create a Stripe payment link for the requested amount.

    GET /api/v1/settlements/payment-requests/
        Paginated list of the caller's requests, newest first.

    Response:
        201 Created: Request created with its checkout URL
        400 Bad Request: Invalid amount or no payout destination
        502 Bad Gateway: Payment link creation failed
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_payment_request",
        summary="Create payment request",
        description=(
            "Create a payment link for the given amount. Requires a payout "
            "destination on the caller's payout profile."
        ),
        request=PaymentRequestCreateSerializer,
        responses={
            201: OpenApiResponse(
                response=PaymentRequestSerializer,
                description="Payment request created",
            ),
            400: OpenApiResponse(
                description="Invalid amount or payout destination missing",
            ),
            502: OpenApiResponse(description="Payment gateway error"),
        },
        tags=["Settlements - Payment Requests"],
    )
    def post(self, request):
        """Create a payment request and its payment link."""
        serializer = PaymentRequestCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        result = PaymentLinkService.create_payment_request(
            recipient=request.user,
            amount_cents=serializer.validated_data["amount_cents"],
            description=serializer.validated_data["description"],
        )
        if not result.success:
            return _error_response(result)

        return Response(
            PaymentRequestSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        operation_id="list_payment_requests",
        summary="List payment requests",
        description="List the caller's payment requests, newest first.",
        responses={
            200: OpenApiResponse(
                response=PaymentRequestSerializer(many=True),
                description="Paginated payment requests",
            ),
        },
        tags=["Settlements - Payment Requests"],
    )
    def get(self, request):
        """List the caller's payment requests."""
        queryset = PaymentRequest.objects.filter(recipient=request.user)
        paginator = PageNumberPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = PaymentRequestSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)


class PaymentRequestDetailView(APIView):
    """
    GET /api/v1/settlements/payment-requests/{id}/

    Anyone holding the id gets the payer-facing fields; the owner and
    staff get the full settlement record.

    Response:
        200 OK: Payment request
        404 Not Found: Unknown id
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="get_payment_request",
        summary="Get payment request",
        responses={
            200: OpenApiResponse(response=PaymentRequestSerializer),
            404: OpenApiResponse(description="Payment request not found"),
        },
        tags=["Settlements - Payment Requests"],
    )
    def get(self, request, request_id):
        payment_request = (
            PaymentRequest.objects.select_related("recipient")
            .filter(pk=request_id)
            .first()
        )
        if payment_request is None:
            return Response(
                {"error": "Payment request not found"},
                status=status.HTTP_404_NOT_FOUND,
            )

        user = request.user
        if user.is_authenticated and (
            user.is_staff or payment_request.recipient_id == user.pk
        ):
            return Response(PaymentRequestSerializer(payment_request).data)
        return Response(PaymentRequestPublicSerializer(payment_request).data)


class PaymentRequestCancelView(APIView):
    """
    POST /api/v1/settlements/payment-requests/{id}/cancel/

    Deactivates the payment link and cancels the request.

    Response:
        200 OK: Cancelled request
        404 Not Found: Unknown or not owned by the caller
        409 Conflict: Request is no longer pending
        502 Bad Gateway: Link deactivation failed
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_payment_request",
        summary="Cancel payment request",
        description="Deactivate the payment link and cancel a pending request.",
        request=None,
        responses={
            200: OpenApiResponse(response=PaymentRequestSerializer),
            404: OpenApiResponse(description="Payment request not found"),
            409: OpenApiResponse(description="Payment request is not pending"),
            502: OpenApiResponse(description="Payment gateway error"),
        },
        tags=["Settlements - Payment Requests"],
    )
    def post(self, request, request_id):
        result = PaymentLinkService.cancel_payment_request(request_id, request.user)
        if not result.success:
            return _error_response(result)
        return Response(PaymentRequestSerializer(result.data).data)


class PaymentRequestPayoutBatchView(APIView):
    """
    GET /api/v1/settlements/payment-requests/{id}/payout-batch/

    Looks up the recipient leg's batch at the payout provider.

    Response:
        200 OK: Provider batch status
        404 Not Found: Unknown or not owned by the caller
        409 Conflict: No payout sent yet, or provider batch id unknown
        502 Bad Gateway: Provider lookup failed
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payout_batch_status",
        summary="Get payout batch status",
        responses={
            200: OpenApiResponse(
                response=OpenApiTypes.OBJECT,
                description="Provider batch status and items",
            ),
            404: OpenApiResponse(description="Payment request not found"),
            409: OpenApiResponse(description="No payout sent yet or batch id unknown"),
            502: OpenApiResponse(description="Payout provider error"),
        },
        tags=["Settlements - Payouts"],
    )
    def get(self, request, request_id):
        payment_request = _get_visible_request(request.user, request_id)
        if payment_request is None:
            return Response(
                {"error": "Payment request not found"},
                status=status.HTTP_404_NOT_FOUND,
            )

        result = SettlementService.get_payout_batch_status(payment_request)
        if not result.success:
            return _error_response(result)
        return Response(asdict(result.data))


class PayoutTriggerView(APIView):
    """
    POST /api/v1/settlements/payouts/trigger/

    Claims a paid request and runs its payout. Used to retry a FAILED
    settlement. Allowed for the recipient and for staff users.

    Response:
        200 OK: Payout ran; success tells whether both legs went through
        400 Bad Request: Malformed body
        404 Not Found: Unknown or not owned by the caller
        409 Conflict: Payout in progress, already completed, or not paid
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="trigger_payout",
        summary="Trigger payout",
        description=(
            "Settle a paid payment request. Only one payout per request can "
            "run at a time; a concurrent trigger gets 409."
        ),
        request=PayoutTriggerSerializer,
        responses={
            200: OpenApiResponse(
                response=PayoutResultSerializer,
                description="Payout outcome",
            ),
            400: OpenApiResponse(description="Invalid request body"),
            404: OpenApiResponse(description="Payment request not found"),
            409: OpenApiResponse(description="Payout in progress or not eligible"),
        },
        tags=["Settlements - Payouts"],
    )
    def post(self, request):
        serializer = PayoutTriggerSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        result = SettlementService.trigger_payout(
            serializer.validated_data["payment_request_id"],
            actor=request.user,
        )
        if not result.success and result.data is None:
            return _error_response(result)

        outcome = result.data
        return Response(
            PayoutResultSerializer(
                {
                    "success": outcome.success,
                    "error": outcome.error,
                    "payment_request": outcome.payment_request,
                }
            ).data
        )


class PayoutProfileView(APIView):
    """
    GET/PUT /api/v1/settlements/payout-profile/

    Response:
        200 OK: Current payout profile
        400 Bad Request: Invalid payout destination
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payout_profile",
        summary="Get payout profile",
        responses={200: OpenApiResponse(response=PayoutProfileSerializer)},
        tags=["Settlements - Payout Profile"],
    )
    def get(self, request):
        profile = PayoutProfileService.get_profile(request.user)
        return Response(PayoutProfileSerializer(profile).data)

    @extend_schema(
        operation_id="update_payout_profile",
        summary="Update payout profile",
        description="Set the PayPal email that receives payouts.",
        request=PayoutProfileSerializer,
        responses={
            200: OpenApiResponse(response=PayoutProfileSerializer),
            400: OpenApiResponse(description="Invalid payout destination"),
        },
        tags=["Settlements - Payout Profile"],
    )
    def put(self, request):
        serializer = PayoutProfileSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        result = PayoutProfileService.set_destination(
            request.user,
            serializer.validated_data["payout_destination"],
        )
        if not result.success:
            return _error_response(result)
        return Response(PayoutProfileSerializer(result.data).data)
