"""
API views for payment events, contributions and payouts.

This module provides REST API endpoints for the pooled dues flow:
- PaymentEventCreateView / PaymentEventDetailView: Events and their ledger
- Contribution*View: Hosted checkout, manual settlement and undo
- EventPayoutsView / OrganizerPayoutsView: Payout requests and history
- Connect*View: Organizer payout destination onboarding

URL Structure:
    /api/v1/payments/events/                                  POST
    /api/v1/payments/events/{id}/                             GET
    /api/v1/payments/events/{id}/payouts/                     GET, POST
    /api/v1/payments/contributions/{id}/checkout/             POST
    /api/v1/payments/contributions/{id}/mark-paid/            POST
    /api/v1/payments/contributions/{id}/undo-manual/          POST
    /api/v1/payments/payouts/                                 GET
    /api/v1/payments/connect/onboard/                         POST
    /api/v1/payments/connect/status/                          GET

Design Decisions:
    - Views only parse input and shape output; rules live in services
    - Domain errors propagate to core.exception_handler
    - Every mutation returns the pool summary alongside the entity
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from circles.services import MembershipService
from payments.exceptions import NotGroupMemberError, PaymentNotFoundError
from payments.models import PaymentEvent
from payments.serializers import (
    AmountSerializer,
    ConnectedAccountStatusSerializer,
    ContributionSerializer,
    OrganizerPayoutSerializer,
    PaymentEventCreateSerializer,
    PaymentEventSerializer,
    PayoutCreateSerializer,
    PayoutRequestSerializer,
    PoolSummarySerializer,
)
from payments.services import (
    ConnectedAccountService,
    ContributionService,
    PayoutService,
    PoolBalanceService,
)


def _pool_summary(event: PaymentEvent) -> dict:
    return PoolSummarySerializer(PoolBalanceService.summary(event)).data


def _get_event_for_member(event_id, user) -> PaymentEvent:
    event = (
        PaymentEvent.objects.select_related("circle", "organizer")
        .filter(pk=event_id)
        .first()
    )
    if event is None:
        raise PaymentNotFoundError(
            "Payment event not found",
            details={"event_id": str(event_id)},
        )
    if not MembershipService.is_member(event.circle_id, user):
        raise NotGroupMemberError(
            "You must be a circle member to view this event",
            details={"event_id": str(event_id)},
        )
    return event


# =============================================================================
# Payment Events
# =============================================================================


class PaymentEventCreateView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="payment_event_create",
        summary="Create payment event",
        description="Create a payment event in a circle. The creator becomes "
        "the organizer and a pending contribution is opened for every member.",
        request=PaymentEventCreateSerializer,
        responses={
            201: OpenApiResponse(description="Event created"),
            400: OpenApiResponse(description="Invalid input"),
            403: OpenApiResponse(description="Not a circle member"),
        },
        tags=["Payments - Events"],
    )
    def post(self, request):
        serializer = PaymentEventCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        circle = serializer.validated_data["circle"]

        if not MembershipService.is_member(circle.id, request.user):
            raise NotGroupMemberError(
                "You must be a circle member to create an event",
                details={"circle_id": str(circle.id)},
            )

        event = PaymentEvent.objects.create(
            circle=circle,
            organizer=request.user,
            title=serializer.validated_data["title"],
            amount=serializer.validated_data["amount"],
            due_date=serializer.validated_data["due_date"],
        )
        contributions = ContributionService.ensure_contributions(event)

        return Response(
            {
                "event": PaymentEventSerializer(event).data,
                "contributions": ContributionSerializer(contributions, many=True).data,
                "summary": _pool_summary(event),
            },
            status=status.HTTP_201_CREATED,
        )


class PaymentEventDetailView(APIView):
    """
    Event ledger view.

    Reading the event opens pending contributions for members who joined
    the circle after it was created.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="payment_event_detail",
        summary="Get payment event",
        description="Event details with one contribution per circle member "
        "and the pool summary.",
        responses={
            200: OpenApiResponse(description="Event with contributions"),
            403: OpenApiResponse(description="Not a circle member"),
            404: OpenApiResponse(description="Event not found"),
        },
        tags=["Payments - Events"],
    )
    def get(self, request, event_id):
        event = _get_event_for_member(event_id, request.user)
        contributions = ContributionService.ensure_contributions(event)

        return Response(
            {
                "event": PaymentEventSerializer(event).data,
                "contributions": ContributionSerializer(contributions, many=True).data,
                "summary": _pool_summary(event),
                "is_organizer": event.organizer_id == request.user.pk,
                "is_admin": MembershipService.is_group_admin(
                    event.circle_id, request.user
                ),
            }
        )


# =============================================================================
# Contributions
# =============================================================================


class ContributionCheckoutView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="contribution_checkout",
        summary="Start contribution checkout",
        description="Open a Stripe hosted checkout for the caller's own "
        "contribution. The contribution stays pending until Stripe confirms.",
        request=AmountSerializer,
        responses={
            200: OpenApiResponse(description="Checkout session URL"),
            400: OpenApiResponse(description="Invalid amount"),
            403: OpenApiResponse(description="Not the contributing member"),
            409: OpenApiResponse(description="Already paid"),
            502: OpenApiResponse(description="Stripe unavailable"),
        },
        tags=["Payments - Contributions"],
    )
    def post(self, request, contribution_id):
        serializer = AmountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        checkout = ContributionService.begin_external_settlement(
            contribution_id,
            serializer.validated_data["amount"],
            request.user,
        )
        return Response(
            {
                "url": checkout.url,
                "session_id": checkout.session_id,
                "contribution": ContributionSerializer(checkout.contribution).data,
                "summary": _pool_summary(checkout.contribution.event),
            }
        )


class ContributionMarkPaidView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="contribution_mark_paid",
        summary="Mark contribution paid",
        description="Record an off-platform payment, on top of anything already "
        "paid. Group admins only. Manual settlements do not add money to the pool.",
        request=AmountSerializer,
        responses={
            200: OpenApiResponse(
                response=ContributionSerializer,
                description="Contribution settled",
            ),
            400: OpenApiResponse(description="Invalid amount"),
            403: OpenApiResponse(description="Not a group admin"),
        },
        tags=["Payments - Contributions"],
    )
    def post(self, request, contribution_id):
        serializer = AmountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        contribution = ContributionService.apply_manual_settlement(
            contribution_id,
            serializer.validated_data["amount"],
            request.user,
        )
        return Response(
            {
                "contribution": ContributionSerializer(contribution).data,
                "summary": _pool_summary(contribution.event),
            }
        )


class ContributionUndoManualView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="contribution_undo_manual",
        summary="Undo manual settlement",
        description="Take the manual amount back out. The contribution returns "
        "to pending unless part of it was paid through checkout. Group admins only.",
        request=None,
        responses={
            200: OpenApiResponse(
                response=ContributionSerializer,
                description="Contribution reverted",
            ),
            403: OpenApiResponse(description="Not a group admin"),
            409: OpenApiResponse(description="Not manually settled"),
        },
        tags=["Payments - Contributions"],
    )
    def post(self, request, contribution_id):
        contribution = ContributionService.undo_manual_settlement(
            contribution_id, request.user
        )
        return Response(
            {
                "contribution": ContributionSerializer(contribution).data,
                "summary": _pool_summary(contribution.event),
            }
        )


# =============================================================================
# Payouts
# =============================================================================


class EventPayoutsView(APIView):
    """
    Payout history (GET) and payout requests (POST) for one event.

    Requests are throttled per user under the payout_requests scope.
    """

    permission_classes = [IsAuthenticated]
    throttle_scope = "payout_requests"

    def get_throttles(self):
        if self.request.method == "POST":
            return [ScopedRateThrottle(), *super().get_throttles()]
        return super().get_throttles()

    @extend_schema(
        operation_id="event_payouts_list",
        summary="List event payouts",
        description="Payout requests made against this event's pool.",
        responses={
            200: OpenApiResponse(description="Payouts with totals"),
            403: OpenApiResponse(description="Not a circle member"),
            404: OpenApiResponse(description="Event not found"),
        },
        tags=["Payments - Payouts"],
    )
    def get(self, request, event_id):
        result = PayoutService.list_payouts_for_event(event_id, request.user)
        return Response(
            {
                "payouts": PayoutRequestSerializer(result.payouts, many=True).data,
                "total_paid_out": str(result.total_paid_out),
                "current_balance": str(result.current_balance),
                "summary": _pool_summary(result.event),
            }
        )

    @extend_schema(
        operation_id="event_payouts_create",
        summary="Request payout",
        description="Withdraw from the pool to the organizer's connected "
        "account. Omit amount to withdraw the whole balance.",
        request=PayoutCreateSerializer,
        responses={
            201: OpenApiResponse(description="Payout requested"),
            400: OpenApiResponse(description="Invalid amount"),
            403: OpenApiResponse(
                description="Not the organizer or payout account not verified"
            ),
            409: OpenApiResponse(
                description="Insufficient balance or a payout is in flight"
            ),
            429: OpenApiResponse(description="Too many payout requests"),
            502: OpenApiResponse(description="Transfer could not be initiated"),
        },
        tags=["Payments - Payouts"],
    )
    def post(self, request, event_id):
        serializer = PayoutCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PayoutService.request_payout(
            event_id,
            request.user,
            amount=serializer.validated_data.get("amount"),
        )
        return Response(
            {
                "payout": PayoutRequestSerializer(result.payout).data,
                "remaining_balance": str(result.remaining_balance),
                "summary": _pool_summary(result.payout.event),
            },
            status=status.HTTP_201_CREATED,
        )


class OrganizerPayoutsView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="organizer_payouts_list",
        summary="List my payouts",
        description="All payout requests of the current user across events.",
        responses={200: OpenApiResponse(description="Payouts with totals")},
        tags=["Payments - Payouts"],
    )
    def get(self, request):
        result = PayoutService.list_payouts_for_organizer(request.user)
        return Response(
            {
                "payouts": OrganizerPayoutSerializer(result.payouts, many=True).data,
                "summary": {
                    "total_paid_out": str(result.total_paid_out),
                    "total_pending": str(result.total_pending),
                    "total_payouts": result.total_payouts,
                },
            }
        )


# =============================================================================
# Connect
# =============================================================================


class ConnectOnboardView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="connect_onboard",
        summary="Start payout onboarding",
        description="Create the caller's Stripe Connect account if needed and "
        "return a hosted onboarding link.",
        request=None,
        responses={
            200: OpenApiResponse(description="Onboarding link"),
            502: OpenApiResponse(description="Stripe unavailable"),
        },
        tags=["Payments - Connect"],
    )
    def post(self, request):
        link = ConnectedAccountService.start_onboarding(request.user)
        return Response(
            {
                "url": link.url,
                "account": ConnectedAccountStatusSerializer(link.account).data,
            }
        )


class ConnectStatusView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="connect_status",
        summary="Get payout onboarding status",
        responses={200: OpenApiResponse(description="Connected account state")},
        tags=["Payments - Connect"],
    )
    def get(self, request):
        account = ConnectedAccountService.get_account(request.user)
        if account is None:
            return Response({"account": None, "is_ready_for_payouts": False})
        return Response(
            {
                "account": ConnectedAccountStatusSerializer(account).data,
                "is_ready_for_payouts": account.is_ready_for_payouts,
            }
        )
