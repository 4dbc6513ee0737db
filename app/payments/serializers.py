"""
Serializers for the payments API.

Serializer Hierarchy:
    Write (request bodies):
        PaymentEventCreateSerializer: New event in a circle
        AmountSerializer: Required positive amount (checkout, mark-paid)
        PayoutCreateSerializer: Optional amount (defaults to the pool)

    Read (responses):
        PoolSummarySerializer: {balance, total_settled, total_paid_out}
        PaymentEventSerializer / ContributionSerializer
        PayoutRequestSerializer / OrganizerPayoutSerializer
        ConnectedAccountStatusSerializer

Design Decisions:
    - Amounts are decimals with two places, serialized as strings
    - Contribution and payout amount checks live in the services so every
      caller gets them
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import serializers

from circles.models import Circle
from payments.models import (
    ConnectedAccount,
    Contribution,
    PaymentEvent,
    PayoutRequest,
)

User = get_user_model()


def _amount_field(**kwargs) -> serializers.DecimalField:
    return serializers.DecimalField(max_digits=12, decimal_places=2, **kwargs)


# =============================================================================
# Nested
# =============================================================================


class UserSummarySerializer(serializers.ModelSerializer):
    name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "name", "email"]

    def get_name(self, obj) -> str:
        return obj.get_full_name() or obj.get_username()


class PoolSummarySerializer(serializers.Serializer):
    balance = _amount_field()
    total_settled = _amount_field()
    total_paid_out = _amount_field()


# =============================================================================
# Payment Events
# =============================================================================


class PaymentEventCreateSerializer(serializers.Serializer):
    circle_id = serializers.PrimaryKeyRelatedField(
        queryset=Circle.objects.all(), source="circle"
    )
    title = serializers.CharField(max_length=200)
    amount = _amount_field(min_value=0.01)
    due_date = serializers.DateField()


class PaymentEventSerializer(serializers.ModelSerializer):
    circle_id = serializers.UUIDField(read_only=True)
    organizer = UserSummarySerializer(read_only=True)

    class Meta:
        model = PaymentEvent
        fields = [
            "id",
            "title",
            "amount",
            "due_date",
            "circle_id",
            "organizer",
            "pool_balance",
            "created_at",
        ]
        read_only_fields = fields


class ContributionSerializer(serializers.ModelSerializer):
    """
    Contribution as shown on the event page.

    is_manual tells admins whether the undo action applies.
    """

    member = UserSummarySerializer(read_only=True)
    is_manual = serializers.BooleanField(read_only=True)

    class Meta:
        model = Contribution
        fields = [
            "id",
            "member",
            "status",
            "method",
            "amount_paid",
            "is_manual",
            "paid_at",
        ]
        read_only_fields = fields


# =============================================================================
# Contribution actions
# =============================================================================


class AmountSerializer(serializers.Serializer):
    amount = _amount_field()


# =============================================================================
# Payouts
# =============================================================================


class PayoutCreateSerializer(serializers.Serializer):
    """Amount is optional; omitted means withdraw the whole pool."""

    amount = _amount_field(required=False, allow_null=True)


class PayoutRequestSerializer(serializers.ModelSerializer):
    organizer = UserSummarySerializer(read_only=True)
    requested_at = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = PayoutRequest
        fields = [
            "id",
            "amount",
            "status",
            "transfer_reference",
            "requested_at",
            "expected_at",
            "arrived_at",
            "failure_reason",
            "organizer",
        ]
        read_only_fields = fields


class OrganizerPayoutSerializer(serializers.ModelSerializer):
    requested_at = serializers.DateTimeField(source="created_at", read_only=True)
    event = serializers.SerializerMethodField()
    circle = serializers.SerializerMethodField()

    class Meta:
        model = PayoutRequest
        fields = [
            "id",
            "amount",
            "status",
            "requested_at",
            "expected_at",
            "arrived_at",
            "failure_reason",
            "event",
            "circle",
        ]
        read_only_fields = fields

    def get_event(self, obj: PayoutRequest) -> dict:
        return {"id": str(obj.event_id), "title": obj.event.title}

    def get_circle(self, obj: PayoutRequest) -> dict:
        circle = obj.event.circle
        return {"id": str(circle.id), "name": circle.name}


# =============================================================================
# Connect
# =============================================================================


class ConnectedAccountStatusSerializer(serializers.ModelSerializer):
    is_ready_for_payouts = serializers.BooleanField(read_only=True)

    class Meta:
        model = ConnectedAccount
        fields = [
            "stripe_account_id",
            "onboarding_status",
            "payouts_enabled",
            "details_submitted",
            "onboarded_at",
            "is_ready_for_payouts",
        ]
        read_only_fields = fields
