"""
Payment admin configuration.

The admin is read-mostly: balances and FSM-managed statuses are never
edited here. Operators can audit pools and reprocess failed webhooks.
"""

from django.contrib import admin

from payments.models import (
    ConnectedAccount,
    Contribution,
    PaymentEvent,
    PayoutRequest,
    WebhookEvent,
)
from payments.services import PoolBalanceService
from payments.state_machines import WebhookEventStatus
from payments.tasks import process_webhook_event

__all__ = [
    "ConnectedAccountAdmin",
    "ContributionAdmin",
    "PaymentEventAdmin",
    "PayoutRequestAdmin",
    "WebhookEventAdmin",
]


# =============================================================================
# Payment Events & Contributions
# =============================================================================


class ContributionInline(admin.TabularInline):
    model = Contribution
    extra = 0
    fields = ["member", "status", "method", "amount_paid", "manual_amount", "paid_at"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(PaymentEvent)
class PaymentEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentEvent.

    pool_balance is read-only; it changes only through PoolBalanceService.
    """

    list_display = [
        "id",
        "title",
        "circle",
        "organizer",
        "amount",
        "pool_balance",
        "due_date",
        "created_at",
    ]
    list_filter = ["due_date", "created_at"]
    search_fields = ["id", "title", "circle__name", "organizer__email"]
    raw_id_fields = ["circle", "organizer"]
    readonly_fields = ["id", "pool_balance", "version", "created_at", "updated_at"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [ContributionInline]
    actions = ["audit_pool"]

    @admin.action(description="Audit pool balance against contributions and payouts")
    def audit_pool(self, request, queryset):
        """Recompute each selected pool and report drift."""
        drifted = 0
        for event in queryset:
            result = PoolBalanceService.audit(event)
            if not result.is_consistent:
                drifted += 1
                self.message_user(
                    request,
                    f"{event.title}: balance {result.balance}, expected "
                    f"{result.expected_balance} (drift {result.drift})",
                    level="error",
                )
        self.message_user(
            request,
            f"Audited {queryset.count()} events, {drifted} with drift.",
        )


@admin.register(Contribution)
class ContributionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "event",
        "member",
        "status",
        "method",
        "amount_paid",
        "paid_at",
    ]
    list_filter = ["status", "method"]
    search_fields = ["id", "settlement_reference", "member__email", "event__title"]
    raw_id_fields = ["event", "member"]
    readonly_fields = [
        "id",
        "status",
        "method",
        "amount_paid",
        "processor_amount",
        "manual_amount",
        "settlement_reference",
        "paid_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for contributions (audit trail)."""
        return False


# =============================================================================
# Payouts
# =============================================================================


@admin.register(PayoutRequest)
class PayoutRequestAdmin(admin.ModelAdmin):
    """
    Admin configuration for PayoutRequest.

    Provides visibility into payout status and history.
    """

    list_display = [
        "id",
        "event",
        "organizer",
        "amount",
        "status",
        "transfer_reference",
        "arrived_at",
        "created_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["id", "transfer_reference", "event__title", "organizer__email"]
    raw_id_fields = ["event", "organizer"]
    readonly_fields = [
        "id",
        "event",
        "organizer",
        "amount",
        "status",
        "transfer_reference",
        "expected_at",
        "arrived_at",
        "failed_at",
        "failure_reason",
        "version",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "event", "organizer", "amount", "status"),
            },
        ),
        (
            "Stripe Details",
            {
                "fields": ("transfer_reference", "expected_at", "arrived_at"),
            },
        ),
        (
            "Failure Info",
            {
                "fields": ("failed_at", "failure_reason"),
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

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payouts (audit trail)."""
        return False


@admin.register(ConnectedAccount)
class ConnectedAccountAdmin(admin.ModelAdmin):
    """Visibility into Stripe Connect onboarding of organizers."""

    list_display = [
        "id",
        "user",
        "stripe_account_id",
        "onboarding_status",
        "payouts_enabled",
        "details_submitted",
        "onboarded_at",
    ]
    list_filter = ["onboarding_status", "payouts_enabled"]
    search_fields = ["id", "stripe_account_id", "user__email"]
    raw_id_fields = ["user"]
    readonly_fields = ["id", "created_at", "updated_at", "version", "onboarded_at"]
    ordering = ["-created_at"]


# =============================================================================
# Webhooks
# =============================================================================


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Webhook events are immutable once received. FAILED and UNRESOLVED
    events can be queued for reprocessing.
    """

    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "stripe_event_id",
        "event_type",
        "payload",
        "status",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["reprocess"]

    @admin.action(description="Reprocess selected failed or unresolved events")
    def reprocess(self, request, queryset):
        """Reset selected events to PENDING and queue them."""
        events = list(
            queryset.filter(
                status__in=[WebhookEventStatus.FAILED, WebhookEventStatus.UNRESOLVED]
            )
        )
        for webhook_event in events:
            webhook_event.status = WebhookEventStatus.PENDING
            webhook_event.save(update_fields=["status", "updated_at"])
            process_webhook_event.delay(str(webhook_event.id))
        self.message_user(request, f"Queued {len(events)} events for reprocessing.")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False
