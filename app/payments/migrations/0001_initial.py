"""
Initial schema for payment events, contributions, payouts, connected
accounts and the webhook journal.
"""

import decimal
import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


def _timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
        (
            "id",
            models.UUIDField(
                default=uuid.uuid4,
                editable=False,
                help_text="Unique identifier for this record",
                primary_key=True,
                serialize=False,
            ),
        ),
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("circles", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentEvent",
            fields=_timestamps()
            + [
                (
                    "title",
                    models.CharField(
                        help_text="Display title of the payment event",
                        max_length=200,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Target amount per member",
                        max_digits=12,
                    ),
                ),
                (
                    "due_date",
                    models.DateField(
                        help_text="Date by which members are expected to pay"
                    ),
                ),
                (
                    "pool_balance",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Available pooled balance (mutated only by PoolBalanceService)",
                        max_digits=12,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version incremented on each write, including balance updates",
                    ),
                ),
                (
                    "circle",
                    models.ForeignKey(
                        help_text="Circle this payment event belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payment_events",
                        to="circles.circle",
                    ),
                ),
                (
                    "organizer",
                    models.ForeignKey(
                        help_text="User who created the event and may request payouts",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="organized_payment_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Event",
                "verbose_name_plural": "Payment Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["circle", "created_at"],
                        name="payevt_circle_created_idx",
                    ),
                    models.Index(
                        fields=["organizer", "created_at"],
                        name="payevt_organizer_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(pool_balance__gte=0),
                        name="payment_event_pool_balance_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0),
                        name="payment_event_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Contribution",
            fields=_timestamps()
            + [
                (
                    "amount_paid",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Cumulative amount settled by any method",
                        max_digits=12,
                    ),
                ),
                (
                    "processor_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Cumulative amount settled through the payment processor",
                        max_digits=12,
                    ),
                ),
                (
                    "manual_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Amount added by manual overrides since the last undo (reversible delta)",
                        max_digits=12,
                        null=True,
                    ),
                ),
                (
                    "method",
                    models.CharField(
                        choices=[("processor", "Payment Processor"), ("manual", "Manual")],
                        default="processor",
                        help_text="How the contribution was settled",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the contribution (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "settlement_reference",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Checkout session id of the latest external settlement",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the contribution was settled",
                        null=True,
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        help_text="Payment event this contribution belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="contributions",
                        to="payments.paymentevent",
                    ),
                ),
                (
                    "member",
                    models.ForeignKey(
                        help_text="Member owing this contribution",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="contributions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Contribution",
                "verbose_name_plural": "Contributions",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["event", "status"],
                        name="contrib_event_status_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("event", "member"),
                        name="unique_contribution_per_member",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount_paid__gte=0),
                        name="contribution_amount_paid_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(processor_amount__gte=0),
                        name="contribution_processor_amount_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PayoutRequest",
            fields=_timestamps()
            + [
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount reserved from the pool",
                        max_digits=12,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("in_transit", "In Transit"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payout request (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "transfer_reference",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Transfer ID (tr_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "expected_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the funds are expected to arrive",
                        null=True,
                    ),
                ),
                (
                    "arrived_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the transfer was confirmed paid",
                        null=True,
                    ),
                ),
                (
                    "failed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the transfer failed",
                        null=True,
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        help_text="Failure reason reported by the processor",
                        null=True,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON metadata",
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        help_text="Payment event whose pool is being withdrawn",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payout_requests",
                        to="payments.paymentevent",
                    ),
                ),
                (
                    "organizer",
                    models.ForeignKey(
                        help_text="Organizer receiving the payout",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payout Request",
                "verbose_name_plural": "Payout Requests",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["event", "status"],
                        name="payout_event_status_idx",
                    ),
                    models.Index(
                        fields=["organizer", "status"],
                        name="payout_organizer_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0),
                        name="payout_request_amount_positive",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(status__in=["pending", "in_transit"]),
                        fields=("event",),
                        name="payout_single_flight_per_event",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ConnectedAccount",
            fields=_timestamps()
            + [
                (
                    "stripe_account_id",
                    models.CharField(
                        help_text="Stripe Account ID (acct_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "onboarding_status",
                    models.CharField(
                        choices=[
                            ("not_started", "Not Started"),
                            ("in_progress", "In Progress"),
                            ("complete", "Complete"),
                            ("rejected", "Rejected"),
                        ],
                        db_index=True,
                        default="not_started",
                        help_text="Current Stripe Connect onboarding status",
                        max_length=20,
                    ),
                ),
                (
                    "payouts_enabled",
                    models.BooleanField(
                        default=False,
                        help_text="Whether Stripe has enabled payouts for this account",
                    ),
                ),
                (
                    "details_submitted",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the onboarding form has been submitted",
                    ),
                ),
                (
                    "onboarded_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When onboarding first completed",
                        null=True,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON metadata (e.g., country, requirements)",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        help_text="User this connected account belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="connected_account",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Connected Account",
                "verbose_name_plural": "Connected Accounts",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=_timestamps()
            + [
                (
                    "stripe_event_id",
                    models.CharField(
                        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe event type (e.g., 'transfer.created')",
                        max_length=100,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Full webhook payload from Stripe (JSON)"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("unresolved", "Unresolved"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the event was processed or marked unresolved",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Failure or unresolved reason",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of processing attempts",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="webhook_status_created_idx",
                    ),
                    models.Index(
                        fields=["event_type", "created_at"],
                        name="webhook_type_created_idx",
                    ),
                ],
            },
        ),
    ]
