"""
Pytest fixtures for payment tests.

Provides a circle with an organizer, a group admin and two members, an
event on that circle, and a fake Stripe adapter installed on every
service that talks to Stripe.

Usage:
    def test_request_payout(funded_event, organizer, payout_account, fake_stripe):
        PayoutService.request_payout(funded_event.id, organizer)
        assert fake_stripe.transfers[0]["amount_cents"] == 10000
"""

from decimal import Decimal
from itertools import count

import pytest

from circles.tests.factories import (
    CircleFactory,
    MembershipFactory,
    UserFactory,
    WorkspaceMemberFactory,
)
from payments.adapters import (
    AccountLinkResult,
    CheckoutSessionResult,
    ConnectAccountResult,
    TransferResult,
)
from payments.services import (
    ConnectedAccountService,
    ContributionService,
    PayoutService,
)
from payments.tests.factories import ConnectedAccountFactory, PaymentEventFactory


# =============================================================================
# Fake Stripe
# =============================================================================


class FakeStripeAdapter:
    """
    In-memory stand-in for StripeAdapter.

    Records every call. Set transfer_error to make create_transfer raise,
    or on_transfer to run a callback (e.g. a webhook arriving mid-call)
    before the transfer returns or raises.
    """

    _ids = count(1)

    checkout_sessions: list[dict] = []
    transfers: list[dict] = []
    accounts: list[dict] = []
    transfer_error: Exception | None = None
    on_transfer = None

    @classmethod
    def reset(cls) -> None:
        cls.checkout_sessions = []
        cls.transfers = []
        cls.accounts = []
        cls.transfer_error = None
        cls.on_transfer = None

    @classmethod
    def create_checkout_session(cls, amount_cents, metadata, **kwargs):
        session_id = f"cs_test_{next(cls._ids)}"
        cls.checkout_sessions.append(
            {
                "id": session_id,
                "amount_cents": amount_cents,
                "metadata": metadata,
                **kwargs,
            }
        )
        return CheckoutSessionResult(
            id=session_id,
            url=f"https://checkout.stripe.com/c/pay/{session_id}",
            amount_cents=amount_cents,
            metadata=metadata,
        )

    @classmethod
    def create_transfer(
        cls,
        amount_cents,
        destination_account,
        idempotency_key,
        metadata=None,
        currency=None,
    ):
        cls.transfers.append(
            {
                "amount_cents": amount_cents,
                "destination_account": destination_account,
                "idempotency_key": idempotency_key,
                "metadata": metadata or {},
            }
        )
        if cls.on_transfer is not None:
            cls.on_transfer(metadata or {})
        if cls.transfer_error is not None:
            raise cls.transfer_error
        return TransferResult(
            id=f"tr_test_{next(cls._ids)}",
            amount_cents=amount_cents,
            currency=currency or "usd",
            destination_account=destination_account,
            metadata=metadata or {},
        )

    @classmethod
    def create_connect_account(cls, email, idempotency_key, country="US"):
        account_id = f"acct_test_{next(cls._ids)}"
        cls.accounts.append(
            {"id": account_id, "email": email, "idempotency_key": idempotency_key}
        )
        return ConnectAccountResult(id=account_id)

    @classmethod
    def create_account_link(cls, account_id, refresh_url, return_url):
        return AccountLinkResult(
            url=f"https://connect.stripe.com/setup/e/{account_id}",
            expires_at=None,
        )


@pytest.fixture
def fake_stripe():
    """Install FakeStripeAdapter on all payment services."""
    FakeStripeAdapter.reset()
    services = [ContributionService, PayoutService, ConnectedAccountService]
    for service in services:
        service.set_stripe_adapter(FakeStripeAdapter)
    yield FakeStripeAdapter
    for service in services:
        service.set_stripe_adapter(None)
    FakeStripeAdapter.reset()


# =============================================================================
# Circle Fixtures
# =============================================================================


@pytest.fixture
def circle(db):
    return CircleFactory()


@pytest.fixture
def organizer(circle):
    """Circle member who creates events and receives payouts."""
    user = UserFactory(username="organizer")
    MembershipFactory(circle=circle, user=user)
    return user


@pytest.fixture
def group_admin(circle):
    """Workspace admin; not a circle member, so owes no dues."""
    user = UserFactory(username="admin")
    WorkspaceMemberFactory(workspace=circle.workspace, user=user, admin=True)
    return user


@pytest.fixture
def member(circle):
    user = UserFactory(username="member")
    MembershipFactory(circle=circle, user=user)
    return user


@pytest.fixture
def other_member(circle):
    user = UserFactory(username="other_member")
    MembershipFactory(circle=circle, user=user)
    return user


@pytest.fixture
def outsider(db):
    return UserFactory(username="outsider")


# =============================================================================
# Payment Fixtures
# =============================================================================


@pytest.fixture
def event(circle, organizer, member, other_member):
    return PaymentEventFactory(circle=circle, organizer=organizer)


@pytest.fixture
def funded_event(circle, organizer, member, other_member):
    """Event whose pool already holds $100.00."""
    return PaymentEventFactory(
        circle=circle,
        organizer=organizer,
        pool_balance=Decimal("100.00"),
    )


@pytest.fixture
def payout_account(organizer):
    """Onboarded Connect account of the organizer."""
    return ConnectedAccountFactory(user=organizer)
