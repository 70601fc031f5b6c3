from decimal import Decimal

import httpx
import pytest
from httpx import ASGITransport

from lawnly.exceptions.custom import ConflictError
from lawnly.schemas.stripe import StripeAccount, StripePayout
from lawnly.schemas.supabase import (
    Address,
    AuthUser,
    Booking,
    BookingStatus,
    Contractor,
    Dispute,
    Notification,
    Review,
)
from lawnly.services.booking import BookingStateMachine
from lawnly.services.notifications import NotificationService
from lawnly.services.payment_accounts import PaymentAccountService
from lawnly.services.payout import PayoutCoordinator
from lawnly.services.quote import QuoteService
from lawnly.services.supabase import COMPLETED_STATUSES
from lawnly.services.tier_promotion import TierPromotionEvaluator
from lawnly.tasks import FireAndForget

SUPABASE_URL = "https://test.supabase.co"


def _matches(row, match: dict | None) -> bool:
    for column, expected in (match or {}).items():
        actual = getattr(row, column)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


class InMemorySupabase:
    """Stand-in for SupabaseService backed by dicts, with the same
    uniqueness and compare-and-set behaviour as the real tables."""

    def __init__(self) -> None:
        self.users: dict[str, AuthUser] = {}
        self.emails: dict[str, str] = {}
        self.profiles: dict[str, str] = {}
        self.addresses: dict[str, Address] = {}
        self.pricing_rows: list[dict] = []
        self.bookings: dict[str, Booking] = {}
        self.contractors: dict[str, Contractor] = {}
        self.reviews: list[Review] = []
        self.disputes: list[str] = []
        self.dispute_rows: list[Dispute] = []
        self.notifications: list[Notification] = []
        self.fail_notifications = False

    # seeding helpers

    def add_booking(self, **fields) -> Booking:
        defaults = {
            "id": f"booking-{len(self.bookings) + 1}",
            "user_id": "customer-1",
            "contractor_id": "contractor-1",
            "status": BookingStatus.completed_pending_verification,
            "total_price": Decimal("100.00"),
        }
        booking = Booking(**{**defaults, **fields})
        self.bookings[booking.id] = booking
        return booking

    def add_contractor(self, **fields) -> Contractor:
        defaults = {
            "id": f"contractor-{len(self.contractors) + 1}",
            "user_id": f"contractor-user-{len(self.contractors) + 1}",
            "approval_status": "approved",
            "stripe_account_id": "acct_123",
        }
        contractor = Contractor(**{**defaults, **fields})
        self.contractors[contractor.id] = contractor
        return contractor

    def add_completed_jobs(self, contractor_id: str, count: int, ratings: list[int] = ()) -> None:
        for _ in range(count):
            self.add_booking(
                id=f"job-{len(self.bookings) + 1}",
                contractor_id=contractor_id,
                status=BookingStatus.completed,
            )
        for index, rating in enumerate(ratings):
            self.reviews.append(Review(
                user_id="customer-1",
                contractor_id=contractor_id,
                booking_id=f"rated-{contractor_id}-{index}",
                rating=rating,
            ))

    # identity

    async def get_user(self, access_token: str) -> AuthUser:
        return self.users[access_token]

    async def get_user_email(self, user_id: str) -> str | None:
        return self.emails.get(user_id)

    async def get_profile_name(self, user_id: str) -> str | None:
        return self.profiles.get(user_id)

    # quotes

    async def get_address(self, address_id: str, user_id: str) -> Address | None:
        address = self.addresses.get(address_id)
        if address is None or address.user_id != user_id:
            return None
        return address

    async def get_pricing_settings(self) -> list[dict]:
        return list(self.pricing_rows)

    # bookings

    async def get_booking(self, booking_id: str) -> Booking | None:
        return self.bookings.get(booking_id)

    async def update_booking(self, booking_id: str, fields: dict, match: dict | None = None) -> Booking | None:
        booking = self.bookings.get(booking_id)
        if booking is None or not _matches(booking, match):
            return None
        updated = Booking(**{**booking.model_dump(), **fields})
        self.bookings[booking_id] = updated
        return updated

    async def count_completed_bookings(self, contractor_id: str | None = None) -> int:
        return sum(
            1 for b in self.bookings.values()
            if b.status in COMPLETED_STATUSES
            and (contractor_id is None or b.contractor_id == contractor_id)
        )

    # contractors

    async def get_contractor(self, contractor_id: str) -> Contractor | None:
        return self.contractors.get(contractor_id)

    async def get_contractor_by_user(self, user_id: str) -> Contractor | None:
        return next((c for c in self.contractors.values() if c.user_id == user_id), None)

    async def list_contractors(self, tiers) -> list[Contractor]:
        tiers = set(tiers)
        return [
            c for c in self.contractors.values()
            if c.tier in tiers and c.is_active and c.approval_status == "approved"
        ]

    async def update_contractor(self, contractor_id: str, fields: dict, match: dict | None = None) -> Contractor | None:
        contractor = self.contractors.get(contractor_id)
        if contractor is None or not _matches(contractor, match):
            return None
        updated = Contractor(**{**contractor.model_dump(), **fields})
        self.contractors[contractor_id] = updated
        return updated

    async def update_contractors_by_account(self, account_id: str, fields: dict) -> int:
        ids = [c.id for c in self.contractors.values() if c.stripe_account_id == account_id]
        for contractor_id in ids:
            await self.update_contractor(contractor_id, fields)
        return len(ids)

    async def get_review_ratings(self, contractor_id: str) -> list[int]:
        return [r.rating for r in self.reviews if r.contractor_id == contractor_id]

    async def count_disputes(self, contractor_id: str) -> int:
        return sum(
            1 for booking_id in self.disputes
            if booking_id in self.bookings and self.bookings[booking_id].contractor_id == contractor_id
        )

    async def insert_review(self, review: Review) -> None:
        for existing in self.reviews:
            if (existing.contractor_id, existing.booking_id) == (review.contractor_id, review.booking_id):
                raise ConflictError("duplicate key value violates unique constraint")
        self.reviews.append(review)

    async def insert_dispute(self, dispute: Dispute) -> None:
        self.dispute_rows.append(dispute)
        self.disputes.append(dispute.booking_id)

    async def insert_notification(self, notification: Notification) -> None:
        if self.fail_notifications:
            raise RuntimeError("notifications table unavailable")
        self.notifications.append(notification)


class FakeStripe:
    """Honours idempotency keys the way the provider does."""

    def __init__(self) -> None:
        self.payouts: dict[str, StripePayout] = {}
        self.transfers: list[dict] = []
        self.fail_with: Exception | None = None
        self.accounts: dict[str, StripeAccount] = {}
        self.created_accounts: list[str] = []

    async def create_payout(self, account_id, amount_cents, currency, metadata, idempotency_key) -> StripePayout:
        if self.fail_with is not None:
            raise self.fail_with
        if idempotency_key in self.payouts:
            return self.payouts[idempotency_key]
        self.transfers.append({"account": account_id, "amount": amount_cents, "metadata": metadata})
        payout = StripePayout(id=f"po_{len(self.transfers)}", amount=amount_cents, currency=currency)
        self.payouts[idempotency_key] = payout
        return payout

    async def create_express_account(self, email, country) -> str:
        account_id = f"acct_new_{len(self.created_accounts) + 1}"
        self.created_accounts.append(account_id)
        self.accounts[account_id] = StripeAccount(id=account_id)
        return account_id

    async def retrieve_account(self, account_id: str) -> StripeAccount:
        return self.accounts.get(account_id, StripeAccount(id=account_id))

    async def create_account_link(self, account_id, refresh_url, return_url) -> str:
        return f"https://connect.stripe.com/setup/{account_id}"


class FakeResend:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send_email(self, to: str, subject: str, html: str) -> str:
        self.sent.append({"to": to, "subject": subject, "html": html})
        return f"email-{len(self.sent)}"


@pytest.fixture
def store():
    return InMemorySupabase()


@pytest.fixture
def stripe():
    return FakeStripe()


@pytest.fixture
def resend():
    return FakeResend()


@pytest.fixture
def dispatcher():
    return FireAndForget()


@pytest.fixture
def notifier(store, dispatcher, resend):
    return NotificationService(store, dispatcher, resend=resend)


@pytest.fixture
def payouts(store, stripe):
    return PayoutCoordinator(store, stripe, currency="aud", platform_fee_rate=0.15)


@pytest.fixture
def booking_service(store, payouts, notifier, dispatcher):
    return BookingStateMachine(store, payouts, notifier, dispatcher)


@pytest.fixture
def quote_service(store):
    return QuoteService(store)


@pytest.fixture
def evaluator(store, notifier):
    return TierPromotionEvaluator(store, notifier)


@pytest.fixture
def payment_accounts(store, stripe):
    return PaymentAccountService(store, stripe, country="AU", return_url="https://lawnly.test/contractor")


@pytest.fixture
def mock_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", SUPABASE_URL)
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "test-service-key")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "")
    monkeypatch.setenv("RESEND_API_KEY", "")


@pytest.fixture
async def client(mock_env):
    from lawnly.main import app, lifespan

    async with lifespan(app):
        async with httpx.AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as c:
            yield c
