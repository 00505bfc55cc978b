import os

# Keep the preference store in memory for the whole test session.
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlalchemy.orm import sessionmaker

from src.application.checkout_orchestrator import CheckoutOrchestrator
from src.application.currency_preference import CurrencyPreferenceService
from src.domain.catalog import BackendEvent, TicketOffer, TicketType
from src.domain.currency import CurrencyConversionEngine, Money
from src.domain.exceptions import BackendUnavailableError
from src.infrastructure.clock import ManualTickScheduler
from src.infrastructure.db.models import ClientPreference  # noqa: F401
from src.infrastructure.db.session import Base, build_engine


SESSION_URL = "https://checkout.stripe.com/c/pay/cs_test_123"


class FakeBackend:
    """
    In-memory backend actor. Records every call and serves
    canned events, tickets, bookings and session statuses.
    """

    def __init__(self):
        self.calls = []
        self.unavailable = set()
        self.events = {}
        self.tickets = {}
        self.bookings = {}
        self.session_payload = {"url": SESSION_URL, "id": "cs_test_123"}
        self.session_statuses = [{"completed": {"userPrincipal": "user-1", "response": "paid"}}]
        self._booking_seq = 0

    def _record(self, name, **arguments):
        self.calls.append((name, arguments))
        if name in self.unavailable:
            raise BackendUnavailableError(f"Backend call {name} failed: connection refused")

    def called(self, name):
        return [arguments for call, arguments in self.calls if call == name]

    async def lock_seat(self, offer_id, seat_selector=None):
        self._record("lock_seat", offer_id=offer_id, seat_selector=seat_selector)
        return f"lock-{offer_id}"

    async def create_checkout_session(self, items, success_url, cancel_url):
        self._record(
            "create_checkout_session",
            items=list(items),
            success_url=success_url,
            cancel_url=cancel_url,
        )
        return self.session_payload

    async def get_stripe_session_status(self, session_id):
        self._record("get_stripe_session_status", session_id=session_id)
        if len(self.session_statuses) > 1:
            return self.session_statuses.pop(0)
        return self.session_statuses[0]

    async def create_booking(self, offer_id, lock_id, quantity, currency):
        self._record(
            "create_booking",
            offer_id=offer_id,
            lock_id=lock_id,
            quantity=quantity,
            currency=currency,
        )
        self._booking_seq += 1
        booking_id = f"booking-{self._booking_seq}"
        self.bookings[booking_id] = {
            "id": booking_id,
            "status": {"pending": None},
            "quantity": quantity,
            "totalAmount": 0,
            "currency": currency,
            "createdAt": 1_760_000_000_000_000_000,
            "fraudScore": 0,
        }
        return booking_id

    async def confirm_booking(self, booking_id, session_id):
        self._record("confirm_booking", booking_id=booking_id, session_id=session_id)
        self.bookings[booking_id]["status"] = {"confirmed": None}
        self.bookings[booking_id]["stripeSessionId"] = session_id

    async def cancel_booking(self, booking_id):
        self._record("cancel_booking", booking_id=booking_id)
        self.bookings[booking_id]["status"] = {"cancelled": None}

    async def get_booking(self, booking_id):
        self._record("get_booking", booking_id=booking_id)
        return self.bookings.get(booking_id)

    async def get_event(self, event_id):
        self._record("get_event", event_id=event_id)
        return self.events.get(event_id)

    async def get_ticket(self, ticket_id):
        self._record("get_ticket", ticket_id=ticket_id)
        return self.tickets.get(ticket_id)


@pytest.fixture
def fake_backend():
    backend = FakeBackend()
    backend.events["evt-1"] = {
        "id": "evt-1",
        "title": "Neon Nights Live",
        "venue": "NSCI Dome",
        "city": "Mumbai",
        "eventDate": "2026-12-05T19:30:00+05:30",
        "baseCurrency": "INR",
        "multiCurrencyEnabled": True,
        "supportedCurrencies": ["INR", "USD", "EUR"],
    }
    backend.tickets["tkt-1"] = {
        "id": "tkt-1",
        "eventId": "evt-1",
        "name": "Gold Pass",
        "price": 490000,
        "baseCurrency": "INR",
        "availableQuantity": 25,
        "totalQuantity": 100,
        "ticketType": "numberedSeat",
    }
    return backend


@pytest.fixture
def currency_engine():
    return CurrencyConversionEngine()


@pytest.fixture
def session_factory():
    store = build_engine("sqlite://")
    Base.metadata.create_all(bind=store)
    yield sessionmaker(bind=store, autoflush=False, autocommit=False)
    store.dispose()


@pytest.fixture
def preferences(currency_engine, session_factory):
    return CurrencyPreferenceService(currency_engine, session_factory, locale_tag="en_IN")


@pytest.fixture
def orchestrator(fake_backend, currency_engine):
    return CheckoutOrchestrator(fake_backend, currency_engine)


@pytest.fixture
def scheduler():
    return ManualTickScheduler()


@pytest.fixture
def multi_currency_event():
    return BackendEvent(
        id="evt-1",
        title="Neon Nights Live",
        venue="NSCI Dome",
        city="Mumbai",
        event_date=None,
        base_currency="INR",
        multi_currency_enabled=True,
        supported_currencies=("INR", "USD", "EUR"),
    )


@pytest.fixture
def single_currency_event():
    return BackendEvent(
        id="evt-2",
        title="Sunburn Arena",
        venue="Jio World Garden",
        city="Mumbai",
        event_date=None,
        base_currency="INR",
    )


@pytest.fixture
def gold_offer():
    return TicketOffer(
        id="tkt-1",
        event_id="evt-1",
        name="Gold Pass",
        price=Money(amount=490000, currency="INR"),
        available_quantity=25,
        total_quantity=100,
        ticket_type=TicketType.NUMBERED_SEAT,
    )
