# src/domain/catalog.py

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from src.domain.booking_status import parse_backend_time
from src.domain.currency import Money, is_supported

MAX_TICKETS_PER_BOOKING = 10
MIN_TICKETS_PER_BOOKING = 1


class TicketType(str, Enum):
    NUMBERED_SEAT = "numberedSeat"
    GENERAL_ADMISSION = "generalAdmission"
    TIME_SLOT = "timeSlot"


@dataclass(frozen=True)
class TicketOffer:
    id: str
    event_id: str
    name: str
    price: Money
    available_quantity: int
    total_quantity: int
    ticket_type: TicketType = TicketType.GENERAL_ADMISSION

    @property
    def base_currency(self) -> str:
        return self.price.currency

    def clamp_quantity(self, quantity: int) -> int:
        upper = min(MAX_TICKETS_PER_BOOKING, self.available_quantity)
        return max(MIN_TICKETS_PER_BOOKING, min(upper, quantity))

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TicketOffer":
        try:
            ticket_type = TicketType(payload.get("ticketType", TicketType.GENERAL_ADMISSION.value))
        except ValueError:
            ticket_type = TicketType.GENERAL_ADMISSION
        return cls(
            id=str(payload["id"]),
            event_id=str(payload["eventId"]),
            name=payload["name"],
            price=Money(
                amount=int(payload["price"]),
                currency=str(payload.get("baseCurrency") or "INR").upper(),
            ),
            available_quantity=int(payload.get("availableQuantity", 0)),
            total_quantity=int(payload.get("totalQuantity", 0)),
            ticket_type=ticket_type,
        )


@dataclass(frozen=True)
class BackendEvent:
    """Event sourced from the backend catalog."""

    id: str
    title: str
    venue: str
    city: str
    event_date: Optional[datetime]
    base_currency: str
    multi_currency_enabled: bool = False
    supported_currencies: Tuple[str, ...] = ()

    kind = "backend"

    @property
    def is_demo(self) -> bool:
        return False


@dataclass(frozen=True)
class DemoEvent:
    """Locally seeded sample event. Never multi-currency, never booked on the backend."""

    id: str
    title: str
    venue: str
    city: str
    event_date: Optional[datetime]
    base_currency: str = "INR"

    kind = "demo"

    @property
    def is_demo(self) -> bool:
        return True

    @property
    def multi_currency_enabled(self) -> bool:
        return False

    @property
    def supported_currencies(self) -> Tuple[str, ...]:
        return ()


EventListing = Union[BackendEvent, DemoEvent]


def listing_from_payload(payload: Dict[str, Any]) -> EventListing:
    """
    Resolves the listing variant once, at flow entry.
    """
    common = dict(
        id=str(payload["id"]),
        title=payload.get("title", ""),
        venue=payload.get("venue", ""),
        city=payload.get("city", ""),
        event_date=parse_backend_time(payload.get("eventDate")),
        base_currency=str(payload.get("baseCurrency") or "INR").upper(),
    )
    if payload.get("isDemo"):
        return DemoEvent(**common)

    return BackendEvent(
        **common,
        multi_currency_enabled=bool(payload.get("multiCurrencyEnabled", False)),
        supported_currencies=tuple(
            str(code).upper() for code in payload.get("supportedCurrencies") or ()
        ),
    )


def checkout_currency(
    listing: EventListing,
    preferred: str,
    base_currency: Optional[str] = None,
) -> str:
    """
    The preferred currency is only used when the listing opted
    into multi-currency and lists it; otherwise the base currency
    (the offer's, when given, else the listing's).
    """
    if (
        listing.multi_currency_enabled
        and preferred in listing.supported_currencies
        and is_supported(preferred)
    ):
        return preferred
    return base_currency or listing.base_currency


def resolve_display_currency(preferred: str, listing: Optional[EventListing] = None) -> str:
    # Unsupported codes fall back to the amount's own currency at render time.
    if listing is None:
        return preferred
    return checkout_currency(listing, preferred)
