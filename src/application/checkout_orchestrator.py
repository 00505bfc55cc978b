import logging
from typing import List, Sequence

from src.domain.catalog import EventListing, TicketOffer, checkout_currency
from src.domain.checkout import (
    LineItem,
    SessionHandle,
    SessionStatus,
    parse_session_payload,
    parse_session_status,
)
from src.domain.currency import CurrencyConversionEngine
from src.domain.exceptions import BackendUnavailableError, SessionCreationFailedError
from src.infrastructure.backend.actor import BackendActor

logger = logging.getLogger(__name__)


class CheckoutOrchestrator:
    """Application service coordinating checkout sessions with the backend."""

    def __init__(self, backend: BackendActor, engine: CurrencyConversionEngine):
        self.backend = backend
        self.engine = engine

    def build_line_items(
        self,
        listing: EventListing,
        offer: TicketOffer,
        quantity: int,
        preferred_currency: str,
    ) -> List[LineItem]:
        currency = checkout_currency(listing, preferred_currency, offer.base_currency)

        if currency == offer.base_currency:
            unit_price = offer.price.amount
        else:
            unit_price = self.engine.to_minor_units(
                self.engine.convert(offer.price, currency),
                currency,
            )

        return [
            LineItem(
                product_name=f"{listing.title} — {offer.name}",
                product_description=_describe(listing),
                currency=currency,
                quantity=quantity,
                unit_price_minor=unit_price,
            )
        ]

    async def create_session(
        self,
        items: Sequence[LineItem],
        success_url: str,
        cancel_url: str,
    ) -> SessionHandle:
        """
        Requests a checkout session. Failures are surfaced, never retried.
        """
        try:
            raw = await self.backend.create_checkout_session(items, success_url, cancel_url)
        except BackendUnavailableError as exc:
            raise SessionCreationFailedError(str(exc)) from exc

        handle = parse_session_payload(raw)
        logger.info("Checkout session created. session_id=%s", handle.session_id)
        return handle

    async def resolve_session(self, session_id: str) -> SessionStatus:
        """
        One backend query per call; the caller owns the poll cadence.
        """
        payload = await self.backend.get_stripe_session_status(session_id)
        status = parse_session_status(payload)
        logger.info(
            "Resolved checkout session. session_id=%s status=%s",
            session_id,
            type(status).__name__,
        )
        return status


def _describe(listing: EventListing) -> str:
    place = ", ".join(part for part in (listing.venue, listing.city) if part)
    if listing.event_date is None:
        return place
    when = listing.event_date.strftime("%a, %b %d, %Y, %I:%M %p")
    return f"{when} · {place}" if place else when
