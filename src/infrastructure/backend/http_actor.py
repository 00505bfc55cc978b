# src/infrastructure/backend/http_actor.py

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from src.config import BACKEND_BASE_URL, BACKEND_TIMEOUT_SECONDS
from src.domain.checkout import LineItem
from src.domain.exceptions import BackendUnavailableError

logger = logging.getLogger(__name__)


class HttpBackendActor:
    """
    BackendActor over HTTP: every method is
    POST {base_url}/rpc/{method} with named JSON arguments.
    """

    def __init__(
        self,
        base_url: str = BACKEND_BASE_URL,
        timeout: float = BACKEND_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, **arguments: Any) -> Any:
        try:
            response = await self._client.post(f"/rpc/{method}", json=arguments)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Backend call %s failed: %s", method, exc)
            raise BackendUnavailableError(f"Backend call {method} failed: {exc}") from exc

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def lock_seat(self, offer_id: str, seat_selector: Optional[str] = None) -> str:
        result = await self._call("lockSeat", offerId=offer_id, seatSelector=seat_selector)
        return str(result)

    async def create_checkout_session(
        self,
        items: Sequence[LineItem],
        success_url: str,
        cancel_url: str,
    ) -> Any:
        return await self._call(
            "createCheckoutSession",
            items=[item.to_payload() for item in items],
            successUrl=success_url,
            cancelUrl=cancel_url,
        )

    async def get_stripe_session_status(self, session_id: str) -> Any:
        return await self._call("getStripeSessionStatus", sessionId=session_id)

    async def create_booking(
        self,
        offer_id: str,
        lock_id: str,
        quantity: int,
        currency: str,
    ) -> str:
        result = await self._call(
            "createBooking",
            offerId=offer_id,
            lockId=lock_id,
            quantity=quantity,
            currency=currency,
        )
        return str(result)

    async def confirm_booking(self, booking_id: str, session_id: str) -> None:
        await self._call("confirmBooking", bookingId=booking_id, sessionId=session_id)

    async def cancel_booking(self, booking_id: str) -> None:
        await self._call("cancelBooking", bookingId=booking_id)

    async def get_booking(self, booking_id: str) -> Optional[Dict[str, Any]]:
        return await self._call("getBookingById", bookingId=booking_id)

    async def get_event(self, event_id: str) -> Optional[Dict[str, Any]]:
        return await self._call("getEventById", eventId=event_id)

    async def get_ticket(self, ticket_id: str) -> Optional[Dict[str, Any]]:
        return await self._call("getTicketById", ticketId=ticket_id)
