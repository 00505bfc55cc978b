# src/infrastructure/backend/actor.py

from typing import Any, Dict, Optional, Protocol, Sequence

from src.domain.checkout import LineItem


class BackendActor(Protocol):
    """
    Remote backend interface. One call is one request/response;
    the backend is authoritative for locks, bookings and sessions.
    """

    async def lock_seat(self, offer_id: str, seat_selector: Optional[str] = None) -> str:
        ...

    async def create_checkout_session(
        self,
        items: Sequence[LineItem],
        success_url: str,
        cancel_url: str,
    ) -> Any:
        ...

    async def get_stripe_session_status(self, session_id: str) -> Any:
        ...

    async def create_booking(
        self,
        offer_id: str,
        lock_id: str,
        quantity: int,
        currency: str,
    ) -> str:
        ...

    async def confirm_booking(self, booking_id: str, session_id: str) -> None:
        ...

    async def cancel_booking(self, booking_id: str) -> None:
        ...

    async def get_booking(self, booking_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def get_event(self, event_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def get_ticket(self, ticket_id: str) -> Optional[Dict[str, Any]]:
        ...
