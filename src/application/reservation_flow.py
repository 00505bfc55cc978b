import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote
from uuid import uuid4

from src.application.checkout_orchestrator import CheckoutOrchestrator
from src.application.currency_preference import CurrencyPreferenceService
from src.config import (
    CANCEL_URL,
    SEAT_LOCK_TTL_SECONDS,
    SESSION_POLL_ATTEMPTS,
    SESSION_POLL_DELAY_SECONDS,
    SUCCESS_URL,
)
from src.domain.booking_status import (
    Booking,
    BookingAction,
    BookingProjection,
    BookingStatusProjector,
)
from src.domain.catalog import EventListing, TicketOffer, listing_from_payload, resolve_display_currency
from src.domain.checkout import Completed, Failed, LineItem
from src.domain.currency import PriceBadge
from src.domain.exceptions import (
    BackendUnavailableError,
    FlowNotFoundError,
    InvalidFlowTransitionError,
    LockExpiredError,
    MalformedSessionResponseError,
    SessionCreationFailedError,
    SessionResolutionFailedError,
)
from src.domain.flow import FlowStateMachine, FlowStep
from src.domain.seat_lock import Expired, SeatLock, SeatLockTimer
from src.infrastructure.backend.actor import BackendActor
from src.infrastructure.clock import TickScheduler, TickSubscription
from src.infrastructure.demo_catalog import find_demo_event, find_demo_ticket, is_demo_id

logger = logging.getLogger(__name__)

LOCK_EXPIRED_NOTICE = "Seat lock has expired. Please go back and try again."
PAYMENT_CANCELLED_NOTICE = (
    "Your payment was cancelled. Your seat lock has been released. "
    "You can try booking again anytime."
)
PAYMENT_FAILED_NOTICE = "Payment failed. Your seat lock has been released. Please try booking again."

_EDITABLE_STEPS = {FlowStep.REVIEW, FlowStep.ESCROW_NOTICE}

# Expired flow ids remembered so late lookups report the expiry.
EXPIRED_FLOW_MEMORY = 1024


@dataclass(frozen=True)
class PriceSummary:
    quantity: int
    display_currency: str
    unit: PriceBadge
    total: PriceBadge


@dataclass(frozen=True)
class CheckoutRedirect:
    url: str
    session_id: Optional[str]
    booking_id: Optional[str]
    items: Tuple[LineItem, ...]


async def resolve_selection(
    backend: BackendActor,
    event_id: str,
    ticket_id: str,
) -> Tuple[EventListing, TicketOffer]:
    """
    Loads the listing and offer for a ticket selection. Demo
    listings come from the local catalog, everything else from
    the backend.
    """
    if is_demo_id(event_id):
        listing = find_demo_event(event_id)
        offer = find_demo_ticket(event_id, ticket_id)
    else:
        event_payload = await backend.get_event(event_id)
        ticket_payload = await backend.get_ticket(ticket_id)
        listing = listing_from_payload(event_payload) if event_payload else None
        offer = TicketOffer.from_payload(ticket_payload) if ticket_payload else None

    if listing is None:
        raise ValueError("Event not found")
    if offer is None or offer.event_id != listing.id:
        raise ValueError("Ticket not found for this event")
    return listing, offer


class ReservationFlowController:
    """
    One reservation flow: review -> escrow notice -> processing -> redirect.

    Owns exactly one seat lock and its tick subscription. The
    subscription is acquired in start() and released on close(),
    on redirect, or when the lock expires.
    """

    def __init__(
        self,
        listing: EventListing,
        offer: TicketOffer,
        quantity: int,
        orchestrator: CheckoutOrchestrator,
        preferences: CurrencyPreferenceService,
        scheduler: TickScheduler,
        success_url: str = SUCCESS_URL,
        cancel_url: str = CANCEL_URL,
        ttl_seconds: int = SEAT_LOCK_TTL_SECONDS,
        flow_id: Optional[str] = None,
    ):
        self.id = flow_id or str(uuid4())
        self.listing = listing
        self.offer = offer
        self.quantity = offer.clamp_quantity(quantity)
        self.orchestrator = orchestrator
        self.preferences = preferences
        self.scheduler = scheduler
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.ttl_seconds = ttl_seconds
        self.books_on_backend = not listing.is_demo
        self.on_finished: Optional[Callable[["ReservationFlowController"], None]] = None

        self.step = FlowStep.REVIEW
        self.lock: Optional[SeatLock] = None
        self.timer: Optional[SeatLockTimer] = None
        self.notice: Optional[str] = None
        self.booking_id: Optional[str] = None
        self._booked_selection: Optional[Tuple[int, str]] = None
        self.redirect: Optional[CheckoutRedirect] = None
        self._subscription: Optional[TickSubscription] = None

    @property
    def backend(self) -> BackendActor:
        return self.orchestrator.backend

    @property
    def is_ticking(self) -> bool:
        return self._subscription is not None and self._subscription.active

    async def start(self) -> SeatLock:
        if self.lock is not None:
            return self.lock

        if self.books_on_backend:
            lock_id = await self.backend.lock_seat(self.offer.id)
        else:
            lock_id = f"local-{uuid4()}"

        self.lock = SeatLock(id=lock_id, offer_id=self.offer.id, ttl_seconds=self.ttl_seconds)
        self.timer = SeatLockTimer(self.lock)
        self._subscription = self.scheduler.subscribe(self._on_tick)
        logger.info(
            "Seat lock acquired. flow_id=%s lock_id=%s offer_id=%s ttl=%s",
            self.id,
            lock_id,
            self.offer.id,
            self.ttl_seconds,
        )
        return self.lock

    def _on_tick(self) -> None:
        if self.timer is None:
            return
        if isinstance(self.timer.on_tick(), Expired):
            logger.info("Seat lock expired. flow_id=%s lock_id=%s", self.id, self.lock.id)
            self.notice = LOCK_EXPIRED_NOTICE
            self._release_timer()
            self._finish()

    def _release_timer(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _finish(self) -> None:
        if self.on_finished is not None:
            self.on_finished(self)

    def close(self) -> None:
        """
        Tears the flow down. The backend lock is left to expire on its own.
        """
        self._release_timer()
        logger.info("Reservation flow closed. flow_id=%s step=%s", self.id, self.step.value)

    def _transition(self, to_step: FlowStep) -> None:
        FlowStateMachine.validate_transition(self.step, to_step)
        self.step = to_step

    def _ensure_editable(self) -> None:
        if self.step not in _EDITABLE_STEPS:
            raise InvalidFlowTransitionError(from_step=self.step.value, to_step=FlowStep.REVIEW.value)

    def set_quantity(self, quantity: int) -> int:
        self._ensure_editable()
        self.quantity = self.offer.clamp_quantity(quantity)
        return self.quantity

    def price_summary(self) -> PriceSummary:
        engine = self.orchestrator.engine
        display_currency = resolve_display_currency(self.preferences.get(), self.listing)
        unit = engine.price_badge(self.offer.price, display_currency)
        total = engine.price_badge(self.offer.price.scale(self.quantity), display_currency)
        return PriceSummary(
            quantity=self.quantity,
            display_currency=unit.currency,
            unit=unit,
            total=total,
        )

    def show_escrow_notice(self) -> None:
        self._transition(FlowStep.ESCROW_NOTICE)

    def back_to_review(self) -> None:
        if self.step == FlowStep.REVIEW:
            return
        self._transition(FlowStep.REVIEW)

    async def proceed(self) -> CheckoutRedirect:
        """
        Spends the seat lock: creates the booking (backend listings
        only) and the checkout session, then hands back the redirect.
        """
        if self.timer is None or self.lock is None:
            raise InvalidFlowTransitionError(from_step="UNLOCKED", to_step=FlowStep.PROCESSING.value)

        try:
            self.timer.ensure_active()
        except LockExpiredError:
            self.notice = LOCK_EXPIRED_NOTICE
            if self.step != FlowStep.REVIEW:
                self._transition(FlowStep.REVIEW)
            raise

        previous_step = self.step
        self._transition(FlowStep.PROCESSING)
        self.notice = None

        items = self.orchestrator.build_line_items(
            self.listing,
            self.offer,
            self.quantity,
            self.preferences.get(),
        )

        try:
            if self.books_on_backend:
                await self._ensure_booking(items[0])

            handle = await self.orchestrator.create_session(
                items,
                self._success_url(),
                self.cancel_url,
            )
        except (SessionCreationFailedError, MalformedSessionResponseError) as exc:
            self._transition(previous_step)
            self.notice = str(exc) or "Booking failed. Please try again."
            logger.warning(
                "Checkout session failed; flow returned to %s. flow_id=%s error=%s",
                previous_step.value,
                self.id,
                exc,
            )
            raise

        self._transition(FlowStep.REDIRECTED)
        self._release_timer()
        self.redirect = CheckoutRedirect(
            url=handle.url,
            session_id=handle.session_id,
            booking_id=self.booking_id,
            items=tuple(items),
        )
        logger.info(
            "Redirecting to payment gateway. flow_id=%s booking_id=%s currency=%s",
            self.id,
            self.booking_id,
            items[0].currency,
        )
        self._finish()
        return self.redirect

    async def _ensure_booking(self, item: LineItem) -> None:
        """
        The booking must carry the quantity and currency being
        charged. A retry with a changed selection books again.
        """
        selection = (item.quantity, item.currency)
        if self.booking_id is not None and self._booked_selection == selection:
            return

        if self.booking_id is not None:
            logger.info(
                "Selection changed since booking; creating a new one. flow_id=%s stale_booking_id=%s",
                self.id,
                self.booking_id,
            )
        try:
            booking_id = await self.backend.create_booking(
                self.offer.id,
                self.lock.id,
                item.quantity,
                item.currency,
            )
        except BackendUnavailableError as exc:
            raise SessionCreationFailedError(str(exc)) from exc

        self.booking_id = booking_id
        self._booked_selection = selection

    def _success_url(self) -> str:
        if self.booking_id is None:
            return self.success_url
        return f"{self.success_url}&booking_id={quote(self.booking_id, safe='')}"


@dataclass(frozen=True)
class ReturnOutcome:
    step: FlowStep
    session_id: Optional[str]
    message: str
    error: Optional[str] = None
    linked_principal: Optional[str] = None
    booking: Optional[BookingProjection] = None


class PaymentReturnResolver:
    """
    Fresh flow instance for the page load after the gateway
    redirects back. Each resolve() is a single status query.
    """

    def __init__(
        self,
        orchestrator: CheckoutOrchestrator,
        payment: Optional[str],
        session_id: Optional[str] = None,
        booking_id: Optional[str] = None,
    ):
        self.orchestrator = orchestrator
        self.payment = payment
        self.session_id = session_id
        self.booking_id = booking_id
        self.step = FlowStep.RETURNED
        self.outcome: Optional[ReturnOutcome] = None
        self._failure: Optional[SessionResolutionFailedError] = None

    @classmethod
    def from_query(
        cls,
        orchestrator: CheckoutOrchestrator,
        query: Mapping[str, str],
    ) -> "PaymentReturnResolver":
        return cls(
            orchestrator=orchestrator,
            payment=query.get("payment"),
            session_id=query.get("session_id") or None,
            booking_id=query.get("booking_id") or None,
        )

    @property
    def backend(self) -> BackendActor:
        return self.orchestrator.backend

    def _transition(self, to_step: FlowStep) -> None:
        FlowStateMachine.validate_transition(self.step, to_step)
        self.step = to_step

    async def resolve(self) -> ReturnOutcome:
        """
        Raises SessionResolutionFailedError when the gateway reports
        a failure; the error text is kept verbatim.
        """
        if self._failure is not None:
            raise self._failure
        if self.outcome is not None and FlowStateMachine.is_terminal(self.step):
            return self.outcome

        if self.payment == "cancelled":
            self._transition(FlowStep.CANCELLED)
            self.outcome = ReturnOutcome(
                step=self.step,
                session_id=self.session_id,
                message=PAYMENT_CANCELLED_NOTICE,
            )
            return self.outcome

        if not self.session_id:
            raise self._fail("Missing checkout session id in return URL")

        status = await self.orchestrator.resolve_session(self.session_id)

        if isinstance(status, Failed):
            raise self._fail(status.error)

        if isinstance(status, Completed):
            projection = None
            if self.booking_id:
                await self.backend.confirm_booking(self.booking_id, self.session_id)
                projection = await self._project_booking()
            self._transition(FlowStep.CONFIRMED)
            self.outcome = ReturnOutcome(
                step=self.step,
                session_id=self.session_id,
                message="Your booking is confirmed. Check your dashboard for ticket details.",
                linked_principal=status.linked_principal,
                booking=projection,
            )
            return self.outcome

        self._transition(FlowStep.STILL_PENDING)
        self.outcome = ReturnOutcome(
            step=self.step,
            session_id=self.session_id,
            message="Confirming your payment...",
        )
        return self.outcome

    def _fail(self, error: str) -> SessionResolutionFailedError:
        self._transition(FlowStep.FAILED)
        self.outcome = ReturnOutcome(
            step=self.step,
            session_id=self.session_id,
            message=PAYMENT_FAILED_NOTICE,
            error=error,
        )
        self._failure = SessionResolutionFailedError(self.session_id or "", error)
        logger.warning("Checkout session failed. session_id=%s error=%s", self.session_id, error)
        return self._failure

    async def poll(
        self,
        attempts: int = SESSION_POLL_ATTEMPTS,
        delay: float = SESSION_POLL_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> ReturnOutcome:
        """
        Caller-side bounded retry around resolve(). Returns the last
        outcome, which may still be STILL_PENDING.
        """
        outcome: Optional[ReturnOutcome] = None
        for attempt in range(1, attempts + 1):
            try:
                outcome = await self.resolve()
            except BackendUnavailableError:
                if attempt == attempts:
                    raise
                logger.warning(
                    "Session status query failed (attempt %s/%s). Retrying in %.1f seconds...",
                    attempt,
                    attempts,
                    delay,
                )
            else:
                if outcome.step != FlowStep.STILL_PENDING:
                    return outcome

            if attempt < attempts:
                await sleep(delay)

        return outcome

    async def _project_booking(self) -> Optional[BookingProjection]:
        payload = await self.backend.get_booking(self.booking_id)
        if not payload:
            return None
        return BookingStatusProjector.project(Booking.from_payload(payload))


async def load_booking_projection(backend: BackendActor, booking_id: str) -> BookingProjection:
    payload = await backend.get_booking(booking_id)
    if not payload:
        raise ValueError("Booking not found")
    return BookingStatusProjector.project(Booking.from_payload(payload))


async def cancel_booking(backend: BackendActor, booking_id: str) -> BookingProjection:
    """
    Cancels a booking when its status allows it; only confirmed
    bookings can be cancelled.
    """
    payload = await backend.get_booking(booking_id)
    if not payload:
        raise ValueError("Booking not found")

    booking = Booking.from_payload(payload)
    BookingStatusProjector.validate_action(booking, BookingAction.CANCEL)
    await backend.cancel_booking(booking.id)
    logger.info("Booking cancelled. booking_id=%s", booking.id)
    return await load_booking_projection(backend, booking.id)


class FlowRegistry:
    """
    Live reservation flows by id. Discarding a flow releases
    its timer; nothing is shared between flows.

    A flow leaves the registry on its own once it redirects or
    its lock expires. The ids of recently expired flows are
    kept, bounded, so a lookup raises LockExpiredError instead
    of FlowNotFoundError.
    """

    def __init__(self, expired_memory: int = EXPIRED_FLOW_MEMORY):
        self._flows: Dict[str, ReservationFlowController] = {}
        self._expired: "OrderedDict[str, str]" = OrderedDict()
        self.expired_memory = expired_memory

    def __len__(self) -> int:
        return len(self._flows)

    def add(self, flow: ReservationFlowController) -> None:
        flow.on_finished = self._retire
        self._flows[flow.id] = flow

    def get(self, flow_id: str) -> ReservationFlowController:
        flow = self._flows.get(flow_id)
        if flow is not None:
            return flow
        if flow_id in self._expired:
            raise LockExpiredError(self._expired[flow_id])
        raise FlowNotFoundError(f"Reservation flow {flow_id} not found")

    def _retire(self, flow: ReservationFlowController) -> None:
        if self._flows.pop(flow.id, None) is None:
            return
        flow.on_finished = None
        if flow.timer is not None and flow.timer.is_expired():
            self._expired[flow.id] = flow.lock.id
            while len(self._expired) > self.expired_memory:
                self._expired.popitem(last=False)
        logger.debug("Reservation flow retired. flow_id=%s step=%s", flow.id, flow.step.value)

    def discard(self, flow_id: str) -> None:
        flow = self._flows.pop(flow_id, None)
        if flow is None:
            raise FlowNotFoundError(f"Reservation flow {flow_id} not found")
        flow.on_finished = None
        flow.close()

    def close_all(self) -> None:
        for flow in list(self._flows.values()):
            flow.on_finished = None
            flow.close()
        self._flows.clear()
        self._expired.clear()

    def ids(self) -> List[str]:
        return list(self._flows)
