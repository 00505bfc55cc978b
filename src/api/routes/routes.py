from dataclasses import asdict
from functools import lru_cache
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from src.api.schemas.schemas import (
    BookingStatusResponse,
    CheckoutRedirectResponse,
    CurrencyInfo,
    CurrencyPreferenceResponse,
    CurrencyPreferenceUpdate,
    FlowResponse,
    LineItemResponse,
    PaymentReturnResponse,
    PriceBadgeResponse,
    QuantityUpdate,
    StartFlowRequest,
    StatusCategoryResponse,
)
from src.application.checkout_orchestrator import CheckoutOrchestrator
from src.application.currency_preference import CurrencyPreferenceService
from src.application.reservation_flow import (
    CheckoutRedirect,
    FlowRegistry,
    PaymentReturnResolver,
    ReservationFlowController,
    ReturnOutcome,
    cancel_booking,
    load_booking_projection,
    resolve_selection,
)
from src.domain.booking_status import BookingProjection
from src.domain.catalog import MAX_TICKETS_PER_BOOKING
from src.domain.currency import CURRENCIES, CurrencyConversionEngine
from src.domain.exceptions import (
    BackendUnavailableError,
    BookingActionNotAllowedError,
    FlowNotFoundError,
    InvalidFlowTransitionError,
    LockExpiredError,
    MalformedSessionResponseError,
    SessionCreationFailedError,
    SessionResolutionFailedError,
)
from src.infrastructure.backend.actor import BackendActor
from src.infrastructure.backend.http_actor import HttpBackendActor
from src.infrastructure.clock import AsyncioTickScheduler, TickScheduler


router = APIRouter()
logger = logging.getLogger(__name__)

_flow_registry = FlowRegistry()


# -----------------------------
# Dependencies
# -----------------------------
@lru_cache(maxsize=None)
def get_backend() -> BackendActor:
    return HttpBackendActor()


@lru_cache(maxsize=None)
def get_scheduler() -> TickScheduler:
    return AsyncioTickScheduler()


@lru_cache(maxsize=None)
def get_currency_engine() -> CurrencyConversionEngine:
    return CurrencyConversionEngine()


@lru_cache(maxsize=None)
def get_preferences() -> CurrencyPreferenceService:
    return CurrencyPreferenceService(get_currency_engine())


def get_flow_registry() -> FlowRegistry:
    return _flow_registry


def get_orchestrator(
    backend: BackendActor = Depends(get_backend),
    engine: CurrencyConversionEngine = Depends(get_currency_engine),
) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(backend, engine)


# -----------------------------
# Response builders
# -----------------------------
def _find_flow(registry: FlowRegistry, flow_id: str) -> ReservationFlowController:
    try:
        return registry.get(flow_id)
    except FlowNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except LockExpiredError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc


def _flow_response(flow: ReservationFlowController) -> FlowResponse:
    summary = flow.price_summary()
    timer = flow.timer
    return FlowResponse(
        flow_id=flow.id,
        step=flow.step.value,
        listing_kind=flow.listing.kind,
        event_id=flow.listing.id,
        ticket_id=flow.offer.id,
        quantity=flow.quantity,
        max_quantity=min(MAX_TICKETS_PER_BOOKING, flow.offer.available_quantity),
        lock_id=flow.lock.id if flow.lock else None,
        remaining_seconds=timer.remaining_seconds if timer else 0,
        countdown=timer.display if timer else "00:00",
        is_critical=timer.is_critical if timer else False,
        is_expired=timer.is_expired() if timer else False,
        unit_price=PriceBadgeResponse(**asdict(summary.unit)),
        total_price=PriceBadgeResponse(**asdict(summary.total)),
        notice=flow.notice,
    )


def _redirect_response(flow: ReservationFlowController, redirect: CheckoutRedirect) -> CheckoutRedirectResponse:
    return CheckoutRedirectResponse(
        flow_id=flow.id,
        step=flow.step.value,
        redirect_url=redirect.url,
        session_id=redirect.session_id,
        booking_id=redirect.booking_id,
        items=[LineItemResponse(**asdict(item)) for item in redirect.items],
    )


def _booking_response(projection: BookingProjection) -> BookingStatusResponse:
    category = projection.category
    return BookingStatusResponse(
        booking_id=projection.booking_id,
        category=StatusCategoryResponse(
            status=category.status.value,
            label=category.label,
            icon=category.icon,
            style=category.style,
        ),
        can_cancel=projection.can_cancel,
        can_request_refund=projection.can_request_refund,
        under_review=projection.under_review,
    )


def _return_response(outcome: ReturnOutcome) -> PaymentReturnResponse:
    return PaymentReturnResponse(
        step=outcome.step.value,
        session_id=outcome.session_id,
        message=outcome.message,
        error=outcome.error,
        linked_principal=outcome.linked_principal,
        booking=_booking_response(outcome.booking) if outcome.booking else None,
    )


@router.get("/health")
def health():
    return {"message": "BookNow Checkout Client is running"}


# -----------------------------
# Currency preference
# -----------------------------
def _currency_response(code: str) -> CurrencyPreferenceResponse:
    return CurrencyPreferenceResponse(
        code=code,
        supported=[
            CurrencyInfo(code=info.code, symbol=info.symbol, flag=info.flag, name=info.name)
            for info in CURRENCIES.values()
        ],
    )


@router.get("/currency", response_model=CurrencyPreferenceResponse)
def get_currency(preferences: CurrencyPreferenceService = Depends(get_preferences)):
    return _currency_response(preferences.get())


@router.put("/currency", response_model=CurrencyPreferenceResponse)
def set_currency(
    request: CurrencyPreferenceUpdate,
    preferences: CurrencyPreferenceService = Depends(get_preferences),
):
    # Unsupported codes are ignored; the current preference is returned.
    preferences.set(request.code.upper())
    return _currency_response(preferences.get())


# -----------------------------
# Reservation flows
# -----------------------------
@router.post("/flows", response_model=FlowResponse, status_code=status.HTTP_201_CREATED)
async def start_flow(
    request: StartFlowRequest,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
    preferences: CurrencyPreferenceService = Depends(get_preferences),
    scheduler: TickScheduler = Depends(get_scheduler),
    registry: FlowRegistry = Depends(get_flow_registry),
):
    try:
        listing, offer = await resolve_selection(
            orchestrator.backend,
            request.event_id,
            request.ticket_id,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except BackendUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc

    flow = ReservationFlowController(
        listing=listing,
        offer=offer,
        quantity=request.quantity,
        orchestrator=orchestrator,
        preferences=preferences,
        scheduler=scheduler,
    )
    try:
        await flow.start()
    except BackendUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not lock the seat. Please try again.",
        ) from exc

    registry.add(flow)
    return _flow_response(flow)


@router.get("/flows/{flow_id}", response_model=FlowResponse)
def get_flow(flow_id: str, registry: FlowRegistry = Depends(get_flow_registry)):
    return _flow_response(_find_flow(registry, flow_id))


@router.put("/flows/{flow_id}/quantity", response_model=FlowResponse)
def update_quantity(
    flow_id: str,
    request: QuantityUpdate,
    registry: FlowRegistry = Depends(get_flow_registry),
):
    flow = _find_flow(registry, flow_id)
    try:
        flow.set_quantity(request.quantity)
    except InvalidFlowTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    return _flow_response(flow)


@router.post("/flows/{flow_id}/escrow-notice", response_model=FlowResponse)
def show_escrow_notice(flow_id: str, registry: FlowRegistry = Depends(get_flow_registry)):
    flow = _find_flow(registry, flow_id)
    try:
        flow.show_escrow_notice()
    except InvalidFlowTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    return _flow_response(flow)


@router.post("/flows/{flow_id}/back", response_model=FlowResponse)
def back_to_review(flow_id: str, registry: FlowRegistry = Depends(get_flow_registry)):
    flow = _find_flow(registry, flow_id)
    try:
        flow.back_to_review()
    except InvalidFlowTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    return _flow_response(flow)


@router.post("/flows/{flow_id}/proceed", response_model=CheckoutRedirectResponse)
async def proceed_to_payment(flow_id: str, registry: FlowRegistry = Depends(get_flow_registry)):
    flow = _find_flow(registry, flow_id)
    try:
        redirect = await flow.proceed()
    except LockExpiredError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except InvalidFlowTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except (SessionCreationFailedError, MalformedSessionResponseError) as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc) or "Booking failed. Please try again.",
        ) from exc

    return _redirect_response(flow, redirect)


@router.delete("/flows/{flow_id}", status_code=status.HTTP_204_NO_CONTENT)
def abandon_flow(flow_id: str, registry: FlowRegistry = Depends(get_flow_registry)):
    try:
        registry.discard(flow_id)
    except FlowNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -----------------------------
# Payment return
# -----------------------------
@router.get("/payment-success", response_model=PaymentReturnResponse)
async def payment_success(
    payment: str | None = None,
    session_id: str | None = None,
    booking_id: str | None = None,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
):
    resolver = PaymentReturnResolver(
        orchestrator=orchestrator,
        payment=payment,
        session_id=session_id,
        booking_id=booking_id,
    )
    try:
        outcome = await resolver.poll()
    except SessionResolutionFailedError as exc:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=exc.error,
        ) from exc
    except BackendUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc

    return _return_response(outcome)


@router.get("/payment-failure", response_model=PaymentReturnResponse)
async def payment_failure(
    payment: str | None = "cancelled",
    session_id: str | None = None,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
):
    resolver = PaymentReturnResolver(
        orchestrator=orchestrator,
        payment=payment or "cancelled",
        session_id=session_id,
    )
    try:
        outcome = await resolver.resolve()
    except SessionResolutionFailedError as exc:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=exc.error,
        ) from exc
    except BackendUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc

    return _return_response(outcome)


# -----------------------------
# Bookings
# -----------------------------
@router.get("/bookings/{booking_id}", response_model=BookingStatusResponse)
async def get_booking_status(booking_id: str, backend: BackendActor = Depends(get_backend)):
    try:
        projection = await load_booking_projection(backend, booking_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except BackendUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc

    return _booking_response(projection)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingStatusResponse)
async def cancel_booking_route(booking_id: str, backend: BackendActor = Depends(get_backend)):
    try:
        projection = await cancel_booking(backend, booking_id)
    except BookingActionNotAllowedError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except BackendUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc

    return _booking_response(projection)
