from typing import Literal
from pydantic import BaseModel, Field


class CurrencyInfo(BaseModel):
    code: str
    symbol: str
    flag: str
    name: str


class CurrencyPreferenceResponse(BaseModel):
    code: str
    supported: list[CurrencyInfo]


class CurrencyPreferenceUpdate(BaseModel):
    code: str = Field(min_length=3, max_length=3)


class StartFlowRequest(BaseModel):
    event_id: str
    ticket_id: str
    quantity: int = Field(default=1, ge=1)


class QuantityUpdate(BaseModel):
    quantity: int


class PriceBadgeResponse(BaseModel):
    currency: str
    flag: str
    amount: float
    formatted: str


class FlowResponse(BaseModel):
    flow_id: str
    step: str
    listing_kind: Literal["backend", "demo"]
    event_id: str
    ticket_id: str
    quantity: int
    max_quantity: int
    lock_id: str | None = None
    remaining_seconds: int
    countdown: str
    is_critical: bool
    is_expired: bool
    unit_price: PriceBadgeResponse
    total_price: PriceBadgeResponse
    notice: str | None = None


class LineItemResponse(BaseModel):
    product_name: str
    product_description: str
    currency: str
    quantity: int
    unit_price_minor: int


class CheckoutRedirectResponse(BaseModel):
    flow_id: str
    step: str
    redirect_url: str
    session_id: str | None = None
    booking_id: str | None = None
    items: list[LineItemResponse]


class StatusCategoryResponse(BaseModel):
    status: str
    label: str
    icon: str
    style: str


class BookingStatusResponse(BaseModel):
    booking_id: str
    category: StatusCategoryResponse
    can_cancel: bool
    can_request_refund: bool
    under_review: bool


class PaymentReturnResponse(BaseModel):
    step: str
    session_id: str | None = None
    message: str
    error: str | None = None
    linked_principal: str | None = None
    booking: BookingStatusResponse | None = None
