# src/domain/booking_status.py

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Set

from src.domain.currency import Money
from src.domain.exceptions import BookingActionNotAllowedError

FRAUD_REVIEW_THRESHOLD = 70


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    ON_HOLD = "onHold"


class BookingAction(str, Enum):
    CANCEL = "cancel"
    REQUEST_REFUND = "request_refund"


@dataclass(frozen=True)
class StatusCategory:
    status: BookingStatus
    label: str
    icon: str
    style: str


@dataclass(frozen=True)
class Booking:
    """
    Read-only view of a backend booking record.
    The backend owns its lifecycle.
    """

    id: str
    status: str
    quantity: int
    total_amount: Money
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    session_id: Optional[str] = None
    fraud_score: int = 0

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Booking":
        return cls(
            id=str(payload["id"]),
            status=_raw_status(payload.get("status")),
            quantity=int(payload.get("quantity", 0)),
            total_amount=Money(
                amount=int(payload.get("totalAmount", 0)),
                currency=str(payload.get("currency") or "INR").upper(),
            ),
            created_at=parse_backend_time(payload.get("createdAt")),
            confirmed_at=parse_backend_time(payload.get("confirmedAt")),
            cancelled_at=parse_backend_time(payload.get("cancelledAt")),
            session_id=payload.get("stripeSessionId") or None,
            fraud_score=int(payload.get("fraudScore") or 0),
        )


@dataclass(frozen=True)
class BookingProjection:
    booking_id: str
    category: StatusCategory
    can_cancel: bool
    can_request_refund: bool
    under_review: bool


class BookingStatusProjector:
    """
    Maps raw booking statuses to UI categories and gates
    the actions a screen may offer for a booking.
    """

    _CATEGORIES: Dict[BookingStatus, StatusCategory] = {
        BookingStatus.PENDING: StatusCategory(
            BookingStatus.PENDING, "Pending", "clock", "status-pending"
        ),
        BookingStatus.CONFIRMED: StatusCategory(
            BookingStatus.CONFIRMED, "Confirmed", "check-circle", "status-confirmed"
        ),
        BookingStatus.CANCELLED: StatusCategory(
            BookingStatus.CANCELLED, "Cancelled", "x-circle", "status-cancelled"
        ),
        BookingStatus.REFUNDED: StatusCategory(
            BookingStatus.REFUNDED, "Refunded", "refresh-cw", "status-refunded"
        ),
        BookingStatus.ON_HOLD: StatusCategory(
            BookingStatus.ON_HOLD, "On Hold", "shield-alert", "status-on-hold"
        ),
    }

    _ALLOWED_ACTIONS: Dict[BookingStatus, Set[BookingAction]] = {
        BookingStatus.PENDING: set(),
        BookingStatus.CONFIRMED: {
            BookingAction.CANCEL,
            BookingAction.REQUEST_REFUND,
        },
        BookingStatus.CANCELLED: set(),
        BookingStatus.REFUNDED: set(),
        BookingStatus.ON_HOLD: set(),
    }

    @classmethod
    def normalize(cls, raw: Any) -> BookingStatus:
        """
        Returns the known status for a raw value.
        Unrecognized input falls back to PENDING.
        """
        if isinstance(raw, BookingStatus):
            return raw
        try:
            return BookingStatus(_raw_status(raw))
        except ValueError:
            return BookingStatus.PENDING

    @classmethod
    def categorize(cls, raw: Any) -> StatusCategory:
        return cls._CATEGORIES[cls.normalize(raw)]

    @classmethod
    def can_perform(cls, raw: Any, action: BookingAction) -> bool:
        return action in cls._ALLOWED_ACTIONS[cls.normalize(raw)]

    @classmethod
    def validate_action(cls, booking: Booking, action: BookingAction) -> None:
        """
        Raises BookingActionNotAllowedError if the action is not
        offered for the booking's status.
        """
        if not cls.can_perform(booking.status, action):
            raise BookingActionNotAllowedError(
                booking_id=booking.id,
                action=action.value,
                status=cls.normalize(booking.status).value,
            )

    @classmethod
    def project(cls, booking: Booking) -> BookingProjection:
        return BookingProjection(
            booking_id=booking.id,
            category=cls.categorize(booking.status),
            can_cancel=cls.can_perform(booking.status, BookingAction.CANCEL),
            can_request_refund=cls.can_perform(booking.status, BookingAction.REQUEST_REFUND),
            under_review=booking.fraud_score >= FRAUD_REVIEW_THRESHOLD,
        )


def _raw_status(raw: Any) -> str:
    # Variant-encoded statuses arrive as {"confirmed": null}.
    if isinstance(raw, dict) and len(raw) == 1:
        return str(next(iter(raw)))
    if isinstance(raw, Enum):
        return str(raw.value)
    return "" if raw is None else str(raw)


def parse_backend_time(value: Any) -> Optional[datetime]:
    if value in (None, "", 0):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        # Backend timestamps are nanoseconds since the epoch.
        return datetime.fromtimestamp(value / 1_000_000_000, tz=timezone.utc)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
