# src/domain/seat_lock.py

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Union

from src.config import SEAT_LOCK_CRITICAL_SECONDS, SEAT_LOCK_TTL_SECONDS
from src.domain.exceptions import LockExpiredError


@dataclass(frozen=True)
class Active:
    remaining: int


@dataclass(frozen=True)
class Expired:
    remaining: int = 0


LockState = Union[Active, Expired]


def tick(state: LockState) -> LockState:
    """
    Pure reducer: one tick consumes one second.
    Expired is terminal.
    """
    if isinstance(state, Expired):
        return state

    remaining = state.remaining - 1
    if remaining <= 0:
        return Expired()
    return Active(remaining=remaining)


@dataclass(frozen=True)
class SeatLock:
    """
    Local mirror of the backend hold. The backend copy is
    authoritative; this one only guards the client.
    """

    id: str
    offer_id: str
    ttl_seconds: int = SEAT_LOCK_TTL_SECONDS
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SeatLockTimer:
    """
    Countdown for one seat lock.

    Ticks are delivered by a scheduler; the timer never reads
    a wall clock itself and is never re-armed.
    """

    def __init__(
        self,
        lock: SeatLock,
        critical_threshold: int = SEAT_LOCK_CRITICAL_SECONDS,
    ):
        self.lock = lock
        self.critical_threshold = critical_threshold
        self._state: LockState = Active(remaining=lock.ttl_seconds) if lock.ttl_seconds > 0 else Expired()

    @property
    def state(self) -> LockState:
        return self._state

    def on_tick(self) -> LockState:
        self._state = tick(self._state)
        return self._state

    @property
    def remaining_seconds(self) -> int:
        return self._state.remaining

    @property
    def display(self) -> str:
        minutes, seconds = divmod(self.remaining_seconds, 60)
        return f"{minutes:02d}:{seconds:02d}"

    @property
    def is_critical(self) -> bool:
        return self.remaining_seconds <= self.critical_threshold

    def is_expired(self) -> bool:
        return isinstance(self._state, Expired)

    def ensure_active(self) -> None:
        """
        Raises LockExpiredError if the lock can no longer be spent.
        """
        if self.is_expired():
            raise LockExpiredError(self.lock.id)
