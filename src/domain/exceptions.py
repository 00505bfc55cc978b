class CheckoutClientError(Exception):
    """
    Base exception for all domain-level errors
    inside the BookNow checkout client.
    """


class InvalidFlowTransitionError(CheckoutClientError):
    """
    Raised when an illegal reservation flow step change is attempted.
    """

    def __init__(self, from_step: str, to_step: str):
        self.from_step = from_step
        self.to_step = to_step

        message = (
            f"Illegal flow transition attempted: "
            f"{from_step} -> {to_step}"
        )
        super().__init__(message)


class LockExpiredError(CheckoutClientError):
    """Raised when the client-side seat lock TTL has elapsed."""

    def __init__(self, lock_id: str):
        self.lock_id = lock_id
        super().__init__(
            "Seat lock has expired. Please go back and select your tickets again."
        )


class MalformedSessionResponseError(CheckoutClientError):
    """Raised when a checkout session payload yields no redirect URL."""

    def __init__(self, raw: object):
        self.raw = raw
        super().__init__("Checkout session response did not contain a redirect URL")


class SessionCreationFailedError(CheckoutClientError):
    """Raised when the backend fails to create a checkout session."""


class SessionResolutionFailedError(CheckoutClientError):
    """
    Raised when the gateway reports an explicit failure for a session.
    The gateway's error detail is kept verbatim.
    """

    def __init__(self, session_id: str, error: str):
        self.session_id = session_id
        self.error = error
        super().__init__(error)


class BookingActionNotAllowedError(CheckoutClientError):
    """Raised when a booking action is not permitted for its current status."""

    def __init__(self, booking_id: str, action: str, status: str):
        self.booking_id = booking_id
        self.action = action
        self.status = status
        super().__init__(f"Cannot {action} booking in status {status}.")


class BackendUnavailableError(CheckoutClientError):
    """Raised when a backend actor call fails at the transport level."""


class FlowNotFoundError(CheckoutClientError):
    """Raised when a reservation flow id is unknown or already torn down."""
