# src/domain/checkout.py

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from src.domain.exceptions import MalformedSessionResponseError

_URL_KEYS = ("url", "sessionUrl", "checkoutUrl")
_ID_KEYS = ("id", "sessionId")


@dataclass(frozen=True)
class LineItem:
    product_name: str
    product_description: str
    currency: str
    quantity: int
    unit_price_minor: int

    @property
    def total_minor(self) -> int:
        return self.unit_price_minor * self.quantity

    def to_payload(self) -> Dict[str, Any]:
        # The gateway expects lower-case currency codes.
        return {
            "productName": self.product_name,
            "productDescription": self.product_description,
            "currency": self.currency.lower(),
            "quantity": self.quantity,
            "priceInCents": self.unit_price_minor,
        }


@dataclass(frozen=True)
class SessionHandle:
    url: str
    session_id: Optional[str] = None


@dataclass(frozen=True)
class Completed:
    linked_principal: Optional[str] = None
    response: str = ""


@dataclass(frozen=True)
class Failed:
    error: str


@dataclass(frozen=True)
class Unresolved:
    pass


SessionStatus = Union[Completed, Failed, Unresolved]


def parse_session_payload(raw: Any) -> SessionHandle:
    """
    Accepts either a JSON envelope carrying the redirect URL
    or the bare URL itself.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")

    if isinstance(raw, str):
        text = raw.strip()
        if _looks_like_url(text):
            return SessionHandle(url=text)
        try:
            decoded = json.loads(text)
        except ValueError as exc:
            raise MalformedSessionResponseError(raw) from exc
        if isinstance(decoded, str):
            if _looks_like_url(decoded.strip()):
                return SessionHandle(url=decoded.strip())
            raise MalformedSessionResponseError(raw)
        raw = decoded

    if isinstance(raw, dict):
        url = next(
            (raw[key] for key in _URL_KEYS if isinstance(raw.get(key), str)),
            None,
        )
        if url and _looks_like_url(url.strip()):
            session_id = next(
                (str(raw[key]) for key in _ID_KEYS if raw.get(key)),
                None,
            )
            return SessionHandle(url=url.strip(), session_id=session_id)

    raise MalformedSessionResponseError(raw)


def parse_session_status(payload: Any) -> SessionStatus:
    """
    Maps the backend's tagged union to a SessionStatus.
    Anything that is neither completed nor failed is Unresolved.
    """
    if not isinstance(payload, dict):
        return Unresolved()

    kind = payload.get("__kind__")
    if "completed" in payload or kind == "completed":
        body = payload.get("completed") or {}
        if not isinstance(body, dict):
            body = {}
        return Completed(
            linked_principal=body.get("userPrincipal") or None,
            response=str(body.get("response") or ""),
        )

    if "failed" in payload or kind == "failed":
        body = payload.get("failed") or {}
        error = body.get("error") if isinstance(body, dict) else body
        return Failed(error="" if error is None else str(error))

    return Unresolved()


def _looks_like_url(text: str) -> bool:
    return text.startswith(("https://", "http://"))
