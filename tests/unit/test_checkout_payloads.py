# tests/unit/test_checkout_payloads.py

import json

import pytest

from src.domain.checkout import (
    Completed,
    Failed,
    LineItem,
    Unresolved,
    parse_session_payload,
    parse_session_status,
)
from src.domain.exceptions import MalformedSessionResponseError

URL = "https://checkout.stripe.com/c/pay/cs_test_abc"


# ---------------------
# SESSION PAYLOADS
# ---------------------

def test_bare_url():
    handle = parse_session_payload(URL)

    assert handle.url == URL
    assert handle.session_id is None


def test_json_encoded_url_string():
    assert parse_session_payload(json.dumps(URL)).url == URL


def test_envelope_with_session_id():
    handle = parse_session_payload({"id": "cs_test_abc", "url": URL})

    assert handle.url == URL
    assert handle.session_id == "cs_test_abc"


def test_json_envelope_text_and_bytes():
    body = json.dumps({"sessionId": "cs_test_abc", "checkoutUrl": URL})

    assert parse_session_payload(body).session_id == "cs_test_abc"
    assert parse_session_payload(body.encode("utf-8")).url == URL


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "not a url",
        json.dumps({"id": "cs_test_abc"}),
        {"url": "ftp://example.com"},
        {"url": 42},
        None,
        ["https://example.com"],
    ],
)
def test_malformed_payloads_raise(raw):
    with pytest.raises(MalformedSessionResponseError):
        parse_session_payload(raw)


# ---------------------
# SESSION STATUS
# ---------------------

def test_failed_status_keeps_error_verbatim():
    assert parse_session_status({"failed": {"error": "card_declined"}}) == Failed("card_declined")


def test_completed_status():
    status = parse_session_status({"completed": {"userPrincipal": "abc-123", "response": "{}"}})

    assert status == Completed(linked_principal="abc-123", response="{}")


def test_kind_tagged_status():
    status = parse_session_status({"__kind__": "failed", "failed": {"error": "expired_card"}})

    assert status == Failed("expired_card")


@pytest.mark.parametrize("payload", [None, "pending", {}, {"open": {}}])
def test_anything_else_is_unresolved(payload):
    assert parse_session_status(payload) == Unresolved()


# ---------------------
# LINE ITEMS
# ---------------------

def test_line_item_wire_payload():
    item = LineItem(
        product_name="Neon Nights Live — Gold Pass",
        product_description="NSCI Dome, Mumbai",
        currency="USD",
        quantity=2,
        unit_price_minor=5880,
    )

    assert item.total_minor == 11760
    assert item.to_payload() == {
        "productName": "Neon Nights Live — Gold Pass",
        "productDescription": "NSCI Dome, Mumbai",
        "currency": "usd",
        "quantity": 2,
        "priceInCents": 5880,
    }
