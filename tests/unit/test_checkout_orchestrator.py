# tests/unit/test_checkout_orchestrator.py

import asyncio
from datetime import datetime

import pytest

from src.application.checkout_orchestrator import CheckoutOrchestrator
from src.domain.catalog import BackendEvent, TicketOffer
from src.domain.checkout import Failed, Unresolved
from src.domain.currency import CurrencyConversionEngine, Money
from src.domain.exceptions import (
    BackendUnavailableError,
    MalformedSessionResponseError,
    SessionCreationFailedError,
)

SESSION_URL = "https://checkout.stripe.com/c/pay/cs_test_123"


def test_line_items_use_base_currency_when_multi_currency_disabled(
    orchestrator, single_currency_event, gold_offer
):
    items = orchestrator.build_line_items(single_currency_event, gold_offer, 2, "USD")

    assert len(items) == 1
    assert items[0].currency == "INR"
    assert items[0].unit_price_minor == 490000
    assert items[0].quantity == 2


def test_line_items_convert_into_listed_preferred_currency(
    orchestrator, multi_currency_event, gold_offer
):
    items = orchestrator.build_line_items(multi_currency_event, gold_offer, 3, "USD")

    # 4900.00 INR * 0.012 = 58.80 USD
    assert items[0].currency == "USD"
    assert items[0].unit_price_minor == 5880
    assert items[0].total_minor == 17640


def test_line_item_description():
    event = BackendEvent(
        id="evt-3",
        title="Comedy Night",
        venue="Canvas Laugh Club",
        city="Mumbai",
        event_date=datetime(2026, 12, 5, 19, 30),
        base_currency="INR",
    )
    offer = TicketOffer(
        id="tkt-3",
        event_id="evt-3",
        name="Front Row",
        price=Money(amount=150000, currency="INR"),
        available_quantity=4,
        total_quantity=40,
    )

    item = CheckoutOrchestrator(None, CurrencyConversionEngine()).build_line_items(
        event, offer, 1, "INR"
    )[0]

    assert item.product_name == "Comedy Night — Front Row"
    assert item.product_description == "Sat, Dec 05, 2026, 07:30 PM · Canvas Laugh Club, Mumbai"


def test_create_session_returns_handle(orchestrator, fake_backend, single_currency_event, gold_offer):
    items = orchestrator.build_line_items(single_currency_event, gold_offer, 1, "INR")

    handle = asyncio.run(orchestrator.create_session(items, "https://app/ok", "https://app/cancel"))

    assert handle.url == SESSION_URL
    assert handle.session_id == "cs_test_123"
    call = fake_backend.called("create_checkout_session")[0]
    assert call["success_url"] == "https://app/ok"
    assert call["items"] == items


def test_create_session_wraps_transport_failure(orchestrator, fake_backend, single_currency_event, gold_offer):
    fake_backend.unavailable.add("create_checkout_session")
    items = orchestrator.build_line_items(single_currency_event, gold_offer, 1, "INR")

    with pytest.raises(SessionCreationFailedError):
        asyncio.run(orchestrator.create_session(items, "https://app/ok", "https://app/cancel"))


def test_create_session_rejects_payload_without_url(orchestrator, fake_backend, single_currency_event, gold_offer):
    fake_backend.session_payload = {"id": "cs_test_123"}
    items = orchestrator.build_line_items(single_currency_event, gold_offer, 1, "INR")

    with pytest.raises(MalformedSessionResponseError):
        asyncio.run(orchestrator.create_session(items, "https://app/ok", "https://app/cancel"))


def test_resolve_session_reports_gateway_error(orchestrator, fake_backend):
    fake_backend.session_statuses = [{"failed": {"error": "card_declined"}}]

    assert asyncio.run(orchestrator.resolve_session("cs_test_123")) == Failed("card_declined")


def test_resolve_session_is_a_single_query(orchestrator, fake_backend):
    fake_backend.session_statuses = [{"open": None}]

    assert asyncio.run(orchestrator.resolve_session("cs_test_123")) == Unresolved()
    assert len(fake_backend.called("get_stripe_session_status")) == 1


def test_resolve_session_propagates_transport_failure(orchestrator, fake_backend):
    fake_backend.unavailable.add("get_stripe_session_status")

    with pytest.raises(BackendUnavailableError):
        asyncio.run(orchestrator.resolve_session("cs_test_123"))
