# src/infrastructure/demo_catalog.py

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from src.domain.catalog import DemoEvent, TicketOffer, TicketType
from src.domain.currency import Money

DEMO_ID_PREFIX = "demo-"


def _dt(days_from_now: int) -> datetime:
    now = datetime.now(timezone.utc)
    return (now + timedelta(days=days_from_now)).replace(minute=0, second=0, microsecond=0)


_EVENT_DEFS = [
    {"id": "demo-1", "title": "Neon Pulse Music Festival", "venue": "Mumbai Arena", "city": "Mumbai", "days": 7},
    {"id": "demo-2", "title": "IPL Finals 2026", "venue": "Wankhede Stadium", "city": "Mumbai", "days": 14},
    {"id": "demo-3", "title": "Web3 Global Summit 2026", "venue": "Marina Bay Sands", "city": "Singapore", "days": 21},
    {"id": "demo-4", "title": "Champions League Final", "venue": "Allianz Arena", "city": "Munich", "days": 30},
    {"id": "demo-5", "title": "AI & Future of Work Masterclass", "venue": "DIFC Innovation Hub", "city": "Dubai", "days": 10},
    {"id": "demo-6", "title": "Grand Gala - Black Tie Evening", "venue": "The Savoy", "city": "London", "days": 45},
]

_TICKET_DEFS = [
    {"suffix": "ga", "name": "General Admission", "type": TicketType.GENERAL_ADMISSION, "price": 4900, "available": 500, "total": 1000},
    {"suffix": "vip", "name": "VIP", "type": TicketType.NUMBERED_SEAT, "price": 14900, "available": 50, "total": 100},
]


def is_demo_id(event_id: str) -> bool:
    return event_id.startswith(DEMO_ID_PREFIX)


def demo_events() -> List[DemoEvent]:
    return [
        DemoEvent(
            id=item["id"],
            title=item["title"],
            venue=item["venue"],
            city=item["city"],
            event_date=_dt(item["days"]),
            base_currency="INR",
        )
        for item in _EVENT_DEFS
    ]


def demo_tickets(event_id: str) -> List[TicketOffer]:
    return [
        TicketOffer(
            id=f"{event_id}-{ticket['suffix']}",
            event_id=event_id,
            name=ticket["name"],
            price=Money(amount=ticket["price"], currency="INR"),
            available_quantity=ticket["available"],
            total_quantity=ticket["total"],
            ticket_type=ticket["type"],
        )
        for ticket in _TICKET_DEFS
    ]


def find_demo_event(event_id: str) -> Optional[DemoEvent]:
    events: Dict[str, DemoEvent] = {event.id: event for event in demo_events()}
    return events.get(event_id)


def find_demo_ticket(event_id: str, ticket_id: str) -> Optional[TicketOffer]:
    for ticket in demo_tickets(event_id):
        if ticket.id == ticket_id:
            return ticket
    return None
