from __future__ import annotations

import datetime as dt

from lessonbot.domain import Slot
from lessonbot.eligibility import days_until, eligible_slots

NOW = dt.datetime(2025, 6, 4, 11, 0)


def _slot(slot_id: str, day: dt.date) -> Slot:
    return Slot(slot_id=slot_id, date=day, session_number="1")


def test_today_counts_as_day_one() -> None:
    # Midnight tomorrow is 13h away: truncates to 0 days, plus one.
    assert days_until(_slot("a", dt.date(2025, 6, 5)), NOW) == 1
    assert days_until(_slot("b", dt.date(2025, 6, 7)), NOW) == 3


def test_slot_beyond_lookahead_is_excluded() -> None:
    far = _slot("far", NOW.date() + dt.timedelta(days=30))
    assert eligible_slots([far], now=NOW, lookahead_days=10) == []


def test_slot_on_lookahead_boundary_is_excluded() -> None:
    # 2025-06-14 00:00 is 9 days 13h away -> day 10, not < 10.
    edge = _slot("edge", dt.date(2025, 6, 14))
    inside = _slot("inside", dt.date(2025, 6, 13))
    assert eligible_slots([edge, inside], now=NOW, lookahead_days=10) == [inside]


def test_lead_time_boundary() -> None:
    slot = _slot("x", dt.date(2025, 6, 5))

    thirteen_hours_before = dt.datetime(2025, 6, 4, 11, 0)
    eleven_hours_before = dt.datetime(2025, 6, 4, 13, 0)
    exactly_twelve = dt.datetime(2025, 6, 4, 12, 0)

    assert eligible_slots([slot], now=thirteen_hours_before, lookahead_days=10) == [slot]
    assert eligible_slots([slot], now=eleven_hours_before, lookahead_days=10) == []
    assert eligible_slots([slot], now=exactly_twelve, lookahead_days=10) == []


def test_past_slot_is_excluded() -> None:
    past = _slot("past", dt.date(2025, 6, 1))
    today = _slot("today", NOW.date())
    assert eligible_slots([past, today], now=NOW, lookahead_days=10) == []


def test_custom_lead_time() -> None:
    slot = _slot("x", dt.date(2025, 6, 5))
    assert eligible_slots([slot], now=NOW, lookahead_days=10, min_lead_hours=14) == []
    assert eligible_slots([slot], now=NOW, lookahead_days=10, min_lead_hours=0) == [slot]


def test_mixed_listing_keeps_order_of_eligible_slots() -> None:
    a = _slot("a", dt.date(2025, 6, 7))
    b = _slot("b", dt.date(2025, 6, 24))
    c = _slot("c", dt.date(2025, 6, 6))

    assert eligible_slots([a, b, c], now=NOW, lookahead_days=10) == [a, c]
