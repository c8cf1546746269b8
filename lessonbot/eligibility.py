from __future__ import annotations

import datetime as dt
from typing import Iterable

from lessonbot.domain import Slot

DEFAULT_MIN_LEAD_HOURS = 12


def slot_start(slot: Slot) -> dt.datetime:
    # The page has no time of day we can rely on; the slot starts at midnight of its date.
    return dt.datetime.combine(slot.date, dt.time.min)


def days_until(slot: Slot, now: dt.datetime) -> int:
    """Whole days from now to the slot, counting today as day 1."""
    delta = slot_start(slot) - now
    return int(delta.total_seconds() / 86400) + 1


def is_eligible(slot: Slot, *, now: dt.datetime, lookahead_days: int, min_lead_hours: int = DEFAULT_MIN_LEAD_HOURS) -> bool:
    if days_until(slot, now) >= lookahead_days:
        return False
    # Booking closes shortly before the lesson; past slots have a negative lead.
    return slot_start(slot) - now > dt.timedelta(hours=min_lead_hours)


def eligible_slots(
    slots: Iterable[Slot],
    *,
    now: dt.datetime,
    lookahead_days: int,
    min_lead_hours: int = DEFAULT_MIN_LEAD_HOURS,
) -> list[Slot]:
    return [
        s
        for s in slots
        if is_eligible(s, now=now, lookahead_days=lookahead_days, min_lead_hours=min_lead_hours)
    ]
