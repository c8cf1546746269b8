from __future__ import annotations

import datetime as dt
import re

from lessonbot.domain import ParseError, Slot

# Slot data sits in the tooltip call of every free cell of the booking grid:
#   doTooltipV(event,0, "03/05/2019 (Fri)","3","11:30","13:10","BBDC"); ...
#   ...<input type="checkbox" id="145_2" name="slot" value="1893904" onclick=...
SLOT_MARKER = "doTooltipV("
DATE_FORMAT = "%d/%m/%Y"
_DAY_RE = re.compile(r"^\d{2}/\d{2}/\d{4}$")

_DATE_FIELD = 2
_SESSION_FIELD = 3
_SLOT_ID_FIELD = 6
_SLOT_ID_KEY = "value="


def _quoted(raw: str, *, index: int, field: str) -> str:
    parts = raw.split('"')
    if len(parts) < 3:
        raise ParseError(f"expected a quoted value, got {raw.strip()!r}", fragment_index=index, field=field)
    return parts[1]


def _parse_fragment(fragment: str, index: int) -> Slot:
    fields = fragment.split(",")
    if len(fields) <= _SLOT_ID_FIELD:
        raise ParseError(
            f"expected at least {_SLOT_ID_FIELD + 1} comma separated fields, got {len(fields)}",
            fragment_index=index,
            field="booking data",
        )

    session_number = _quoted(fields[_SESSION_FIELD], index=index, field="session")

    # "03/05/2019 (Fri)" -> "03/05/2019"
    raw_day = _quoted(fields[_DATE_FIELD], index=index, field="date").split(" ")[0]
    # strptime alone would also take "5/6/2025".
    if not _DAY_RE.match(raw_day):
        raise ParseError(f"cannot parse date {raw_day!r}: expected DD/MM/YYYY", fragment_index=index, field="date")
    try:
        day = dt.datetime.strptime(raw_day, DATE_FORMAT).date()
    except ValueError as e:
        raise ParseError(f"cannot parse date {raw_day!r}: {e}", fragment_index=index, field="date") from e

    id_section = fields[_SLOT_ID_FIELD]
    if _SLOT_ID_KEY not in id_section:
        raise ParseError(f"no {_SLOT_ID_KEY!r} marker", fragment_index=index, field="slot id")
    slot_id = _quoted(id_section.split(_SLOT_ID_KEY, 1)[1], index=index, field="slot id")
    if not slot_id:
        raise ParseError("empty slot id", fragment_index=index, field="slot id")

    return Slot(slot_id=slot_id, date=day, session_number=session_number)


def extract_slots(page: str) -> list[Slot]:
    """Extract every listed slot from the raw booking page, in page order.

    Any malformed fragment fails the whole page with ParseError.
    """
    fragments = page.split(SLOT_MARKER)[1:]

    slots: list[Slot] = []
    seen: set[str] = set()
    for index, fragment in enumerate(fragments):
        slot = _parse_fragment(fragment, index)
        if slot.slot_id in seen:
            raise ParseError(f"duplicate slot id {slot.slot_id!r}", fragment_index=index, field="slot id")
        seen.add(slot.slot_id)
        slots.append(slot)
    return slots
