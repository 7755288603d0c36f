"""Read-back parser for displaying calendar text.

Recovers just enough of each ``VEVENT`` for a preview.  Parsing is done
by :mod:`icalendar`; only the event's own properties are read, so nested
components such as ``VALARM`` never leak into the preview.  Events
without a summary or start are skipped.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from icalendar import Calendar, Component

from webcal_ai.models.calendar import ParsedEvent

logger = logging.getLogger(__name__)


def read_calendar(text: str) -> list[ParsedEvent]:
    """Parse the ``VEVENT`` components of *text* into :class:`ParsedEvent` records.

    Unparseable text yields an empty list.
    """
    try:
        components = Calendar.from_ical(text or "", multiple=True)
    except ValueError as exc:
        logger.debug("Could not read calendar text: %s", exc)
        return []

    events: list[ParsedEvent] = []
    for component in components:
        for vevent in component.walk("VEVENT"):
            event = _to_parsed_event(vevent)
            if event is not None:
                events.append(event)
    return events


def _to_parsed_event(vevent: Component) -> ParsedEvent | None:
    summary = str(vevent.get("SUMMARY", ""))
    start = vevent.get("DTSTART")
    if not summary or start is None:
        return None
    end = vevent.get("DTEND")
    return ParsedEvent(
        summary=summary,
        start=_stamp(start),
        end=_stamp(end) if end is not None else None,
        all_day=not isinstance(start.dt, datetime),
        timezone=_zone_name(start),
        description=str(vevent.get("DESCRIPTION", "")),
        location=str(vevent.get("LOCATION", "")),
        url=str(vevent.get("URL", "")),
        status=str(vevent.get("STATUS", "")).lower(),
    )


def _stamp(prop: Any) -> str:
    """Return the value as written, e.g. ``20250310T140000`` or ``20251003``."""
    return prop.to_ical().decode("utf-8")


def _zone_name(prop: Any) -> str:
    tzid = prop.params.get("TZID")
    if tzid:
        return str(tzid)
    if isinstance(prop.dt, datetime) and prop.dt.tzinfo is not None:
        return "UTC"
    return ""
