"""Compile validated events into an RFC 5545 iCalendar document.

Documents are built with :mod:`icalendar` and serialised with
``to_ical(sorted=False)`` so properties keep the order they were added
in.  The compiler is pure apart from the clock: the same events and style
always produce the same document, except for the ``UID`` and ``DTSTAMP``
values of each ``VEVENT``.

Each ``VEVENT`` carries its properties in a fixed order:

- **UID** -- slugified summary, ordinal index and a nanosecond timestamp.
- **DTSTAMP** -- compile time in UTC.
- **DTSTART / DTEND** -- ``VALUE=DATE`` for all-day events (exclusive
  end), ``TZID=`` local wall time for timed events in a named timezone,
  and a ``Z`` suffixed UTC stamp otherwise.  Unknown timezone names fall
  back to the style default.
- **SUMMARY**, then **DESCRIPTION**, **LOCATION** and **URL** when set.
- **STATUS** (``CONFIRMED`` or ``TENTATIVE``).
- **ORGANIZER** when an organizer address is supplied.
- **X-ALT-DESC** with an HTML rendering of the description, when enabled.
"""

from __future__ import annotations

import html
import logging
import re
import time as time_module
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from icalendar import Calendar, Event, vCalAddress

from webcal_ai.calendar.text import plain_text, sanitize_description
from webcal_ai.exceptions import CompilationError
from webcal_ai.models.calendar import CalendarStyle
from webcal_ai.models.event import EventRecord

logger = logging.getLogger(__name__)

UID_DOMAIN = "webcal-ai.local"

_UTC = ZoneInfo("UTC")
_UTC_NAMES = frozenset({"UTC", "Z", "GMT", "ETC/UTC", "ETC/GMT"})
_SLUG_RE = re.compile(r"[^a-z0-9]+")
_URL_RE = re.compile(r"(https?://[^\s<]+)")


def compile_calendar(
    events: Sequence[EventRecord],
    style: CalendarStyle | None = None,
    organizer: str | None = None,
    now: datetime | None = None,
) -> str:
    """Render *events* as a complete ``VCALENDAR`` document.

    Args:
        events: Validated events, in order.  Must not be empty.
        style: Compiler style; defaults to :class:`CalendarStyle()`.
        organizer: Organizer email address, emitted as ``mailto:``.
        now: Override for the ``DTSTAMP`` clock (UTC).

    Returns:
        The document text, CRLF line endings, ending with a CRLF.

    Raises:
        CompilationError: If the events cannot be rendered.  Validated
            :class:`EventRecord` values should never trigger this.
    """
    if not events:
        raise CompilationError("Cannot compile a calendar without events")

    style = style or CalendarStyle()
    stamp = (now or datetime.now(timezone.utc)).astimezone(_UTC)

    calendar = Calendar()
    calendar.add("version", "2.0")
    calendar.add("prodid", style.product_id)
    calendar.add("method", style.method)
    calendar.add("calscale", "GREGORIAN")
    try:
        for index, event in enumerate(events):
            calendar.add_component(_build_event(event, index, style, organizer, stamp))
        document = calendar.to_ical(sorted=False).decode("utf-8")
    except (ValueError, TypeError, OverflowError) as exc:
        logger.error("Calendar compilation failed: %s", exc)
        raise CompilationError(f"Could not compile event: {exc}") from exc

    logger.info("Compiled %d event(s) into a %s calendar", len(events), style.method)
    return document


def make_uid(summary: str, index: int) -> str:
    """Build a globally unique ``UID`` for the *index*-th event."""
    slug = _SLUG_RE.sub("-", summary.lower()).strip("-") or "event"
    return f"{slug}-{index}-{time_module.time_ns()}@{UID_DOMAIN}"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_event(
    event: EventRecord,
    index: int,
    style: CalendarStyle,
    organizer: str | None,
    stamp: datetime,
) -> Event:
    start, end = _event_bounds(event, style.default_timezone)
    description = sanitize_description(plain_text(event.description))

    vevent = Event()
    vevent.add("uid", make_uid(event.summary, index))
    vevent.add("dtstamp", stamp)
    vevent.add("dtstart", start)
    vevent.add("dtend", end)
    vevent.add("summary", plain_text(event.summary))
    if description:
        vevent.add("description", description)
    if event.location:
        vevent.add("location", plain_text(event.location))
    if event.url:
        vevent.add("url", event.url)
    vevent.add("status", event.status.upper())
    if organizer:
        vevent.add("organizer", vCalAddress(f"mailto:{organizer}"))
    if description and style.include_alt_html_description:
        vevent.add(
            "x-alt-desc",
            _html_description(description),
            parameters={"FMTTYPE": "text/html"},
        )
    return vevent


def _event_bounds(
    event: EventRecord, default_timezone: str
) -> tuple[date, date] | tuple[datetime, datetime]:
    """Return the ``DTSTART`` and ``DTEND`` values for *event*."""
    start_day = date.fromisoformat(event.start_date)
    end_day = date.fromisoformat(event.end_date or event.start_date)

    if event.is_all_day:
        # DTEND;VALUE=DATE is exclusive.
        return start_day, end_day + timedelta(days=1)

    start = datetime.combine(start_day, _parse_time(event.start_time))
    if event.end_time:
        end = datetime.combine(end_day, _parse_time(event.end_time))
    else:
        end = start + timedelta(hours=1)
    if end <= start:
        logger.warning(
            "Event '%s' ends at or before its start; using a one-hour duration",
            event.summary,
        )
        end = start + timedelta(hours=1)

    zone = _resolve_zone(event.timezone, default_timezone, event.summary)
    return start.replace(tzinfo=zone), end.replace(tzinfo=zone)


def _resolve_zone(name: str, default_timezone: str, summary: str) -> tzinfo:
    """Pick the event timezone, else the default, else UTC.

    Names that are not IANA zones are skipped with a warning.
    """
    for candidate in (name, default_timezone):
        candidate = (candidate or "").strip()
        if not candidate:
            continue
        if candidate.upper() in _UTC_NAMES:
            return _UTC
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            logger.warning("Unknown timezone '%s' for event '%s'; ignoring it", candidate, summary)
    return _UTC


def _parse_time(value: str | None) -> time:
    if not value:
        return time(0, 0)
    hour, minute = value.split(":")[:2]
    return time(int(hour), int(minute))


def _html_description(description: str) -> str:
    """Render a plain-text description as minimal HTML with live links."""
    escaped = html.escape(description, quote=False)
    linked = _URL_RE.sub(r'<a href="\1">\1</a>', escaped)
    body = linked.replace("\n", "<br>")
    return f"<html><body><p>{body}</p></body></html>"
