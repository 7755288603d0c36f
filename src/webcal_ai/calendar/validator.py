"""Structural checks for calendar text supplied from outside the compiler.

The text is parsed with :mod:`icalendar`; the checks then run on the
component tree, so properties of nested components (``VALARM`` and the
like) never count towards their enclosing ``VEVENT``.
"""

from __future__ import annotations

import logging

from icalendar import Calendar

logger = logging.getLogger(__name__)

REQUIRED_EVENT_PROPERTIES = ("UID", "DTSTART", "SUMMARY")

UNTERMINATED_MESSAGE = "Missing or unterminated VCALENDAR block"


def validate_calendar(text: str) -> list[str]:
    """Return a list of structural violations in *text*.

    An empty list means the document is well formed: exactly one
    complete ``VCALENDAR`` with ``VERSION:2.0``, at least one event, no
    nested events, and every event carrying ``UID``, ``DTSTART`` and
    ``SUMMARY`` with readable values.
    """
    try:
        components = Calendar.from_ical(text or "", multiple=True)
    except ValueError as exc:
        return [f"Could not parse calendar: {exc}"]

    errors: list[str] = []
    calendars = [component for component in components if component.name == "VCALENDAR"]
    for component in components:
        if component.name != "VCALENDAR":
            errors.append(f"{component.name} block outside VCALENDAR")
    if not calendars:
        errors.append(UNTERMINATED_MESSAGE)
        return errors
    if len(calendars) > 1:
        errors.append(f"Expected one VCALENDAR block, found {len(calendars)}")

    calendar = calendars[0]
    if str(calendar.get("VERSION", "")) != "2.0":
        errors.append("Missing VERSION:2.0")

    events = calendar.walk("VEVENT")
    if not events:
        errors.append("No events found")

    for number, event in enumerate(events, start=1):
        if any(sub.name == "VEVENT" for sub in event.subcomponents):
            errors.append(f"Event {number}: Nested VEVENT block")
        for required in REQUIRED_EVENT_PROPERTIES:
            if required not in event:
                errors.append(f"Event {number}: Missing {required}")
        for name, message in event.errors:
            errors.append(f"Event {number}: Invalid {name or 'line'}: {message}")

    if errors:
        logger.debug("Calendar validation found %d problem(s)", len(errors))
    return errors
