"""Calendar compiler configuration.

Defines :class:`CalendarStyle`, the style knobs applied when compiling
event records into an iCalendar document, and :class:`ParsedEvent`, the
display-only record recovered by the read-back parser.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_PRODUCT_ID = "-//webcal-ai//Calendar Compiler//EN"


@dataclass(frozen=True)
class CalendarStyle:
    """Style configuration for :func:`~webcal_ai.calendar.compiler.compile_calendar`.

    Attributes:
        method: iCalendar ``METHOD`` value (``"PUBLISH"`` or ``"REQUEST"``).
        include_alt_html_description: Emit an ``X-ALT-DESC`` HTML variant of
            the description.
        product_id: ``PRODID`` value.
        default_timezone: Timezone used for timed events that name none.
        filename: Attachment filename used when the document is mailed.
    """

    method: str = "PUBLISH"
    include_alt_html_description: bool = True
    product_id: str = DEFAULT_PRODUCT_ID
    default_timezone: str = "America/Los_Angeles"
    filename: str = "invite.ics"


@dataclass(frozen=True)
class ParsedEvent:
    """An event recovered from calendar text, for display only.

    Attributes:
        summary: Unescaped ``SUMMARY``.
        start: ``DTSTART`` value as written (e.g. ``20250310T140000``).
        end: ``DTEND`` value, or ``None``.
        all_day: Whether ``DTSTART`` carried ``VALUE=DATE``.
        timezone: ``TZID`` parameter, ``"UTC"`` for ``Z`` stamps, or ``""``.
        description: Unescaped ``DESCRIPTION``.
        location: Unescaped ``LOCATION``.
        url: ``URL`` value.
        status: Lower-cased ``STATUS``.
    """

    summary: str
    start: str
    end: str | None = None
    all_day: bool = False
    timezone: str = ""
    description: str = ""
    location: str = ""
    url: str = ""
    status: str = ""
