"""Console output for workflow results and calendar previews.

:func:`format_run_result` renders a :class:`~webcal_ai.workflow.RunResult`
as a short report; :func:`format_calendar_preview` renders events
recovered by the read-back parser.  :func:`print_run_result` writes the
report to stdout.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence

from webcal_ai.models.calendar import ParsedEvent
from webcal_ai.models.event import EventRecord
from webcal_ai.models.session import Stage
from webcal_ai.workflow import RunResult

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_BANNER_WIDTH = 60
_SEPARATOR = "=" * _BANNER_WIDTH

_STAGE_HEADLINES = {
    Stage.COLLECTING: "Returned to form",
    Stage.REVIEWING: "Awaiting review",
    Stage.DISPATCHED: "Invitation sent",
    Stage.COMPLETED_WITH_WARNING: "Calendar created, email not sent",
    Stage.REJECTED: "Rejected",
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def format_run_result(result: RunResult) -> str:
    """Render *result* as a multi-line report."""
    lines = [_SEPARATOR, "  WEB PAGE TO CALENDAR", _SEPARATOR, ""]
    headline = _STAGE_HEADLINES.get(result.stage, result.stage.value)
    lines.append(f"Status: {headline}")

    if result.error:
        lines.append(f"Error: {result.error}")
    if result.warning:
        lines.append(f"Warning: {result.warning}")

    if result.events:
        lines.append("")
        lines.append(f"--- Events ({len(result.events)}) ---")
        for index, event in enumerate(result.events, start=1):
            _append_event(lines, index, event)

    if result.attempts:
        lines.append("")
        distilled = " (distilled content)" if result.used_distilled else ""
        lines.append(f"Extraction attempts: {result.attempts}{distilled}")
    if result.dispatch is not None:
        message_id = f" [{result.dispatch.message_id}]" if result.dispatch.message_id else ""
        lines.append(f"Email: {result.dispatch.message}{message_id}")
    if result.duration_seconds:
        lines.append(f"Completed in {result.duration_seconds:.1f}s")

    lines.append(_SEPARATOR)
    return "\n".join(lines)


def print_run_result(result: RunResult) -> None:
    sys.stdout.write(format_run_result(result) + "\n")


def format_calendar_preview(events: Sequence[ParsedEvent]) -> str:
    """Render read-back events as a compact list."""
    if not events:
        return "No events found."

    lines: list[str] = []
    for index, event in enumerate(events, start=1):
        when = _format_stamp(event.start)
        if event.end:
            when = f"{when} - {_format_stamp(event.end)}"
        if event.all_day:
            when = f"{when} (all day)"
        elif event.timezone:
            when = f"{when} {event.timezone}"
        lines.append(f"{index}. {event.summary}")
        lines.append(f"   When: {when}")
        if event.location:
            lines.append(f"   Where: {event.location}")
        if event.status:
            lines.append(f"   Status: {event.status}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Internal formatters
# ---------------------------------------------------------------------------


def _append_event(lines: list[str], index: int, event: EventRecord) -> None:
    lines.append("")
    lines.append(f"  Event {index}: {event.summary}")
    if event.is_all_day:
        when = event.start_date
        if event.end_date != event.start_date:
            when = f"{event.start_date} to {event.end_date}"
        lines.append(f"    When: {when} (all day)")
    else:
        end = f" - {event.end_date} {event.end_time}" if event.end_time else ""
        tz = f" {event.timezone}" if event.timezone else ""
        lines.append(f"    When: {event.start_date} {event.start_time or ''}{end}{tz}")
    if event.location:
        lines.append(f"    Where: {event.location}")
    lines.append(f"    Status: {event.status}")


def _format_stamp(value: str) -> str:
    """Turn ``20250310T140000`` into ``2025-03-10 14:00``."""
    text = value.rstrip("Z")
    if len(text) >= 8 and text[:8].isdigit():
        day = f"{text[:4]}-{text[4:6]}-{text[6:8]}"
        if len(text) >= 13 and text[8] == "T":
            return f"{day} {text[9:11]}:{text[11:13]}"
        return day
    return value
