"""Prompt builders for the Gemini extraction and distillation calls.

The system prompt is deterministic for a given cardinality and default
timezone so that it can be cached by the provider; everything that
varies per run (status, instructions, source URL, page content) goes into
the user content.
"""

from __future__ import annotations

from webcal_ai.models.page import PageMaterials
from webcal_ai.urls import strip_tracking_parameters


def build_system_prompt(multiday: bool, default_timezone: str) -> str:
    """Build the system prompt for the extraction call.

    Args:
        multiday: When ``True`` the model may return every related
            session as a separate event; otherwise exactly one event.
        default_timezone: IANA timezone to assume when the page names none.

    Returns:
        The complete system prompt string.
    """
    if multiday:
        cardinality = """\
- MULTI-DAY MODE: extract ALL related performances, sessions or days as
  SEPARATE events (one object per occurrence, at most 50).
- Do not merge separate occurrences into one long event."""
    else:
        cardinality = """\
- SINGLE EVENT MODE: return exactly ONE event, the main/primary event on
  the page.
- If the page lists several occurrences, pick the one the instructions
  point to, otherwise the first upcoming one."""

    return f"""\
You are an AI assistant that extracts calendar events from web content and
converts them to structured JSON for calendar creation.

Respond with JSON only. No markdown, no explanations.

## Output Format

Return an object with an "events" array. Every event object MUST contain
all of these keys (none may be omitted):

- "summary": short event title
- "location": event location (see Location Rules), or "" if none at all
- "start_date": "YYYY-MM-DD"
- "start_time": "HH:MM" (24-hour) or null for all-day events
- "end_date": "YYYY-MM-DD"
- "end_time": "HH:MM" (24-hour) or null for all-day events
- "description": plain-text event description
- "timezone": IANA timezone name, e.g. "{default_timezone}"
- "url": the source URL

## Date and Time Rules

- Use ISO 8601 dates (YYYY-MM-DD).
- Use 24-hour times (HH:MM).
- For all-day events set BOTH start_time and end_time to null.
- If a start time is given but no end time, make a reasonable estimate.
- end_date must never be before start_date.
- Default timezone is {default_timezone} unless the content specifies one.

## Cardinality

{cardinality}

## Location Rules

- Prefer a physical address or venue over a virtual meeting link.
- Only use a virtual link (Zoom, Meet, Teams, ...) as the location when no
  physical address exists anywhere in the source.
- When both exist, mention the virtual link in the description instead.

## Source URL

- If a source URL is provided, put it in the "url" field.
- ALSO append it at the bottom of the description as:
  "\\n\\nSource: <url>"

## Status

- The event status is supplied by the user; do not write a
  "Status: ..." line into the description.
"""


def build_user_content(
    materials: PageMaterials,
    instructions: str,
    tentative: bool,
    multiday: bool,
) -> str:
    """Build the per-run user content.

    Args:
        materials: Page materials (html possibly replaced by distilled text).
        instructions: Free-text hints entered by the user.
        tentative: Whether the events are tentative.
        multiday: Whether multiple events may be extracted.

    Returns:
        The user content string.
    """
    parts: list[str] = []

    if multiday:
        parts.append(
            "MULTI-DAY MODE: Extract ALL related performances/sessions as SEPARATE events."
        )
    else:
        parts.append("SINGLE EVENT MODE: Focus on extracting ONLY the main/primary event.")

    parts.append(f"Event status: {'Tentative' if tentative else 'Confirmed'}")

    if instructions.strip():
        parts.append(f"Special instructions: {instructions.strip()}")

    clean_url = strip_tracking_parameters(materials.url)
    if clean_url:
        parts.append(f"Source URL: {clean_url}")

    content = f"Content to analyze:\n{materials.html}"
    if materials.text and materials.text.strip() and materials.text not in materials.html:
        content += f"\n\nVisible text:\n{materials.text}"
    parts.append(content)

    return "\n\n".join(parts)


def build_distill_prompt() -> str:
    """Build the system prompt for the distillation pre-pass."""
    return """\
You reduce noisy web page markup to its main textual content.

Return an object with a single "content" string containing the page's
main content as plain text: titles, dates, times, venues, addresses,
descriptions, prices and links that matter to a reader. Drop navigation,
footers, cookie banners, scripts, styles and advertising. Do not
summarise or invent anything; keep the original wording.
"""


def build_distill_user_content(url: str, html: str) -> str:
    """Build the user content for the distillation pre-pass."""
    return f"Source URL: {strip_tracking_parameters(url)}\n\nMarkup:\n{html}"
