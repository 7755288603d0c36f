"""Pydantic models for extracted calendar events.

Defines the structured data types used between the extractor and the
calendar compiler:

- :class:`EventRecord` -- a single validated event (ISO date strings,
  ``HH:MM`` times, ``None`` times meaning all-day).
- :class:`LLMEventSchema` / :func:`response_schema_for` -- the strict
  ``response_schema`` handed to Gemini.  Every key is required; only the
  time fields are nullable.
- :class:`DistilledContent` -- schema for the distillation pre-pass.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Upper bound on events per extraction when multi-day mode is on.
MAX_MULTIDAY_EVENTS = 50

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")

# ---------------------------------------------------------------------------
# EventRecord
# ---------------------------------------------------------------------------


class EventRecord(BaseModel):
    """A single validated calendar event.

    Attributes:
        summary: Event title.
        location: Physical address or, failing that, a virtual link.
        start_date: ``YYYY-MM-DD``.
        start_time: ``HH:MM`` (24h) or ``None`` for all-day events.
        end_date: ``YYYY-MM-DD``; defaults to *start_date*.
        end_time: ``HH:MM`` (24h) or ``None``.
        description: Plain-text description.
        timezone: IANA timezone name, or ``""`` when unknown.
        url: Cleaned source URL.
        status: ``"confirmed"`` or ``"tentative"``.
    """

    model_config = ConfigDict(frozen=True)

    summary: str = Field(min_length=1)
    location: str = ""
    start_date: str = Field(min_length=10)
    start_time: str | None = None
    end_date: str = ""
    end_time: str | None = None
    description: str = ""
    timezone: str = ""
    url: str = ""
    status: Literal["confirmed", "tentative"] = "confirmed"

    @field_validator("location", "description", "timezone", "url", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("start_date", "end_date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        value = value.strip()
        if value:
            date.fromisoformat(value)
        return value

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _normalise_time(cls, value: Any) -> str | None:
        """Accept ``H:MM``, ``HH:MM`` or ``HH:MM:SS``; blank means no time."""
        if value is None:
            return None
        text = str(value).strip()
        if not text or text.lower() == "null":
            return None
        match = _TIME_RE.match(text)
        if match is None:
            raise ValueError(f"time must be HH:MM (24-hour), got {text!r}")
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError(f"time out of range: {text!r}")
        return f"{hour:02d}:{minute:02d}"

    @model_validator(mode="before")
    @classmethod
    def _default_end_date(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("end_date"):
            data = {**data, "end_date": data.get("start_date", "")}
        return data

    @model_validator(mode="after")
    def _check_range(self) -> EventRecord:
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date ({self.end_date}) is before start_date ({self.start_date})"
            )
        return self

    @property
    def is_all_day(self) -> bool:
        """True iff neither a start time nor an end time is present."""
        return self.start_time is None and self.end_time is None

    @property
    def is_tentative(self) -> bool:
        return self.status == "tentative"


# ---------------------------------------------------------------------------
# Response schemas for Gemini structured output
# ---------------------------------------------------------------------------


class LLMEventSchema(BaseModel):
    """Single-event schema for Gemini's ``response_schema`` parameter.

    No field has a default so every key is *required* in the generated
    JSON schema; the time fields accept ``null`` for all-day events.
    """

    summary: str
    location: str
    start_date: str
    start_time: str | None
    end_date: str
    end_time: str | None
    description: str
    timezone: str
    url: str


class SingleEventResponse(BaseModel):
    """Response schema when exactly one event is expected."""

    events: list[LLMEventSchema] = Field(min_length=1, max_length=1)


class MultiEventResponse(BaseModel):
    """Response schema when several related events may be extracted."""

    events: list[LLMEventSchema] = Field(min_length=1, max_length=MAX_MULTIDAY_EVENTS)


def response_schema_for(multiday: bool) -> type[BaseModel]:
    """Return the response schema for the requested cardinality."""
    return MultiEventResponse if multiday else SingleEventResponse


class DistilledContent(BaseModel):
    """Schema for the distillation pre-pass: exactly ``{content: string}``."""

    content: str
