"""Fixtures shared by the webcal-ai unit tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from webcal_ai.config import Settings
from webcal_ai.models.calendar import CalendarStyle
from webcal_ai.models.event import EventRecord


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """A fully populated :class:`Settings` with a temporary session store."""
    return Settings(
        gemini_api_key="test-gemini-key",
        postmark_api_key="test-postmark-token",
        from_email="calendar@example.com",
        to_confirmed_email="confirmed@example.com",
        to_tentative_email="tentative@example.com",
        session_store_path=tmp_path / "sessions.json",
    )


@pytest.fixture()
def style() -> CalendarStyle:
    return CalendarStyle()


@pytest.fixture()
def board_meeting() -> EventRecord:
    """The timed event from the Board Meeting example page."""
    return EventRecord(
        summary="Board Meeting",
        location="City Hall, 1 Main St",
        start_date="2025-03-10",
        start_time="14:00",
        end_date="2025-03-10",
        end_time="15:30",
        description="Quarterly board meeting.\n\nSource: https://example.org/board",
        timezone="America/Los_Angeles",
        url="https://example.org/board",
    )


@pytest.fixture()
def festival() -> EventRecord:
    """A three-day all-day event."""
    return EventRecord(
        summary="Harvest Festival",
        location="Riverside Park",
        start_date="2025-10-03",
        end_date="2025-10-05",
        description="Food, music and crafts.",
        url="https://example.org/harvest",
    )
