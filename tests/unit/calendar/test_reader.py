"""Tests for the read-back calendar parser."""

from __future__ import annotations

from webcal_ai.calendar.reader import read_calendar

_TWO_EVENTS = "\r\n".join(
    [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "BEGIN:VEVENT",
        "UID:a@test",
        "DTSTART;TZID=America/Los_Angeles:20250310T140000",
        "DTEND;TZID=America/Los_Angeles:20250310T153000",
        "SUMMARY:Board Meeting\\, Q1",
        "DESCRIPTION:Line one\\nLine two with a long tail that continues on the",
        "  next physical line",
        "LOCATION:City Hall\\; Room 2",
        "URL:https://example.org/board",
        "STATUS:TENTATIVE",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:b@test",
        "DTSTART;VALUE=DATE:20251003",
        "DTEND;VALUE=DATE:20251006",
        "SUMMARY:Harvest Festival",
        "END:VEVENT",
        "END:VCALENDAR",
        "",
    ]
)


class TestReadCalendar:
    def test_reads_every_event(self) -> None:
        events = read_calendar(_TWO_EVENTS)

        assert [e.summary for e in events] == ["Board Meeting, Q1", "Harvest Festival"]

    def test_timed_event_fields(self) -> None:
        event = read_calendar(_TWO_EVENTS)[0]

        assert event.start == "20250310T140000"
        assert event.end == "20250310T153000"
        assert event.timezone == "America/Los_Angeles"
        assert event.all_day is False
        assert event.location == "City Hall; Room 2"
        assert event.url == "https://example.org/board"
        assert event.status == "tentative"

    def test_folded_lines_are_joined_and_unescaped(self) -> None:
        event = read_calendar(_TWO_EVENTS)[0]

        assert event.description == (
            "Line one\nLine two with a long tail that continues on the next physical line"
        )

    def test_all_day_event(self) -> None:
        event = read_calendar(_TWO_EVENTS)[1]

        assert event.all_day is True
        assert event.start == "20251003"
        assert event.timezone == ""

    def test_utc_stamp_reports_utc(self) -> None:
        text = "BEGIN:VEVENT\nSUMMARY:Launch\nDTSTART:20250310T180000Z\nEND:VEVENT\n"

        (event,) = read_calendar(text)

        assert event.timezone == "UTC"

    def test_blocks_without_summary_or_start_are_dropped(self) -> None:
        text = "\n".join(
            [
                "BEGIN:VEVENT",
                "DTSTART:20250310T180000Z",
                "END:VEVENT",
                "BEGIN:VEVENT",
                "SUMMARY:No start",
                "END:VEVENT",
            ]
        )

        assert read_calendar(text) == []

    def test_garbage_yields_nothing(self) -> None:
        assert read_calendar("hello world") == []

    def test_nested_alarm_text_stays_out_of_event(self) -> None:
        text = "\r\n".join(
            [
                "BEGIN:VCALENDAR",
                "VERSION:2.0",
                "BEGIN:VEVENT",
                "UID:picnic@test",
                "DTSTART;VALUE=DATE:20250601",
                "SUMMARY:Picnic",
                "DESCRIPTION:Bring a basket",
                "BEGIN:VALARM",
                "ACTION:DISPLAY",
                "DESCRIPTION:Reminder",
                "TRIGGER:-PT1H",
                "END:VALARM",
                "END:VEVENT",
                "END:VCALENDAR",
                "",
            ]
        )

        (event,) = read_calendar(text)

        assert event.summary == "Picnic"
        assert event.description == "Bring a basket"
