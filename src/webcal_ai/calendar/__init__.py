"""iCalendar compilation, validation and read-back."""

from webcal_ai.calendar.compiler import compile_calendar, make_uid
from webcal_ai.calendar.reader import read_calendar
from webcal_ai.calendar.text import sanitize_description
from webcal_ai.calendar.validator import validate_calendar

__all__ = [
    "compile_calendar",
    "make_uid",
    "read_calendar",
    "sanitize_description",
    "validate_calendar",
]
