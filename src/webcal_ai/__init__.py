"""webcal-ai: Web-page-to-Calendar AI.

Extracts calendar events from web pages with Gemini, compiles them into
an iCalendar document, and emails the invitation through Postmark.
"""

from __future__ import annotations

from webcal_ai.calendar import compile_calendar, read_calendar, validate_calendar
from webcal_ai.exceptions import (
    CompilationError,
    ContentUnavailableError,
    DispatchError,
    ExtractionError,
    ExtractionSchemaError,
    ExtractionTransportError,
    WebcalError,
    WorkflowBusyError,
    WorkflowStateError,
)
from webcal_ai.extractor import EventExtractor, parse_response
from webcal_ai.models import CalendarStyle, EventRecord, PageMaterials, SessionState, Stage
from webcal_ai.workflow import RunResult, SessionController

__version__ = "0.1.0"

__all__ = [
    "CalendarStyle",
    "CompilationError",
    "ContentUnavailableError",
    "DispatchError",
    "EventExtractor",
    "EventRecord",
    "ExtractionError",
    "ExtractionSchemaError",
    "ExtractionTransportError",
    "PageMaterials",
    "RunResult",
    "SessionController",
    "SessionState",
    "Stage",
    "WebcalError",
    "WorkflowBusyError",
    "WorkflowStateError",
    "compile_calendar",
    "parse_response",
    "read_calendar",
    "validate_calendar",
]
