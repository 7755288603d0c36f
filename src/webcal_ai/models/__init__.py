"""Data models for webcal-ai."""

from __future__ import annotations

from webcal_ai.models.calendar import CalendarStyle, ParsedEvent
from webcal_ai.models.dispatch import Attachment, DispatchResult, EmailDispatch
from webcal_ai.models.event import (
    DistilledContent,
    EventRecord,
    LLMEventSchema,
    MultiEventResponse,
    SingleEventResponse,
    response_schema_for,
)
from webcal_ai.models.page import ExtractionRequest, PageMaterials
from webcal_ai.models.session import FormFields, SessionState, Stage

__all__ = [
    "Attachment",
    "CalendarStyle",
    "DispatchResult",
    "DistilledContent",
    "EmailDispatch",
    "EventRecord",
    "ExtractionRequest",
    "FormFields",
    "LLMEventSchema",
    "MultiEventResponse",
    "PageMaterials",
    "ParsedEvent",
    "SessionState",
    "SingleEventResponse",
    "Stage",
    "response_schema_for",
]
