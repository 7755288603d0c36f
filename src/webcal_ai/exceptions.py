"""Custom exceptions for the webcal-ai pipeline.

Exception hierarchy::

    WebcalError
    +-- ContentUnavailableError   (page materials could not be captured)
    +-- DistillationDegraded      (distillation unusable; always recovered)
    +-- ExtractionError
    |   +-- ExtractionSchemaError     (response failed parsing/validation)
    |   +-- ExtractionTransportError  (the completion call itself failed)
    +-- CompilationError          (invariant violation while compiling)
    +-- DispatchError             (email delivery failed)
    +-- WorkflowStateError        (action not allowed in the current stage)
        +-- WorkflowBusyError     (a run is already in flight for the tab)
"""

from __future__ import annotations


class WebcalError(Exception):
    """Base class for all webcal-ai errors."""


class ContentUnavailableError(WebcalError):
    """Raised when page materials cannot be captured or fetched."""


class DistillationDegraded(WebcalError):
    """Raised inside the distiller when its output is unusable.

    Never escapes :class:`~webcal_ai.distiller.ContentDistiller`; the
    pipeline continues with the raw html instead.
    """


class ExtractionError(WebcalError):
    """Base class for event extraction failures.

    Both subclasses trigger the fallback strategies in
    :class:`~webcal_ai.extractor.EventExtractor` before being surfaced.
    """


class ExtractionSchemaError(ExtractionError):
    """Raised when the model response cannot be parsed or validated.

    Attributes:
        raw_response: The raw model output that failed to parse.
    """

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response


class ExtractionTransportError(ExtractionError):
    """Raised when the completion call fails (network, auth, quota)."""


class CompilationError(WebcalError):
    """Raised when well-formed event records cannot be compiled.

    Should be unreachable; treated as an invariant violation.
    """


class DispatchError(WebcalError):
    """Raised when the email-delivery collaborator rejects or fails a send.

    Attributes:
        status_code: HTTP status code, or ``None`` for transport failures.
        response_text: Body returned by the delivery service, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text


class WorkflowStateError(WebcalError):
    """Raised when a workflow action is invalid for the current stage."""


class WorkflowBusyError(WorkflowStateError):
    """Raised when a second run starts while one is in flight for a tab."""
