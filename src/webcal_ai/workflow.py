"""Per-tab session workflow.

:class:`SessionController` drives one tab's form through the pipeline::

    COLLECTING -> DISTILLING? -> EXTRACTING -> COMPILING
        -> REVIEWING        -> DISPATCHED | REJECTED
        -> AUTO_DISPATCHING -> DISPATCHED | COMPLETED_WITH_WARNING

Every stage change is persisted through the
:class:`~webcal_ai.session_store.SessionRepository`, so a view that closes
mid-way can be reopened within the freshness window and pick up its form
values and any results awaiting review.  A run that was in flight when the
view closed is not resumed; the restored session returns to the form.

Runs are serialised per tab: starting a second run while one is in flight
raises :class:`~webcal_ai.exceptions.WorkflowBusyError`.
:meth:`SessionController.abandon` cancels the in-flight run; its late
results are never applied.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from webcal_ai.calendar.compiler import compile_calendar
from webcal_ai.distiller import ContentDistiller
from webcal_ai.dispatcher import Dispatcher
from webcal_ai.exceptions import (
    CompilationError,
    ContentUnavailableError,
    DispatchError,
    ExtractionError,
    WorkflowBusyError,
    WorkflowStateError,
)
from webcal_ai.extractor import EventExtractor
from webcal_ai.log import tab_logger
from webcal_ai.models.calendar import CalendarStyle
from webcal_ai.models.dispatch import DispatchResult
from webcal_ai.models.event import EventRecord
from webcal_ai.models.page import ExtractionRequest, PageMaterials
from webcal_ai.models.session import REVIEW_OPTIONS, SessionState, Stage
from webcal_ai.session_store import SessionRepository

MaterialsSource = Callable[[str], Awaitable[PageMaterials]]

INTERRUPTED_MESSAGE = "The previous run was interrupted; please run it again."


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass
class RunResult:
    """Outcome of a workflow action.

    Attributes:
        stage: Stage the session is in after the action.
        events: Extracted events (empty when extraction did not succeed).
        document: Compiled calendar text, or ``""``.
        attempts: Completion calls made by the extractor.
        used_distilled: Whether the successful extraction used distilled
            content.
        dispatch: Delivery outcome, when an email was sent.
        warning: Non-fatal problem, e.g. a failed auto-dispatch.
        error: Error that returned the session to the form.
        duration_seconds: Wall-clock time of the action.
    """

    stage: Stage
    events: list[EventRecord] = field(default_factory=list)
    document: str = ""
    attempts: int = 0
    used_distilled: bool = False
    dispatch: DispatchResult | None = None
    warning: str | None = None
    error: str | None = None
    duration_seconds: float = 0.0


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class SessionController:
    """Own one tab's session and run the pipeline for it.

    Args:
        tab_id: Identifier of the browsing tab.
        repository: Session persistence.
        extractor: Event extractor.
        distiller: Content distiller used when ``pre_distill`` is set.
        dispatcher: Email dispatcher.
        style: Calendar compiler style.
        organizer: Organizer address written into compiled events.
    """

    def __init__(
        self,
        tab_id: str,
        repository: SessionRepository,
        extractor: EventExtractor,
        distiller: ContentDistiller,
        dispatcher: Dispatcher,
        style: CalendarStyle,
        organizer: str | None = None,
    ) -> None:
        self.tab_id = tab_id
        self._repository = repository
        self._extractor = extractor
        self._distiller = distiller
        self._dispatcher = dispatcher
        self._style = style
        self._organizer = organizer
        self._log = tab_logger(__name__, tab_id)

        self._state = SessionState(tab_id=tab_id)
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[RunResult] | None = None
        self._abandoned = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    # ------------------------------------------------------------------
    # View lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> SessionState:
        """Restore the tab's fresh snapshot, or start from defaults."""
        self._repository.cleanup()
        restored = self._repository.load(self.tab_id)
        if restored is None:
            self._log.info("No saved session; starting from defaults")
            self._state = SessionState(tab_id=self.tab_id)
            return self._state

        if restored.in_flight:
            self._log.info(
                "Saved session was interrupted during %s; returning to the form",
                restored.stage.value,
            )
            restored.stage = Stage.COLLECTING
            restored.last_result = None
            restored.last_error = INTERRUPTED_MESSAGE
            self._repository.save(restored)
        else:
            self._log.info("Restored session at stage %s", restored.stage.value)

        self._state = restored
        return self._state

    def update_fields(self, **changes: Any) -> SessionState:
        """Change form values and persist them.

        Raises:
            TypeError: If a name is not a form field.
            ValueError: If ``review_option`` is not recognised.
        """
        if "review_option" in changes and changes["review_option"] not in REVIEW_OPTIONS:
            raise ValueError(f"review_option must be one of {REVIEW_OPTIONS}")
        self._state.form_fields = dataclasses.replace(self._state.form_fields, **changes)
        self._repository.save(self._state)
        return self._state

    def teardown(self) -> None:
        """Persist the session when the view closes.

        A dispatched session has already been deleted and stays deleted.
        """
        if self._state.stage is Stage.DISPATCHED:
            return
        self._repository.save(self._state)
        self._log.debug("Session persisted at stage %s", self._state.stage.value)

    def close_tab(self) -> None:
        """Forget the session when its tab is closed."""
        if self._task is not None and not self._task.done():
            self._abandoned = True
            self._task.cancel()
        self._repository.discard(self.tab_id)
        self._log.info("Tab closed; session discarded")

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def run(self, source: PageMaterials | MaterialsSource) -> RunResult:
        """Run the pipeline for the current form values.

        Args:
            source: The page materials, or a coroutine function that
                collects them for a URL.

        Returns:
            A :class:`RunResult`.  Collection, extraction and compilation
            failures return the session to the form with ``error`` set;
            they are not raised.

        Raises:
            WorkflowBusyError: If a run is already in flight for the tab.
        """
        if self._lock.locked():
            raise WorkflowBusyError(f"A run is already in progress for tab {self.tab_id}")

        async with self._lock:
            self._abandoned = False
            self._task = asyncio.create_task(self._pipeline(source))
            try:
                return await self._task
            except asyncio.CancelledError:
                if not self._abandoned:
                    raise
                self._log.info("Run abandoned; results discarded")
                return RunResult(stage=self._state.stage, error="Run abandoned")
            finally:
                self._task = None

    async def _pipeline(self, source: PageMaterials | MaterialsSource) -> RunResult:
        started = time.monotonic()
        form = self._state.form_fields
        self._state.last_result = None
        self._state.last_error = None
        self._transition(Stage.COLLECTING)

        try:
            if isinstance(source, PageMaterials):
                materials = source
            else:
                materials = await source(form.url)
        except ContentUnavailableError as exc:
            return self._back_to_form(f"Could not read the page: {exc}", started)

        request = ExtractionRequest(
            materials=materials,
            instructions=form.instructions,
            model_id=form.model,
            tentative=form.tentative,
            multiday=form.multiday,
            pre_distill=form.pre_distill,
        )

        distilled: str | None = None
        if request.pre_distill:
            self._transition(Stage.DISTILLING)
            distilled = await self._distiller.distill(materials.url, materials.html)

        self._transition(Stage.EXTRACTING)
        try:
            outcome = await self._extractor.extract(request, distilled_html=distilled)
        except ExtractionError as exc:
            return self._back_to_form(f"Event extraction failed: {exc}", started)

        self._transition(Stage.COMPILING)
        events = list(outcome.events)
        try:
            document = self._compile(events)
        except CompilationError as exc:
            return self._back_to_form(f"Calendar compilation failed: {exc}", started)

        result = RunResult(
            stage=Stage.COMPILING,
            events=events,
            document=document,
            attempts=outcome.attempts,
            used_distilled=outcome.used_distilled,
        )
        self._state.last_result = _result_payload(events, document)

        if form.review_before_send:
            self._transition(Stage.REVIEWING)
            result.stage = Stage.REVIEWING
            result.duration_seconds = time.monotonic() - started
            return result

        self._transition(Stage.AUTO_DISPATCHING)
        try:
            result.dispatch = await self._dispatcher.dispatch(events, document, form.tentative)
        except DispatchError as exc:
            warning = f"Calendar created but email failed: {exc}"
            self._state.last_error = warning
            self._transition(Stage.COMPLETED_WITH_WARNING)
            result.stage = Stage.COMPLETED_WITH_WARNING
            result.warning = warning
            result.duration_seconds = time.monotonic() - started
            return result

        self._finish_dispatched()
        result.stage = Stage.DISPATCHED
        result.duration_seconds = time.monotonic() - started
        return result

    # ------------------------------------------------------------------
    # Review actions
    # ------------------------------------------------------------------

    async def confirm(self) -> RunResult:
        """Send the reviewed document.

        Raises:
            WorkflowStateError: If the session is not awaiting review.
            WorkflowBusyError: If a run is in flight.
            DispatchError: If delivery fails.  The review payload is kept
                so the user can try again or download the document.
        """
        self._require_stage(Stage.REVIEWING)
        if self._lock.locked():
            raise WorkflowBusyError(f"A run is already in progress for tab {self.tab_id}")

        async with self._lock:
            started = time.monotonic()
            events, document = self._pending_result()
            try:
                dispatch = await self._dispatcher.dispatch(
                    events, document, self._state.form_fields.tentative
                )
            except DispatchError as exc:
                self._state.last_error = f"Sending failed: {exc}"
                self._repository.save(self._state)
                self._log.warning("Confirmed dispatch failed; review kept: %s", exc)
                raise

            self._finish_dispatched()
            return RunResult(
                stage=Stage.DISPATCHED,
                events=events,
                document=document,
                dispatch=dispatch,
                duration_seconds=time.monotonic() - started,
            )

    def reject(self) -> SessionState:
        """Discard the reviewed results and return to the form.

        Raises:
            WorkflowStateError: If the session is not awaiting review.
        """
        self._require_stage(Stage.REVIEWING)
        self._state.last_result = None
        self._state.last_error = None
        self._transition(Stage.REJECTED)
        self._transition(Stage.COLLECTING)
        return self._state

    def recompile(self, tentative: bool) -> RunResult:
        """Recompile the held events with a new tentative flag.

        Only the compiler runs again; nothing is re-extracted.

        Raises:
            WorkflowStateError: If there are no results to recompile.
        """
        self._require_stage(Stage.REVIEWING, Stage.COMPLETED_WITH_WARNING)
        if not self._state.has_results:
            raise WorkflowStateError("There are no results to recompile")

        status = "tentative" if tentative else "confirmed"
        events, _ = self._pending_result()
        events = [event.model_copy(update={"status": status}) for event in events]
        document = self._compile(events)

        self._state.form_fields.tentative = tentative
        self._state.last_result = _result_payload(events, document)
        self._repository.save(self._state)
        self._log.info("Recompiled %d event(s) as %s", len(events), status)
        return RunResult(stage=self._state.stage, events=events, document=document)

    def abandon(self) -> SessionState:
        """Go back to the form, cancelling any run in flight."""
        if self._task is not None and not self._task.done():
            self._abandoned = True
            self._task.cancel()
        self._state.last_result = None
        self._state.last_error = None
        self._transition(Stage.COLLECTING)
        return self._state

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _compile(self, events: Sequence[EventRecord]) -> str:
        return compile_calendar(events, self._style, organizer=self._organizer)

    def _transition(self, stage: Stage) -> None:
        previous = self._state.stage
        self._state.stage = stage
        self._repository.save(self._state)
        if previous != stage:
            self._log.info("Stage %s -> %s", previous.value, stage.value)

    def _back_to_form(self, message: str, started: float) -> RunResult:
        self._log.warning("%s", message)
        self._state.last_result = None
        self._state.last_error = message
        self._transition(Stage.COLLECTING)
        return RunResult(
            stage=Stage.COLLECTING,
            error=message,
            duration_seconds=time.monotonic() - started,
        )

    def _finish_dispatched(self) -> None:
        self._state.last_error = None
        self._transition(Stage.DISPATCHED)
        self._repository.discard(self.tab_id)

    def _require_stage(self, *stages: Stage) -> None:
        if self._state.stage not in stages:
            allowed = ", ".join(stage.value for stage in stages)
            raise WorkflowStateError(
                f"Not allowed at stage {self._state.stage.value} (requires {allowed})"
            )

    def _pending_result(self) -> tuple[list[EventRecord], str]:
        payload = self._state.last_result or {}
        events = [EventRecord.model_validate(item) for item in payload.get("events", [])]
        document = payload.get("document", "")
        if not events or not document:
            raise WorkflowStateError("No compiled results are held for this tab")
        return events, document


def _result_payload(events: Sequence[EventRecord], document: str) -> dict[str, Any]:
    return {
        "events": [event.model_dump() for event in events],
        "document": document,
    }
