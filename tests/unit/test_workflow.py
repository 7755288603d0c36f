"""Tests for the per-tab session workflow."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from webcal_ai.calendar.validator import validate_calendar
from webcal_ai.exceptions import (
    ContentUnavailableError,
    DispatchError,
    ExtractionSchemaError,
    WorkflowBusyError,
    WorkflowStateError,
)
from webcal_ai.extractor import ExtractionOutcome
from webcal_ai.models.calendar import CalendarStyle
from webcal_ai.models.dispatch import DispatchResult
from webcal_ai.models.event import EventRecord
from webcal_ai.models.page import PageMaterials
from webcal_ai.models.session import SessionState, Stage
from webcal_ai.session_store import MemoryStore, SessionRepository, state_key
from webcal_ai.workflow import INTERRUPTED_MESSAGE, SessionController

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_MATERIALS = PageMaterials(url="https://example.org/board", html="<h1>Board Meeting</h1>")
_SENT = DispatchResult(success=True, message="OK", message_id="msg-1")


class Harness:
    """A controller wired to mocked collaborators and an in-memory store."""

    def __init__(self, events: list[EventRecord], tab_id: str = "7") -> None:
        self.store = MemoryStore()
        self.repository = SessionRepository(self.store)
        self.extractor = MagicMock()
        self.extractor.extract = AsyncMock(
            return_value=ExtractionOutcome(tuple(events), attempts=1, used_distilled=False)
        )
        self.distiller = MagicMock()
        self.distiller.distill = AsyncMock(return_value=None)
        self.dispatcher = MagicMock()
        self.dispatcher.dispatch = AsyncMock(return_value=_SENT)
        self.controller = self.new_controller(tab_id)

    def new_controller(self, tab_id: str = "7") -> SessionController:
        return SessionController(
            tab_id=tab_id,
            repository=self.repository,
            extractor=self.extractor,
            distiller=self.distiller,
            dispatcher=self.dispatcher,
            style=CalendarStyle(),
            organizer="calendar@example.com",
        )

    def stored(self, tab_id: str = "7") -> SessionState | None:
        data = self.store.get(state_key(tab_id))
        return SessionState.from_dict(data) if data is not None else None


@pytest.fixture()
def harness(board_meeting: EventRecord) -> Harness:
    harness = Harness([board_meeting])
    harness.controller.initialize()
    return harness


def _run(controller: SessionController, source: object = _MATERIALS):
    return asyncio.run(controller.run(source))  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Direct dispatch
# ---------------------------------------------------------------------------


class TestDirectDispatch:
    def test_happy_path_dispatches_and_deletes_session(self, harness: Harness) -> None:
        harness.controller.update_fields(url=_MATERIALS.url)

        result = _run(harness.controller)

        assert result.stage is Stage.DISPATCHED
        assert result.dispatch is _SENT
        assert validate_calendar(result.document) == []
        assert harness.stored() is None
        harness.dispatcher.dispatch.assert_awaited_once()

    def test_tentative_flag_reaches_dispatcher(self, harness: Harness) -> None:
        harness.controller.update_fields(tentative=True)

        _run(harness.controller)

        assert harness.dispatcher.dispatch.call_args.args[2] is True

    def test_auto_dispatch_failure_keeps_document(self, harness: Harness) -> None:
        harness.dispatcher.dispatch.side_effect = DispatchError("Postmark API error: 500", 500)

        result = _run(harness.controller)

        assert result.stage is Stage.COMPLETED_WITH_WARNING
        assert "email failed" in (result.warning or "")
        assert result.document.startswith("BEGIN:VCALENDAR")
        stored = harness.stored()
        assert stored is not None
        assert stored.stage is Stage.COMPLETED_WITH_WARNING
        assert stored.last_result is not None
        assert stored.last_result["document"] == result.document

    def test_teardown_after_dispatch_does_not_resurrect_session(self, harness: Harness) -> None:
        _run(harness.controller)

        harness.controller.teardown()

        assert harness.stored() is None


# ---------------------------------------------------------------------------
# Pipeline failures and distillation
# ---------------------------------------------------------------------------


class TestPipeline:
    def test_extraction_failure_returns_to_form(self, harness: Harness) -> None:
        harness.controller.update_fields(url=_MATERIALS.url, instructions="evening only")
        harness.extractor.extract.side_effect = ExtractionSchemaError("Invalid JSON")

        result = _run(harness.controller)

        assert result.stage is Stage.COLLECTING
        assert "Invalid JSON" in (result.error or "")
        assert result.events == []
        state = harness.controller.state
        assert state.last_result is None
        assert state.form_fields.instructions == "evening only"
        assert state.form_fields.url == _MATERIALS.url
        harness.dispatcher.dispatch.assert_not_awaited()

    def test_collection_failure_returns_to_form(self, harness: Harness) -> None:
        source = AsyncMock(side_effect=ContentUnavailableError("HTTP 404"))

        result = _run(harness.controller, source)

        assert result.stage is Stage.COLLECTING
        assert "HTTP 404" in (result.error or "")
        harness.extractor.extract.assert_not_awaited()

    def test_source_callable_receives_form_url(self, harness: Harness) -> None:
        harness.controller.update_fields(url="https://example.org/gala")
        source = AsyncMock(return_value=_MATERIALS)

        _run(harness.controller, source)

        source.assert_awaited_once_with("https://example.org/gala")

    def test_distillation_runs_only_when_requested(self, harness: Harness) -> None:
        _run(harness.controller)
        harness.distiller.distill.assert_not_awaited()

        harness.controller.update_fields(pre_distill=True)
        harness.distiller.distill.return_value = "distilled"
        _run(harness.controller)

        harness.distiller.distill.assert_awaited_once_with(_MATERIALS.url, _MATERIALS.html)
        assert harness.extractor.extract.call_args.kwargs["distilled_html"] == "distilled"

    def test_degraded_distillation_still_extracts(self, harness: Harness) -> None:
        harness.controller.update_fields(pre_distill=True)

        result = _run(harness.controller)

        assert result.stage is Stage.DISPATCHED
        assert harness.extractor.extract.call_args.kwargs["distilled_html"] is None

    def test_request_carries_form_values(self, harness: Harness) -> None:
        harness.controller.update_fields(
            instructions="hint", model="gemini-2.5-flash", tentative=True, multiday=True
        )

        _run(harness.controller)

        request = harness.extractor.extract.call_args.args[0]
        assert request.instructions == "hint"
        assert request.model_id == "gemini-2.5-flash"
        assert request.tentative is True
        assert request.multiday is True

    def test_stages_are_persisted_in_order(self, harness: Harness) -> None:
        seen: list[str] = []
        original_set = harness.store.set

        def recording_set(key: str, value: object, ttl: float | None = None) -> None:
            seen.append(value["stage"])  # type: ignore[index]
            original_set(key, value, ttl)

        harness.store.set = recording_set  # type: ignore[method-assign]
        harness.controller.update_fields(pre_distill=True)
        seen.clear()

        _run(harness.controller)

        assert seen == [
            "collecting",
            "distilling",
            "extracting",
            "compiling",
            "auto_dispatching",
            "dispatched",
        ]


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


class TestReview:
    def test_review_holds_results(self, harness: Harness) -> None:
        harness.controller.update_fields(review_option="review")

        result = _run(harness.controller)

        assert result.stage is Stage.REVIEWING
        harness.dispatcher.dispatch.assert_not_awaited()
        stored = harness.stored()
        assert stored is not None and stored.stage is Stage.REVIEWING
        assert stored.has_results

    def test_confirm_dispatches_and_deletes_session(self, harness: Harness) -> None:
        harness.controller.update_fields(review_option="review")
        reviewed = _run(harness.controller)

        result = asyncio.run(harness.controller.confirm())

        assert result.stage is Stage.DISPATCHED
        assert result.document == reviewed.document
        assert harness.stored() is None

    def test_failed_confirm_keeps_review(self, harness: Harness) -> None:
        harness.controller.update_fields(review_option="review")
        _run(harness.controller)
        harness.dispatcher.dispatch.side_effect = DispatchError("Postmark API error: 401", 401)

        with pytest.raises(DispatchError):
            asyncio.run(harness.controller.confirm())

        assert harness.controller.state.stage is Stage.REVIEWING
        assert harness.controller.state.has_results
        assert "Sending failed" in (harness.controller.state.last_error or "")

    def test_reject_returns_to_form_with_fields(self, harness: Harness) -> None:
        harness.controller.update_fields(url=_MATERIALS.url, review_option="review")
        _run(harness.controller)

        state = harness.controller.reject()

        assert state.stage is Stage.COLLECTING
        assert state.last_result is None
        assert state.form_fields.url == _MATERIALS.url
        assert state.form_fields.review_option == "review"
        harness.dispatcher.dispatch.assert_not_awaited()

    def test_confirm_and_reject_require_review(self, harness: Harness) -> None:
        with pytest.raises(WorkflowStateError):
            asyncio.run(harness.controller.confirm())
        with pytest.raises(WorkflowStateError):
            harness.controller.reject()

    def test_recompile_changes_status_only(self, harness: Harness) -> None:
        harness.controller.update_fields(review_option="review")
        _run(harness.controller)

        result = harness.controller.recompile(tentative=True)

        assert "STATUS:TENTATIVE" in result.document
        assert [e.status for e in result.events] == ["tentative"]
        assert harness.controller.state.form_fields.tentative is True
        harness.extractor.extract.assert_awaited_once()

    def test_recompile_without_results(self, harness: Harness) -> None:
        with pytest.raises(WorkflowStateError):
            harness.controller.recompile(tentative=True)


# ---------------------------------------------------------------------------
# Restore, concurrency and abandonment
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_restore_review_in_new_view(self, harness: Harness) -> None:
        harness.controller.update_fields(review_option="review")
        _run(harness.controller)
        harness.controller.teardown()

        reopened = harness.new_controller()
        state = reopened.initialize()

        assert state.stage is Stage.REVIEWING
        assert state.has_results
        result = asyncio.run(reopened.confirm())
        assert result.stage is Stage.DISPATCHED

    def test_interrupted_run_restores_to_form(self, harness: Harness) -> None:
        state = SessionState(tab_id="7", stage=Stage.EXTRACTING)
        state.form_fields.url = _MATERIALS.url
        harness.repository.save(state)

        restored = harness.new_controller().initialize()

        assert restored.stage is Stage.COLLECTING
        assert restored.last_error == INTERRUPTED_MESSAGE
        assert restored.form_fields.url == _MATERIALS.url

    def test_no_saved_session_gives_defaults(self, board_meeting: EventRecord) -> None:
        state = Harness([board_meeting], tab_id="new").controller.initialize()

        assert state.stage is Stage.COLLECTING
        assert state.form_fields.url == ""

    def test_update_fields_rejects_bad_values(self, harness: Harness) -> None:
        with pytest.raises(ValueError):
            harness.controller.update_fields(review_option="later")
        with pytest.raises(TypeError):
            harness.controller.update_fields(colour="blue")

    def test_second_run_in_same_tab_is_busy(self, harness: Harness) -> None:
        async def scenario() -> None:
            gate = asyncio.Event()

            async def slow_source(url: str) -> PageMaterials:
                await gate.wait()
                return _MATERIALS

            first = asyncio.create_task(harness.controller.run(slow_source))
            await asyncio.sleep(0)
            with pytest.raises(WorkflowBusyError):
                await harness.controller.run(_MATERIALS)
            gate.set()
            result = await first
            assert result.stage is Stage.DISPATCHED

        asyncio.run(scenario())

    def test_abandon_cancels_and_discards_late_results(self, harness: Harness) -> None:
        async def scenario() -> None:
            started = asyncio.Event()

            async def never_finishes(url: str) -> PageMaterials:
                started.set()
                await asyncio.Event().wait()
                return _MATERIALS

            run = asyncio.create_task(harness.controller.run(never_finishes))
            await started.wait()

            state = harness.controller.abandon()
            result = await run

            assert state.stage is Stage.COLLECTING
            assert result.stage is Stage.COLLECTING
            assert result.events == []
            assert harness.controller.busy is False

        asyncio.run(scenario())
        harness.extractor.extract.assert_not_awaited()
        harness.dispatcher.dispatch.assert_not_awaited()

    def test_close_tab_discards_session(self, harness: Harness) -> None:
        harness.controller.update_fields(url=_MATERIALS.url)

        harness.controller.close_tab()

        assert harness.stored() is None
