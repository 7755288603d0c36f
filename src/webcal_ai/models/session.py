"""Per-tab session data models.

:class:`SessionState` is the only persisted structure in webcal-ai.  It is
owned by exactly one browsing tab, serialised to plain JSON-compatible
dicts, and considered fresh for one hour after it was last written.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any


class Stage(str, Enum):
    """Workflow stages, in pipeline order."""

    COLLECTING = "collecting"
    DISTILLING = "distilling"
    EXTRACTING = "extracting"
    COMPILING = "compiling"
    REVIEWING = "reviewing"
    AUTO_DISPATCHING = "auto_dispatching"
    DISPATCHED = "dispatched"
    REJECTED = "rejected"
    COMPLETED_WITH_WARNING = "completed_with_warning"

    @property
    def in_flight(self) -> bool:
        """Whether a network-bound stage is running."""
        return self in _IN_FLIGHT


_IN_FLIGHT = frozenset(
    {Stage.DISTILLING, Stage.EXTRACTING, Stage.COMPILING, Stage.AUTO_DISPATCHING}
)

REVIEW_OPTIONS = ("direct", "review")


@dataclass
class FormFields:
    """Values entered in the form.

    Attributes:
        url: Page address.
        instructions: Free-text extraction hints.
        model: Selected extraction model (``""`` means the configured default).
        tentative: Mark events as tentative.
        multiday: Allow several events.
        pre_distill: Run the distillation pre-pass.
        review_option: ``"direct"`` to dispatch immediately, ``"review"`` to
            confirm first.
    """

    url: str = ""
    instructions: str = ""
    model: str = ""
    tentative: bool = False
    multiday: bool = False
    pre_distill: bool = False
    review_option: str = "direct"

    @property
    def review_before_send(self) -> bool:
        return self.review_option == "review"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FormFields:
        """Build from a stored dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        form = cls(**values)
        if form.review_option not in REVIEW_OPTIONS:
            form.review_option = "direct"
        return form


@dataclass
class SessionState:
    """Snapshot of a tab's workflow, as persisted.

    Attributes:
        tab_id: Identifier of the owning browsing tab.
        form_fields: Current form values.
        stage: Workflow stage at the time of the snapshot.
        last_result: Compiled output awaiting review or download
            (``{"events": [...], "document": "..."}``), or ``None``.
        last_error: Last user-visible error message, if any.
        timestamp: Epoch seconds of the last write.
    """

    tab_id: str
    form_fields: FormFields = field(default_factory=FormFields)
    stage: Stage = Stage.COLLECTING
    last_result: dict[str, Any] | None = None
    last_error: str | None = None
    timestamp: float = 0.0

    @property
    def in_flight(self) -> bool:
        return self.stage.in_flight

    @property
    def has_results(self) -> bool:
        return bool(self.last_result)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tab_id": self.tab_id,
            "form_fields": asdict(self.form_fields),
            "stage": self.stage.value,
            "in_flight": self.in_flight,
            "has_results": self.has_results,
            "last_result": self.last_result,
            "last_error": self.last_error,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionState:
        """Rebuild a snapshot.

        Raises:
            KeyError: If ``tab_id`` or ``timestamp`` is missing.
            ValueError: If the stored stage is unknown.
        """
        return cls(
            tab_id=str(data["tab_id"]),
            form_fields=FormFields.from_dict(data.get("form_fields") or {}),
            stage=Stage(data.get("stage", Stage.COLLECTING.value)),
            last_result=data.get("last_result"),
            last_error=data.get("last_error"),
            timestamp=float(data["timestamp"]),
        )
