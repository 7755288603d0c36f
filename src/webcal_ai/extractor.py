"""Schema-constrained event extraction with ordered fallback strategies.

:class:`EventExtractor` builds the extraction prompt, calls the completion
collaborator, and parses/validates the response into
:class:`~webcal_ai.models.event.EventRecord` objects.

When an attempt fails, the configured fallback strategies are consulted in
order.  Each strategy may contribute exactly one further attempt by
returning replacement page materials, or decline by returning ``None``.
The default list holds a single strategy, :class:`RetryUndistilled`, which
retries once against the original markup when the failed attempt used
distilled content.  Without distillation a failure surfaces immediately.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import ValidationError

from webcal_ai.exceptions import ExtractionError, ExtractionSchemaError
from webcal_ai.llm import CompletionClient
from webcal_ai.models.event import EventRecord, response_schema_for
from webcal_ai.models.page import ExtractionRequest, PageMaterials
from webcal_ai.prompts import build_system_prompt, build_user_content

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[\w-]*\s*\n?(?P<body>.*?)\n?\s*```$", re.DOTALL)


# ---------------------------------------------------------------------------
# Attempts and fallback strategies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FailedAttempt:
    """A failed extraction attempt, as seen by fallback strategies.

    Attributes:
        materials: Materials the attempt was made against.
        used_distilled: Whether *materials* carried distilled content.
        error: The error the attempt failed with.
    """

    materials: PageMaterials
    used_distilled: bool
    error: ExtractionError


class FallbackStrategy(Protocol):
    """Decides whether, and against what, to try extraction again."""

    name: str

    def next_materials(
        self, request: ExtractionRequest, failed: FailedAttempt
    ) -> PageMaterials | None: ...


class RetryUndistilled:
    """Retry once against the original markup after a distilled attempt fails."""

    name = "retry-undistilled"

    def next_materials(
        self, request: ExtractionRequest, failed: FailedAttempt
    ) -> PageMaterials | None:
        if not failed.used_distilled:
            return None
        return request.materials


DEFAULT_FALLBACKS: tuple[FallbackStrategy, ...] = (RetryUndistilled(),)


@dataclass(frozen=True)
class ExtractionOutcome:
    """Result of a successful extraction.

    Attributes:
        events: Validated events, in the order the model returned them.
        attempts: Number of completion calls made (including fallbacks).
        used_distilled: Whether the successful attempt used distilled content.
    """

    events: tuple[EventRecord, ...]
    attempts: int
    used_distilled: bool


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class EventExtractor:
    """Extract calendar events from page materials.

    Args:
        client: Completion collaborator.
        default_model: Model used when the request names none.
        default_timezone: Timezone the prompt tells the model to assume.
        fallbacks: Ordered fallback strategies.  Defaults to
            :data:`DEFAULT_FALLBACKS`.
    """

    def __init__(
        self,
        client: CompletionClient,
        default_model: str,
        default_timezone: str,
        fallbacks: Sequence[FallbackStrategy] = DEFAULT_FALLBACKS,
    ) -> None:
        self._client = client
        self._default_model = default_model
        self._default_timezone = default_timezone
        self._fallbacks = tuple(fallbacks)

    async def extract(
        self,
        request: ExtractionRequest,
        distilled_html: str | None = None,
    ) -> ExtractionOutcome:
        """Run extraction, applying fallback strategies on failure.

        Args:
            request: The extraction request; its materials hold the
                original, undistilled markup.
            distilled_html: Distilled main content to use instead of the
                raw markup on the first attempt, or ``None``.

        Returns:
            An :class:`ExtractionOutcome`.

        Raises:
            ExtractionError: The error of the last failed attempt, once no
                strategy offers another attempt.
        """
        used_distilled = distilled_html is not None
        materials = (
            request.materials.with_html(distilled_html) if used_distilled else request.materials
        )
        attempts = 1

        try:
            events = await self._attempt(request, materials)
            return ExtractionOutcome(events, attempts, used_distilled)
        except ExtractionError as exc:
            failed = FailedAttempt(materials, used_distilled, exc)
            logger.warning(
                "Extraction attempt %d failed (distilled=%s): %s",
                attempts,
                used_distilled,
                exc,
            )

        for strategy in self._fallbacks:
            replacement = strategy.next_materials(request, failed)
            if replacement is None:
                continue

            attempts += 1
            replacement_distilled = replacement.html != request.materials.html
            logger.info("Applying fallback '%s' (attempt %d)", strategy.name, attempts)
            try:
                events = await self._attempt(request, replacement)
                return ExtractionOutcome(events, attempts, replacement_distilled)
            except ExtractionError as exc:
                failed = FailedAttempt(replacement, replacement_distilled, exc)
                logger.warning(
                    "Fallback '%s' failed on attempt %d: %s",
                    strategy.name,
                    attempts,
                    exc,
                )

        logger.error("Extraction failed after %d attempt(s): %s", attempts, failed.error)
        raise failed.error

    async def _attempt(
        self, request: ExtractionRequest, materials: PageMaterials
    ) -> tuple[EventRecord, ...]:
        model = request.model_id or self._default_model
        system_prompt = build_system_prompt(request.multiday, self._default_timezone)
        user_content = build_user_content(
            materials,
            instructions=request.instructions,
            tentative=request.tentative,
            multiday=request.multiday,
        )
        logger.debug("System prompt:\n%s", system_prompt)

        raw = await self._client.complete(
            model=model,
            system_prompt=system_prompt,
            user_content=user_content,
            response_schema=response_schema_for(request.multiday),
            image_data_url=materials.screenshot,
        )
        logger.debug("Raw extraction response:\n%s", raw)

        events = parse_response(raw, tentative=request.tentative, multiday=request.multiday)
        for event in events:
            logger.info(
                "Extracted event: '%s' | %s %s | all_day=%s",
                event.summary,
                event.start_date,
                event.start_time or "",
                event.is_all_day,
            )
        return events


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def strip_code_fences(raw_text: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    text = raw_text.strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group("body").strip()
    return text


def parse_response(
    raw_text: str,
    *,
    tentative: bool = False,
    multiday: bool = True,
) -> tuple[EventRecord, ...]:
    """Parse and validate a raw extraction response.

    Args:
        raw_text: Model output, possibly wrapped in a code fence.
        tentative: Status stamped onto every event.
        multiday: When ``False`` only the first event is kept.

    Returns:
        The validated events.

    Raises:
        ExtractionSchemaError: If the text is not JSON, ``events`` is
            missing, not a list or empty, an element lacks ``summary`` or
            ``start_date``, or an element fails :class:`EventRecord`
            validation.
    """
    if not raw_text or not raw_text.strip():
        raise ExtractionSchemaError("Empty response from model", raw_response=raw_text or "")

    cleaned = strip_code_fences(raw_text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ExtractionSchemaError(f"Invalid JSON: {exc}", raw_response=raw_text) from exc

    if not isinstance(data, dict) or "events" not in data:
        raise ExtractionSchemaError("Missing required field: events", raw_response=raw_text)
    items = data["events"]
    if not isinstance(items, list):
        raise ExtractionSchemaError("events field must be an array", raw_response=raw_text)
    if not items:
        raise ExtractionSchemaError("events array cannot be empty", raw_response=raw_text)

    for index, item in enumerate(items):
        _require_fields(item, index, raw_text)

    if not multiday and len(items) > 1:
        logger.warning("Single-event mode but %d events returned; keeping the first", len(items))
        items = items[:1]

    status = "tentative" if tentative else "confirmed"
    events: list[EventRecord] = []
    for index, item in enumerate(items):
        try:
            events.append(EventRecord.model_validate({**item, "status": status}))
        except ValidationError as exc:
            raise ExtractionSchemaError(
                f"Event {index + 1} failed validation: {exc}", raw_response=raw_text
            ) from exc
    return tuple(events)


def _require_fields(item: Any, index: int, raw_text: str) -> None:
    if not isinstance(item, dict):
        raise ExtractionSchemaError(
            f"Event {index + 1} is not an object", raw_response=raw_text
        )
    for name in ("summary", "start_date"):
        if not item.get(name):
            raise ExtractionSchemaError(
                f"Missing required field: {name} in event {index + 1}",
                raw_response=raw_text,
            )
