"""Content distillation pre-pass.

Shrinks noisy page markup into its main textual content with a cheap
completion call before extraction.  Distillation never blocks the
pipeline: any problem is logged and the caller keeps the raw html.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from webcal_ai.exceptions import DistillationDegraded, ExtractionError
from webcal_ai.llm import CompletionClient
from webcal_ai.models.event import DistilledContent
from webcal_ai.prompts import build_distill_prompt, build_distill_user_content

logger = logging.getLogger(__name__)

# Shorter results are treated as a failed distillation.
MIN_DISTILLED_LENGTH = 100


class ContentDistiller:
    """Reduce raw markup to main content with a lightweight model.

    Args:
        client: Completion collaborator.
        model: Lightweight model identifier.
        min_length: Minimum accepted length of the distilled text.
    """

    def __init__(
        self,
        client: CompletionClient,
        model: str,
        min_length: int = MIN_DISTILLED_LENGTH,
    ) -> None:
        self._client = client
        self._model = model
        self._min_length = min_length

    async def distill(self, url: str, html: str) -> str | None:
        """Return the distilled main content, or ``None`` to keep *html*.

        Never raises for model or validation problems; those are logged
        as a degraded distillation and swallowed here.
        """
        try:
            content = await self._distill(url, html)
        except DistillationDegraded as exc:
            logger.warning("Distillation discarded, using raw html: %s", exc)
            return None

        logger.info(
            "Distilled %d chars of markup to %d chars of content",
            len(html),
            len(content),
        )
        return content

    async def _distill(self, url: str, html: str) -> str:
        try:
            raw = await self._client.complete(
                model=self._model,
                system_prompt=build_distill_prompt(),
                user_content=build_distill_user_content(url, html),
                response_schema=DistilledContent,
            )
        except ExtractionError as exc:
            raise DistillationDegraded(f"completion failed: {exc}") from exc
        except Exception as exc:
            # Any collaborator failure degrades to the raw html.
            raise DistillationDegraded(f"unexpected completion error: {exc!r}") from exc

        if not raw or not raw.strip():
            raise DistillationDegraded("empty response")

        try:
            result = DistilledContent.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise DistillationDegraded(f"unusable response: {exc}") from exc

        content = result.content.strip()
        if len(content) < self._min_length:
            raise DistillationDegraded(
                f"content too short ({len(content)} < {self._min_length} chars)"
            )
        return content
