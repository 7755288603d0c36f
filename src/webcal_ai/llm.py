"""Gemini completion client.

Wraps the async surface of the ``google-genai`` SDK
(``client.aio.models.generate_content``) behind a small
:class:`CompletionClient` protocol.  Both the distiller and the extractor
depend on the protocol only, so tests and alternative providers can be
injected.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from typing import Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from pydantic import BaseModel

from webcal_ai.exceptions import ExtractionTransportError

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


class CompletionClient(Protocol):
    """Collaborator that turns prompts into schema-constrained text."""

    async def complete(
        self,
        *,
        model: str,
        system_prompt: str,
        user_content: str,
        response_schema: type[BaseModel],
        image_data_url: str | None = None,
    ) -> str: ...


class GeminiClient:
    """Async client for schema-constrained completions via Google Gemini.

    Args:
        api_key: Google Gemini API key.
        temperature: Sampling temperature.  Defaults to ``0.1``.
        max_output_tokens: Output token cap.  Defaults to ``20000``.
        client: Optional pre-built ``genai.Client``.  Pass a mock here in
            tests.
    """

    def __init__(
        self,
        api_key: str,
        temperature: float = 0.1,
        max_output_tokens: int = 20000,
        client: genai.Client | None = None,
    ) -> None:
        self._client = client or genai.Client(api_key=api_key)
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    async def complete(
        self,
        *,
        model: str,
        system_prompt: str,
        user_content: str,
        response_schema: type[BaseModel],
        image_data_url: str | None = None,
    ) -> str:
        """Run one structured completion and return the raw response text.

        Args:
            model: Gemini model identifier.
            system_prompt: System instruction.
            user_content: User message text.
            response_schema: Pydantic model describing the required JSON.
            image_data_url: Optional ``data:`` URL attached as an inline
                image part (e.g. a page screenshot).

        Returns:
            The raw text of the first candidate (``""`` when empty).

        Raises:
            ExtractionTransportError: On API-level or network failures.
        """
        config = genai_types.GenerateContentConfig(
            system_instruction=system_prompt,
            response_mime_type="application/json",
            response_schema=response_schema,
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
        )
        contents = _build_contents(user_content, image_data_url)

        logger.debug(
            "Calling %s (%d chars of user content, image=%s)",
            model,
            len(user_content),
            image_data_url is not None,
        )
        started = time.monotonic()
        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as exc:
            logger.error("Gemini API error from %s: %s", model, exc)
            raise ExtractionTransportError(f"Gemini API call failed: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.error("Network error calling %s: %s", model, exc)
            raise ExtractionTransportError(f"Gemini request failed: {exc}") from exc

        logger.info("%s responded in %.1fs", model, time.monotonic() - started)
        return response.text or ""


def _build_contents(
    user_content: str, image_data_url: str | None
) -> list[genai_types.Part]:
    """Assemble the user turn: text first, then the optional image."""
    parts = [genai_types.Part.from_text(text=user_content)]
    if image_data_url:
        image = _decode_data_url(image_data_url)
        if image is None:
            logger.warning("Ignoring malformed screenshot data URL")
        else:
            mime_type, data = image
            parts.append(genai_types.Part.from_bytes(data=data, mime_type=mime_type))
    return parts


def _decode_data_url(data_url: str) -> tuple[str, bytes] | None:
    """Split a ``data:<mime>;base64,<payload>`` URL into mime type and bytes."""
    match = _DATA_URL_RE.match(data_url.strip())
    if match is None:
        return None
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError):
        return None
    return match.group("mime"), data
