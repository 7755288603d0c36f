"""Shared fixtures for webcal-ai tests."""

from __future__ import annotations

import logging
from collections.abc import Generator

import pytest


@pytest.fixture()
def monkeypatch_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set all required environment variables to valid defaults.

    Also patches ``load_dotenv`` so that a real ``.env`` file on disk does not
    override the test values.

    Returns the dict of variables so tests can inspect or override values.
    """
    monkeypatch.setattr("webcal_ai.config.load_dotenv", lambda *_a, **_kw: None)
    env_vars = {
        "GEMINI_API_KEY": "test-gemini-key-12345",
        "POSTMARK_API_KEY": "test-postmark-token",
        "FROM_EMAIL": "calendar@example.com",
        "TO_CONFIRMED_EMAIL": "confirmed@example.com",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove all webcal-ai-related environment variables.

    Patches ``load_dotenv`` so a real ``.env`` file cannot re-inject values
    that the test explicitly removed.
    """
    monkeypatch.setattr("webcal_ai.config.load_dotenv", lambda *_a, **_kw: None)
    for key in (
        "GEMINI_API_KEY",
        "POSTMARK_API_KEY",
        "FROM_EMAIL",
        "TO_CONFIRMED_EMAIL",
        "TO_TENTATIVE_EMAIL",
        "DEFAULT_MODEL",
        "DISTILL_MODEL",
        "TIMEZONE",
        "CALENDAR_METHOD",
        "SESSION_STORE_PATH",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _reset_root_logger() -> Generator[None, None, None]:
    """Reset the root logger after each test to prevent handler leaks."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    httpx_level = logging.getLogger("httpx").level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    logging.getLogger("httpx").setLevel(httpx_level)
