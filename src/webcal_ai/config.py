"""Configuration loading for webcal-ai.

Reads settings from environment variables (with .env support via python-dotenv)
and validates that all required values are present.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

_DEFAULT_SESSION_STORE = Path.home() / ".webcal-ai" / "sessions.json"


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        gemini_api_key: API key for Google Gemini.
        postmark_api_key: Server token for the Postmark email API.
        from_email: Sender address; also used as the calendar organizer.
        to_confirmed_email: Recipient for confirmed invites.
        to_tentative_email: Recipient for tentative invites.  Falls back
            to *to_confirmed_email* when unset.
        default_model: Model used for event extraction.
        distill_model: Lightweight model used for content distillation.
        timezone: IANA timezone assumed when the page names none.
        calendar_method: iCalendar ``METHOD`` (``"PUBLISH"`` or ``"REQUEST"``).
        session_store_path: JSON file holding per-tab session snapshots.
        log_level: Logging level (default ``"INFO"``).
    """

    gemini_api_key: str
    postmark_api_key: str
    from_email: str
    to_confirmed_email: str
    to_tentative_email: str = ""
    default_model: str = "gemini-2.5-pro"
    distill_model: str = "gemini-2.5-flash-lite"
    timezone: str = "America/Los_Angeles"
    calendar_method: str = "PUBLISH"
    session_store_path: Path = _DEFAULT_SESSION_STORE
    log_level: str = "INFO"

    def recipient_for(self, tentative: bool) -> str:
        """Return the recipient address for a tentative or confirmed invite."""
        if tentative and self.to_tentative_email:
            return self.to_tentative_email
        return self.to_confirmed_email

    def __repr__(self) -> str:
        return (
            f"Settings(gemini_api_key='***', postmark_api_key='***', "
            f"from_email={self.from_email!r}, "
            f"to_confirmed_email={self.to_confirmed_email!r}, "
            f"to_tentative_email={self.to_tentative_email!r}, "
            f"default_model={self.default_model!r}, "
            f"timezone={self.timezone!r}, "
            f"log_level={self.log_level!r})"
        )


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Calls :func:`dotenv.load_dotenv` so a ``.env`` file in the project root
    is picked up automatically.

    Returns:
        A validated :class:`Settings` instance.

    Raises:
        ConfigError: If any required environment variable is missing,
            empty, or whitespace-only, or if ``CALENDAR_METHOD`` is not a
            supported value.  The error message names **all** missing
            variables.
    """
    load_dotenv()

    required = {
        "GEMINI_API_KEY": "gemini_api_key",
        "POSTMARK_API_KEY": "postmark_api_key",
        "FROM_EMAIL": "from_email",
        "TO_CONFIRMED_EMAIL": "to_confirmed_email",
    }

    values: dict[str, object] = {}
    missing: list[str] = []

    for env_var, field_name in required.items():
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            missing.append(env_var)
        else:
            values[field_name] = raw.strip()

    if missing:
        names = ", ".join(missing)
        raise ConfigError(f"Missing required environment variables: {names}")

    optional = {
        "TO_TENTATIVE_EMAIL": "to_tentative_email",
        "DEFAULT_MODEL": "default_model",
        "DISTILL_MODEL": "distill_model",
        "TIMEZONE": "timezone",
        "LOG_LEVEL": "log_level",
    }
    for env_var, field_name in optional.items():
        raw = os.environ.get(env_var, "").strip()
        if raw:
            values[field_name] = raw

    method = os.environ.get("CALENDAR_METHOD", "").strip().upper()
    if method:
        if method not in {"PUBLISH", "REQUEST"}:
            raise ConfigError(
                f"CALENDAR_METHOD must be PUBLISH or REQUEST, got {method!r}"
            )
        values["calendar_method"] = method

    store_path = os.environ.get("SESSION_STORE_PATH", "").strip()
    if store_path:
        values["session_store_path"] = Path(store_path).expanduser()

    return Settings(**values)
