"""Description cleanup applied before text reaches a calendar or email."""

from __future__ import annotations

import re

_STATUS_LINE_RE = re.compile(r"^[ \t]*Status:[ \t]*(?:Tentative|Confirmed)[ \t.]*$", re.IGNORECASE)


def sanitize_description(text: str) -> str:
    """Drop embedded ``Status: Tentative`` / ``Status: Confirmed`` lines.

    The status is carried by the dedicated ``STATUS`` property; repeating
    it in free text only duplicates (and can contradict) it.  Runs of
    blank lines left behind are collapsed.
    """
    if not text:
        return ""
    lines = [line for line in text.splitlines() if not _STATUS_LINE_RE.match(line)]
    cleaned = "\n".join(lines)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def plain_text(text: str) -> str:
    """Normalise line endings to ``\\n`` and drop stray carriage returns."""
    return text.replace("\r\n", "\n").replace("\r", "")
