"""Email dispatch of compiled calendar documents via Postmark.

:class:`Dispatcher` composes the subject, plain-text body and ``.ics``
attachment for a set of events and hands the message to an
:class:`EmailClient`.  :class:`PostmarkClient` is the concrete client; it
posts to the Postmark ``/email`` endpoint with ``httpx``.

Delivery is attempted exactly once per call.  Rejections and transport
failures surface as :class:`~webcal_ai.exceptions.DispatchError`; deciding
what happens next (keep the document, offer a retry) is the workflow's job.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from webcal_ai.calendar.text import sanitize_description
from webcal_ai.config import Settings
from webcal_ai.exceptions import DispatchError
from webcal_ai.models.calendar import CalendarStyle
from webcal_ai.models.dispatch import Attachment, DispatchResult, EmailDispatch
from webcal_ai.models.event import EventRecord

logger = logging.getLogger(__name__)

POSTMARK_API_URL = "https://api.postmarkapp.com/email"


# ---------------------------------------------------------------------------
# Message composition
# ---------------------------------------------------------------------------


def build_subject(events: Sequence[EventRecord]) -> str:
    """Return the subject line for *events*."""
    if len(events) == 1:
        return f"Calendar Invite: {events[0].summary}"
    return f"Calendar Invites: {len(events)} events"


def build_text_body(events: Sequence[EventRecord]) -> str:
    """Return the plain-text body listing each event."""
    plural = "s" if len(events) > 1 else ""
    lines = [f"Please find the calendar invitation{plural} attached.", ""]

    if len(events) == 1:
        lines.extend(_describe_event(events[0], indent=""))
    else:
        lines.append(f"Events ({len(events)}):")
        for number, event in enumerate(events, start=1):
            lines.append("")
            lines.append(f"{number}. {event.summary}")
            lines.extend(_describe_event(event, indent="   ", include_summary=False))

    lines.append("")
    lines.append("This invitation was generated automatically.")
    return "\n".join(lines)


def _describe_event(
    event: EventRecord, indent: str, include_summary: bool = True
) -> list[str]:
    lines: list[str] = []
    if include_summary:
        lines.append(f"{indent}Event: {event.summary}")
    when = event.start_date
    if event.end_date and event.end_date != event.start_date:
        when = f"{event.start_date} to {event.end_date}"
    lines.append(f"{indent}Date: {when}")
    if event.is_all_day:
        lines.append(f"{indent}Time: All day")
    else:
        span = event.start_time or ""
        if event.end_time:
            span = f"{span}-{event.end_time}"
        tz = f" ({event.timezone})" if event.timezone else ""
        lines.append(f"{indent}Time: {span}{tz}")
    if event.location:
        lines.append(f"{indent}Location: {event.location}")
    description = sanitize_description(event.description)
    if description:
        lines.append(f"{indent}Description: {description}")
    return lines


def build_email(
    events: Sequence[EventRecord],
    document: str,
    *,
    from_address: str,
    to_address: str,
    style: CalendarStyle,
) -> EmailDispatch:
    """Assemble the outbound message for *events* and their document."""
    content = base64.b64encode(document.encode("utf-8")).decode("ascii")
    attachment = Attachment(
        name=style.filename,
        base64_content=content,
        content_type=f"text/calendar; charset=utf-8; method={style.method}",
    )
    return EmailDispatch(
        from_address=from_address,
        to_address=to_address,
        subject=build_subject(events),
        text_body=build_text_body(events),
        attachment=attachment,
    )


# ---------------------------------------------------------------------------
# Delivery clients
# ---------------------------------------------------------------------------


class EmailClient(Protocol):
    """Collaborator that delivers a single email."""

    async def send(self, email: EmailDispatch) -> DispatchResult: ...


class PostmarkClient:
    """Send email through the Postmark HTTP API.

    Args:
        server_token: Postmark server API token.
        http_client: Optional shared ``httpx.AsyncClient``.  When omitted
            the client creates (and owns) one.
        api_url: Endpoint override, for tests.
    """

    def __init__(
        self,
        server_token: str,
        http_client: httpx.AsyncClient | None = None,
        api_url: str = POSTMARK_API_URL,
    ) -> None:
        self._server_token = server_token
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=30.0)
        self._api_url = api_url

    async def send(self, email: EmailDispatch) -> DispatchResult:
        """POST *email* to Postmark.

        Raises:
            DispatchError: On transport failure, a non-2xx response, or a
                2xx response whose ``ErrorCode`` is non-zero.
        """
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-Postmark-Server-Token": self._server_token,
        }
        try:
            response = await self._http_client.post(
                self._api_url, json=email.to_payload(), headers=headers
            )
        except httpx.HTTPError as exc:
            raise DispatchError(f"Postmark request failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise DispatchError(
                f"Postmark API error: {response.status_code} {_error_message(response)}",
                status_code=response.status_code,
                response_text=response.text,
            )

        payload = _json_or_empty(response)
        try:
            error_code = int(payload.get("ErrorCode", 0) or 0)
        except (TypeError, ValueError) as exc:
            raise DispatchError(
                f"Postmark returned an unreadable ErrorCode: {payload.get('ErrorCode')!r}",
                status_code=response.status_code,
                response_text=response.text,
            ) from exc
        message = str(payload.get("Message", "OK"))
        if error_code:
            raise DispatchError(
                f"Postmark rejected the message ({error_code}): {message}",
                status_code=response.status_code,
                response_text=response.text,
            )
        return DispatchResult(
            success=True,
            message=message,
            message_id=payload.get("MessageID"),
            error_code=error_code,
        )

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _error_message(response: httpx.Response) -> str:
    message = _json_or_empty(response).get("Message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return " ".join(response.text.split())[:200]


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class Dispatcher:
    """Compose and send calendar invitations.

    Args:
        client: Delivery collaborator.
        settings: Supplies the sender and the recipient per status.
        style: Calendar style; provides the attachment name and method.
    """

    def __init__(
        self,
        client: EmailClient,
        settings: Settings,
        style: CalendarStyle,
    ) -> None:
        self._client = client
        self._settings = settings
        self._style = style

    async def dispatch(
        self,
        events: Sequence[EventRecord],
        document: str,
        tentative: bool,
    ) -> DispatchResult:
        """Email *document* for *events* to the configured recipient.

        Raises:
            DispatchError: If delivery fails.  The caller keeps *document*.
        """
        recipient = self._settings.recipient_for(tentative)
        email = build_email(
            events,
            document,
            from_address=self._settings.from_email,
            to_address=recipient,
            style=self._style,
        )
        logger.info("Dispatching '%s' to %s", email.subject, recipient)
        try:
            result = await self._client.send(email)
        except DispatchError as exc:
            logger.error("Dispatch to %s failed: %s", recipient, exc)
            raise
        logger.info("Dispatched '%s' (message id %s)", email.subject, result.message_id)
        return result
