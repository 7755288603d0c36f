"""URL helpers: tracking-parameter stripping and fetch-target validation."""

from __future__ import annotations

import ipaddress
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

TRACKING_PARAMETERS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "utm_id",
        "utm_source_platform",
        "utm_creative_format",
        "utm_marketing_tactic",
        "fbclid",
        "gclid",
        "dclid",
        "msclkid",
        "mc_cid",
        "mc_eid",
        "_ga",
        "_gid",
        "_gac",
        "ref",
        "referer",
        "referrer",
    }
)

_BLOCKED_HOSTS = frozenset(
    {
        "localhost",
        "metadata.google.internal",
        "metadata.azure.com",
        "metadata.packet.net",
    }
)


def strip_tracking_parameters(url: str) -> str:
    """Remove analytics and referral query parameters from *url*.

    URLs without tracking parameters, and strings that do not parse as
    URLs, are returned unchanged.
    """
    if not url:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    query = parse_qsl(parts.query, keep_blank_values=True)
    kept = [(k, v) for k, v in query if k not in TRACKING_PARAMETERS]
    if len(kept) == len(query):
        return url
    return urlunsplit(parts._replace(query=urlencode(kept)))


def validate_fetch_url(url: str) -> None:
    """Reject URLs that must not be fetched on a user's behalf.

    Only ``http``/``https`` are allowed; localhost, loopback, private,
    link-local and cloud metadata hosts are refused.

    Raises:
        ValueError: If the URL is not allowed.
    """
    parts = urlsplit(url)
    if parts.scheme not in {"http", "https"}:
        raise ValueError("Only HTTP and HTTPS URLs are allowed")

    host = (parts.hostname or "").lower()
    if not host:
        raise ValueError(f"URL has no host: {url!r}")
    if host in _BLOCKED_HOSTS:
        raise ValueError(f"Access to {host} is not allowed")

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return
    if (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_unspecified
    ):
        raise ValueError(f"Access to private address {host} is not allowed")
