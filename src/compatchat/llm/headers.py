"""Endpoint-specific request headers."""

from __future__ import annotations

from urllib.parse import urlsplit

NGROK_HOST_SUFFIXES = (
    ".ngrok.io",
    ".ngrok.app",
    ".ngrok-free.app",
    ".ngrok-free.dev",
)


def headers_for_url(url: str) -> dict[str, str]:
    """Return extra headers for ``url``.

    ngrok free tunnels serve an HTML browser warning unless this header is set.
    """
    host = (urlsplit(str(url or "")).hostname or "").lower()
    if host.endswith(NGROK_HOST_SUFFIXES):
        return {"ngrok-skip-browser-warning": "true"}
    return {}
