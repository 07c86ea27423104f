"""Outbound subscribe request construction."""

from collections.abc import Mapping

import httpx

from eventfeed.errors import RequestBuildError

DEFAULT_HEADERS = {
    "Cache-Control": "no-cache",
    "Accept": "text/event-stream",
    "Connection": "keep-alive",
}


def parse_stream_url(url: str) -> httpx.URL:
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise RequestBuildError(f"invalid stream URL {url!r}: {exc}") from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise RequestBuildError(f"invalid stream URL {url!r}")
    return parsed


def build_request(
    url: str,
    *,
    stream: str = "",
    last_event_id: bytes = b"",
    headers: Mapping[str, str] | None = None,
) -> httpx.Request:
    """Build the GET request that opens (or resumes) an event stream.

    User headers are applied last so they override the defaults.
    """
    target = parse_stream_url(url)
    if stream:
        target = target.copy_add_param("stream", stream)

    items: list[tuple[str, str | bytes]] = list(DEFAULT_HEADERS.items())
    if last_event_id:
        # Sent back byte for byte, whatever its encoding.
        items.append(("Last-Event-ID", last_event_id))
    request_headers = httpx.Headers(items)
    for key, value in (headers or {}).items():
        request_headers[key] = value

    return httpx.Request("GET", target, headers=request_headers)
