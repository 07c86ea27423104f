import asyncio
from types import SimpleNamespace

import httpx

from eventfeed.streams.parser import Event
from eventfeed.streams.retry import NoRetry
from eventfeed.streams.session import ReconnectingSession


async def _body(*parts):
    for part in parts:
        yield part


def _fake_client(**overrides):
    fields = {
        "url": "http://example.com/events",
        "headers": {},
        "last_event_id": b"",
        "encoding_base64": False,
        "retry_policy": NoRetry(),
        "transport": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_event_with_id_advances_the_cursor() -> None:
    client = _fake_client(last_event_id=b"1")
    session = ReconnectingSession(client, "news")

    stamped = session._stamp(Event(id=b"5", data=b"x"))

    assert stamped.id == b"5"
    assert client.last_event_id == b"5"


def test_event_without_id_is_stamped_with_the_cursor() -> None:
    client = _fake_client(last_event_id=b"5")
    session = ReconnectingSession(client)

    stamped = session._stamp(Event(data=b"x"))

    assert stamped == Event(id=b"5", data=b"x")
    assert client.last_event_id == b"5"


def test_label_falls_back_to_url_for_raw_subscriptions() -> None:
    assert ReconnectingSession(_fake_client(), "news").label == "news"
    assert ReconnectingSession(_fake_client()).label == "http://example.com/events"


def test_events_skips_malformed_and_undecodable_blocks(caplog) -> None:
    client = _fake_client(encoding_base64=True)
    session = ReconnectingSession(client)
    response = httpx.Response(
        200,
        content=_body(
            b": keepalive\n\n",
            b"id: 1\nevent: meta-only\n\n",
            b"id: 2\ndata: ***\n\n",
            b"id: 3\ndata: aGVsbG8=\n\n",
        ),
    )

    async def collect():
        return [event async for event in session.events(response)]

    with caplog.at_level("WARNING"):
        events = asyncio.run(collect())

    assert events == [Event(id=b"3", data=b"hello")]
    assert client.last_event_id == b"3"
    assert "Undecodable event" in caplog.text
