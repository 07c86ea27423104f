"""Connect, stream and reconnect: the subscription engine behind Client."""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import replace
from typing import TYPE_CHECKING

import httpx
from anyio import BrokenResourceError, ClosedResourceError
from anyio.streams.memory import MemoryObjectSendStream

from eventfeed.errors import (
    EventDecodeError,
    ParseError,
    StreamConnectionError,
)
from eventfeed.streams.parser import Event, parse_event
from eventfeed.streams.reader import EventStreamReader
from eventfeed.streams.request import build_request

if TYPE_CHECKING:
    from eventfeed.client import Client


class ReconnectingSession:
    """One subscription to one stream of a client.

    The resumption cursor lives on the client, so it survives reconnects and
    is shared by every session of that client.
    """

    def __init__(self, client: "Client", stream: str = ""):
        self.client = client
        self.stream = stream
        self.label = stream or client.url

    async def connect(self) -> httpx.Response:
        request = build_request(
            self.client.url,
            stream=self.stream,
            last_event_id=self.client.last_event_id,
            headers=self.client.headers,
        )
        response = await self.client.transport.send(request, stream=True)
        if not response.is_success:
            await response.aclose()
            raise StreamConnectionError(response.status_code)
        return response

    def _stamp(self, event: Event) -> Event:
        if event.id:
            self.client.last_event_id = event.id
            return event
        return replace(event, id=self.client.last_event_id)

    async def events(self, response: httpx.Response) -> AsyncIterator[Event]:
        """Yield parsed events until the body ends; skip malformed blocks."""
        reader = EventStreamReader(response.aiter_bytes())
        async for block in reader:
            try:
                event = parse_event(block, encoding_base64=self.client.encoding_base64)
            except EventDecodeError as exc:
                logging.warning("Undecodable event [%s], skipping: %s", self.label, exc)
                continue
            except ParseError as exc:
                logging.debug("Malformed event [%s], skipping: %r (%s)", self.label, block, exc)
                continue
            yield self._stamp(event)

    async def run(self, handler: Callable[[Event], object]) -> None:
        """Callback mode: deliver each event to handler until the stream ends."""

        async def attempt() -> None:
            response = await self.connect()
            try:
                async with aclosing(self.events(response)) as events:
                    async for event in events:
                        result = handler(event)
                        if inspect.isawaitable(result):
                            await result
            finally:
                await response.aclose()

        await self.client.retry_policy.run(attempt, label=self.label)

    async def _offer(
        self,
        event: Event,
        channel: MemoryObjectSendStream,
        cancelled: asyncio.Event,
    ) -> bool:
        """Send event unless cancellation comes first; False means stop."""
        if cancelled.is_set():
            return False
        send = asyncio.ensure_future(channel.send(event))
        cancel = asyncio.ensure_future(cancelled.wait())
        try:
            await asyncio.wait({send, cancel}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (send, cancel):
                if not task.done():
                    task.cancel()
        if send.done() and not send.cancelled():
            try:
                send.result()
            except (BrokenResourceError, ClosedResourceError):
                return False
            return True
        return False

    async def deliver(
        self,
        response: httpx.Response,
        channel: MemoryObjectSendStream,
        cancelled: asyncio.Event,
    ) -> None:
        """Channel mode: pump events into channel, then clean up exactly once."""
        pending: httpx.Response | None = response

        async def attempt() -> None:
            nonlocal pending
            current, pending = pending, None
            if current is None:
                if cancelled.is_set():
                    return
                current = await self.connect()
            try:
                async with aclosing(self.events(current)) as events:
                    async for event in events:
                        if not await self._offer(event, channel, cancelled):
                            return
            finally:
                await current.aclose()

        try:
            await self.client.retry_policy.run(attempt, label=self.label)
        except Exception as exc:
            logging.warning(
                "Subscription [%s] ended with error (%s: %s)",
                self.label,
                type(exc).__name__,
                exc,
            )
        else:
            logging.info("Subscription [%s] ended", self.label)
        finally:
            if pending is not None:
                await pending.aclose()
            self.client.registry.remove(channel)
