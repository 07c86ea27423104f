"""Public entry point: subscribe to an SSE endpoint by callback or channel."""

import asyncio
from collections.abc import Callable, Mapping

import httpx
from anyio.streams.memory import MemoryObjectSendStream

from eventfeed.config import ClientSettings
from eventfeed.streams.parser import Event
from eventfeed.streams.registry import SubscriptionRegistry
from eventfeed.streams.retry import ExponentialBackoff, NoRetry, RetryPolicy
from eventfeed.streams.session import ReconnectingSession


class Client:
    """Client for one event stream endpoint.

    ``last_event_id`` is the resumption cursor. It is sent as
    ``Last-Event-ID`` on every (re)connect and is shared by all subscriptions
    made through this client, so concurrent subscriptions race on it.
    """

    def __init__(
        self,
        url: str,
        *,
        stream: str = "",
        transport: httpx.AsyncClient | None = None,
        headers: Mapping[str, str] | None = None,
        encoding_base64: bool = False,
        retry: bool = True,
        retry_policy: RetryPolicy | None = None,
    ):
        self.url = url
        self.stream = stream
        self.headers: dict[str, str] = dict(headers or {})
        self.encoding_base64 = encoding_base64
        self.retry = retry
        if retry_policy is None:
            retry_policy = ExponentialBackoff() if retry else NoRetry()
        self.retry_policy = retry_policy
        self.last_event_id = b""
        self.registry = SubscriptionRegistry()

        self._owns_transport = transport is None
        self.transport = transport or httpx.AsyncClient(timeout=None)
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def without_retry(cls, url: str, **kwargs) -> "Client":
        return cls(url, retry=False, **kwargs)

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs) -> "Client":
        return cls(
            settings.url,
            stream=settings.stream,
            headers=settings.headers,
            encoding_base64=settings.encoding_base64,
            retry=settings.retry,
            retry_policy=settings.retry_policy(),
            **kwargs,
        )

    async def subscribe(self, stream: str, handler: Callable[[Event], object]) -> None:
        """Deliver events from ``stream`` to ``handler`` until the server closes it.

        The handler may be a plain function or a coroutine function; the next
        event is not read until it returns. Transport failures are retried by
        the retry policy; only fatal errors are raised.
        """
        await ReconnectingSession(self, stream).run(handler)

    async def subscribe_raw(self, handler: Callable[[Event], object]) -> None:
        """Subscribe with the client's default selector (the bare endpoint if unset)."""
        await self.subscribe(self.stream, handler)

    async def subscribe_chan(
        self, stream: str, channel: MemoryObjectSendStream
    ) -> asyncio.Task:
        """Send events from ``stream`` on ``channel`` from a background task.

        Only a failure of the first connection is raised here. Afterwards the
        channel is closed when the subscription ends for any reason.
        """
        cancelled = self.registry.register(channel)
        session = ReconnectingSession(self, stream)
        try:
            response = await self.retry_policy.run(session.connect, label=session.label)
        except BaseException:
            self.registry.remove(channel)
            raise

        task = asyncio.create_task(session.deliver(response, channel, cancelled))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def subscribe_chan_raw(self, channel: MemoryObjectSendStream) -> asyncio.Task:
        return await self.subscribe_chan(self.stream, channel)

    def unsubscribe(self, channel: MemoryObjectSendStream) -> None:
        """Ask the task feeding ``channel`` to stop; no-op if it already has."""
        self.registry.signal(channel)

    async def aclose(self) -> None:
        for channel in self.registry.channels():
            self.unsubscribe(channel)
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
