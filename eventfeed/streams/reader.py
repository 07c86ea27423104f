"""Splits a response body into raw event blocks on blank lines."""

import re
from collections.abc import AsyncIterator

from eventfeed.errors import EventStreamError

# Two line endings in a row, each one of CRLF, lone CR or LF.
_BLOCK_END = re.compile(rb"(?:\r\n|\r(?!\n)|\n){2}")


class EventStreamReader:
    """Reads raw event blocks from an async byte iterator.

    ``read_event`` returns the next non-empty block, or ``None`` once the
    underlying body is exhausted. Errors raised by the body propagate.
    ``max_event_size`` bounds the unfinished block held in memory, not the
    size of a chunk.
    """

    def __init__(self, chunks: AsyncIterator[bytes], max_event_size: int = 1 << 20):
        self._chunks = chunks
        self._buffer = b""
        self._pos = 0
        self._max_event_size = max_event_size
        self._exhausted = False

    def _pop_block(self) -> bytes | None:
        match = _BLOCK_END.search(self._buffer, self._pos)
        if match is None:
            return None
        # A trailing CR may be the first half of a CRLF still in flight.
        if (
            not self._exhausted
            and match.end() == len(self._buffer)
            and self._buffer.endswith(b"\r")
        ):
            return None
        block = self._buffer[self._pos : match.start()]
        self._pos = match.end()
        return block

    async def read_event(self) -> bytes | None:
        while True:
            block = self._pop_block()
            if block is not None:
                if block.strip(b"\r\n"):
                    return block
                continue

            if len(self._buffer) - self._pos > self._max_event_size:
                raise EventStreamError(
                    f"event block exceeds {self._max_event_size} bytes"
                )

            if self._exhausted:
                block = self._buffer[self._pos :]
                self._buffer, self._pos = b"", 0
                return block if block.strip(b"\r\n") else None

            try:
                chunk = await anext(self._chunks)
            except StopAsyncIteration:
                self._exhausted = True
                continue

            self._buffer = self._buffer[self._pos :] + chunk
            self._pos = 0

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        block = await self.read_event()
        if block is None:
            raise StopAsyncIteration
        return block
