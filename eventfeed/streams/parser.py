"""SSE block parsing: one raw event block in, one Event out."""

import base64
import binascii
from dataclasses import dataclass, replace

from eventfeed.errors import (
    EmptyEventError,
    EventDecodeError,
    InvalidEventError,
)

_HEADER_ID = b"id:"
_HEADER_DATA = b"data:"
_HEADER_EVENT = b"event:"
_HEADER_RETRY = b"retry:"
_BARE_DATA = b"data"


@dataclass(frozen=True)
class Event:
    id: bytes = b""
    event: bytes = b""
    data: bytes = b""
    retry: bytes = b""


def split_lines(block: bytes) -> list[bytes]:
    block = block.replace(b"\r\n", b"\n").replace(b"\r", b"\n")
    return [line for line in block.split(b"\n") if line]


def trim_header(size: int, line: bytes) -> bytes:
    value = line[size:]
    if value.startswith(b" "):
        value = value[1:]
    if value.endswith(b"\n"):
        value = value[:-1]
    return value


def decode_payload(data: bytes) -> bytes:
    return base64.b64decode(data.replace(b"\n", b""), validate=True)


def parse_event(block: bytes, *, encoding_base64: bool = False) -> Event:
    """Parse a single raw event block.

    Raises EmptyEventError for an empty block and InvalidEventError when the
    block carries no data field. In base64 mode a payload that fails to decode
    raises EventDecodeError with the undecoded record attached.
    """
    if not block:
        raise EmptyEventError()

    fields: dict[str, bytes] = {}
    data = bytearray()
    has_data = False

    for line in split_lines(block):
        if line.startswith(_HEADER_ID):
            fields["id"] = trim_header(len(_HEADER_ID), line)
        elif line.startswith(_HEADER_DATA):
            # Multiple data fields are joined with "\n" in wire order.
            data += trim_header(len(_HEADER_DATA), line) + b"\n"
            has_data = True
        elif line == _BARE_DATA:
            data += b"\n"
            has_data = True
        elif line.startswith(_HEADER_EVENT):
            fields["event"] = trim_header(len(_HEADER_EVENT), line)
        elif line.startswith(_HEADER_RETRY):
            fields["retry"] = trim_header(len(_HEADER_RETRY), line)

    if not has_data:
        raise InvalidEventError()

    event = Event(data=bytes(data[:-1]), **fields)

    if encoding_base64 and event.data:
        try:
            return replace(event, data=decode_payload(event.data))
        except binascii.Error as exc:
            raise EventDecodeError(str(exc), event) from exc

    return event
