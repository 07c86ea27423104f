"""Exception types raised by the event stream client."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from eventfeed.streams.parser import Event


class EventStreamError(Exception):
    """Base class for every error raised by eventfeed."""


class ParseError(EventStreamError):
    """A raw event block could not be turned into an event."""


class EmptyEventError(ParseError):
    def __init__(self) -> None:
        super().__init__("event message was empty")


class InvalidEventError(ParseError):
    def __init__(self) -> None:
        super().__init__("invalid event message")


class EventDecodeError(ParseError):
    """Base64 payload decoding failed.

    The parsed record is still available on ``event``, holding the raw data
    as it was before the decode attempt.
    """

    def __init__(self, message: str, event: "Event") -> None:
        super().__init__(f"failed to decode event message: {message}")
        self.event = event


class RequestBuildError(EventStreamError, ValueError):
    """The subscribe request could not be constructed (malformed URL)."""


class StreamConnectionError(EventStreamError):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"could not connect to stream (HTTP {status_code})")
        self.status_code = status_code


class SubscriptionError(EventStreamError):
    """A delivery channel is already registered."""
