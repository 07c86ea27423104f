import base64

import pytest

from eventfeed.errors import (
    EmptyEventError,
    EventDecodeError,
    InvalidEventError,
    ParseError,
)
from eventfeed.streams.parser import Event, parse_event, split_lines, trim_header


def test_multiple_data_lines_join_in_wire_order_without_trailing_newline() -> None:
    event = parse_event(b"data: first\ndata: second\ndata: third")

    assert event.data == b"first\nsecond\nthird"


def test_bare_data_line_is_an_empty_payload_not_a_failure() -> None:
    assert parse_event(b"data") == Event(data=b"")
    assert parse_event(b"data:") == Event(data=b"")


def test_bare_data_line_contributes_an_empty_line() -> None:
    assert parse_event(b"data: a\ndata\ndata: b").data == b"a\n\nb"


def test_metadata_only_block_is_invalid() -> None:
    with pytest.raises(InvalidEventError):
        parse_event(b"id: 1\nevent: tick\nretry: 1000")


def test_empty_block_is_reported_as_empty() -> None:
    with pytest.raises(EmptyEventError):
        parse_event(b"")


def test_parse_errors_share_a_base_class() -> None:
    assert issubclass(EmptyEventError, ParseError)
    assert issubclass(InvalidEventError, ParseError)
    assert issubclass(EventDecodeError, ParseError)


def test_metadata_fields_last_occurrence_wins() -> None:
    event = parse_event(
        b"id: 1\nevent: a\nretry: 10\nid: 2\nevent: b\nretry: 20\ndata: x"
    )

    assert event == Event(id=b"2", event=b"b", data=b"x", retry=b"20")


def test_only_one_leading_space_is_trimmed() -> None:
    assert parse_event(b"data:  indented").data == b" indented"
    assert parse_event(b"data:tight").data == b"tight"


def test_crlf_and_cr_line_endings_are_accepted() -> None:
    event = parse_event(b"id: 7\r\nevent: tick\r\ndata: a\rdata: b\r\n")

    assert event == Event(id=b"7", event=b"tick", data=b"a\nb")


def test_unknown_fields_and_comments_are_ignored() -> None:
    event = parse_event(b": keepalive\nfoo: bar\ndata: kept")

    assert event == Event(data=b"kept")


def test_base64_payload_round_trips_arbitrary_bytes() -> None:
    payload = bytes(range(256)) * 3
    encoded = base64.b64encode(payload)

    event = parse_event(b"id: 9\ndata: " + encoded, encoding_base64=True)

    assert event.data == payload
    assert event.id == b"9"


def test_base64_payload_may_span_several_data_lines() -> None:
    encoded = base64.b64encode(b"split across lines, still one payload")
    block = b"data: " + encoded[:16] + b"\ndata: " + encoded[16:]

    event = parse_event(block, encoding_base64=True)

    assert event.data == b"split across lines, still one payload"


def test_base64_decode_failure_carries_the_undecoded_record() -> None:
    with pytest.raises(EventDecodeError) as exc_info:
        parse_event(b"id: 3\ndata: not*base64", encoding_base64=True)

    assert exc_info.value.event == Event(id=b"3", data=b"not*base64")


def test_empty_payload_is_not_decoded_in_base64_mode() -> None:
    assert parse_event(b"data", encoding_base64=True) == Event(data=b"")


def test_split_lines_drops_empty_splits() -> None:
    assert split_lines(b"a\r\n\r\nb\n\nc\r") == [b"a", b"b", b"c"]


def test_trim_header_handles_empty_values() -> None:
    assert trim_header(len(b"id:"), b"id:") == b""
    assert trim_header(len(b"id:"), b"id: ") == b""
