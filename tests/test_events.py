"""
Tests for SSE frame decoding and payload interpretation.
"""

import json

from partyline.events import EventDecoder, extract_data, parse_event


def _frame(obj) -> str:
    return f"data: {json.dumps(obj)}"


# ---------------------------------------------------------------------------
# EventDecoder
# ---------------------------------------------------------------------------

def test_decoder_single_frame():
    decoder = EventDecoder()
    assert decoder.feed(b"data: hello\n\n") == ["data: hello"]
    assert decoder.pending == ""


def test_decoder_multiple_frames_in_one_chunk():
    decoder = EventDecoder()
    assert decoder.feed(b"data: a\n\ndata: b\n\n") == ["data: a", "data: b"]


def test_decoder_frame_split_across_chunks():
    """A frame torn mid-token is held until its delimiter arrives."""
    decoder = EventDecoder()
    assert decoder.feed(b'data: {"message":{"con') == []
    assert decoder.feed(b'tent":"Hel"},"done":false}\n') == []
    assert decoder.feed(b"\ndata: x") == ['data: {"message":{"content":"Hel"},"done":false}']
    assert decoder.pending == "data: x"


def test_decoder_utf8_split_across_chunks():
    encoded = "data: héllo\n\n".encode("utf-8")
    split = encoded.index(b"\xc3") + 1   # cut inside the two-byte é
    decoder = EventDecoder()
    assert decoder.feed(encoded[:split]) == []
    assert decoder.feed(encoded[split:]) == ["data: héllo"]


def test_decoder_close_returns_unterminated_frame():
    decoder = EventDecoder()
    assert decoder.feed(b"data: a\n\ndata: b") == ["data: a"]
    assert decoder.close() == "data: b"
    assert decoder.pending == ""


def test_decoder_close_with_nothing_left():
    decoder = EventDecoder()
    decoder.feed(b"data: a\n\n\n")
    assert decoder.close() is None


def test_decoder_close_finishes_truncated_utf8():
    """A body cut inside a multi-byte sequence ends in a replacement character."""
    decoder = EventDecoder()
    assert decoder.feed("data: h\u00e9".encode("utf-8")[:-1]) == []
    assert decoder.close() == "data: h\ufffd"


# ---------------------------------------------------------------------------
# extract_data / parse_event
# ---------------------------------------------------------------------------

def test_extract_data_ignores_other_fields():
    raw = "event: message\nid: 7\ndata: one\r\ndata: two\n: comment"
    assert extract_data(raw) == "one\ntwo"


def test_extract_data_strips_nested_prefix():
    assert extract_data("data: data: data: payload") == "payload"


def test_parse_event_content():
    event = parse_event(_frame({"message": {"content": "Hel"}, "done": False}))
    assert event.text == "Hel"
    assert not event.done


def test_parse_event_done():
    event = parse_event(_frame({"message": {"content": "lo"}, "done": True}))
    assert event.text == "lo"
    assert event.done


def test_parse_event_done_must_be_true():
    assert not parse_event(_frame({"done": "yes"})).done


def test_parse_event_empty_payload():
    assert parse_event("data:   ") is None
    assert parse_event(": keep-alive") is None


def test_parse_event_error_sentinel():
    event = parse_event("data: __ERR__:connection reset")
    assert event.is_error
    assert event.text == "\n[error] __ERR__:connection reset"


def test_parse_event_error_prefix_case_insensitive():
    event = parse_event("data: Error contacting Ollama API: refused")
    assert event.is_error
    assert event.text == "\n[error] Error contacting Ollama API: refused"


def test_parse_event_malformed_is_literal():
    """Non-JSON, non-error payloads pass through verbatim."""
    event = parse_event("data: just some text")
    assert event.text == "just some text"
    assert not event.done
    assert not event.is_error


def test_parse_event_missing_content():
    event = parse_event(_frame({"model": "llama3:8b", "done": False}))
    assert event.text == ""


def test_parse_event_non_object_json():
    event = parse_event("data: [1, 2]")
    assert event.text == ""
    assert not event.done
