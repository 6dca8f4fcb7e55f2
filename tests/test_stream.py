"""Tests for vn_engine.stream — SSE decoding, HttpEventSource, ScriptedEventSource."""

import json

import httpx
import pytest

from fakes import DroppedStream
from vn_engine.errors import StreamTransportError
from vn_engine.models import StreamEvent
from vn_engine.stream import HttpEventSource, ScriptedEventSource, decode_sse


async def _lines(*lines: str):
    for line in lines:
        yield line


async def _decode(*lines: str) -> list[StreamEvent]:
    return [event async for event in decode_sse(_lines(*lines))]


async def _collect(source) -> list[StreamEvent]:
    return [event async for event in source.events()]


def _sse(*payloads: dict) -> str:
    return "".join(f"data: {json.dumps(p)}\n\n" for p in payloads)


# ---------------------------------------------------------------------------
# decode_sse
# ---------------------------------------------------------------------------

class TestDecodeSSE:
    async def test_single_event(self) -> None:
        events = await _decode('data: {"type": "chunk", "content": "LOC: a\\n"}', "")
        assert events == [StreamEvent(type="chunk", text="LOC: a\n")]

    async def test_comments_and_other_fields_ignored(self) -> None:
        events = await _decode(
            ": keep-alive",
            "event: message",
            "id: 7",
            'data: {"type": "done", "text": "all"}',
            "",
        )
        assert events == [StreamEvent(type="done", text="all")]

    async def test_multi_line_data_joined(self) -> None:
        events = await _decode(
            'data: {"type":',
            'data: "chunk", "content": "x"}',
            "",
        )
        assert events == [StreamEvent(type="chunk", text="x")]

    async def test_hyphenated_type_normalised(self) -> None:
        events = await _decode('data: {"type": "setup-ready"}', "")
        assert events == [StreamEvent(type="setup_ready", text="")]

    async def test_error_text_taken_from_error_field(self) -> None:
        events = await _decode('data: {"type": "error", "error": "overloaded"}', "")
        assert events == [StreamEvent(type="error", text="overloaded")]

    async def test_error_text_taken_from_message_field(self) -> None:
        events = await _decode('data: {"type": "error", "message": "empty message"}', "")
        assert events == [StreamEvent(type="error", text="empty message")]

    async def test_bad_frames_skipped(self) -> None:
        events = await _decode(
            "data: not json",
            "",
            'data: ["a list"]',
            "",
            'data: {"type": "mystery"}',
            "",
            'data: {"type": "chunk", "content": "ok"}',
            "",
        )
        assert events == [StreamEvent(type="chunk", text="ok")]

    async def test_trailing_event_without_blank_line(self) -> None:
        events = await _decode('data: {"type": "done", "content": "end"}')
        assert events == [StreamEvent(type="done", text="end")]

    async def test_crlf_lines(self) -> None:
        events = await _decode('data: {"type": "chunk", "content": "a"}\r', "\r")
        assert events == [StreamEvent(type="chunk", text="a")]


# ---------------------------------------------------------------------------
# HttpEventSource
# ---------------------------------------------------------------------------

class TestHttpEventSource:
    async def test_happy_path(self) -> None:
        body = _sse(
            {"type": "chunk", "content": "LOC: beach\n"},
            {"type": "done", "content": "LOC: beach\n"},
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        source = HttpEventSource("http://story.test/stream", transport=httpx.MockTransport(handler))
        events = await _collect(source)
        assert [e.type for e in events] == ["chunk", "done"]
        assert events[0].text == "LOC: beach\n"

    async def test_posts_body_and_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=_sse({"type": "done"}))

        source = HttpEventSource(
            "http://story.test/stream",
            body={"message": "go on"},
            api_key="sk-test",
            transport=httpx.MockTransport(handler),
        )
        await _collect(source)

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "http://story.test/stream"
        assert request.headers["authorization"] == "Bearer sk-test"
        assert request.headers["accept"] == "text/event-stream"
        assert json.loads(request.content) == {"message": "go on"}

    async def test_no_auth_header_without_key(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=_sse({"type": "done"}))

        await _collect(HttpEventSource("http://story.test/s", transport=httpx.MockTransport(handler)))
        assert "authorization" not in seen[0].headers

    async def test_http_error_status(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        source = HttpEventSource("http://story.test/s", transport=transport)
        with pytest.raises(StreamTransportError, match="HTTP 503"):
            await _collect(source)

    async def test_connect_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        source = HttpEventSource("http://story.test/s", transport=httpx.MockTransport(handler))
        with pytest.raises(StreamTransportError, match="Cannot connect"):
            await _collect(source)

    async def test_connection_dropped_mid_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=DroppedStream(_sse({"type": "chunk", "content": "LOC: a\n"})))

        source = HttpEventSource("http://story.test/s", transport=httpx.MockTransport(handler))
        received: list[StreamEvent] = []
        with pytest.raises(StreamTransportError, match="connection reset"):
            async for event in source.events():
                received.append(event)
        assert received == [StreamEvent(type="chunk", text="LOC: a\n")]

    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        source = HttpEventSource("http://story.test/s", timeout=5.0, transport=httpx.MockTransport(handler))
        with pytest.raises(StreamTransportError, match="timed out"):
            await _collect(source)


# ---------------------------------------------------------------------------
# ScriptedEventSource
# ---------------------------------------------------------------------------

class TestScriptedEventSource:
    async def test_chunks_then_done(self) -> None:
        events = await _collect(ScriptedEventSource("abcdefg", chunk_size=3))
        assert events == [
            StreamEvent(type="chunk", text="abc"),
            StreamEvent(type="chunk", text="def"),
            StreamEvent(type="chunk", text="g"),
            StreamEvent(type="done", text="abcdefg"),
        ]

    async def test_empty_text_only_done(self) -> None:
        events = await _collect(ScriptedEventSource(""))
        assert events == [StreamEvent(type="done", text="")]

    def test_chunk_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            ScriptedEventSource("abc", chunk_size=0)
