"""Stream sources — where StreamIngestor gets its records from.

Every source matches the protocol:

    def events(self) -> AsyncIterator[StreamEvent]: ...

Two implementations are provided:

    HttpEventSource     — POSTs to a story endpoint and decodes its
                          server-sent-event response over httpx.
    ScriptedEventSource — replays a finished script as chunks, then done.
                          Useful for offline playback and tests.

Wire format (one JSON object per SSE `data:` field):

    data: {"type": "chunk", "content": "LOC: beach\\nCHA: ava/"}

`type` is one of setup_ready | chunk | done | error (hyphenated spellings are
accepted). The text may be carried in `content` or `text`; error records may
use `error` or `message` instead.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterable, AsyncIterator, Protocol, get_args

import httpx
from pydantic import ValidationError

from vn_engine.errors import StreamTransportError
from vn_engine.models import StreamEvent, StreamEventType

logger = logging.getLogger(__name__)

_EVENT_TYPES = set(get_args(StreamEventType))
# error records use `error` or `message`
_TEXT_KEYS = ("content", "text", "error", "message")


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class EventSource(Protocol):
    def events(self) -> AsyncIterator[StreamEvent]: ...


# ---------------------------------------------------------------------------
# SSE decoding
# ---------------------------------------------------------------------------

def _decode_payload(data: str) -> StreamEvent | None:
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        logger.warning("Skipping non-JSON stream frame %r: %s", data[:80], e)
        return None
    if not isinstance(payload, dict):
        logger.warning("Skipping stream frame that is not an object: %r", data[:80])
        return None

    event_type = str(payload.get("type", "")).replace("-", "_")
    if event_type not in _EVENT_TYPES:
        logger.warning("Skipping stream frame with unknown type %r", event_type)
        return None

    text = next((payload[k] for k in _TEXT_KEYS if k in payload), "")
    try:
        return StreamEvent(type=event_type, text=text if isinstance(text, str) else str(text))
    except ValidationError as e:
        logger.warning("Skipping malformed stream frame: %s", e)
        return None


async def decode_sse(lines: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
    """Turn the lines of a text/event-stream body into StreamEvents.

    A blank line dispatches the buffered `data:` fields. Comments (`:` lines)
    and fields other than `data` are ignored.
    """
    data_lines: list[str] = []
    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            if data_lines:
                event = _decode_payload("\n".join(data_lines))
                data_lines = []
                if event is not None:
                    yield event
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            data_lines.append(value)

    if data_lines:
        event = _decode_payload("\n".join(data_lines))
        if event is not None:
            yield event


# ---------------------------------------------------------------------------
# HttpEventSource — server-sent events over httpx
# ---------------------------------------------------------------------------

class HttpEventSource:
    """Streams a story from an HTTP endpoint answering with text/event-stream.

    Args:
        url:       Full endpoint URL, e.g. "http://localhost:3000/api/story/stream".
        body:      JSON body to POST (e.g. {"message": "..."}).
        api_key:   Bearer token, or empty string if not required.
        timeout:   httpx timeout in seconds. The overall stream deadline is
                   enforced separately by StreamIngestor.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        url: str,
        body: dict | None = None,
        api_key: str = "",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._body = body or {}
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def events(self) -> AsyncIterator[StreamEvent]:
        logger.debug("opening story stream url=%s", self._url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                async with client.stream(
                    "POST", self._url, json=self._body, headers=self._headers()
                ) as resp:
                    resp.raise_for_status()
                    async for event in decode_sse(resp.aiter_lines()):
                        yield event
        except httpx.ConnectError as e:
            raise StreamTransportError(f"Cannot connect to story stream at {self._url}") from e
        except httpx.HTTPStatusError as e:
            raise StreamTransportError(
                f"Story stream returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise StreamTransportError(f"Story stream timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise StreamTransportError(f"Story stream failed: {e}") from e


# ---------------------------------------------------------------------------
# ScriptedEventSource — replays a finished script
# ---------------------------------------------------------------------------

class ScriptedEventSource:
    """Replays `text` as fixed-size chunks followed by a done record.

    No network calls. `delay` (seconds) is slept between chunks to imitate a
    model typing; leave it at 0 in tests.
    """

    def __init__(self, text: str, chunk_size: int = 32, delay: float = 0.0) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self._text = text
        self._chunk_size = chunk_size
        self._delay = delay

    async def events(self) -> AsyncIterator[StreamEvent]:
        for start in range(0, len(self._text), self._chunk_size):
            if self._delay:
                await asyncio.sleep(self._delay)
            yield StreamEvent(type="chunk", text=self._text[start:start + self._chunk_size])
        yield StreamEvent(type="done", text=self._text)
