"""Streaming ingestion: grow a playing script from a stream of records.

Record flow (see StreamEvent):

  chunk        incremental text. Buffered by line; only complete lines reach
               the parser, so a "LOC:" whose payload has not arrived yet is
               never misread.
  setup_ready  explicit "scene header available" signal. The adapter also
               detects it from the chunks: the first point where the complete
               lines include a LOC:, a CHA: and an STP: line, each with a
               payload. Either way playback starts once, in replace mode, with
               the complete lines received so far. While those lines hold no
               command yet, the start waits for the next completed line.
  done         final text. Streaming ends, leftovers are flushed as a last
               append, and the STP choices of the final text are surfaced.
  error        terminal failure. Streaming ends and StreamTransportError is
               raised; whatever was on screen stays there.

After setup, every chunk that completes at least one line is appended to the
store and the controller is nudged in case it ran out of commands.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from vn_engine.errors import StreamTimeout, StreamTransportError
from vn_engine.models import StreamEvent
from vn_engine.parser import (
    CHARACTERS_PREFIX,
    LOCATION_PREFIX,
    TRANSITION_PREFIX,
    parse_script,
)
from vn_engine.playback import PlaybackController
from vn_engine.stream import EventSource

logger = logging.getLogger(__name__)

DEFAULT_STREAM_TIMEOUT = 30.0
_HEADER_PREFIXES = (LOCATION_PREFIX, CHARACTERS_PREFIX, TRANSITION_PREFIX)


def has_scene_header(text: str) -> bool:
    """True when `text` holds complete LOC:, CHA: and STP: lines with content.

    The last line only counts once its newline has arrived.
    """
    found: set[str] = set()
    for line in text.split("\n")[:-1]:
        line = line.strip()
        for prefix in _HEADER_PREFIXES:
            if line.startswith(prefix) and line[len(prefix):].strip():
                found.add(prefix)
    return len(found) == len(_HEADER_PREFIXES)


class StreamIngestor:
    """Feeds a PlaybackController from streaming records.

    Args:
        controller: Playback controller to load into and nudge.
        on_choices: Called once with the final STP choices when the stream
                    completes.
        timeout:    Overall deadline in seconds for consume().
    """

    def __init__(
        self,
        controller: PlaybackController,
        on_choices: Callable[[list[str]], None] | None = None,
        timeout: float = DEFAULT_STREAM_TIMEOUT,
    ) -> None:
        self.controller = controller
        self.on_choices = on_choices
        self.timeout = timeout
        self.raw_text = ""
        self.line_buffer = ""
        self.setup_ready = False
        self.finished = False
        self.choices: list[str] = []
        self._setup_requested = False

    # ------------------------------------------------------------------
    # Driving from a source
    # ------------------------------------------------------------------

    async def consume(self, source: EventSource) -> list[str]:
        """Read records until done/error. Returns the final STP choices."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        events = aiter(source.events())
        try:
            while not self.finished:
                remaining = deadline - loop.time()
                try:
                    if remaining <= 0:
                        raise asyncio.TimeoutError
                    event = await asyncio.wait_for(anext(events), remaining)
                except StopAsyncIteration:
                    await self._abort()
                    raise StreamTransportError("Stream ended without a done record")
                except asyncio.TimeoutError as e:
                    await self._abort()
                    raise StreamTimeout(f"Stream did not finish within {self.timeout}s") from e
                except Exception:
                    await self._abort()
                    raise
                await self.handle(event)
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()
        return self.choices

    async def handle(self, event: StreamEvent) -> None:
        if self.finished:
            logger.warning("Ignoring %s record after the stream finished", event.type)
            return

        if event.type == "chunk":
            await self._on_chunk(event.text)
        elif event.type == "setup_ready":
            await self._on_setup_ready(event.text)
        elif event.type == "done":
            await self._on_done(event.text)
        else:
            await self._abort()
            raise StreamTransportError(event.text or "Story stream failed")

    # ------------------------------------------------------------------
    # Record handlers
    # ------------------------------------------------------------------

    async def _on_chunk(self, text: str) -> None:
        complete = self._buffer(text)
        if not self.setup_ready:
            if self._setup_requested or has_scene_header(self._complete_text()):
                await self._start()
            return
        if complete:
            self.controller.load_script("\n".join(complete), append=True)
            await self.controller.resume_from_waiting()

    async def _on_setup_ready(self, text: str) -> None:
        if self.setup_ready:
            return
        if text and not self.raw_text:
            self._buffer(text)
        self._setup_requested = True
        await self._start()

    async def _on_done(self, final_text: str) -> None:
        self.finished = True
        self.controller.end_streaming()

        # Pick up anything the final text has that the chunks did not deliver.
        missing: list[str] = []
        if final_text and final_text.startswith(self.raw_text):
            missing = self._buffer(final_text[len(self.raw_text):])

        if not self.setup_ready:
            self.setup_ready = True
            self.line_buffer = ""
            self.controller.load_script(self.raw_text)
            await self.controller.start_playback()
        else:
            pending = "\n".join(missing + [self.line_buffer])
            self.line_buffer = ""
            if pending.strip():
                self.controller.load_script(pending, append=True)
            await self.controller.resume_from_waiting()

        final = final_text or self.raw_text
        self.choices = parse_script(final).transition_points or []
        logger.info("stream done: %d chars, choices=%s", len(final), self.choices)
        if self.on_choices is not None:
            self.on_choices(self.choices)

    async def _start(self) -> None:
        text = self._complete_text()
        if not parse_script(text).commands:
            logger.debug("setup deferred until a complete line arrives")
            return
        self.setup_ready = True
        self.controller.begin_streaming()
        self.controller.load_script(text)
        logger.info("scene setup ready after %d chars", len(self.raw_text))
        await self.controller.start_playback()

    async def _abort(self) -> None:
        self.finished = True
        self.controller.end_streaming()
        await self.controller.resume_from_waiting()

    # ------------------------------------------------------------------
    # Buffering
    # ------------------------------------------------------------------

    def _buffer(self, text: str) -> list[str]:
        """Add text to the buffers and return the lines it completed."""
        self.raw_text += text
        self.line_buffer += text
        *complete, self.line_buffer = self.line_buffer.split("\n")
        return complete

    def _complete_text(self) -> str:
        return self.raw_text[: len(self.raw_text) - len(self.line_buffer)]
