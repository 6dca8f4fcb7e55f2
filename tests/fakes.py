"""Test doubles shared by the playback and ingestion tests."""

import asyncio

import httpx


class StubRenderer:
    """Scene renderer that records every command it is asked to draw."""

    def __init__(self) -> None:
        self.rendered: list = []
        self.resets = 0

    async def render_command(self, command) -> None:
        self.rendered.append(command)

    def reset(self) -> None:
        self.resets += 1


async def no_wait(_seconds: float) -> None:
    """Stand-in for asyncio.sleep that only yields to the event loop."""
    await asyncio.sleep(0)


class DroppedStream(httpx.AsyncByteStream):
    """Response body that sends `frames` and then loses the connection."""

    def __init__(self, *frames: str) -> None:
        self._frames = frames

    async def __aiter__(self):
        for frame in self._frames:
            yield frame.encode()
        raise httpx.ReadError("connection reset by peer")
