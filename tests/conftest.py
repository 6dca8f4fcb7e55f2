"""Shared fixtures for playback and ingestion tests."""

import asyncio

import pytest

from fakes import StubRenderer, no_wait
from vn_engine.config import PlayerSettings
from vn_engine.playback import PlaybackController, PlaybackState


@pytest.fixture
def renderer() -> StubRenderer:
    return StubRenderer()


@pytest.fixture
def make_controller(renderer):
    def _make(**settings) -> PlaybackController:
        return PlaybackController(renderer, PlayerSettings(**settings), sleep=no_wait)
    return _make


@pytest.fixture
def settle():
    """Spin the event loop until the controller reaches one of `states`."""
    async def _settle(controller: PlaybackController, *states: PlaybackState, limit: int = 5000):
        for _ in range(limit):
            if controller.state in states:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"controller stuck in {controller.state}, wanted {states}")
    return _settle
