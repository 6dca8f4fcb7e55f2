"""Scene rendering contract and a headless scene tracker.

The playback controller only needs something matching SceneRenderer: an
awaitable render_command() that always resolves. Scene is the stock
implementation. It tracks the location and characters on stage and redraws
through a Canvas, absorbing missing assets by falling back to a gradient
background or a placeholder sprite.

Canvas implementations do the actual drawing and are out of scope here;
RecordingCanvas just records draw calls, for tests and the terminal player.
"""

from __future__ import annotations

import logging
from typing import Iterable, Literal, Protocol, Sequence

from vn_engine.errors import AssetMissError
from vn_engine.models import (
    CharacterRef,
    CharactersCommand,
    Command,
    LocationCommand,
)
from vn_engine.parser import backgrounds_for_location

logger = logging.getLogger(__name__)

Position = Literal["left", "center", "right"]


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class SceneRenderer(Protocol):
    async def render_command(self, command: Command) -> None: ...

    def reset(self) -> None: ...


class Canvas(Protocol):
    """Drawing surface. draw_background/draw_character raise AssetMissError."""

    def clear(self) -> None: ...

    async def draw_background(self, location: str) -> None: ...

    async def draw_gradient(self, colors: Sequence[str]) -> None: ...

    async def draw_character(self, name: str, mood: str, position: Position) -> None: ...

    async def draw_placeholder(self, name: str, position: Position) -> None: ...


# ---------------------------------------------------------------------------
# Positioning
# ---------------------------------------------------------------------------

def character_positions(count: int) -> list[Position]:
    """Stage slot for each of `count` characters, in listing order."""
    if count <= 0:
        return []
    if count == 1:
        return ["center"]
    if count == 2:
        return ["left", "right"]
    if count == 3:
        return ["left", "center", "right"]

    positions: list[Position] = []
    for i in range(count):
        ratio = i / (count - 1)
        if ratio < 0.3:
            positions.append("left")
        elif ratio > 0.7:
            positions.append("right")
        else:
            positions.append("center")
    return positions


# ---------------------------------------------------------------------------
# Scene
# ---------------------------------------------------------------------------

class Scene:
    """Keeps track of what is on stage and redraws it on every command.

    Args:
        canvas:            Drawing surface.
        hidden_characters: Names never drawn (e.g. the player's own avatar).
                           Matched case-insensitively.
    """

    def __init__(self, canvas: Canvas, hidden_characters: Iterable[str] = ()) -> None:
        self._canvas = canvas
        self._hidden = {name.lower() for name in hidden_characters}
        self.location: str | None = None
        self.characters: list[CharacterRef] = []

    def _visible(self, characters: Iterable[CharacterRef]) -> list[CharacterRef]:
        return [c for c in characters if c.name.lower() not in self._hidden]

    async def render_command(self, command: Command) -> None:
        if isinstance(command, LocationCommand):
            if command.location == self.location:
                return
            self.location = command.location
        elif isinstance(command, CharactersCommand):
            self.characters = self._visible(command.characters)
        else:
            self.characters = self._visible(command.characters)
            self.location = command.location or self.location
        await self._render()

    def reset(self) -> None:
        self.location = None
        self.characters = []
        self._canvas.clear()

    def state(self) -> dict:
        return {
            "location": self.location,
            "characters": [c.model_dump() for c in self.characters],
        }

    async def _render(self) -> None:
        self._canvas.clear()

        if self.location:
            try:
                await self._canvas.draw_background(self.location)
            except AssetMissError as e:
                logger.warning("%s; using gradient for %r", e, self.location)
                await self._canvas.draw_gradient(backgrounds_for_location(self.location))

        positions = character_positions(len(self.characters))
        for char, position in zip(self.characters, positions):
            try:
                await self._canvas.draw_character(char.name, char.mood, position)
            except AssetMissError as e:
                logger.warning("%s; drawing placeholder for %s", e, char.name)
                await self._canvas.draw_placeholder(char.name, position)


# ---------------------------------------------------------------------------
# RecordingCanvas — headless canvas that records draw calls
# ---------------------------------------------------------------------------

class RecordingCanvas:
    """Canvas that draws nothing and records every call in `ops`.

    Backgrounds outside `backgrounds` and characters outside `sprites` raise
    AssetMissError, so the scene's fallback paths run. Pass None to accept
    every asset.
    """

    def __init__(
        self,
        backgrounds: Iterable[str] | None = None,
        sprites: Iterable[str] | None = None,
    ) -> None:
        self._backgrounds = set(backgrounds) if backgrounds is not None else None
        self._sprites = {s.lower() for s in sprites} if sprites is not None else None
        self.ops: list[tuple] = []

    def clear(self) -> None:
        self.ops.append(("clear",))

    async def draw_background(self, location: str) -> None:
        if self._backgrounds is not None and location not in self._backgrounds:
            raise AssetMissError(f"background/{location}")
        self.ops.append(("background", location))

    async def draw_gradient(self, colors: Sequence[str]) -> None:
        self.ops.append(("gradient", tuple(colors)))

    async def draw_character(self, name: str, mood: str, position: Position) -> None:
        if self._sprites is not None and name.lower() not in self._sprites:
            raise AssetMissError(f"character/{name}/{mood}")
        self.ops.append(("character", name, mood, position))

    async def draw_placeholder(self, name: str, position: Position) -> None:
        self.ops.append(("placeholder", name, position))
