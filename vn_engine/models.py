"""Core domain models.

The parser produces, the store holds and the playback controller consumes
these types. Every model is frozen: a dialogue or action command carries the
scene snapshot that was current when its line was parsed, and nothing may
update it afterwards.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

NEUTRAL_MOOD = "neutral"


class CharacterRef(BaseModel):
    """A character on stage, as listed by a CHA: line."""

    model_config = ConfigDict(frozen=True)

    name: str
    mood: str = NEUTRAL_MOOD


class LocationCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["location"] = "location"
    location: str
    backgrounds: tuple[str, ...] = ()  # fallback colours for the renderer


class CharactersCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["characters"] = "characters"
    characters: tuple[CharacterRef, ...] = ()


class DialogueCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["dialogue"] = "dialogue"
    speaker: str
    text: str
    mood: str = NEUTRAL_MOOD
    location: str | None = None
    characters: tuple[CharacterRef, ...] = ()


class ActionCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["action"] = "action"
    text: str
    location: str | None = None
    characters: tuple[CharacterRef, ...] = ()


Command = Annotated[
    Union[LocationCommand, CharactersCommand, DialogueCommand, ActionCommand],
    Field(discriminator="type"),
]

# Commands that put text in the dialogue box.
TextCommand = Union[DialogueCommand, ActionCommand]

command_list_adapter: TypeAdapter[list[Command]] = TypeAdapter(list[Command])


class SceneContext(BaseModel):
    """Running location/characters while scanning a script top to bottom.

    Threaded through parse_script() so an appended fragment inherits the
    scene established before the append boundary.
    """

    model_config = ConfigDict(frozen=True)

    location: str | None = None
    characters: tuple[CharacterRef, ...] = ()


# ---------------------------------------------------------------------------
# Streaming records
# ---------------------------------------------------------------------------

StreamEventType = Literal["setup_ready", "chunk", "done", "error"]


class StreamEvent(BaseModel):
    """One framed record from a streaming script source.

    `text` is incremental for chunk records and cumulative for setup_ready and
    done records. Error records carry the failure reason in `text`.
    """

    model_config = ConfigDict(frozen=True)

    type: StreamEventType
    text: str = ""
