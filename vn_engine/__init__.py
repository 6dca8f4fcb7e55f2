"""Visual novel script engine.

Parses the LOC/CHA/STP script format into commands, steps through them with a
playback state machine and grows the script live from a streaming source.
"""

from vn_engine.ingest import StreamIngestor  # noqa: F401
from vn_engine.models import (  # noqa: F401
    ActionCommand,
    CharacterRef,
    CharactersCommand,
    Command,
    DialogueCommand,
    LocationCommand,
    SceneContext,
)
from vn_engine.parser import parse_script  # noqa: F401
from vn_engine.playback import PlaybackController, PlaybackState  # noqa: F401
from vn_engine.store import CommandStore  # noqa: F401
