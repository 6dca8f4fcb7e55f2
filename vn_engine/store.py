"""Command store: the loaded command list plus the playback cursor.

The ingestion path appends while the playback controller reads and moves the
cursor. Both run on the same event loop and no method here awaits, so an
append is always visible whole or not at all.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, NamedTuple, Sequence

from vn_engine.models import Command

logger = logging.getLogger(__name__)


class Progress(NamedTuple):
    current: int  # 1-based
    total: int
    percentage: int


class CommandStore:
    def __init__(self, commands: Iterable[Command] = ()) -> None:
        self._commands: list[Command] = list(commands)
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._commands)

    @property
    def commands(self) -> Sequence[Command]:
        return tuple(self._commands)

    @property
    def cursor(self) -> int:
        return self._cursor

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def replace(self, commands: Iterable[Command]) -> None:
        """Swap in a freshly parsed script and rewind."""
        self._commands = list(commands)
        self._cursor = 0

    def clear(self) -> None:
        self.replace(())

    def append(self, commands: Iterable[Command]) -> None:
        """Add commands after the current end. The cursor does not move."""
        batch = list(commands)
        self._commands.extend(batch)
        logger.debug("appended %d commands (total=%d)", len(batch), len(self._commands))

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    def reset(self) -> None:
        self._cursor = 0

    def current(self) -> Command | None:
        if self._cursor < len(self._commands):
            return self._commands[self._cursor]
        return None

    def has_next(self) -> bool:
        return self._cursor < len(self._commands) - 1

    def has_previous(self) -> bool:
        return self._cursor > 0

    def advance(self) -> bool:
        """Move to the next command. Returns False (and stays put) at the end."""
        if not self.has_next():
            return False
        self._cursor += 1
        return True

    def retreat(self) -> bool:
        if not self.has_previous():
            return False
        self._cursor -= 1
        return True

    def set_cursor(self, index: int) -> bool:
        if 0 <= index < len(self._commands):
            self._cursor = index
            return True
        return False

    def progress(self) -> Progress:
        total = len(self._commands)
        if total == 0:
            return Progress(current=0, total=0, percentage=0)
        current = self._cursor + 1
        return Progress(current=current, total=total, percentage=math.floor(current / total * 100 + 0.5))
