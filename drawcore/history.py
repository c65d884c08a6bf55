"""
History - linear undo/redo over executed commands.

Every edit goes through History.execute(). The undo stack is bounded; once
it is full the oldest command is dropped silently. Executing a new command
discards anything that could have been redone.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .events import HISTORY_CHANGED, EventBus

if TYPE_CHECKING:
    from .commands import Command

logger = logging.getLogger(__name__)


DEFAULT_MAX_HISTORY = 100


class HistoryState(str, Enum):
    CLEAN = "clean"
    HAS_UNDO = "has-undo"
    HAS_REDO = "has-redo"
    HAS_BOTH = "has-both"


class History:
    """
    Command-based undo/redo stacks.

    Emits history:changed with can_undo/can_redo after execute, a
    successful undo or redo, and clear.
    """

    def __init__(self, events: Optional[EventBus] = None, max_history: int = DEFAULT_MAX_HISTORY):
        self.events = events or EventBus()
        self._max_history = max_history
        self._history: list["Command"] = []  # Executed commands, oldest first
        self._future: list["Command"] = []   # Undone commands (for redo)

    @property
    def max_history(self) -> int:
        return self._max_history

    @property
    def can_undo(self) -> bool:
        return len(self._history) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    @property
    def undo_count(self) -> int:
        return len(self._history)

    @property
    def redo_count(self) -> int:
        return len(self._future)

    @property
    def state(self) -> HistoryState:
        if self.can_undo and self.can_redo:
            return HistoryState.HAS_BOTH
        if self.can_undo:
            return HistoryState.HAS_UNDO
        if self.can_redo:
            return HistoryState.HAS_REDO
        return HistoryState.CLEAN

    @property
    def undo_description(self) -> Optional[str]:
        return self._history[-1].get_description() if self._history else None

    @property
    def redo_description(self) -> Optional[str]:
        return self._future[-1].get_description() if self._future else None

    def execute(self, command: "Command"):
        """Run a command and record it. Exceptions propagate and nothing is recorded."""
        command.execute()
        self._history.append(command)
        if len(self._history) > self._max_history:
            dropped = self._history.pop(0)
            logger.debug("History full, dropped: %s", dropped.get_description())
        self._future.clear()
        logger.debug("Executed: %s", command.get_description())
        self._notify_change()

    def undo(self) -> bool:
        """Undo the most recent command. Returns False when there is nothing to undo."""
        if not self.can_undo:
            return False
        command = self._history.pop()
        command.undo()
        self._future.append(command)
        logger.debug("Undid: %s", command.get_description())
        self._notify_change()
        return True

    def redo(self) -> bool:
        """Re-execute the most recently undone command. Returns False when there is none."""
        if not self.can_redo:
            return False
        command = self._future.pop()
        command.execute()
        self._history.append(command)
        logger.debug("Redid: %s", command.get_description())
        self._notify_change()
        return True

    def clear(self):
        self._history.clear()
        self._future.clear()
        self._notify_change()

    def _notify_change(self):
        self.events.emit(HISTORY_CHANGED, {"can_undo": self.can_undo, "can_redo": self.can_redo})
