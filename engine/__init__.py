"""Engine: game state, task queues, ticking, offline catch-up and persistence."""

from .config import GameSettings, load_config
from .core import GameSession
from .queues import QueueEntry, QueueKind
from .state import GameState, MalformedSnapshot

__all__ = [
    "GameSession",
    "GameSettings",
    "GameState",
    "MalformedSnapshot",
    "QueueEntry",
    "QueueKind",
    "load_config",
]
