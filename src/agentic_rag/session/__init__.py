"""Session history storage and expiry."""

from .store import InMemorySessionStore
from .sweeper import SessionSweeper, SweeperMetrics

__all__ = [
    "InMemorySessionStore",
    "SessionSweeper",
    "SweeperMetrics",
]
