"""Storage abstractions for Timesheet MCP."""

from .base import (
    ChromaUnavailableError,
    ConcurrencyConflictError,
    SessionStore,
    StorageError,
    UserStore,
)
from .chroma import ChromaSessionStore, ChromaUserStore
from .memory import InMemorySessionStore, InMemoryUserStore

__all__ = [
    "ChromaSessionStore",
    "ChromaUnavailableError",
    "ChromaUserStore",
    "ConcurrencyConflictError",
    "InMemorySessionStore",
    "InMemoryUserStore",
    "SessionStore",
    "StorageError",
    "UserStore",
]
