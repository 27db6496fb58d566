"""Chroma-based persistence for sessions and users."""

from __future__ import annotations

import asyncio
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from ..reporting.engine import average_duration_hours
from ..tracking.models import CommuteDirection, TrackingSession, TrackingState
from ..users.models import User
from .base import ChromaUnavailableError, StorageError
from .memory import day_bounds, validate_commit

# Records are only ever looked up by id and metadata, never by similarity.
_PLACEHOLDER_EMBEDDING = [1.0]


class CollectionProtocol(Protocol):
    """Protocol for the minimal Chroma collection API used by the stores."""

    def upsert(
        self,
        *,
        ids: list[str],
        documents: list[str],
        metadatas: list[dict[str, Any]],
        embeddings: list[list[float]],
    ) -> None:
        ...

    def get(
        self,
        *,
        ids: list[str] | None = None,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> dict[str, list[Any]]:
        ...


class ClientProtocol(Protocol):
    """Protocol for the minimal Chroma client API used by the stores."""

    def get_or_create_collection(self, name: str) -> CollectionProtocol:
        ...


def default_client_factory(path: Path) -> Callable[[], ClientProtocol]:
    def factory() -> ClientProtocol:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - depends on environment
            raise ChromaUnavailableError(
                "chromadb package is not installed; install timesheet-mcp with its dependencies"
            ) from exc

        return chromadb.PersistentClient(path=str(path))

    return factory


class _ChromaCollection:
    """Lazily opens a named collection and wraps client failures."""

    def __init__(self, name: str, client_factory: Callable[[], ClientProtocol]) -> None:
        self._name = name
        self._client_factory = client_factory
        self._client: ClientProtocol | None = None
        self._collection: CollectionProtocol | None = None

    def ensure(self) -> CollectionProtocol:
        if self._collection is None:
            try:
                client = self._client or self._client_factory()
                self._client = client
                self._collection = client.get_or_create_collection(self._name)
            except ChromaUnavailableError:
                raise
            except Exception as exc:
                raise ChromaUnavailableError(f"Unable to open Chroma collection '{self._name}': {exc}") from exc
        return self._collection

    def get(self, **kwargs: Any) -> dict[str, list[Any]]:
        collection = self.ensure()
        try:
            return collection.get(**kwargs)
        except ChromaUnavailableError:
            raise
        except Exception as exc:
            raise StorageError(f"Chroma read from '{self._name}' failed: {exc}") from exc

    def upsert(self, ids: list[str], documents: list[str], metadatas: list[dict[str, Any]]) -> None:
        collection = self.ensure()
        try:
            collection.upsert(
                ids=ids,
                documents=documents,
                metadatas=metadatas,
                embeddings=[list(_PLACEHOLDER_EMBEDDING) for _ in ids],
            )
        except Exception as exc:
            raise StorageError(f"Chroma write to '{self._name}' failed: {exc}") from exc


def _session_document(session: TrackingSession) -> str:
    return json.dumps(
        {
            "id": session.id,
            "user_id": session.user_id,
            "state": session.state.value,
            "started_at": session.started_at.isoformat(),
            "ended_at": session.ended_at.isoformat() if session.ended_at else None,
            "commute_direction": session.commute_direction.value if session.commute_direction else None,
            "note": session.note,
        }
    )


def _session_metadata(session: TrackingSession) -> dict[str, Any]:
    # Chroma metadata values cannot be null, so absent values are stored as "".
    return {
        "user_id": session.user_id,
        "state": session.state.value,
        "is_active": session.is_active,
        "started_at": session.started_at.isoformat(),
        "commute_direction": session.commute_direction.value if session.commute_direction else "",
    }


def _session_from_document(document: str) -> TrackingSession:
    doc = json.loads(document)
    return TrackingSession(
        id=doc["id"],
        user_id=int(doc["user_id"]),
        state=TrackingState(doc["state"]),
        started_at=datetime.fromisoformat(doc["started_at"]),
        ended_at=datetime.fromisoformat(doc["ended_at"]) if doc.get("ended_at") else None,
        commute_direction=CommuteDirection(doc["commute_direction"]) if doc.get("commute_direction") else None,
        note=doc.get("note"),
    )


class ChromaSessionStore:
    """Persist tracking sessions as JSON documents in a Chroma collection."""

    def __init__(
        self,
        path: Path,
        *,
        collection_name: str = "timesheet_sessions",
        client_factory: Callable[[], ClientProtocol] | None = None,
    ) -> None:
        self._path = Path(path)
        self._collection = _ChromaCollection(collection_name, client_factory or default_client_factory(self._path))
        self._write_lock = asyncio.Lock()

    def ping(self) -> bool:
        """Verify that the underlying collection can be obtained."""

        self._collection.ensure()
        return True

    def _query(self, where: dict[str, Any] | None = None, ids: list[str] | None = None) -> list[TrackingSession]:
        kwargs: dict[str, Any] = {}
        if where:
            kwargs["where"] = where
        if ids is not None:
            kwargs["ids"] = ids
        result = self._collection.get(**kwargs)
        sessions = [_session_from_document(document) for document in result.get("documents", [])]
        sessions.sort(key=lambda session: session.started_at)
        return sessions

    async def get_session(self, session_id: str) -> TrackingSession | None:
        sessions = self._query(ids=[session_id])
        return sessions[0] if sessions else None

    async def get_active_session(self, user_id: int) -> TrackingSession | None:
        active = [s for s in self._query({"user_id": user_id}) if s.is_active]
        return active[-1] if active else None

    async def get_last_commute_session(self, user_id: int, day: date) -> TrackingSession | None:
        start, end = day_bounds(day)
        commutes = [
            s
            for s in self._query({"user_id": user_id})
            if s.state is TrackingState.COMMUTING and start <= s.started_at < end
        ]
        return commutes[-1] if commutes else None

    async def has_worked_on(self, user_id: int, day: date) -> bool:
        start, end = day_bounds(day)
        return any(
            s.state is TrackingState.WORKING and start <= s.started_at < end
            for s in self._query({"user_id": user_id})
        )

    async def get_sessions_in_range(
        self, user_id: int, start: datetime, end: datetime
    ) -> list[TrackingSession]:
        return [s for s in self._query({"user_id": user_id}) if start <= s.started_at < end]

    async def get_recent_sessions(self, user_id: int, count: int) -> list[TrackingSession]:
        return list(reversed(self._query({"user_id": user_id})))[:count]

    async def get_all_active_sessions(self) -> list[TrackingSession]:
        return [s for s in self._query({"is_active": True}) if s.is_active]

    async def get_average_duration(self, user_id: int, state: TrackingState) -> float | None:
        return average_duration_hours(self._query({"user_id": user_id}), state)

    async def commit(
        self,
        *,
        added: Iterable[TrackingSession] = (),
        ended: Iterable[TrackingSession] = (),
        updated: Iterable[TrackingSession] = (),
    ) -> None:
        added, ended, updated = list(added), list(ended), list(updated)
        changes = [*ended, *updated, *added]
        if not changes:
            return
        async with self._write_lock:
            touched_users = {session.user_id for session in changes}
            existing: dict[str, TrackingSession] = {}
            for user_id in touched_users:
                for session in self._query({"user_id": user_id}):
                    existing[session.id] = session
            validate_commit(existing, added, ended, updated)
            self._collection.upsert(
                ids=[session.id for session in changes],
                documents=[_session_document(session) for session in changes],
                metadatas=[_session_metadata(session) for session in changes],
            )


class ChromaUserStore:
    """Persist users as JSON documents keyed by their external id."""

    def __init__(
        self,
        path: Path,
        *,
        collection_name: str = "timesheet_users",
        client_factory: Callable[[], ClientProtocol] | None = None,
    ) -> None:
        self._path = Path(path)
        self._collection = _ChromaCollection(collection_name, client_factory or default_client_factory(self._path))

    def ping(self) -> bool:
        self._collection.ensure()
        return True

    async def get_user(self, external_id: int) -> User | None:
        result = self._collection.get(ids=[str(external_id)])
        documents = result.get("documents", [])
        return User.model_validate_json(documents[0]) if documents else None

    async def list_users(self) -> list[User]:
        result = self._collection.get()
        users = [User.model_validate_json(document) for document in result.get("documents", [])]
        users.sort(key=lambda user: user.registered_at)
        return users

    async def save_user(self, user: User) -> None:
        self._collection.upsert(
            ids=[str(user.external_id)],
            documents=[user.model_dump_json()],
            metadatas=[{"external_id": user.external_id, "is_admin": user.is_admin}],
        )


__all__ = ["ChromaSessionStore", "ChromaUserStore", "default_client_factory"]
