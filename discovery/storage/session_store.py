"""Session persistence behind the SessionRepository protocol.

Stores hold plain JSON documents (camelCase session dicts) keyed by session id.
The session manager owns (de)serialization and per-session write ordering.
"""

import asyncio
import copy
import json
import os
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)

SessionDocument = dict[str, Any]


@runtime_checkable
class SessionRepository(Protocol):
    """Durable key-value persistence for session documents."""

    async def get(self, session_id: str) -> SessionDocument | None: ...

    async def put(self, session_id: str, document: SessionDocument) -> None: ...

    async def list(self) -> list[SessionDocument]: ...

    async def delete(self, session_id: str) -> None: ...


class InMemorySessionStore:
    """Process-local store, mainly for tests. Returns copies so callers cannot alias state."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionDocument] = {}

    async def get(self, session_id: str) -> SessionDocument | None:
        document = self._sessions.get(session_id)
        return copy.deepcopy(document) if document is not None else None

    async def put(self, session_id: str, document: SessionDocument) -> None:
        self._sessions[session_id] = copy.deepcopy(document)

    async def list(self) -> list[SessionDocument]:
        return [copy.deepcopy(d) for d in self._sessions.values()]

    async def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


class JsonFileSessionStore:
    """Single JSON file holding {"sessions": {session_id: document}}.

    Writes go to a temp file then os.replace, so readers never see a
    half-written file. File I/O runs in a worker thread.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read_all(self) -> dict[str, SessionDocument]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        payload = json.loads(text)
        return payload.get("sessions", {})

    def _write_all(self, sessions: dict[str, SessionDocument]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps({"sessions": sessions}, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def get(self, session_id: str) -> SessionDocument | None:
        sessions = await asyncio.to_thread(self._read_all)
        return sessions.get(session_id)

    async def put(self, session_id: str, document: SessionDocument) -> None:
        async with self._lock:
            sessions = await asyncio.to_thread(self._read_all)
            sessions[session_id] = document
            await asyncio.to_thread(self._write_all, sessions)
        logger.debug("session_document_written", session_id=session_id, path=str(self.path))

    async def list(self) -> list[SessionDocument]:
        sessions = await asyncio.to_thread(self._read_all)
        return list(sessions.values())

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            sessions = await asyncio.to_thread(self._read_all)
            if sessions.pop(session_id, None) is not None:
                await asyncio.to_thread(self._write_all, sessions)


class RedisSessionStore:
    """One Redis string per session plus a set indexing known ids."""

    KEY_PREFIX = "discovery:session:"
    INDEX_KEY = "discovery:sessions"

    def __init__(self, client: redis.Redis):
        self.client = client

    def _key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    async def get(self, session_id: str) -> SessionDocument | None:
        raw = await self.client.get(self._key(session_id))
        return json.loads(raw) if raw else None

    async def put(self, session_id: str, document: SessionDocument) -> None:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.set(self._key(session_id), json.dumps(document))
            pipe.sadd(self.INDEX_KEY, session_id)
            await pipe.execute()

    async def list(self) -> list[SessionDocument]:
        session_ids = sorted(await self.client.smembers(self.INDEX_KEY))
        if not session_ids:
            return []
        raws = await self.client.mget([self._key(sid) for sid in session_ids])
        return [json.loads(raw) for raw in raws if raw]

    async def delete(self, session_id: str) -> None:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.delete(self._key(session_id))
            pipe.srem(self.INDEX_KEY, session_id)
            await pipe.execute()


def build_session_store(backend: str, path: str, redis_url: str) -> SessionRepository:
    """Create the configured store backend (json | memory | redis)."""
    if backend == "memory":
        return InMemorySessionStore()
    if backend == "redis":
        client = redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
        return RedisSessionStore(client)
    if backend == "json":
        return JsonFileSessionStore(path)
    raise ValueError(f"Unknown session store backend: {backend}. Valid backends: json, memory, redis")
