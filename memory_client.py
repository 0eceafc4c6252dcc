"""Memory engine: embeds text, stores it in LanceDB, and answers similarity queries."""

from __future__ import annotations

import asyncio
import json
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from embeddings import OllamaEmbedder
from models import (
    MAX_CONTENT_LENGTH,
    DimensionMismatchError,
    ForgetResult,
    MemoryValidationError,
    ProfileResult,
    SearchResult,
)
from profile_store import ProfileStore
from utils import debug_request, debug_response, generate_id, limit_text, log, now_iso
from vector_store import Eq, VectorStore

if TYPE_CHECKING:
    from config import Config

FORGET_SEARCH_LIMIT = 5
PROFILE_SEARCH_LIMIT = 10
FORGET_PREVIEW_CHARS = 100


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class InitState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


def _decode_metadata(raw: Any) -> dict[str, Any]:
    try:
        meta = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return meta if isinstance(meta, dict) else {}


class LocalMemoryClient:
    """Long-term memory backed by an embedder, a vector store and a profile file.

    Connection setup happens lazily on the first operation and exactly once,
    however many operations start concurrently: callers share one in-flight
    initialisation task. Creating and dropping the table are serialised by a
    lock, so two first writes cannot both create it.
    """

    def __init__(self, embedder: Embedder, store: VectorStore, profiles: ProfileStore):
        self.embedder = embedder
        self.store = store
        self.profiles = profiles
        self.state = InitState.UNINITIALIZED
        self._init_task: asyncio.Task[None] | None = None
        self._table_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: Config) -> LocalMemoryClient:
        client = cls(
            OllamaEmbedder(config.ollama_host, config.ollama_model),
            VectorStore(config.db_path),
            ProfileStore(config.profile_path),
        )
        log.info("initialized (model: %s, db: %s)", config.ollama_model, config.db_path)
        return client

    @property
    def db_path(self) -> Path:
        return self.store.path

    # =========================================================================
    # Initialisation
    # =========================================================================

    async def _initialize(self) -> None:
        try:
            self.profiles.path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(self.store.connect)
        except BaseException:
            self.state = InitState.UNINITIALIZED
            self._init_task = None
            raise
        self.state = InitState.READY

    async def ensure_initialized(self) -> None:
        """Wait until the store is connected, starting the connection if needed."""
        if self.state is InitState.READY:
            return
        if self._init_task is None:
            self.state = InitState.INITIALIZING
            self._init_task = asyncio.create_task(self._initialize())
        await asyncio.shield(self._init_task)

    async def _ensure_table(self, dimension: int) -> None:
        async with self._table_lock:
            self.store.ensure_table(dimension)
        expected = self.store.dimension
        if expected is not None and expected != dimension:
            raise DimensionMismatchError(expected, dimension)

    # =========================================================================
    # Memory operations
    # =========================================================================

    async def add_memory(
        self,
        content: str,
        metadata: dict[str, str | int | float | bool] | None = None,
        custom_id: str | None = None,
    ) -> str:
        """Store content and return its id; ``custom_id`` replaces an existing record."""
        await self.ensure_initialized()

        cleaned = content.strip()
        if not cleaned:
            raise MemoryValidationError("Cannot store empty content")
        if len(cleaned) > MAX_CONTENT_LENGTH:
            raise MemoryValidationError(
                f"Content too long: {len(cleaned)} characters (max {MAX_CONTENT_LENGTH})"
            )

        debug_request("add", {"contentLength": len(cleaned), "customId": custom_id, "metadata": metadata})

        vector = await self.embedder.embed(cleaned)
        await self._ensure_table(len(vector))

        timestamp = now_iso()
        memory_id = custom_id or generate_id()
        record = {
            "id": memory_id,
            "content": cleaned,
            "vector": vector,
            "metadata": json.dumps(metadata or {}),
            "createdAt": timestamp,
            "updatedAt": timestamp,
        }

        if custom_id:
            self.store.delete(Eq("id", custom_id))
        self.store.add(record)

        debug_response("add", {"id": memory_id})
        return memory_id

    async def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        """Nearest memories to ``query``; an empty store yields an empty list."""
        await self.ensure_initialized()

        if limit <= 0 or not self.store.has_table:
            return []

        debug_request("search", {"query": query, "limit": limit})

        vector = await self.embedder.embed(query)
        expected = self.store.dimension
        if expected is not None and expected != len(vector):
            raise DimensionMismatchError(expected, len(vector))

        rows = self.store.vector_search(vector, limit)
        results = [
            SearchResult(
                id=row["id"],
                content=row["content"],
                similarity=1 - row["_distance"] if row.get("_distance") is not None else None,
                metadata=_decode_metadata(row.get("metadata")),
            )
            for row in rows
        ]

        debug_response("search", {"count": len(results)})
        return results

    async def delete_memory(self, memory_id: str) -> None:
        await self.ensure_initialized()

        if not self.store.has_table:
            return

        debug_request("delete", {"id": memory_id})
        self.store.delete(Eq("id", memory_id))
        debug_response("delete", {"success": True})

    async def forget_by_query(self, query: str) -> ForgetResult:
        """Delete the single memory closest to ``query``.

        Best effort: a vague query deletes whatever ranks first.
        """
        debug_request("forgetByQuery", {"query": query})

        results = await self.search(query, FORGET_SEARCH_LIMIT)
        if not results:
            return ForgetResult(success=False, message="No matching memory found to forget.")

        target = results[0]
        await self.delete_memory(target.id)

        preview = limit_text(target.content, FORGET_PREVIEW_CHARS)
        return ForgetResult(success=True, message=f'Forgot: "{preview}"')

    async def wipe_all_memories(self) -> int:
        """Drop the whole table and return how many memories it held."""
        await self.ensure_initialized()

        debug_request("wipe", {})

        async with self._table_lock:
            count = self.store.count_rows()
            self.store.drop_table()

        debug_response("wipe", {"deletedCount": count})
        return count

    # =========================================================================
    # Profile
    # =========================================================================

    async def get_profile(self, query: str | None = None) -> ProfileResult:
        """Stored profile, plus memories related to ``query`` when one is given."""
        await self.ensure_initialized()

        debug_request("profile", {"query": query})

        profile = self.profiles.load()

        search_results: list[dict[str, Any]] = []
        if query and self.store.has_table:
            hits = await self.search(query, PROFILE_SEARCH_LIMIT)
            search_results = [
                {
                    "memory": hit.content,
                    "updated_at": hit.metadata.get("timestamp"),
                    "similarity": hit.similarity,
                }
                for hit in hits
            ]

        result = ProfileResult(static=profile.static, dynamic=profile.dynamic, search_results=search_results)
        debug_response(
            "profile",
            {
                "staticCount": len(result.static),
                "dynamicCount": len(result.dynamic),
                "searchCount": len(result.search_results),
            },
        )
        return result

    async def update_profile(
        self,
        static_facts: list[str] | None = None,
        dynamic_facts: list[str] | None = None,
    ) -> None:
        await self.ensure_initialized()
        self.profiles.update(static_facts, dynamic_facts)

    async def close(self) -> None:
        if self._init_task is not None and not self._init_task.done():
            await asyncio.shield(self._init_task)
        self.store.close()
        close_embedder = getattr(self.embedder, "close", None)
        if callable(close_embedder):
            close_embedder()
        self._init_task = None
        self.state = InitState.UNINITIALIZED
