"""Shared data models for localmemory."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from lancedb.pydantic import LanceModel, Vector

TABLE_NAME = "memories"
MAX_CONTENT_LENGTH = 50_000
MAX_DYNAMIC_FACTS = 20


@lru_cache(maxsize=8)
def memory_model(dimension: int) -> type[LanceModel]:
    """LanceDB schema for the memories table at a given vector dimension.

    The dimension is bound when the table is created and stays fixed until the
    table is dropped. Any other change to this schema requires a new table.
    """

    class MemoryRecord(LanceModel):
        id: str
        content: str
        vector: Vector(dimension)  # type: ignore[valid-type]
        metadata: str  # JSON object as string
        createdAt: str
        updatedAt: str

    return MemoryRecord


@dataclass(slots=True)
class SearchResult:
    id: str
    content: str
    similarity: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class UserProfile:
    static: list[str] = field(default_factory=list)
    dynamic: list[str] = field(default_factory=list)
    last_updated: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"static": self.static, "dynamic": self.dynamic, "lastUpdated": self.last_updated}


@dataclass(slots=True)
class ProfileResult:
    static: list[str]
    dynamic: list[str]
    search_results: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ForgetResult:
    success: bool
    message: str


# =============================================================================
# Exceptions
# =============================================================================


class LocalMemoryError(Exception):
    """Base class for localmemory errors."""


class ConfigError(LocalMemoryError, ValueError):
    """Invalid plugin configuration."""


class MemoryValidationError(LocalMemoryError, ValueError):
    """Content rejected before it reaches the embedding provider."""


class EmbeddingError(LocalMemoryError):
    """The embedding provider returned no usable vector."""


class DimensionMismatchError(LocalMemoryError):
    """Embedding dimension differs from the dimension bound to the table."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding dimension {actual} does not match table dimension {expected}. "
            "Was the embedding model changed? Wipe the store or restore the model."
        )
        self.expected = expected
        self.actual = actual
