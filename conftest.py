"""Shared fixtures: a deterministic local embedder and an isolated client."""

from __future__ import annotations

import hashlib
import re

import numpy as np
import pytest

from config import Config
from memory_client import LocalMemoryClient
from profile_store import ProfileStore
from vector_store import VectorStore

TEST_DIM = 64


class FakeEmbedder:
    """Bag-of-words hashing embedder: shared words mean closer vectors."""

    def __init__(self, dim: int = TEST_DIM):
        self.dim = dim
        self.calls: list[str] = []
        self.fail_with: Exception | None = None

    def vector(self, text: str) -> list[float]:
        vec = np.zeros(self.dim, dtype=np.float32)
        for word in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dim
            vec[bucket] += 1.0
        if not vec.any():
            vec[0] = 1.0
        return (vec / np.linalg.norm(vec)).tolist()

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        return self.vector(text)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def client(tmp_path, embedder) -> LocalMemoryClient:
    return LocalMemoryClient(
        embedder,
        VectorStore(tmp_path / "memory" / "lancedb"),
        ProfileStore(tmp_path / "memory" / "profile.json"),
    )


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        ollama_host="http://127.0.0.1:11434",
        ollama_model="nomic-embed-text",
        db_path=tmp_path / "memory" / "lancedb",
        profile_path=tmp_path / "memory" / "profile.json",
        profile_frequency=2,
        max_recall_results=5,
    )
