"""Ollama embedding provider with bounded retry and linear backoff."""

from __future__ import annotations

import asyncio

import numpy as np
import requests

from models import EmbeddingError
from utils import log

MAX_ATTEMPTS = 3
BASE_DELAY_SECONDS = 0.5


class OllamaEmbedder:
    """Turns text into a vector via Ollama's ``/api/embed`` endpoint.

    Identical inputs are re-embedded; nothing is cached. The model is fixed per
    instance, so every vector it returns is expected to have the same dimension.
    """

    def __init__(
        self,
        host: str,
        model: str,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BASE_DELAY_SECONDS,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.host = host.rstrip("/")
        self.model = model
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.timeout = timeout
        self.session = session or requests.Session()

    def _embed_sync(self, text: str) -> list[float]:
        response = self.session.post(
            f"{self.host}/api/embed",
            json={"model": self.model, "input": text},
            timeout=self.timeout,
        )
        response.raise_for_status()
        embeddings = response.json().get("embeddings") or []
        if not embeddings or not embeddings[0]:
            raise EmbeddingError(f"Ollama returned no embedding for model {self.model}")

        vector = np.asarray(embeddings[0], dtype=np.float32)
        if vector.ndim != 1 or not np.all(np.isfinite(vector)):
            raise EmbeddingError(f"Ollama returned a malformed embedding for model {self.model}")
        return vector.tolist()

    async def embed(self, text: str) -> list[float]:
        """Embed text, retrying failures; the last error is re-raised as-is."""
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await asyncio.to_thread(self._embed_sync, text)
            except Exception as e:
                last_error = e
                if attempt == self.max_attempts:
                    break
                delay = self.base_delay * attempt
                log.warning(
                    "embedding attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt,
                    self.max_attempts,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)

        log.error("embedding failed after %d attempts: %s", self.max_attempts, last_error)
        assert last_error is not None
        raise last_error

    def close(self) -> None:
        self.session.close()
