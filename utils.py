"""Shared utility functions for localmemory."""

from __future__ import annotations

import json
import logging
import re
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any

import numpy as np

LOGGER_NAME = "localmemory"

log = logging.getLogger(LOGGER_NAME)


def init_logger(debug: bool = False) -> logging.Logger:
    """Attach the stderr handler once and set the level from the debug flag."""
    if not any(h.get_name() == LOGGER_NAME for h in log.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("[localmemory] %(levelname)s: %(message)s"))
        handler.set_name(LOGGER_NAME)
        log.addHandler(handler)
        log.propagate = False
    log.setLevel(logging.DEBUG if debug else logging.INFO)
    return log


def debug_request(operation: str, params: dict[str, Any]) -> None:
    if log.isEnabledFor(logging.DEBUG):
        log.debug("%s request: %s", operation, json.dumps(params, default=str))


def debug_response(operation: str, result: dict[str, Any]) -> None:
    if log.isEnabledFor(logging.DEBUG):
        log.debug("%s response: %s", operation, json.dumps(result, default=str))


def generate_id() -> str:
    """Time-plus-random memory id, e.g. mem_1729339200000_3f9a1c2b."""
    return f"mem_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def now_iso() -> str:
    """Get current UTC timestamp as ISO string."""
    return datetime.now(timezone.utc).isoformat()


def limit_text(text: str, max_chars: int) -> str:
    return f"{text[:max_chars]}…" if len(text) > max_chars else text


def escape_filter_value(value: str) -> str:
    """Escape single quotes in filter values to prevent injection."""
    return value.replace("'", "''")


def sanitize_tag(raw: str) -> str:
    """Collapse non-alphanumerics to single underscores and trim them.

    Examples:
        localmemory_my-host.local -> localmemory_my_host_local
        __weird__name!! -> weird_name
    """
    tag = re.sub(r"[^a-zA-Z0-9_]", "_", raw)
    tag = re.sub(r"_+", "_", tag)
    return tag.strip("_")


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two vectors; 0.0 for mismatched or zero vectors."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        return 0.0
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return float(np.dot(va, vb) / norm)
