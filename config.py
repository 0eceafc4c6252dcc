"""Configuration for localmemory.

The raw configuration is a mapping with camelCase keys (as a host passes it in
or as stored in ``~/.localmemory/config.json``). ``parse_config`` validates it
against a closed key set and resolves defaults into an immutable ``Config``.
"""

from __future__ import annotations

import json
import os
import re
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from models import ConfigError
from utils import sanitize_tag

CAPTURE_MODES = frozenset({"all", "everything"})

ALLOWED_KEYS = frozenset(
    {
        "ollamaHost",
        "ollamaModel",
        "dbPath",
        "profilePath",
        "autoRecall",
        "autoCapture",
        "maxRecallResults",
        "profileFrequency",
        "captureMode",
        "debug",
    }
)

DEFAULT_OLLAMA_HOST = "http://127.0.0.1:11434"
DEFAULT_OLLAMA_MODEL = "nomic-embed-text"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


@dataclass(frozen=True, slots=True)
class Config:
    """Resolved plugin configuration."""

    ollama_host: str
    ollama_model: str
    db_path: Path
    profile_path: Path
    auto_recall: bool = True
    auto_capture: bool = True
    max_recall_results: int = 10
    profile_frequency: int = 50
    capture_mode: str = "all"
    debug: bool = False


def resolve_env_vars(value: str) -> str:
    """Replace ``${VAR}`` references, failing fast on unset variables."""

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        env_value = os.environ.get(name)
        if not env_value:
            raise ConfigError(f"Environment variable {name} is not set")
        return env_value

    return _ENV_VAR_PATTERN.sub(_substitute, value)


def expand_path(path: str) -> Path:
    if path.startswith("~"):
        return Path.home() / path[1:].lstrip("/\\")
    return Path(path)


def _base_dir() -> Path:
    tag = sanitize_tag(f"localmemory_{socket.gethostname()}")
    return Path.home() / ".localmemory" / tag


def default_db_path() -> Path:
    return _base_dir() / "lancedb"


def default_profile_path() -> Path:
    return _base_dir() / "profile.json"


def _typed(cfg: dict[str, Any], key: str, expected: type, default: Any) -> Any:
    if key not in cfg or cfg[key] is None:
        return default
    value = cfg[key]
    # bool is an int subclass; keep the two apart
    if expected is int and isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    if not isinstance(value, expected):
        raise ConfigError(f"{key} must be of type {expected.__name__}, got {value!r}")
    return value


def parse_config(raw: Any) -> Config:
    """Validate a raw configuration mapping and fill in defaults."""
    cfg: dict[str, Any] = raw if isinstance(raw, dict) else {}

    unknown = sorted(k for k in cfg if k not in ALLOWED_KEYS)
    if unknown:
        raise ConfigError(f"localmemory config has unknown keys: {', '.join(unknown)}")

    host = _typed(cfg, "ollamaHost", str, None)
    ollama_host = (
        resolve_env_vars(host) if host is not None else os.environ.get("OLLAMA_HOST", DEFAULT_OLLAMA_HOST)
    )
    ollama_model = _typed(cfg, "ollamaModel", str, None) or os.environ.get(
        "OLLAMA_EMBED_MODEL", DEFAULT_OLLAMA_MODEL
    )

    db_path = _typed(cfg, "dbPath", str, None)
    profile_path = _typed(cfg, "profilePath", str, None)

    max_recall_results = _typed(cfg, "maxRecallResults", int, 10)
    profile_frequency = _typed(cfg, "profileFrequency", int, 50)
    for key, value in (("maxRecallResults", max_recall_results), ("profileFrequency", profile_frequency)):
        if value <= 0:
            raise ConfigError(f"{key} must be positive, got {value}")

    capture_mode = _typed(cfg, "captureMode", str, "all")
    if capture_mode not in CAPTURE_MODES:
        raise ConfigError(f"captureMode must be one of {sorted(CAPTURE_MODES)}, got {capture_mode!r}")

    return Config(
        ollama_host=ollama_host,
        ollama_model=ollama_model,
        db_path=expand_path(db_path) if db_path is not None else default_db_path(),
        profile_path=expand_path(profile_path) if profile_path is not None else default_profile_path(),
        auto_recall=_typed(cfg, "autoRecall", bool, True),
        auto_capture=_typed(cfg, "autoCapture", bool, True),
        max_recall_results=max_recall_results,
        profile_frequency=profile_frequency,
        capture_mode=capture_mode,
        debug=_typed(cfg, "debug", bool, False),
    )


def load_config(path: str | Path | None = None) -> Config:
    """Load and parse a JSON config file; an absent file means all defaults."""
    if path is None:
        path = os.environ.get("LOCALMEMORY_CONFIG") or Path.home() / ".localmemory" / "config.json"
    config_path = expand_path(str(path))
    if not config_path.exists():
        return parse_config({})
    try:
        raw = json.loads(config_path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} must contain a JSON object")
    return parse_config(raw)
