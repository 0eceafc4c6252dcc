"""Tests for configuration parsing."""

import json
from pathlib import Path

import pytest

import config as config_module
from config import load_config, parse_config
from models import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("OLLAMA_HOST", "OLLAMA_EMBED_MODEL", "LOCALMEMORY_CONFIG"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(config_module.socket, "gethostname", lambda: "my-box.local")


class TestParseConfig:
    """Tests for parse_config."""

    def test_defaults(self):
        cfg = parse_config({})
        assert cfg.ollama_host == "http://127.0.0.1:11434"
        assert cfg.ollama_model == "nomic-embed-text"
        assert cfg.auto_recall is True
        assert cfg.auto_capture is True
        assert cfg.max_recall_results == 10
        assert cfg.profile_frequency == 50
        assert cfg.capture_mode == "all"
        assert cfg.debug is False
        base = Path.home() / ".localmemory" / "localmemory_my_box_local"
        assert cfg.db_path == base / "lancedb"
        assert cfg.profile_path == base / "profile.json"

    def test_non_mapping_treated_as_empty(self):
        assert parse_config(None).capture_mode == "all"

    def test_env_defaults(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_HOST", "http://gpu-box:11434")
        monkeypatch.setenv("OLLAMA_EMBED_MODEL", "mxbai-embed-large")
        cfg = parse_config({})
        assert cfg.ollama_host == "http://gpu-box:11434"
        assert cfg.ollama_model == "mxbai-embed-large"

    def test_unknown_keys_rejected(self):
        with pytest.raises(ConfigError, match="unknown keys: bogus, extra"):
            parse_config({"extra": 1, "bogus": True})

    def test_host_env_interpolation(self, monkeypatch):
        monkeypatch.setenv("EMBED_HOST", "10.0.0.5")
        cfg = parse_config({"ollamaHost": "http://${EMBED_HOST}:11434"})
        assert cfg.ollama_host == "http://10.0.0.5:11434"

    def test_host_env_unset_fails_fast(self, monkeypatch):
        monkeypatch.delenv("MISSING_HOST_VAR", raising=False)
        with pytest.raises(ConfigError, match="MISSING_HOST_VAR"):
            parse_config({"ollamaHost": "http://${MISSING_HOST_VAR}"})

    def test_tilde_paths_expand(self):
        cfg = parse_config({"dbPath": "~/mem/db", "profilePath": "~/mem/profile.json"})
        assert cfg.db_path == Path.home() / "mem" / "db"
        assert cfg.profile_path == Path.home() / "mem" / "profile.json"

    def test_absolute_paths_kept(self, tmp_path):
        cfg = parse_config({"dbPath": str(tmp_path / "db")})
        assert cfg.db_path == tmp_path / "db"

    def test_explicit_values(self):
        cfg = parse_config(
            {
                "autoRecall": False,
                "autoCapture": False,
                "maxRecallResults": 3,
                "profileFrequency": 5,
                "captureMode": "everything",
                "debug": True,
            }
        )
        assert (cfg.auto_recall, cfg.auto_capture) == (False, False)
        assert (cfg.max_recall_results, cfg.profile_frequency) == (3, 5)
        assert cfg.capture_mode == "everything"
        assert cfg.debug is True

    @pytest.mark.parametrize(
        "raw",
        [
            {"autoRecall": "yes"},
            {"maxRecallResults": "10"},
            {"maxRecallResults": True},
            {"profileFrequency": 0},
            {"captureMode": "some"},
            {"dbPath": 42},
        ],
    )
    def test_malformed_values_rejected(self, raw):
        with pytest.raises(ConfigError):
            parse_config(raw)


class TestLoadConfig:
    """Tests for load_config."""

    def test_absent_file_gives_defaults(self, tmp_path):
        assert load_config(tmp_path / "nope.json").capture_mode == "all"

    def test_reads_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"captureMode": "everything", "dbPath": str(tmp_path / "db")}))
        cfg = load_config(path)
        assert cfg.capture_mode == "everything"
        assert cfg.db_path == tmp_path / "db"

    def test_env_var_points_at_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"debug": True}))
        monkeypatch.setenv("LOCALMEMORY_CONFIG", str(path))
        assert load_config().debug is True

    def test_invalid_json_rejected(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{oops")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config(path)
