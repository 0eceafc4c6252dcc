"""Tests for the localmemory command line."""

import asyncio

import pytest

import cli
from conftest import FakeEmbedder
from memory_client import LocalMemoryClient
from profile_store import ProfileStore
from vector_store import VectorStore


@pytest.fixture
def paths(tmp_path):
    return tmp_path / "lancedb", tmp_path / "profile.json"


def new_client(paths) -> LocalMemoryClient:
    db_path, profile_path = paths
    return LocalMemoryClient(FakeEmbedder(), VectorStore(db_path), ProfileStore(profile_path))


@pytest.fixture
def use_client(paths, monkeypatch):
    monkeypatch.setattr(cli, "build_client", lambda config_path: new_client(paths))


def seed(paths, texts=(), static=None, dynamic=None):
    async def _seed():
        client = new_client(paths)
        for text in texts:
            await client.add_memory(text)
        if static or dynamic:
            await client.update_profile(static, dynamic)
        await client.close()

    asyncio.run(_seed())


class TestSearchCommand:
    def test_search_empty(self, use_client, capsys):
        assert cli.main(["search", "anything"]) == 0
        assert capsys.readouterr().out == "No memories found.\n"

    def test_search_prints_hits(self, use_client, paths, capsys):
        seed(paths, ["Cycling to work every day", "Allergic to peanuts"])
        assert cli.main(["search", "allergic to peanuts", "--limit", "1"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("- Allergic to peanuts (")
        assert "Cycling" not in out


class TestProfileCommand:
    def test_profile_empty(self, use_client, capsys):
        cli.main(["profile"])
        assert capsys.readouterr().out == "No profile information available yet.\n"

    def test_profile_sections(self, use_client, paths, capsys):
        seed(paths, static=["Speaks Portuguese"], dynamic=["Preparing a talk"])
        cli.main(["profile", "--query", "talk"])
        out = capsys.readouterr().out
        assert "Stable Preferences:\n  - Speaks Portuguese\n" in out
        assert "Recent Context:\n  - Preparing a talk\n" in out


class TestWipeCommand:
    def test_wipe_aborts_without_yes(self, use_client, paths, capsys, monkeypatch):
        seed(paths, ["precious memory"])
        monkeypatch.setattr("builtins.input", lambda prompt: "y")
        cli.main(["wipe"])
        assert capsys.readouterr().out.endswith("Aborted.\n")

        store = VectorStore(paths[0])
        store.connect()
        assert store.count_rows() == 1

    def test_wipe_confirmed(self, use_client, paths, capsys, monkeypatch):
        seed(paths, ["first", "second"])
        prompts = []

        def fake_input(prompt):
            prompts.append(prompt)
            return " YES "

        monkeypatch.setattr("builtins.input", fake_input)
        cli.main(["wipe"])
        assert capsys.readouterr().out.endswith("Wiped 2 memories.\n")
        assert str(paths[0]) in prompts[0]

        store = VectorStore(paths[0])
        store.connect()
        assert not store.has_table

    def test_wipe_aborts_on_end_of_input(self, use_client, paths, capsys, monkeypatch):
        seed(paths, ["kept memory"])

        def closed_stdin(prompt):
            raise EOFError

        monkeypatch.setattr("builtins.input", closed_stdin)
        assert cli.main(["wipe"]) == 0
        assert capsys.readouterr().out.endswith("Aborted.\n")

        store = VectorStore(paths[0])
        store.connect()
        assert store.count_rows() == 1


def test_config_errors_exit_nonzero(tmp_path, capsys):
    bad = tmp_path / "config.json"
    bad.write_text('{"unknownKey": 1}')
    assert cli.main(["--config", str(bad), "search", "x"]) == 1
    assert "unknown keys" in capsys.readouterr().err
