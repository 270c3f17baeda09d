"""Tests for environment-driven settings."""

import os

from clipsage.core.config import DEFAULT_DB_PATH, Settings

ENV_VARS = [
    "CLIPSAGE_DB_PATH",
    "EMBED_PROVIDER",
    "OLLAMA_API_BASE",
    "EMBEDDING_MODEL",
    "SUMMARY_MODEL",
    "LITELLM_EMBEDDING_MODEL",
    "REQUEST_TIMEOUT",
    "SEMANTIC_WINDOW",
    "SEARCH_LIMIT",
    "LOG_LEVEL",
]


class TestSettings:
    def _clear(self, monkeypatch):
        for name in ENV_VARS:
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self, monkeypatch):
        self._clear(monkeypatch)

        settings = Settings.from_env()

        assert settings.db_path == DEFAULT_DB_PATH
        assert settings.embed_provider == "ollama"
        assert settings.ollama_api_base == "http://localhost:11434"
        assert settings.request_timeout is None
        assert settings.semantic_window == 1000
        assert settings.search_limit == 50

    def test_overrides(self, monkeypatch):
        self._clear(monkeypatch)
        monkeypatch.setenv("CLIPSAGE_DB_PATH", "/tmp/clips.db")
        monkeypatch.setenv("EMBED_PROVIDER", "HASH")
        monkeypatch.setenv("REQUEST_TIMEOUT", "2.5")
        monkeypatch.setenv("SEMANTIC_WINDOW", "200")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.db_path == "/tmp/clips.db"
        assert settings.embed_provider == "hash"
        assert settings.request_timeout == 2.5
        assert settings.semantic_window == 200
        assert settings.log_level == "DEBUG"

    def test_blank_timeout_means_none(self, monkeypatch):
        self._clear(monkeypatch)
        monkeypatch.setenv("REQUEST_TIMEOUT", "")

        assert Settings.from_env().request_timeout is None

    def test_resolved_db_path_expands_home(self):
        settings = Settings(db_path="~/clips.db")
        assert settings.resolved_db_path == os.path.expanduser("~/clips.db")
        assert Settings(db_path=":memory:").resolved_db_path == ":memory:"
