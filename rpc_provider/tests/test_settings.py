"""Tests for environment-driven settings."""

import logging

from rpc_provider.config.settings import Settings, _safe_int, _parse_runtime_context


class TestSafeInt:
    """Tests for _safe_int helper."""

    def test_valid_value(self, monkeypatch):
        monkeypatch.setenv("RPC_MAX_BATCH_ITEMS", "8")
        assert _safe_int("RPC_MAX_BATCH_ITEMS", "0") == 8

    def test_invalid_value_falls_back(self, monkeypatch, caplog):
        """Invalid integers fall back to the default with a warning."""
        monkeypatch.setenv("RPC_MAX_BATCH_ITEMS", "many")

        with caplog.at_level(logging.WARNING):
            assert _safe_int("RPC_MAX_BATCH_ITEMS", "0") == 0
        assert "Invalid value 'many'" in caplog.text


class TestParseRuntimeContext:
    """Tests for RUNTIME_CONTEXT parsing."""

    def test_default_is_browser(self, monkeypatch):
        monkeypatch.delenv("RUNTIME_CONTEXT", raising=False)
        assert _parse_runtime_context() == "browser"

    def test_server_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("RUNTIME_CONTEXT", " Server ")
        assert _parse_runtime_context() == "server"

    def test_unknown_value_warns(self, monkeypatch, caplog):
        monkeypatch.setenv("RUNTIME_CONTEXT", "edge")

        with caplog.at_level(logging.WARNING):
            assert _parse_runtime_context() == "browser"
        assert "Invalid RUNTIME_CONTEXT" in caplog.text


class TestSettings:
    """Tests for the Settings dataclass."""

    def test_app_url_unset(self, monkeypatch):
        monkeypatch.delenv("APP_URL", raising=False)
        assert Settings().app_url is None

    def test_app_url_empty_treated_as_unset(self, monkeypatch):
        monkeypatch.setenv("APP_URL", "")
        assert Settings().app_url is None

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("APP_URL", "https://example.com")
        monkeypatch.setenv("APP_ORIGIN", "http://session.local")
        monkeypatch.setenv("QUERY_STALE_SECONDS", "5")

        settings = Settings()
        assert settings.app_url == "https://example.com"
        assert settings.app_origin == "http://session.local"
        assert settings.query_stale_seconds == 5.0

    def test_batch_limits_zero_means_unlimited(self, monkeypatch):
        monkeypatch.setenv("RPC_MAX_BATCH_ITEMS", "0")
        monkeypatch.delenv("RPC_MAX_URL_LENGTH", raising=False)

        settings = Settings()
        assert settings.max_batch_items is None
        assert settings.max_url_length is None

    def test_batch_limits_positive(self):
        settings = Settings(rpc_max_batch_items=4, rpc_max_url_length=2048)
        assert settings.max_batch_items == 4
        assert settings.max_url_length == 2048
