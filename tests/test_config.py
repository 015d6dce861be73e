"""Tests for environment-driven settings."""

from __future__ import annotations

import tempfile

import pytest  # type: ignore[import-not-found]

from web_compare_mcp.config import load_settings

ENV_VARS = (
    "WEB_COMPARE_OUTPUT_DIR",
    "WEB_COMPARE_BROWSER",
    "WEB_COMPARE_HTTP_TIMEOUT",
    "WEB_COMPARE_NAVIGATION_TIMEOUT",
    "WEB_COMPARE_HYDRATION_TIMEOUT",
    "WEB_COMPARE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:
    def test_defaults(self) -> None:
        settings = load_settings()
        assert settings.output_dir == tempfile.gettempdir()
        assert settings.browser == "chromium"
        assert settings.http_timeout == 30.0
        assert settings.navigation_timeout_ms == 30000
        assert settings.hydration_timeout_ms == 15000
        assert settings.log_level == "INFO"

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WEB_COMPARE_OUTPUT_DIR", "/srv/shots")
        monkeypatch.setenv("WEB_COMPARE_BROWSER", "WebKit")
        monkeypatch.setenv("WEB_COMPARE_HTTP_TIMEOUT", "2.5")
        monkeypatch.setenv("WEB_COMPARE_LOG_LEVEL", "debug")
        settings = load_settings()
        assert settings.output_dir == "/srv/shots"
        assert settings.browser == "webkit"
        assert settings.http_timeout == 2.5
        assert settings.log_level == "DEBUG"

    def test_unsupported_browser(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WEB_COMPARE_BROWSER", "netscape")
        with pytest.raises(ValueError, match="WEB_COMPARE_BROWSER"):
            load_settings()

    def test_non_numeric_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WEB_COMPARE_HTTP_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="WEB_COMPARE_HTTP_TIMEOUT"):
            load_settings()
