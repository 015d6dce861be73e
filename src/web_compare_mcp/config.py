"""Environment-driven settings for the web compare server."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass

DEFAULT_BROWSER = "chromium"
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_NAVIGATION_TIMEOUT_MS = 30000
DEFAULT_HYDRATION_TIMEOUT_MS = 15000
SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from WEB_COMPARE_* environment variables."""

    output_dir: str
    browser: str = DEFAULT_BROWSER
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    hydration_timeout_ms: int = DEFAULT_HYDRATION_TIMEOUT_MS
    log_level: str = "INFO"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings() -> Settings:
    """Read settings from the environment.

    Unset variables fall back to defaults. An unsupported browser name or a
    non-numeric timeout raises ValueError so misconfiguration fails at startup.
    """
    browser = os.environ.get("WEB_COMPARE_BROWSER", DEFAULT_BROWSER).lower()
    if browser not in SUPPORTED_BROWSERS:
        raise ValueError(
            f"WEB_COMPARE_BROWSER must be one of {', '.join(SUPPORTED_BROWSERS)}, "
            f"got {browser!r}"
        )
    return Settings(
        output_dir=os.environ.get("WEB_COMPARE_OUTPUT_DIR") or tempfile.gettempdir(),
        browser=browser,
        http_timeout=_env_float("WEB_COMPARE_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        navigation_timeout_ms=int(
            _env_float("WEB_COMPARE_NAVIGATION_TIMEOUT", DEFAULT_NAVIGATION_TIMEOUT_MS)
        ),
        hydration_timeout_ms=int(
            _env_float("WEB_COMPARE_HYDRATION_TIMEOUT", DEFAULT_HYDRATION_TIMEOUT_MS)
        ),
        log_level=os.environ.get("WEB_COMPARE_LOG_LEVEL", "INFO").upper(),
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or load the process-wide settings."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
