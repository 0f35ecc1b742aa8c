"""Unit tests for session configuration."""

from __future__ import annotations

import pytest

from devtools_remote.config import DEFAULT_HOST, DEFAULT_PORT, SessionConfig
from devtools_remote.errors import InvalidConfigurationError


class TestSessionConfig:
    def test_defaults(self) -> None:
        config = SessionConfig()
        assert config.host == DEFAULT_HOST == "localhost"
        assert config.port == DEFAULT_PORT == 9222
        assert config.secure is False
        assert config.local is False
        assert config.alter_path("/json/list") == "/json/list"
        assert config.http_scheme == "http"

    def test_port_cast_to_int(self) -> None:
        assert SessionConfig(port="9333").port == 9333

    def test_process_implies_local(self) -> None:
        assert SessionConfig(process=object()).local is True

    def test_with_options(self) -> None:
        config = SessionConfig().with_options(port=9333, secure=True)
        assert config.port == 9333
        assert config.http_scheme == "https"

    def test_with_unknown_option(self) -> None:
        with pytest.raises(InvalidConfigurationError, match="colour"):
            SessionConfig().with_options(colour="blue")


class TestFromEnv:
    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEVTOOLS_HOST", "browser.internal")
        monkeypatch.setenv("DEVTOOLS_PORT", "9555")
        monkeypatch.setenv("DEVTOOLS_SECURE", "yes")

        config = SessionConfig.from_env()

        assert config.host == "browser.internal"
        assert config.port == 9555
        assert config.secure is True

    def test_overrides_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEVTOOLS_PORT", "9555")

        config = SessionConfig.from_env(port=1234, host=None)

        assert config.port == 1234
        assert config.host == DEFAULT_HOST

    def test_empty_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("DEVTOOLS_HOST", "DEVTOOLS_PORT", "DEVTOOLS_SECURE"):
            monkeypatch.delenv(name, raising=False)

        assert SessionConfig.from_env().port == DEFAULT_PORT
