"""Tests for configuration helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from aicli.config import Config, default_settings_path, settings_path


class TestSettingsPath:
    def test_custom_path_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AI_CLI_SETTINGS", str(tmp_path / "env.json"))
        assert settings_path(str(tmp_path / "custom.json")) == (tmp_path / "custom.json").resolve()

    def test_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AI_CLI_SETTINGS", str(tmp_path / "env.json"))
        assert settings_path() == (tmp_path / "env.json").resolve()

    def test_blank_env_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AI_CLI_SETTINGS", "   ")
        assert settings_path() == default_settings_path()

    def test_default_location(self) -> None:
        path = default_settings_path()
        assert path.name == "settings.json"
        assert path.parent.name == "ai-cli"


class TestEnvironment:
    def test_api_key_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AI_API_KEY", "  sk-env  ")
        assert Config.env_api_key() == "sk-env"

    def test_blank_values_are_none(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AI_API_KEY", "")
        monkeypatch.setenv("AI_BASE_URL", "  ")
        assert Config.env_api_key() is None
        assert Config.env_base_url() is None

    @pytest.mark.parametrize("value,expected", [("1", True), ("true", True), ("YES", True), ("0", False), ("", False)])
    def test_debug_flag(self, monkeypatch: pytest.MonkeyPatch, value: str, expected: bool) -> None:
        monkeypatch.setenv("AI_CLI_DEBUG", value)
        assert Config.debug_enabled() is expected

    def test_load_env_does_not_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / ".env").write_text("AI_API_KEY=from-file\nAI_BASE_URL=http://file\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("AI_API_KEY", "from-env")
        # registered so the value loaded from the file is undone afterwards
        monkeypatch.setenv("AI_BASE_URL", "placeholder")
        monkeypatch.delenv("AI_BASE_URL")
        Config.load_env()
        assert Config.env_api_key() == "from-env"
        assert Config.env_base_url() == "http://file"
