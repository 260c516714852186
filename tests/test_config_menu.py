"""Tests for the interactive configuration menu, driven by scripted input."""

from __future__ import annotations

import io
from typing import List

import pytest
from rich.console import Console

from aicli.config_menu import UI, ConfigurationMenu
from aicli.models import LiteLLMModel, ModelConfiguration, UserSettings
from aicli.settings_store import FileUserSettingsStore


class ScriptedUI(UI):
    """UI whose prompts are answered from a list."""

    def __init__(self, answers: List[str], secrets: List[str] = None) -> None:
        self.output = io.StringIO()
        super().__init__(Console(file=self.output, width=120))
        self.answers = list(answers)
        self.secrets = list(secrets or [])

    def get_input(self, label: str = "COMMAND") -> str:
        return self.answers.pop(0)

    def secret(self, label: str) -> str:
        return self.secrets.pop(0)

    @property
    def text(self) -> str:
        return self.output.getvalue()


def menu_for(store: FileUserSettingsStore, answers: List[str], secrets: List[str] = None,
             models: List[LiteLLMModel] = None) -> ConfigurationMenu:
    def fetch(url: str) -> List[LiteLLMModel]:
        if models is None:
            raise ConnectionError("connection refused")
        return models

    return ConfigurationMenu(store, ui=ScriptedUI(answers, secrets), fetch_models=fetch)


class TestUIHelpers:
    def test_ask_uses_default(self) -> None:
        assert ScriptedUI([""]).ask("Model", "gpt-4") == "gpt-4"

    def test_confirm(self) -> None:
        ui = ScriptedUI(["y", "no", ""])
        assert ui.confirm("Continue?") is True
        assert ui.confirm("Continue?") is False
        assert ui.confirm("Continue?", default=True) is True

    @pytest.mark.parametrize("answer,expected", [("1", 0), ("3", 2), ("0", None), ("4", None), ("x", None)])
    def test_choose(self, answer: str, expected) -> None:
        assert ScriptedUI([answer]).choose("PICK", ["a", "b", "c"]) == expected


class TestAddModelConfiguration:
    def test_adds_and_becomes_default(self, store: FileUserSettingsStore, settings_file) -> None:
        menu = menu_for(
            store,
            ["work", "Work GPT", "https://api.example.test/v1", "gpt-4", "0.5", "256", "2", "y"],
            secrets=["sk-work"],
        )
        menu.add_model_configuration()

        settings = store.load()
        cfg = settings.get_model_configuration("work")
        assert cfg == ModelConfiguration(
            id="work", name="Work GPT", api_key="sk-work", base_url="https://api.example.test/v1",
            model="gpt-4", temperature=0.5, max_tokens=256, format="json", stream=True,
        )
        assert settings.default_model_configuration_id == "work"
        assert "ENCRYPTED:sk-work" in settings_file.read_text(encoding="utf-8")

    def test_defaults_and_invalid_temperature(self, store: FileUserSettingsStore) -> None:
        menu = menu_for(store, ["basic", "", "", "", "9", "", "", ""], secrets=[""])
        menu.add_model_configuration()

        cfg = store.load().get_model_configuration("basic")
        assert cfg.name == "basic"
        assert cfg.api_key is None
        assert cfg.base_url is None
        assert cfg.model == "gpt-3.5-turbo"
        assert cfg.temperature == 1.0
        assert cfg.max_tokens is None
        assert cfg.format == "text"
        assert cfg.stream is False
        assert "Temperature must be between" in menu.ui.text

    def test_duplicate_id_rejected(self, store: FileUserSettingsStore, two_config_settings: UserSettings) -> None:
        store.save(two_config_settings)
        menu = menu_for(store, ["openai"])
        menu.add_model_configuration()
        assert "already exists" in menu.ui.text
        assert store.load() == two_config_settings

    def test_empty_id_rejected(self, store: FileUserSettingsStore, settings_file) -> None:
        menu_for(store, [""]).add_model_configuration()
        assert not settings_file.exists()

    def test_existing_default_kept(self, store: FileUserSettingsStore, two_config_settings: UserSettings) -> None:
        store.save(two_config_settings)
        menu_for(store, ["third", "", "", "", "", "", "", ""], secrets=[""]).add_model_configuration()
        assert store.load().default_model_configuration_id == "openai"


class TestRemove:
    def test_remove_default_repoints(self, store: FileUserSettingsStore, two_config_settings: UserSettings) -> None:
        store.save(two_config_settings)
        menu = menu_for(store, ["1", "y"])
        menu.remove_model_configuration()

        settings = store.load()
        assert [c.id for c in settings.model_configurations] == ["local"]
        assert settings.default_model_configuration_id == "local"
        assert "Default model configuration changed to: Local LLM" in menu.ui.text

    def test_remove_cancelled(self, store: FileUserSettingsStore, two_config_settings: UserSettings) -> None:
        store.save(two_config_settings)
        menu_for(store, ["2", "n"]).remove_model_configuration()
        assert len(store.load().model_configurations) == 2

    def test_cannot_remove_only_configuration(self, store: FileUserSettingsStore) -> None:
        store.save(UserSettings(model_configurations=[ModelConfiguration(id="only", name="Only")]))
        menu = menu_for(store, [])
        menu.remove_model_configuration()
        assert "Cannot remove the only model configuration" in menu.ui.text
        assert len(store.load().model_configurations) == 1

    def test_invalid_selection(self, store: FileUserSettingsStore, two_config_settings: UserSettings) -> None:
        store.save(two_config_settings)
        menu = menu_for(store, ["7"])
        menu.remove_model_configuration()
        assert "Invalid selection" in menu.ui.text
        assert len(store.load().model_configurations) == 2

    def test_remove_all(self, store: FileUserSettingsStore, two_config_settings: UserSettings) -> None:
        store.save(two_config_settings)
        menu = menu_for(store, ["yes"])
        menu.remove_all_model_configurations()

        settings = store.load()
        assert settings.model_configurations == []
        assert settings.default_model_configuration_id == ""
        assert settings.refresh_interval == 60

    def test_remove_all_when_empty(self, store: FileUserSettingsStore) -> None:
        menu = menu_for(store, [])
        menu.remove_all_model_configurations()
        assert "No model configurations found to remove" in menu.ui.text


class TestListAndDefault:
    def test_list_hides_api_keys(self, store: FileUserSettingsStore, two_config_settings: UserSettings) -> None:
        store.save(two_config_settings)
        menu = menu_for(store, [])
        menu.list_model_configurations()
        assert "openai" in menu.ui.text
        assert "local" in menu.ui.text
        assert "secret-123" not in menu.ui.text

    def test_set_default(self, store: FileUserSettingsStore, two_config_settings: UserSettings) -> None:
        store.save(two_config_settings)
        menu_for(store, ["2"]).set_default_model_configuration()
        assert store.load().default_model_configuration_id == "local"

    def test_set_default_single(self, store: FileUserSettingsStore) -> None:
        store.save(UserSettings(model_configurations=[ModelConfiguration(id="only", name="Only")]))
        menu = menu_for(store, [])
        menu.set_default_model_configuration()
        assert "already the default" in menu.ui.text


class TestLiteLLMProxy:
    MODELS = [LiteLLMModel(id="gpt-4o", owned_by="openai"), LiteLLMModel(id="llama3", owned_by="meta")]

    def test_adds_models(self, store: FileUserSettingsStore) -> None:
        menu = menu_for(store, ["http://proxy:4000", "y"], models=self.MODELS)
        menu.configure_litellm_proxy()

        settings = store.load()
        assert [c.id for c in settings.model_configurations] == ["litellm-gpt-4o", "litellm-llama3"]
        assert settings.model_configurations[0].base_url == "http://proxy:4000"
        assert settings.model_configurations[0].name == "LiteLLM: gpt-4o"
        assert settings.default_model_configuration_id == "litellm-gpt-4o"

    def test_existing_models_skipped(self, store: FileUserSettingsStore) -> None:
        menu = menu_for(store, [])
        assert menu.add_litellm_models(self.MODELS, "http://proxy:4000") == (2, 0)
        assert menu.add_litellm_models(self.MODELS, "http://proxy:4000") == (0, 2)
        assert len(store.load().model_configurations) == 2

    def test_connection_failure(self, store: FileUserSettingsStore, settings_file) -> None:
        menu = menu_for(store, [""], models=None)
        menu.configure_litellm_proxy()
        assert "Error connecting to LiteLLM proxy" in menu.ui.text
        assert not settings_file.exists()

    def test_no_models(self, store: FileUserSettingsStore) -> None:
        menu = menu_for(store, [""], models=[])
        menu.configure_litellm_proxy()
        assert "No models found" in menu.ui.text


class TestMainLoop:
    def test_reset_then_exit(self, store: FileUserSettingsStore, two_config_settings: UserSettings,
                             monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("aicli.config_menu.colorama.init", lambda **kwargs: None)
        store.save(two_config_settings)
        menu = menu_for(store, ["7", "y", "bogus", "8"])
        menu.start()

        assert store.load().model_configurations == []
        assert "Invalid Command" in menu.ui.text
        assert "Configuration saved successfully" in menu.ui.text
