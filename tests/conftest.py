"""Shared fixtures for ai-cli tests."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from aicli.encryption import AesEncryptionService
from aicli.models import ModelConfiguration, UserSettings
from aicli.settings_store import FileUserSettingsStore


class FakeEncryptionService:
    """Reversible stand-in: prefixes values instead of encrypting them."""

    PREFIX = "ENCRYPTED:"

    def __init__(self) -> None:
        self.encrypt_calls = 0
        self.decrypt_calls = 0

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        self.encrypt_calls += 1
        if not plaintext:
            return plaintext
        return self.PREFIX + plaintext

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        self.decrypt_calls += 1
        if ciphertext and ciphertext.startswith(self.PREFIX):
            return ciphertext[len(self.PREFIX):]
        return ciphertext

    def is_encrypted(self, value: Optional[str]) -> bool:
        return bool(value) and value.startswith(self.PREFIX)


class FailingEncryptionService(FakeEncryptionService):
    """Recognises the prefix but fails every encrypt/decrypt."""

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        raise RuntimeError("encrypt failed")

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        raise RuntimeError("decrypt failed")


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    return tmp_path / "ai-cli" / "settings.json"


@pytest.fixture
def fake_encryption() -> FakeEncryptionService:
    return FakeEncryptionService()


@pytest.fixture
def store(settings_file: Path, fake_encryption: FakeEncryptionService) -> FileUserSettingsStore:
    return FileUserSettingsStore(settings_file, fake_encryption)


@pytest.fixture(scope="session")
def aes_service() -> AesEncryptionService:
    return AesEncryptionService()


@pytest.fixture
def aes_store(settings_file: Path, aes_service: AesEncryptionService) -> FileUserSettingsStore:
    return FileUserSettingsStore(settings_file, aes_service)


@pytest.fixture
def two_config_settings() -> UserSettings:
    return UserSettings(
        model_configurations=[
            ModelConfiguration(
                id="openai",
                name="OpenAI",
                api_key="secret-123",
                model="gpt-4",
                temperature=0.7,
                max_tokens=500,
                format="json",
                stream=True,
            ),
            ModelConfiguration(
                id="local",
                name="Local LLM",
                base_url="http://localhost:11434/v1",
                model="llama3",
            ),
        ],
        default_model_configuration_id="openai",
        refresh_interval=60,
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of the tests."""
    for name in ("AI_API_KEY", "AI_BASE_URL", "AI_CLI_SETTINGS", "AI_CLI_DEBUG"):
        monkeypatch.delenv(name, raising=False)
