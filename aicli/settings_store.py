import json
import os
from pathlib import Path
from typing import Callable, Union

from pydantic import ValidationError

from aicli.config import Config
from aicli.encryption import EncryptionService
from aicli.errors import SettingsError
from aicli.logging_setup import get_logger
from aicli.models import ModelConfiguration, UserSettings, encrypted_fields

logger = get_logger("settings")

# Backfilled into configurations whose values are missing on disk
REQUIRED_DEFAULTS = {
    "model": Config.DEFAULT_MODEL,
    "format": Config.DEFAULT_FORMAT,
    "id": "default",
    "name": "Default Configuration",
}


class FileUserSettingsStore:
    """
    Loads and saves UserSettings as a JSON file.

    Fields marked with EncryptedSetting are decrypted on load and encrypted on
    save; everything else is stored as-is. Load never raises: a missing, empty
    or corrupt file yields the default document. Save raises SettingsError when
    the file cannot be written.
    """

    def __init__(self, settings_file_path: Union[str, Path], encryption_service: EncryptionService):
        self._path = Path(settings_file_path)
        self._encryption = encryption_service

    @property
    def path(self) -> Path:
        return self._path

    # -----------------------------
    # Load
    # -----------------------------
    def load(self) -> UserSettings:
        path = str(self._path)
        try:
            if not self._path.exists():
                logger.info("Settings file not found, using defaults", extra={"path": path})
                return UserSettings.create_default()

            raw = self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.error("Error reading settings file, using defaults", extra={"path": path}, exc_info=True)
            return UserSettings.create_default()

        if not raw.strip():
            logger.warning("Settings file is empty, using defaults", extra={"path": path})
            return UserSettings.create_default()

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Failed to parse settings file, using defaults", extra={"path": path}, exc_info=True)
            return UserSettings.create_default()

        if not isinstance(data, dict):
            logger.warning("Settings file holds no settings object, using defaults", extra={"path": path})
            return UserSettings.create_default()

        try:
            settings = UserSettings.model_validate(data)
        except ValidationError as e:
            logger.error(
                "Invalid settings document, using defaults",
                extra={"path": path, "errors": e.error_count()},
            )
            return UserSettings.create_default()

        self._repair(settings)
        self._apply_to_encrypted_fields(settings, self._decrypt_field, "decrypt")

        logger.info(
            "Settings loaded successfully",
            extra={"path": path, "configurations": len(settings.model_configurations)},
        )
        return settings

    @staticmethod
    def _repair(settings: UserSettings) -> None:
        for cfg in settings.model_configurations:
            for field_name, default in REQUIRED_DEFAULTS.items():
                if not getattr(cfg, field_name):
                    setattr(cfg, field_name, default)
            if cfg.format not in Config.FORMATS:
                logger.warning(
                    "Unknown output format in settings, using text",
                    extra={"config_id": cfg.id, "value": cfg.format},
                )
                cfg.format = Config.DEFAULT_FORMAT

        # ids must stay unique, including backfilled ones
        seen = set()
        for cfg in settings.model_configurations:
            if cfg.id in seen:
                original_id, n = cfg.id, 2
                while f"{original_id}-{n}" in seen:
                    n += 1
                cfg.id = f"{original_id}-{n}"
                logger.warning(
                    "Duplicate configuration id in settings, renamed",
                    extra={"config_id": original_id, "new_id": cfg.id},
                )
            seen.add(cfg.id)

        configs = settings.model_configurations
        if not configs:
            settings.default_model_configuration_id = ""
        elif settings.get_model_configuration(settings.default_model_configuration_id) is None:
            settings.default_model_configuration_id = configs[0].id

    # -----------------------------
    # Save
    # -----------------------------
    def save(self, settings: UserSettings) -> None:
        path = str(self._path)
        directory = self._path.parent
        try:
            if not directory.exists():
                directory.mkdir(parents=True, exist_ok=True)
                logger.info("Created settings directory", extra={"directory": str(directory)})

            to_write = settings.clone()
            self._apply_to_encrypted_fields(to_write, self._encrypt_field, "encrypt")

            # created owner-only; chmod below also covers a pre-existing file
            fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with open(fd, "w", encoding="utf-8") as f:
                f.write(to_write.to_json())
        except OSError as e:
            logger.error("Error saving settings", extra={"path": path}, exc_info=True)
            raise SettingsError(f"Could not save settings to {path}: {e}", {"path": path}) from e

        if os.name != "nt":
            try:
                os.chmod(self._path, 0o600)
            except OSError:
                logger.warning("Failed to set file permissions", extra={"path": path}, exc_info=True)

        logger.info("Settings saved successfully", extra={"path": path})

    def reset_to_default(self) -> UserSettings:
        defaults = UserSettings.create_default()
        self.save(defaults)
        logger.info("Settings reset to default values and saved")
        return defaults

    # -----------------------------
    # Field encryption
    # -----------------------------
    def _decrypt_field(self, value: str) -> str:
        if self._encryption.is_encrypted(value):
            return self._encryption.decrypt(value)
        return value

    def _encrypt_field(self, value: str) -> str:
        if not self._encryption.is_encrypted(value):
            return self._encryption.encrypt(value)
        return value

    @staticmethod
    def _apply_to_encrypted_fields(
        settings: UserSettings,
        transform: Callable[[str], str],
        action: str,
    ) -> None:
        """Run transform over every marked, non-empty field; failures leave the field as it was."""
        fields = encrypted_fields(ModelConfiguration)
        for cfg in settings.model_configurations:
            for field_name in fields:
                value = getattr(cfg, field_name)
                if not isinstance(value, str) or not value:
                    continue
                try:
                    setattr(cfg, field_name, transform(value))
                except Exception:
                    logger.error(
                        f"Failed to {action} setting, leaving value unchanged",
                        extra={"config_id": cfg.id, "field": field_name},
                        exc_info=True,
                    )
