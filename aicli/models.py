from functools import lru_cache
from typing import Annotated, Any, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from aicli.config import Config

# -----------------------------
# Encrypted field marker
# -----------------------------
class EncryptedSetting:
    """Marks a settings field whose value must be encrypted at rest.

    Usage: ``api_key: Annotated[Optional[str], EncryptedSetting()] = None``
    """

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, EncryptedSetting)

    def __hash__(self) -> int:
        return hash(EncryptedSetting)

    def __repr__(self) -> str:
        return "EncryptedSetting()"


@lru_cache(maxsize=None)
def encrypted_fields(model_cls: Type[BaseModel]) -> Tuple[str, ...]:
    """Names of the fields on ``model_cls`` carrying the EncryptedSetting marker."""
    return tuple(
        name
        for name, info in model_cls.model_fields.items()
        if any(isinstance(m, EncryptedSetting) for m in info.metadata)
    )


class _SettingsModel(BaseModel):
    # camelCase on disk, snake_case in Python
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

# -----------------------------
# Model configuration
# -----------------------------
class ModelConfiguration(_SettingsModel):
    """One named endpoint/model profile."""

    id: str = ""
    name: str = ""
    api_key: Annotated[Optional[str], EncryptedSetting()] = None
    base_url: Optional[str] = None
    model: str = Config.DEFAULT_MODEL
    temperature: float = Config.DEFAULT_TEMPERATURE
    max_tokens: Optional[int] = None
    format: str = Config.DEFAULT_FORMAT
    stream: bool = False

    @field_validator("id", "name", "model", "format", mode="before")
    @classmethod
    def _null_string(cls, v):
        # explicit nulls are repaired by the store, not rejected here
        return "" if v is None else v

    @field_validator("temperature", mode="before")
    @classmethod
    def _null_temperature(cls, v):
        return Config.DEFAULT_TEMPERATURE if v is None else v

    @field_validator("stream", mode="before")
    @classmethod
    def _null_stream(cls, v):
        return False if v is None else v

    @classmethod
    def create_default(cls) -> "ModelConfiguration":
        return cls(
            id="default",
            name="Default OpenAI Configuration",
            model=Config.DEFAULT_MODEL,
            temperature=Config.DEFAULT_TEMPERATURE,
            format=Config.DEFAULT_FORMAT,
            stream=False,
        )

    def copy_value(self) -> "ModelConfiguration":
        return ModelConfiguration(
            id=self.id,
            name=self.name,
            api_key=self.api_key,
            base_url=self.base_url,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            format=self.format,
            stream=self.stream,
        )

# -----------------------------
# User settings document
# -----------------------------
class UserSettings(_SettingsModel):
    """The whole persisted settings document."""

    model_configurations: List[ModelConfiguration] = Field(default_factory=list)
    default_model_configuration_id: str = ""
    refresh_interval: int = Config.DEFAULT_REFRESH_INTERVAL

    @field_validator("model_configurations", mode="before")
    @classmethod
    def _null_list(cls, v):
        return [] if v is None else v

    @field_validator("default_model_configuration_id", mode="before")
    @classmethod
    def _null_default_id(cls, v):
        return "" if v is None else v

    @field_validator("refresh_interval", mode="before")
    @classmethod
    def _null_refresh(cls, v):
        return Config.DEFAULT_REFRESH_INTERVAL if v is None else v

    @classmethod
    def create_default(cls) -> "UserSettings":
        return cls(
            model_configurations=[],
            default_model_configuration_id="",
            refresh_interval=Config.DEFAULT_REFRESH_INTERVAL,
        )

    def clone(self) -> "UserSettings":
        """Deep value copy; the clone shares no mutable state with self."""
        return UserSettings(
            model_configurations=[c.copy_value() for c in self.model_configurations],
            default_model_configuration_id=self.default_model_configuration_id,
            refresh_interval=self.refresh_interval,
        )

    def get_default_model_configuration(self) -> Optional[ModelConfiguration]:
        if not self.model_configurations:
            return None
        return self.get_model_configuration(self.default_model_configuration_id) or self.model_configurations[0]

    def get_model_configuration(self, config_id: str) -> Optional[ModelConfiguration]:
        for cfg in self.model_configurations:
            if cfg.id == config_id:
                return cfg
        return None

    def add_or_update_model_configuration(self, model_configuration: ModelConfiguration) -> None:
        existing = self.get_model_configuration(model_configuration.id)
        if existing is not None:
            self.model_configurations.remove(existing)
        self.model_configurations.append(model_configuration)

    def remove_model_configuration(self, config_id: str) -> Optional[ModelConfiguration]:
        """Remove by id; re-point the default id if it referenced the removed entry."""
        existing = self.get_model_configuration(config_id)
        if existing is None:
            return None
        self.model_configurations.remove(existing)
        if self.default_model_configuration_id == config_id:
            self.default_model_configuration_id = (
                self.model_configurations[0].id if self.model_configurations else ""
            )
        return existing

    def clear(self) -> int:
        count = len(self.model_configurations)
        self.model_configurations.clear()
        self.default_model_configuration_id = ""
        return count

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

# -----------------------------
# LiteLLM proxy /models
# -----------------------------
class LiteLLMModel(BaseModel):
    id: str = ""
    object: str = ""
    created: int = 0
    owned_by: str = ""


class LiteLLMModelsResponse(BaseModel):
    data: List[LiteLLMModel] = Field(default_factory=list)
