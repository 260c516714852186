import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from platformdirs import user_config_dir

# -----------------------------
# Configuration
# -----------------------------
class Config:
    """System configuration & constants."""

    APP_NAME = "ai-cli"
    SETTINGS_FILE = "settings.json"

    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    DEFAULT_MODEL = "gpt-3.5-turbo"
    DEFAULT_TEMPERATURE = 1.0
    DEFAULT_FORMAT = "text"
    DEFAULT_REFRESH_INTERVAL = 30
    FORMATS = ("text", "json")

    # Request timeout in seconds
    REQUEST_TIMEOUT = 300.0

    # Environment
    ENV_FILE = ".env"
    API_KEY_ENV = "AI_API_KEY"
    BASE_URL_ENV = "AI_BASE_URL"
    SETTINGS_ENV = "AI_CLI_SETTINGS"
    DEBUG_ENV = "AI_CLI_DEBUG"

    # Logging
    LOG_DIR_NAME = ".ai-cli"
    LOG_FILE = "ai-cli.log"
    LOG_RETENTION_DAYS = 7

    # UI
    CODE_THEME = "monokai"
    LITELLM_DEFAULT_URL = "http://localhost:4000"

    class Colors:
        USER_PROMPT = "bright_yellow"

    @classmethod
    def load_env(cls) -> None:
        """Read a .env file from the working directory without overriding real env vars."""
        load_dotenv(dotenv_path=cls.ENV_FILE, override=False)

    @classmethod
    def env_api_key(cls) -> Optional[str]:
        v = os.getenv(cls.API_KEY_ENV)
        return v.strip() if v and v.strip() else None

    @classmethod
    def env_base_url(cls) -> Optional[str]:
        v = os.getenv(cls.BASE_URL_ENV)
        return v.strip() if v and v.strip() else None

    @classmethod
    def debug_enabled(cls) -> bool:
        return os.getenv(cls.DEBUG_ENV, "0").lower() in ("1", "true", "yes")

    @classmethod
    def log_dir(cls) -> Path:
        return Path.home() / cls.LOG_DIR_NAME / "logs"

# -----------------------------
# Settings paths
# -----------------------------
def default_settings_path() -> Path:
    """
    Per-OS location of the settings file:
    - Windows: %APPDATA%\\ai-cli\\settings.json
    - macOS:   ~/Library/Application Support/ai-cli/settings.json
    - Linux:   $XDG_CONFIG_HOME/ai-cli/settings.json (~/.config by default)
    """
    config_dir = user_config_dir(Config.APP_NAME, appauthor=False, roaming=True)
    return Path(config_dir) / Config.SETTINGS_FILE


def settings_path(custom_path: Optional[str] = None) -> Path:
    if custom_path:
        return Path(custom_path).expanduser().resolve()

    env_path = os.getenv(Config.SETTINGS_ENV)
    if env_path and env_path.strip():
        return Path(env_path.strip()).expanduser().resolve()

    return default_settings_path()
