from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGUMENTS = 1
    API_ERROR = 2
    FILE_ERROR = 3
    UNKNOWN_ERROR = 4


class AiCliError(Exception):
    """Base class for all ai-cli exceptions."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


class EncryptionError(AiCliError):
    """Raised when key derivation, encryption or decryption fails."""
    pass


class UnsupportedPlatformError(EncryptionError):
    """Raised when a platform-native encryption service is requested on the wrong OS."""
    pass


class SettingsError(AiCliError):
    """Raised when the settings file cannot be written."""
    pass


class ConfigurationError(AiCliError):
    """Raised when no usable model configuration or API key is available."""
    pass


class PromptSourceError(AiCliError):
    """Raised when the prompt file is missing or unreadable."""
    pass


class ApiError(AiCliError):
    """Raised when the chat-completion API call fails."""
    def __init__(self, message: str, status_code: int = None, details: dict = None):
        super().__init__(message, details)
        self.status_code = status_code


class UsageError(AiCliError):
    """Raised for invalid command-line arguments."""
    pass
