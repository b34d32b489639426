"""Exceptions raised while reading configuration records."""
from typing import Any, Optional

CONFIG_GET_FAILED = "CONFIG_GET_FAILED"
CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
CONFIG_INVALID_KEY = "CONFIG_INVALID_KEY"


class ConfigError(Exception):
    """Base error for configuration reads.

    Attributes:
        code: Stable error code (one of the ``CONFIG_*`` constants).
        original_error: Underlying exception or backend payload, if any.
    """

    def __init__(
        self,
        message: str,
        code: str = CONFIG_GET_FAILED,
        original_error: Optional[Any] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.original_error = original_error

    def __repr__(self) -> str:
        return f"<{type(self).__name__} code={self.code} message={self.message!r}>"


class ConfigNotFoundError(ConfigError):
    """No active record exists for the requested key."""

    def __init__(self, config_key: str, original_error: Optional[Any] = None) -> None:
        super().__init__(
            f"Config not found: {config_key}",
            CONFIG_NOT_FOUND,
            original_error,
        )
        self.config_key = config_key


class ConfigFetchError(ConfigError):
    """The config store failed for any reason other than not-found."""

    def __init__(self, message: str, original_error: Optional[Any] = None) -> None:
        super().__init__(message, CONFIG_GET_FAILED, original_error)


class InvalidConfigKeyError(ConfigError, ValueError):
    """A config key was empty or not a string."""

    def __init__(self, config_key: Any) -> None:
        super().__init__(
            f"Invalid config key: {config_key!r}",
            CONFIG_INVALID_KEY,
        )
