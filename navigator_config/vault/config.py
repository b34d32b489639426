"""
Vault Configuration — Secret pair loading and validated settings.

Reads the application secret pair from environment variables:
    CONFIG_APP_KEY = <shared application secret>
    CONFIG_APP_ID = <application UUID, used as key-derivation salt>

Optional cache tuning:
    CONFIG_CACHE_CAPACITY = <max cached keys, default 100>
    CONFIG_CACHE_DURATION = <seconds a cached record stays fresh, default 300>

Security Note:
    Never log key material. ``app_key`` is held as a pydantic ``SecretStr``.
"""
import os
import re
import logging

from pydantic import BaseModel, Field, SecretStr, field_validator

from ..conf import DEFAULT_CACHE_CAPACITY, DEFAULT_CACHE_DURATION

logger = logging.getLogger("navigator.config.vault")

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def load_secret_pair() -> tuple[str, str]:
    """Load (app_key, app_id) from CONFIG_APP_KEY / CONFIG_APP_ID.

    Returns:
        Tuple of (app_key, app_id).

    Raises:
        RuntimeError: If either variable is unset or empty.
    """
    app_key = os.environ.get("CONFIG_APP_KEY")
    app_id = os.environ.get("CONFIG_APP_ID")
    if not app_key:
        raise RuntimeError(
            "CONFIG_APP_KEY environment variable is not set"
        )
    if not app_id:
        raise RuntimeError(
            "CONFIG_APP_ID environment variable is not set"
        )
    logger.debug("Loaded config secret pair for app_id=%s", app_id)
    return app_key, app_id


class VaultConfig(BaseModel):
    """Validated startup inputs for a ConfigService."""

    app_key: SecretStr
    app_id: str
    cache_capacity: int = Field(default=DEFAULT_CACHE_CAPACITY, ge=1)
    cache_duration: float = Field(default=DEFAULT_CACHE_DURATION, ge=0)

    @field_validator("app_key")
    @classmethod
    def validate_app_key(cls, v: SecretStr) -> SecretStr:
        """Reject an empty application secret."""
        if not v.get_secret_value():
            raise ValueError("app_key cannot be empty")
        return v

    @field_validator("app_id")
    @classmethod
    def validate_app_id(cls, v: str) -> str:
        """Ensure app_id is UUID-shaped."""
        if not _UUID_PATTERN.match(v):
            raise ValueError(f"app_id must be a valid UUID: {v!r}")
        return v

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        app_key, app_id = load_secret_pair()
        return cls(
            app_key=app_key,
            app_id=app_id,
            cache_capacity=int(
                os.environ.get("CONFIG_CACHE_CAPACITY", DEFAULT_CACHE_CAPACITY)
            ),
            cache_duration=float(
                os.environ.get("CONFIG_CACHE_DURATION", DEFAULT_CACHE_DURATION)
            ),
        )
