"""Navigator Config.

Encrypted application configuration read from a remote store, with a
bounded, time-windowed cache.
"""
from .version import __version__
from .cache import ConfigCache, CacheEntry
from .errors import (
    ConfigError,
    ConfigNotFoundError,
    ConfigFetchError,
    InvalidConfigKeyError,
    CONFIG_GET_FAILED,
    CONFIG_NOT_FOUND,
    CONFIG_INVALID_KEY,
)
from .records import ConfigRecord, ConfigType
from .service import ConfigService
from .stores import (
    ConfigStore,
    MemoryConfigStore,
    PostgresConfigStore,
    RestConfigStore,
)
from .vault import VaultConfig

__all__ = [
    "__version__",
    "ConfigCache",
    "CacheEntry",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigFetchError",
    "InvalidConfigKeyError",
    "CONFIG_GET_FAILED",
    "CONFIG_NOT_FOUND",
    "CONFIG_INVALID_KEY",
    "ConfigRecord",
    "ConfigType",
    "ConfigService",
    "ConfigStore",
    "MemoryConfigStore",
    "PostgresConfigStore",
    "RestConfigStore",
    "VaultConfig",
]
