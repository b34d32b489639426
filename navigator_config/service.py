"""
ConfigService — Cached, decrypting reads over a ConfigStore.

Read path for ``get_config(key)``:
    cache (fresh hit) → store.fetch_by_key → decrypt config_data → cache → caller

The AES key is derived from (app_key, app_id) on first use and memoized on
the service instance. Build one ConfigService in the composition root and
pass it to whatever needs configuration.

Decryption is fail-open: a record whose envelope is corrupt, tampered
or sealed under another key is returned as stored (still carrying
``_enc``) instead of raising. Every such event is logged at WARNING and
counted in ``decrypt_failures``.

Security Note:
    Never log plaintext, ciphertext or key material. Only log config keys,
    operations and error classes.
"""
import asyncio
import logging
from typing import Any, Optional, Union
from collections.abc import Mapping, Sequence

from .cache import ConfigCache
from .conf import DEFAULT_CACHE_CAPACITY, DEFAULT_CACHE_DURATION
from .errors import ConfigError, ConfigFetchError, InvalidConfigKeyError
from .records import ConfigRecord, ConfigType
from .stores.base import ConfigStore, type_value
from .vault.config import VaultConfig
from .vault.crypto import (
    derive_key,
    encrypt_config_data,
    decrypt_config_data,
    VaultError,
)

logger = logging.getLogger("navigator.config")

_MISSING = object()


class ConfigService:
    """Reads configuration records, decrypting and caching them.

    Args:
        store: Source of configuration records.
        app_key: Shared application secret (validated by the caller).
        app_id: Application UUID, used as key-derivation salt.
        cache: Optional pre-built cache; overrides capacity/duration.
        cache_capacity: Maximum cached keys.
        cache_duration: Default freshness window, in seconds.
    """

    def __init__(
        self,
        store: ConfigStore,
        app_key: str,
        app_id: str,
        cache: Optional[ConfigCache] = None,
        cache_capacity: int = DEFAULT_CACHE_CAPACITY,
        cache_duration: float = DEFAULT_CACHE_DURATION,
    ):
        self._store = store
        self._app_key = app_key
        self._app_id = app_id
        if cache is None:
            cache = ConfigCache(capacity=cache_capacity, default_ttl=cache_duration)
        self._cache = cache
        self._key: Optional[bytes] = None
        self._decrypt_failures = 0

    @classmethod
    def from_config(cls, store: ConfigStore, config: VaultConfig) -> "ConfigService":
        """Build a ConfigService from validated VaultConfig settings."""
        return cls(
            store,
            app_key=config.app_key.get_secret_value(),
            app_id=config.app_id,
            cache_capacity=config.cache_capacity,
            cache_duration=config.cache_duration,
        )

    def __repr__(self) -> str:
        return f"<ConfigService app_id={self._app_id} cache={self._cache!r}>"

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def cache(self) -> ConfigCache:
        return self._cache

    @property
    def store(self) -> ConfigStore:
        return self._store

    @property
    def derived_key(self) -> bytes:
        """AES key for this application, derived once and memoized."""
        if self._key is None:
            self._key = derive_key(self._app_key, self._app_id)
        return self._key

    @property
    def decrypt_failures(self) -> int:
        """Number of records returned undecrypted because decryption failed."""
        return self._decrypt_failures

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_key(self, config_key: Any) -> None:
        if not isinstance(config_key, str) or not config_key.strip():
            raise InvalidConfigKeyError(config_key)

    def _decrypt(self, record: ConfigRecord) -> ConfigRecord:
        """Return record with config_data decrypted, or unchanged on failure."""
        try:
            data = decrypt_config_data(record.config_data, self.derived_key)
        except VaultError as err:
            self._decrypt_failures += 1
            logger.warning(
                "Config decrypt failed, returning stored data: key=%s error=%s",
                record.config_key, type(err).__name__,
                extra={
                    "config_key": record.config_key,
                    "decrypt_error": type(err).__name__,
                },
            )
            return record
        if data is record.config_data:
            return record
        return record.with_data(dict(data))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def warm_up(self) -> None:
        """Derive and memoize the key in the default executor.

        Keeps the CPU-bound derivation off the event loop. A no-op once
        the key is known.
        """
        if self._key is not None:
            return
        loop = asyncio.get_running_loop()
        key = await loop.run_in_executor(
            None, derive_key, self._app_key, self._app_id
        )
        if self._key is None:
            self._key = key
        logger.debug("Config key warmed up for app_id=%s", self._app_id)

    async def get_config(
        self,
        config_key: str,
        use_cache: bool = True,
        cache_duration: Optional[float] = None,
    ) -> ConfigRecord:
        """Return the active, decrypted record for config_key.

        The first fetch on a service derives the key synchronously
        (100k PBKDF2 iterations) on the running loop. Await ``warm_up()``
        at startup to move that work to an executor instead.

        Args:
            config_key: Key of the configuration record.
            use_cache: Consult the cache before fetching. The fetched record
                is cached either way.
            cache_duration: Freshness window in seconds for this read;
                defaults to the cache's default TTL.

        Returns:
            The ConfigRecord.

        Raises:
            InvalidConfigKeyError: If config_key is empty.
            ConfigNotFoundError: If no active record exists.
            ConfigFetchError: If the store failed for any other reason.
        """
        self._validate_key(config_key)

        if use_cache:
            entry = self._cache.get(config_key, ttl=cache_duration)
            if entry is not None:
                logger.debug("Config cache hit: key=%s", config_key)
                return entry.record

        try:
            record = await self._store.fetch_by_key(config_key, active_only=True)
        except ConfigError:
            raise
        except Exception as err:
            raise ConfigFetchError(
                f"Failed to get config {config_key}: {err}", err
            ) from err

        record = self._decrypt(record)
        self._cache.put(config_key, record)
        logger.debug("Config fetched: key=%s", config_key)
        return record

    async def get_config_value(
        self, config_key: str, field: str, default: Any = _MISSING
    ) -> Any:
        """Return one field of a record's config_data.

        A missing field yields ``default`` (or None). When ``default`` is
        given, any failure reading the record also yields it.
        """
        try:
            config = await self.get_config(config_key)
        except Exception:
            if default is not _MISSING:
                return default
            raise
        value = config.config_data.get(field, _MISSING)
        if value is _MISSING:
            return None if default is _MISSING else default
        return value

    async def get_config_data(self, config_key: str) -> dict[str, Any]:
        """Return the decrypted config_data of a record."""
        config = await self.get_config(config_key)
        return config.config_data

    async def get_configs(self, config_keys: Sequence[str]) -> list[ConfigRecord]:
        """Fetch several active records at once, bypassing the cache.

        Raises:
            ConfigFetchError: If the store failed.
        """
        keys = list(config_keys)
        if not keys:
            return []
        try:
            records = await self._store.fetch_by_keys(keys, active_only=True)
        except ConfigError:
            raise
        except Exception as err:
            raise ConfigFetchError(
                f"Failed to get configs {keys}: {err}", err
            ) from err
        return [self._decrypt(record) for record in records]

    async def get_configs_by_type(
        self, config_type: Union[ConfigType, str]
    ) -> list[ConfigRecord]:
        """Fetch every active record of a type, newest first, bypassing the cache.

        Raises:
            ConfigFetchError: If the store failed.
        """
        try:
            records = await self._store.fetch_by_type(config_type, active_only=True)
        except ConfigError:
            raise
        except Exception as err:
            raise ConfigFetchError(
                f"Failed to get configs of type {type_value(config_type)}: {err}",
                err,
            ) from err
        return [self._decrypt(record) for record in records]

    def clear_cache(self, config_key: Optional[str] = None) -> None:
        """Invalidate one cached key, or the whole cache."""
        self._cache.invalidate(config_key)

    def encrypt_config_data(self, config_data: Mapping[str, Any]) -> dict[str, Any]:
        """Seal a payload under this application's key, for writing records."""
        return encrypt_config_data(config_data, self.derived_key)
