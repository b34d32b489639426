"""
Tests for ConfigService.

Tests cover:
- Cache hits, misses, TTL expiry and use_cache=False refetches
- Error taxonomy (not found, fetch failure, invalid key)
- Fail-open decryption of corrupt or foreign envelopes
- Field lookups with defaults
- Batch reads bypassing the cache
- Key derivation memoization
"""
import os
import asyncio
import logging
import threading
from datetime import datetime, timezone

import orjson
import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from navigator_config import service as service_module
from navigator_config.cache import ConfigCache
from navigator_config.errors import (
    ConfigError,
    ConfigNotFoundError,
    ConfigFetchError,
    InvalidConfigKeyError,
    CONFIG_GET_FAILED,
    CONFIG_NOT_FOUND,
)
from navigator_config.records import ConfigRecord, ConfigType
from navigator_config.service import ConfigService
from navigator_config.stores import MemoryConfigStore
from navigator_config.vault.config import VaultConfig
from navigator_config.vault.crypto import (
    derive_key,
    encrypt_config_data,
    ENC_FIELD,
    ENC_PREFIX,
    NONCE_SIZE,
)

APP_KEY = "k1"
APP_ID = "11111111-1111-1111-1111-111111111111"


class CountingStore(MemoryConfigStore):
    """MemoryConfigStore that records every call."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []

    async def fetch_by_key(self, config_key, active_only=True):
        self.calls.append(("fetch_by_key", config_key, active_only))
        return await super().fetch_by_key(config_key, active_only)

    async def fetch_by_keys(self, config_keys, active_only=True):
        self.calls.append(("fetch_by_keys", list(config_keys), active_only))
        return await super().fetch_by_keys(config_keys, active_only)

    async def fetch_by_type(self, config_type, active_only=True):
        self.calls.append(("fetch_by_type", config_type, active_only))
        return await super().fetch_by_type(config_type, active_only)


class BrokenStore:
    """Store whose every call fails with a backend error."""

    def __init__(self):
        self.error = ConnectionError("backend unreachable")

    async def fetch_by_key(self, config_key, active_only=True):
        raise self.error

    async def fetch_by_keys(self, config_keys, active_only=True):
        raise self.error

    async def fetch_by_type(self, config_type, active_only=True):
        raise self.error


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


# --- Test Fixtures ---

@pytest.fixture(scope="module")
def key():
    return derive_key(APP_KEY, APP_ID)


@pytest.fixture
def store(key):
    return CountingStore([
        ConfigRecord(
            config_key="features",
            name="Feature flags",
            config_data=encrypt_config_data({"flag": True, "beta": "on"}, key),
            config_type=ConfigType.FEATURE_FLAG,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        ),
        ConfigRecord(
            config_key="legacy",
            name="Legacy plaintext",
            config_data={"title": "hello"},
            config_type=ConfigType.ANNOUNCEMENT,
        ),
        ConfigRecord(
            config_key="foreign",
            name="Sealed under another key",
            config_data=encrypt_config_data({"x": 1}, derive_key("k2", APP_ID)),
            config_type=ConfigType.FEATURE_FLAG,
            created_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
        ),
        ConfigRecord(
            config_key="retired",
            name="Inactive",
            config_data={"old": True},
            is_active=False,
        ),
    ])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(store, clock):
    cache = ConfigCache(capacity=10, default_ttl=300, clock=clock)
    return ConfigService(store, APP_KEY, APP_ID, cache=cache)


def run(coro):
    return asyncio.run(coro)


# --- Test Construction ---

class TestServiceConstruction:
    """Tests for building a ConfigService."""

    def test_default_cache(self, store):
        """Test the service builds its own cache with given limits."""
        svc = ConfigService(store, APP_KEY, APP_ID, cache_capacity=5, cache_duration=60)
        assert svc.cache.capacity == 5
        assert svc.cache.default_ttl == 60

    def test_injected_empty_cache_is_used(self, store):
        """Test an empty injected cache is kept, not replaced."""
        cache = ConfigCache(capacity=2)
        svc = ConfigService(store, APP_KEY, APP_ID, cache=cache)
        assert svc.cache is cache

    def test_from_config(self, store):
        """Test from_config copies validated settings."""
        config = VaultConfig(
            app_key=APP_KEY, app_id=APP_ID, cache_capacity=7, cache_duration=30
        )
        svc = ConfigService.from_config(store, config)
        assert svc.cache.capacity == 7
        assert svc.derived_key == derive_key(APP_KEY, APP_ID)

    def test_repr_hides_secret(self, service):
        """Test repr never exposes the app_key."""
        assert "k1" not in repr(service)


# --- Test get_config ---

class TestGetConfig:
    """Tests for get_config."""

    def test_decrypts_sealed_record(self, service):
        """Test a sealed record is returned decrypted."""
        config = run(service.get_config("features"))
        assert config.config_data == {"flag": True, "beta": "on"}
        assert config.name == "Feature flags"

    def test_legacy_record_unchanged(self, service):
        """Test plaintext records pass through untouched."""
        config = run(service.get_config("legacy"))
        assert config.config_data == {"title": "hello"}
        assert service.decrypt_failures == 0

    def test_fetches_active_only(self, service, store):
        """Test the store is asked for active records."""
        run(service.get_config("features"))
        assert store.calls == [("fetch_by_key", "features", True)]

    def test_cache_hit(self, service, store):
        """Test a second read within the TTL does not refetch."""
        first = run(service.get_config("features"))
        second = run(service.get_config("features"))
        assert second is first
        assert len(store.calls) == 1

    def test_cache_expiry_refetches(self, service, store, clock):
        """Test a read after the TTL refetches."""
        run(service.get_config("features"))
        clock.now += 300
        run(service.get_config("features"))
        assert len(store.calls) == 2

    def test_per_call_cache_duration(self, service, store, clock):
        """Test cache_duration overrides the default TTL for one read."""
        run(service.get_config("features"))
        clock.now += 10
        run(service.get_config("features", cache_duration=5))
        assert len(store.calls) == 2

    def test_use_cache_false_always_fetches(self, service, store):
        """Test use_cache=False bypasses a fresh entry."""
        run(service.get_config("features"))
        run(service.get_config("features", use_cache=False))
        run(service.get_config("features", use_cache=False))
        assert len(store.calls) == 3

    def test_use_cache_false_still_populates(self, service, store):
        """Test a bypassing read still caches its result."""
        run(service.get_config("features", use_cache=False))
        assert "features" in service.cache
        run(service.get_config("features"))
        assert len(store.calls) == 1

    def test_not_found(self, service):
        """Test a missing key raises ConfigNotFoundError."""
        with pytest.raises(ConfigNotFoundError) as exc_info:
            run(service.get_config("nope"))
        assert exc_info.value.code == CONFIG_NOT_FOUND

    def test_inactive_is_not_found(self, service):
        """Test inactive records are not returned."""
        with pytest.raises(ConfigNotFoundError):
            run(service.get_config("retired"))

    def test_not_found_is_not_cached(self, service, store):
        """Test a failed read leaves no cache entry."""
        with pytest.raises(ConfigNotFoundError):
            run(service.get_config("nope"))
        assert "nope" not in service.cache

    def test_fetch_failure_carries_cause(self):
        """Test backend errors become ConfigFetchError with the cause."""
        broken = BrokenStore()
        svc = ConfigService(broken, APP_KEY, APP_ID)
        with pytest.raises(ConfigFetchError) as exc_info:
            run(svc.get_config("features"))
        err = exc_info.value
        assert err.code == CONFIG_GET_FAILED
        assert err.original_error is broken.error
        assert err.__cause__ is broken.error
        assert isinstance(err, ConfigError)

    @pytest.mark.parametrize("bad_key", ["", "   ", None])
    def test_invalid_key(self, service, store, bad_key):
        """Test empty keys are rejected before touching the store."""
        with pytest.raises(InvalidConfigKeyError):
            run(service.get_config(bad_key))
        assert store.calls == []


# --- Test fail-open decryption ---

class TestFailOpen:
    """Tests for the fail-open decryption policy."""

    def test_foreign_key_returns_raw(self, service, caplog):
        """Test a record sealed under another key is returned as stored."""
        with caplog.at_level(logging.WARNING, logger="navigator.config"):
            config = run(service.get_config("foreign"))
        assert ENC_FIELD in config.config_data
        assert service.decrypt_failures == 1
        assert any(
            "foreign" in rec.getMessage() and "EnvelopeIntegrityError" in rec.getMessage()
            for rec in caplog.records
        )

    def test_malformed_envelope_returns_raw(self, service, store):
        """Test a malformed envelope is returned as stored."""
        store.add(ConfigRecord(
            config_key="broken",
            config_data={ENC_FIELD: f"{ENC_PREFIX}deadbeef"},
        ))
        config = run(service.get_config("broken"))
        assert config.config_data == {ENC_FIELD: f"{ENC_PREFIX}deadbeef"}
        assert service.decrypt_failures == 1

    def test_raw_record_is_cached(self, service, store):
        """Test the undecrypted fallback is cached like any other result."""
        run(service.get_config("foreign"))
        run(service.get_config("foreign"))
        assert len(store.calls) == 1
        assert service.decrypt_failures == 1

    def test_log_never_contains_ciphertext(self, service, store, caplog):
        """Test the warning does not leak the envelope."""
        with caplog.at_level(logging.WARNING, logger="navigator.config"):
            config = run(service.get_config("foreign"))
        envelope = config.config_data[ENC_FIELD]
        assert all(envelope not in rec.getMessage() for rec in caplog.records)

    def test_non_object_payload_returns_raw(self, service, store, key, caplog):
        """Test an authentic envelope holding a JSON array is returned as stored."""
        nonce = os.urandom(NONCE_SIZE)
        ct = AESGCM(key).encrypt(nonce, orjson.dumps([1, 2]), None)
        sealed = {ENC_FIELD: f"{ENC_PREFIX}{nonce.hex()}.{ct.hex()}"}
        store.add(ConfigRecord(config_key="listy", config_data=sealed))
        with caplog.at_level(logging.WARNING, logger="navigator.config"):
            config = run(service.get_config("listy"))
        assert config.config_data == sealed
        assert service.decrypt_failures == 1
        assert any("EnvelopeFormatError" in rec.getMessage() for rec in caplog.records)


# --- Test get_config_value / get_config_data ---

class TestConfigValue:
    """Tests for field lookups."""

    def test_existing_field(self, service):
        assert run(service.get_config_value("features", "flag")) is True

    def test_missing_field_default(self, service):
        assert run(service.get_config_value("features", "nope", 5)) == 5

    def test_missing_field_no_default(self, service):
        assert run(service.get_config_value("features", "nope")) is None

    def test_failure_returns_default(self, service):
        """Test a not-found record yields the supplied default."""
        assert run(service.get_config_value("nope", "flag", False)) is False

    def test_none_default_is_honoured(self, service):
        """Test an explicit None default still suppresses errors."""
        assert run(service.get_config_value("nope", "flag", None)) is None

    def test_failure_without_default_propagates(self, service):
        with pytest.raises(ConfigNotFoundError):
            run(service.get_config_value("nope", "flag"))

    def test_fetch_failure_returns_default(self):
        svc = ConfigService(BrokenStore(), APP_KEY, APP_ID)
        assert run(svc.get_config_value("features", "flag", "fallback")) == "fallback"

    def test_get_config_data(self, service):
        assert run(service.get_config_data("legacy")) == {"title": "hello"}


# --- Test batch reads ---

class TestBatchReads:
    """Tests for get_configs and get_configs_by_type."""

    def test_get_configs_decrypts_each(self, service):
        records = run(service.get_configs(["features", "legacy", "missing"]))
        by_key = {r.config_key: r for r in records}
        assert set(by_key) == {"features", "legacy"}
        assert by_key["features"].config_data["flag"] is True

    def test_get_configs_bypasses_cache(self, service, store):
        """Test batch reads neither consult nor populate the cache."""
        run(service.get_config("features"))
        run(service.get_configs(["features"]))
        assert store.calls[-1] == ("fetch_by_keys", ["features"], True)
        service.clear_cache()
        run(service.get_configs(["features", "legacy"]))
        assert len(service.cache) == 0

    def test_get_configs_empty(self, service, store):
        assert run(service.get_configs([])) == []
        assert store.calls == []

    def test_get_configs_by_type_newest_first(self, service):
        records = run(service.get_configs_by_type(ConfigType.FEATURE_FLAG))
        assert [r.config_key for r in records] == ["foreign", "features"]
        assert records[1].config_data == {"flag": True, "beta": "on"}
        assert ENC_FIELD in records[0].config_data
        assert service.decrypt_failures == 1
        assert len(service.cache) == 0

    def test_get_configs_by_type_string(self, service):
        records = run(service.get_configs_by_type("announcement"))
        assert [r.config_key for r in records] == ["legacy"]

    def test_batch_fetch_failure(self):
        svc = ConfigService(BrokenStore(), APP_KEY, APP_ID)
        with pytest.raises(ConfigFetchError):
            run(svc.get_configs(["a"]))
        with pytest.raises(ConfigFetchError):
            run(svc.get_configs_by_type("custom"))


# --- Test cache control and key memoization ---

class TestServiceState:
    """Tests for clear_cache, encryption helper and key memoization."""

    def test_clear_cache_one(self, service, store):
        run(service.get_config("features"))
        run(service.get_config("legacy"))
        service.clear_cache("features")
        assert "features" not in service.cache
        assert "legacy" in service.cache

    def test_clear_cache_all(self, service):
        run(service.get_config("features"))
        service.clear_cache()
        assert len(service.cache) == 0

    def test_key_derived_once(self, store, monkeypatch):
        """Test the derived key is computed once per service."""
        calls = []

        def counting_derive(app_key, app_id):
            calls.append((app_key, app_id))
            return derive_key(app_key, app_id)

        monkeypatch.setattr(service_module, "derive_key", counting_derive)
        svc = ConfigService(store, APP_KEY, APP_ID)
        run(svc.get_config("features"))
        run(svc.get_config("legacy"))
        run(svc.get_configs(["features", "legacy"]))
        assert calls == [(APP_KEY, APP_ID)]

    def test_warm_up_derives_off_loop(self, store, monkeypatch):
        """Test warm_up derives the key in an executor thread, once."""
        threads = []

        def recording_derive(app_key, app_id):
            threads.append(threading.get_ident())
            return derive_key(app_key, app_id)

        monkeypatch.setattr(service_module, "derive_key", recording_derive)
        svc = ConfigService(store, APP_KEY, APP_ID)

        async def _test():
            await svc.warm_up()
            await svc.warm_up()
            return await svc.get_config("features")

        config = run(_test())
        assert len(threads) == 1
        assert threads[0] != threading.get_ident()
        assert svc.derived_key == derive_key(APP_KEY, APP_ID)
        assert config.config_data == {"flag": True, "beta": "on"}

    def test_encrypt_helper_roundtrip(self, service, store):
        """Test a payload sealed by the service reads back decrypted."""
        sealed = service.encrypt_config_data({"model": "m1", "rpm": 60})
        store.add(ConfigRecord(
            config_key="llm",
            config_data=sealed,
            config_type=ConfigType.LLM_CONFIG,
        ))
        config = run(service.get_config("llm"))
        assert config.config_data == {"model": "m1", "rpm": 60}
