"""
Navigator Config settings.

Module-level defaults, overridable through environment variables.
"""
import os

# Table (or PostgREST resource) holding configuration records.
CONFIG_TABLE = os.environ.get("CONFIG_TABLE", "app_configs")

# PostgREST path prefix used by the REST store.
CONFIG_REST_PATH = os.environ.get("CONFIG_REST_PATH", "/rest/v1")

# Maximum distinct keys held by a ConfigCache.
DEFAULT_CACHE_CAPACITY = int(os.environ.get("CONFIG_CACHE_CAPACITY", 100))

# Seconds a cached record is considered fresh (5 minutes).
DEFAULT_CACHE_DURATION = float(os.environ.get("CONFIG_CACHE_DURATION", 300))

# Timeout (seconds) for REST store requests.
DEFAULT_REQUEST_TIMEOUT = float(os.environ.get("CONFIG_REQUEST_TIMEOUT", 10))
