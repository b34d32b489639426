"""Config stores: sources of configuration records."""

from .base import ConfigStore
from .memory import MemoryConfigStore
from .postgres import PostgresConfigStore
from .rest import RestConfigStore

__all__ = [
    "ConfigStore",
    "MemoryConfigStore",
    "PostgresConfigStore",
    "RestConfigStore",
]
