"""
MemoryConfigStore — dict-backed ConfigStore.

Useful for tests and local development; holds records in process memory.
"""
from datetime import datetime, timezone
from typing import Union
from collections.abc import Sequence

from ..errors import ConfigNotFoundError
from ..records import ConfigRecord, ConfigType
from .base import type_value

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created(record: ConfigRecord) -> datetime:
    created = record.created_at
    if created is None:
        return _EPOCH
    if created.tzinfo is None:
        return created.replace(tzinfo=timezone.utc)
    return created


class MemoryConfigStore:
    """In-memory ConfigStore keyed by ``config_key``."""

    def __init__(self, records: Sequence[ConfigRecord] = ()):
        self._records: dict[str, ConfigRecord] = {}
        for record in records:
            self.add(record)

    def add(self, record: ConfigRecord) -> None:
        """Insert or replace a record."""
        self._records[record.config_key] = record

    def remove(self, config_key: str) -> None:
        self._records.pop(config_key, None)

    def __len__(self) -> int:
        return len(self._records)

    async def fetch_by_key(
        self, config_key: str, active_only: bool = True
    ) -> ConfigRecord:
        record = self._records.get(config_key)
        if record is None or (active_only and not record.is_active):
            raise ConfigNotFoundError(config_key)
        return record

    async def fetch_by_keys(
        self, config_keys: Sequence[str], active_only: bool = True
    ) -> list[ConfigRecord]:
        result = []
        for key in config_keys:
            record = self._records.get(key)
            if record is None or (active_only and not record.is_active):
                continue
            result.append(record)
        return result

    async def fetch_by_type(
        self, config_type: Union[ConfigType, str], active_only: bool = True
    ) -> list[ConfigRecord]:
        wanted = type_value(config_type)
        result = [
            record for record in self._records.values()
            if record.config_type is not None
            and record.config_type.value == wanted
            and (record.is_active or not active_only)
        ]
        result.sort(key=_created, reverse=True)
        return result
