"""
PostgresConfigStore — ConfigStore over an asyncpg-compatible pool.

Reads the configuration table directly. ``config_data`` may come back as
JSON text (asyncpg's default for json/jsonb columns) or as an already
decoded mapping when the pool registers a JSON codec.
"""
import re
import logging
from typing import Any, Union
from collections.abc import Mapping, Sequence

import orjson

from ..conf import CONFIG_TABLE
from ..errors import ConfigNotFoundError
from ..records import ConfigRecord, ConfigType
from .base import type_value

logger = logging.getLogger("navigator.config")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

# ---------------------------------------------------------------------------
# SQL statements ({table} is validated at construction)
# ---------------------------------------------------------------------------

_SELECT_BY_KEY = """
SELECT id, config_key, name, description, config_data, config_type,
       is_active, created_at, updated_at
FROM {table}
WHERE config_key = $1 AND ($2::boolean IS FALSE OR is_active)
LIMIT 1
"""

_SELECT_BY_KEYS = """
SELECT id, config_key, name, description, config_data, config_type,
       is_active, created_at, updated_at
FROM {table}
WHERE config_key = ANY($1::text[]) AND ($2::boolean IS FALSE OR is_active)
"""

_SELECT_BY_TYPE = """
SELECT id, config_key, name, description, config_data, config_type,
       is_active, created_at, updated_at
FROM {table}
WHERE config_type = $1 AND ($2::boolean IS FALSE OR is_active)
ORDER BY created_at DESC
"""


def row_to_record(row: Mapping[str, Any]) -> ConfigRecord:
    """Build a ConfigRecord from a database row."""
    values = dict(row)
    data = values.get("config_data")
    if isinstance(data, (str, bytes)):
        values["config_data"] = orjson.loads(data)
    elif data is None:
        values["config_data"] = {}
    if values.get("id") is not None:
        values["id"] = str(values["id"])
    return ConfigRecord.model_validate(values)


class PostgresConfigStore:
    """ConfigStore backed by a PostgreSQL table.

    Args:
        db_pool: asyncpg-compatible connection pool.
        table: Table name, optionally schema-qualified.
    """

    def __init__(self, db_pool: Any, table: str = CONFIG_TABLE):
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self._db = db_pool
        self._table = table

    async def fetch_by_key(
        self, config_key: str, active_only: bool = True
    ) -> ConfigRecord:
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(
                _SELECT_BY_KEY.format(table=self._table),
                config_key, active_only,
            )
        if row is None:
            raise ConfigNotFoundError(config_key)
        return row_to_record(row)

    async def fetch_by_keys(
        self, config_keys: Sequence[str], active_only: bool = True
    ) -> list[ConfigRecord]:
        async with self._db.acquire() as conn:
            rows = await conn.fetch(
                _SELECT_BY_KEYS.format(table=self._table),
                list(config_keys), active_only,
            )
        return [row_to_record(row) for row in rows]

    async def fetch_by_type(
        self, config_type: Union[ConfigType, str], active_only: bool = True
    ) -> list[ConfigRecord]:
        async with self._db.acquire() as conn:
            rows = await conn.fetch(
                _SELECT_BY_TYPE.format(table=self._table),
                type_value(config_type), active_only,
            )
        logger.debug(
            "Loaded %d config record(s) of type=%s", len(rows), type_value(config_type)
        )
        return [row_to_record(row) for row in rows]
