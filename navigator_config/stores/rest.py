"""
RestConfigStore — ConfigStore over a PostgREST endpoint (e.g. Supabase).

Queries ``GET {base_url}/rest/v1/{table}`` with PostgREST filter syntax:
    config_key=eq.<key> | config_key=in.("a","b") | config_type=eq.<type>
    is_active=eq.true
    order=created_at.desc
"""
import logging
from typing import Any, Optional, Union
from collections.abc import Sequence

import aiohttp

from ..conf import CONFIG_TABLE, CONFIG_REST_PATH, DEFAULT_REQUEST_TIMEOUT
from ..errors import ConfigNotFoundError
from ..records import ConfigRecord, ConfigType
from .base import type_value

logger = logging.getLogger("navigator.config")


def _quote(value: str) -> str:
    """Quote a value for a PostgREST ``in.(...)`` list."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class RestConfigStore:
    """ConfigStore reading a PostgREST resource with aiohttp.

    Args:
        base_url: Service root, e.g. ``https://<project>.supabase.co``.
        api_key: API key sent as ``apikey`` and bearer token.
        session: Optional shared ClientSession; one is created (and owned)
            on first use when omitted.
        table: Resource name.
        timeout: Total request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: Optional[aiohttp.ClientSession] = None,
        table: str = CONFIG_TABLE,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.table = table
        self.timeout = timeout
        self._api_key = api_key
        self._session = session
        self._owns_session = session is None

    @property
    def url(self) -> str:
        return f"{self.base_url}{CONFIG_REST_PATH}/{self.table}"

    @property
    def headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
        }

    async def __aenter__(self) -> "RestConfigStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the ClientSession if this store created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _select(self, params: dict[str, str], active_only: bool) -> list[dict[str, Any]]:
        params = {"select": "*", **params}
        if active_only:
            params["is_active"] = "eq.true"
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        session = self._get_session()
        async with session.get(
            self.url, params=params, headers=self.headers, timeout=timeout
        ) as resp:
            if resp.status >= 400:
                raise aiohttp.ClientResponseError(
                    resp.request_info,
                    resp.history,
                    status=resp.status,
                    message=resp.reason or "",
                )
            rows = await resp.json()
        if not isinstance(rows, list):
            raise ValueError(
                f"Unexpected response from {self.url}: expected a JSON array"
            )
        return rows

    async def fetch_by_key(
        self, config_key: str, active_only: bool = True
    ) -> ConfigRecord:
        rows = await self._select(
            {"config_key": f"eq.{config_key}", "limit": "1"}, active_only
        )
        if not rows:
            raise ConfigNotFoundError(config_key)
        return ConfigRecord.model_validate(rows[0])

    async def fetch_by_keys(
        self, config_keys: Sequence[str], active_only: bool = True
    ) -> list[ConfigRecord]:
        keys = ",".join(_quote(key) for key in config_keys)
        rows = await self._select({"config_key": f"in.({keys})"}, active_only)
        return [ConfigRecord.model_validate(row) for row in rows]

    async def fetch_by_type(
        self, config_type: Union[ConfigType, str], active_only: bool = True
    ) -> list[ConfigRecord]:
        rows = await self._select(
            {
                "config_type": f"eq.{type_value(config_type)}",
                "order": "created_at.desc",
            },
            active_only,
        )
        logger.debug(
            "Loaded %d config record(s) of type=%s", len(rows), type_value(config_type)
        )
        return [ConfigRecord.model_validate(row) for row in rows]
