"""ConfigStore protocol consumed by ConfigService."""
from typing import Protocol, Union, runtime_checkable
from collections.abc import Sequence

from ..records import ConfigRecord, ConfigType


@runtime_checkable
class ConfigStore(Protocol):
    """Remote source of configuration records.

    Implementations raise ``ConfigNotFoundError`` from ``fetch_by_key`` when
    no (active) record exists; any other exception is treated as a fetch
    failure by the caller. Timeouts and retries belong to the store.
    """

    async def fetch_by_key(
        self, config_key: str, active_only: bool = True
    ) -> ConfigRecord:
        ...

    async def fetch_by_keys(
        self, config_keys: Sequence[str], active_only: bool = True
    ) -> list[ConfigRecord]:
        ...

    async def fetch_by_type(
        self, config_type: Union[ConfigType, str], active_only: bool = True
    ) -> list[ConfigRecord]:
        """Records of one type, newest ``created_at`` first."""
        ...


def type_value(config_type: Union[ConfigType, str]) -> str:
    """Plain string value of a ConfigType or raw type name."""
    if isinstance(config_type, ConfigType):
        return config_type.value
    return str(config_type)
