"""
Config Records — pydantic models for rows of the configuration table.

Field names follow the storage columns so rows coming from PostgreSQL or
PostgREST validate directly into a ``ConfigRecord``.
"""
from enum import Enum
from typing import Any, Optional
from datetime import datetime

from pydantic import BaseModel, Field


class ConfigType(str, Enum):
    """Known configuration record types."""

    ANNOUNCEMENT = "announcement"
    LLM_CONFIG = "llm_config"
    API_CONFIG = "api_config"
    FEATURE_FLAG = "feature_flag"
    CUSTOM = "custom"


class ConfigRecord(BaseModel):
    """A single configuration record.

    ``config_data`` holds either the plain payload or, for sealed records,
    a mapping with the reserved ``_enc`` envelope field.
    """

    id: Optional[str] = None
    config_key: str
    name: str = ""
    description: Optional[str] = None
    config_data: dict[str, Any] = Field(default_factory=dict)
    config_type: Optional[ConfigType] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def with_data(self, config_data: dict[str, Any]) -> "ConfigRecord":
        """Return a copy of this record carrying a different payload."""
        return self.model_copy(update={"config_data": config_data})
