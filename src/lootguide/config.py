"""Engine configuration and settings management."""

from pathlib import Path
from typing import Annotated, Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="LOOT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    data_root: Path = Field(default=Path("data"), description="Root directory for the durable cache files.")

    vendor_cache_key: str = "vendors_cache"
    vendor_cache_timestamp_key: str = "vendors_cache_timestamp"
    cache_expiration_hours: float = Field(default=24.0, gt=0.0)

    # Anchorage city centre, used whenever a vendor has no usable coordinates
    fallback_latitude: float = Field(default=61.2181, ge=-90.0, le=90.0)
    fallback_longitude: float = Field(default=-149.9003, ge=-180.0, le=180.0)

    redistribution_batch_size: int = Field(default=100, ge=1)
    minutes_per_mile: float = Field(default=3.0, ge=0.0)
    minutes_per_stop: int = Field(default=0, ge=0)
    default_points_per_check_in: int = Field(default=10, ge=0)
    featured_default_limit: int = Field(default=5, ge=1)
    partition_order: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("active", "priority", "other"),
        description="Order in which vendor partitions are read during a refresh.",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    active_vendors_table: str = "active_vendors"
    priority_vendors_table: str = "priority_vendors"
    other_vendors_table: str = "other_vendors"
    regions_table: str = "regions"
    featured_deals_table: str = "featured_deals"
    special_deals_table: str = "special_deals"

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("partition_order", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            # Try comma-separated
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @property
    def cache_expiration_seconds(self) -> float:
        return self.cache_expiration_hours * 60 * 60

    def table_for_partition(self, partition: str) -> str:
        match partition:
            case "active":
                return self.active_vendors_table
            case "priority":
                return self.priority_vendors_table
            case "other":
                return self.other_vendors_table
            case _:
                raise ValueError(f"Unknown vendor partition '{partition}'.")


settings = Settings()
