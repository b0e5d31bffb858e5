"""Application configuration via environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Callable, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from collections.abc import Mapping

# (route_id, direction, stop_id) -> stop_id
StopIdTransform = Callable[[str, str, str], str]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "Transit RT Proxy"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Static schedule
    gtfs_static_path: str = Field(
        default="google_transit.zip",
        validation_alias=AliasChoices("GTFS_STATIC_PATH", "GTFS_PATH"),
    )
    gtfs_static_strict: bool = False
    agency_timezone: str = "America/New_York"
    directions_csv_path: Optional[str] = None

    # Real-time feeds (feed id -> URL)
    feed_urls: Dict[str, str] = Field(default_factory=dict)
    feed_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("FEED_API_KEY", "MTA_API_KEY"),
    )

    # Polling worker
    poll_interval_sec: int = 30
    poll_auto_start: bool = False
    fetch_timeout_sec: int = 30
    fetch_max_retries: int = 3
    fetch_backoff_base: float = 2.0

    # Reconciliation
    latency_limit_sec: int = 300
    route_blacklist_by_feed: Dict[str, List[str]] = Field(
        default_factory=lambda: {"1": ["D", "N", "Q"]}
    )
    route_alias_by_feed: Dict[str, Dict[str, str]] = Field(
        default_factory=lambda: {"1": {"S": "GS", "5X": "5"}}
    )
    implied_routes: Dict[str, str] = Field(default_factory=lambda: {"6": "6X"})
    reversed_direction_routes: List[str] = Field(default_factory=list)
    allow_duplicates: bool = False
    cancel_unmatched_trips: bool = True
    coercion_tolerance_sec: int = Field(default=600, ge=0)
    metrics_namespace: Optional[str] = None

    def missing_required_env(self) -> list[str]:
        """Return required environment variables that are missing or empty."""
        missing: list[str] = []

        if not self.gtfs_static_path:
            missing.append("GTFS_STATIC_PATH")
        if not self.feed_urls:
            missing.append("FEED_URLS")

        return missing


class ReconciliationConfig(BaseModel):
    """Immutable per-pipeline reconciliation settings.

    Built once from :class:`Settings` (or directly in tests) and never mutated
    afterwards. Per-feed maps are keyed by feed id.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    latency_limit_sec: int = 300
    route_blacklist_by_feed: Dict[str, frozenset[str]] = Field(default_factory=dict)
    route_alias_by_feed: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    implied_routes: Dict[str, str] = Field(default_factory=dict)
    reversed_direction_routes: frozenset[str] = frozenset()
    allow_duplicates: bool = False
    cancel_unmatched_trips: bool = True
    coercion_tolerance_sec: int = 600
    metrics_namespace: Optional[str] = None
    stop_id_transform: Optional[StopIdTransform] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        stop_id_transform: StopIdTransform | None = None,
    ) -> ReconciliationConfig:
        """Build the reconciliation config from application settings."""
        return cls(
            latency_limit_sec=settings.latency_limit_sec,
            route_blacklist_by_feed={
                feed_id: frozenset(routes)
                for feed_id, routes in settings.route_blacklist_by_feed.items()
            },
            route_alias_by_feed={
                feed_id: dict(aliases)
                for feed_id, aliases in settings.route_alias_by_feed.items()
            },
            implied_routes=dict(settings.implied_routes),
            reversed_direction_routes=frozenset(settings.reversed_direction_routes),
            allow_duplicates=settings.allow_duplicates,
            cancel_unmatched_trips=settings.cancel_unmatched_trips,
            coercion_tolerance_sec=settings.coercion_tolerance_sec,
            metrics_namespace=settings.metrics_namespace,
            stop_id_transform=stop_id_transform,
        )

    def blacklist_for(self, feed_id: str) -> frozenset[str]:
        """Routes whose replacement periods are ignored for this feed."""
        return self.route_blacklist_by_feed.get(feed_id, frozenset())

    def aliases_for(self, feed_id: str) -> Mapping[str, str]:
        """Realtime-to-static route id map for this feed."""
        return self.route_alias_by_feed.get(feed_id, {})


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
