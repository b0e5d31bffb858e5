"""Tests for settings and the reconciliation config."""

import pytest
from pydantic import ValidationError

from transit_rt_proxy.config import ReconciliationConfig, Settings


class TestSettings:
    def test_missing_required_env(self) -> None:
        settings = Settings(gtfs_static_path="", feed_urls={})
        assert settings.missing_required_env() == ["GTFS_STATIC_PATH", "FEED_URLS"]

    def test_nothing_missing(self) -> None:
        settings = Settings(gtfs_static_path="gtfs.zip", feed_urls={"1": "https://example.com"})
        assert settings.missing_required_env() == []

    def test_feed_urls_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FEED_URLS", '{"1": "https://example.com/gtfs"}')
        monkeypatch.setenv("MTA_API_KEY", "secret")
        settings = Settings()
        assert settings.feed_urls == {"1": "https://example.com/gtfs"}
        assert settings.feed_api_key == "secret"

    def test_negative_tolerance_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(coercion_tolerance_sec=-1)


class TestReconciliationConfig:
    """Tests for building the immutable reconciliation config."""

    def test_from_settings_defaults(self) -> None:
        config = ReconciliationConfig.from_settings(Settings())

        assert config.latency_limit_sec == 300
        assert config.blacklist_for("1") == frozenset({"D", "N", "Q"})
        assert config.blacklist_for("26") == frozenset()
        assert config.aliases_for("1") == {"S": "GS", "5X": "5"}
        assert config.aliases_for("26") == {}
        assert config.implied_routes == {"6": "6X"}
        assert config.cancel_unmatched_trips is True
        assert config.stop_id_transform is None

    def test_from_settings_overrides(self) -> None:
        settings = Settings(
            reversed_direction_routes=["GS"],
            allow_duplicates=True,
            coercion_tolerance_sec=0,
        )
        config = ReconciliationConfig.from_settings(settings, stop_id_transform=lambda r, d, s: s)

        assert config.reversed_direction_routes == frozenset({"GS"})
        assert config.allow_duplicates is True
        assert config.coercion_tolerance_sec == 0
        assert config.stop_id_transform("1", "N", "101N") == "101N"

    def test_frozen(self) -> None:
        config = ReconciliationConfig()
        with pytest.raises(ValidationError):
            config.latency_limit_sec = 0
