"""Tests for settings defaults and startup validation."""

import pytest

from nftscout.core.config import Settings, validate_settings


def _settings(**overrides) -> Settings:
    # _env_file=None keeps a developer's local .env out of the tests
    return Settings(_env_file=None, **overrides)


class TestDefaults:
    def test_upstream_and_cache_defaults(self):
        settings = _settings()
        assert settings.upstream_primary_url == "https://api-mainnet.magiceden.dev/v2"
        assert settings.upstream_secondary_url == "https://api-mainnet.magiceden.dev/v3/rtp/solana"
        assert settings.collection_cache_ttl_seconds == 30.0
        assert settings.min_request_interval_ms == 100
        assert settings.max_retries == 2
        assert settings.trending_cache_ttl_seconds == 300.0
        assert settings.search_debounce_ms == 400

    def test_timeframes_parsed_in_priority_order(self):
        assert _settings(trending_timeframes=" 7d, 1h ,,1d").timeframes == ["7d", "1h", "1d"]


class TestAutoToggles:
    def test_development_defaults(self):
        settings = _settings(env="development")
        assert settings.is_rate_limit_enabled is False
        assert settings.is_fallback_enabled is True

    def test_production_defaults(self):
        settings = _settings(env="production", cors_origins="https://nft.example")
        assert settings.is_rate_limit_enabled is True
        assert settings.is_fallback_enabled is False

    def test_explicit_values_win(self):
        settings = _settings(
            env="production", rate_limit_enabled=False, fallback_collections_enabled=True
        )
        assert settings.is_rate_limit_enabled is False
        assert settings.is_fallback_enabled is True


class TestValidateSettings:
    def test_valid_settings_pass(self):
        validate_settings(_settings())

    def test_unknown_timeframe_exits(self):
        with pytest.raises(SystemExit):
            validate_settings(_settings(trending_timeframes="1h,2h"))

    def test_empty_timeframes_exits(self):
        with pytest.raises(SystemExit):
            validate_settings(_settings(trending_timeframes=" , "))

    def test_negative_min_query_length_exits(self):
        with pytest.raises(SystemExit):
            validate_settings(_settings(search_min_query_length=-1))

    def test_wildcard_cors_rejected_in_production(self):
        with pytest.raises(SystemExit):
            validate_settings(_settings(env="production", cors_origins="*"))
