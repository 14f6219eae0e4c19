"""Tests for process configuration loading."""

import pytest

from countly_mcp.infra.config import (
    DEFAULT_MAX_TENANTS,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT_MS,
    load_settings,
    normalize_server_url,
    parse_timeout,
    validate_server_url,
)


class TestServerUrl:
    def test_trailing_slashes_removed(self):
        assert normalize_server_url(" https://countly.example.com/// ") == "https://countly.example.com"

    @pytest.mark.parametrize("url", ["https://a.example.com", "http://localhost:8080"])
    def test_valid(self, url):
        assert validate_server_url(url)

    @pytest.mark.parametrize("url", ["ftp://a.example.com", "countly.example.com", "https://", ""])
    def test_invalid(self, url):
        assert not validate_server_url(url)


class TestParseTimeout:
    def test_default(self):
        assert parse_timeout(None) == DEFAULT_TIMEOUT_MS
        assert parse_timeout("") == DEFAULT_TIMEOUT_MS

    def test_value(self):
        assert parse_timeout("5000") == 5000

    @pytest.mark.parametrize("value", ["0", "-5", "abc"])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="Invalid timeout value"):
            parse_timeout(value)


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings({})

        assert settings.server_url == ""
        assert settings.timeout_ms == DEFAULT_TIMEOUT_MS
        assert settings.timeout_seconds == DEFAULT_TIMEOUT_MS / 1000
        assert settings.port == DEFAULT_PORT
        assert settings.allow_unclassified_tools is True
        assert dict(settings.tools_overrides) == {}

    def test_environment_values(self):
        settings = load_settings(
            {
                "COUNTLY_SERVER_URL": "https://countly.example.com/",
                "COUNTLY_TIMEOUT": "1500",
                "COUNTLY_APP_CACHE_TTL": "10",
                "COUNTLY_TOOLS_ALL": "R",
                "COUNTLY_TOOLS_CRASHES": "CRUD",
                "PORT": "8080",
                "DEBUG": "true",
            }
        )

        assert settings.server_url == "https://countly.example.com"
        assert settings.timeout_seconds == 1.5
        assert settings.app_cache_ttl == 10.0
        assert settings.tools_default == "R"
        assert dict(settings.tools_overrides) == {"crashes": "CRUD"}
        assert settings.port == 8080
        assert settings.debug is True

    def test_invalid_server_url(self):
        with pytest.raises(ValueError, match="Invalid COUNTLY_SERVER_URL"):
            load_settings({"COUNTLY_SERVER_URL": "not a url"})

    def test_invalid_ttl(self):
        with pytest.raises(ValueError, match="COUNTLY_PLUGIN_CACHE_TTL"):
            load_settings({"COUNTLY_PLUGIN_CACHE_TTL": "-1"})

    def test_settings_are_frozen(self):
        settings = load_settings({})
        with pytest.raises(AttributeError):
            settings.port = 1

    def test_max_tenants(self):
        assert load_settings({}).max_tenants == DEFAULT_MAX_TENANTS
        assert load_settings({"COUNTLY_CACHE_MAX_TENANTS": "8"}).max_tenants == 8
        with pytest.raises(ValueError, match="COUNTLY_CACHE_MAX_TENANTS"):
            load_settings({"COUNTLY_CACHE_MAX_TENANTS": "0"})
