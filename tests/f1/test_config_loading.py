"""Tests for app configuration (F1).

Defaults, YAML overlay, environment overrides and environment validation.
"""

import pytest

from readspeed.config.app_config import (
    CONFIG_FILE,
    AppConfig,
    clear_config_cache,
    load_app_config,
    validate_environment,
)


class TestLoadAppConfig:
    """Tests for load_app_config function."""

    def test_defaults_without_file(self, app_env):
        """Built-in defaults apply when no YAML file exists."""
        config = load_app_config()
        assert isinstance(config, AppConfig)
        assert config.environment == "development"
        assert config.rate_limit.max_requests == 10000
        assert config.rate_limit.window_ms == 60000
        assert config.goals.weekly_pages_default == 200
        assert config.features.exercises_enabled is True

    def test_config_is_cached(self, app_env):
        """Repeated loads return the same object."""
        assert load_app_config() is load_app_config()

    def test_force_reload(self, app_env, monkeypatch):
        """force_reload picks up environment changes."""
        load_app_config()
        monkeypatch.setenv("DEFAULT_WEEKLY_PAGE_GOAL", "350")
        assert load_app_config(force_reload=True).goals.weekly_pages_default == 350

    def test_yaml_overlay(self, app_env):
        """Values from the YAML file override defaults."""
        path = app_env / CONFIG_FILE
        path.parent.mkdir(parents=True)
        path.write_text("log_level: DEBUG\ngoals:\n  weekly_pages_default: 120\n")
        clear_config_cache()

        config = load_app_config()
        assert config.log_level == "debug"
        assert config.goals.weekly_pages_default == 120
        # Untouched sections keep their defaults
        assert config.auth.otp_ttl_minutes == 15

    def test_env_overrides_yaml(self, app_env, monkeypatch):
        """Environment variables win over the YAML file."""
        path = app_env / CONFIG_FILE
        path.parent.mkdir(parents=True)
        path.write_text("features:\n  exercises_enabled: true\n")
        monkeypatch.setenv("FEATURES_EXERCISES", "false")
        clear_config_cache()

        assert load_app_config().features.exercises_enabled is False

    def test_invalid_env_value_ignored(self, app_env, monkeypatch):
        """Non-numeric values for numeric settings are skipped."""
        monkeypatch.setenv("RATE_LIMIT_WINDOW", "soon")
        clear_config_cache()
        assert load_app_config().rate_limit.window_ms == 60000


class TestCookieConfig:
    """Tests for cookie attributes per environment."""

    def test_development_cookie(self, app_env):
        """Development cookies are lax and not secure."""
        cookies = load_app_config().cookies
        assert cookies.name == "readspeed-session"
        assert cookies.domain is None
        assert cookies.same_site == "lax"
        assert cookies.secure is False

    def test_production_cookie(self, app_env, monkeypatch):
        """Production cookies are shared across the parent domain."""
        monkeypatch.setenv("READSPEED_ENV", "production")
        monkeypatch.setenv("READSPEED_DOMAIN", "example.org")
        clear_config_cache()

        config = load_app_config()
        assert config.is_production
        assert config.cookies.domain == ".example.org"
        assert config.cookies.same_site == "none"
        assert config.cookies.secure is True


class TestValidateEnvironment:
    """Tests for validate_environment."""

    def test_missing_required(self):
        """Missing required variables are errors."""
        result = validate_environment({})
        assert not result.ok
        assert any("READSPEED_APP_URL" in e for e in result.errors)
        assert any("READSPEED_SECRET_KEY" in e for e in result.errors)

    def test_malformed_values(self):
        """URLs must be http(s) and keys long enough."""
        result = validate_environment(
            {"READSPEED_APP_URL": "example.org", "READSPEED_SECRET_KEY": "short"}
        )
        assert "READSPEED_APP_URL must start with http:// or https://" in result.errors
        assert "READSPEED_SECRET_KEY appears to be invalid (too short)" in result.errors

    def test_valid_with_warnings(self):
        """Missing optional variables only warn."""
        result = validate_environment(
            {
                "READSPEED_APP_URL": "https://read.example.org",
                "READSPEED_SECRET_KEY": "x" * 32,
            }
        )
        assert result.ok
        assert any("LOG_LEVEL" in w for w in result.warnings)

    @pytest.mark.parametrize("name", ["READSPEED_ENV", "READSPEED_DB_PATH", "RATE_LIMIT_MAX"])
    def test_optional_present_no_warning(self, name):
        """Set optional variables produce no warning."""
        result = validate_environment(
            {
                "READSPEED_APP_URL": "https://read.example.org",
                "READSPEED_SECRET_KEY": "x" * 32,
                name: "set",
            }
        )
        assert not any(name in w for w in result.warnings)
