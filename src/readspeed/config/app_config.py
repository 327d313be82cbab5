"""Application configuration loader.

Loads settings from built-in defaults, overlaid by the optional YAML file
data/config/readspeed.yaml, overlaid by environment variables.

Usage:
    from readspeed.config.app_config import load_app_config

    config = load_app_config()
    limit = config.rate_limit.max_requests
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/readspeed.yaml")

APP_NAME = "ReadSpeed"
APP_VERSION = "0.1.0"


@dataclass
class AuthConfig:
    """Session and one-time code settings."""

    session_ttl_hours: int = 24 * 7
    otp_ttl_minutes: int = 15
    auto_confirm: bool = True
    min_password_length: int = 6
    secret_key: str = "dev-insecure-secret-key-change-me"


@dataclass
class RateLimitConfig:
    """Fixed-window rate limits."""

    max_requests: int = 100
    window_ms: int = 60000
    auth_max_requests: int = 5
    auth_window_ms: int = 15 * 60 * 1000


@dataclass
class GoalsConfig:
    """Default reading goals."""

    weekly_pages_default: int = 200


@dataclass
class FeaturesConfig:
    """Deployment-wide feature switches."""

    exercises_enabled: bool = True


@dataclass
class CookieConfig:
    """Session cookie attributes."""

    name: str = "readspeed-session"
    domain: str | None = None
    same_site: str = "lax"
    secure: bool = False


@dataclass
class PathsConfig:
    """Filesystem locations."""

    db_path: str = "db/readspeed.db"
    storage_dir: str = "data/storage"


@dataclass
class AppConfig:
    """Application-wide configuration."""

    environment: str = "development"
    domain: str = "coolifyai.com"
    app_url: str = "http://localhost:8000"
    log_level: str = "info"
    auth: AuthConfig = field(default_factory=AuthConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    goals: GoalsConfig = field(default_factory=GoalsConfig)
    features: FeaturesConfig = field(default_factory=FeaturesConfig)
    cookies: CookieConfig = field(default_factory=CookieConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "environment": "development",
        "domain": "coolifyai.com",
        "app_url": "http://localhost:8000",
        "log_level": "info",
        "auth": {
            "session_ttl_hours": 24 * 7,
            "otp_ttl_minutes": 15,
            "auto_confirm": True,
        },
        "rate_limit": {
            "max_requests": 100,
            "window_ms": 60000,
            "auth_max_requests": 5,
            "auth_window_ms": 15 * 60 * 1000,
        },
        "goals": {"weekly_pages_default": 200},
        "features": {"exercises_enabled": True},
        "paths": {
            "db_path": "db/readspeed.db",
            "storage_dir": "data/storage",
        },
    }


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# (env var, section or None, key, converter)
_ENV_OVERRIDES: list[tuple[str, str | None, str, Any]] = [
    ("READSPEED_ENV", None, "environment", str),
    ("READSPEED_DOMAIN", None, "domain", str),
    ("READSPEED_APP_URL", None, "app_url", str),
    ("LOG_LEVEL", None, "log_level", str),
    ("FEATURES_EXERCISES", "features", "exercises_enabled", _parse_bool),
    ("DEFAULT_WEEKLY_PAGE_GOAL", "goals", "weekly_pages_default", int),
    ("RATE_LIMIT_MAX", "rate_limit", "max_requests", int),
    ("RATE_LIMIT_WINDOW", "rate_limit", "window_ms", int),
    ("AUTH_RATE_LIMIT_MAX", "rate_limit", "auth_max_requests", int),
    ("READSPEED_DB_PATH", "paths", "db_path", str),
    ("READSPEED_STORAGE_DIR", "paths", "storage_dir", str),
    ("SESSION_TTL_HOURS", "auth", "session_ttl_hours", int),
    ("OTP_TTL_MINUTES", "auth", "otp_ttl_minutes", int),
    ("AUTH_AUTO_CONFIRM", "auth", "auto_confirm", _parse_bool),
    ("READSPEED_SECRET_KEY", "auth", "secret_key", str),
]


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge overlay into a copy of base."""
    result = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay environment variables onto the config dictionary."""
    for env_name, section, key, convert in _ENV_OVERRIDES:
        raw = os.environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError:
            logger.warning("config.invalid_env_value", name=env_name, value=raw)
            continue
        if section is None:
            data[key] = value
        else:
            data.setdefault(section, {})[key] = value
    return data


def _build_cookie_config(environment: str, domain: str) -> CookieConfig:
    if environment == "production":
        return CookieConfig(domain=f".{domain}", same_site="none", secure=True)
    return CookieConfig()


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    environment = data.get("environment", "development")
    domain = data.get("domain", "coolifyai.com")

    return AppConfig(
        environment=environment,
        domain=domain,
        app_url=data.get("app_url", "http://localhost:8000"),
        log_level=str(data.get("log_level", "info")).lower(),
        auth=AuthConfig(**data.get("auth", {})),
        rate_limit=RateLimitConfig(**data.get("rate_limit", {})),
        goals=GoalsConfig(**data.get("goals", {})),
        features=FeaturesConfig(**data.get("features", {})),
        cookies=_build_cookie_config(environment, domain),
        paths=PathsConfig(**data.get("paths", {})),
    )


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data = _get_defaults()

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        file_data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
        data = _merge(data, file_data)
    else:
        logger.debug("using_default_config")

    _cached_config = _parse_config(_apply_env(data))
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when the environment is modified at runtime.
    """
    global _cached_config
    _cached_config = None


# =============================================================================
# ENVIRONMENT VALIDATION
# =============================================================================

REQUIRED_ENV_VARS: dict[str, str] = {
    "READSPEED_APP_URL": "Public URL of the application",
    "READSPEED_SECRET_KEY": "Secret used to sign one-time codes",
}

OPTIONAL_ENV_VARS: dict[str, str] = {
    "READSPEED_ENV": "Deployment environment (development/production)",
    "READSPEED_DOMAIN": "Cookie domain",
    "READSPEED_DB_PATH": "SQLite database path",
    "READSPEED_STORAGE_DIR": "Object storage directory",
    "LOG_LEVEL": "Log level",
    "RATE_LIMIT_MAX": "Requests per rate-limit window",
    "RATE_LIMIT_WINDOW": "Rate-limit window in milliseconds",
}


@dataclass
class EnvValidationResult:
    """Outcome of an environment check."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_environment(env: dict[str, str] | None = None) -> EnvValidationResult:
    """Check that deployment environment variables are present and sane.

    Args:
        env: Mapping to check. Defaults to os.environ.

    Returns:
        EnvValidationResult listing errors (missing or malformed required
        variables) and warnings (missing optional variables).
    """
    env = dict(os.environ) if env is None else env
    result = EnvValidationResult()

    for name, description in REQUIRED_ENV_VARS.items():
        value = env.get(name, "")
        if not value:
            result.errors.append(f"Missing {name} ({description})")
            continue
        if name.endswith("_URL") and not value.startswith("http"):
            result.errors.append(f"{name} must start with http:// or https://")
        if name.endswith("_KEY") and len(value) < 20:
            result.errors.append(f"{name} appears to be invalid (too short)")

    for name, description in OPTIONAL_ENV_VARS.items():
        if not env.get(name):
            result.warnings.append(f"{name} not set ({description})")

    return result
