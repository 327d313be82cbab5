"""Configuration package for ReadSpeed."""

from readspeed.config.app_config import (
    AppConfig,
    AuthConfig,
    CookieConfig,
    RateLimitConfig,
    clear_config_cache,
    load_app_config,
    validate_environment,
)

__all__ = [
    "AppConfig",
    "AuthConfig",
    "CookieConfig",
    "RateLimitConfig",
    "clear_config_cache",
    "load_app_config",
    "validate_environment",
]
