"""
Configuration module for rate limit tracking.

This module provides configuration loading and validation for the header names
a server uses to report its rate limit and for placeholder and skew settings.
"""
# [CTX:PBI-1:1-3:CFG]

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .snapshot import PLACEHOLDER_LIMIT, PLACEHOLDER_TTL_SECONDS


@dataclass
class HeaderConfig:
    """Names of the response headers carrying rate limit state."""

    limit: str = "X-RateLimit-Limit"
    remaining: str = "X-RateLimit-Remaining"
    reset: str = "X-RateLimit-Reset"
    date: str = "Date"


@dataclass
class TrackerConfig:
    """Configuration for a rate limit tracker."""

    headers: HeaderConfig = field(default_factory=HeaderConfig)
    placeholder_limit: int = PLACEHOLDER_LIMIT
    placeholder_ttl_seconds: int = PLACEHOLDER_TTL_SECONDS
    skew_warning_seconds: int = 300

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackerConfig":
        """Create TrackerConfig from dictionary."""
        headers_data = data.get("headers", {})
        headers = HeaderConfig(**headers_data) if headers_data else HeaderConfig()

        return cls(
            headers=headers,
            placeholder_limit=data.get("placeholder_limit", PLACEHOLDER_LIMIT),
            placeholder_ttl_seconds=data.get(
                "placeholder_ttl_seconds", PLACEHOLDER_TTL_SECONDS
            ),
            skew_warning_seconds=data.get("skew_warning_seconds", 300),
        )


def load_config(config_path: str | Path | None = None) -> TrackerConfig:
    """
    Load tracker configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        TrackerConfig with header names and placeholder settings

    Raises:
        yaml.YAMLError: If config file is invalid YAML
        ValueError: If config validation fails
    """
    if config_path is None:
        config_path = Path(__file__).parents[3] / "config" / "ratelimit.yml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        # Return default config if file doesn't exist
        return TrackerConfig()

    with open(config_path, "r") as f:
        data = yaml.safe_load(f)

    if not data:
        return TrackerConfig()

    config = TrackerConfig.from_dict(data)
    validate_config(config)
    return config


def validate_config(config: TrackerConfig) -> None:
    """
    Validate configuration.

    Args:
        config: Configuration to validate

    Raises:
        ValueError: If configuration is invalid
    """
    for name in ("limit", "remaining", "reset", "date"):
        if not getattr(config.headers, name):
            raise ValueError(f"Header name for {name} must not be empty")

    if config.placeholder_limit <= 0:
        raise ValueError("placeholder_limit must be positive")

    if config.placeholder_ttl_seconds <= 0:
        raise ValueError("placeholder_ttl_seconds must be positive")

    if config.skew_warning_seconds < 0:
        raise ValueError("skew_warning_seconds must not be negative")
