"""Core types for tracking an API client's rate limit state."""

from gh_rate.core.clock import (
    FakeTimeProvider,
    SystemTimeProvider,
    TimeProvider,
)
from gh_rate.core.config import (
    HeaderConfig,
    TrackerConfig,
    load_config,
    validate_config,
)
from gh_rate.core.headers import (
    compute_skew_seconds,
    parse_rate_limit_headers,
    snapshot_from_dict,
    snapshot_from_headers,
)
from gh_rate.core.snapshot import RateLimitSnapshot, parse_http_date
from gh_rate.core.tracker import RateLimitTracker, TrackerStats

__all__ = [
    # clock
    "FakeTimeProvider",
    "SystemTimeProvider",
    "TimeProvider",
    # config
    "HeaderConfig",
    "TrackerConfig",
    "load_config",
    "validate_config",
    # headers
    "compute_skew_seconds",
    "parse_rate_limit_headers",
    "snapshot_from_dict",
    "snapshot_from_headers",
    # snapshot
    "RateLimitSnapshot",
    "parse_http_date",
    # tracker
    "RateLimitTracker",
    "TrackerStats",
]
