"""
Mapping of API responses onto rate limit snapshots.
[CTX:PBI-1:1-4:HDR]

Two response shapes carry rate limit state:
- X-RateLimit-* headers on any response, with the Date header giving the
  server's clock
- the JSON resource form returned by rate limit endpoints:
  {"limit": 5000, "remaining": 4999, "reset": 1372700873}
"""
import logging
from collections.abc import Mapping
from typing import Any, Dict, Optional

from .clock import TimeProvider
from .config import HeaderConfig
from .snapshot import RateLimitSnapshot, parse_http_date

logger = logging.getLogger(__name__)


def get_header(headers: Mapping, name: str) -> Optional[str]:
    """
    Look up a header by name, ignoring case.

    Args:
        headers: Response headers (plain dict or case-insensitive multidict)
        name: Header name

    Returns:
        Header value, or None if absent
    """
    value = headers.get(name)
    if value is not None:
        return value

    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def parse_rate_limit_headers(
    headers: Mapping,
    header_config: Optional[HeaderConfig] = None,
) -> Optional[Dict[str, Any]]:
    """
    Parse X-RateLimit-* headers from response.

    Values that are not integers are skipped.

    Returns:
        Dict with any of 'limit', 'remaining', 'reset' present, or None
    """
    header_config = header_config or HeaderConfig()
    result = {}

    for key in ("limit", "remaining", "reset"):
        raw = get_header(headers, getattr(header_config, key))
        if raw is None:
            continue
        try:
            result[key] = int(raw)
        except ValueError:
            # Some servers send the reset epoch as a float
            try:
                result[key] = int(float(raw))
            except (ValueError, OverflowError):
                logger.debug(f"Ignoring non-numeric {key} header value {raw!r}")

    return result if result else None


def extract_relevant_headers(
    headers: Mapping,
    header_config: Optional[HeaderConfig] = None,
) -> Dict[str, str]:
    """
    Extract rate limit headers for telemetry.

    Args:
        headers: Full response headers

    Returns:
        Dict of relevant headers keyed by configured name
    """
    header_config = header_config or HeaderConfig()
    relevant = {}

    for key in ("limit", "remaining", "reset", "date"):
        header_name = getattr(header_config, key)
        value = get_header(headers, header_name)
        if value is not None:
            relevant[header_name] = value

    return relevant


def snapshot_from_headers(
    headers: Mapping,
    header_config: Optional[HeaderConfig] = None,
    time_provider: Optional[TimeProvider] = None,
) -> Optional[RateLimitSnapshot]:
    """
    Build a snapshot from response headers.

    Args:
        headers: Response headers
        header_config: Header names (defaults to X-RateLimit-*)
        time_provider: Clock for the snapshot

    Returns:
        RateLimitSnapshot, or None unless limit, remaining and reset are all present
    """
    header_config = header_config or HeaderConfig()
    rate_info = parse_rate_limit_headers(headers, header_config)
    if not rate_info or len(rate_info) < 3:
        return None

    return RateLimitSnapshot.create(
        rate_info["limit"],
        rate_info["remaining"],
        rate_info["reset"],
        get_header(headers, header_config.date),
        time_provider=time_provider,
    )


def snapshot_from_dict(
    data: Mapping,
    updated_at: Optional[str] = None,
    time_provider: Optional[TimeProvider] = None,
) -> RateLimitSnapshot:
    """
    Build a snapshot from the JSON resource form.

    Args:
        data: Mapping with 'limit', 'remaining' and 'reset'
        updated_at: Date header of the response the payload came from

    Raises:
        KeyError: If a field is missing
    """
    return RateLimitSnapshot.create(
        int(data["limit"]),
        int(data["remaining"]),
        int(data["reset"]),
        updated_at,
        time_provider=time_provider,
    )


def compute_skew_seconds(
    updated_at: Optional[str],
    local_epoch_seconds: int,
) -> Optional[int]:
    """
    Server clock minus local clock, in seconds.

    Returns:
        Skew in seconds (positive when the server is ahead), or None if
        updated_at is missing or malformed
    """
    server_epoch_seconds = parse_http_date(updated_at)
    if server_epoch_seconds is None:
        return None
    return server_epoch_seconds - local_epoch_seconds
