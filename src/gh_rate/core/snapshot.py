"""
Point-in-time rate limit observation.
[CTX:PBI-1:1-2:SNAP]

A RateLimitSnapshot is built once per API response that carries rate limit
headers (or as a placeholder before the first response) and is never updated
in place. The interesting part is the reset date: the server reports the reset
as an absolute epoch, which is only meaningful against the server's clock. The
snapshot re-anchors that distance onto the local clock so callers comparing
against local time get an accurate or slightly late estimate.
"""
import logging
from dataclasses import InitVar, dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from .clock import TimeProvider, system_time

logger = logging.getLogger(__name__)

PLACEHOLDER_LIMIT = 1_000_000
PLACEHOLDER_TTL_SECONDS = 60 * 60

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MAX_DATE = datetime.max.replace(tzinfo=timezone.utc)
_MIN_DATE = datetime.min.replace(tzinfo=timezone.utc)


def parse_http_date(value: Optional[str]) -> Optional[int]:
    """
    Parse an RFC 1123 HTTP date (e.g. a ``Date`` response header).

    Args:
        value: Header value, may be None or blank

    Returns:
        Epoch seconds, or None if the value is missing or malformed
    """
    if value is None or not value.strip():
        return None

    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug(f"Malformed Date header value {value!r}", exc_info=True)
        return None

    # "-0000" yields a naive datetime; HTTP dates are always GMT
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def epoch_to_datetime(epoch_seconds: int) -> datetime:
    """
    Convert epoch seconds to an aware UTC datetime.

    Values beyond what datetime can hold are clamped to datetime.max or
    datetime.min, so a far-future reset never expires and a far-past one
    always has.
    """
    try:
        return _EPOCH + timedelta(seconds=epoch_seconds)
    except OverflowError:
        logger.debug(f"Reset epoch {epoch_seconds} out of datetime range, clamping")
        return _MAX_DATE if epoch_seconds > 0 else _MIN_DATE


@dataclass(frozen=True)
class RateLimitSnapshot:
    """
    Immutable rate limit state observed from a single response.

    Attributes:
        limit: Maximum calls allowed per window
        remaining: Calls left in the window when observed
        reset_epoch_seconds: Server-declared reset time, uncorrected
        time_provider: Clock used for the creation time and expiry checks
        created_at_epoch_seconds: Local epoch seconds at construction
        reset_date: Skew-corrected reset instant (UTC)

    Values are not validated; whatever the server sent is kept as-is.
    """

    limit: int
    remaining: int
    reset_epoch_seconds: int
    updated_at: InitVar[Optional[str]] = None
    time_provider: TimeProvider = field(
        default_factory=system_time, compare=False, repr=False
    )
    created_at_epoch_seconds: Optional[int] = field(default=None, compare=False)
    updated_at_epoch_seconds: Optional[int] = field(
        default=None, init=False, compare=False, repr=False
    )
    reset_date: datetime = field(init=False)

    def __post_init__(self, updated_at: Optional[str]) -> None:
        if self.created_at_epoch_seconds is None:
            object.__setattr__(
                self, "created_at_epoch_seconds", self.time_provider.now_epoch_seconds()
            )
        self.recalculate_reset_date(updated_at)

    @classmethod
    def create(
        cls,
        limit: int,
        remaining: int,
        reset_epoch_seconds: int,
        updated_at: Optional[str] = None,
        *,
        time_provider: Optional[TimeProvider] = None,
    ) -> "RateLimitSnapshot":
        """
        Build a snapshot from one response's rate limit fields.

        Args:
            limit: Call ceiling for the window
            remaining: Calls left in the window
            reset_epoch_seconds: Server-declared reset, epoch seconds
            updated_at: The response ``Date`` header (RFC 1123), if any
            time_provider: Clock to capture creation time (defaults to system time)
        """
        return cls(
            limit,
            remaining,
            reset_epoch_seconds,
            updated_at,
            time_provider=time_provider or system_time(),
        )

    @classmethod
    def placeholder(
        cls,
        *,
        time_provider: Optional[TimeProvider] = None,
        limit: int = PLACEHOLDER_LIMIT,
        ttl_seconds: int = PLACEHOLDER_TTL_SECONDS,
    ) -> "RateLimitSnapshot":
        """
        Snapshot to use before the real limit is known.

        It does not expire for ttl_seconds, so asking for the rate limit
        repeatedly does not trigger one fetch per call.
        """
        time_provider = time_provider or system_time()
        return cls(
            limit,
            limit,
            time_provider.now_epoch_seconds() + ttl_seconds,
            time_provider=time_provider,
        )

    def recalculate_reset_date(self, updated_at: Optional[str] = None) -> datetime:
        """
        Recompute the reset date from the server's notion of "now".

        Only the derived reset_date changes; the observed values stay fixed.

        Args:
            updated_at: The response ``Date`` header (RFC 1123). When missing
                or malformed the local creation time is used instead.

        Returns:
            The new reset date
        """
        updated_at_epoch_seconds = parse_http_date(updated_at)
        object.__setattr__(self, "updated_at_epoch_seconds", updated_at_epoch_seconds)
        if updated_at_epoch_seconds is None:
            updated_at_epoch_seconds = self.created_at_epoch_seconds

        # Accurate when clocks agree, slightly late when they don't
        seconds_until_reset = self.reset_epoch_seconds - updated_at_epoch_seconds
        reset_date = epoch_to_datetime(self.created_at_epoch_seconds + seconds_until_reset)
        object.__setattr__(self, "reset_date", reset_date)
        return reset_date

    def is_expired(self) -> bool:
        """True if the reset date has passed."""
        return self.reset_date.timestamp() < self.time_provider.now()

    def seconds_until_reset(self) -> float:
        """Seconds from now until the reset date, negative once expired."""
        return self.reset_date.timestamp() - self.time_provider.now()

    def skew_seconds(self) -> Optional[int]:
        """
        Server clock minus local clock at construction.

        Returns:
            Skew in seconds (positive when the server is ahead), or None if
            the last recalculation had no usable Date header
        """
        if self.updated_at_epoch_seconds is None:
            return None
        return self.updated_at_epoch_seconds - self.created_at_epoch_seconds
