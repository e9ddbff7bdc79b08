"""
Holder of the current rate limit snapshot for one API client.
[CTX:PBI-1:1-6:TRACK]

Snapshots are immutable, so the only shared mutable state is which snapshot
is current. Concurrent responses may arrive out of order; the tracker keeps
whichever observation describes the later state of the quota.
"""
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .clock import SystemTimeProvider, TimeProvider
from .config import TrackerConfig
from .headers import extract_relevant_headers, snapshot_from_headers
from .snapshot import RateLimitSnapshot
from .telemetry import TelemetryKind, create_event, get_recorder

logger = logging.getLogger(__name__)


@dataclass
class TrackerStats:
    """Counters for tracker telemetry."""

    observations_total: int = 0
    observations_ignored: int = 0
    replacements: int = 0
    skew_warnings: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "observations_total": self.observations_total,
            "observations_ignored": self.observations_ignored,
            "replacements": self.replacements,
            "skew_warnings": self.skew_warnings,
        }


class RateLimitTracker:
    """
    Thread-safe owner of the current RateLimitSnapshot.

    The tracker only reports state. Whether to wait when remaining hits zero
    is up to the caller.
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        time_provider: Optional[TimeProvider] = None,
        source: str = "",
    ):
        """
        Initialize tracker with a placeholder snapshot.

        Args:
            config: Header names and placeholder settings
            time_provider: Optional time provider (defaults to system time)
            source: Name used in telemetry (e.g. API host)
        """
        self.config = config or TrackerConfig()
        self.time_provider = time_provider or SystemTimeProvider()
        self.source = source

        self._lock = threading.Lock()
        self._current = RateLimitSnapshot.placeholder(
            time_provider=self.time_provider,
            limit=self.config.placeholder_limit,
            ttl_seconds=self.config.placeholder_ttl_seconds,
        )
        self._is_placeholder = True
        self._expiry_reported = False

        self._stats = TrackerStats()
        self._stats_lock = threading.Lock()

        get_recorder().record(
            create_event(self.source, TelemetryKind.PLACEHOLDER, self._current)
        )

    @property
    def is_placeholder(self) -> bool:
        """True until the first real observation has been accepted."""
        with self._lock:
            return self._is_placeholder

    def current(self) -> RateLimitSnapshot:
        """Return the snapshot currently in effect."""
        with self._lock:
            return self._current

    def _should_replace(self, snapshot: RateLimitSnapshot) -> bool:
        current = self._current
        if self._is_placeholder or current.is_expired():
            return True
        if snapshot.reset_epoch_seconds > current.reset_epoch_seconds:
            return True
        # Same window: fewer calls remaining means a later response
        return (
            snapshot.reset_epoch_seconds == current.reset_epoch_seconds
            and snapshot.remaining <= current.remaining
        )

    def observe(
        self,
        snapshot: RateLimitSnapshot,
        headers_seen: Optional[Dict[str, str]] = None,
    ) -> RateLimitSnapshot:
        """
        Offer a freshly observed snapshot.

        Args:
            snapshot: Snapshot built from a response
            headers_seen: Rate limit headers for telemetry

        Returns:
            The snapshot in effect after the offer
        """
        with self._lock:
            was_placeholder = self._is_placeholder
            replace = self._should_replace(snapshot)
            if replace:
                self._current = snapshot
                self._is_placeholder = False
                self._expiry_reported = False
            result = self._current

        with self._stats_lock:
            self._stats.observations_total += 1
            if replace:
                self._stats.replacements += 1
            else:
                self._stats.observations_ignored += 1

        if not replace:
            kind = TelemetryKind.IGNORED
        elif was_placeholder:
            kind = TelemetryKind.OBSERVED
        else:
            kind = TelemetryKind.REPLACED
        get_recorder().record(
            create_event(self.source, kind, snapshot, headers_seen=headers_seen)
        )

        if snapshot.remaining == 0 and replace:
            logger.info(
                f"[CTX:PBI-1:1-6:TRACK] Rate limit exhausted for {self.source or 'client'}, "
                f"resets at {snapshot.reset_date.isoformat()}"
            )

        return result

    def observe_headers(self, headers: Mapping) -> Optional[RateLimitSnapshot]:
        """
        Build a snapshot from response headers and offer it.

        Args:
            headers: Response headers

        Returns:
            The snapshot in effect, or None if the response had no rate limit headers
        """
        header_config = self.config.headers
        snapshot = snapshot_from_headers(
            headers, header_config, time_provider=self.time_provider
        )
        if snapshot is None:
            return None

        relevant_headers = extract_relevant_headers(headers, header_config)

        skew = snapshot.skew_seconds()
        if skew is not None and abs(skew) > self.config.skew_warning_seconds:
            with self._stats_lock:
                self._stats.skew_warnings += 1
            get_recorder().record(
                create_event(
                    self.source,
                    TelemetryKind.SKEW,
                    snapshot,
                    skew_seconds=skew,
                    headers_seen=relevant_headers,
                )
            )

        return self.observe(snapshot, headers_seen=relevant_headers)

    def needs_refresh(self) -> bool:
        """True if the current snapshot is past its reset date."""
        with self._lock:
            expired = self._current.is_expired()
            report = expired and not self._expiry_reported
            if report:
                self._expiry_reported = True
            current = self._current

        if report:
            get_recorder().record(
                create_event(self.source, TelemetryKind.EXPIRED, current)
            )
        return expired

    def get_stats(self) -> TrackerStats:
        """Get current statistics."""
        with self._stats_lock:
            return TrackerStats(
                observations_total=self._stats.observations_total,
                observations_ignored=self._stats.observations_ignored,
                replacements=self._stats.replacements,
                skew_warnings=self._stats.skew_warnings,
            )

    def reset_stats(self) -> None:
        """Reset statistics."""
        with self._stats_lock:
            self._stats = TrackerStats()
