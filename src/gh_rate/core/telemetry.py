"""
Structured telemetry for rate limit tracking.
[CTX:PBI-1:1-5:TELEM]

This module provides structured logging capabilities for understanding:
- How much of the quota is left across observed responses
- When the placeholder is in use and when it gets replaced
- Out-of-order observations that were ignored
- Clock skew between this machine and the server
"""
import json
import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class TelemetryLevel(Enum):
    """Telemetry verbosity levels."""
    INFO = "info"
    DEBUG = "debug"


class TelemetryKind(Enum):
    """Tracker event types."""
    OBSERVED = "observed"        # First real snapshot replaced the placeholder
    PLACEHOLDER = "placeholder"  # Placeholder installed
    REPLACED = "replaced"        # Newer snapshot replaced the current one
    IGNORED = "ignored"          # Older or stale snapshot kept out
    SKEW = "skew"                # Server clock differs beyond threshold
    EXPIRED = "expired"          # Current snapshot past its reset date


# Kinds worth an INFO line; everything else is DEBUG unless verbose
_NOTABLE_KINDS = (
    TelemetryKind.SKEW.value,
    TelemetryKind.EXPIRED.value,
)


@dataclass
class TelemetryEvent:
    """
    A single telemetry event capturing tracker activity.

    Attributes:
        timestamp: ISO 8601 timestamp of event
        source: API host or client name the snapshot belongs to
        kind: Event kind (observed, replaced, skew, etc.)
        limit: Call ceiling of the snapshot involved
        remaining: Remaining calls of the snapshot involved
        reset_epoch_seconds: Server-declared reset
        reset_date: Skew-corrected reset, ISO 8601
        skew_seconds: Server minus local clock, when known
        headers_seen: Rate limit headers from the response
    """
    timestamp: str
    source: str
    kind: str
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_epoch_seconds: Optional[int] = None
    reset_date: Optional[str] = None
    skew_seconds: Optional[int] = None
    headers_seen: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for logging."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        """Convert event to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def to_keyvalue(self) -> str:
        """Convert event to key=value format."""
        pairs = []
        for key, value in self.to_dict().items():
            if isinstance(value, dict):
                # Flatten nested dicts
                for subkey, subval in value.items():
                    pairs.append(f"{key}.{subkey}={subval}")
            else:
                pairs.append(f"{key}={value}")
        return " ".join(pairs)


@dataclass
class TelemetryStats:
    """
    Aggregated statistics for telemetry analysis.

    Useful for tests and runtime monitoring.
    """
    total_events: int = 0
    events_by_kind: Dict[str, int] = field(default_factory=dict)
    min_remaining: Optional[int] = None
    max_abs_skew_seconds: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "total_events": self.total_events,
            "events_by_kind": self.events_by_kind,
            "min_remaining": self.min_remaining,
            "max_abs_skew_seconds": self.max_abs_skew_seconds,
        }


class TelemetryRecorder:
    """
    Records and emits structured telemetry for rate limit tracking.

    Features:
    - Structured logging in JSON or key=value format
    - Configurable verbosity (info/debug)
    - Optional in-memory statistics collection
    - Thread-safe operation
    """

    def __init__(
        self,
        level: TelemetryLevel = TelemetryLevel.INFO,
        format_json: bool = True,
        collect_stats: bool = False,
        max_events: int = 1000
    ):
        """
        Initialize telemetry recorder.

        Args:
            level: Logging verbosity level
            format_json: If True, log as JSON; otherwise use key=value
            collect_stats: If True, collect in-memory statistics
            max_events: Size of the event history; oldest events drop first
        """
        self.level = level
        self.format_json = format_json
        self.collect_stats = collect_stats

        self._stats = TelemetryStats()
        self._stats_lock = threading.Lock()

        # Event history (for testing)
        self._events: Deque[TelemetryEvent] = deque(maxlen=max_events)
        self._events_lock = threading.Lock()

    def record(self, event: TelemetryEvent) -> None:
        """
        Record a telemetry event.

        Args:
            event: Event to record
        """
        if self.format_json:
            log_message = f"[CTX:PBI-1:1-5:TELEM] {event.to_json()}"
        else:
            log_message = f"[CTX:PBI-1:1-5:TELEM] {event.to_keyvalue()}"

        if self.level == TelemetryLevel.DEBUG:
            logger.debug(log_message)
        elif event.kind == TelemetryKind.SKEW.value:
            logger.warning(log_message)
        elif event.kind in _NOTABLE_KINDS or event.remaining == 0:
            logger.info(log_message)
        else:
            logger.debug(log_message)

        if self.collect_stats:
            with self._stats_lock:
                self._stats.total_events += 1
                self._stats.events_by_kind[event.kind] = (
                    self._stats.events_by_kind.get(event.kind, 0) + 1
                )

                if event.remaining is not None and event.kind != TelemetryKind.PLACEHOLDER.value:
                    if self._stats.min_remaining is None or event.remaining < self._stats.min_remaining:
                        self._stats.min_remaining = event.remaining

                if event.skew_seconds is not None:
                    self._stats.max_abs_skew_seconds = max(
                        self._stats.max_abs_skew_seconds, abs(event.skew_seconds)
                    )

        with self._events_lock:
            self._events.append(event)

    def get_stats(self) -> TelemetryStats:
        """Get current statistics snapshot."""
        with self._stats_lock:
            return TelemetryStats(
                total_events=self._stats.total_events,
                events_by_kind=self._stats.events_by_kind.copy(),
                min_remaining=self._stats.min_remaining,
                max_abs_skew_seconds=self._stats.max_abs_skew_seconds,
            )

    def reset_stats(self) -> None:
        """Reset statistics."""
        with self._stats_lock:
            self._stats = TelemetryStats()

    def get_events(self) -> List[TelemetryEvent]:
        """Get all recorded events (for testing)."""
        with self._events_lock:
            return list(self._events)

    def clear_events(self) -> None:
        """Clear event history."""
        with self._events_lock:
            self._events.clear()


_global_recorder: Optional[TelemetryRecorder] = None
_recorder_lock = threading.Lock()


def get_recorder() -> TelemetryRecorder:
    """
    Get the global telemetry recorder instance.

    Creates a default recorder if none exists.
    """
    global _global_recorder

    if _global_recorder is None:
        with _recorder_lock:
            if _global_recorder is None:
                _global_recorder = TelemetryRecorder()

    return _global_recorder


def set_recorder(recorder: TelemetryRecorder) -> None:
    """
    Set the global telemetry recorder instance.

    Args:
        recorder: Recorder instance to use globally
    """
    global _global_recorder

    with _recorder_lock:
        _global_recorder = recorder


def create_event(
    source: str,
    kind: TelemetryKind,
    snapshot=None,
    skew_seconds: Optional[int] = None,
    headers_seen: Optional[Dict[str, str]] = None,
) -> TelemetryEvent:
    """
    Helper to create a telemetry event with current timestamp.

    Args:
        source: API host or client name
        kind: Event kind
        snapshot: RateLimitSnapshot the event is about, if any
        skew_seconds: Server minus local clock
        headers_seen: Relevant rate limit headers

    Returns:
        TelemetryEvent ready for recording
    """
    event = TelemetryEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        source=source,
        kind=kind.value,
        skew_seconds=skew_seconds,
        headers_seen=headers_seen or {},
    )
    if snapshot is not None:
        event.limit = snapshot.limit
        event.remaining = snapshot.remaining
        event.reset_epoch_seconds = snapshot.reset_epoch_seconds
        event.reset_date = snapshot.reset_date.isoformat()
    return event
