"""
Unit tests for mapping responses onto snapshots.
"""
# [CTX:PBI-1:1-4:HDR]

from datetime import datetime, timezone
from email.utils import formatdate

import pytest

from gh_rate.core import (
    FakeTimeProvider,
    HeaderConfig,
    compute_skew_seconds,
    parse_rate_limit_headers,
    snapshot_from_dict,
    snapshot_from_headers,
)
from gh_rate.core.headers import extract_relevant_headers, get_header
from gh_rate.core.snapshot import epoch_to_datetime

NOW = 1_700_000_000


@pytest.fixture
def fake_time():
    """Fixture providing fake time provider."""
    return FakeTimeProvider(initial_time=NOW)


@pytest.fixture
def github_headers():
    """Fixture providing headers shaped like a GitHub API response."""
    return {
        "Content-Type": "application/json",
        "X-RateLimit-Limit": "5000",
        "X-RateLimit-Remaining": "4987",
        "X-RateLimit-Reset": str(NOW + 1200),
        "Date": formatdate(NOW + 30, usegmt=True),
    }


class TestParseHeaders:
    """Test parsing of X-RateLimit-* headers."""

    def test_parse_all(self, github_headers):
        """Test all three values are parsed as integers."""
        assert parse_rate_limit_headers(github_headers) == {
            "limit": 5000,
            "remaining": 4987,
            "reset": NOW + 1200,
        }

    def test_case_insensitive(self):
        """Test lower-case header names still match."""
        headers = {
            "x-ratelimit-limit": "60",
            "x-ratelimit-remaining": "0",
            "x-ratelimit-reset": "123",
        }

        assert parse_rate_limit_headers(headers) == {
            "limit": 60,
            "remaining": 0,
            "reset": 123,
        }

    def test_float_reset(self):
        """Test a fractional reset epoch is truncated."""
        result = parse_rate_limit_headers({"X-RateLimit-Reset": "1700000000.75"})

        assert result == {"reset": 1_700_000_000}

    def test_non_numeric_skipped(self):
        """Test garbage values are skipped instead of raising."""
        headers = {"X-RateLimit-Limit": "lots", "X-RateLimit-Remaining": "3"}

        assert parse_rate_limit_headers(headers) == {"remaining": 3}

    @pytest.mark.parametrize("value", ["inf", "-inf", "nan", "1e400"])
    def test_non_finite_skipped(self, value):
        """Test non-finite values are skipped instead of raising."""
        headers = {
            "X-RateLimit-Limit": "5000",
            "X-RateLimit-Remaining": "1",
            "X-RateLimit-Reset": value,
        }

        assert parse_rate_limit_headers(headers) == {"limit": 5000, "remaining": 1}
        assert snapshot_from_headers(headers) is None

    def test_no_headers(self):
        """Test response without rate limit headers yields None."""
        assert parse_rate_limit_headers({"Content-Type": "text/html"}) is None

    def test_custom_header_names(self):
        """Test configured header names are used."""
        config = HeaderConfig(
            limit="RateLimit-Limit",
            remaining="RateLimit-Remaining",
            reset="RateLimit-Reset",
        )
        headers = {
            "RateLimit-Limit": "10",
            "RateLimit-Remaining": "9",
            "RateLimit-Reset": "55",
        }

        assert parse_rate_limit_headers(headers, config) == {
            "limit": 10,
            "remaining": 9,
            "reset": 55,
        }

    def test_get_header_prefers_exact(self):
        """Test exact match wins over case-insensitive scan."""
        assert get_header({"Date": "a", "date": "b"}, "Date") == "a"
        assert get_header({"date": "b"}, "Date") == "b"
        assert get_header({}, "Date") is None

    def test_extract_relevant(self, github_headers):
        """Test only rate limit and date headers are kept for telemetry."""
        relevant = extract_relevant_headers(github_headers)

        assert "Content-Type" not in relevant
        assert relevant["X-RateLimit-Remaining"] == "4987"
        assert "Date" in relevant


class TestSnapshotFromHeaders:
    """Test building snapshots from headers."""

    def test_snapshot_with_date(self, github_headers, fake_time):
        """Test the Date header drives skew correction."""
        snapshot = snapshot_from_headers(github_headers, time_provider=fake_time)

        assert snapshot.limit == 5000
        assert snapshot.remaining == 4987
        assert snapshot.reset_epoch_seconds == NOW + 1200
        assert snapshot.reset_date == epoch_to_datetime(NOW + 1170)

    def test_snapshot_without_date(self, github_headers, fake_time):
        """Test missing Date header falls back to local time."""
        del github_headers["Date"]

        snapshot = snapshot_from_headers(github_headers, time_provider=fake_time)

        assert snapshot.reset_date == epoch_to_datetime(NOW + 1200)

    def test_huge_float_reset(self, fake_time):
        """Test a finite but out-of-range reset yields a clamped snapshot."""
        headers = {
            "X-RateLimit-Limit": "5000",
            "X-RateLimit-Remaining": "1",
            "X-RateLimit-Reset": "1e20",
        }

        snapshot = snapshot_from_headers(headers, time_provider=fake_time)

        assert snapshot.reset_epoch_seconds == 10 ** 20
        assert snapshot.reset_date == datetime.max.replace(tzinfo=timezone.utc)
        assert not snapshot.is_expired()

    def test_incomplete_headers(self, fake_time):
        """Test partial headers do not produce a snapshot."""
        headers = {"X-RateLimit-Limit": "60", "X-RateLimit-Remaining": "59"}

        assert snapshot_from_headers(headers, time_provider=fake_time) is None


class TestSnapshotFromDict:
    """Test building snapshots from the JSON resource form."""

    def test_from_resource(self, fake_time):
        """Test a rate limit resource payload."""
        payload = {"limit": 30, "remaining": 18, "reset": NOW + 60, "used": 12}

        snapshot = snapshot_from_dict(payload, time_provider=fake_time)

        assert snapshot.limit == 30
        assert snapshot.remaining == 18
        assert snapshot.reset_date == epoch_to_datetime(NOW + 60)

    def test_from_resource_with_date(self, fake_time):
        """Test payload combined with the response Date header."""
        payload = {"limit": "30", "remaining": "18", "reset": str(NOW + 60)}

        snapshot = snapshot_from_dict(
            payload, formatdate(NOW - 15, usegmt=True), time_provider=fake_time
        )

        assert snapshot.reset_date == epoch_to_datetime(NOW + 75)

    def test_missing_field(self, fake_time):
        """Test missing field raises KeyError."""
        with pytest.raises(KeyError):
            snapshot_from_dict({"limit": 30, "remaining": 18}, time_provider=fake_time)


class TestSkew:
    """Test clock skew computation."""

    def test_server_ahead(self):
        """Test positive skew when server clock is ahead."""
        assert compute_skew_seconds(formatdate(NOW + 50, usegmt=True), NOW) == 50

    def test_server_behind(self):
        """Test negative skew when server clock is behind."""
        assert compute_skew_seconds(formatdate(NOW - 8, usegmt=True), NOW) == -8

    def test_unknown(self):
        """Test no skew for missing or malformed dates."""
        assert compute_skew_seconds(None, NOW) is None
        assert compute_skew_seconds("yesterday", NOW) is None
