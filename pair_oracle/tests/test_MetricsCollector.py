"""Unit tests for MetricsCollector."""

from dataclasses import FrozenInstanceError
from unittest.mock import patch

import pytest

from pair_oracle.src.MetricsCollector import MetricsCollector


class TestCounters:
    """Test request and cache counters."""

    def test_initial_state(self) -> None:
        """A new collector starts at zero."""
        snapshot = MetricsCollector(total_sources=5).snapshot()
        assert snapshot.total_requests == 0
        assert snapshot.error_rate == 0.0
        assert snapshot.total_sources == 5
        assert snapshot.cache_hit_rate == 0.0

    def test_cache_hit_rate(self) -> None:
        """Hit rate is hits over requests."""
        metrics = MetricsCollector()
        for _ in range(4):
            metrics.record_request()
        metrics.record_cache_hit()
        metrics.record_cache_miss()

        snapshot = metrics.snapshot()
        assert snapshot.cache_hits == 1
        assert snapshot.cache_misses == 1
        assert snapshot.cache_hit_rate == 0.25

    @patch("pair_oracle.src.MetricsCollector.time.time")
    def test_price_update_stamps_time(self, mock_time) -> None:
        """A price update records the time in ms."""
        mock_time.return_value = 42.5
        metrics = MetricsCollector()
        metrics.record_price_update()

        snapshot = metrics.snapshot()
        assert snapshot.price_updates == 1
        assert snapshot.last_update_time == 42_500


class TestErrorRate:
    """Test the sticky decayed error rate."""

    def test_decay_formula(self) -> None:
        """Each error applies rate * 0.9 + 0.1."""
        metrics = MetricsCollector()
        metrics.record_error()
        assert metrics.error_rate == pytest.approx(0.1)
        metrics.record_error()
        assert metrics.error_rate == pytest.approx(0.19)

    def test_never_decays_on_success(self) -> None:
        """Successful requests leave the rate untouched."""
        metrics = MetricsCollector()
        metrics.record_error()
        for _ in range(10):
            metrics.record_request()
            metrics.record_price_update()
            metrics.record_response_time(5.0)
        assert metrics.error_rate == pytest.approx(0.1)


class TestResponseTime:
    """Test the latency moving average."""

    def test_average(self) -> None:
        """Average covers all retained samples."""
        metrics = MetricsCollector()
        metrics.record_response_time(10.0)
        metrics.record_response_time(20.0)
        assert metrics.snapshot().average_response_time == 15.0

    def test_halves_after_limit(self) -> None:
        """Beyond 1000 samples only the most recent 500 are kept."""
        metrics = MetricsCollector()
        for _ in range(1000):
            metrics.record_response_time(1.0)
        assert metrics.sample_count == 1000

        metrics.record_response_time(1.0)
        assert metrics.sample_count == 500

        metrics.record_response_time(1.0)
        assert metrics.sample_count == 501

    def test_average_over_retained(self) -> None:
        """The average ignores dropped samples."""
        metrics = MetricsCollector()
        for _ in range(501):
            metrics.record_response_time(100.0)
        for _ in range(500):
            metrics.record_response_time(2.0)
        # 1001 samples: the last 500 are all 2.0
        assert metrics.snapshot().average_response_time == 2.0


class TestSnapshot:
    """Test snapshot immutability."""

    def test_snapshot_is_frozen(self) -> None:
        """Snapshots cannot be mutated."""
        snapshot = MetricsCollector().snapshot()
        with pytest.raises(FrozenInstanceError):
            snapshot.total_requests = 5

    def test_snapshot_is_copy(self) -> None:
        """Later updates do not change an earlier snapshot."""
        metrics = MetricsCollector()
        snapshot = metrics.snapshot()
        metrics.record_request()
        metrics.set_sources_online(3)
        assert snapshot.total_requests == 0
        assert snapshot.sources_online == 0
        assert metrics.snapshot().sources_online == 3
