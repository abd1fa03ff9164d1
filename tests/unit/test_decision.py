"""Unit tests for the health monitor and decision engine."""

import threading

import pytest

from meal_suggest.fallback.decision import DecisionEngine, HealthMonitor
from meal_suggest.models.models import FallbackLevel


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def health(clock):
    return HealthMonitor(window_seconds=900, down_after_failures=3, clock=clock)


@pytest.fixture
def engine(health):
    return DecisionEngine(health, min_samples=2, error_rate_threshold=0.5, latency_ceiling_seconds=8, quality_floor=0.6)


class TestHealthMonitor:
    """Test the rolling health window."""

    def test_empty_status(self, health):
        """Test that an unknown provider reports no samples."""
        status = health.status("primary")

        assert status.sample_count == 0
        assert status.error_rate == 0.0
        assert not status.is_down

    def test_error_rate_and_latency(self, health):
        """Test that error rate and average latency cover the window."""
        health.record("primary", success=True, latency_seconds=1.0, quality=0.9)
        health.record("primary", success=False, latency_seconds=3.0)

        status = health.status("primary")

        assert status.sample_count == 2
        assert status.error_rate == 0.5
        assert status.average_latency_seconds == 2.0
        assert status.quality_trend == 0.9

    def test_consecutive_failures_mark_down(self, health):
        """Test that three failures in a row mark the provider down until a success."""
        for _ in range(3):
            health.record("primary", success=False, latency_seconds=1.0)
        assert health.status("primary").is_down

        health.record("primary", success=True, latency_seconds=1.0)
        assert not health.status("primary").is_down

    def test_old_samples_leave_the_window(self, health, clock):
        """Test that samples older than the window are pruned."""
        health.record("primary", success=False, latency_seconds=1.0)

        clock.now += 901

        assert health.status("primary").sample_count == 0

    def test_providers_are_tracked_separately(self, health):
        """Test that samples are keyed by provider."""
        health.record("primary", success=False, latency_seconds=1.0)

        assert health.status("secondary").sample_count == 0

    def test_concurrent_records_are_not_lost(self, health):
        """Test that parallel writers never drop samples."""
        threads = [
            threading.Thread(target=lambda: [health.record("primary", True, 0.1) for _ in range(50)])
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert health.status("primary").sample_count == 400

    def test_reset(self, health):
        """Test that reset returns to cold start."""
        health.record("primary", success=False, latency_seconds=1.0)

        health.reset()

        assert health.status("primary").sample_count == 0


class TestDecisionEngine:
    """Test starting-level selection."""

    def test_cold_start_uses_primary(self, engine, request_factory):
        """Test that too few samples means starting at primary."""
        level, reason = engine.starting_level(request_factory())

        assert level is FallbackLevel.PRIMARY
        assert "cold start" in reason

    def test_healthy_primary(self, engine, health, request_factory):
        """Test that a healthy primary is used."""
        health.record("primary", True, 1.0, quality=0.9)
        health.record("primary", True, 1.0, quality=0.9)

        assert engine.starting_level(request_factory())[0] is FallbackLevel.PRIMARY

    def test_high_error_rate_starts_at_cached(self, engine, health, request_factory):
        """Test that an erroring primary sends ordinary requests to the cache level."""
        health.record("primary", False, 1.0)
        health.record("primary", False, 1.0)

        level, reason = engine.starting_level(request_factory())

        assert level is FallbackLevel.CACHED
        assert "unhealthy" in reason

    def test_high_error_rate_with_quality_demand_starts_at_rule_based(self, engine, health, request_factory):
        """Test that high-quality requests go to rule-based instead of the cache."""
        health.record("primary", False, 1.0)
        health.record("primary", False, 1.0)
        request = request_factory().model_copy(update={"requires_high_quality": True})

        assert engine.starting_level(request)[0] is FallbackLevel.RULE_BASED

    def test_slow_primary_starts_at_secondary(self, engine, health, request_factory):
        """Test that latency above the ceiling starts at secondary."""
        health.record("primary", True, 10.0)
        health.record("primary", True, 10.0)

        level, reason = engine.starting_level(request_factory())

        assert level is FallbackLevel.SECONDARY
        assert "slow" in reason

    def test_low_quality_trend(self, engine, health, request_factory):
        """Test that a low quality trend starts at rule-based, or secondary when tolerated."""
        health.record("primary", True, 1.0, quality=0.4)
        health.record("primary", True, 1.0, quality=0.4)
        tolerant = request_factory().model_copy(update={"tolerates_lower_quality": True})

        assert engine.starting_level(request_factory())[0] is FallbackLevel.RULE_BASED
        assert engine.starting_level(tolerant)[0] is FallbackLevel.SECONDARY
