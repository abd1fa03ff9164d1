"""Provider health tracking and starting-level selection."""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional, Tuple

from meal_suggest.models.models import FallbackLevel, HealthStatus, SuggestionRequest
from meal_suggest.utils.config import config
from meal_suggest.utils.logger import logger


@dataclass(frozen=True)
class HealthSample:
    timestamp: float
    success: bool
    latency_seconds: float
    quality: Optional[float] = None


class HealthMonitor:
    """Sliding-window health metrics per provider.

    Samples older than the window are pruned on every read and write. Consecutive failures
    are tracked separately so a provider can be marked down even when older successes are
    still inside the window.
    """

    def __init__(
        self,
        window_seconds: float = config.HEALTH_WINDOW_MINUTES * 60,
        down_after_failures: int = config.HEALTH_DOWN_AFTER_FAILURES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self.down_after_failures = down_after_failures
        self.clock = clock
        self._samples: Dict[str, Deque[HealthSample]] = {}
        self._consecutive_failures: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _prune(self, provider: str, now: float) -> Deque[HealthSample]:
        samples = self._samples.setdefault(provider, deque())
        while samples and now - samples[0].timestamp > self.window_seconds:
            samples.popleft()
        return samples

    def record(self, provider: str, success: bool, latency_seconds: float, quality: Optional[float] = None) -> None:
        with self._lock:
            now = self.clock()
            samples = self._prune(provider, now)
            samples.append(HealthSample(now, success, latency_seconds, quality))
            if success:
                self._consecutive_failures[provider] = 0
            else:
                self._consecutive_failures[provider] = self._consecutive_failures.get(provider, 0) + 1

    def status(self, provider: str) -> HealthStatus:
        with self._lock:
            samples = list(self._prune(provider, self.clock()))
            failures = self._consecutive_failures.get(provider, 0)

        if not samples:
            return HealthStatus(provider=provider, consecutive_failures=failures)

        qualities = [s.quality for s in samples if s.quality is not None]
        return HealthStatus(
            provider=provider,
            error_rate=sum(1 for s in samples if not s.success) / len(samples),
            average_latency_seconds=sum(s.latency_seconds for s in samples) / len(samples),
            quality_trend=sum(qualities) / len(qualities) if qualities else None,
            sample_count=len(samples),
            consecutive_failures=failures,
            is_down=failures >= self.down_after_failures,
        )

    def reset(self) -> None:
        with self._lock:
            self._samples.clear()
            self._consecutive_failures.clear()


class DecisionEngine:
    """Pick the level a request starts at from the primary provider's live health."""

    def __init__(
        self,
        health: HealthMonitor,
        min_samples: int = config.HEALTH_MIN_SAMPLES,
        error_rate_threshold: float = config.HEALTH_ERROR_RATE_THRESHOLD,
        latency_ceiling_seconds: float = config.HEALTH_LATENCY_CEILING_SECONDS,
        quality_floor: float = config.HEALTH_QUALITY_FLOOR,
    ) -> None:
        self.health = health
        self.min_samples = min_samples
        self.error_rate_threshold = error_rate_threshold
        self.latency_ceiling_seconds = latency_ceiling_seconds
        self.quality_floor = quality_floor

    def starting_level(self, request: SuggestionRequest) -> Tuple[FallbackLevel, str]:
        """Return the starting level and the reason for it."""
        status = self.health.status(FallbackLevel.PRIMARY.name.lower())

        if status.is_down or (status.sample_count >= self.min_samples and status.error_rate > self.error_rate_threshold):
            reason = f"primary unhealthy (error rate {status.error_rate:.0%}, {status.consecutive_failures} consecutive failures)"
            level = FallbackLevel.RULE_BASED if request.requires_high_quality else FallbackLevel.CACHED
        elif status.sample_count < self.min_samples:
            return FallbackLevel.PRIMARY, "primary (cold start)"
        elif status.average_latency_seconds > self.latency_ceiling_seconds:
            reason = f"primary slow (average latency {status.average_latency_seconds:.1f}s)"
            level = FallbackLevel.SECONDARY
        elif status.quality_trend is not None and status.quality_trend < self.quality_floor:
            reason = f"primary quality trending low ({status.quality_trend:.2f})"
            level = FallbackLevel.SECONDARY if request.tolerates_lower_quality else FallbackLevel.RULE_BASED
        else:
            return FallbackLevel.PRIMARY, "primary healthy"

        logger.info(f"Starting at {level.name.lower()}: {reason}", extra={"request_id": request.request_id})
        return level, reason
