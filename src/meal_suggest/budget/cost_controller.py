"""Per-requester spend budgets and hourly request ceilings.

State lives in the shared key-value store:
    budget:spend:{requester_id}:{YYYY-MM}   accumulated spend for the calendar month (UTC)
    budget:requests:{requester_id}          timestamps of requests in the last hour

Check-and-update for one requester runs under that requester's asyncio.Lock, so concurrent
requests from the same requester can never both pass a check that only one of them fits.
Different requesters never wait on each other.
"""

import asyncio
import time
from typing import Callable, Dict, Optional

from meal_suggest.models.models import AuthorizationDecision, AuthorizationResult, DenialKind
from meal_suggest.stores.kv_store import KeyValueStore
from meal_suggest.utils.config import DEFAULT_TIER, config
from meal_suggest.utils.logger import logger


HOUR_SECONDS = 3600
# Spend keys outlive their month so late settlements still land
SPEND_TTL_SECONDS = 40 * 24 * HOUR_SECONDS


class CostController:
    """Authorize requests against tier budgets and rate ceilings.

    Args:
        store: Shared key-value store.
        tiers: Tier table (hard_limit, soft_limit, hourly_requests). Defaults to config.BUDGET_TIERS.
        clock: Time source in seconds.
    """

    def __init__(
        self,
        store: KeyValueStore,
        tiers: Optional[Dict[str, Dict[str, float]]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.tiers = tiers or config.BUDGET_TIERS
        if DEFAULT_TIER not in self.tiers:
            raise ValueError(f"Budget tier table must define the default tier '{DEFAULT_TIER}'")
        self.clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, requester_id: str) -> asyncio.Lock:
        lock = self._locks.get(requester_id)
        if lock is None:
            lock = self._locks[requester_id] = asyncio.Lock()
        return lock

    def _spend_key(self, requester_id: str) -> str:
        now = time.gmtime(self.clock())
        return f"budget:spend:{requester_id}:{now.tm_year:04d}-{now.tm_mon:02d}"

    @staticmethod
    def _requests_key(requester_id: str) -> str:
        return f"budget:requests:{requester_id}"

    def _limits(self, tier: str) -> Dict[str, float]:
        if tier not in self.tiers:
            logger.warning(f"Unknown requester tier '{tier}', applying '{DEFAULT_TIER}' limits")
            return self.tiers[DEFAULT_TIER]
        return self.tiers[tier]

    def get_spend(self, requester_id: str) -> float:
        return float(self.store.get(self._spend_key(requester_id)) or 0.0)

    async def authorize(
        self, requester_id: str, tier: str, estimated_cost: float, count_request: bool = True
    ) -> AuthorizationResult:
        """Check budget and rate limits, and reserve `estimated_cost` when allowed.

        A zero-cost request (free fallback) skips the budget check but still counts against
        the hourly ceiling. With `count_request=False` (a further paid attempt within a request
        that was already counted) only the budget is checked.
        """
        limits = self._limits(tier)
        hard_limit = float(limits["hard_limit"])
        soft_limit = float(limits["soft_limit"])
        hourly_ceiling = int(limits["hourly_requests"])

        async with self._lock_for(requester_id):
            now = self.clock()
            spent = self.get_spend(requester_id)
            recent = [t for t in (self.store.get(self._requests_key(requester_id)) or []) if now - t < HOUR_SECONDS]

            if count_request and len(recent) >= hourly_ceiling:
                logger.warning(f"Rate limit reached for {requester_id} ({hourly_ceiling}/h)", extra={"requester_id": requester_id})
                return AuthorizationResult(
                    decision=AuthorizationDecision.DENY,
                    remaining_budget=max(0.0, hard_limit - spent),
                    reason=f"Hourly request limit of {hourly_ceiling} reached",
                    denial=DenialKind.RATE,
                )

            projected = spent + estimated_cost
            if estimated_cost > 0 and projected > hard_limit:
                logger.warning(
                    f"Budget denied for {requester_id}: {projected:.4f} > {hard_limit:.2f}",
                    extra={"requester_id": requester_id},
                )
                return AuthorizationResult(
                    decision=AuthorizationDecision.DENY,
                    remaining_budget=max(0.0, hard_limit - spent),
                    reason=f"Monthly budget of {hard_limit:.2f} would be exceeded",
                    denial=DenialKind.BUDGET,
                )

            if estimated_cost > 0:
                self.store.incr(self._spend_key(requester_id), estimated_cost, ttl_seconds=SPEND_TTL_SECONDS)
            if count_request:
                recent.append(now)
                self.store.set(self._requests_key(requester_id), recent, ttl_seconds=HOUR_SECONDS)

        remaining = max(0.0, hard_limit - projected)
        if projected > soft_limit:
            return AuthorizationResult(
                decision=AuthorizationDecision.WARN,
                remaining_budget=remaining,
                reason=f"Spend is above the {soft_limit:.2f} warning threshold; {remaining:.2f} remaining",
            )
        return AuthorizationResult(decision=AuthorizationDecision.ALLOW, remaining_budget=remaining)

    async def record_actual_cost(self, requester_id: str, estimated: float, actual: float) -> float:
        """Settle the difference between the reserved and the real cost. Returns the new spend."""
        async with self._lock_for(requester_id):
            delta = actual - estimated
            if delta == 0:
                return self.get_spend(requester_id)
            spend = self.store.incr(self._spend_key(requester_id), delta, ttl_seconds=SPEND_TTL_SECONDS)
            if spend < 0:
                spend = 0.0
                self.store.set(self._spend_key(requester_id), spend, ttl_seconds=SPEND_TTL_SECONDS)
            return spend

    def reset(self) -> None:
        for key in self.store.keys("budget:"):
            self.store.delete(key)
        self._locks.clear()
