"""Fallback coordinator: drives one request through the level state machine.

    PRIMARY -> SECONDARY -> RULE_BASED -> CACHED -> DEFAULT -> EXHAUSTED

A run starts at the level chosen by the decision engine, advances exactly one level after
each failure and never revisits a level. Every attempt is appended to the run's decision
log; reaching EXHAUSTED raises OrchestrationExhausted carrying that log.
"""

import time
from typing import Dict, List, Optional, Tuple

from meal_suggest.budget.cost_controller import CostController
from meal_suggest.cache.response_cache import ResponseCache
from meal_suggest.exceptions import BudgetExceeded, OrchestrationExhausted, RateLimited
from meal_suggest.fallback.decision import DecisionEngine, HealthMonitor
from meal_suggest.fallback.strategies import CandidatePipeline, FallbackStrategy, StrategyContext
from meal_suggest.models.models import (
    AuthorizationDecision,
    Constraints,
    DenialKind,
    Diagnostics,
    FallbackDecision,
    FallbackLevel,
    OrchestrationResult,
    ParsedCandidate,
    StrategyResult,
    SuggestionRequest,
)
from meal_suggest.utils.config import config
from meal_suggest.utils.logger import logger
from meal_suggest.utils.safe_execute import safe_execute


# Levels whose output is not written back to the cache
UNCACHED_LEVELS = frozenset({FallbackLevel.CACHED, FallbackLevel.DEFAULT})


class FallbackCoordinator:
    """Run requests through the fallback levels.

    Args:
        strategies: One strategy per configured level. Missing levels are recorded as failed.
        decision_engine: Chooses the starting level.
        health: Receives one sample per provider attempt.
        cost_controller: Budget and rate gate.
        cache: Exact-hit short circuit and write-back target.
        pipeline: Re-scores exact cache hits.
    """

    def __init__(
        self,
        strategies: Dict[FallbackLevel, FallbackStrategy],
        decision_engine: DecisionEngine,
        health: HealthMonitor,
        cost_controller: CostController,
        cache: ResponseCache,
        pipeline: CandidatePipeline,
        estimated_request_cost: float = config.ESTIMATED_REQUEST_COST,
        budget_tolerance: float = config.BUDGET_TOLERANCE,
        time_tolerance: float = config.TIME_TOLERANCE,
    ) -> None:
        self.strategies = strategies
        self.decision_engine = decision_engine
        self.health = health
        self.cost_controller = cost_controller
        self.cache = cache
        self.pipeline = pipeline
        self.estimated_request_cost = estimated_request_cost
        self.budget_tolerance = budget_tolerance
        self.time_tolerance = time_tolerance

    # ------------------------------------------------------------- acceptance

    def _sanity_problem(self, candidate: ParsedCandidate, constraints: Constraints) -> Optional[str]:
        if not candidate.name.strip():
            return "empty name"
        if not candidate.ingredients:
            return "no ingredients"
        if constraints.budget is not None and candidate.estimated_cost is not None:
            if candidate.estimated_cost > constraints.budget * (1 + self.budget_tolerance):
                return f"cost {candidate.estimated_cost:.2f} over budget {constraints.budget:.2f}"
        for label, actual, limit in (
            ("prep", candidate.prep_minutes, constraints.max_prep_minutes),
            ("cook", candidate.cook_minutes, constraints.max_cook_minutes),
        ):
            if limit is not None and actual is not None and actual > limit * (1 + self.time_tolerance):
                return f"{label} time {actual} min over limit {limit} min"
        return None

    def accept(self, result: StrategyResult, constraints: Constraints) -> Tuple[bool, str]:
        """A result is accepted only if every candidate is acceptable and sane."""
        if not result.succeeded or not result.candidates:
            return False, result.diagnostic or "no candidates"
        for scored in result.candidates:
            name = scored.candidate.name
            if not scored.validation.is_acceptable:
                return False, f"rejected '{name}': {scored.validation.errors[0].message}"
            problem = self._sanity_problem(scored.candidate, constraints)
            if problem:
                return False, f"rejected '{name}': {problem}"
        return True, result.diagnostic

    # -------------------------------------------------------------------- run

    async def run(self, request: SuggestionRequest, allow_free_fallback: bool = False) -> OrchestrationResult:
        log_extra = {"request_id": request.request_id, "requester_id": request.requester_id}
        context = StrategyContext.from_request(request)

        exact = self._exact_cache_hit(request, context)
        if exact is not None:
            # Exact hits cost nothing but still count against the hourly ceiling
            authorization = await self.cost_controller.authorize(request.requester_id, request.requester_tier, 0.0)
            if not authorization.allowed:
                raise RateLimited(request.requester_id, authorization.reason)
            logger.info("✓ Served from exact cache", extra=log_extra)
            return exact

        start_level, start_reason = self.decision_engine.starting_level(request)
        level, reserved, budget_warning = await self._authorize(request, start_level, allow_free_fallback)
        if level is not start_level:
            start_reason = "budget exhausted, free levels only"

        decisions: List[FallbackDecision] = []
        spent = 0.0
        try:
            while level is not FallbackLevel.EXHAUSTED:
                level_extra = {**log_extra, "fallback_level": level.name.lower()}
                strategy = self.strategies.get(level)
                if strategy is None:
                    decisions.append(
                        FallbackDecision(request_id=request.request_id, level=level, reasoning="level not configured")
                    )
                    level = level.next()
                    continue

                if level.uses_provider and not reserved:
                    authorization = await self.cost_controller.authorize(
                        request.requester_id, request.requester_tier, self.estimated_request_cost, count_request=False
                    )
                    if not authorization.allowed:
                        reasoning = f"budget exhausted: {authorization.reason}"
                        decisions.append(FallbackDecision(request_id=request.request_id, level=level, reasoning=reasoning))
                        budget_warning = authorization.reason
                        logger.info(f"{level.name.lower()} skipped: {reasoning}", extra=level_extra)
                        level = level.next()
                        continue
                    reserved = self.estimated_request_cost
                    if authorization.decision is AuthorizationDecision.WARN:
                        budget_warning = authorization.reason

                started = time.monotonic()
                result = await strategy.execute(context)
                elapsed = time.monotonic() - started
                cost = result.raw_output.cost if result.raw_output is not None else 0.0
                spent += cost
                if reserved or cost:
                    # Settle each paid attempt before the next one is authorized
                    await self.cost_controller.record_actual_cost(request.requester_id, reserved, cost)
                    reserved = 0.0

                accepted, reasoning = self.accept(result, request.constraints)
                if not decisions and level is not FallbackLevel.PRIMARY:
                    reasoning = f"{start_reason}; {reasoning}"
                decisions.append(
                    FallbackDecision(request_id=request.request_id, level=level, reasoning=reasoning, succeeded=accepted)
                )

                if level.uses_provider:
                    best = max((s.quality.overall for s in result.candidates), default=None)
                    latency = result.raw_output.latency_seconds if result.raw_output is not None else elapsed
                    self.health.record(level.name.lower(), success=result.succeeded, latency_seconds=latency, quality=best)

                if accepted:
                    logger.info(f"✓ Accepted at {level.name.lower()}: {reasoning}", extra=level_extra)
                    return self._finish(request, result, decisions, budget_warning, spent)

                logger.info(f"{level.name.lower()} failed: {reasoning}", extra=level_extra)
                level = level.next()
        finally:
            # Release a reservation whose attempt never completed (cancellation)
            if reserved:
                await self.cost_controller.record_actual_cost(request.requester_id, reserved, 0.0)

        logger.error(f"✗ All fallback levels failed ({len(decisions)} attempts)", extra=log_extra)
        raise OrchestrationExhausted(request.request_id, decisions)

    async def _authorize(
        self, request: SuggestionRequest, level: FallbackLevel, allow_free_fallback: bool
    ) -> Tuple[FallbackLevel, float, Optional[str]]:
        """Gate the request. Returns the (possibly raised) start level, the reserved cost and any warning."""
        cost = self.estimated_request_cost if level.uses_provider else 0.0
        authorization = await self.cost_controller.authorize(request.requester_id, request.requester_tier, cost)

        if not authorization.allowed:
            if authorization.denial is DenialKind.RATE:
                raise RateLimited(request.requester_id, authorization.reason)
            if not allow_free_fallback:
                raise BudgetExceeded(request.requester_id, authorization.reason, authorization.remaining_budget)
            free = await self.cost_controller.authorize(request.requester_id, request.requester_tier, 0.0)
            if not free.allowed:
                raise RateLimited(request.requester_id, free.reason)
            logger.info("Budget exhausted, continuing with free fallbacks", extra={"request_id": request.request_id})
            return max(level, FallbackLevel.RULE_BASED), 0.0, authorization.reason

        warning = authorization.reason if authorization.decision is AuthorizationDecision.WARN else None
        return level, cost, warning

    def _exact_cache_hit(self, request: SuggestionRequest, context: StrategyContext) -> Optional[OrchestrationResult]:
        entry = self.cache.lookup(request, exact_only=True)
        if entry is None:
            return None
        result = StrategyResult(
            level=FallbackLevel.CACHED,
            candidates=self.pipeline.process(entry.payload, context.validation, FallbackLevel.CACHED),
            succeeded=True,
            diagnostic="exact cache hit",
            cache_hit=entry.hit_kind,
        )
        accepted, reasoning = self.accept(result, request.constraints)
        if not accepted:
            logger.warning(f"Exact cache entry no longer acceptable: {reasoning}", extra={"request_id": request.request_id})
            return None
        decision = FallbackDecision(
            request_id=request.request_id, level=FallbackLevel.CACHED, reasoning=reasoning, succeeded=True
        )
        return self._finish(request, result, [decision], None, 0.0)

    def _finish(
        self,
        request: SuggestionRequest,
        result: StrategyResult,
        decisions: List[FallbackDecision],
        budget_warning: Optional[str],
        spent: float,
    ) -> OrchestrationResult:
        ranked = sorted(result.candidates, key=lambda s: s.quality.overall, reverse=True)
        candidates = [s.candidate for s in ranked]

        if result.level not in UNCACHED_LEVELS:
            safe_execute(
                lambda: self.cache.store(request, candidates, estimated_savings=spent or self.estimated_request_cost),
                "Cache write",
                log_level="warning",
                extra={"request_id": request.request_id, "fallback_level": result.level.name.lower()},
            )

        warnings = list(dict.fromkeys(w.message for s in ranked for w in s.validation.warnings))
        suggestions = list(dict.fromkeys(a.message for s in ranked for a in s.validation.suggestions))
        return OrchestrationResult(
            candidates=candidates,
            quality=ranked[0].quality,
            diagnostics=Diagnostics(
                request_id=request.request_id,
                final_level=result.level,
                decisions=decisions,
                warnings=warnings,
                suggestions=suggestions,
                cache_hit=result.cache_hit,
                budget_warning=budget_warning,
            ),
        )
