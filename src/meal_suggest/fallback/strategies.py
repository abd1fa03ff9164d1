"""The closed set of fallback strategies, one per FallbackLevel.

Every strategy returns a StrategyResult and never raises for expected failures: provider
errors, timeouts, unparseable output and empty searches all become a failed result with a
sanitized diagnostic. Whether a structurally successful result is acceptable is decided by
the coordinator, not here.
"""

import asyncio
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from meal_suggest.cache.response_cache import ResponseCache
from meal_suggest.data.default_meals import DEFAULT_MEALS
from meal_suggest.exceptions import ParseError, ProviderError, ProviderTimeoutError
from meal_suggest.models.models import (
    FallbackLevel,
    ParsedCandidate,
    RawProviderOutput,
    ScoredCandidate,
    StrategyResult,
    SuggestionRequest,
)
from meal_suggest.pipeline.enhancer import ResponseEnhancer
from meal_suggest.pipeline.parser import ParseResult, candidate_from_dict, parse_provider_output
from meal_suggest.pipeline.scorer import QualityScorer
from meal_suggest.pipeline.validator import (
    SKILL_RANK,
    ResponseValidator,
    ValidationContext,
    allergen_conflicts,
    dietary_violations,
)
from meal_suggest.prompts.prompts import get_system_instructions
from meal_suggest.providers.base import ProviderClient
from meal_suggest.stores.recipe_store import RecipeRecord, RecipeSearchFilter, RecipeStore
from meal_suggest.utils.config import config
from meal_suggest.utils.logger import logger


@dataclass(frozen=True)
class StrategyContext:
    request: SuggestionRequest
    validation: ValidationContext

    @classmethod
    def from_request(cls, request: SuggestionRequest) -> "StrategyContext":
        return cls(request=request, validation=ValidationContext.from_request(request))


class CandidatePipeline:
    """Validator -> Enhancer -> Scorer for a list of candidates from one strategy."""

    def __init__(self, validator: ResponseValidator, enhancer: ResponseEnhancer, scorer: QualityScorer) -> None:
        self.validator = validator
        self.enhancer = enhancer
        self.scorer = scorer

    def process(
        self,
        candidates: Iterable[ParsedCandidate],
        context: ValidationContext,
        source: FallbackLevel,
    ) -> List[ScoredCandidate]:
        sourced = [c.model_copy(update={"source": source}) for c in candidates]
        validated = [(c, self.validator.validate(c, context)) for c in sourced]
        enhanced = [(self.enhancer.enhance(c), v) for c, v in validated]
        peers = [c for c, _ in enhanced]
        return [
            ScoredCandidate(candidate=c, validation=v, quality=self.scorer.score(c, v, context, peers))
            for c, v in enhanced
        ]


class FallbackStrategy:
    level: FallbackLevel

    async def execute(self, context: StrategyContext) -> StrategyResult:
        raise NotImplementedError

    def _failed(self, diagnostic: str, raw_output: Optional[RawProviderOutput] = None) -> StrategyResult:
        return StrategyResult(level=self.level, succeeded=False, diagnostic=diagnostic, raw_output=raw_output)


# ============================================================================
# Provider levels
# ============================================================================


class ProviderStrategy(FallbackStrategy):
    """Call one generative provider and run its output through the candidate pipeline.

    The provider's own deadline is enforced here with asyncio.wait_for; there is no retry.
    """

    def __init__(self, level: FallbackLevel, provider: ProviderClient, pipeline: CandidatePipeline) -> None:
        self.level = level
        self.provider = provider
        self.pipeline = pipeline

    @staticmethod
    def _parse(raw: RawProviderOutput) -> ParseResult:
        parsed = parse_provider_output(raw.text)
        if not parsed.candidates:
            raise ParseError(parsed.errors)
        return parsed

    async def execute(self, context: StrategyContext) -> StrategyResult:
        request = context.request
        label = self.provider.name.upper()
        log_extra = {"request_id": request.request_id, "provider": self.provider.name}

        try:
            raw = await asyncio.wait_for(
                self.provider.generate(request.prompt, get_system_instructions(request.request_type)),
                timeout=self.provider.timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = ProviderTimeoutError(self.provider.name, self.provider.timeout_seconds)
            logger.warning(f"{self.provider.name} timed out after {self.provider.timeout_seconds:g}s", extra=log_extra)
            return self._failed(error.public_message)
        except ProviderError as e:
            return self._failed(e.public_message)
        except Exception as e:
            logger.error(f"Unexpected {self.provider.name} client failure: {e}", extra=log_extra)
            return self._failed(f"{label} REQUEST FAILED")

        try:
            parsed = self._parse(raw)
        except ParseError as e:
            logger.warning(f"{self.provider.name} output unparseable: {e}", extra=log_extra)
            return self._failed(f"{label} UNPARSEABLE RESPONSE", raw_output=raw)

        scored = self.pipeline.process(parsed.candidates, context.validation, self.level)
        return StrategyResult(
            level=self.level,
            candidates=scored,
            succeeded=True,
            diagnostic=f"{self.provider.name} {parsed.outcome.value}, {len(scored)} candidate(s)",
            raw_output=raw,
        )


# ============================================================================
# Rule-based level
# ============================================================================


def recipe_to_candidate(recipe: RecipeRecord, confidence: float) -> ParsedCandidate:
    return ParsedCandidate(
        name=recipe.name,
        description=recipe.description,
        prep_minutes=recipe.prep_minutes,
        cook_minutes=recipe.cook_minutes,
        estimated_cost=recipe.estimated_cost,
        servings=recipe.servings,
        ingredients=[i.model_copy() for i in recipe.ingredients],
        instructions=list(recipe.instructions),
        nutrition=recipe.nutrition.model_copy(),
        tags=list(recipe.tags),
        allergens=list(recipe.allergens),
        cuisine=recipe.cuisine,
        difficulty=recipe.difficulty,
        confidence=confidence,
    )


class RuleBasedStrategy(FallbackStrategy):
    """Deterministic suggestions from the recipe store.

    Score = baseline + 1 per satisfied preference category (liked ingredient, preferred
    cuisine, time fit, budget fit, skill fit) - 3 per allergen conflict. Recipes below the
    floor are dropped and the top N are returned.
    """

    level = FallbackLevel.RULE_BASED

    def __init__(
        self,
        recipe_store: RecipeStore,
        pipeline: CandidatePipeline,
        baseline: float = config.RULE_BASED_BASELINE,
        min_score: float = config.RULE_BASED_MIN_SCORE,
        top_n: int = config.RULE_BASED_TOP_N,
    ) -> None:
        self.recipe_store = recipe_store
        self.pipeline = pipeline
        self.baseline = baseline
        self.min_score = min_score
        self.top_n = top_n

    @staticmethod
    def build_filter(request: SuggestionRequest) -> RecipeSearchFilter:
        family = request.family
        constraints = request.constraints
        max_total = None
        if constraints.max_prep_minutes is not None and constraints.max_cook_minutes is not None:
            max_total = constraints.max_prep_minutes + constraints.max_cook_minutes
        return RecipeSearchFilter(
            exclude_allergens=list(family.allergens),
            dietary_restrictions=list(family.dietary_restrictions),
            exclude_ingredients=list(family.disliked_ingredients),
            preferred_cuisines=list(family.preferred_cuisines),
            liked_ingredients=list(family.liked_ingredients),
            max_total_minutes=max_total,
            max_cost=constraints.budget,
        )

    def score_recipe(self, recipe: RecipeRecord, request: SuggestionRequest) -> float:
        family = request.family
        constraints = request.constraints
        names = [i.name.lower() for i in recipe.ingredients]
        score = self.baseline

        if any(liked in name for liked in family.liked_ingredients for name in names):
            score += 1.0
        if recipe.cuisine and recipe.cuisine.lower() in family.preferred_cuisines:
            score += 1.0
        time_limits = [
            (recipe.prep_minutes, constraints.max_prep_minutes),
            (recipe.cook_minutes, constraints.max_cook_minutes),
        ]
        applicable = [(actual, limit) for actual, limit in time_limits if limit is not None]
        if applicable and all(actual <= limit for actual, limit in applicable):
            score += 1.0
        if constraints.budget is not None and recipe.estimated_cost <= constraints.budget:
            score += 1.0
        if SKILL_RANK.get(recipe.difficulty, 1) <= SKILL_RANK[family.cooking_skill]:
            score += 1.0

        conflicts = allergen_conflicts(recipe_to_candidate(recipe, 0.0), family.allergens)
        score -= 3.0 * len(conflicts)
        return score

    def rank(self, recipes: Iterable[RecipeRecord], request: SuggestionRequest) -> List[Tuple[float, RecipeRecord]]:
        scored = [(self.score_recipe(r, request), r) for r in recipes]
        kept = [(s, r) for s, r in scored if s >= self.min_score]
        kept.sort(key=lambda item: -item[0])
        return kept[: self.top_n]

    async def execute(self, context: StrategyContext) -> StrategyResult:
        request = context.request
        recipes = self.recipe_store.search(self.build_filter(request))
        ranked = self.rank(recipes, request)
        if not ranked:
            return self._failed(f"no recipe met the rule-based score floor ({len(recipes)} searched)")

        # Rule scores top out at baseline + 5
        candidates = [recipe_to_candidate(r, min(1.0, s / (self.baseline + 5))) for s, r in ranked]
        scored = self.pipeline.process(candidates, context.validation, self.level)
        return StrategyResult(
            level=self.level,
            candidates=scored,
            succeeded=True,
            diagnostic=f"rule-based, {len(scored)} of {len(recipes)} recipes above the score floor",
        )


# ============================================================================
# Cached and default levels
# ============================================================================


class CachedStrategy(FallbackStrategy):
    """Serve a pattern or semantic cache hit adapted to the current request."""

    level = FallbackLevel.CACHED

    def __init__(self, cache: ResponseCache, pipeline: CandidatePipeline) -> None:
        self.cache = cache
        self.pipeline = pipeline

    async def execute(self, context: StrategyContext) -> StrategyResult:
        entry = self.cache.lookup(context.request)
        if entry is None:
            return self._failed("no usable cache entry")
        scored = self.pipeline.process(entry.payload, context.validation, self.level)
        return StrategyResult(
            level=self.level,
            candidates=scored,
            succeeded=True,
            diagnostic=f"{entry.hit_kind.value} cache hit, {len(scored)} candidate(s)",
            cache_hit=entry.hit_kind,
        )


class DefaultStrategy(FallbackStrategy):
    """Curated generic meals, filtered by the family's safety constraints only."""

    level = FallbackLevel.DEFAULT

    def __init__(self, pipeline: CandidatePipeline, meals: Optional[List[dict]] = None) -> None:
        self.pipeline = pipeline
        self.meals = [candidate_from_dict(m) for m in (DEFAULT_MEALS if meals is None else meals)]

    async def execute(self, context: StrategyContext) -> StrategyResult:
        family = context.request.family
        safe = [
            m.model_copy(update={"confidence": 0.5}, deep=True)
            for m in self.meals
            if not allergen_conflicts(m, family.allergens) and not dietary_violations(m, family.dietary_restrictions)
        ]
        if not safe:
            return self._failed("every default meal conflicts with the family's allergens or diet")
        # Prefer meals that also fit budget and time; otherwise still return the safe set
        fitting = [m for m in safe if self.pipeline.validator.validate(m, context.validation).is_acceptable]
        scored = self.pipeline.process(fitting or safe, context.validation, self.level)
        return StrategyResult(
            level=self.level,
            candidates=scored,
            succeeded=True,
            diagnostic=f"default menu, {len(scored)} safe meal(s)",
        )
