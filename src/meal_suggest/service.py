"""Meal suggestion service factory and entry point.

initialize_suggestion_service() wires the providers, stores, pipeline components and
fallback levels together. Every collaborator can be injected, which is how tests run the
whole orchestrator with fake providers and no network.
"""

from typing import Dict, Optional

from meal_suggest.budget.cost_controller import CostController
from meal_suggest.cache.response_cache import ResponseCache
from meal_suggest.fallback.coordinator import FallbackCoordinator
from meal_suggest.fallback.decision import DecisionEngine, HealthMonitor
from meal_suggest.fallback.strategies import (
    CachedStrategy,
    CandidatePipeline,
    DefaultStrategy,
    FallbackStrategy,
    ProviderStrategy,
    RuleBasedStrategy,
)
from meal_suggest.models.models import FallbackLevel, OrchestrationResult, SuggestionRequest
from meal_suggest.pipeline.enhancer import ResponseEnhancer
from meal_suggest.pipeline.scorer import QualityScorer
from meal_suggest.pipeline.validator import ResponseValidator
from meal_suggest.providers.base import ProviderClient
from meal_suggest.providers.batcher import RequestBatcher
from meal_suggest.providers.gemini import GeminiProvider
from meal_suggest.providers.openai_compatible import OpenAICompatibleProvider
from meal_suggest.stores.kv_store import InMemoryKeyValueStore, KeyValueStore
from meal_suggest.stores.recipe_store import InMemoryRecipeStore, RecipeStore
from meal_suggest.utils.config import config
from meal_suggest.utils.logger import logger


class SuggestionService:
    """Public entry point for meal suggestions."""

    def __init__(
        self,
        coordinator: FallbackCoordinator,
        cache: ResponseCache,
        cost_controller: CostController,
        health: HealthMonitor,
        providers: Dict[FallbackLevel, ProviderClient],
    ) -> None:
        self.coordinator = coordinator
        self.cache = cache
        self.cost_controller = cost_controller
        self.health = health
        self.providers = providers

    async def generate_suggestions(
        self, request: SuggestionRequest, allow_free_fallback: bool = False
    ) -> OrchestrationResult:
        """Generate validated, scored meal suggestions for one request.

        Args:
            request: The suggestion request.
            allow_free_fallback: When the budget is exhausted, continue with the zero-cost
                levels (rule-based, cached, default) instead of raising BudgetExceeded.

        Returns:
            OrchestrationResult with ranked candidates, the best candidate's quality and the
            diagnostics for every attempted level.

        Raises:
            BudgetExceeded: Projected spend exceeds the tier's hard limit.
            RateLimited: The requester reached the hourly request ceiling.
            OrchestrationExhausted: Every fallback level failed.
        """
        logger.info(
            f"Suggestion request ({request.request_type.value}) from {request.requester_id}",
            extra={"request_id": request.request_id, "requester_id": request.requester_id},
        )
        return await self.coordinator.run(request, allow_free_fallback=allow_free_fallback)

    def reset(self) -> None:
        """Clear cache, spend records and health history."""
        self.cache.reset()
        self.cost_controller.reset()
        self.health.reset()

    async def close(self) -> None:
        for provider in self.providers.values():
            await provider.close()


def _build_providers(
    primary: Optional[ProviderClient],
    secondary: Optional[ProviderClient],
    offline: bool,
) -> Dict[FallbackLevel, ProviderClient]:
    logger.info("Step 1/5: Configuring generative providers...")
    providers: Dict[FallbackLevel, ProviderClient] = {}
    if offline:
        logger.info("✓ Offline mode: provider levels disabled")
        return providers

    if primary is None:
        if not config.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY is required (or pass a primary provider / use offline mode)")
        primary = GeminiProvider()
    if config.BATCH_ENABLED:
        primary = RequestBatcher(primary)
        logger.info(f"Primary requests batched every {config.BATCH_INTERVAL_SECONDS:g}s or {config.BATCH_SIZE_THRESHOLD} calls")
    providers[FallbackLevel.PRIMARY] = primary

    if secondary is None and config.has_secondary_provider:
        secondary = OpenAICompatibleProvider()
    if secondary is not None:
        providers[FallbackLevel.SECONDARY] = secondary
    else:
        logger.info("No secondary provider configured - secondary level will be skipped")

    logger.info(f"✓ {len(providers)} provider(s) configured: {', '.join(p.name for p in providers.values())}")
    return providers


def initialize_suggestion_service(
    primary: Optional[ProviderClient] = None,
    secondary: Optional[ProviderClient] = None,
    recipe_store: Optional[RecipeStore] = None,
    kv_store: Optional[KeyValueStore] = None,
    default_meals: Optional[list] = None,
    offline: bool = False,
) -> SuggestionService:
    """Build a fully wired SuggestionService.

    Args:
        primary: Primary provider. Defaults to Gemini (requires GEMINI_API_KEY).
        secondary: Secondary provider. Defaults to the OpenAI-compatible client when
            SECONDARY_PROVIDER_URL is set, otherwise the level is skipped.
        recipe_store: Recipe store. Defaults to the bundled seed catalogue.
        kv_store: Shared key-value store for cache and budgets. Defaults to in-memory.
        default_meals: Override the curated default menu.
        offline: Build without provider levels (rule-based, cached and default only).

    Returns:
        SuggestionService ready to serve requests.

    Raises:
        ValueError: If a real primary provider is needed and GEMINI_API_KEY is missing.
    """
    logger.info("=== Initializing Meal Suggestion Service ===")

    providers = _build_providers(primary, secondary, offline)

    logger.info("Step 2/5: Initializing stores...")
    recipe_store = recipe_store or InMemoryRecipeStore.from_seed()
    kv_store = kv_store or InMemoryKeyValueStore()
    logger.info("✓ Recipe store and key-value store ready")

    logger.info("Step 3/5: Building response pipeline...")
    validator = ResponseValidator()
    pipeline = CandidatePipeline(validator, ResponseEnhancer(recipe_store), QualityScorer())
    cache = ResponseCache(kv_store, validator=validator)
    logger.info("✓ Parser, validator, enhancer and scorer ready")

    logger.info("Step 4/5: Registering fallback levels...")
    strategies: Dict[FallbackLevel, FallbackStrategy] = {
        level: ProviderStrategy(level, provider, pipeline) for level, provider in providers.items()
    }
    strategies[FallbackLevel.RULE_BASED] = RuleBasedStrategy(recipe_store, pipeline)
    strategies[FallbackLevel.CACHED] = CachedStrategy(cache, pipeline)
    strategies[FallbackLevel.DEFAULT] = DefaultStrategy(pipeline, default_meals)
    logger.info(f"✓ Levels: {' -> '.join(level.name.lower() for level in sorted(strategies))}")

    logger.info("Step 5/5: Initializing health monitor and cost controller...")
    health = HealthMonitor()
    cost_controller = CostController(kv_store)
    coordinator = FallbackCoordinator(
        strategies=strategies,
        decision_engine=DecisionEngine(health),
        health=health,
        cost_controller=cost_controller,
        cache=cache,
        pipeline=pipeline,
    )
    logger.info("✓ Coordinator ready")

    logger.info("=== Service initialization complete ===")
    return SuggestionService(coordinator, cache, cost_controller, health, providers)
