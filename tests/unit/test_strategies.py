"""Unit tests for the fallback strategies."""

import pytest

from meal_suggest.cache.response_cache import ResponseCache
from meal_suggest.data.seed_recipes import SEED_CATALOGUE, SEED_RECIPES
from meal_suggest.exceptions import ProviderError
from meal_suggest.fallback.strategies import (
    CachedStrategy,
    CandidatePipeline,
    DefaultStrategy,
    ProviderStrategy,
    RuleBasedStrategy,
    StrategyContext,
)
from meal_suggest.models.models import CacheHitKind, FallbackLevel
from meal_suggest.pipeline.enhancer import ResponseEnhancer
from meal_suggest.pipeline.scorer import QualityScorer
from meal_suggest.pipeline.validator import ResponseValidator
from meal_suggest.stores.kv_store import InMemoryKeyValueStore
from meal_suggest.stores.recipe_store import IngredientInfo, InMemoryRecipeStore, RecipeRecord


@pytest.fixture
def pipeline(recipe_store):
    return CandidatePipeline(ResponseValidator(), ResponseEnhancer(recipe_store), QualityScorer())


def peanut_family_request(request_factory):
    return request_factory(
        prompt="Thai noodles tonight",
        budget=15.0,
        max_prep_minutes=20,
        max_cook_minutes=20,
        allergens=["peanut"],
        preferred_cuisines=["thai"],
        liked_ingredients=["peanut butter"],
        cooking_skill="beginner",
    )


class TestProviderStrategy:
    """Test provider calls and their failure modes."""

    @pytest.mark.asyncio
    async def test_success_runs_pipeline(self, pipeline, fake_provider, request_factory):
        """Test that provider output is parsed, validated, enhanced and scored."""
        provider = fake_provider(name="gemini")
        strategy = ProviderStrategy(FallbackLevel.PRIMARY, provider, pipeline)

        result = await strategy.execute(StrategyContext.from_request(request_factory()))

        assert result.succeeded
        assert result.level is FallbackLevel.PRIMARY
        assert result.raw_output.provider == "gemini"
        assert result.candidates[0].candidate.source is FallbackLevel.PRIMARY
        assert result.candidates[0].validation.is_acceptable
        assert "strict_ok" in result.diagnostic
        assert provider.prompts == ["Quick weeknight dinner"]

    @pytest.mark.asyncio
    async def test_timeout_becomes_failed_result(self, pipeline, fake_provider, request_factory):
        """Test that a provider exceeding its deadline fails with a sanitized diagnostic."""
        provider = fake_provider(delay=1.0, timeout_seconds=0.05)
        strategy = ProviderStrategy(FallbackLevel.PRIMARY, provider, pipeline)

        result = await strategy.execute(StrategyContext.from_request(request_factory()))

        assert not result.succeeded
        assert result.diagnostic == "FAKE TIMEOUT after 0.05s"

    @pytest.mark.asyncio
    async def test_provider_error_keeps_public_message(self, pipeline, fake_provider, request_factory):
        """Test that ProviderError surfaces only its public message."""
        provider = fake_provider(error=ProviderError("fake", "FAKE HTTP ERROR (503)", status_code=503))
        strategy = ProviderStrategy(FallbackLevel.SECONDARY, provider, pipeline)

        result = await strategy.execute(StrategyContext.from_request(request_factory()))

        assert result.diagnostic == "FAKE HTTP ERROR (503)"

    @pytest.mark.asyncio
    async def test_unexpected_exception_text_is_not_leaked(self, pipeline, fake_provider, request_factory):
        """Test that raw exception text never reaches the diagnostic."""
        provider = fake_provider(error=RuntimeError("secret-token-abc rejected"))
        strategy = ProviderStrategy(FallbackLevel.PRIMARY, provider, pipeline)

        result = await strategy.execute(StrategyContext.from_request(request_factory()))

        assert result.diagnostic == "FAKE REQUEST FAILED"
        assert "secret" not in result.diagnostic

    @pytest.mark.asyncio
    async def test_unparseable_output(self, pipeline, fake_provider, request_factory):
        """Test that unparseable output fails but keeps the raw output for cost accounting."""
        provider = fake_provider(responses=["I'm sorry, I can't help with that."])
        strategy = ProviderStrategy(FallbackLevel.PRIMARY, provider, pipeline)

        result = await strategy.execute(StrategyContext.from_request(request_factory()))

        assert not result.succeeded
        assert result.diagnostic == "FAKE UNPARSEABLE RESPONSE"
        assert result.raw_output is not None


class TestRuleBasedStrategy:
    """Test deterministic recipe-store suggestions."""

    @pytest.mark.asyncio
    async def test_returns_top_recipes(self, pipeline, recipe_store, request_factory):
        """Test that the best-scoring seed recipes are returned in score order."""
        strategy = RuleBasedStrategy(recipe_store, pipeline, baseline=5.0, min_score=5.0, top_n=3)

        result = await strategy.execute(StrategyContext.from_request(request_factory()))

        assert result.succeeded
        assert 1 <= len(result.candidates) <= 3
        assert all(s.candidate.source is FallbackLevel.RULE_BASED for s in result.candidates)
        confidences = [s.candidate.confidence for s in result.candidates]
        assert confidences == sorted(confidences, reverse=True)

    def test_allergen_conflict_subtracts_three(self, pipeline, recipe_store, request_factory):
        """Test that an untagged peanut recipe scores five preferences minus the conflict."""
        strategy = RuleBasedStrategy(recipe_store, pipeline, baseline=5.0)
        request = peanut_family_request(request_factory)
        noodles = next(RecipeRecord(**r) for r in SEED_RECIPES if r["recipe_id"] == "r-003")

        assert strategy.score_recipe(noodles, request) == 7.0

    def test_conflicts_can_drop_below_floor(self, pipeline, recipe_store, request_factory):
        """Test that allergen penalties push recipes under the score floor."""
        strategy = RuleBasedStrategy(recipe_store, pipeline, baseline=5.0, min_score=8.5)
        request = peanut_family_request(request_factory)
        noodles = next(RecipeRecord(**r) for r in SEED_RECIPES if r["recipe_id"] == "r-003")

        assert strategy.rank([noodles], request) == []

    @pytest.mark.asyncio
    async def test_untagged_allergen_reaches_validator(self, pipeline, request_factory):
        """Test that a peanut dish the store did not tag is still flagged by validation."""
        store = InMemoryRecipeStore(
            [RecipeRecord(**r) for r in SEED_RECIPES if r["recipe_id"] == "r-003"],
            [IngredientInfo(**c) for c in SEED_CATALOGUE],
        )
        strategy = RuleBasedStrategy(store, pipeline, baseline=5.0, min_score=5.0)

        result = await strategy.execute(StrategyContext.from_request(peanut_family_request(request_factory)))

        assert result.succeeded
        assert result.candidates[0].candidate.name == "Peanut Noodle Stir-Fry"
        assert result.candidates[0].validation.has_safety_error

    @pytest.mark.asyncio
    async def test_empty_store_fails(self, pipeline, request_factory):
        """Test that no matching recipes produce a failed result."""
        strategy = RuleBasedStrategy(InMemoryRecipeStore([]), pipeline)

        result = await strategy.execute(StrategyContext.from_request(request_factory()))

        assert not result.succeeded
        assert "0 searched" in result.diagnostic


class TestCachedStrategy:
    """Test the cache fallback level."""

    @pytest.mark.asyncio
    async def test_pattern_hit(self, pipeline, request_factory, candidate):
        """Test that a pattern entry is served with its hit kind."""
        cache = ResponseCache(InMemoryKeyValueStore())
        cache.store(request_factory(prompt="Pasta night"), [candidate()])
        strategy = CachedStrategy(cache, pipeline)

        result = await strategy.execute(StrategyContext.from_request(request_factory(prompt="Taco Tuesday")))

        assert result.succeeded
        assert result.cache_hit is CacheHitKind.PATTERN
        assert result.candidates[0].candidate.source is FallbackLevel.CACHED

    @pytest.mark.asyncio
    async def test_miss(self, pipeline, request_factory):
        """Test that an empty cache fails."""
        strategy = CachedStrategy(ResponseCache(InMemoryKeyValueStore()), pipeline)

        result = await strategy.execute(StrategyContext.from_request(request_factory()))

        assert not result.succeeded
        assert result.diagnostic == "no usable cache entry"


class TestDefaultStrategy:
    """Test the curated default menu."""

    @pytest.mark.asyncio
    async def test_default_meals_avoid_allergens(self, pipeline, request_factory):
        """Test that default meals containing the family's allergens are filtered out."""
        strategy = DefaultStrategy(pipeline)
        request = request_factory(allergens=["milk", "egg", "wheat"], budget=None, max_prep_minutes=None, max_cook_minutes=None)

        result = await strategy.execute(StrategyContext.from_request(request))

        assert result.succeeded
        assert all(not s.validation.has_safety_error for s in result.candidates)
        assert all(s.candidate.confidence == 0.5 for s in result.candidates)

    @pytest.mark.asyncio
    async def test_all_meals_unsafe_fails(self, pipeline, request_factory, meal):
        """Test that the level fails when every default meal conflicts."""
        strategy = DefaultStrategy(pipeline, meals=[meal(name="Peanut Satay", ingredients=["peanut butter", "rice"])])

        result = await strategy.execute(StrategyContext.from_request(request_factory(allergens=["peanut"])))

        assert not result.succeeded
        assert "allergens" in result.diagnostic

    @pytest.mark.asyncio
    async def test_prefers_meals_within_constraints(self, pipeline, request_factory, meal):
        """Test that safe meals fitting budget and time are preferred over ones that do not."""
        strategy = DefaultStrategy(
            pipeline,
            meals=[
                meal(name="Roast Dinner", estimated_cost=40.0, cook_minutes=90, ingredients=[{"name": "beef", "estimated_cost": 40.0}]),
                meal(name="Rice Bowl", ingredients=[{"name": "rice", "estimated_cost": 1.2}], estimated_cost=1.2),
            ],
        )

        result = await strategy.execute(StrategyContext.from_request(request_factory()))

        assert [s.candidate.name for s in result.candidates] == ["Rice Bowl"]
        assert result.diagnostic == "default menu, 1 safe meal(s)"
