"""Unit tests for the fallback coordinator, run end to end through SuggestionService."""

import asyncio
import json
from unittest.mock import patch

import pytest

from meal_suggest.budget.cost_controller import CostController
from meal_suggest.data.seed_recipes import SEED_CATALOGUE, SEED_RECIPES
from meal_suggest.exceptions import BudgetExceeded, OrchestrationExhausted, ProviderError, RateLimited
from meal_suggest.fallback.strategies import StrategyContext
from meal_suggest.models.models import CacheHitKind, FallbackLevel, StrategyResult
from meal_suggest.stores.recipe_store import IngredientInfo, InMemoryRecipeStore, RecipeRecord


def assert_levels_strictly_increase(decisions):
    levels = [d.level for d in decisions]
    assert levels == sorted(set(levels)), f"levels revisited or out of order: {levels}"


def tiers(hard_limit=100.0, soft_limit=80.0, hourly_requests=120):
    limits = {"hard_limit": hard_limit, "soft_limit": soft_limit, "hourly_requests": hourly_requests}
    return {"free": dict(limits), "premium": dict(limits)}


class TestScenarios:
    """Test the documented end-to-end fallback scenarios."""

    @pytest.mark.asyncio
    async def test_over_budget_primary_advances_to_secondary(self, build_service, fake_provider, meal, request_factory):
        """Test that a $20 primary candidate against a $15 budget is rejected in favor of secondary."""
        pricey = meal(
            name="Premium Chicken Platter",
            estimated_cost=20.0,
            ingredients=[
                {"name": "chicken breast", "estimated_cost": 16.5},
                {"name": "rice", "estimated_cost": 1.2},
                {"name": "broccoli", "estimated_cost": 1.5},
                {"name": "olive oil", "estimated_cost": 0.3},
                {"name": "garlic", "estimated_cost": 0.5},
            ],
        )
        primary = fake_provider(name="gemini", responses=[json.dumps({"meals": [pricey]})])
        secondary = fake_provider(name="backup")
        service = build_service(primary=primary, secondary=secondary)

        result = await service.generate_suggestions(request_factory(budget=15.0, max_prep_minutes=20))

        decisions = result.diagnostics.decisions
        assert [d.level for d in decisions] == [FallbackLevel.PRIMARY, FallbackLevel.SECONDARY]
        assert not decisions[0].succeeded
        assert "Premium Chicken Platter" in decisions[0].reasoning
        assert "exceeds budget" in decisions[0].reasoning
        assert decisions[1].succeeded
        assert result.diagnostics.final_level is FallbackLevel.SECONDARY
        assert all(c.source is FallbackLevel.SECONDARY for c in result.candidates)

    @pytest.mark.asyncio
    async def test_repeated_primary_timeouts_move_start_level(self, build_service, fake_provider, request_factory):
        """Test that two primary timeouts make the next request start below primary."""
        primary = fake_provider(name="gemini", delay=1.0, timeout_seconds=0.05)
        secondary = fake_provider(name="backup")
        service = build_service(primary=primary, secondary=secondary)

        for prompt in ("Pasta night", "Taco Tuesday"):
            result = await service.generate_suggestions(request_factory(prompt=prompt))
            assert result.diagnostics.final_level is FallbackLevel.SECONDARY
            assert result.diagnostics.decisions[0].reasoning == "GEMINI TIMEOUT after 0.05s"

        assert service.health.status("primary").error_rate == 1.0

        result = await service.generate_suggestions(request_factory(prompt="Soup and salad"))

        first = result.diagnostics.decisions[0]
        assert first.level >= FallbackLevel.SECONDARY
        assert "primary unhealthy" in first.reasoning
        assert primary.calls == 2

    @pytest.mark.asyncio
    async def test_peanut_recipe_rejected_then_cache_serves(self, build_service, request_factory, candidate):
        """Test that an untagged peanut recipe is rejected at rule-based and the cache level answers."""
        store = InMemoryRecipeStore(
            [RecipeRecord(**r) for r in SEED_RECIPES if r["recipe_id"] == "r-003"],
            [IngredientInfo(**c) for c in SEED_CATALOGUE],
        )
        service = build_service(offline=True, recipe_store=store)
        family = {
            "allergens": ["peanut"],
            "preferred_cuisines": ["thai"],
            "liked_ingredients": ["peanut butter"],
            "cooking_skill": "beginner",
        }
        service.cache.store(request_factory(prompt="Family dinner", max_cook_minutes=20, **family), [candidate()])

        result = await service.generate_suggestions(
            request_factory(prompt="Thai noodles tonight", max_prep_minutes=20, max_cook_minutes=20, **family)
        )

        decisions = result.diagnostics.decisions
        assert_levels_strictly_increase(decisions)
        rule_based = next(d for d in decisions if d.level is FallbackLevel.RULE_BASED)
        assert not rule_based.succeeded
        assert "Peanut Noodle Stir-Fry" in rule_based.reasoning
        assert "peanut butter" in rule_based.reasoning
        assert decisions[-1].level is FallbackLevel.CACHED
        assert result.diagnostics.cache_hit is CacheHitKind.PATTERN
        assert all("peanut butter" not in c.ingredient_names for c in result.candidates)

    @pytest.mark.asyncio
    async def test_identical_request_served_from_exact_cache(self, build_service, fake_provider, request_factory):
        """Test that a repeated request makes zero provider calls."""
        primary = fake_provider(name="gemini")
        service = build_service(primary=primary)

        first = await service.generate_suggestions(request_factory())
        second = await service.generate_suggestions(request_factory())

        assert primary.calls == 1
        assert second.diagnostics.cache_hit is CacheHitKind.EXACT
        assert [d.level for d in second.diagnostics.decisions] == [FallbackLevel.CACHED]
        assert [c.name for c in second.candidates] == [c.name for c in first.candidates]

    @pytest.mark.asyncio
    async def test_all_levels_fail(self, build_service, fake_provider, request_factory):
        """Test that exhausting every level raises with a sanitized diagnostic trail."""
        service = build_service(
            primary=fake_provider(name="gemini", error=ProviderError("gemini", "GEMINI HTTP ERROR (500)", 500)),
            secondary=fake_provider(name="backup", error=RuntimeError("upstream said: secret-key-123 invalid")),
            recipe_store=InMemoryRecipeStore([]),
            default_meals=[],
        )

        with pytest.raises(OrchestrationExhausted) as exc_info:
            await service.generate_suggestions(request_factory())

        trail = exc_info.value.diagnostic_trail
        assert trail == [
            "primary: GEMINI HTTP ERROR (500)",
            "secondary: BACKUP REQUEST FAILED",
            "rule_based: no recipe met the rule-based score floor (0 searched)",
            "cached: no usable cache entry",
            "default: every default meal conflicts with the family's allergens or diet",
        ]
        assert not any("secret" in line for line in trail)
        assert_levels_strictly_increase(exc_info.value.decisions)


class TestBudgetGate:
    """Test cost controller integration."""

    @pytest.mark.asyncio
    async def test_budget_denial_raises_without_provider_call(self, build_service, fake_provider, kv_store, request_factory):
        """Test that a denied request never reaches a provider."""
        primary = fake_provider(name="gemini")
        service = build_service(primary=primary)
        service.coordinator.cost_controller = CostController(kv_store, tiers=tiers(hard_limit=0.01, soft_limit=0.005))

        with pytest.raises(BudgetExceeded):
            await service.generate_suggestions(request_factory())

        assert primary.calls == 0

    @pytest.mark.asyncio
    async def test_budget_denial_with_free_fallback(self, build_service, fake_provider, kv_store, request_factory):
        """Test that the caller can opt into free levels when the budget is spent."""
        primary = fake_provider(name="gemini")
        service = build_service(primary=primary)
        service.coordinator.cost_controller = CostController(kv_store, tiers=tiers(hard_limit=0.01, soft_limit=0.005))

        result = await service.generate_suggestions(request_factory(), allow_free_fallback=True)

        assert primary.calls == 0
        assert result.diagnostics.decisions[0].level is FallbackLevel.RULE_BASED
        assert result.diagnostics.decisions[0].reasoning.startswith("budget exhausted")
        assert result.diagnostics.budget_warning

    @pytest.mark.asyncio
    async def test_rate_limit_is_not_bypassed_by_free_fallback(self, build_service, fake_provider, kv_store, request_factory):
        """Test that free levels still respect the hourly ceiling."""
        service = build_service(primary=fake_provider(name="gemini"))
        service.coordinator.cost_controller = CostController(kv_store, tiers=tiers(hourly_requests=1))

        await service.generate_suggestions(request_factory(prompt="Pasta night"))

        with pytest.raises(RateLimited):
            await service.generate_suggestions(request_factory(prompt="Taco Tuesday"), allow_free_fallback=True)

    @pytest.mark.asyncio
    async def test_exact_cache_hit_respects_rate_limit(self, build_service, fake_provider, kv_store, request_factory):
        """Test that a repeated request over the hourly ceiling is refused even when cached."""
        primary = fake_provider(name="gemini")
        service = build_service(primary=primary)
        service.coordinator.cost_controller = CostController(kv_store, tiers=tiers(hourly_requests=1))

        await service.generate_suggestions(request_factory())

        with pytest.raises(RateLimited):
            await service.generate_suggestions(request_factory())
        assert primary.calls == 1

    @pytest.mark.asyncio
    async def test_each_paid_level_is_authorized(self, build_service, fake_provider, kv_store, meal, request_factory):
        """Test that a second paid attempt is skipped when it would push spend past the hard limit."""
        pricey = meal(name="Wagyu Feast", estimated_cost=40.0)
        primary = fake_provider(name="gemini", responses=[json.dumps({"meals": [pricey]})], cost=0.25)
        secondary = fake_provider(name="backup", cost=0.25)
        service = build_service(primary=primary, secondary=secondary)
        controller = CostController(kv_store, tiers=tiers(hard_limit=0.5, soft_limit=0.4))
        service.coordinator.cost_controller = controller
        service.coordinator.estimated_request_cost = 0.25
        await controller.record_actual_cost("user-1", 0.0, 0.25)

        result = await service.generate_suggestions(request_factory())

        decisions = result.diagnostics.decisions
        assert primary.calls == 1
        assert secondary.calls == 0
        assert decisions[1].level is FallbackLevel.SECONDARY
        assert not decisions[1].succeeded
        assert decisions[1].reasoning.startswith("budget exhausted")
        assert result.diagnostics.final_level >= FallbackLevel.RULE_BASED
        assert result.diagnostics.budget_warning
        assert controller.get_spend("user-1") <= 0.5
        assert_levels_strictly_increase(decisions)

    @pytest.mark.asyncio
    async def test_soft_limit_warning_is_reported(self, build_service, fake_provider, kv_store, request_factory):
        """Test that a WARN authorization surfaces in diagnostics."""
        service = build_service(primary=fake_provider(name="gemini"))
        service.coordinator.cost_controller = CostController(kv_store, tiers=tiers(hard_limit=1.0, soft_limit=0.001))

        result = await service.generate_suggestions(request_factory())

        assert "remaining" in result.diagnostics.budget_warning

    @pytest.mark.asyncio
    async def test_reservation_settled_to_actual_cost(self, build_service, fake_provider, request_factory):
        """Test that the estimated reservation is replaced by the provider's real cost."""
        service = build_service(primary=fake_provider(name="gemini", cost=0.004))

        await service.generate_suggestions(request_factory())

        assert service.cost_controller.get_spend("user-1") == pytest.approx(0.004)


class TestCoordinatorBehavior:
    """Test acceptance, health recording and cancellation."""

    @pytest.mark.asyncio
    async def test_unparseable_primary_records_failure(self, build_service, fake_provider, request_factory):
        """Test that a provider returning garbage counts as a failed health sample."""
        service = build_service(
            primary=fake_provider(name="gemini", responses=["no json here"]),
            secondary=fake_provider(name="backup"),
        )

        result = await service.generate_suggestions(request_factory())

        assert result.diagnostics.decisions[0].reasoning == "GEMINI UNPARSEABLE RESPONSE"
        assert service.health.status("primary").error_rate == 1.0
        assert service.health.status("secondary").error_rate == 0.0

    @pytest.mark.asyncio
    async def test_level_logs_carry_fallback_level(self, build_service, fake_provider, request_factory):
        """Test that per-level log lines name the level for the JSON formatter."""
        service = build_service(
            primary=fake_provider(name="gemini", responses=["no json here"]),
            secondary=fake_provider(name="backup"),
        )

        with patch("meal_suggest.fallback.coordinator.logger") as mock_logger:
            await service.generate_suggestions(request_factory())

        levels = [c.kwargs["extra"].get("fallback_level") for c in mock_logger.info.call_args_list]
        assert levels == ["primary", "secondary"]

    @pytest.mark.asyncio
    async def test_successful_result_is_written_to_cache(self, build_service, fake_provider, request_factory):
        """Test that provider results are written back to the cache."""
        service = build_service(primary=fake_provider(name="gemini"))

        await service.generate_suggestions(request_factory())

        assert service.cache.stats()["entries"] == 1

    @pytest.mark.asyncio
    async def test_candidates_ranked_by_quality(self, build_service, fake_provider, meal, request_factory):
        """Test that returned candidates are ordered by overall quality."""
        sparse = {"name": "Plain Rice", "ingredients": ["rice"], "estimated_cost": 1.2}
        primary = fake_provider(name="gemini", responses=[json.dumps({"meals": [sparse, meal()]})])
        service = build_service(primary=primary)

        result = await service.generate_suggestions(request_factory())

        assert [c.name for c in result.candidates] == ["Chicken and Rice Bowl", "Plain Rice"]

    @pytest.mark.asyncio
    async def test_cancellation_reaches_provider_call(self, build_service, fake_provider, request_factory):
        """Test that cancelling the caller cancels the in-flight provider call and refunds the reservation."""
        primary = fake_provider(name="gemini", delay=5.0, timeout_seconds=10.0)
        service = build_service(primary=primary)

        task = asyncio.create_task(service.generate_suggestions(request_factory()))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert service.cost_controller.get_spend("user-1") == pytest.approx(0.0)

    def test_accept_rejects_empty_candidates(self, build_service, request_factory, candidate):
        """Test that a structurally empty candidate fails the sanity check."""
        coordinator = build_service(offline=True).coordinator
        request = request_factory()
        context = StrategyContext.from_request(request)
        scored = coordinator.pipeline.process([candidate(ingredients=[])], context.validation, FallbackLevel.RULE_BASED)
        result = StrategyResult(level=FallbackLevel.RULE_BASED, candidates=scored, succeeded=True, diagnostic="rule-based")

        accepted, reasoning = coordinator.accept(result, request.constraints)

        assert not accepted
        assert reasoning == "rejected 'Chicken and Rice Bowl': no ingredients"

    def test_accept_keeps_strategy_diagnostic(self, build_service, request_factory, candidate):
        """Test that an accepted result keeps the strategy's own diagnostic."""
        coordinator = build_service(offline=True).coordinator
        request = request_factory()
        context = StrategyContext.from_request(request)
        scored = coordinator.pipeline.process([candidate()], context.validation, FallbackLevel.RULE_BASED)
        result = StrategyResult(level=FallbackLevel.RULE_BASED, candidates=scored, succeeded=True, diagnostic="rule-based")

        assert coordinator.accept(result, request.constraints) == (True, "rule-based")

    @pytest.mark.asyncio
    async def test_close_closes_providers(self, build_service, fake_provider):
        """Test that closing the service closes every provider."""
        primary, secondary = fake_provider(name="gemini"), fake_provider(name="backup")
        service = build_service(primary=primary, secondary=secondary)

        await service.close()

        assert primary.closed and secondary.closed
