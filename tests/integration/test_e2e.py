"""End-to-end integration tests against the real Gemini provider.

Each test builds a fresh service so cache, budget and health state never leak between
tests. Assertions check the orchestration contract (safety, constraints, diagnostics),
not the exact meals the model proposes.
"""

import time

import pytest
import pytest_asyncio

from meal_suggest.models.models import Constraints, FallbackLevel, FamilyProfile, SuggestionRequest
from meal_suggest.pipeline.validator import allergen_conflicts, dietary_violations
from meal_suggest.service import initialize_suggestion_service
from meal_suggest.stores.kv_store import InMemoryKeyValueStore


def make_request(prompt: str, **family) -> SuggestionRequest:
    profile = {"family_id": "it-family", "family_size": 4}
    profile.update(family)
    return SuggestionRequest(
        requester_id="integration",
        requester_tier="premium",
        prompt=prompt,
        constraints=Constraints(budget=20.0, max_prep_minutes=25, max_cook_minutes=40),
        family=FamilyProfile(**profile),
    )


@pytest_asyncio.fixture
async def service():
    svc = initialize_suggestion_service(kv_store=InMemoryKeyValueStore())
    yield svc
    await svc.close()


class TestLiveSuggestions:
    """Test full requests through the primary provider."""

    @pytest.mark.asyncio
    async def test_basic_request(self, service):
        """Test that a plain request returns acceptable candidates with a decision trail."""
        start = time.time()
        result = await service.generate_suggestions(
            make_request("Suggest three quick family dinners. Respond with JSON: {\"meals\": [...]}")
        )
        elapsed = time.time() - start

        assert result.candidates
        assert result.diagnostics.decisions[-1].succeeded
        assert result.quality.overall > 0
        print(f"\n✓ {len(result.candidates)} candidates from {result.diagnostics.final_level.name.lower()} in {elapsed:.1f}s")

    @pytest.mark.asyncio
    async def test_allergens_and_diet_are_respected(self, service):
        """Test that no returned candidate conflicts with the family's allergens or diet."""
        request = make_request(
            "Suggest dinners with noodles or rice. Respond with JSON: {\"meals\": [...]}",
            allergens=["peanut", "shellfish"],
            dietary_restrictions=["vegetarian"],
        )

        result = await service.generate_suggestions(request)

        for candidate in result.candidates:
            assert not allergen_conflicts(candidate, request.family.allergens), candidate.name
            assert not dietary_violations(candidate, request.family.dietary_restrictions), candidate.name

    @pytest.mark.asyncio
    async def test_repeat_request_is_cached(self, service):
        """Test that repeating a served request is answered from the exact cache."""
        request = make_request("Suggest a cozy soup dinner. Respond with JSON: {\"meals\": [...]}")

        first = await service.generate_suggestions(request)
        if first.diagnostics.final_level in (FallbackLevel.CACHED, FallbackLevel.DEFAULT):
            pytest.skip("first request was not served by a cacheable level")
        second = await service.generate_suggestions(request)

        assert [d.level for d in second.diagnostics.decisions] == [FallbackLevel.CACHED]
        assert [c.name for c in second.candidates] == [c.name for c in first.candidates]
        assert service.cache.stats()["hits"]["exact"] == 1

    @pytest.mark.asyncio
    async def test_spend_is_recorded(self, service):
        """Test that a provider-served request settles its real cost against the budget."""
        result = await service.generate_suggestions(
            make_request("Suggest a vegetable curry. Respond with JSON: {\"meals\": [...]}")
        )

        if result.diagnostics.final_level is FallbackLevel.PRIMARY:
            assert service.cost_controller.get_spend("integration") > 0
