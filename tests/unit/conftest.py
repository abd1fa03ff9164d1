"""Shared fixtures for unit tests.

Providers are faked at the ProviderClient seam so the whole orchestrator runs without
network access or API keys.
"""

import asyncio
import json
from typing import List, Optional

import pytest

from meal_suggest.models.models import (
    Constraints,
    FamilyProfile,
    Ingredient,
    NutritionInfo,
    ParsedCandidate,
    RawProviderOutput,
    SuggestionRequest,
)
from meal_suggest.providers.base import ProviderClient
from meal_suggest.service import initialize_suggestion_service
from meal_suggest.stores.kv_store import InMemoryKeyValueStore
from meal_suggest.stores.recipe_store import InMemoryRecipeStore


def make_meal(**overrides) -> dict:
    """A complete, well-formed meal object as a provider would return it (costs sum to 12.0)."""
    meal = {
        "name": "Chicken and Rice Bowl",
        "description": "Seared chicken over garlicky rice with broccoli.",
        "prep_minutes": 10,
        "cook_minutes": 20,
        "estimated_cost": 12.0,
        "servings": 4,
        "ingredients": [
            {"name": "chicken breast", "quantity": 500, "unit": "g", "estimated_cost": 8.0},
            {"name": "rice", "quantity": 300, "unit": "g", "estimated_cost": 1.2},
            {"name": "broccoli", "quantity": 1, "unit": "piece", "estimated_cost": 1.5},
            {"name": "olive oil", "quantity": 2, "unit": "tbsp", "estimated_cost": 0.3},
            {"name": "garlic", "quantity": 3, "unit": "cloves", "estimated_cost": 1.0},
        ],
        "instructions": ["Cook the rice.", "Sear the chicken.", "Steam the broccoli and serve."],
        "nutrition": {"calories": 520, "protein_g": 40, "carbs_g": 55, "fat_g": 12, "fiber_g": 4},
        "tags": ["family_friendly"],
        "allergens": [],
        "cuisine": "american",
        "difficulty": "beginner",
    }
    meal.update(overrides)
    return meal


def make_candidate(**overrides) -> ParsedCandidate:
    """ParsedCandidate equivalent of make_meal()."""
    values = {
        "name": "Chicken and Rice Bowl",
        "description": "Seared chicken over garlicky rice with broccoli.",
        "prep_minutes": 10,
        "cook_minutes": 20,
        "estimated_cost": 12.0,
        "servings": 4,
        "ingredients": [
            Ingredient(name="chicken breast", quantity=500, unit="g", estimated_cost=8.0),
            Ingredient(name="rice", quantity=300, unit="g", estimated_cost=1.2),
            Ingredient(name="broccoli", quantity=1, unit="piece", estimated_cost=1.5),
            Ingredient(name="olive oil", quantity=2, unit="tbsp", estimated_cost=0.3),
            Ingredient(name="garlic", quantity=3, unit="cloves", estimated_cost=1.0),
        ],
        "instructions": ["Cook the rice.", "Sear the chicken.", "Steam the broccoli and serve."],
        "nutrition": NutritionInfo(calories=520, protein_g=40, carbs_g=55, fat_g=12, fiber_g=4),
        "tags": ["family_friendly"],
        "cuisine": "american",
        "difficulty": "beginner",
        "confidence": 0.9,
    }
    values.update(overrides)
    return ParsedCandidate(**values)


def make_request(
    prompt: str = "Quick weeknight dinner",
    budget: Optional[float] = 15.0,
    max_prep_minutes: Optional[int] = 20,
    max_cook_minutes: Optional[int] = 30,
    requester_id: str = "user-1",
    tier: str = "premium",
    **family_fields,
) -> SuggestionRequest:
    family = {"family_id": "fam-1", "family_size": 4}
    family.update(family_fields)
    return SuggestionRequest(
        requester_id=requester_id,
        requester_tier=tier,
        prompt=prompt,
        constraints=Constraints(budget=budget, max_prep_minutes=max_prep_minutes, max_cook_minutes=max_cook_minutes),
        family=FamilyProfile(**family),
    )


class FakeProvider(ProviderClient):
    """Scripted provider: returns canned texts in order, or sleeps / raises on demand."""

    def __init__(
        self,
        name: str = "fake",
        responses: Optional[List[str]] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        timeout_seconds: float = 1.0,
        cost: float = 0.001,
    ) -> None:
        self.name = name
        self.responses = responses or [json.dumps({"meals": [make_meal()]})]
        self.delay = delay
        self.error = error
        self.timeout_seconds = timeout_seconds
        self.cost_per_1k_tokens = 0.0
        self.cost = cost
        self.calls = 0
        self.prompts: List[str] = []
        self.closed = False

    async def generate(self, prompt: str, system_instructions: str) -> RawProviderOutput:
        self.calls += 1
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        text = self.responses[min(self.calls, len(self.responses)) - 1]
        return RawProviderOutput(text=text, provider=self.name, latency_seconds=self.delay, cost=self.cost)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def meal():
    return make_meal


@pytest.fixture
def candidate():
    return make_candidate


@pytest.fixture
def request_factory():
    return make_request


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def recipe_store():
    return InMemoryRecipeStore.from_seed()


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def build_service(kv_store):
    """Build a SuggestionService wired to fakes; keyword args pass through."""

    def _build(**kwargs):
        kwargs.setdefault("kv_store", kv_store)
        return initialize_suggestion_service(**kwargs)

    return _build
