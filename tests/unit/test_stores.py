"""Unit tests for the key-value and recipe stores."""

import threading

from meal_suggest.stores.kv_store import InMemoryKeyValueStore
from meal_suggest.stores.recipe_store import InMemoryRecipeStore, RecipeSearchFilter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def ids(recipes):
    return [r.recipe_id for r in recipes]


class TestInMemoryKeyValueStore:
    """Test the process-local key-value store."""

    def test_set_get_delete(self):
        """Test basic reads and writes."""
        store = InMemoryKeyValueStore()
        store.set("a", {"x": 1})

        assert store.get("a") == {"x": 1}
        store.delete("a")
        assert store.get("a") is None

    def test_ttl_expiry(self):
        """Test that keys disappear once their TTL passes."""
        clock = FakeClock()
        store = InMemoryKeyValueStore(clock=clock)
        store.set("a", 1, ttl_seconds=10)

        clock.now += 9
        assert store.get("a") == 1
        clock.now += 1
        assert store.get("a") is None
        assert store.keys() == []

    def test_keys_by_prefix(self):
        """Test that keys() filters by prefix."""
        store = InMemoryKeyValueStore()
        for key in ("cache:exact:1", "cache:pattern:1", "budget:spend:u"):
            store.set(key, 0)

        assert sorted(store.keys("cache:")) == ["cache:exact:1", "cache:pattern:1"]

    def test_incr_keeps_original_expiry(self):
        """Test that incr creates with a TTL and later increments keep it."""
        clock = FakeClock()
        store = InMemoryKeyValueStore(clock=clock)

        assert store.incr("spend", 0.5, ttl_seconds=10) == 0.5
        clock.now += 5
        assert store.incr("spend", 0.25, ttl_seconds=100) == 0.75
        clock.now += 5
        assert store.get("spend") is None

    def test_concurrent_incr(self):
        """Test that parallel increments are not lost."""
        store = InMemoryKeyValueStore()
        threads = [threading.Thread(target=lambda: [store.incr("n", 1) for _ in range(100)]) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.get("n") == 800


class TestInMemoryRecipeStore:
    """Test seed catalogue search and ingredient lookup."""

    def test_default_search_orders_by_popularity(self, recipe_store):
        """Test that an empty filter returns the most popular recipes first."""
        assert ids(recipe_store.search(RecipeSearchFilter(limit=2))) == ["r-001", "r-007"]

    def test_dietary_restriction_requires_tag(self, recipe_store):
        """Test that only recipes tagged with every restriction are returned."""
        assert ids(recipe_store.search(RecipeSearchFilter(dietary_restrictions=["vegan"]))) == ["r-006", "r-003"]

    def test_tagged_allergens_are_excluded(self, recipe_store):
        """Test that recipes tagged with an excluded allergen are dropped."""
        results = recipe_store.search(RecipeSearchFilter(exclude_allergens=["wheat"]))

        assert not {"r-002", "r-007", "r-008", "r-009"} & set(ids(results))

    def test_time_and_cost_limits_are_loose(self, recipe_store):
        """Test that time allows 20% and cost 10% over the limit."""
        assert ids(recipe_store.search(RecipeSearchFilter(max_total_minutes=20))) == ["r-002", "r-008", "r-003"]
        assert ids(recipe_store.search(RecipeSearchFilter(max_cost=7.0))) == ["r-002", "r-008"]

    def test_empty_store(self):
        """Test that an empty store returns nothing."""
        assert InMemoryRecipeStore([]).search(RecipeSearchFilter()) == []

    def test_ingredient_info_matching(self, recipe_store):
        """Test exact, contained and unknown ingredient lookups."""
        assert recipe_store.ingredient_info("Rice Noodles").name == "rice noodles"
        assert recipe_store.ingredient_info("boneless chicken breast").name == "chicken breast"
        assert recipe_store.ingredient_info("brown rice").name == "rice"
        assert recipe_store.ingredient_info("saffron") is None
