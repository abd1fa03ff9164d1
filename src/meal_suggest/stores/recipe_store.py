"""Read-only recipe and ingredient store consumed by the rule-based generator and enhancer.

The store is an external collaborator: the orchestrator only needs `search` and
`ingredient_info`. InMemoryRecipeStore serves the bundled seed catalogue.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from meal_suggest.models.models import Ingredient, NutritionInfo


class RecipeRecord(BaseModel):
    """A stored recipe. `allergens` holds only the allergens the data source tagged."""

    recipe_id: str
    name: str
    description: Optional[str] = None
    cuisine: Optional[str] = None
    prep_minutes: int
    cook_minutes: int
    estimated_cost: float
    servings: int = 4
    ingredients: List[Ingredient]
    instructions: List[str]
    tags: List[str] = Field(default_factory=list)
    allergens: List[str] = Field(default_factory=list)
    difficulty: str = "intermediate"
    nutrition: NutritionInfo = Field(default_factory=NutritionInfo)
    popularity: float = 0.5


class IngredientInfo(BaseModel):
    """Catalogue entry: cost and nutrition for one typical recipe portion of the ingredient."""

    name: str
    unit_cost: float
    nutrition: NutritionInfo = Field(default_factory=NutritionInfo)


@dataclass
class RecipeSearchFilter:
    """Deterministic search filter built from family data."""

    exclude_allergens: List[str] = field(default_factory=list)
    dietary_restrictions: List[str] = field(default_factory=list)
    exclude_ingredients: List[str] = field(default_factory=list)
    preferred_cuisines: List[str] = field(default_factory=list)
    liked_ingredients: List[str] = field(default_factory=list)
    max_total_minutes: Optional[int] = None
    max_cost: Optional[float] = None
    limit: int = 25


class RecipeStore:
    """Recipe store contract."""

    def search(self, search_filter: RecipeSearchFilter) -> List[RecipeRecord]:
        raise NotImplementedError

    def ingredient_info(self, name: str) -> Optional[IngredientInfo]:
        raise NotImplementedError


class InMemoryRecipeStore(RecipeStore):
    """Recipe store backed by lists held in memory."""

    def __init__(self, recipes: Iterable[RecipeRecord], catalogue: Iterable[IngredientInfo] = ()) -> None:
        self._recipes = list(recipes)
        self._catalogue: Dict[str, IngredientInfo] = {info.name.lower(): info for info in catalogue}

    @classmethod
    def from_seed(cls) -> "InMemoryRecipeStore":
        from meal_suggest.data.seed_recipes import SEED_CATALOGUE, SEED_RECIPES

        return cls(
            recipes=[RecipeRecord(**r) for r in SEED_RECIPES],
            catalogue=[IngredientInfo(**c) for c in SEED_CATALOGUE],
        )

    def search(self, search_filter: RecipeSearchFilter) -> List[RecipeRecord]:
        """Return recipes passing the filter's hard exclusions, most popular first.

        Dietary restrictions match on recipe tags (a recipe must carry the tag).
        Time and cost limits are applied loosely (×1.2 / ×1.1) so near misses reach scoring.
        """
        excluded_allergens = set(search_filter.exclude_allergens)
        excluded_ingredients = set(search_filter.exclude_ingredients)
        results = []
        for recipe in self._recipes:
            if excluded_allergens & set(recipe.allergens):
                continue
            if any(r not in recipe.tags for r in search_filter.dietary_restrictions):
                continue
            if excluded_ingredients & {i.name.lower() for i in recipe.ingredients}:
                continue
            if search_filter.max_total_minutes is not None:
                if recipe.prep_minutes + recipe.cook_minutes > search_filter.max_total_minutes * 1.2:
                    continue
            if search_filter.max_cost is not None and recipe.estimated_cost > search_filter.max_cost * 1.1:
                continue
            results.append(recipe)

        results.sort(key=lambda r: (-r.popularity, r.recipe_id))
        return results[: search_filter.limit]

    def ingredient_info(self, name: str) -> Optional[IngredientInfo]:
        key = name.strip().lower()
        if key in self._catalogue:
            return self._catalogue[key]
        # "boneless chicken breast" -> "chicken breast"; the longest contained name wins
        matches = [catalogue_name for catalogue_name in self._catalogue if catalogue_name in key]
        if matches:
            return self._catalogue[max(matches, key=len)]
        return None
