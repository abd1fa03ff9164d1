"""Enrich candidates with catalogue data.

enhance() never fails and never changes a candidate's identity: name, instructions and
allergens are left exactly as produced. Running it twice gives the same result as once.
"""

from typing import List, Optional

from meal_suggest.models.models import Ingredient, NutritionInfo, ParsedCandidate
from meal_suggest.stores.recipe_store import RecipeStore
from meal_suggest.utils.safe_execute import safe_execute


# (ingredient keywords, tip) pairs; a tip is added when any keyword appears
INGREDIENT_TIPS = (
    (("rice",), "Rinse the rice until the water runs clear for fluffier grains."),
    (("pasta", "spaghetti", "noodles"), "Save a cup of the cooking water to loosen the sauce."),
    (("chicken",), "Rest the chicken for 5 minutes before slicing so it stays juicy."),
    (("beef", "sirloin"), "Pat the beef dry before searing for a better crust."),
    (("garlic",), "Add garlic late in the pan so it does not burn."),
    (("salmon",), "Cook salmon skin-side down first and only flip once."),
    (("beans", "chickpeas"), "Rinse canned beans to cut the sodium."),
)
QUICK_MEAL_TIP = "Prep every ingredient before you turn on the heat; this meal moves fast."
MAKE_AHEAD_TIP = "This keeps well: cook a double batch and refrigerate half for another night."


class ResponseEnhancer:
    """Fills cost and nutrition gaps from the recipe store's ingredient catalogue."""

    def __init__(self, recipe_store: RecipeStore) -> None:
        self.recipe_store = recipe_store

    def enhance(self, candidate: ParsedCandidate) -> ParsedCandidate:
        enhanced = candidate.model_copy(deep=True)

        ingredients = safe_execute(
            lambda: self._priced_ingredients(enhanced.ingredients),
            f"Ingredient pricing for '{candidate.name}'",
            log_level="debug",
        )
        if ingredients is not None:
            enhanced.ingredients = ingredients
            if ingredients and all(i.estimated_cost is not None for i in ingredients):
                enhanced.estimated_cost = round(sum(i.estimated_cost for i in ingredients), 2)

        nutrition = safe_execute(
            lambda: self._filled_nutrition(enhanced),
            f"Nutrition lookup for '{candidate.name}'",
            log_level="debug",
        )
        if nutrition is not None:
            enhanced.nutrition = nutrition

        enhanced.cooking_tips = enhanced.cooking_tips + [
            tip for tip in self._tips_for(enhanced) if tip not in enhanced.cooking_tips
        ]
        return enhanced

    def _priced_ingredients(self, ingredients: List[Ingredient]) -> List[Ingredient]:
        priced = []
        for ingredient in ingredients:
            if ingredient.estimated_cost is None:
                info = self.recipe_store.ingredient_info(ingredient.name)
                if info is not None:
                    ingredient = ingredient.model_copy(update={"estimated_cost": info.unit_cost})
            priced.append(ingredient)
        return priced

    def _filled_nutrition(self, candidate: ParsedCandidate) -> NutritionInfo:
        """Fill only the missing nutrition fields with the sum over catalogue ingredients."""
        current = candidate.nutrition.model_dump()
        missing = [name for name, value in current.items() if value is None]
        if not missing:
            return candidate.nutrition

        totals: dict[str, Optional[float]] = {name: None for name in missing}
        for ingredient in candidate.ingredients:
            info = self.recipe_store.ingredient_info(ingredient.name)
            if info is None:
                continue
            values = info.nutrition.model_dump()
            for name in missing:
                if values[name] is not None:
                    totals[name] = (totals[name] or 0.0) + values[name]

        current.update({name: round(value, 1) for name, value in totals.items() if value is not None})
        return NutritionInfo(**current)

    def _tips_for(self, candidate: ParsedCandidate) -> List[str]:
        tips = []
        names = " ".join(candidate.ingredient_names)
        for keywords, tip in INGREDIENT_TIPS:
            if any(k in names for k in keywords):
                tips.append(tip)
        total = candidate.total_minutes
        if total is not None and total <= 20:
            tips.append(QUICK_MEAL_TIP)
        elif total is not None and total >= 45:
            tips.append(MAKE_AHEAD_TIP)
        return tips
