"""Three-tier validation of parsed candidates against the requesting family.

Critical issues make a candidate unacceptable; important and advisory issues are reported
to the caller and feed the quality score. All three tiers are always evaluated so the
diagnostics are complete even when a candidate is rejected.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from meal_suggest.models.models import (
    Constraints,
    FamilyProfile,
    ParsedCandidate,
    RequestType,
    Severity,
    SuggestionRequest,
    ValidationIssue,
    ValidationResult,
    utc_now,
)
from meal_suggest.utils.config import config


# ============================================================================
# Reference tables
# ============================================================================

# Canonical allergen -> ingredient terms that contain it
ALLERGEN_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "peanut": ("peanut", "peanut butter", "groundnut", "satay"),
    "tree_nut": ("almond", "cashew", "walnut", "pecan", "hazelnut", "pistachio", "macadamia", "pine nut"),
    "milk": ("milk", "cheese", "butter", "cream", "yogurt", "yoghurt", "parmesan", "mozzarella", "cheddar", "ghee", "whey"),
    "egg": ("egg", "mayonnaise", "meringue"),
    "wheat": ("wheat", "flour", "bread", "pasta", "spaghetti", "couscous", "tortilla", "breadcrumb", "soy sauce"),
    "gluten": ("wheat", "flour", "bread", "pasta", "spaghetti", "couscous", "barley", "rye", "semolina", "breadcrumb", "soy sauce"),
    "soy": ("soy", "tofu", "edamame", "tempeh", "miso"),
    "fish": ("fish", "salmon", "tuna", "cod", "anchovy", "haddock", "tilapia", "trout", "sardine"),
    "shellfish": ("shrimp", "prawn", "crab", "lobster", "mussel", "clam", "oyster", "scallop"),
    "sesame": ("sesame", "tahini"),
}

# Free-text allergen names -> canonical key
ALLERGEN_ALIASES: Dict[str, str] = {
    "peanuts": "peanut",
    "nuts": "tree_nut",
    "tree nut": "tree_nut",
    "tree nuts": "tree_nut",
    "dairy": "milk",
    "lactose": "milk",
    "eggs": "egg",
    "seafood": "shellfish",
}

# Ingredient phrases that contain an allergen term but not the allergen
ALLERGEN_EXCEPTIONS: Dict[str, Tuple[str, ...]] = {
    "milk": ("peanut butter", "almond butter", "cocoa butter", "coconut milk", "coconut cream", "almond milk", "oat milk", "soy milk"),
    "wheat": ("buckwheat", "rice noodle"),
    "gluten": ("buckwheat", "rice noodle"),
    "egg": ("eggplant",),
    "peanut": (),
}

# Labels that make the whole ingredient free of the allergen ("gluten-free pasta")
SAFE_MARKERS: Dict[str, Tuple[str, ...]] = {
    "milk": ("dairy-free", "dairy free", "non-dairy", "vegan"),
    "egg": ("egg-free", "egg free", "vegan"),
    "wheat": ("gluten-free", "gluten free", "wheat-free"),
    "gluten": ("gluten-free", "gluten free"),
}

MEAT_TERMS = (
    "chicken", "beef", "pork", "lamb", "turkey", "bacon", "ham", "sausage", "duck", "veal",
    "chorizo", "prosciutto", "pepperoni", "salami", "gelatin", "mince",
)
PORK_TERMS = ("pork", "bacon", "ham", "lard", "prosciutto", "chorizo", "pepperoni", "salami")

DIETARY_FORBIDDEN: Dict[str, Tuple[str, ...]] = {
    "vegetarian": MEAT_TERMS + ALLERGEN_SYNONYMS["fish"] + ALLERGEN_SYNONYMS["shellfish"],
    "vegan": MEAT_TERMS
    + ALLERGEN_SYNONYMS["fish"]
    + ALLERGEN_SYNONYMS["shellfish"]
    + ALLERGEN_SYNONYMS["milk"]
    + ALLERGEN_SYNONYMS["egg"]
    + ("honey",),
    "pescatarian": MEAT_TERMS,
    "gluten_free": ALLERGEN_SYNONYMS["gluten"],
    "dairy_free": ALLERGEN_SYNONYMS["milk"],
    "halal": PORK_TERMS + ("wine", "beer", "gelatin"),
    "kosher": PORK_TERMS + ALLERGEN_SYNONYMS["shellfish"],
}

DIETARY_EXCEPTIONS: Dict[str, Tuple[str, ...]] = {
    "vegan": ALLERGEN_EXCEPTIONS["milk"] + ALLERGEN_EXCEPTIONS["egg"],
    "dairy_free": ALLERGEN_EXCEPTIONS["milk"],
    "gluten_free": ALLERGEN_EXCEPTIONS["gluten"],
}

DIETARY_SAFE_MARKERS: Dict[str, Tuple[str, ...]] = {
    "vegan": SAFE_MARKERS["milk"] + SAFE_MARKERS["egg"],
    "dairy_free": SAFE_MARKERS["milk"],
    "gluten_free": SAFE_MARKERS["gluten"],
}

SPICY_TERMS = ("chili", "chilli", "jalapeno", "cayenne", "sriracha", "habanero", "gochujang", "harissa")

SKILL_RANK = {"beginner": 0, "easy": 0, "intermediate": 1, "medium": 1, "advanced": 2, "hard": 2}

# Fresh produce and the months (northern hemisphere) it is in season
SEASONAL_PRODUCE: Dict[str, frozenset] = {
    "asparagus": frozenset({3, 4, 5, 6}),
    "strawberries": frozenset({5, 6, 7, 8}),
    "peaches": frozenset({6, 7, 8, 9}),
    "zucchini": frozenset({6, 7, 8, 9}),
    "corn on the cob": frozenset({7, 8, 9}),
    "pumpkin": frozenset({9, 10, 11}),
    "butternut squash": frozenset({9, 10, 11, 12, 1, 2}),
    "brussels sprouts": frozenset({10, 11, 12, 1, 2}),
    "parsnips": frozenset({10, 11, 12, 1, 2, 3}),
}


@dataclass(frozen=True)
class ValidationContext:
    """Everything the validator and scorer need to know about the request."""

    constraints: Constraints
    family: FamilyProfile
    request_type: RequestType = RequestType.MEAL_SUGGESTION
    month: int = field(default_factory=lambda: utc_now().month)

    @classmethod
    def from_request(cls, request: SuggestionRequest, month: Optional[int] = None) -> "ValidationContext":
        return cls(
            constraints=request.constraints,
            family=request.family,
            request_type=request.request_type,
            month=month or request.created_at.month,
        )


# ============================================================================
# Term matching
# ============================================================================


def _contains_term(text: str, term: str, exceptions: Iterable[str] = ()) -> bool:
    """Word-boundary match of `term` (optionally plural) in `text` after removing exceptions."""
    text = text.lower()
    for phrase in exceptions:
        text = text.replace(phrase, " ")
    return re.search(rf"\b{re.escape(term)}(?:s|es)?\b", text) is not None


def _ingredient_matches(
    name: str, terms: Iterable[str], exceptions: Iterable[str] = (), safe_markers: Iterable[str] = ()
) -> bool:
    if any(marker in name for marker in safe_markers):
        return False
    return any(_contains_term(name, term, exceptions) for term in terms)


def canonical_allergen(allergen: str) -> str:
    key = allergen.strip().lower()
    return ALLERGEN_ALIASES.get(key, key)


def allergen_conflicts(candidate: ParsedCandidate, allergens: Iterable[str]) -> List[Tuple[str, str]]:
    """Return (allergen, offending ingredient or declaration) pairs found in the candidate."""
    conflicts = []
    declared = {canonical_allergen(a) for a in candidate.allergens}
    for allergen in allergens:
        key = canonical_allergen(allergen)
        if key in declared:
            conflicts.append((allergen, "declared allergen"))
            continue
        terms = ALLERGEN_SYNONYMS.get(key, (key,))
        exceptions = ALLERGEN_EXCEPTIONS.get(key, ())
        markers = SAFE_MARKERS.get(key, ())
        for name in candidate.ingredient_names:
            if _ingredient_matches(name, terms, exceptions, markers):
                conflicts.append((allergen, name))
                break
    return conflicts


def dietary_violations(candidate: ParsedCandidate, restrictions: Iterable[str]) -> List[Tuple[str, str]]:
    violations = []
    for restriction in restrictions:
        forbidden = DIETARY_FORBIDDEN.get(restriction)
        if not forbidden:
            continue
        exceptions = DIETARY_EXCEPTIONS.get(restriction, ())
        markers = DIETARY_SAFE_MARKERS.get(restriction, ())
        for name in candidate.ingredient_names:
            if _ingredient_matches(name, forbidden, exceptions, markers):
                violations.append((restriction, name))
                break
    return violations


def is_spicy(candidate: ParsedCandidate) -> bool:
    if "spicy" in candidate.tags:
        return True
    return any(_contains_term(name, term) for name in candidate.ingredient_names for term in SPICY_TERMS)


def family_fit_score(candidate: ParsedCandidate, family: FamilyProfile) -> float:
    """Predicted family acceptance in [0, 1]; 0.5 means no signal either way."""
    score = 0.5
    names = candidate.ingredient_names
    disliked = [d for d in family.disliked_ingredients if any(_contains_term(n, d) for n in names)]
    liked = [item for item in family.liked_ingredients if any(_contains_term(n, item) for n in names)]
    score -= 0.25 * len(disliked)
    score += min(0.1 * len(liked), 0.3)
    if candidate.cuisine and candidate.cuisine in family.preferred_cuisines:
        score += 0.15
    if family.spice_tolerance in ("none", "mild") and is_spicy(candidate):
        score -= 0.2
    return max(0.0, min(1.0, score))


def pantry_coverage(candidate: ParsedCandidate, pantry: Iterable[str]) -> float:
    names = candidate.ingredient_names
    if not names:
        return 0.0
    pantry = list(pantry)
    covered = sum(1 for n in names if any(p in n or n in p for p in pantry))
    return covered / len(names)


# ============================================================================
# Validator
# ============================================================================


class ResponseValidator:
    """Validate candidates against hard constraints and family data.

    Args:
        budget_tolerance: Fraction a cost may exceed the budget before it is critical.
        time_tolerance: Fraction prep or cook time may exceed its limit before it is critical.
        availability_threshold: Minimum pantry coverage when a pantry is declared.
        family_fit_threshold: Minimum predicted family fit.
    """

    def __init__(
        self,
        budget_tolerance: float = config.BUDGET_TOLERANCE,
        time_tolerance: float = config.TIME_TOLERANCE,
        availability_threshold: float = config.AVAILABILITY_THRESHOLD,
        family_fit_threshold: float = config.FAMILY_FIT_THRESHOLD,
    ) -> None:
        self.budget_tolerance = budget_tolerance
        self.time_tolerance = time_tolerance
        self.availability_threshold = availability_threshold
        self.family_fit_threshold = family_fit_threshold

    def validate(self, candidate: ParsedCandidate, context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        result.errors.extend(self._critical(candidate, context))
        result.warnings.extend(self._important(candidate, context))
        result.suggestions.extend(self._advisory(candidate, context))
        return result

    def _critical(self, candidate: ParsedCandidate, context: ValidationContext) -> List[ValidationIssue]:
        issues = []

        for allergen, source in allergen_conflicts(candidate, context.family.allergens):
            issues.append(
                ValidationIssue(
                    severity=Severity.CRITICAL,
                    category="allergen",
                    message=f"Contains {allergen} ({source})",
                )
            )

        budget = context.constraints.budget
        if budget is not None and candidate.estimated_cost is not None:
            if candidate.estimated_cost > budget * (1 + self.budget_tolerance):
                issues.append(
                    ValidationIssue(
                        severity=Severity.CRITICAL,
                        category="budget",
                        message=f"Estimated cost {candidate.estimated_cost:.2f} exceeds budget {budget:.2f}",
                    )
                )

        for label, actual, limit in (
            ("Prep", candidate.prep_minutes, context.constraints.max_prep_minutes),
            ("Cook", candidate.cook_minutes, context.constraints.max_cook_minutes),
        ):
            if limit is not None and actual is not None and actual > limit * (1 + self.time_tolerance):
                issues.append(
                    ValidationIssue(
                        severity=Severity.CRITICAL,
                        category="time",
                        message=f"{label} time {actual} min exceeds limit of {limit} min",
                    )
                )

        for restriction, ingredient in dietary_violations(candidate, context.family.dietary_restrictions):
            issues.append(
                ValidationIssue(
                    severity=Severity.CRITICAL,
                    category="dietary",
                    message=f"Not {restriction.replace('_', '-')}: contains {ingredient}",
                )
            )
        return issues

    def _important(self, candidate: ParsedCandidate, context: ValidationContext) -> List[ValidationIssue]:
        issues = []
        family = context.family

        if candidate.servings is not None and candidate.servings < family.family_size:
            issues.append(
                ValidationIssue(
                    severity=Severity.IMPORTANT,
                    category="servings",
                    message=f"Serves {candidate.servings} but the family has {family.family_size} members",
                )
            )

        if family.available_ingredients and candidate.ingredients:
            coverage = pantry_coverage(candidate, family.available_ingredients)
            if coverage < self.availability_threshold:
                issues.append(
                    ValidationIssue(
                        severity=Severity.IMPORTANT,
                        category="availability",
                        message=f"Only {coverage:.0%} of ingredients are in the pantry",
                    )
                )

        fit = family_fit_score(candidate, family)
        if fit < self.family_fit_threshold:
            issues.append(
                ValidationIssue(
                    severity=Severity.IMPORTANT,
                    category="family_fit",
                    message=f"Low predicted family fit ({fit:.2f})",
                )
            )
        return issues

    def _advisory(self, candidate: ParsedCandidate, context: ValidationContext) -> List[ValidationIssue]:
        issues = []

        nutrition = candidate.nutrition
        if nutrition.calories:
            if nutrition.protein_g is not None and nutrition.protein_g * 4 / nutrition.calories < 0.10:
                issues.append(
                    ValidationIssue(severity=Severity.ADVISORY, category="nutrition", message="Low in protein")
                )
            if nutrition.fat_g is not None and nutrition.fat_g * 9 / nutrition.calories > 0.40:
                issues.append(
                    ValidationIssue(severity=Severity.ADVISORY, category="nutrition", message="High share of calories from fat")
                )
            if nutrition.calories > 1000:
                issues.append(
                    ValidationIssue(
                        severity=Severity.ADVISORY,
                        category="nutrition",
                        message=f"Calorie-dense ({nutrition.calories:.0f} kcal per serving)",
                    )
                )

        if candidate.difficulty in SKILL_RANK:
            if SKILL_RANK[candidate.difficulty] > SKILL_RANK[context.family.cooking_skill]:
                issues.append(
                    ValidationIssue(
                        severity=Severity.ADVISORY,
                        category="skill",
                        message=f"Rated {candidate.difficulty}; family cooking skill is {context.family.cooking_skill}",
                    )
                )

        for produce, months in SEASONAL_PRODUCE.items():
            if context.month not in months and any(_contains_term(n, produce) for n in candidate.ingredient_names):
                issues.append(
                    ValidationIssue(
                        severity=Severity.ADVISORY,
                        category="seasonal",
                        message=f"{produce.capitalize()} is out of season",
                    )
                )
        return issues
