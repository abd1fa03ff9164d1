"""Weighted multi-component quality scoring."""

from typing import Dict, Iterable, Optional

from meal_suggest.models.models import ParsedCandidate, QualityLevel, QualityScore, ValidationResult
from meal_suggest.pipeline.validator import ValidationContext, family_fit_score
from meal_suggest.utils.logger import logger


DEFAULT_WEIGHTS: Dict[str, float] = {
    "completeness": 0.15,
    "accuracy": 0.20,
    "relevance": 0.25,
    "safety": 0.20,
    "diversity": 0.10,
    "feasibility": 0.10,
}

# Distinct ingredients at which a meal counts as fully varied
VARIETY_TARGET = 8


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _jaccard(a: set, b: set) -> float:
    if not a and not b:
        return 0.0
    return len(a & b) / len(a | b)


class QualityScorer:
    """Score a validated candidate.

    Args:
        weights: Component weights. Must cover every component and sum to 1.0.

    Raises:
        ValueError: If the weights do not sum to 1.0 (within 1e-6) or a component is missing.
    """

    def __init__(self, weights: Optional[Dict[str, float]] = None) -> None:
        weights = dict(weights or DEFAULT_WEIGHTS)
        missing = set(DEFAULT_WEIGHTS) - set(weights)
        if missing:
            raise ValueError(f"Quality weights missing components: {sorted(missing)}")
        total = sum(weights.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Quality weights must sum to 1.0, got {total}")
        self.weights = weights

    def score(
        self,
        candidate: ParsedCandidate,
        validation: ValidationResult,
        context: ValidationContext,
        peers: Iterable[ParsedCandidate] = (),
    ) -> QualityScore:
        components = {
            "completeness": self._completeness(candidate),
            "accuracy": self._accuracy(candidate),
            "relevance": self._relevance(candidate, context),
            "safety": 0.0 if validation.has_safety_error else 1.0,
            "diversity": self._diversity(candidate, peers),
            "feasibility": self._feasibility(validation),
        }
        components = {name: round(_clamp(value), 4) for name, value in components.items()}
        overall = _clamp(sum(components[name] * weight for name, weight in self.weights.items()))
        if validation.has_safety_error:
            logger.debug(f"Safety component zeroed for '{candidate.name}'")
        return QualityScore(
            overall=round(overall, 4),
            components=components,
            weights=dict(self.weights),
            level=QualityLevel.from_score(overall),
        )

    @staticmethod
    def _completeness(candidate: ParsedCandidate) -> float:
        present = [
            bool(candidate.name),
            bool(candidate.description),
            candidate.prep_minutes is not None,
            candidate.cook_minutes is not None,
            candidate.estimated_cost is not None,
            candidate.servings is not None,
            bool(candidate.ingredients),
            bool(candidate.instructions),
            not candidate.nutrition.is_empty(),
        ]
        return sum(present) / len(present)

    @staticmethod
    def _accuracy(candidate: ParsedCandidate) -> float:
        """Penalize recovered parses and costs that disagree with the ingredient roll-up."""
        accuracy = 1.0
        for warning in candidate.parse_warnings:
            accuracy -= 0.3 if warning.startswith("partial") else 0.1
        costs = [i.estimated_cost for i in candidate.ingredients]
        if candidate.estimated_cost and costs and all(c is not None for c in costs):
            roll_up = sum(costs)
            if abs(roll_up - candidate.estimated_cost) / candidate.estimated_cost > 0.25:
                accuracy -= 0.2
        return accuracy

    @staticmethod
    def _relevance(candidate: ParsedCandidate, context: ValidationContext) -> float:
        fit = family_fit_score(candidate, context.family)
        checks = []
        budget = context.constraints.budget
        if budget is not None and candidate.estimated_cost is not None:
            checks.append(_clamp(1.0 - max(0.0, candidate.estimated_cost - budget) / budget))
        for actual, limit in (
            (candidate.prep_minutes, context.constraints.max_prep_minutes),
            (candidate.cook_minutes, context.constraints.max_cook_minutes),
        ):
            if limit is not None and actual is not None:
                checks.append(_clamp(1.0 - max(0, actual - limit) / limit))
        constraint_fit = sum(checks) / len(checks) if checks else 1.0
        return 0.5 * fit + 0.5 * constraint_fit

    @staticmethod
    def _diversity(candidate: ParsedCandidate, peers: Iterable[ParsedCandidate]) -> float:
        names = set(candidate.ingredient_names)
        variety = min(1.0, len(names) / VARIETY_TARGET)
        others = [set(p.ingredient_names) for p in peers if p is not candidate]
        if not others:
            return variety
        overlap = max(_jaccard(names, other) for other in others)
        return (variety + (1.0 - overlap)) / 2

    @staticmethod
    def _feasibility(validation: ValidationResult) -> float:
        non_safety_errors = [e for e in validation.errors if not e.is_safety]
        return 1.0 - 0.3 * len(non_safety_errors) - 0.15 * len(validation.warnings) - 0.05 * len(validation.suggestions)
