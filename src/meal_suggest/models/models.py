"""Data models for the meal suggestion orchestrator.

Defines Pydantic models for requests, provider output, parsed candidates, validation,
quality scoring, fallback decisions, cache entries and health metrics.
All models use Pydantic v2 for strict validation.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Requests
# ============================================================================


class RequestType(str, Enum):
    MEAL_SUGGESTION = "meal_suggestion"
    WEEKLY_MENU = "weekly_menu"
    PERSONALIZATION = "personalization"


class Constraints(BaseModel):
    """Hard constraints a candidate must respect (within configured tolerances)."""

    model_config = ConfigDict(frozen=True)

    budget: Annotated[Optional[float], Field(None, gt=0, description="Budget ceiling for the meal")]
    max_prep_minutes: Annotated[Optional[int], Field(None, gt=0, le=1440)]
    max_cook_minutes: Annotated[Optional[int], Field(None, gt=0, le=1440)]
    servings: Annotated[int, Field(4, ge=1, le=50)]


class FamilyProfile(BaseModel):
    """Read-only family preference data supplied by the caller."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    family_id: Annotated[str, Field(min_length=1)]
    family_size: Annotated[int, Field(4, ge=1, le=50)]
    allergens: List[str] = Field(default_factory=list)
    dietary_restrictions: List[str] = Field(default_factory=list)
    liked_ingredients: List[str] = Field(default_factory=list)
    disliked_ingredients: List[str] = Field(default_factory=list)
    preferred_cuisines: List[str] = Field(default_factory=list)
    spice_tolerance: str = "medium"
    cooking_skill: str = "intermediate"
    available_ingredients: List[str] = Field(default_factory=list)

    @field_validator(
        "allergens",
        "liked_ingredients",
        "disliked_ingredients",
        "preferred_cuisines",
        "available_ingredients",
        mode="before",
    )
    @classmethod
    def normalize_terms(cls, values: Optional[list]) -> list:
        """Lower-case, strip and de-duplicate term lists while keeping order."""
        if not values:
            return []
        cleaned = [str(v).strip().lower() for v in values]
        return list(dict.fromkeys(v for v in cleaned if v))

    @field_validator("dietary_restrictions", mode="before")
    @classmethod
    def normalize_restrictions(cls, values: Optional[list]) -> list:
        """Restrictions are identifiers: "Gluten-Free" -> "gluten_free"."""
        if not values:
            return []
        cleaned = [str(v).strip().lower().replace("-", "_").replace(" ", "_") for v in values]
        return list(dict.fromkeys(v for v in cleaned if v))

    @field_validator("spice_tolerance")
    @classmethod
    def validate_spice(cls, v: str) -> str:
        v = v.lower()
        if v not in ("none", "mild", "medium", "hot"):
            raise ValueError(f"spice_tolerance must be none, mild, medium or hot, got: {v}")
        return v

    @field_validator("cooking_skill")
    @classmethod
    def validate_skill(cls, v: str) -> str:
        v = v.lower()
        if v not in ("beginner", "intermediate", "advanced"):
            raise ValueError(f"cooking_skill must be beginner, intermediate or advanced, got: {v}")
        return v


class SuggestionRequest(BaseModel):
    """One immutable meal-suggestion request.

    The prompt is already built by the caller and treated as opaque text.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    requester_id: Annotated[str, Field(min_length=1)]
    requester_tier: str = "free"
    request_type: RequestType = RequestType.MEAL_SUGGESTION
    prompt: Annotated[str, Field(min_length=1, max_length=8000)]
    constraints: Constraints = Field(default_factory=Constraints)
    family: FamilyProfile
    requires_high_quality: bool = False
    tolerates_lower_quality: bool = False
    created_at: datetime = Field(default_factory=utc_now)


# ============================================================================
# Provider output and candidates
# ============================================================================


class RawProviderOutput(BaseModel):
    """Text returned by one provider call plus its accounting. Never mutated."""

    model_config = ConfigDict(frozen=True)

    text: str
    provider: str
    latency_seconds: Annotated[float, Field(ge=0)]
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost: Annotated[float, Field(0.0, ge=0)]


class Ingredient(BaseModel):
    name: Annotated[str, Field(min_length=1)]
    quantity: Optional[float] = None
    unit: Optional[str] = None
    estimated_cost: Annotated[Optional[float], Field(None, ge=0)]


class NutritionInfo(BaseModel):
    """Per-serving nutrition block. Any field may be unknown."""

    calories: Optional[float] = None
    protein_g: Optional[float] = None
    carbs_g: Optional[float] = None
    fat_g: Optional[float] = None
    fiber_g: Optional[float] = None

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())


class FallbackLevel(IntEnum):
    """Ordered fallback levels. A run only ever moves to higher values."""

    PRIMARY = 0
    SECONDARY = 1
    RULE_BASED = 2
    CACHED = 3
    DEFAULT = 4
    EXHAUSTED = 5

    def next(self) -> "FallbackLevel":
        if self is FallbackLevel.EXHAUSTED:
            return self
        return FallbackLevel(self.value + 1)

    @property
    def uses_provider(self) -> bool:
        return self in (FallbackLevel.PRIMARY, FallbackLevel.SECONDARY)


class ParsedCandidate(BaseModel):
    """One structured meal suggestion, whatever strategy produced it."""

    name: Annotated[str, Field(min_length=1, max_length=200)]
    description: Optional[str] = None
    prep_minutes: Annotated[Optional[int], Field(None, ge=0, le=1440)]
    cook_minutes: Annotated[Optional[int], Field(None, ge=0, le=1440)]
    estimated_cost: Annotated[Optional[float], Field(None, ge=0)]
    servings: Annotated[Optional[int], Field(None, ge=1, le=100)]
    ingredients: List[Ingredient] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    nutrition: NutritionInfo = Field(default_factory=NutritionInfo)
    tags: List[str] = Field(default_factory=list)
    allergens: List[str] = Field(default_factory=list)
    cuisine: Optional[str] = None
    difficulty: Optional[str] = None
    cooking_tips: List[str] = Field(default_factory=list)
    source: Optional[FallbackLevel] = None
    confidence: Annotated[float, Field(0.0, ge=0.0, le=1.0)]
    parse_warnings: List[str] = Field(default_factory=list)

    @property
    def total_minutes(self) -> Optional[int]:
        if self.prep_minutes is None and self.cook_minutes is None:
            return None
        return (self.prep_minutes or 0) + (self.cook_minutes or 0)

    @property
    def ingredient_names(self) -> List[str]:
        return [i.name.lower() for i in self.ingredients]


# ============================================================================
# Validation and quality
# ============================================================================


class Severity(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    ADVISORY = "advisory"


SAFETY_CATEGORIES = frozenset({"allergen", "dietary"})


class ValidationIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    severity: Severity
    category: str
    message: str

    @property
    def is_safety(self) -> bool:
        return self.category in SAFETY_CATEGORIES


class ValidationResult(BaseModel):
    """Three independent issue lists for one candidate."""

    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    suggestions: List[ValidationIssue] = Field(default_factory=list)

    @property
    def is_acceptable(self) -> bool:
        return not self.errors

    @property
    def has_safety_error(self) -> bool:
        return any(issue.is_safety for issue in self.errors)


class QualityLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    FAIR = "fair"
    POOR = "poor"

    @classmethod
    def from_score(cls, score: float) -> "QualityLevel":
        if score >= 0.9:
            return cls.EXCELLENT
        if score >= 0.8:
            return cls.GOOD
        if score >= 0.7:
            return cls.ACCEPTABLE
        if score >= 0.6:
            return cls.FAIR
        return cls.POOR


class QualityScore(BaseModel):
    overall: Annotated[float, Field(ge=0.0, le=1.0)]
    components: dict[str, float]
    weights: dict[str, float]
    level: QualityLevel

    @model_validator(mode="after")
    def validate_weights(self) -> "QualityScore":
        if abs(sum(self.weights.values()) - 1.0) > 1e-6:
            raise ValueError(f"Quality weights must sum to 1.0, got {sum(self.weights.values())}")
        return self


class ScoredCandidate(BaseModel):
    candidate: ParsedCandidate
    validation: ValidationResult
    quality: QualityScore


# ============================================================================
# Orchestration records
# ============================================================================


class FallbackDecision(BaseModel):
    """One attempt at one level. Appended to the run's log, never mutated."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    level: FallbackLevel
    reasoning: str
    succeeded: bool = False
    timestamp: datetime = Field(default_factory=utc_now)


class CacheHitKind(str, Enum):
    EXACT = "exact"
    PATTERN = "pattern"
    SEMANTIC = "semantic"


class StrategyResult(BaseModel):
    level: FallbackLevel
    candidates: List[ScoredCandidate] = Field(default_factory=list)
    succeeded: bool = False
    diagnostic: str = ""
    raw_output: Optional[RawProviderOutput] = None
    cache_hit: Optional[CacheHitKind] = None


class CacheEntry(BaseModel):
    """Cached response for one normalized request. Replaced wholesale, never patched."""

    key: str
    pattern_key: str
    request_type: RequestType
    semantic_features: List[str] = Field(default_factory=list)
    constraint_features: dict[str, float] = Field(default_factory=dict)
    payload: List[ParsedCandidate]
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    estimated_cost_saved: Annotated[float, Field(0.0, ge=0)]
    hit_kind: Optional[CacheHitKind] = None
    confidence_factor: float = 1.0

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) >= self.expires_at


class HealthStatus(BaseModel):
    provider: str
    error_rate: float = 0.0
    average_latency_seconds: float = 0.0
    quality_trend: Optional[float] = None
    sample_count: int = 0
    consecutive_failures: int = 0
    is_down: bool = False


class AuthorizationDecision(str, Enum):
    ALLOW = "allow"
    WARN = "warn"
    DENY = "deny"


class DenialKind(str, Enum):
    BUDGET = "budget"
    RATE = "rate"


class AuthorizationResult(BaseModel):
    decision: AuthorizationDecision
    remaining_budget: float = 0.0
    reason: Optional[str] = None
    denial: Optional[DenialKind] = None

    @property
    def allowed(self) -> bool:
        return self.decision is not AuthorizationDecision.DENY


class Diagnostics(BaseModel):
    request_id: str
    final_level: FallbackLevel
    decisions: List[FallbackDecision] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    cache_hit: Optional[CacheHitKind] = None
    budget_warning: Optional[str] = None


class OrchestrationResult(BaseModel):
    candidates: List[ParsedCandidate]
    quality: QualityScore
    diagnostics: Diagnostics
