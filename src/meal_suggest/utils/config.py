"""Configuration management for the Meal Suggestion Orchestrator.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import json
import os
from typing import Optional

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


# Per-tier budget table: hard limit, soft-warn limit (currency units per month)
# and hourly request ceiling.
DEFAULT_BUDGET_TIERS: dict[str, dict[str, float]] = {
    "free": {"hard_limit": 5.0, "soft_limit": 4.0, "hourly_requests": 10},
    "basic": {"hard_limit": 20.0, "soft_limit": 16.0, "hourly_requests": 30},
    "premium": {"hard_limit": 100.0, "soft_limit": 80.0, "hourly_requests": 120},
}
# Tier applied to requesters whose tier is not in the table; every tier table must define it
DEFAULT_TIER = "free"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Primary provider (Gemini)
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        self.PRIMARY_MODEL: str = os.getenv("PRIMARY_MODEL", "gemini-2.5-flash")
        # Per-call deadline for the primary provider in seconds
        self.PRIMARY_TIMEOUT_SECONDS: float = float(os.getenv("PRIMARY_TIMEOUT_SECONDS", "20"))
        # Pricing used for token/cost accounting (per 1k tokens)
        self.PRIMARY_COST_PER_1K_TOKENS: float = float(os.getenv("PRIMARY_COST_PER_1K_TOKENS", "0.0006"))

        # Secondary provider: any OpenAI-compatible chat completions endpoint.
        # Leave SECONDARY_PROVIDER_URL empty to run without a secondary level.
        self.SECONDARY_PROVIDER_URL: str = os.getenv("SECONDARY_PROVIDER_URL", "")
        self.SECONDARY_API_KEY: str = os.getenv("SECONDARY_API_KEY", "")
        self.SECONDARY_MODEL: str = os.getenv("SECONDARY_MODEL", "gpt-4o-mini")
        self.SECONDARY_TIMEOUT_SECONDS: float = float(os.getenv("SECONDARY_TIMEOUT_SECONDS", "15"))
        self.SECONDARY_COST_PER_1K_TOKENS: float = float(os.getenv("SECONDARY_COST_PER_1K_TOKENS", "0.0008"))

        # LLM Model Parameters (shared by both providers)
        # Temperature: 0.4 keeps suggestions varied without drifting off the constraints
        self.TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.4"))
        self.MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "2048"))
        # Cost reserved against the requester's budget before a provider call
        self.ESTIMATED_REQUEST_COST: float = float(os.getenv("ESTIMATED_REQUEST_COST", "0.02"))

        # Validation tolerances
        # BUDGET_TOLERANCE: fraction a candidate may exceed the budget ceiling (0.10 = 10%)
        self.BUDGET_TOLERANCE: float = float(os.getenv("BUDGET_TOLERANCE", "0.10"))
        # TIME_TOLERANCE: fraction a candidate may exceed prep/cook limits (0.20 = 20%)
        self.TIME_TOLERANCE: float = float(os.getenv("TIME_TOLERANCE", "0.20"))
        # Minimum share of ingredients found in the declared pantry
        self.AVAILABILITY_THRESHOLD: float = float(os.getenv("AVAILABILITY_THRESHOLD", "0.5"))
        # Minimum predicted family-fit score before an important warning is raised
        self.FAMILY_FIT_THRESHOLD: float = float(os.getenv("FAMILY_FIT_THRESHOLD", "0.5"))

        # Response cache
        self.CACHE_SIMILARITY_THRESHOLD: float = float(os.getenv("CACHE_SIMILARITY_THRESHOLD", "0.85"))
        self.CACHE_PATTERN_DISCOUNT: float = float(os.getenv("CACHE_PATTERN_DISCOUNT", "0.8"))
        self.CACHE_TTL_MEAL_HOURS: float = float(os.getenv("CACHE_TTL_MEAL_HOURS", "6"))
        self.CACHE_TTL_WEEKLY_HOURS: float = float(os.getenv("CACHE_TTL_WEEKLY_HOURS", "24"))
        self.CACHE_TTL_PERSONALIZATION_DAYS: float = float(os.getenv("CACHE_TTL_PERSONALIZATION_DAYS", "7"))

        # Provider health window and degradation thresholds
        self.HEALTH_WINDOW_MINUTES: float = float(os.getenv("HEALTH_WINDOW_MINUTES", "15"))
        # Cold start: below this many samples the engine always starts at Primary
        self.HEALTH_MIN_SAMPLES: int = int(os.getenv("HEALTH_MIN_SAMPLES", "2"))
        self.HEALTH_ERROR_RATE_THRESHOLD: float = float(os.getenv("HEALTH_ERROR_RATE_THRESHOLD", "0.5"))
        self.HEALTH_LATENCY_CEILING_SECONDS: float = float(os.getenv("HEALTH_LATENCY_CEILING_SECONDS", "8"))
        self.HEALTH_QUALITY_FLOOR: float = float(os.getenv("HEALTH_QUALITY_FLOOR", "0.6"))
        # Consecutive failures after which the provider is treated as down
        self.HEALTH_DOWN_AFTER_FAILURES: int = int(os.getenv("HEALTH_DOWN_AFTER_FAILURES", "3"))

        # Rule-based generator
        self.RULE_BASED_BASELINE: float = float(os.getenv("RULE_BASED_BASELINE", "5.0"))
        self.RULE_BASED_MIN_SCORE: float = float(os.getenv("RULE_BASED_MIN_SCORE", "5.0"))
        self.RULE_BASED_TOP_N: int = int(os.getenv("RULE_BASED_TOP_N", "3"))

        # Request batching for the primary provider
        self.BATCH_ENABLED: bool = _env_bool("BATCH_ENABLED", "false")
        self.BATCH_INTERVAL_SECONDS: float = float(os.getenv("BATCH_INTERVAL_SECONDS", "2"))
        self.BATCH_SIZE_THRESHOLD: int = int(os.getenv("BATCH_SIZE_THRESHOLD", "5"))

        # Budget tiers: JSON object overriding DEFAULT_BUDGET_TIERS
        self.BUDGET_TIERS: dict[str, dict[str, float]] = self._load_budget_tiers(os.getenv("BUDGET_TIERS_JSON"))

    @staticmethod
    def _load_budget_tiers(raw: Optional[str]) -> dict[str, dict[str, float]]:
        if not raw:
            return {name: dict(limits) for name, limits in DEFAULT_BUDGET_TIERS.items()}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"BUDGET_TIERS_JSON is not valid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError("BUDGET_TIERS_JSON must be a JSON object keyed by tier name")
        return parsed

    @property
    def has_secondary_provider(self) -> bool:
        return bool(self.SECONDARY_PROVIDER_URL)

    def validate(self) -> None:
        """Validate thresholds and limits.

        Raises:
            ValueError: If any value is out of range.
        """
        for name in ("BUDGET_TOLERANCE", "TIME_TOLERANCE", "CACHE_SIMILARITY_THRESHOLD", "CACHE_PATTERN_DISCOUNT"):
            value = getattr(self, name)
            if not (0.0 < value <= 1.0):
                raise ValueError(f"{name} must be in (0.0, 1.0], got: {value}")
        for name in ("AVAILABILITY_THRESHOLD", "FAMILY_FIT_THRESHOLD", "HEALTH_ERROR_RATE_THRESHOLD", "HEALTH_QUALITY_FLOOR"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"{name} must be between 0.0 and 1.0, got: {value}")
        if not (0.0 <= self.TEMPERATURE <= 2.0):
            raise ValueError(f"TEMPERATURE must be between 0.0 and 2.0, got: {self.TEMPERATURE}")
        if self.MAX_OUTPUT_TOKENS < 256:
            raise ValueError(f"MAX_OUTPUT_TOKENS must be at least 256, got: {self.MAX_OUTPUT_TOKENS}")
        for name in (
            "PRIMARY_TIMEOUT_SECONDS",
            "SECONDARY_TIMEOUT_SECONDS",
            "CACHE_TTL_MEAL_HOURS",
            "CACHE_TTL_WEEKLY_HOURS",
            "CACHE_TTL_PERSONALIZATION_DAYS",
            "HEALTH_WINDOW_MINUTES",
            "HEALTH_LATENCY_CEILING_SECONDS",
            "BATCH_INTERVAL_SECONDS",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be greater than 0, got: {value}")
        if self.ESTIMATED_REQUEST_COST < 0:
            raise ValueError(f"ESTIMATED_REQUEST_COST must not be negative, got: {self.ESTIMATED_REQUEST_COST}")
        if self.HEALTH_MIN_SAMPLES < 1:
            raise ValueError(f"HEALTH_MIN_SAMPLES must be at least 1, got: {self.HEALTH_MIN_SAMPLES}")
        if self.HEALTH_DOWN_AFTER_FAILURES < 1:
            raise ValueError(f"HEALTH_DOWN_AFTER_FAILURES must be at least 1, got: {self.HEALTH_DOWN_AFTER_FAILURES}")
        if self.RULE_BASED_TOP_N < 1:
            raise ValueError(f"RULE_BASED_TOP_N must be at least 1, got: {self.RULE_BASED_TOP_N}")
        if self.BATCH_SIZE_THRESHOLD < 1:
            raise ValueError(f"BATCH_SIZE_THRESHOLD must be at least 1, got: {self.BATCH_SIZE_THRESHOLD}")
        self._validate_budget_tiers()

    def _validate_budget_tiers(self) -> None:
        if not self.BUDGET_TIERS:
            raise ValueError("BUDGET_TIERS must define at least one tier")
        if DEFAULT_TIER not in self.BUDGET_TIERS:
            raise ValueError(f"BUDGET_TIERS must define the default tier '{DEFAULT_TIER}'")
        for tier, limits in self.BUDGET_TIERS.items():
            missing = {"hard_limit", "soft_limit", "hourly_requests"} - set(limits)
            if missing:
                raise ValueError(f"Budget tier '{tier}' is missing: {sorted(missing)}")
            if limits["soft_limit"] > limits["hard_limit"]:
                raise ValueError(
                    f"Budget tier '{tier}' soft_limit ({limits['soft_limit']}) exceeds hard_limit ({limits['hard_limit']})"
                )
            if limits["hourly_requests"] < 1:
                raise ValueError(f"Budget tier '{tier}' hourly_requests must be at least 1")


# Create module-level config instance and validate immediately
config = Config()
config.validate()
