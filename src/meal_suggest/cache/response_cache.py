"""Three-tier response cache: exact, pattern and semantic lookups over a key-value store.

Key layout:
    cache:exact:{family_id}:{digest}                  one entry per normalized request
    cache:pattern:{family_id}:{request_type}          most recent entry for the family/type
    cache:semantic:{request_type}:{family_id}:{digest} similarity index, scanned by type

All three keys are written together by store() and hold the same serialized CacheEntry.
Pattern and semantic hits were produced for a different request, so their candidates are
re-validated against the current request before being returned.
"""

import hashlib
import json
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, FrozenSet, List, Optional

from meal_suggest.models.models import CacheEntry, CacheHitKind, ParsedCandidate, RequestType, SuggestionRequest, utc_now
from meal_suggest.pipeline.validator import ResponseValidator, ValidationContext
from meal_suggest.stores.kv_store import KeyValueStore
from meal_suggest.utils.config import config
from meal_suggest.utils.logger import logger


CACHE_PREFIX = "cache:"

STOPWORDS = frozenset(
    {"the", "and", "for", "with", "that", "this", "our", "you", "your", "please", "want", "some", "can", "make", "meal", "meals"}
)


@dataclass(frozen=True)
class RequestFeatures:
    """What the similarity function compares: prompt tokens and numeric constraints."""

    tokens: FrozenSet[str]
    constraints: Dict[str, float]


SimilarityFn = Callable[[RequestFeatures, RequestFeatures], float]


def normalize_prompt(prompt: str) -> str:
    return re.sub(r"\s+", " ", prompt.strip().lower())


def extract_features(request: SuggestionRequest) -> RequestFeatures:
    words = re.findall(r"[a-z]+", request.prompt.lower())
    tokens = frozenset(w for w in words if len(w) >= 3 and w not in STOPWORDS)
    constraints = {k: float(v) for k, v in request.constraints.model_dump().items() if v is not None}
    return RequestFeatures(tokens=tokens, constraints=constraints)


def feature_similarity(a: RequestFeatures, b: RequestFeatures) -> float:
    """0.7 x token Jaccard + 0.3 x mean closeness of shared numeric constraints."""
    union = a.tokens | b.tokens
    token_score = len(a.tokens & b.tokens) / len(union) if union else 1.0

    keys = set(a.constraints) | set(b.constraints)
    if not keys:
        constraint_score = 1.0
    else:
        closeness = []
        for key in keys:
            if key in a.constraints and key in b.constraints:
                x, y = a.constraints[key], b.constraints[key]
                largest = max(abs(x), abs(y))
                closeness.append(1.0 if largest == 0 else 1.0 - abs(x - y) / largest)
            else:
                closeness.append(0.0)
        constraint_score = sum(closeness) / len(closeness)

    return 0.7 * token_score + 0.3 * constraint_score


def _digest(request: SuggestionRequest) -> str:
    normalized = {
        "type": request.request_type.value,
        "prompt": normalize_prompt(request.prompt),
        "constraints": request.constraints.model_dump(),
        "family": request.family.model_dump(),
    }
    return hashlib.sha256(json.dumps(normalized, sort_keys=True).encode()).hexdigest()[:32]


class ResponseCache:
    """Multi-level cache of validated candidates.

    Args:
        store: Backing key-value store.
        validator: Used to re-validate pattern and semantic hits.
        similarity: Injectable similarity function for the semantic tier.
        similarity_threshold: Minimum similarity for a semantic hit.
        pattern_discount: Confidence multiplier for pattern hits.
    """

    def __init__(
        self,
        store: KeyValueStore,
        validator: Optional[ResponseValidator] = None,
        similarity: SimilarityFn = feature_similarity,
        similarity_threshold: float = config.CACHE_SIMILARITY_THRESHOLD,
        pattern_discount: float = config.CACHE_PATTERN_DISCOUNT,
    ) -> None:
        self.kv = store
        self.validator = validator or ResponseValidator()
        self.similarity = similarity
        self.similarity_threshold = similarity_threshold
        self.pattern_discount = pattern_discount
        self._hits = {kind: 0 for kind in CacheHitKind}
        self._misses = 0
        self._saved = 0.0

    # ------------------------------------------------------------------ keys

    @staticmethod
    def exact_key(request: SuggestionRequest) -> str:
        return f"{CACHE_PREFIX}exact:{request.family.family_id}:{_digest(request)}"

    @staticmethod
    def pattern_key(request: SuggestionRequest) -> str:
        return f"{CACHE_PREFIX}pattern:{request.family.family_id}:{request.request_type.value}"

    @staticmethod
    def semantic_key(request: SuggestionRequest) -> str:
        return f"{CACHE_PREFIX}semantic:{request.request_type.value}:{request.family.family_id}:{_digest(request)}"

    @staticmethod
    def ttl_for(request_type: RequestType) -> timedelta:
        if request_type is RequestType.WEEKLY_MENU:
            return timedelta(hours=config.CACHE_TTL_WEEKLY_HOURS)
        if request_type is RequestType.PERSONALIZATION:
            return timedelta(days=config.CACHE_TTL_PERSONALIZATION_DAYS)
        return timedelta(hours=config.CACHE_TTL_MEAL_HOURS)

    # ---------------------------------------------------------------- writes

    def store(
        self,
        request: SuggestionRequest,
        candidates: List[ParsedCandidate],
        estimated_savings: float = 0.0,
    ) -> CacheEntry:
        """Write the exact, pattern and semantic keys for this request."""
        ttl = self.ttl_for(request.request_type)
        features = extract_features(request)
        now = utc_now()
        entry = CacheEntry(
            key=self.exact_key(request),
            pattern_key=f"{request.family.family_id}:{request.request_type.value}",
            request_type=request.request_type,
            semantic_features=sorted(features.tokens),
            constraint_features=features.constraints,
            payload=[c.model_copy(deep=True) for c in candidates],
            created_at=now,
            expires_at=now + ttl,
            estimated_cost_saved=max(0.0, estimated_savings),
        )
        serialized = entry.model_dump(mode="json")
        ttl_seconds = ttl.total_seconds()
        for key in (entry.key, self.pattern_key(request), self.semantic_key(request)):
            self.kv.set(key, serialized, ttl_seconds=ttl_seconds)
        logger.debug(f"Cached {len(candidates)} candidates for family {request.family.family_id}")
        return entry

    def invalidate(self, request: SuggestionRequest) -> None:
        for key in (self.exact_key(request), self.pattern_key(request), self.semantic_key(request)):
            self.kv.delete(key)

    def invalidate_family(self, family_id: str) -> int:
        """Drop every entry for a family (e.g. after a profile change). Returns keys removed."""
        removed = 0
        for prefix in (f"{CACHE_PREFIX}exact:{family_id}:", f"{CACHE_PREFIX}pattern:{family_id}:"):
            for key in self.kv.keys(prefix):
                self.kv.delete(key)
                removed += 1
        for key in self.kv.keys(f"{CACHE_PREFIX}semantic:"):
            entry = self._load(key)
            if entry is not None and entry.pattern_key.rsplit(":", 1)[0] == family_id:
                self.kv.delete(key)
                removed += 1
        return removed

    def reset(self) -> None:
        for key in self.kv.keys(CACHE_PREFIX):
            self.kv.delete(key)
        self._hits = {kind: 0 for kind in CacheHitKind}
        self._misses = 0
        self._saved = 0.0

    # ----------------------------------------------------------------- reads

    def lookup(self, request: SuggestionRequest, exact_only: bool = False) -> Optional[CacheEntry]:
        """Find a cached response: exact, then pattern, then semantic.

        Returns:
            A copy of the entry with `hit_kind` and `confidence_factor` set, or None.
        """
        entry = self._load(self.exact_key(request))
        if entry is not None:
            return self._hit(entry, CacheHitKind.EXACT, entry.payload, 1.0)
        if exact_only:
            return None

        entry = self._load(self.pattern_key(request))
        if entry is not None:
            survivors = self._revalidate(entry.payload, request)
            if survivors:
                return self._hit(entry, CacheHitKind.PATTERN, survivors, self.pattern_discount)

        best = self._best_semantic(request)
        if best is not None:
            entry, similarity = best
            survivors = self._revalidate(entry.payload, request)
            if survivors:
                return self._hit(entry, CacheHitKind.SEMANTIC, survivors, similarity)

        self._misses += 1
        return None

    def stats(self) -> dict:
        return {
            "hits": {kind.value: count for kind, count in self._hits.items()},
            "misses": self._misses,
            "estimated_cost_saved": round(self._saved, 4),
            "entries": len(self.kv.keys(f"{CACHE_PREFIX}exact:")),
        }

    def _load(self, key: str) -> Optional[CacheEntry]:
        raw = self.kv.get(key)
        if raw is None:
            return None
        entry = CacheEntry.model_validate(raw)
        if entry.is_expired():
            self.kv.delete(key)
            return None
        return entry

    def _best_semantic(self, request: SuggestionRequest):
        features = extract_features(request)
        best = None
        for key in self.kv.keys(f"{CACHE_PREFIX}semantic:{request.request_type.value}:"):
            entry = self._load(key)
            if entry is None:
                continue
            other = RequestFeatures(tokens=frozenset(entry.semantic_features), constraints=entry.constraint_features)
            similarity = self.similarity(features, other)
            if similarity >= self.similarity_threshold and (best is None or similarity > best[1]):
                best = (entry, similarity)
        return best

    def _revalidate(self, candidates: List[ParsedCandidate], request: SuggestionRequest) -> List[ParsedCandidate]:
        context = ValidationContext.from_request(request)
        return [c for c in candidates if self.validator.validate(c, context).is_acceptable]

    def _hit(
        self,
        entry: CacheEntry,
        kind: CacheHitKind,
        candidates: List[ParsedCandidate],
        confidence_factor: float,
    ) -> CacheEntry:
        payload = [
            c.model_copy(update={"confidence": round(c.confidence * confidence_factor, 4)}, deep=True)
            for c in candidates
        ]
        self._hits[kind] += 1
        self._saved += entry.estimated_cost_saved
        logger.debug(f"Cache {kind.value} hit ({len(payload)} candidates, factor {confidence_factor:.2f})")
        return entry.model_copy(update={"payload": payload, "hit_kind": kind, "confidence_factor": confidence_factor})
