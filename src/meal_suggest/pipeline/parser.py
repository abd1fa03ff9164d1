"""Turn raw provider text into ParsedCandidate objects.

Provider output is untrusted text. Recovery runs in a fixed order and stops at the
first stage that yields at least one candidate:

1. STRICT   - json.loads() on the whole response
2. REPAIRED - strip markdown fences and prose, drop trailing commas, quote bare keys,
              escape unescaped quotes inside strings, then json.loads()
3. PARTIAL  - regex pulls of individual fields when the structure is beyond repair

Every recovery that succeeds is recorded as a warning (never an error) so the scorer can
discount the candidate. Untyped dicts never leave this module.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

from meal_suggest.models.models import Ingredient, NutritionInfo, ParsedCandidate
from meal_suggest.utils.logger import logger
from meal_suggest.utils.safe_execute import safe_execute


class ParseOutcome(str, Enum):
    STRICT_OK = "strict_ok"
    REPAIRED_OK = "repaired_ok"
    PARTIAL_OK = "partial_ok"
    FAILED = "failed"


@dataclass
class ParseResult:
    outcome: ParseOutcome
    candidates: List[ParsedCandidate] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome is not ParseOutcome.FAILED


# Field aliases seen in provider output, mapped to ParsedCandidate names
NAME_KEYS = ("name", "title", "mealName", "meal_name", "recipe_name", "dish")
PREP_KEYS = ("prep_minutes", "prepTime", "prep_time", "prepTimeMinutes", "prep_time_minutes")
COOK_KEYS = ("cook_minutes", "cookTime", "cook_time", "cookTimeMinutes", "cook_time_minutes")
COST_KEYS = ("estimated_cost", "estimatedCost", "cost", "price", "total_cost")
LIST_CONTAINER_KEYS = ("meals", "suggestions", "recipes", "options")

# Fields counted for the completeness-based initial confidence
COMPLETENESS_FIELDS = (
    "name",
    "description",
    "prep_minutes",
    "cook_minutes",
    "estimated_cost",
    "ingredients",
    "instructions",
    "nutrition",
    "tags",
)

UNITS = {
    "g", "kg", "ml", "l", "cup", "cups", "tbsp", "tsp", "oz", "lb", "lbs",
    "piece", "pieces", "clove", "cloves", "can", "cans", "slice", "slices", "bunch", "pinch",
}

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_INGREDIENT_TEXT = re.compile(r"^\s*(\d+(?:[./]\d+)?)\s*([A-Za-z]+)?\s+(.+)$")
_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_\-]*")
_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


# ============================================================================
# Value coercion
# ============================================================================


def _first(data: dict, keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if key in data and data[key] not in (None, ""):
            return data[key]
    return None


def _as_float(value: Any) -> Optional[float]:
    """Coerce 12, "12.5", "$12.50", "about 20 minutes" to a float."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER.search(str(value).replace(",", ""))
    return float(match.group()) if match else None


def _as_int(value: Any) -> Optional[int]:
    number = _as_float(value)
    return int(round(number)) if number is not None and number >= 0 else None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip().lower() for part in value.split(",") if part.strip()]
    return [str(v).strip().lower() for v in value if str(v).strip()]


def _parse_ingredient(item: Any) -> Optional[Ingredient]:
    if isinstance(item, dict):
        name = _first(item, ("name", "ingredient", "item"))
        if not name:
            return None
        cost = _as_float(_first(item, ("estimated_cost", "estimatedCost", "cost", "price")))
        return Ingredient(
            name=str(name).strip(),
            quantity=_as_float(_first(item, ("quantity", "amount", "qty"))),
            unit=(str(item["unit"]).strip() or None) if item.get("unit") else None,
            estimated_cost=cost if cost is not None and cost >= 0 else None,
        )
    text = str(item).strip()
    if not text:
        return None
    match = _INGREDIENT_TEXT.match(text)
    if match and match.group(2) and match.group(2).lower() in UNITS:
        quantity = _as_float(match.group(1).split("/")[0])
        return Ingredient(name=match.group(3).strip(), quantity=quantity, unit=match.group(2).lower())
    return Ingredient(name=text)


def _ingredient_items(value: Any, warnings: List[str]) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        warnings.append("ingredients given as text, split on separators")
        return [part for part in re.split(r"[,;\n]", value) if part.strip()]
    if isinstance(value, list):
        return value
    warnings.append(f"ingredients field of type {type(value).__name__} ignored")
    return []


def _parse_instructions(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        steps = re.split(r"\n+|(?:^|\s)\d+[.)]\s", value)
        return [s.strip() for s in steps if s and s.strip()]
    steps = []
    for item in value:
        if isinstance(item, dict):
            text = _first(item, ("step", "text", "instruction", "description"))
        else:
            text = item
        if text and str(text).strip():
            steps.append(str(text).strip())
    return steps


def _parse_nutrition(value: Any) -> NutritionInfo:
    if not isinstance(value, dict):
        return NutritionInfo()
    return NutritionInfo(
        calories=_as_float(_first(value, ("calories", "kcal", "energy"))),
        protein_g=_as_float(_first(value, ("protein_g", "protein"))),
        carbs_g=_as_float(_first(value, ("carbs_g", "carbs", "carbohydrates"))),
        fat_g=_as_float(_first(value, ("fat_g", "fat"))),
        fiber_g=_as_float(_first(value, ("fiber_g", "fiber", "fibre"))),
    )


def _completeness(values: dict) -> float:
    present = 0
    for name in COMPLETENESS_FIELDS:
        value = values.get(name)
        if isinstance(value, NutritionInfo):
            present += 0 if value.is_empty() else 1
        elif value not in (None, "", []):
            present += 1
    return round(present / len(COMPLETENESS_FIELDS), 4)


def candidate_from_dict(data: dict, warnings: Optional[List[str]] = None) -> ParsedCandidate:
    """Build a ParsedCandidate from one provider meal object.

    Raises:
        ValueError: If the object has no usable name.
    """
    name = _first(data, NAME_KEYS)
    if not name or not str(name).strip():
        raise ValueError("meal object has no name")

    warnings = list(warnings or [])
    ingredients = [i for i in (_parse_ingredient(x) for x in _ingredient_items(data.get("ingredients"), warnings)) if i]
    servings = _as_int(_first(data, ("servings", "serves", "portions")))
    values = {
        "name": str(name).strip()[:200],
        "description": data.get("description") or data.get("summary"),
        "prep_minutes": _as_int(_first(data, PREP_KEYS)),
        "cook_minutes": _as_int(_first(data, COOK_KEYS)),
        "estimated_cost": _as_float(_first(data, COST_KEYS)),
        "servings": servings if servings else None,
        "ingredients": ingredients,
        "instructions": _parse_instructions(_first(data, ("instructions", "steps", "method"))),
        "nutrition": _parse_nutrition(data.get("nutrition") or data.get("nutritionInfo")),
        "tags": _as_str_list(data.get("tags")),
        "allergens": _as_str_list(data.get("allergens")),
        "cuisine": (str(data["cuisine"]).strip().lower() or None) if data.get("cuisine") else None,
        "difficulty": (str(data["difficulty"]).strip().lower() or None) if data.get("difficulty") else None,
        "cooking_tips": [str(t).strip() for t in (data.get("cooking_tips") or data.get("tips") or []) if str(t).strip()],
    }
    if values["estimated_cost"] is not None and values["estimated_cost"] < 0:
        values["estimated_cost"] = None
    return ParsedCandidate(
        **values,
        confidence=_completeness(values),
        parse_warnings=warnings,
    )


def _meal_objects(payload: Any) -> List[dict]:
    """Flatten the accepted payload shapes into a list of meal dicts."""
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if not isinstance(payload, dict):
        return []
    for key in LIST_CONTAINER_KEYS:
        if isinstance(payload.get(key), list):
            return [item for item in payload[key] if isinstance(item, dict)]
    if isinstance(payload.get("days"), list):
        meals = []
        for day in payload["days"]:
            if isinstance(day, dict):
                meals.extend(_meal_objects(day))
        return meals
    if _first(payload, NAME_KEYS):
        return [payload]
    return []


def _to_candidates(payload: Any, warnings: List[str], errors: List[str]) -> List[ParsedCandidate]:
    candidates = []
    objects = _meal_objects(payload)
    if not objects:
        errors.append("payload contains no meal objects")
    for index, obj in enumerate(objects):
        candidate = safe_execute(
            lambda: candidate_from_dict(obj, warnings),
            f"Convert meal object {index}",
            log_level="debug",
            default_return=None,
        )
        if candidate is None:
            errors.append(f"meal object {index} is not a valid candidate")
        else:
            candidates.append(candidate)
    return candidates


# ============================================================================
# Structural repair
# ============================================================================


def _extract_json_region(text: str) -> str:
    """Drop markdown fences and any prose before the first bracket / after the last one."""
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1)
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return text.strip()
    start = min(starts)
    end = max(text.rfind("}"), text.rfind("]"))
    if end < start:
        return text[start:].strip()
    return text[start : end + 1]


def _next_significant(text: str, index: int) -> str:
    while index < len(text) and text[index].isspace():
        index += 1
    return text[index] if index < len(text) else ""


def _last_significant(chars: List[str]) -> str:
    for chunk in reversed(chars):
        stripped = chunk.strip()
        if stripped:
            return stripped[-1]
    return ""


def _repair_structure(text: str) -> Tuple[str, List[str]]:
    """Single string-aware pass fixing trailing commas, bare keys and inner quotes."""
    out: List[str] = []
    fixes = set()
    in_string = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_string:
            if ch == "\\":
                out.append(text[i : i + 2])
                i += 2
                continue
            if ch == '"':
                follower = _next_significant(text, i + 1)
                if follower in (",", "}", "]", ":", ""):
                    in_string = False
                    out.append(ch)
                else:
                    out.append('\\"')
                    fixes.add("escaped unescaped quotes")
                i += 1
                continue
            if ch == "\n":
                out.append("\\n")
                i += 1
                continue
            out.append(ch)
            i += 1
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
            continue
        if ch == "," and _next_significant(text, i + 1) in ("}", "]"):
            fixes.add("removed trailing commas")
            i += 1
            continue
        if ch.isalpha() or ch == "_":
            word = _WORD.match(text, i)
            token = word.group()
            if _last_significant(out) in ("{", ",") and _next_significant(text, word.end()) == ":":
                out.append(f'"{token}"')
                fixes.add("quoted bare keys")
            else:
                out.append(token)
            i = word.end()
            continue
        out.append(ch)
        i += 1
    return "".join(out), sorted(fixes)


# ============================================================================
# Partial extraction
# ============================================================================


def _field_pattern(keys: Tuple[str, ...], value: str) -> re.Pattern:
    alternatives = "|".join(re.escape(k) for k in keys)
    return re.compile(rf"""["']?(?:{alternatives})["']?\s*[:=]\s*{value}""", re.IGNORECASE)


_PARTIAL_NAME = _field_pattern(NAME_KEYS, r"""["']([^"'\n]{1,200})["']""")
_PARTIAL_PREP = _field_pattern(PREP_KEYS, r"""["']?(\d+)""")
_PARTIAL_COOK = _field_pattern(COOK_KEYS, r"""["']?(\d+)""")
_PARTIAL_COST = _field_pattern(COST_KEYS, r"""["']?\$?(\d+(?:\.\d+)?)""")


def _partial_list(text: str, key: str) -> List[str]:
    block = re.search(rf"""["']?{key}["']?\s*:\s*\[(.*?)(?:\]|$)""", text, re.IGNORECASE | re.DOTALL)
    if not block:
        return []
    body = block.group(1)
    if re.search(r"""["']?name["']?\s*:""", body):
        return re.findall(r"""["']?name["']?\s*:\s*["']([^"'\n]+)["']""", body)
    return [s.strip() for s in re.findall(r'"([^"\n]+)"', body) if s.strip()]


def _extract_partial(text: str) -> Optional[dict]:
    name = _PARTIAL_NAME.search(text)
    if not name:
        return None
    data: dict = {"name": name.group(1)}
    for key, pattern in (("prep_minutes", _PARTIAL_PREP), ("cook_minutes", _PARTIAL_COOK), ("estimated_cost", _PARTIAL_COST)):
        match = pattern.search(text)
        if match:
            data[key] = match.group(1)
    data["ingredients"] = _partial_list(text, "ingredients")
    data["instructions"] = _partial_list(text, "instructions") or _partial_list(text, "steps")
    return data


# ============================================================================
# Entry point
# ============================================================================


def parse_provider_output(raw_text: str) -> ParseResult:
    """Parse raw provider text into candidates using the staged recovery pipeline.

    Args:
        raw_text: Text exactly as returned by the provider.

    Returns:
        ParseResult tagged with the stage that succeeded. FAILED carries every error
        accumulated across stages and no candidates.
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not raw_text or not raw_text.strip():
        return ParseResult(ParseOutcome.FAILED, errors=["empty provider output"])

    # Stage 1: strict
    try:
        payload = json.loads(raw_text)
        candidates = _to_candidates(payload, warnings, errors)
        if candidates:
            return ParseResult(ParseOutcome.STRICT_OK, candidates, warnings, errors)
    except json.JSONDecodeError as e:
        errors.append(f"strict parse failed: {e.msg} at position {e.pos}")

    # Stage 2: structural repair
    region = _extract_json_region(raw_text)
    repair_warnings = []
    if region != raw_text.strip():
        repair_warnings.append("stripped surrounding prose or markdown")
    repaired, fixes = _repair_structure(region)
    repair_warnings.extend(fixes)
    try:
        payload = json.loads(repaired)
        stage_warnings = [f"repaired: {w}" for w in repair_warnings] or ["repaired: normalized JSON"]
        candidates = _to_candidates(payload, stage_warnings, errors)
        if candidates:
            logger.debug(f"Provider output repaired ({', '.join(repair_warnings) or 'normalized'})")
            return ParseResult(ParseOutcome.REPAIRED_OK, candidates, stage_warnings, errors)
    except json.JSONDecodeError as e:
        errors.append(f"structural repair failed: {e.msg} at position {e.pos}")

    # Stage 3: partial field extraction
    partial = _extract_partial(raw_text)
    if partial:
        stage_warnings = ["partial: fields extracted heuristically from malformed output"]
        candidate = safe_execute(
            lambda: candidate_from_dict(partial, stage_warnings),
            "Partial candidate extraction",
            log_level="debug",
            default_return=None,
        )
        if candidate is not None:
            logger.debug(f"Provider output partially recovered: '{candidate.name}'")
            return ParseResult(ParseOutcome.PARTIAL_OK, [candidate], stage_warnings, errors)
    errors.append("partial extraction found no meal name")

    logger.warning(f"Failed to parse provider output ({len(errors)} errors)")
    return ParseResult(ParseOutcome.FAILED, errors=errors)
