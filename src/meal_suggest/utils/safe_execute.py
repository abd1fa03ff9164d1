"""Try/log/default wrapper for steps that must not fail the surrounding result.

A failure here degrades one piece of the answer instead of the whole request:
- Enhancement lookups keep the provider's field when the catalogue lookup fails
- Parser recovery skips one malformed meal object and keeps the rest
- Cache write-back never fails a request that already has an answer
"""

from typing import Any, Callable, Mapping, Optional

from meal_suggest.utils.logger import logger


LOG_LEVELS = ("debug", "info", "warning", "error")


def safe_execute(
    func: Callable[[], Any],
    operation_name: str,
    log_level: str = "warning",
    default_return: Any = None,
    extra: Optional[Mapping[str, Any]] = None,
) -> Any:
    """Run `func`, returning `default_return` if it raises.

    Args:
        func: Zero-argument callable.
        operation_name: Shown in the log line, e.g. "Cache write".
        log_level: One of LOG_LEVELS; anything else logs as a warning.
        default_return: Value returned when `func` raises.
        extra: Log context (request_id, fallback_level, ...) for the JSON formatter.
    """
    try:
        return func()
    except Exception as e:
        log = getattr(logger, log_level if log_level in LOG_LEVELS else "warning")
        log(f"{operation_name} failed, continuing without it: {e}", extra=dict(extra or {}))
        return default_return
