"""Error taxonomy for the suggestion orchestrator.

ParseError and ProviderError never leave a strategy: they are converted into a failed
StrategyResult. Only BudgetExceeded, RateLimited and OrchestrationExhausted reach the
caller of SuggestionService.generate_suggestions.
"""

from typing import List, Optional


class SuggestionError(Exception):
    """Base class for all orchestrator errors."""


class ParseError(SuggestionError):
    """Provider output could not be turned into any candidate."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors) or "unparseable provider output")


class ProviderError(SuggestionError):
    """An external provider call failed.

    `public_message` is the sanitized text allowed into diagnostics; the underlying
    exception is kept as `__cause__` for logs only.
    """

    def __init__(self, provider: str, public_message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.public_message = public_message
        self.status_code = status_code
        super().__init__(public_message)


class ProviderTimeoutError(ProviderError):
    """The provider did not answer within its deadline."""

    def __init__(self, provider: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(provider, f"{provider.upper()} TIMEOUT after {timeout_seconds:g}s")


class BudgetExceeded(SuggestionError):
    """The requester's projected spend would exceed the tier's hard limit."""

    def __init__(self, requester_id: str, reason: str, remaining_budget: float = 0.0):
        self.requester_id = requester_id
        self.reason = reason
        self.remaining_budget = remaining_budget
        super().__init__(reason)


class RateLimited(SuggestionError):
    """The requester reached the tier's hourly request ceiling."""

    def __init__(self, requester_id: str, reason: str):
        self.requester_id = requester_id
        self.reason = reason
        super().__init__(reason)


class OrchestrationExhausted(SuggestionError):
    """Every fallback level failed for one request.

    Attributes:
        request_id: Request that could not be served.
        decisions: FallbackDecision records for every attempted level.
    """

    def __init__(self, request_id: str, decisions: list):
        self.request_id = request_id
        self.decisions = decisions
        super().__init__(f"All fallback levels failed for request {request_id}")

    @property
    def diagnostic_trail(self) -> List[str]:
        """Human-readable `level: reasoning` lines, one per attempt."""
        return [f"{d.level.name.lower()}: {d.reasoning}" for d in self.decisions]
