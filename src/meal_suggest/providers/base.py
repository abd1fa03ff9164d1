"""Contract shared by every generative provider client."""

from meal_suggest.models.models import RawProviderOutput


class ProviderClient:
    """One external generative provider.

    Implementations raise ProviderError on failure with a sanitized public message. Deadlines
    are enforced by the caller with asyncio.wait_for using `timeout_seconds`.
    """

    name: str = "provider"
    timeout_seconds: float = 30.0
    cost_per_1k_tokens: float = 0.0

    async def generate(self, prompt: str, system_instructions: str) -> RawProviderOutput:
        raise NotImplementedError

    def estimate_cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        return round((prompt_tokens + completion_tokens) / 1000 * self.cost_per_1k_tokens, 6)

    async def close(self) -> None:
        """Release client resources. Default: nothing to release."""
