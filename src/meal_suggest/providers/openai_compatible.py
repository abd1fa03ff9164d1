"""Secondary provider: any OpenAI-compatible chat completions endpoint over aiohttp."""

import time
from typing import Callable, Optional

import aiohttp

from meal_suggest.exceptions import ProviderError
from meal_suggest.models.models import RawProviderOutput
from meal_suggest.providers.base import ProviderClient
from meal_suggest.utils.config import config
from meal_suggest.utils.logger import logger


class OpenAICompatibleProvider(ProviderClient):
    """POST /chat/completions with a system and a user message.

    Args:
        url: Full chat completions URL. Defaults to config.SECONDARY_PROVIDER_URL.
        api_key: Bearer token; omitted from headers when empty.
        model: Model name sent in the payload.
        timeout_seconds: Deadline applied by the caller and as the aiohttp total timeout.
        session_factory: Callable returning an aiohttp.ClientSession (tests inject a fake).
    """

    name = "secondary"

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
    ) -> None:
        self.url = url or config.SECONDARY_PROVIDER_URL
        self.api_key = api_key if api_key is not None else config.SECONDARY_API_KEY
        self.model = model or config.SECONDARY_MODEL
        self.timeout_seconds = timeout_seconds or config.SECONDARY_TIMEOUT_SECONDS
        self.cost_per_1k_tokens = config.SECONDARY_COST_PER_1K_TOKENS
        self._session_factory = session_factory

    def _payload(self, prompt: str, system_instructions: str) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_instructions},
                {"role": "user", "content": prompt},
            ],
            "temperature": config.TEMPERATURE,
            "max_tokens": config.MAX_OUTPUT_TOKENS,
            "response_format": {"type": "json_object"},
        }

    async def generate(self, prompt: str, system_instructions: str) -> RawProviderOutput:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        label = self.name.upper()
        started = time.monotonic()
        try:
            async with self._session_factory() as session:
                async with session.post(
                    self.url,
                    json=self._payload(prompt, system_instructions),
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as response:
                    if response.status >= 400:
                        logger.warning(f"Secondary provider returned HTTP {response.status}", extra={"provider": self.name})
                        raise ProviderError(self.name, f"{label} HTTP ERROR ({response.status})", status_code=response.status)
                    data = await response.json(content_type=None)
        except ProviderError:
            raise
        except aiohttp.ClientError as e:
            logger.warning(f"Secondary provider request failed: {e}", extra={"provider": self.name})
            raise ProviderError(self.name, f"{label} HTTP ERROR") from e

        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            logger.warning(f"Unexpected secondary provider response shape: {e}", extra={"provider": self.name})
            raise ProviderError(self.name, f"{label} MALFORMED RESPONSE") from e

        usage = data.get("usage") or {}
        prompt_tokens = int(usage.get("prompt_tokens") or 0)
        completion_tokens = int(usage.get("completion_tokens") or 0)
        return RawProviderOutput(
            text=text,
            provider=self.name,
            latency_seconds=time.monotonic() - started,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost=self.estimate_cost(prompt_tokens, completion_tokens),
        )
