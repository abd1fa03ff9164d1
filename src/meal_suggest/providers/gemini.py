"""Primary provider: Google Gemini through the google-genai async client.

The async client (`client.aio`) is used so that cancelling the caller's task (deadline,
shutdown) cancels the in-flight HTTP request instead of leaving a worker thread behind.
"""

import time
from typing import Optional

from google import genai
from google.genai import errors, types

from meal_suggest.exceptions import ProviderError
from meal_suggest.models.models import RawProviderOutput
from meal_suggest.providers.base import ProviderClient
from meal_suggest.utils.config import config
from meal_suggest.utils.logger import logger


class GeminiProvider(ProviderClient):
    """Gemini text generation with JSON output.

    Args:
        api_key: Gemini API key. Defaults to config.GEMINI_API_KEY.
        model: Model name. Defaults to config.PRIMARY_MODEL.
        timeout_seconds: Deadline applied by the caller. Defaults to config.PRIMARY_TIMEOUT_SECONDS.
        client: Pre-built genai.Client (tests inject a mock).
    """

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client: Optional[genai.Client] = None,
    ) -> None:
        self.model = model or config.PRIMARY_MODEL
        self.timeout_seconds = timeout_seconds or config.PRIMARY_TIMEOUT_SECONDS
        self.cost_per_1k_tokens = config.PRIMARY_COST_PER_1K_TOKENS
        self._client = client or genai.Client(api_key=api_key or config.GEMINI_API_KEY)

    async def generate(self, prompt: str, system_instructions: str) -> RawProviderOutput:
        started = time.monotonic()
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_instructions,
                    temperature=config.TEMPERATURE,
                    max_output_tokens=config.MAX_OUTPUT_TOKENS,
                    response_mime_type="application/json",
                ),
            )
        except errors.APIError as e:
            logger.warning(f"Gemini API error {e.code}: {e}", extra={"provider": self.name})
            raise ProviderError(self.name, f"GEMINI HTTP ERROR ({e.code})", status_code=e.code) from e
        except Exception as e:
            logger.warning(f"Gemini request failed: {e}", extra={"provider": self.name})
            raise ProviderError(self.name, "GEMINI REQUEST FAILED") from e

        usage = getattr(response, "usage_metadata", None)
        prompt_tokens = getattr(usage, "prompt_token_count", None) or 0
        completion_tokens = getattr(usage, "candidates_token_count", None) or 0
        return RawProviderOutput(
            text=response.text or "",
            provider=self.name,
            latency_seconds=time.monotonic() - started,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost=self.estimate_cost(prompt_tokens, completion_tokens),
        )
