"""OpenAI chat-completions language model."""

import logging

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, RateLimitError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..domain.knowledge import ModelResponse
from ..exceptions import LanguageModelError
from .base import LanguageModel

logger = logging.getLogger(__name__)

_RETRYABLE = (RateLimitError, APIConnectionError, APITimeoutError)


class OpenAILanguageModel(LanguageModel):
    """Language model backed by the OpenAI (or compatible) chat API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        temperature: float = 0.3,
        timeout: float = 60.0,
    ):
        if not api_key:
            raise LanguageModelError("OpenAI API key not configured")

        self.model = model
        self.temperature = temperature
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def close(self) -> None:
        await self.client.close()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(_RETRYABLE),
        reraise=True
    )
    async def _call_openai(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
    ) -> ModelResponse:
        """Make the chat completion call with retry logic."""
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=max_tokens,
            temperature=self.temperature,
        )

        text = response.choices[0].message.content or ""
        usage = response.usage.model_dump() if response.usage else {}
        return ModelResponse(text=text.strip(), usage=usage)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 1024,
    ) -> ModelResponse:
        try:
            return await self._call_openai(system_prompt, user_prompt, max_tokens)
        except _RETRYABLE as e:
            logger.warning(f"OpenAI completion failed after retries: {str(e)}")
            raise LanguageModelError(f"OpenAI unavailable: {str(e)}") from e
        except Exception as e:
            logger.error(f"OpenAI completion failed: {str(e)}")
            raise LanguageModelError(f"OpenAI API error: {str(e)}") from e
