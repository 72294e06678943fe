"""Language model contract."""

from abc import ABC, abstractmethod
from typing import Any

from ..domain.knowledge import ModelResponse


class LanguageModel(ABC):
    """Abstract chat-completion collaborator."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 1024,
    ) -> ModelResponse:
        """Generate a completion for a single system/user prompt pair.

        Raises:
            LanguageModelError: If the completion cannot be produced
        """
        pass

    async def close(self) -> None:
        """Release client resources."""
        pass

    async def __aenter__(self) -> "LanguageModel":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
