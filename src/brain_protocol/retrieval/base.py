"""Retrieval collaborator contracts.

Note search and profile persistence live outside the engine; these are the
shapes the orchestrator relies on.
"""

from abc import ABC, abstractmethod

from ..core.domain.knowledge import ExternalResult, Note, Profile


class NoteRetrieval(ABC):
    """Search over the personal note store."""

    @abstractmethod
    async def search(
        self,
        query: str,
        tags: list[str] | None = None,
        limit: int = 5,
    ) -> list[Note]:
        """Notes relevant to ``query``, best first."""
        pass

    @abstractmethod
    async def get_by_id(self, note_id: str) -> Note | None:
        pass

    @abstractmethod
    async def get_related(self, note_id: str, limit: int = 5) -> list[Note]:
        """Notes related to ``note_id``, excluding the note itself."""
        pass


class ProfileRetrieval(ABC):
    """Access to the user's profile."""

    @abstractmethod
    async def get(self) -> Profile | None:
        pass


class ExternalSearch(ABC):
    """External knowledge lookup used to fill gaps in the note store."""

    name: str = "External"

    async def check_availability(self) -> bool:
        """Whether the source can currently serve lookups."""
        return True

    async def close(self) -> None:
        """Release client resources."""
        pass

    async def __aenter__(self) -> "ExternalSearch":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    @abstractmethod
    async def semantic_search(self, query: str, limit: int = 3) -> list[ExternalResult]:
        """Results for ``query``, most relevant first.

        Raises:
            ExternalSearchError: If the lookup fails
        """
        pass
