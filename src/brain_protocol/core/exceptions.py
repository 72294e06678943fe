"""Exception taxonomy shared across the brain protocol engine.

Three families matter to callers:

- NotFound errors are fatal for the call that raised them and are surfaced
  to the caller unchanged.
- Transient dependency errors come from embedding, language model, external
  search and summarization collaborators. The orchestrator catches them,
  logs them and degrades to a safe default.
- Contract errors (invalid transitions, registration problems) indicate a
  programming error and propagate.
"""


class BrainProtocolError(Exception):
    """Base exception for the engine."""
    pass


class NotFoundError(BrainProtocolError):
    """A requested conversation or turn does not exist."""
    pass


class ConversationNotFoundError(NotFoundError):
    """Raised when a conversation id does not resolve."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation with ID {conversation_id} not found")
        self.conversation_id = conversation_id


class TurnNotFoundError(NotFoundError):
    """Raised when a turn id does not resolve."""

    def __init__(self, turn_id: str):
        super().__init__(f"Turn with ID {turn_id} not found")
        self.turn_id = turn_id


class TransientDependencyError(BrainProtocolError):
    """A collaborator failed in a way the pipeline can degrade around."""
    pass


class EmbeddingError(TransientDependencyError):
    """Exception raised for embedding-related errors."""
    pass


class LanguageModelError(TransientDependencyError):
    """Exception raised when the language model call fails."""
    pass


class ExternalSearchError(TransientDependencyError):
    """Exception raised when an external source lookup fails."""
    pass


class SummarizationError(TransientDependencyError):
    """Exception raised during summarization process."""
    pass


class InvalidTurnTransitionError(BrainProtocolError):
    """A turn update tried to leave the terminal summarized state."""
    pass


class CompressionConflictError(BrainProtocolError):
    """Turns selected for compression are no longer active."""
    pass


class RegistrationError(BrainProtocolError):
    """A resource definition failed registration-time validation."""
    pass


class ResourceValidationError(BrainProtocolError):
    """Parameters passed to a registered resource failed validation."""
    pass


class DuplicateConversationError(BrainProtocolError):
    """An explicit conversation id is already in use."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation with ID {conversation_id} already exists")
        self.conversation_id = conversation_id


class DuplicateTurnError(BrainProtocolError):
    """An explicit turn id is already in use."""

    def __init__(self, turn_id: str):
        super().__init__(f"Turn with ID {turn_id} already exists")
        self.turn_id = turn_id
