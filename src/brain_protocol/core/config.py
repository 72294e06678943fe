"""Application configuration using pydantic-settings."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid",
    )

    # Application Configuration
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    debug: bool = True

    # Conversation Storage
    storage_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Conversation store implementation",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL for the redis conversation store",
    )
    room_lookup_precedence: list[Literal["cli", "matrix"]] = Field(
        default_factory=lambda: ["matrix", "cli"],
        description=(
            "Interface types probed, in order, when a room is looked up "
            "without an explicit interface type"
        ),
    )
    default_room_id: str = Field(
        default="default",
        description="Room used when a query arrives without a conversation",
    )
    default_interface_type: Literal["cli", "matrix"] = "cli"
    default_user_id: str = "cli-user"
    default_user_name: str = "User"

    # Tiered Memory
    max_active_turns: int = Field(default=10, description="Active tier bound")
    summary_turn_count: int = Field(
        default=5,
        description="Maximum turns compressed into a single summary",
    )
    max_archived_turns: int = Field(default=50, description="Archive tier bound")
    max_summaries: int = Field(default=3, description="Summaries listed to adapters")
    history_max_tokens: int = Field(
        default=2000,
        description="Token budget for conversation history in prompts",
    )

    # Relevance Thresholds
    profile_query_threshold: float = Field(
        default=0.75,
        description="Relevance above which a query is treated as a profile query",
    )
    profile_response_threshold: float = Field(
        default=0.6,
        description="Relevance above which the profile is echoed in the response",
    )
    profile_inclusion_threshold: float = Field(
        default=0.5,
        description="Relevance above which the profile is included in the prompt",
    )
    high_profile_relevance_threshold: float = 0.7
    medium_profile_relevance_threshold: float = 0.4
    extended_profile_threshold: float = 0.5
    external_sources_threshold: float = Field(
        default=0.6,
        description="Note coverage below which external sources are queried",
    )

    # Retrieval
    note_search_limit: int = 5
    related_notes_limit: int = 5
    external_sources_enabled: bool = Field(
        default=False,
        description="Allow gap-filling lookups against external sources",
    )
    external_results_limit: int = 3
    external_sources: list[Literal["wikipedia", "newsapi"]] = Field(
        default_factory=lambda: ["wikipedia", "newsapi"],
        description="External sources queried, in order",
    )
    external_cache_ttl: float = Field(
        default=3600.0,
        ge=0,
        description="Seconds external results are cached, 0 disables caching",
    )
    news_api_key: str = Field(
        default="",
        description="NewsAPI key, the NewsAPI source is skipped without one",
    )
    news_max_age_hours: int = 24 * 7

    # Language Model / Embeddings (External Services)
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key for LLM inference and embeddings",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override for OpenAI-compatible endpoints",
    )
    llm_model: str = "gpt-4o-mini"
    llm_max_tokens: int = 1024
    summarizer_max_tokens: int = 500
    embedding_provider: Literal["openai", "local"] | None = None
    embedding_model: str = "text-embedding-3-small"
    local_embedding_model: str = "all-MiniLM-L6-v2"

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"


# Global settings instance
settings = Settings()
