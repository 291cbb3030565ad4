"""
Application Configuration

Centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables (or a .env file).
"""

from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kitchen_assistant.core.errors import ConfigurationError


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are type-checked and validated by Pydantic.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application Settings
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # OpenRouter API Configuration (LLM completions)
    OPENROUTER_API_KEY: str = ""
    LLM_BASE_URL: str = "https://openrouter.ai/api/v1"
    LLM_MODEL: str = "google/gemini-2.5-flash"
    LLM_TIMEOUT_SECONDS: float = 30.0
    LLM_MAX_TOKENS: int = 1500
    OPENROUTER_SITE_URL: str = "http://localhost:8000"
    OPENROUTER_SITE_NAME: str = "KitchenAssistant"

    # OpenAI API Configuration (Embeddings)
    OPENAI_API_KEY: str = ""
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSIONS: int = 1536
    EMBEDDING_TIMEOUT_SECONDS: float = 10.0
    EMBEDDING_MAX_ATTEMPTS: int = 3

    # Qdrant Configuration (recipe index)
    QDRANT_URL: str = "http://localhost:6333"
    QDRANT_API_KEY: str = ""
    RECIPE_COLLECTION: str = "recipes"
    SEARCH_TIMEOUT_SECONDS: float = 5.0
    # Upper bound on points scanned by lexical-only search
    LEXICAL_SCAN_LIMIT: int = 2000

    # Hybrid Retrieval Configuration
    SEARCH_TOP_K: int = 10
    HYBRID_SEARCH: bool = True
    VECTOR_WEIGHT: float = 0.6
    TEXT_WEIGHT: float = 0.4
    MIN_SCORE: float = 0.1
    SAFETY_FIRST: bool = True
    # Optional FILTER on the stored safety score (0-100); unset means no filter
    MIN_SAFETY_SCORE: Optional[int] = None

    # Allergy detection policy: phrases that turn an allergen mention into an exclusion
    ALLERGY_TRIGGER_PHRASES: str = (
        "allergic to,allergic,allergy,allergies,intolerant,intolerance,"
        "exclude,excluding,without,free of,-free,avoid,can't eat,cannot eat,"
        "알레르기,알러지,빼고,제외,없이,못 먹,못먹"
    )

    # Conversation Session Store
    DATABASE_URL: str = ""
    CONVERSATION_MAX_TURNS: int = 50
    CONVERSATION_CONTEXT_TURNS: int = 6

    # Runtime
    STREAM_TIMEOUT_SECONDS: float = 60.0
    RESPONSE_CACHE_TTL_SECONDS: int = 300
    RESPONSE_CACHE_SIZE: int = 256

    @field_validator("VECTOR_WEIGHT", "TEXT_WEIGHT", "MIN_SCORE")
    @classmethod
    def validate_unit_interval(cls, value: float) -> float:
        """Weights and score thresholds live in [0, 1]."""
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"must be within [0, 1], got {value}")
        return value

    @property
    def allergy_trigger_phrases_list(self) -> List[str]:
        """Parse comma-separated ALLERGY_TRIGGER_PHRASES into a lower-cased list."""
        return [
            phrase.strip().lower()
            for phrase in self.ALLERGY_TRIGGER_PHRASES.split(",")
            if phrase.strip()
        ]

    def validate_required_endpoints(self) -> None:
        """
        Fail fast when a backend endpoint the workflow depends on is missing.

        Called once at process startup. Everything after startup degrades
        instead of raising.

        Raises:
            ConfigurationError: If QDRANT_URL or LLM_BASE_URL is empty
        """
        missing = [
            name for name in ("QDRANT_URL", "LLM_BASE_URL") if not getattr(self, name).strip()
        ]
        if missing:
            raise ConfigurationError(f"Missing required backend endpoint(s): {', '.join(missing)}")


# Global settings instance
settings = Settings()
