"""Engine configuration via environment variables.

Uses pydantic-settings so every field can be overridden with an env var
(``LLM_ENDPOINT``, ``EMBEDDING_DIMENSION``, ``GENERATION_TIMEOUT_SECONDS``,
...).  ``env_prefix`` is empty, so field names map directly to env vars.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Diagnosis engine runtime settings."""

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    # -- generative model ---------------------------------------------------
    llm_endpoint: str = Field(
        default="http://ollama:11434/v1",
        description="OpenAI-compatible base URL of the generative service",
    )
    llm_model: str = Field(default="llama3:8b", description="Generation model")
    llm_api_key: str = Field(
        default="ollama",
        description="API key sent to the generative service",
    )
    llm_temperature: float = Field(
        default=0.1,
        description="Sampling temperature; low keeps the JSON stable",
    )

    # -- embedding ----------------------------------------------------------
    embedding_endpoint: str = Field(
        default="http://ollama:11434",
        description="Base URL of the Ollama embedding service",
    )
    embedding_model: str = Field(
        default="nomic-embed-text",
        description="Embedding model name",
    )
    embedding_dimension: int = Field(
        default=768,
        description="Expected vector length; a mismatch is a hard error",
    )

    # -- evidence store -----------------------------------------------------
    weaviate_url: str = Field(default="http://weaviate:8080")
    weaviate_grpc_port: int = Field(default=50051)
    weaviate_api_key: Optional[str] = Field(default=None)
    weaviate_collection: str = Field(default="ServiceBulletin")

    # -- retrieval ----------------------------------------------------------
    retrieval_top_k: int = Field(default=5, ge=1, description="Max evidence items")
    min_similarity: float = Field(
        default=0.15,
        description="Matches scoring below this are discarded",
    )
    candidate_multiplier: int = Field(
        default=2,
        ge=1,
        description="Store candidates fetched per returned evidence item",
    )

    # -- timeouts (seconds) -------------------------------------------------
    embedding_timeout_seconds: float = Field(default=10.0, gt=0)
    store_timeout_seconds: float = Field(default=5.0, gt=0)
    retrieval_timeout_seconds: float = Field(default=15.0, gt=0)
    generation_timeout_seconds: float = Field(default=30.0, gt=0)

    # -- behaviour ----------------------------------------------------------
    redact_pii: bool = Field(
        default=True,
        description="Redact PII from symptom text before external calls",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="console",
        description="Log output format: 'console' or 'json'",
    )


# Global settings instance
settings = Settings()
