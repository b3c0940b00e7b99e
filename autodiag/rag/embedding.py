"""Embedding service using a dedicated Ollama embedding model."""

from __future__ import annotations

from typing import List, Optional, Protocol

import httpx
import structlog

from autodiag.config import Settings, settings as default_settings
from autodiag.errors import EmbeddingError

logger = structlog.get_logger(__name__)


class Embedder(Protocol):
    """Anything that turns text into a fixed-length vector."""

    async def embed(self, text: str) -> List[float]:
        ...


class OllamaEmbeddingService:
    """Client for generating embeddings via Ollama.

    Uses ``settings.embedding_model`` (default: nomic-embed-text, 768-dim).
    The returned vector must have exactly ``settings.embedding_dimension``
    entries.  No retries and no caching: every failure surfaces as
    :class:`EmbeddingError` for the caller to absorb.

    Reuses a single httpx.AsyncClient for connection pooling.  Call
    :meth:`close` when the service is no longer needed.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or default_settings
        self.base_url = settings.embedding_endpoint.rstrip("/")
        self.model = settings.embedding_model
        self.dimension = settings.embedding_dimension
        self.timeout = settings.embedding_timeout_seconds
        self._client: httpx.AsyncClient | None = None
        logger.info(
            "embedding_service.init",
            model=self.model,
            endpoint=self.base_url,
            dimension=self.dimension,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Return a reusable httpx.AsyncClient, creating one if needed."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def embed(self, text: str) -> List[float]:
        """Generate the embedding vector for *text*.

        Args:
            text: Input text to embed; must not be blank.

        Returns:
            List of ``self.dimension`` floats.

        Raises:
            EmbeddingError: On blank input, transport failure, timeout,
                error status, or a vector of the wrong length.
        """
        if not text or not text.strip():
            raise EmbeddingError("cannot embed blank text")

        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/api/embeddings",
                json={"model": self.model, "prompt": text},
                timeout=self.timeout,
            )
            response.raise_for_status()
            result = response.json()
        except httpx.TimeoutException as e:
            logger.warning("embedding_service.timeout", model=self.model)
            raise EmbeddingError(
                "embedding request timed out",
                {"model": self.model, "timeout": self.timeout},
            ) from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "embedding_service.http_error",
                status=e.response.status_code,
                model=self.model,
            )
            raise EmbeddingError(
                f"embedding service returned {e.response.status_code}",
                {"model": self.model},
            ) from e
        except (httpx.RequestError, ValueError) as e:
            logger.error("embedding_service.error", error=str(e), model=self.model)
            raise EmbeddingError(str(e), {"model": self.model}) from e

        embedding = result.get("embedding") if isinstance(result, dict) else None
        if not embedding:
            logger.warning(
                "embedding_service.empty_response",
                model=self.model,
                text_len=len(text),
            )
            raise EmbeddingError("embedding service returned no vector")
        if len(embedding) != self.dimension:
            logger.error(
                "embedding_service.dimension_mismatch",
                expected=self.dimension,
                got=len(embedding),
            )
            raise EmbeddingError(
                "unexpected embedding dimension",
                {"expected": self.dimension, "got": len(embedding)},
            )
        try:
            return [float(x) for x in embedding]
        except (TypeError, ValueError) as e:
            raise EmbeddingError("embedding contains non-numeric values") from e
