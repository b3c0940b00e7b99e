"""Tests for the Ollama embedding client (mocked with respx)."""

from __future__ import annotations

import httpx
import pytest
import respx

from autodiag.config import Settings
from autodiag.errors import EmbeddingError
from autodiag.rag.embedding import OllamaEmbeddingService

_URL = "http://test-ollama:11434/api/embeddings"


@pytest.fixture()
def service() -> OllamaEmbeddingService:
    return OllamaEmbeddingService(
        Settings(
            embedding_endpoint="http://test-ollama:11434/",
            embedding_model="nomic-embed-text",
            embedding_dimension=3,
            embedding_timeout_seconds=1.0,
        )
    )


@pytest.mark.asyncio
@respx.mock
async def test_embed_success(service) -> None:
    route = respx.post(_URL).mock(
        return_value=httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})
    )
    vector = await service.embed("grinding noise")
    assert vector == [0.1, 0.2, 0.3]
    body = route.calls.last.request.content
    assert b'"model":"nomic-embed-text"' in body.replace(b" ", b"")
    assert b"grinding noise" in body


@pytest.mark.asyncio
@respx.mock
async def test_dimension_mismatch_is_error(service) -> None:
    respx.post(_URL).mock(return_value=httpx.Response(200, json={"embedding": [0.1, 0.2]}))
    with pytest.raises(EmbeddingError) as exc:
        await service.embed("grinding noise")
    assert exc.value.details == {"expected": 3, "got": 2}


@pytest.mark.asyncio
@respx.mock
async def test_empty_vector_is_error(service) -> None:
    respx.post(_URL).mock(return_value=httpx.Response(200, json={"embedding": []}))
    with pytest.raises(EmbeddingError):
        await service.embed("grinding noise")


@pytest.mark.asyncio
@respx.mock
async def test_server_error_is_error(service) -> None:
    respx.post(_URL).mock(return_value=httpx.Response(500))
    with pytest.raises(EmbeddingError, match="500"):
        await service.embed("grinding noise")


@pytest.mark.asyncio
@respx.mock
async def test_timeout_is_error(service) -> None:
    respx.post(_URL).mock(side_effect=httpx.ReadTimeout("slow"))
    with pytest.raises(EmbeddingError, match="timed out"):
        await service.embed("grinding noise")


@pytest.mark.asyncio
@respx.mock
async def test_network_error_is_error(service) -> None:
    respx.post(_URL).mock(side_effect=httpx.ConnectError("refused"))
    with pytest.raises(EmbeddingError):
        await service.embed("grinding noise")


@pytest.mark.asyncio
async def test_blank_text_rejected_without_request(service) -> None:
    with respx.mock(assert_all_called=False) as mock:
        route = mock.post(_URL)
        with pytest.raises(EmbeddingError):
            await service.embed("   ")
        assert not route.called
