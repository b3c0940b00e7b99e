"""Tests for the in-memory and Weaviate evidence stores."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest

from autodiag.errors import RetrievalError
from autodiag.models import Severity
from autodiag.rag.store import InMemoryEvidenceStore, VehicleFilter, cosine_similarities
from autodiag.rag.weaviate_store import (
    WeaviateEvidenceStore,
    _to_properties,
    document_checksum,
)
from autodiag.tests.helpers import make_document


# ---------------------------------------------------------------------------
# Cosine similarity
# ---------------------------------------------------------------------------

def test_cosine_similarities() -> None:
    matrix = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0], [0.0, 0.0]])
    scores = cosine_similarities([1.0, 0.0], matrix)
    assert scores[0] == pytest.approx(1.0)
    assert scores[1] == pytest.approx(0.0)
    assert scores[2] == pytest.approx(1 / np.sqrt(2))
    assert scores[3] == 0.0


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

class TestInMemoryEvidenceStore:
    @pytest.mark.asyncio
    async def test_ranked_by_similarity(self) -> None:
        store = InMemoryEvidenceStore(
            [
                make_document("a", embedding=[1.0, 0.0, 0.0]),
                make_document("b", embedding=[0.7, 0.7, 0.0]),
                make_document("c", embedding=[0.0, 0.0, 1.0]),
            ]
        )
        matches = await store.query([1.0, 0.0, 0.0], k=3)
        assert [m.document.id for m in matches] == ["a", "b", "c"]
        scores = [m.similarity_score for m in matches]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_k_limits_results(self) -> None:
        store = InMemoryEvidenceStore(
            [make_document(str(i), embedding=[1.0, float(i)]) for i in range(5)]
        )
        assert len(await store.query([1.0, 0.0], k=2)) == 2

    @pytest.mark.asyncio
    async def test_vehicle_filter(self) -> None:
        store = InMemoryEvidenceStore(
            [
                make_document("civic", make="Honda", year_min=2012, year_max=2015, embedding=[1.0, 0.0]),
                make_document("camry", make="Toyota", year_min=2018, year_max=2018, embedding=[1.0, 0.0]),
                make_document("old-civic", make="Honda", year_min=2001, year_max=2005, embedding=[1.0, 0.0]),
            ]
        )
        matches = await store.query([1.0, 0.0], k=5, vehicle_filter=VehicleFilter("honda", 2015))
        assert [m.document.id for m in matches] == ["civic"]

    @pytest.mark.asyncio
    async def test_skips_wrong_dimension(self) -> None:
        store = InMemoryEvidenceStore(
            [
                make_document("ok", embedding=[1.0, 0.0]),
                make_document("bad", embedding=[1.0, 0.0, 0.0]),
            ]
        )
        matches = await store.query([1.0, 0.0], k=5)
        assert [m.document.id for m in matches] == ["ok"]

    @pytest.mark.asyncio
    async def test_empty_store(self) -> None:
        assert await InMemoryEvidenceStore().query([1.0, 0.0], k=5) == []

    @pytest.mark.asyncio
    async def test_upsert_replaces_and_is_visible(self) -> None:
        store = InMemoryEvidenceStore([make_document("a", embedding=[1.0, 0.0])])
        await store.upsert(make_document("a", diagnosis="Updated", embedding=[0.0, 1.0]))
        await store.upsert(make_document("b", embedding=[1.0, 0.0]))
        assert len(store) == 2
        matches = await store.query([0.0, 1.0], k=1)
        assert matches[0].document.diagnosis_text == "Updated"

    @pytest.mark.asyncio
    async def test_upsert_requires_embedding(self) -> None:
        with pytest.raises(ValueError):
            await InMemoryEvidenceStore().upsert(make_document("a", embedding=[]))


# ---------------------------------------------------------------------------
# Weaviate store (mocked client)
# ---------------------------------------------------------------------------

def _mock_client(collection: MagicMock) -> MagicMock:
    client = MagicMock()
    client.collections.get.return_value = collection
    return client


def _weaviate_object(document, distance):
    return SimpleNamespace(
        properties=_to_properties(document),
        metadata=SimpleNamespace(distance=distance),
    )


class TestWeaviateEvidenceStore:
    @pytest.mark.asyncio
    async def test_query_converts_distance(self, settings) -> None:
        near = make_document("near", severity=Severity.CRITICAL)
        far = make_document("far", make="Toyota")
        collection = MagicMock()
        collection.query.near_vector.return_value = SimpleNamespace(
            objects=[_weaviate_object(far, 0.6), _weaviate_object(near, 0.1)]
        )
        client = _mock_client(collection)
        store = WeaviateEvidenceStore(settings, client_factory=lambda: client)

        matches = await store.query([1.0, 0.0], k=4, vehicle_filter=VehicleFilter("Honda", 2015))

        assert [m.document.id for m in matches] == ["near", "far"]
        assert matches[0].similarity_score == pytest.approx(0.9)
        assert matches[0].document.severity is Severity.CRITICAL
        assert matches[0].document.vehicle_scope.make == "Honda"
        kwargs = collection.query.near_vector.call_args.kwargs
        assert kwargs["limit"] == 4
        assert kwargs["filters"] is not None

    @pytest.mark.asyncio
    async def test_unfiltered_query_passes_no_filter(self, settings) -> None:
        collection = MagicMock()
        collection.query.near_vector.return_value = SimpleNamespace(objects=[])
        store = WeaviateEvidenceStore(settings, client_factory=lambda: _mock_client(collection))
        assert await store.query([1.0], k=2) == []
        assert collection.query.near_vector.call_args.kwargs["filters"] is None

    @pytest.mark.asyncio
    async def test_query_failure_raises_retrieval_error(self, settings) -> None:
        def broken_factory():
            raise ConnectionError("weaviate down")

        store = WeaviateEvidenceStore(settings, client_factory=broken_factory)
        with pytest.raises(RetrievalError):
            await store.query([1.0], k=2)

    @pytest.mark.asyncio
    async def test_upsert_inserts_new_document(self, settings) -> None:
        collection = MagicMock()
        collection.data.exists.return_value = False
        store = WeaviateEvidenceStore(settings, client_factory=lambda: _mock_client(collection))

        await store.upsert(make_document("a", embedding=[1.0, 0.0]))

        collection.data.insert.assert_called_once()
        kwargs = collection.data.insert.call_args.kwargs
        assert kwargs["properties"]["doc_id"] == "a"
        assert kwargs["properties"]["make_key"] == "honda"
        assert kwargs["vector"] == [1.0, 0.0]
        collection.data.replace.assert_not_called()

    @pytest.mark.asyncio
    async def test_upsert_replaces_existing_document(self, settings) -> None:
        collection = MagicMock()
        collection.data.exists.return_value = True
        store = WeaviateEvidenceStore(settings, client_factory=lambda: _mock_client(collection))

        await store.upsert(make_document("a", embedding=[1.0, 0.0]))

        collection.data.replace.assert_called_once()
        collection.data.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_has_checksum(self, settings) -> None:
        collection = MagicMock()
        collection.query.fetch_objects.return_value = SimpleNamespace(objects=[object()])
        store = WeaviateEvidenceStore(settings, client_factory=lambda: _mock_client(collection))
        assert await store.has_checksum("abc") is True

    @pytest.mark.asyncio
    async def test_close_closes_client(self, settings) -> None:
        collection = MagicMock()
        collection.query.near_vector.return_value = SimpleNamespace(objects=[])
        client = _mock_client(collection)
        store = WeaviateEvidenceStore(settings, client_factory=lambda: client)
        await store.query([1.0], k=1)
        await store.close()
        client.close.assert_called_once()


def test_checksum_ignores_embedding() -> None:
    a = make_document("a", embedding=[1.0, 0.0])
    b = make_document("a", embedding=[0.0, 1.0])
    assert document_checksum(a) == document_checksum(b)
    assert len(document_checksum(a)) == 64


def test_checksum_changes_with_content() -> None:
    a = make_document("a")
    b = make_document("a", remedy="Replace calipers.")
    assert document_checksum(a) != document_checksum(b)
