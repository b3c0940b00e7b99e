"""Evidence store backed by a Weaviate collection.

The v4 client is synchronous, so every call runs in a worker thread to keep
the event loop free.  The client is created lazily from a factory so tests
can inject a mock.
"""

from __future__ import annotations

import asyncio
import hashlib
from typing import Any, Callable, Dict, List, Optional

import structlog
import weaviate
from weaviate.classes.query import Filter, MetadataQuery
from weaviate.util import generate_uuid5

from autodiag.config import Settings, settings as default_settings
from autodiag.errors import RetrievalError
from autodiag.models import EvidenceDocument, EvidenceMatch, Severity, VehicleScope
from autodiag.rag.client import get_client
from autodiag.rag.store import EvidenceStore, VehicleFilter

logger = structlog.get_logger(__name__)


def document_checksum(document: EvidenceDocument) -> str:
    """Stable SHA-256 over the id and the embedded text of *document*.

    Unchanged bulletins hash identically across ingestion runs.
    """
    payload = f"{document.id}:{document.embedding_text()}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _to_properties(document: EvidenceDocument) -> Dict[str, Any]:
    scope = document.vehicle_scope
    return {
        "doc_id": document.id,
        "make": scope.make,
        "make_key": scope.make.strip().lower(),
        "model": scope.model,
        "year_min": scope.year_min,
        "year_max": scope.year_max,
        "component": document.component,
        "symptom_text": document.symptom_text,
        "diagnosis_text": document.diagnosis_text,
        "remedy_text": document.remedy_text,
        "severity": document.severity.value,
        "bulletin_number": document.bulletin_number or "",
        "checksum": document_checksum(document),
    }


def _from_properties(props: Dict[str, Any]) -> EvidenceDocument:
    return EvidenceDocument(
        id=props["doc_id"],
        vehicle_scope=VehicleScope(
            make=props.get("make", ""),
            model=props.get("model", ""),
            year_min=props["year_min"],
            year_max=props["year_max"],
        ),
        component=props.get("component", ""),
        symptom_text=props.get("symptom_text", ""),
        diagnosis_text=props.get("diagnosis_text", ""),
        remedy_text=props.get("remedy_text", ""),
        severity=Severity(props.get("severity", Severity.MEDIUM.value)),
        bulletin_number=props.get("bulletin_number") or None,
    )


def _vehicle_filter(vehicle_filter: VehicleFilter):
    return (
        Filter.by_property("make_key").equal(vehicle_filter.make.strip().lower())
        & Filter.by_property("year_min").less_or_equal(vehicle_filter.year)
        & Filter.by_property("year_max").greater_or_equal(vehicle_filter.year)
    )


class WeaviateEvidenceStore(EvidenceStore):
    """Cosine nearest-neighbour search over the ``ServiceBulletin`` collection."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Optional[Callable[[], weaviate.WeaviateClient]] = None,
    ):
        settings = settings or default_settings
        self.collection_name = settings.weaviate_collection
        self._client_factory = client_factory or (lambda: get_client(settings))
        self._client: weaviate.WeaviateClient | None = None

    def _collection(self):
        if self._client is None:
            self._client = self._client_factory()
        return self._client.collections.get(self.collection_name)

    async def close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await asyncio.to_thread(client.close)

    # -- ingestion ----------------------------------------------------------

    def _upsert_sync(self, document: EvidenceDocument) -> None:
        collection = self._collection()
        uuid = generate_uuid5(document.id)
        properties = _to_properties(document)
        if collection.data.exists(uuid):
            collection.data.replace(uuid=uuid, properties=properties, vector=document.embedding)
        else:
            collection.data.insert(properties=properties, vector=document.embedding, uuid=uuid)

    async def upsert(self, document: EvidenceDocument) -> None:
        if not document.embedding:
            raise ValueError(f"document {document.id!r} has no embedding")
        await asyncio.to_thread(self._upsert_sync, document)

    def _has_checksum_sync(self, checksum: str) -> bool:
        result = self._collection().query.fetch_objects(
            filters=Filter.by_property("checksum").equal(checksum),
            limit=1,
        )
        return len(result.objects) > 0

    async def has_checksum(self, checksum: str) -> bool:
        """Return ``True`` if a document with *checksum* is already stored."""
        return await asyncio.to_thread(self._has_checksum_sync, checksum)

    # -- query --------------------------------------------------------------

    def _query_sync(
        self,
        vector: List[float],
        k: int,
        vehicle_filter: Optional[VehicleFilter],
    ) -> List[EvidenceMatch]:
        response = self._collection().query.near_vector(
            near_vector=vector,
            limit=k,
            filters=_vehicle_filter(vehicle_filter) if vehicle_filter else None,
            return_metadata=MetadataQuery(distance=True),
        )
        matches = []
        for obj in response.objects:
            distance = obj.metadata.distance if obj.metadata else None
            score = 1.0 - distance if distance is not None else 0.0
            matches.append(
                EvidenceMatch(
                    document=_from_properties(obj.properties),
                    similarity_score=max(-1.0, min(1.0, score)),
                )
            )
        matches.sort(key=lambda m: m.similarity_score, reverse=True)
        return matches

    async def query(
        self,
        vector: List[float],
        k: int,
        vehicle_filter: Optional[VehicleFilter] = None,
    ) -> List[EvidenceMatch]:
        try:
            return await asyncio.to_thread(self._query_sync, vector, k, vehicle_filter)
        except Exception as e:
            logger.error(
                "weaviate_store.query_error",
                collection=self.collection_name,
                error=str(e),
            )
            raise RetrievalError(
                "weaviate query failed",
                {"collection": self.collection_name, "cause": str(e)},
            ) from e
