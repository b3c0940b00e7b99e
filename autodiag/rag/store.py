"""Evidence store interface and the in-memory backend.

Concrete implementations: ``InMemoryEvidenceStore`` (numpy, process-local)
and ``WeaviateEvidenceStore`` (see :mod:`autodiag.rag.weaviate_store`).
Stores are injected into the retriever rather than shared as singletons.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np
import structlog

from autodiag.models import EvidenceDocument, EvidenceMatch

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class VehicleFilter:
    """Metadata pre-filter: bulletins covering *make* in *year*."""

    make: str
    year: int

    def matches(self, document: EvidenceDocument) -> bool:
        return document.vehicle_scope.covers(self.make, self.year)


class EvidenceStore(ABC):
    """Nearest-neighbour index over service bulletins."""

    @abstractmethod
    async def upsert(self, document: EvidenceDocument) -> None:
        """Insert or replace *document* (offline ingestion only)."""

    @abstractmethod
    async def query(
        self,
        vector: List[float],
        k: int,
        vehicle_filter: Optional[VehicleFilter] = None,
    ) -> List[EvidenceMatch]:
        """Return up to *k* matches ranked by descending cosine similarity.

        Raises:
            RetrievalError: If the store cannot be reached.
        """

    async def close(self) -> None:
        """Release any connection held by the store."""


def cosine_similarities(vector: List[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of *vector* against every row of *matrix*.

    Rows with zero norm score 0.0.
    """
    query = np.asarray(vector, dtype=float)
    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * query_norm
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(denom > 0, dots / denom, 0.0)
    return np.clip(scores, -1.0, 1.0)


class InMemoryEvidenceStore(EvidenceStore):
    """Exhaustive cosine search over documents held in a dict.

    Each query snapshots the current documents, so upserts between calls
    are picked up without any locking.
    """

    def __init__(self, documents: Iterable[EvidenceDocument] = ()):
        self._documents: Dict[str, EvidenceDocument] = {}
        for document in documents:
            self._documents[document.id] = document

    def __len__(self) -> int:
        return len(self._documents)

    async def upsert(self, document: EvidenceDocument) -> None:
        if not document.embedding:
            raise ValueError(f"document {document.id!r} has no embedding")
        self._documents[document.id] = document

    async def query(
        self,
        vector: List[float],
        k: int,
        vehicle_filter: Optional[VehicleFilter] = None,
    ) -> List[EvidenceMatch]:
        candidates = [
            doc
            for doc in list(self._documents.values())
            if len(doc.embedding) == len(vector)
            and (vehicle_filter is None or vehicle_filter.matches(doc))
        ]
        if not candidates or k <= 0:
            return []

        matrix = np.array([doc.embedding for doc in candidates], dtype=float)
        scores = cosine_similarities(vector, matrix)
        order = np.argsort(-scores, kind="stable")[:k]

        logger.debug(
            "memory_store.query",
            candidates=len(candidates),
            returned=len(order),
            filtered=vehicle_filter is not None,
        )
        return [
            EvidenceMatch(document=candidates[i], similarity_score=float(scores[i]))
            for i in order
        ]
