"""Evidence retrieval for a diagnostic query."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

import structlog

from autodiag.config import Settings, settings as default_settings
from autodiag.errors import EmbeddingError, RetrievalError
from autodiag.models import DiagnosticQuery, EvidenceMatch
from autodiag.rag.embedding import Embedder
from autodiag.rag.store import EvidenceStore, VehicleFilter

logger = structlog.get_logger(__name__)

# Audio labels above this confidence are repeated in the query text
AUDIO_CONFIDENCE_FLOOR = 0.5
# One extra repetition per this much confidence above the floor
AUDIO_REPEAT_STEP = 0.2


def audio_label_repeats(confidence: float) -> int:
    """Extra repetitions of the audio label for a given confidence.

    0.7 -> 1, 0.9 -> 2, anything at or below 0.5 -> 0.
    """
    if confidence <= AUDIO_CONFIDENCE_FLOOR:
        return 0
    # epsilon absorbs float error: (0.7 - 0.5) / 0.2 == 0.9999999999999998
    return int((confidence - AUDIO_CONFIDENCE_FLOOR) / AUDIO_REPEAT_STEP + 1e-9)


def compose_query(query: DiagnosticQuery) -> str:
    """Build the retrieval text: vehicle, symptoms, then the audio label.

    Repeating the label biases the embedding toward acoustically
    confirmed symptoms.
    """
    vehicle = query.vehicle
    parts = [f"{vehicle.year} {vehicle.make} {vehicle.model}", query.symptom_text.strip()]
    signal = query.audio_signal
    if signal is not None:
        parts.extend([signal.label] * (1 + audio_label_repeats(signal.confidence)))
    return " ".join(parts)


def select_evidence(
    candidates: List[EvidenceMatch],
    top_k: int,
    min_similarity: float,
) -> List[EvidenceMatch]:
    """Deduplicate, threshold, rank and truncate raw store matches.

    If every candidate falls below *min_similarity* the single best one is
    kept, so a non-empty store always yields at least one item.
    """
    best: Dict[str, EvidenceMatch] = {}
    for match in candidates:
        current = best.get(match.document.id)
        if current is None or match.similarity_score > current.similarity_score:
            best[match.document.id] = match

    ranked = sorted(best.values(), key=lambda m: m.similarity_score, reverse=True)
    kept = [m for m in ranked if m.similarity_score >= min_similarity]
    if not kept and ranked:
        kept = ranked[:1]
    return kept[:top_k]


class EvidenceRetriever:
    """Embeds the composed query and ranks bulletins from the store.

    Never raises for external failures: an embedding or store fault
    degrades to an empty evidence list.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: EvidenceStore,
        settings: Optional[Settings] = None,
    ):
        settings = settings or default_settings
        self.embedder = embedder
        self.store = store
        self.top_k = settings.retrieval_top_k
        self.min_similarity = settings.min_similarity
        self.candidate_k = settings.retrieval_top_k * settings.candidate_multiplier
        self.store_timeout = settings.store_timeout_seconds

    async def _query_store(
        self,
        vector: List[float],
        vehicle_filter: Optional[VehicleFilter],
    ) -> List[EvidenceMatch]:
        try:
            return await asyncio.wait_for(
                self.store.query(vector, self.candidate_k, vehicle_filter),
                timeout=self.store_timeout,
            )
        except RetrievalError:
            raise
        except asyncio.TimeoutError as e:
            raise RetrievalError(
                "evidence store timed out", {"timeout": self.store_timeout}
            ) from e
        except Exception as e:
            raise RetrievalError("evidence store failed", {"cause": str(e)}) from e

    async def retrieve(self, query: DiagnosticQuery) -> List[EvidenceMatch]:
        """Return at most ``top_k`` deduplicated matches, best first."""
        log = logger.bind(stage="retrieving", **query.summary())
        text = compose_query(query)

        try:
            vector = await self.embedder.embed(text)
        except EmbeddingError as e:
            log.warning("retriever.embedding_failed", error=e.message, details=e.details)
            return []

        vehicle_filter = VehicleFilter(make=query.vehicle.make, year=query.vehicle.year)
        try:
            candidates = await self._query_store(vector, vehicle_filter)
            if not candidates:
                log.info("retriever.filter_empty_unfiltered_search")
                candidates = await self._query_store(vector, None)
        except RetrievalError as e:
            log.warning("retriever.store_unavailable", error=e.message, details=e.details)
            return []

        evidence = select_evidence(candidates, self.top_k, self.min_similarity)
        log.info(
            "retriever.done",
            candidates=len(candidates),
            returned=len(evidence),
            top_score=evidence[0].similarity_score if evidence else None,
        )
        return evidence
