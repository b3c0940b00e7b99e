"""Diagnosis engine: the public entry point of the package."""

from __future__ import annotations

import asyncio
import uuid
from enum import Enum
from typing import List, Optional

import structlog

from autodiag.config import Settings, settings as default_settings
from autodiag.errors import InvalidQueryError
from autodiag.expert.client import ExpertLLMClient
from autodiag.expert.fallback import build_fallback_report
from autodiag.expert.schemas import DiagnosticReport
from autodiag.expert.synthesizer import DiagnosisSynthesizer
from autodiag.models import DiagnosticQuery, EvidenceMatch
from autodiag.privacy.redaction import PIIRedactor
from autodiag.rag.embedding import OllamaEmbeddingService
from autodiag.rag.retrieve import EvidenceRetriever
from autodiag.rag.store import EvidenceStore
from autodiag.rag.weaviate_store import WeaviateEvidenceStore

logger = structlog.get_logger(__name__)


class DiagnosisStage(str, Enum):
    """Per-request pipeline stages, in order."""

    VALIDATING = "validating"
    RETRIEVING = "retrieving"
    SYNTHESIZING = "synthesizing"
    DONE = "done"


class DiagnosisEngine:
    """Validates a query, retrieves evidence, then synthesizes the report.

    Only :class:`InvalidQueryError` and ``asyncio.CancelledError`` escape
    :meth:`diagnose`; every external fault degrades to a lower-confidence
    report flagged ``used_fallback``.  The engine keeps no per-request
    state, so one instance serves concurrent requests.

    Usage:
        async with DiagnosisEngine.from_settings() as engine:
            report = await engine.diagnose(query)
    """

    def __init__(
        self,
        retriever: EvidenceRetriever,
        synthesizer: DiagnosisSynthesizer,
        settings: Optional[Settings] = None,
    ):
        settings = settings or default_settings
        self.retriever = retriever
        self.synthesizer = synthesizer
        self.retrieval_timeout = settings.retrieval_timeout_seconds
        self.redact_pii = settings.redact_pii
        self._owned: list = []

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        store: Optional[EvidenceStore] = None,
    ) -> "DiagnosisEngine":
        """Wire the production services (Ollama, Weaviate, OpenAI API)."""
        settings = settings or default_settings
        embedder = OllamaEmbeddingService(settings)
        generator = ExpertLLMClient(settings)
        owned = [embedder, generator]
        if store is None:
            store = WeaviateEvidenceStore(settings)
            owned.append(store)
        engine = cls(
            EvidenceRetriever(embedder, store, settings),
            DiagnosisSynthesizer(generator, settings),
            settings,
        )
        engine._owned = owned
        return engine

    async def close(self) -> None:
        """Close the services created by :meth:`from_settings`."""
        for resource in self._owned:
            await resource.close()
        self._owned = []

    async def __aenter__(self) -> "DiagnosisEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # -- pipeline -----------------------------------------------------------

    def _validate(self, query: DiagnosticQuery) -> DiagnosticQuery:
        if not query.symptom_text or not query.symptom_text.strip():
            raise InvalidQueryError(
                "symptomText must not be empty",
                {"field": "symptomText"},
            )
        if self.redact_pii:
            query = query.model_copy(
                update={"symptom_text": PIIRedactor.redact_text(query.symptom_text)}
            )
        return query

    async def _retrieve(self, query: DiagnosticQuery, log) -> List[EvidenceMatch]:
        try:
            return await asyncio.wait_for(
                self.retriever.retrieve(query),
                timeout=self.retrieval_timeout,
            )
        except asyncio.TimeoutError:
            log.warning(
                "diagnosis.retrieval_degraded",
                stage=DiagnosisStage.RETRIEVING.value,
                cause="timeout",
                timeout=self.retrieval_timeout,
            )
        except Exception:
            log.exception(
                "diagnosis.retrieval_degraded",
                stage=DiagnosisStage.RETRIEVING.value,
                cause="error",
            )
        return []

    async def _synthesize(
        self,
        query: DiagnosticQuery,
        evidence: List[EvidenceMatch],
        log,
    ) -> DiagnosticReport:
        try:
            return await self.synthesizer.synthesize(query, evidence)
        except Exception:
            log.exception(
                "diagnosis.synthesis_degraded",
                stage=DiagnosisStage.SYNTHESIZING.value,
            )
            return build_fallback_report(evidence)

    async def diagnose(self, query: DiagnosticQuery) -> DiagnosticReport:
        """Produce a structurally valid report for *query*.

        Raises:
            InvalidQueryError: If the symptom text is blank (no external
                call is made).
        """
        request_id = uuid.uuid4().hex
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            log = logger.bind(**query.summary())
            log.info("diagnosis.start", stage=DiagnosisStage.VALIDATING.value)
            query = self._validate(query)

            log.info("diagnosis.stage", stage=DiagnosisStage.RETRIEVING.value)
            evidence = await self._retrieve(query, log)

            log.info(
                "diagnosis.stage",
                stage=DiagnosisStage.SYNTHESIZING.value,
                evidence_ids=[m.document.id for m in evidence],
            )
            report = await self._synthesize(query, evidence, log)

            log.info(
                "diagnosis.complete",
                stage=DiagnosisStage.DONE.value,
                used_fallback=report.used_fallback,
                confidence=report.confidence,
                severity=report.severity.value,
                cited_evidence_ids=report.cited_evidence_ids,
            )
            return report
