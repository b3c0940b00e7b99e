"""Diagnosis synthesis: prompt, generate, validate, or fall back."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence, Tuple

import structlog

from autodiag.config import Settings, settings as default_settings
from autodiag.errors import GenerationError, ReportValidationError
from autodiag.expert import prompts
from autodiag.expert.client import Generator
from autodiag.expert.fallback import build_fallback_report
from autodiag.expert.schemas import DiagnosticReport
from autodiag.expert.validate import validate_llm_output
from autodiag.models import DiagnosticQuery, EvidenceMatch

logger = structlog.get_logger(__name__)


def build_prompts(
    query: DiagnosticQuery,
    evidence: Sequence[EvidenceMatch],
) -> Tuple[str, str]:
    """Return the ``(system, user)`` prompt pair for *query*."""
    if evidence:
        evidence_text = "\n\n".join(
            prompts.EVIDENCE_ITEM_TEMPLATE.format(
                id=m.document.id,
                component=m.document.component,
                diagnosis=m.document.diagnosis_text,
                remedy=m.document.remedy_text,
                severity=m.document.severity.value,
            )
            for m in evidence
        )
    else:
        evidence_text = prompts.NO_EVIDENCE_TEXT

    signal = query.audio_signal
    audio = (
        f"{signal.label} (confidence {signal.confidence:.2f})"
        if signal is not None
        else "None provided"
    )

    user_prompt = prompts.USER_PROMPT_TEMPLATE.format(
        vehicle_info=query.vehicle.describe(),
        symptoms=query.symptom_text.strip(),
        audio=audio,
        photo_count=query.photo_count or 0,
        evidence=evidence_text,
    )
    return prompts.SYSTEM_PROMPT, user_prompt


class DiagnosisSynthesizer:
    """Turns a query and its evidence into a validated report.

    Generation failures of any kind (timeout, transport error, malformed
    output) are absorbed: the result is then the deterministic fallback
    report with ``used_fallback=True``.  Cancellation is not absorbed.
    """

    def __init__(self, generator: Generator, settings: Optional[Settings] = None):
        settings = settings or default_settings
        self.generator = generator
        self.timeout = settings.generation_timeout_seconds

    async def _generate(self, query: DiagnosticQuery, evidence: Sequence[EvidenceMatch]) -> str:
        system_prompt, user_prompt = build_prompts(query, evidence)
        try:
            return await asyncio.wait_for(
                self.generator.generate(system_prompt, user_prompt),
                timeout=self.timeout,
            )
        except GenerationError:
            raise
        except asyncio.TimeoutError as e:
            raise GenerationError("generation timed out", {"timeout": self.timeout}) from e
        except Exception as e:
            raise GenerationError("generation failed", {"cause": str(e)}) from e

    async def synthesize(
        self,
        query: DiagnosticQuery,
        evidence: Sequence[EvidenceMatch],
    ) -> DiagnosticReport:
        log = logger.bind(stage="synthesizing", evidence_count=len(evidence), **query.summary())

        try:
            raw_text = await self._generate(query, evidence)
            diagnosis = validate_llm_output(raw_text, [m.document.id for m in evidence])
        except GenerationError as e:
            log.warning("synthesizer.generation_failed", error=e.message, details=e.details)
        except ReportValidationError as e:
            log.warning("synthesizer.validation_failed", error=e.message, details=e.details)
        else:
            log.info(
                "synthesizer.generated",
                severity=diagnosis.severity.value,
                confidence=diagnosis.confidence,
                cited=len(diagnosis.cited_evidence_ids),
            )
            return DiagnosticReport.model_validate(
                {**diagnosis.model_dump(), "used_fallback": False}
            )

        report = build_fallback_report(evidence)
        log.info(
            "synthesizer.fallback",
            severity=report.severity.value,
            confidence=report.confidence,
            cited=len(report.cited_evidence_ids),
        )
        return report
