"""Deterministic fallback report built from retrieved evidence.

Used whenever the generative path fails, times out, or returns output that
does not validate.  The same evidence always yields the same report.
"""

from __future__ import annotations

import re
from typing import List, Sequence

from autodiag.expert.schemas import CostEstimate, DiagnosticReport, PriceRange, RepairStep
from autodiag.models import EvidenceMatch, Severity

INSUFFICIENT_INFORMATION = (
    "Insufficient information to determine a diagnosis. "
    "Have the vehicle inspected by a qualified technician."
)

FALLBACK_CONFIDENCE = 0.3
NO_EVIDENCE_CONFIDENCE = 0.1
MAX_FALLBACK_STEPS = 3

_STEP_SPLIT = re.compile(r"(?<=[.!?;])\s+|\n+")
_TITLE_WORDS = 6


def split_remedy(remedy_text: str, max_steps: int = MAX_FALLBACK_STEPS) -> List[str]:
    """Split remedy text into at most *max_steps* instructions.

    Sentences past the limit are merged into the last instruction.
    """
    sentences = [s.strip() for s in _STEP_SPLIT.split(remedy_text) if s and s.strip()]
    if len(sentences) > max_steps:
        sentences = sentences[:max_steps - 1] + [" ".join(sentences[max_steps - 1:])]
    return sentences


def _title(sentence: str) -> str:
    words = sentence.rstrip(".!?;").split()
    title = " ".join(words[:_TITLE_WORDS])
    return title + ("..." if len(words) > _TITLE_WORDS else "")


def _remedy_steps(remedy_text: str) -> List[RepairStep]:
    return [
        RepairStep(
            step_number=n,
            title=_title(sentence),
            description=sentence,
            estimated_duration="Varies",
        )
        for n, sentence in enumerate(split_remedy(remedy_text), start=1)
    ]


def _inspection_step() -> RepairStep:
    return RepairStep(
        step_number=1,
        title="Professional inspection",
        description=(
            "Have a qualified technician inspect the vehicle and confirm "
            "the fault before replacing parts."
        ),
        estimated_duration="1 hour",
    )


def _unknown_cost() -> CostEstimate:
    zero = PriceRange(min=0.0, max=0.0)
    return CostEstimate(
        parts_range=zero,
        labor_range=zero,
        total_range=zero,
        diy_possible=False,
    )


def build_fallback_report(evidence: Sequence[EvidenceMatch]) -> DiagnosticReport:
    """Build a report from the best evidence without calling any model."""
    if not evidence:
        return DiagnosticReport(
            primary_diagnosis=INSUFFICIENT_INFORMATION,
            confidence=NO_EVIDENCE_CONFIDENCE,
            severity=Severity.MEDIUM,
            safe_to_drive=True,
            repair_steps=[_inspection_step()],
            estimated_cost=_unknown_cost(),
            used_fallback=True,
        )

    top = evidence[0].document
    severity = top.severity
    cited = [top.id]

    differential: List[str] = []
    seen = {top.diagnosis_text.strip().lower()}
    for match in evidence[1:]:
        diagnosis = match.document.diagnosis_text.strip()
        if diagnosis and diagnosis.lower() not in seen:
            seen.add(diagnosis.lower())
            differential.append(diagnosis)
            cited.append(match.document.id)

    steps = _remedy_steps(top.remedy_text) or [_inspection_step()]

    warnings: List[str] = []
    if severity.unsafe_to_drive:
        warnings.append(
            f"{severity.value.capitalize()} severity {top.component.lower()} fault: "
            "avoid driving until the vehicle has been inspected."
        )

    return DiagnosticReport(
        primary_diagnosis=top.diagnosis_text.strip() or INSUFFICIENT_INFORMATION,
        differential=differential,
        confidence=FALLBACK_CONFIDENCE,
        severity=severity,
        safe_to_drive=not severity.unsafe_to_drive,
        repair_steps=steps,
        estimated_cost=_unknown_cost(),
        safety_warnings=warnings,
        cited_evidence_ids=cited,
        used_fallback=True,
    )
