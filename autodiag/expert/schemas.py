"""Pydantic schemas for the diagnostic report.

``GeneratedDiagnosis`` is the shape the generative model is asked to emit;
validation rules live on the models so that parsing and checking happen in
one step.  ``DiagnosticReport`` adds the provenance flag returned to callers.
"""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from autodiag.models import Severity

_WIRE_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class PriceRange(BaseModel):
    """Price range in USD."""

    model_config = _WIRE_CONFIG

    min: float = Field(..., ge=0.0)
    max: float = Field(..., ge=0.0)

    @model_validator(mode="after")
    def check_order(self) -> "PriceRange":
        if self.min > self.max:
            raise ValueError(f"range min ({self.min}) exceeds max ({self.max})")
        return self


class RepairStep(BaseModel):
    """One numbered repair instruction."""

    model_config = _WIRE_CONFIG

    step_number: int
    title: str
    description: str = ""
    estimated_duration: str = ""


class PartNeeded(BaseModel):
    """Replacement part with its expected price."""

    model_config = _WIRE_CONFIG

    name: str = Field(..., min_length=1)
    estimated_price_range: PriceRange


class CostEstimate(BaseModel):
    """Parts, labour and total cost estimate."""

    model_config = _WIRE_CONFIG

    parts_range: PriceRange
    labor_range: PriceRange
    total_range: PriceRange
    diy_possible: bool = False


class GeneratedDiagnosis(BaseModel):
    """Structured output expected from the generative model."""

    model_config = _WIRE_CONFIG

    primary_diagnosis: str = Field(..., description="Most likely root cause")
    differential: List[str] = Field(
        default_factory=list,
        description="Alternative diagnoses, most likely first",
    )
    confidence: float = Field(..., ge=0.0, le=1.0)
    severity: Severity
    safe_to_drive: bool
    repair_steps: List[RepairStep] = Field(default_factory=list)
    parts_needed: List[PartNeeded] = Field(default_factory=list)
    estimated_cost: CostEstimate
    safety_warnings: List[str] = Field(default_factory=list)
    cited_evidence_ids: List[str] = Field(default_factory=list)

    @field_validator("primary_diagnosis")
    @classmethod
    def require_diagnosis(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("primaryDiagnosis must not be empty")
        return v

    @field_validator("severity", mode="before")
    @classmethod
    def normalise_severity(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("cited_evidence_ids")
    @classmethod
    def dedupe_citations(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def check_step_numbers(self) -> "GeneratedDiagnosis":
        numbers = [step.step_number for step in self.repair_steps]
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError(
                f"repairSteps must be numbered 1..{len(numbers)}, got {numbers}"
            )
        return self


class DiagnosticReport(GeneratedDiagnosis):
    """Final report returned to the caller."""

    used_fallback: bool = Field(
        default=False,
        description="True when the rule-based fallback produced this report",
    )
