"""Domain models shared by retrieval and synthesis.

Field names are snake_case in Python and camelCase on the wire, so the
payloads exchanged with callers and with the generative model read
``symptomText``, ``vehicleScope`` and so on.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel


_WIRE_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class Severity(str, Enum):
    """How urgently a fault needs attention."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def unsafe_to_drive(self) -> bool:
        return self in (Severity.HIGH, Severity.CRITICAL)


# ---------------------------------------------------------------------------
# Evidence
# ---------------------------------------------------------------------------

class VehicleScope(BaseModel):
    """Vehicles a service bulletin applies to (inclusive year range)."""

    model_config = {**_WIRE_CONFIG, "frozen": True}

    make: str
    model: str
    year_min: int
    year_max: int

    @model_validator(mode="after")
    def check_year_range(self) -> "VehicleScope":
        if self.year_min > self.year_max:
            raise ValueError(
                f"year_min ({self.year_min}) exceeds year_max ({self.year_max})"
            )
        return self

    def covers(self, make: str, year: int) -> bool:
        """Return ``True`` if *make* matches and *year* lies in the range."""
        return (
            self.make.strip().lower() == make.strip().lower()
            and self.year_min <= year <= self.year_max
        )


class EvidenceDocument(BaseModel):
    """Pre-embedded service bulletin.  Read-only at query time."""

    model_config = {**_WIRE_CONFIG, "frozen": True}

    id: str = Field(..., min_length=1)
    vehicle_scope: VehicleScope
    component: str
    symptom_text: str
    diagnosis_text: str
    remedy_text: str
    severity: Severity
    embedding: List[float] = Field(default_factory=list)
    bulletin_number: Optional[str] = Field(
        default=None,
        description="Manufacturer TSB number, when the bulletin has one",
    )

    def embedding_text(self) -> str:
        """Text the document's embedding is computed from at ingestion."""
        scope = self.vehicle_scope
        years = (
            str(scope.year_min)
            if scope.year_min == scope.year_max
            else f"{scope.year_min}-{scope.year_max}"
        )
        return "\n".join(
            [
                f"Vehicle: {years} {scope.make} {scope.model}",
                f"Component: {self.component}",
                f"Symptom: {self.symptom_text}",
                f"Diagnosis: {self.diagnosis_text}",
                f"Solution: {self.remedy_text}",
                f"Severity: {self.severity.value}",
            ]
        )


class EvidenceMatch(BaseModel):
    """A retrieved document with its cosine similarity to the query."""

    model_config = _WIRE_CONFIG

    document: EvidenceDocument
    similarity_score: float


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------

class VehicleInfo(BaseModel):
    """Vehicle the diagnosis is for."""

    model_config = _WIRE_CONFIG

    year: int
    make: str
    model: str
    vin: Optional[str] = None
    mileage: Optional[int] = Field(default=None, ge=0)

    def describe(self) -> str:
        """Format vehicle info for prompts and log summaries."""
        return (
            f"{self.year} {self.make} {self.model}, "
            f"Mileage: {self.mileage if self.mileage is not None else 'Unknown'}"
        )


class AudioSignal(BaseModel):
    """Classification produced by the external audio analyser."""

    model_config = _WIRE_CONFIG

    label: str = Field(..., min_length=1)
    confidence: float = Field(..., ge=0.0, le=1.0)


class DiagnosticQuery(BaseModel):
    """One diagnosis request.

    ``symptom_text`` is not constrained here: blank text is rejected by the
    engine with :class:`~autodiag.errors.InvalidQueryError` so callers get a
    domain error rather than a schema error.
    """

    model_config = _WIRE_CONFIG

    vehicle: VehicleInfo
    symptom_text: str = ""
    audio_signal: Optional[AudioSignal] = None
    photo_count: Optional[int] = Field(default=None, ge=0)

    def summary(self) -> dict:
        """Log-safe description of the query (never the symptom text)."""
        return {
            "vehicle": f"{self.vehicle.year} {self.vehicle.make} {self.vehicle.model}",
            "symptom_len": len(self.symptom_text.strip()),
            "has_audio": self.audio_signal is not None,
            "photo_count": self.photo_count or 0,
        }
