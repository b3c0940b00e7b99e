"""Test doubles and builders for diagnosis engine tests.

External services are replaced by in-process stubs: a keyword-count
embedder, a scripted generator and a store that is always unreachable.
"""

from __future__ import annotations

import asyncio
import json
from typing import List, Optional, Sequence

from autodiag.errors import EmbeddingError, GenerationError
from autodiag.models import (
    DiagnosticQuery,
    EvidenceDocument,
    Severity,
    VehicleInfo,
    VehicleScope,
)
from autodiag.rag.store import InMemoryEvidenceStore

# Each dimension counts one family of keywords
_KEYWORDS: Sequence[Sequence[str]] = (
    ("brak", "grind", "pad", "rotor"),
    ("transmission", "shift", "gear"),
    ("misfire", "idle", "ignition", "engine"),
    ("whine", "differential", "bearing"),
)

DIMENSION = len(_KEYWORDS)


def keyword_vector(text: str) -> List[float]:
    """Deterministic stand-in for a real embedding."""
    lowered = text.lower()
    vector = [float(sum(lowered.count(k) for k in family)) for family in _KEYWORDS]
    if not any(vector):
        vector = [0.01] * DIMENSION
    return vector


class StubEmbedder:
    """Keyword embedder that records every text it is asked to embed."""

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise EmbeddingError("embedding service unavailable")
        return keyword_vector(text)


class StubGenerator:
    """Generator returning a canned response (or failing) and recording prompts."""

    def __init__(
        self,
        response: Optional[str] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.response = response
        self.error = error
        self.delay = delay
        self.calls: List[tuple] = []

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.response is None:
            raise GenerationError("no canned response")
        return self.response


class FailingStore(InMemoryEvidenceStore):
    """Store whose queries always fail, as if the backend were unreachable."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    async def query(self, vector, k, vehicle_filter=None):
        self.calls += 1
        raise ConnectionError("store unreachable")


def make_document(
    doc_id: str,
    *,
    make: str = "Honda",
    model: str = "Civic",
    year_min: int = 2012,
    year_max: int = 2016,
    component: str = "Brakes",
    symptom: str = "Grinding noise when braking",
    diagnosis: str = "Worn brake pads",
    remedy: str = "Replace front brake pads. Inspect rotors. Bleed brakes.",
    severity: Severity = Severity.HIGH,
    embedding: Optional[List[float]] = None,
) -> EvidenceDocument:
    document = EvidenceDocument(
        id=doc_id,
        vehicle_scope=VehicleScope(
            make=make, model=model, year_min=year_min, year_max=year_max
        ),
        component=component,
        symptom_text=symptom,
        diagnosis_text=diagnosis,
        remedy_text=remedy,
        severity=severity,
    )
    vector = embedding if embedding is not None else keyword_vector(document.embedding_text())
    return document.model_copy(update={"embedding": vector})


def make_query(
    symptom: str = "grinding noise when braking",
    *,
    year: int = 2015,
    make: str = "Honda",
    model: str = "Civic",
    audio: Optional[dict] = None,
) -> DiagnosticQuery:
    return DiagnosticQuery(
        vehicle=VehicleInfo(year=year, make=make, model=model),
        symptom_text=symptom,
        audio_signal=audio,
    )


def generated_payload(**overrides) -> dict:
    """A valid generation payload in the camelCase wire format."""
    payload = {
        "primaryDiagnosis": "Worn brake pads",
        "differential": ["Warped rotors"],
        "confidence": 0.82,
        "severity": "high",
        "safeToDrive": False,
        "repairSteps": [
            {"stepNumber": 1, "title": "Remove wheels", "description": "Lift and remove front wheels.", "estimatedDuration": "15 min"},
            {"stepNumber": 2, "title": "Replace pads", "description": "Fit new front pads.", "estimatedDuration": "45 min"},
        ],
        "partsNeeded": [
            {"name": "Front brake pads", "estimatedPriceRange": {"min": 40, "max": 90}},
        ],
        "estimatedCost": {
            "partsRange": {"min": 40, "max": 90},
            "laborRange": {"min": 80, "max": 150},
            "totalRange": {"min": 120, "max": 240},
            "diyPossible": True,
        },
        "safetyWarnings": ["Braking distance may be increased."],
        "citedEvidenceIds": ["tsb-brakes"],
    }
    payload.update(overrides)
    return payload


def generated_json(**overrides) -> str:
    return json.dumps(generated_payload(**overrides))


