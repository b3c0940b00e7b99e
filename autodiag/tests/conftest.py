"""Shared pytest fixtures for diagnosis engine tests."""

from __future__ import annotations

import pytest

from autodiag.config import Settings
from autodiag.models import EvidenceDocument, Severity
from autodiag.rag.store import InMemoryEvidenceStore
from autodiag.tests.helpers import DIMENSION, make_document


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "integration: marks tests that require external services (Ollama, Weaviate, etc.)",
    )


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        embedding_dimension=DIMENSION,
        retrieval_top_k=5,
        min_similarity=0.15,
        store_timeout_seconds=0.5,
        retrieval_timeout_seconds=1.0,
        generation_timeout_seconds=0.5,
        redact_pii=True,
    )


@pytest.fixture()
def brake_document() -> EvidenceDocument:
    return make_document("tsb-brakes")


@pytest.fixture()
def store(brake_document: EvidenceDocument) -> InMemoryEvidenceStore:
    return InMemoryEvidenceStore(
        [
            brake_document,
            make_document(
                "tsb-trans",
                make="Toyota",
                model="Camry",
                year_min=2018,
                year_max=2018,
                component="Transmission",
                symptom="Hard shifting between gears",
                diagnosis="Transmission fluid degradation",
                remedy="Drain and refill transmission fluid.",
                severity=Severity.MEDIUM,
            ),
            make_document(
                "tsb-whine",
                make="Chevrolet",
                model="Silverado",
                year_min=2014,
                year_max=2018,
                component="Drivetrain",
                symptom="High-pitch whine at speed",
                diagnosis="Differential pinion bearing wear",
                remedy="Replace pinion bearing.",
                severity=Severity.MEDIUM,
            ),
        ]
    )
