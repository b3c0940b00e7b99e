from .schemas import CostEstimate, DiagnosticReport, GeneratedDiagnosis, PartNeeded, PriceRange, RepairStep
from .client import ExpertLLMClient, Generator
from .synthesizer import DiagnosisSynthesizer

__all__ = [
    "CostEstimate",
    "DiagnosticReport",
    "GeneratedDiagnosis",
    "PartNeeded",
    "PriceRange",
    "RepairStep",
    "ExpertLLMClient",
    "Generator",
    "DiagnosisSynthesizer",
]
