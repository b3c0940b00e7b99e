"""autodiag -- retrieval-augmented vehicle diagnosis engine.

Turns a symptom description, vehicle metadata and an optional audio
classification into a structured, cited diagnostic report.  Retrieval runs
against a store of pre-embedded service bulletins; synthesis calls a
generative model and falls back to a deterministic, evidence-derived report
when the model output cannot be trusted.
"""

__version__ = "0.1.0"
