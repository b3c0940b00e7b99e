"""Validation logic for generated diagnosis output."""

from __future__ import annotations

import json
import re
from typing import Iterable, Optional

import structlog
from pydantic import ValidationError

from autodiag.errors import ReportValidationError
from autodiag.expert.schemas import GeneratedDiagnosis

logger = structlog.get_logger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def extract_json_object(raw_text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` block in *raw_text*.

    Braces inside JSON string literals are ignored.  Returns ``None`` when
    no complete object is present.
    """
    start = raw_text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(raw_text)):
        ch = raw_text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return raw_text[start:i + 1]
    return None


def validate_llm_output(
    raw_text: str,
    allowed_evidence_ids: Iterable[str],
) -> GeneratedDiagnosis:
    """
    Parse and validate the raw text response from the model.

    Handles:
    - Markdown code block stripping and surrounding prose
    - JSON parsing
    - Pydantic schema validation (hard rules)
    - Citation filtering: ids outside *allowed_evidence_ids* are dropped

    Raises:
        ReportValidationError: If any hard rule fails.
    """
    clean_text = (raw_text or "").strip()

    match = _CODE_FENCE.search(clean_text)
    if match:
        clean_text = match.group(1)

    block = extract_json_object(clean_text)
    if block is None:
        raise ReportValidationError("no JSON object in model output")

    try:
        data = json.loads(block)
    except json.JSONDecodeError as e:
        raise ReportValidationError("invalid JSON in model output", {"cause": str(e)}) from e

    try:
        diagnosis = GeneratedDiagnosis.model_validate(data)
    except ValidationError as e:
        # Locations only: input values may restate the symptom text
        raise ReportValidationError(
            "model output failed schema validation",
            {
                "errors": e.error_count(),
                "fields": [
                    ".".join(str(part) for part in err["loc"])
                    for err in e.errors(include_input=False)
                ],
            },
        ) from e

    allowed = set(allowed_evidence_ids)
    kept = [i for i in diagnosis.cited_evidence_ids if i in allowed]
    if len(kept) != len(diagnosis.cited_evidence_ids):
        logger.warning(
            "validate.unknown_citations_stripped",
            stripped=[i for i in diagnosis.cited_evidence_ids if i not in allowed],
        )
        diagnosis = diagnosis.model_copy(update={"cited_evidence_ids": kept})
    return diagnosis
