"""PII redaction for free-text symptom descriptions.

Symptom text is written by vehicle owners and regularly carries contact
details or the VIN.  It is redacted before it is embedded or sent to the
generative model.
"""

import re
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class RedactionResult:
    """Result of a PII redaction operation."""
    text: str
    total_count: int
    email_count: int
    phone_count: int
    vin_count: int
    name_count: int
    address_count: int


class PIIRedactor:
    """Handles PII detection and redaction."""

    EMAIL_PATTERN = r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"

    # ISO 3779 VIN: 17 chars, no I/O/Q, at least one digit
    VIN_PATTERN = r"\b(?=[A-HJ-NPR-Z0-9]*\d)[A-HJ-NPR-Z0-9]{17}\b"

    # Matches 10-digit (555-555-5555) or 7-digit with separator (555-5555)
    PHONE_PATTERN = r"\b(?:\(?\d{3}\)?[-.\s]?)?\d{3}[-.\s]\d{4}\b"

    # House number, Title-Case street name, unambiguous suffix.  Drive, Way,
    # Place and Court are left out: "shifting into Drive" is a symptom.
    ADDRESS_PATTERN = (
        r"\b\d{1,6}\s+(?:[A-Z][a-z]+\s+){1,4}"
        r"(?:St(?:reet)?|Rd|Road|Ave(?:nue)?|Blvd|Boulevard|Ln|Lane)\b"
    )

    # Capitalized name pair preceded by an indicator word.  Only the
    # indicator is case-insensitive; "driver side door" must survive.
    NAME_PATTERN = (
        r"(?:(?i:driver|owner|customer|technician|mechanic"
        r"|contact|Mr\.|Mrs\.|Ms\.)\s+)"
        r"([A-Z][a-z]{1,20}\s+[A-Z][a-z]{1,20})"
    )

    # Max characters kept per text field (ReDoS and context overflow guard)
    MAX_TEXT_LENGTH = 10000

    @staticmethod
    def redact_text(text: str) -> str:
        """Redact PII from a string. Returns only the redacted text."""
        return PIIRedactor.redact_text_with_stats(text).text

    @staticmethod
    def redact_text_with_stats(text: str) -> RedactionResult:
        """Redact PII from a string and return stats on what was redacted."""
        if not text:
            return RedactionResult(
                text="", total_count=0, email_count=0, phone_count=0,
                vin_count=0, name_count=0, address_count=0,
            )

        if len(text) > PIIRedactor.MAX_TEXT_LENGTH:
            text = text[:PIIRedactor.MAX_TEXT_LENGTH] + " ... [TRUNCATED_DUE_TO_SIZE]"

        text, email_count = re.subn(
            PIIRedactor.EMAIL_PATTERN, "[EMAIL_REDACTED]", text
        )

        # VINs before phones -- a VIN's digit runs could match the phone pattern
        text, vin_count = re.subn(
            PIIRedactor.VIN_PATTERN, "[VIN_REDACTED]", text
        )

        text, phone_count = re.subn(
            PIIRedactor.PHONE_PATTERN, "[PHONE_REDACTED]", text
        )

        text, address_count = re.subn(
            PIIRedactor.ADDRESS_PATTERN, "[ADDRESS_REDACTED]", text
        )

        # Replace only the name part, keep the indicator word
        text, name_count = re.subn(
            PIIRedactor.NAME_PATTERN,
            lambda m: m.group(0).replace(m.group(1), "[NAME_REDACTED]"),
            text,
        )

        total = email_count + vin_count + phone_count + address_count + name_count

        # Counts only, never raw PII
        if total > 0:
            logger.info(
                "pii_redaction_applied",
                total_redacted=total,
                email_count=email_count,
                vin_count=vin_count,
                phone_count=phone_count,
                address_count=address_count,
                name_count=name_count,
            )

        return RedactionResult(
            text=text,
            total_count=total,
            email_count=email_count,
            phone_count=phone_count,
            vin_count=vin_count,
            name_count=name_count,
            address_count=address_count,
        )
