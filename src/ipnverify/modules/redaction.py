"""Redaction helpers for IPN payloads.

IPN messages carry buyer PII (emails, names, postal addresses).  These
helpers keep it out of logs and out of reports mailed to operators.

Strategies:
- Known sensitive IPN fields are masked outright.
- Regex-based redaction of common PII patterns (emails, phones, SSNs,
  card numbers) in every other value.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

# ── PII regex patterns ──────────────────────────────────────
# Ordered: most specific first to avoid partial matches.
_PII_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    # SSN (US): 123-45-6789 or 123456789
    ("SSN", re.compile(r"\b\d{3}[-]?\d{2}[-]?\d{4}\b")),
    # Email addresses
    ("EMAIL", re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE)),
    # US phone numbers: (555) 123-4567, 555-123-4567, 5551234567, +1-555-123-4567
    ("PHONE", re.compile(
        r"(?:\+?1[-.\s]?)?"           # optional country code
        r"(?:\(?\d{3}\)?[-.\s]?)"     # area code
        r"\d{3}[-.\s]?\d{4}\b"
    )),
    # Credit card (basic: 13-19 digit sequences with optional separators)
    ("CC", re.compile(r"\b(?:\d[-\s]?){13,19}\b")),
]

# IPN variables that identify the buyer or the merchant account.
SENSITIVE_FIELDS = frozenset({
    "payer_email",
    "receiver_email",
    "business",
    "first_name",
    "last_name",
    "payer_business_name",
    "address_name",
    "address_street",
    "address_city",
    "address_zip",
    "contact_phone",
})

MASK = "[REDACTED]"


def redact_pii(text: str) -> str:
    """Replace all detected PII patterns with ``[REDACTED-<TYPE>]``.

    Best effort only: catches the common accidental cases before they
    reach a log line or a report.
    """
    result = text
    for label, pattern in _PII_PATTERNS:
        result = pattern.sub(f"[REDACTED-{label}]", result)
    return result


def is_sensitive(key: str) -> bool:
    return key.lower() in SENSITIVE_FIELDS


def redact_fields(fields: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of *fields* safe to show an operator.

    Sensitive IPN variables are replaced by ``[REDACTED]``; every other
    value goes through :func:`redact_pii`.  Key order is preserved.
    """
    out: dict[str, str] = {}
    for key, value in fields.items():
        if is_sensitive(key):
            out[key] = MASK
        else:
            out[key] = redact_pii(str(value))
    return out
