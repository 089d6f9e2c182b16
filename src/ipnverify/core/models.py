"""IPN domain models — verification status enum and outcome value object."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

class VerificationStatus(str, Enum):
    UNKNOWN = "UNKNOWN"  # no attempt made yet
    NO_DATA = "NO_DATA"
    ERROR = "ERROR"
    VERIFIED = "VERIFIED"
    INVALID = "INVALID"
    TIMEOUT = "TIMEOUT"


@dataclass(frozen=True)
class VerificationOutcome:
    """What the last post back produced."""

    response_status: str = ""
    response: str = ""  # status line + headers + body
    post_uri: str = ""
