"""Outcomes of a protected submission.

Exactly one outcome is produced per attempt. Outcomes are immutable values
handed to the caller and discarded once acted upon.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from formguard.domain.rate_limiting import RateLimitResult, SecurityErrorType


@dataclass(frozen=True)
class RateLimited:
    """The submission was throttled before validation ran."""

    message: str
    error_type: SecurityErrorType
    retry_after: Optional[int] = None

    accepted = False

    @classmethod
    def from_result(cls, result: RateLimitResult) -> RateLimited:
        return cls(
            message=result.message,
            error_type=result.error_type or SecurityErrorType.RATE_LIMITED,
            retry_after=result.retry_after,
        )


@dataclass(frozen=True)
class ValidationFailed:
    """One or more fields failed validation. Maps field name to message."""

    errors: Dict[str, str] = field(default_factory=dict)

    accepted = False

    @property
    def error_type(self) -> SecurityErrorType:
        return SecurityErrorType.VALIDATION_ERROR


@dataclass(frozen=True)
class Accepted:
    """Validated and sanitized data, ready for the caller's own processing."""

    sanitized_data: Dict[str, Any] = field(default_factory=dict)

    accepted = True


SubmissionOutcome = Union[RateLimited, ValidationFailed, Accepted]
