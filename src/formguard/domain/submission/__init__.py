"""Submission protection: debouncing, outcomes and the coordinating service."""

from .coordinator import SecurityCoordinator, SubmissionAttempt, SubmissionState
from .debouncer import ButtonDebouncer, SubmitControl
from .outcomes import Accepted, RateLimited, SubmissionOutcome, ValidationFailed

__all__ = [
    "Accepted",
    "ButtonDebouncer",
    "RateLimited",
    "SecurityCoordinator",
    "SubmissionAttempt",
    "SubmissionOutcome",
    "SubmissionState",
    "SubmitControl",
    "ValidationFailed",
]
