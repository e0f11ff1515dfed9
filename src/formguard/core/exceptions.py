from __future__ import annotations

"""Structured exception hierarchy for formguard.

Every exception carries a machine-readable `code` for programmatic handling
and a human-readable `message` for logging. Rejections that are part of the
normal submission flow (cooldown, rate limiting, invalid fields) are returned
as values by the services and never raised; the classes below cover misuse
and infrastructure failures.
"""

from typing import Final

__all__: Final = [
    "FormGuardError",
    "ConfigurationError",
    "PersistenceUnavailableError",
    "ValidationError",
    "UnknownFormTypeError",
    "InvalidStateTransitionError",
]


class FormGuardError(Exception):
    """Base exception class for all custom errors in formguard.

    Attributes:
        message (str): A human-readable error message, suitable for logging.
        code (str): A unique, machine-readable error code.
    """

    message: str
    code: str = "generic_error"

    def __init__(self, message: str, code: str = "generic_error"):
        self.message = message
        self.code = code
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return self.message


class ConfigurationError(FormGuardError):
    """Raised when settings cannot be turned into a working configuration."""

    def __init__(self, message: str, code: str = "configuration_error"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Persistence errors (never surfaced to the user)
# ---------------------------------------------------------------------------


class PersistenceUnavailableError(FormGuardError):
    """Raised when the key-value store cannot be read or written.

    Stores wrap this error in a failed `StorageResult` instead of raising it,
    so limiters can fall back to in-memory state. `StorageResult.unwrap()`
    re-raises it for callers that prefer exceptions.
    """

    def __init__(
        self,
        message: str = "Key-value storage is unavailable",
        code: str = "persistence_unavailable",
    ):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------


class ValidationError(FormGuardError):
    """Raised for validation misuse (not for invalid user input)."""

    def __init__(self, message: str, code: str = "validation_error"):
        super().__init__(message, code)


class UnknownFormTypeError(ValidationError):
    """Raised when a form type has no field whitelist."""

    def __init__(self, form_type: str, code: str = "unknown_form_type"):
        self.form_type = form_type
        super().__init__(f"Unknown form type: {form_type!r}", code)


# ---------------------------------------------------------------------------
# Submission state machine
# ---------------------------------------------------------------------------


class InvalidStateTransitionError(FormGuardError):
    """Raised when a submission attempt moves between incompatible states."""

    def __init__(self, current: str, target: str, code: str = "invalid_state_transition"):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move submission from {current} to {target}", code)
