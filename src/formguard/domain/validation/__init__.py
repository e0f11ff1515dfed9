"""Validation and sanitization of submitted form data."""

from .input_sanitizer import InputSanitizer, input_sanitizer
from .input_validator import InputValidator, input_validator
from .schema import (
    FORM_FIELDS,
    FORM_SCHEMAS,
    LOGIN_FORM,
    REGISTRATION_FORM,
    FieldSchema,
    FieldValidationResult,
    FormValidationResult,
)

__all__ = [
    "FORM_FIELDS",
    "FORM_SCHEMAS",
    "LOGIN_FORM",
    "REGISTRATION_FORM",
    "FieldSchema",
    "FieldValidationResult",
    "FormValidationResult",
    "InputSanitizer",
    "InputValidator",
    "input_sanitizer",
    "input_validator",
]
