"""
Form Field Schemas

Declarative rules for every field accepted by the public forms. The schemas
are data only; `InputValidator` interprets them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Mapping, Optional, Pattern

REGISTRATION_FORM = "registration"
LOGIN_FORM = "login"


@dataclass(frozen=True)
class FieldSchema:
    """
    Validation rules for a single field.

    Business Rules:
    - Checks run in order: required/empty, min length, max length,
      pattern, allowed values; the first failure wins
    - `sanitize=False` marks credentials, which are never trimmed by the
      sanitizer nor HTML-encoded
    """

    label: str
    min_length: int = 0
    max_length: Optional[int] = None
    pattern: Optional[Pattern[str]] = None
    pattern_description: Optional[str] = None
    allowed_values: Optional[FrozenSet[str]] = None
    required: bool = True
    trim: bool = True
    uppercase: bool = False
    sanitize: bool = True
    too_short_message: Optional[str] = None
    too_long_message: Optional[str] = None

    @property
    def required_message(self) -> str:
        return f"{self.label} is required"

    def min_length_message(self) -> str:
        return self.too_short_message or f"{self.label} must be at least {self.min_length} characters"

    def max_length_message(self) -> str:
        return self.too_long_message or f"{self.label} must be less than {self.max_length} characters"


@dataclass(frozen=True)
class FieldValidationResult:
    """Outcome of validating one field. `value` is the normalized input."""

    valid: bool
    value: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: Optional[str]) -> FieldValidationResult:
        return cls(valid=True, value=value)

    @classmethod
    def fail(cls, error: str) -> FieldValidationResult:
        return cls(valid=False, error=error)


@dataclass(frozen=True)
class FormValidationResult:
    """Aggregate outcome of a form. Only valid fields appear in `sanitized`."""

    valid: bool
    errors: Dict[str, str] = field(default_factory=dict)
    sanitized: Dict[str, Optional[str]] = field(default_factory=dict)


DEPARTMENTS = frozenset(
    {"ISE", "CSE", "AIML", "AI&DS", "ECE", "EEE", "CV", "ME", "Mechatronics", "Other"}
)

EMAIL = FieldSchema(
    label="Email",
    min_length=5,
    max_length=100,
    pattern=re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+"),
    pattern_description="Must be a valid email address",
)

TEAM_NAME = FieldSchema(
    label="Team name",
    min_length=2,
    max_length=50,
    pattern=re.compile(r"[A-Za-z0-9 ]+"),
    pattern_description="Only letters, numbers, and spaces allowed",
)

MEMBER_NAME = FieldSchema(
    label="Name",
    min_length=2,
    max_length=50,
    pattern=re.compile(r"[A-Za-z ]+"),
    pattern_description="Only letters and spaces allowed",
)

USN = FieldSchema(
    label="USN",
    min_length=10,
    max_length=15,
    pattern=re.compile(r"1[A-Z]{2}[0-9]{2}[A-Z]{2}[0-9]{3}"),
    pattern_description="Format: 1XX00XX000 (e.g., 1CR23CS001)",
    uppercase=True,
    too_short_message="USN must be between 10-15 characters",
    too_long_message="USN must be between 10-15 characters",
)

DEPARTMENT = FieldSchema(
    label="Department",
    allowed_values=DEPARTMENTS,
    pattern_description="Invalid department selection",
)

PASSWORD = FieldSchema(
    label="Password",
    min_length=8,
    max_length=128,
    trim=False,
    sanitize=False,
    too_long_message="Password is too long",
)


def _optional(schema: FieldSchema) -> FieldSchema:
    return replace(schema, required=False)


def _member_fields(index: int, required: bool) -> Dict[str, FieldSchema]:
    def pick(schema: FieldSchema) -> FieldSchema:
        return schema if required else _optional(schema)

    return {
        f"member{index}_name": pick(MEMBER_NAME),
        f"member{index}_usn": pick(USN),
        f"member{index}_dept": pick(DEPARTMENT),
    }


FORM_SCHEMAS: Mapping[str, Mapping[str, FieldSchema]] = {
    REGISTRATION_FORM: {
        "team_email": EMAIL,
        "team_name": TEAM_NAME,
        **_member_fields(1, required=True),
        **_member_fields(2, required=False),
        **_member_fields(3, required=False),
    },
    LOGIN_FORM: {
        "username": EMAIL,
        "password": PASSWORD,
    },
}

# Whitelist of accepted keys per form type
FORM_FIELDS: Mapping[str, FrozenSet[str]] = {
    form_type: frozenset(fields) for form_type, fields in FORM_SCHEMAS.items()
}
