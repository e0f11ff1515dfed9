"""Schema-driven validation of submitted form fields.

Validation never mutates its input. Each field is normalized (trimmed and,
for codes, upper-cased) and checked against its `FieldSchema`; the form
result collects one error per failing field and the normalized value of
every passing field.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

import structlog

from formguard.core.exceptions import UnknownFormTypeError
from formguard.core.logging import mask_identifier

from .schema import FORM_SCHEMAS, FieldSchema, FieldValidationResult, FormValidationResult

logger = structlog.get_logger(__name__)

MAX_DOCUMENT_ID_LENGTH = 1500


class InputValidator:
    """Validates form submissions against per-form field schemas."""

    def __init__(self, forms: Optional[Mapping[str, Mapping[str, FieldSchema]]] = None):
        self.forms = forms if forms is not None else FORM_SCHEMAS

    def schema_for(self, form_type: str) -> Mapping[str, FieldSchema]:
        """Field schemas of a form type.

        Raises:
            UnknownFormTypeError: If the form type is not configured.
        """
        try:
            return self.forms[form_type]
        except KeyError:
            raise UnknownFormTypeError(form_type) from None

    def validate_field(self, schema: FieldSchema, value: Any) -> FieldValidationResult:
        """Validate one value. The first violated rule determines the error."""
        normalized = "" if value is None else str(value)
        if schema.trim:
            normalized = normalized.strip()
        if schema.uppercase:
            normalized = normalized.upper()

        if not normalized:
            if schema.required:
                return FieldValidationResult.fail(schema.required_message)
            return FieldValidationResult.ok(None)

        if len(normalized) < schema.min_length:
            return FieldValidationResult.fail(schema.min_length_message())

        if schema.max_length is not None and len(normalized) > schema.max_length:
            return FieldValidationResult.fail(schema.max_length_message())

        if schema.pattern is not None and not schema.pattern.fullmatch(normalized):
            return FieldValidationResult.fail(schema.pattern_description or f"{schema.label} is invalid")

        if schema.allowed_values is not None and normalized not in schema.allowed_values:
            return FieldValidationResult.fail(schema.pattern_description or f"{schema.label} is invalid")

        return FieldValidationResult.ok(normalized)

    def validate_form(self, form_type: str, data: Mapping[str, Any]) -> FormValidationResult:
        """Validate every whitelisted field of a form.

        Fields outside the whitelist are ignored here; see
        `check_unexpected_fields`.
        """
        errors: Dict[str, str] = {}
        sanitized: Dict[str, Optional[str]] = {}

        for name, schema in self.schema_for(form_type).items():
            result = self.validate_field(schema, data.get(name))
            if result.valid:
                sanitized[name] = result.value
            else:
                errors[name] = result.error

        if errors:
            logger.info(
                "Form validation failed",
                form_type=form_type,
                invalid_fields=sorted(errors),
            )
        return FormValidationResult(valid=not errors, errors=errors, sanitized=sanitized)

    def check_unexpected_fields(self, data: Mapping[str, Any], form_type: str) -> List[str]:
        """Keys of `data` that the form does not accept.

        The submission is not rejected for them; they are logged and dropped.
        """
        allowed = self.schema_for(form_type)
        unexpected = [key for key in data if key not in allowed]
        if unexpected:
            logger.warning(
                "Unexpected form fields dropped",
                form_type=form_type,
                fields=[mask_identifier(key, visible=12) for key in unexpected],
            )
        return unexpected

    @staticmethod
    def filter_allowed_fields(data: Mapping[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
        """Project `data` onto a whitelist of keys."""
        allowed_keys = set(allowed)
        return {key: value for key, value in data.items() if key in allowed_keys}

    @staticmethod
    def is_valid_document_id(document_id: Any) -> bool:
        """Document ids are 1..1500 characters and never contain a slash."""
        if not isinstance(document_id, str):
            return False
        return 1 <= len(document_id) <= MAX_DOCUMENT_ID_LENGTH and "/" not in document_id


# Global instance for dependency injection
input_validator = InputValidator()
