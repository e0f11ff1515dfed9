"""Input sanitization for values that will be rendered or stored.

The pipeline neutralizes markup before user text reaches an HTML context:
null bytes are dropped, text is normalized to NFC, script constructs are
stripped, the remaining markup characters are entity-encoded and whitespace
is collapsed. Running it twice yields the same result as running it once.
"""

import re
import unicodedata
from typing import Any, Dict, Iterable, Mapping, Optional

import structlog

logger = structlog.get_logger(__name__)

_MAX_PASSES = 5


class InputSanitizer:
    """Deterministic, idempotent HTML-context sanitizer.

    Pipeline order:
        1. strip null bytes
        2. Unicode NFC normalization
        3. strip script blocks, inline event handlers and `javascript:`
        4. entity-encode ``& < > " ' / ` =`` (existing entities are kept)
        5. collapse whitespace runs and trim
    """

    SCRIPT_PATTERNS = (
        re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL),
        re.compile(r"\s*on\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE),
        re.compile(r"javascript:", re.IGNORECASE),
    )

    ENTITY_MAP = {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#x27;",
        "/": "&#x2F;",
        "`": "&#x60;",
        "=": "&#x3D;",
    }

    # An ampersand that already opens a named or numeric entity is left alone.
    _ESCAPE_PATTERN = re.compile(
        r"&(?!(?:#\d+|#[xX][0-9a-fA-F]+|[a-zA-Z][a-zA-Z0-9]*);)|[<>\"'/`=]"
    )
    _WHITESPACE_PATTERN = re.compile(r"\s+")

    def sanitize(self, value: Any) -> Any:
        """Sanitize a string; other values are returned unchanged."""
        if not isinstance(value, str):
            return value

        current = value
        for _ in range(_MAX_PASSES):
            cleaned = self._single_pass(current)
            if cleaned == current:
                break
            current = cleaned

        if current != value:
            logger.debug(
                "Input sanitized",
                original_length=len(value),
                sanitized_length=len(current),
            )
        return current

    def sanitize_object(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Sanitize every string in a mapping, recursing into nested mappings.

        Lists and other non-string values are copied through untouched.
        """
        result: Dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, Mapping):
                result[key] = self.sanitize_object(value)
            else:
                result[key] = self.sanitize(value)
        return result

    def sanitize_string(self, value: Any, max_length: int = 255) -> str:
        """Trim and truncate a value for storage. None becomes an empty string."""
        if value is None:
            return ""
        return str(value).strip()[:max_length]

    def filter_allowed(self, data: Mapping[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
        """Keep only whitelisted keys."""
        allowed_keys = set(allowed)
        return {key: value for key, value in data.items() if key in allowed_keys}

    def strip_scripts(self, value: str) -> str:
        """Remove script constructs until none remain."""
        previous: Optional[str] = None
        while previous != value:
            previous = value
            for pattern in self.SCRIPT_PATTERNS:
                value = pattern.sub("", value)
        return value

    def escape(self, value: str) -> str:
        return self._ESCAPE_PATTERN.sub(lambda m: self.ENTITY_MAP[m.group(0)], value)

    def _single_pass(self, value: str) -> str:
        value = value.replace("\x00", "")
        value = unicodedata.normalize("NFC", value)
        stripped = self.strip_scripts(value)
        if stripped != value:
            logger.warning(
                "Script content removed from input",
                original_length=len(value),
                removed=len(value) - len(stripped),
            )
        value = self.escape(stripped)
        return self._WHITESPACE_PATTERN.sub(" ", value).strip()


# Global instance for dependency injection
input_sanitizer = InputSanitizer()
