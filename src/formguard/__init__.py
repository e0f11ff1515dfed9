"""formguard: protection for public form submissions.

Rate limiting, debouncing, validation and sanitization applied before a
submission reaches the backend.
"""

__version__ = "0.1.0"
