"""Infrastructure adapters for formguard."""
