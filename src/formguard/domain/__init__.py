"""Domain layer: rate limiting, validation and submission protection."""
