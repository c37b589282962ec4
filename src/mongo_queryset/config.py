# src/mongo_queryset/config.py
"""Library-wide defaults."""

# Ceiling applied to every store call that does not carry its own timeout.
DEFAULT_OPERATION_TIMEOUT: float = 15 * 60

MONGO_URI_ENV = "MONGO_QUERYSET_URI"
DEFAULT_MONGO_URI = "mongodb://localhost:27017"
