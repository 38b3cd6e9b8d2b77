"""Core infrastructure: configuration, database, errors, locking and observability."""
