"""Shared infrastructure: logging, settings, database, key/value stores."""
