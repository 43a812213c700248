"""SQLAlchemy ORM models — one file per table."""

from githubtracker.models.kv_entry import KeyValueEntry

__all__ = ["KeyValueEntry"]
