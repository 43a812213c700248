"""Data-access objects backed by SQLAlchemy."""
