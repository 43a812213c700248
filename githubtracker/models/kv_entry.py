"""kv_entries table."""

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from githubtracker.core.database import Base, TimestampMixin


class KeyValueEntry(TimestampMixin, Base):
    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
