"""SQLAlchemy declarative base for the privacy service tables.

Plain ``datetime`` annotations map to timezone-aware columns, so every
timestamp round-trips as an aware UTC value.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    type_annotation_map = {datetime: DateTime(timezone=True)}
