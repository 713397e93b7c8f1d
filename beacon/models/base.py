"""
Shared SQLAlchemy base for BEACON models.

A single DeclarativeBase so every table lands in one metadata registry,
which ``init_schema`` creates in one pass.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""
