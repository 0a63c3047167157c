"""
Pharmacy Directory Backend — Pharmacy SQLAlchemy Model
=======================================================

What:  ORM model representing the `pharmacies` table.
Why:   Maps Python objects to database rows for type-safe database operations.
How:   Inherits from DeclarativeBase; Alembic reads this for migrations.
Who:   Used by PharmacyService for CRUD operations and by Alembic.

Table Design Rationale:
    - UUID primary key generated in Python, so the id is known after flush
      without a round trip
    - address / services_offered / opening_hours: embedded values with no
      identity of their own, stored as JSON (JSONB on PostgreSQL)
    - license_number: the natural business key, unique index
    - is_active: soft-delete flag; rows are never removed
    - created_at / updated_at: maintained on every write

    All defaults are Python-side so that flushed objects are fully populated;
    an async session cannot lazy-load server-generated values.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Text, TypeDecorator, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_directory.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
DocumentJSON = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    timestamptz that always reads back timezone-aware.

    SQLite has no timezone storage and returns naive values; those are UTC
    because every write goes through utcnow().
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Pharmacy(Base):
    """
    Represents one pharmacy listing.

    Lifecycle:
        1. Created active by POST /api/pharmacies
        2. Mutated by PUT (merge-update) at any time, active or not
        3. Soft-deleted by DELETE (is_active = False); the row stays

    Query Patterns:
        - List active, filtered: WHERE is_active ORDER BY name
          → Uses idx_pharmacies_is_active and idx_pharmacies_name
        - Get single: WHERE id = :uuid → primary key
        - Uniqueness: license_number unique index rejects duplicates
    """

    __tablename__ = "pharmacies"

    # ── Identity ──────────────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Embedded Address ──────────────────────────────────────────────────
    # {street, city, state, zipCode, country, coordinates?: {latitude, longitude}}
    address: Mapped[Dict[str, Any]] = mapped_column(DocumentJSON, nullable=False)

    # ── Contact ───────────────────────────────────────────────────────────
    phone_number: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default=None)
    website: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)

    # ── Business Key ──────────────────────────────────────────────────────
    license_number: Mapped[str] = mapped_column(String(100), nullable=False)

    # ── Services & Hours ──────────────────────────────────────────────────
    services_offered: Mapped[List[str]] = mapped_column(
        DocumentJSON, nullable=False, default=list,
    )
    # [{dayOfWeek, openTime, closeTime}, ...]
    opening_hours: Mapped[List[Dict[str, Any]]] = mapped_column(
        DocumentJSON, nullable=False, default=list,
    )

    # ── Soft Delete ───────────────────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        Index("uq_pharmacies_license_number", "license_number", unique=True),
        Index("idx_pharmacies_name", "name"),
        Index("idx_pharmacies_is_active", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<Pharmacy(id={self.id}, license_number='{self.license_number}', "
            f"is_active={self.is_active})>"
        )
