"""
Pharmacy Directory Backend — Pharmacy Service (Business Logic)
===============================================================

What:  Create, list, fetch, merge-update, and soft-delete pharmacy listings.
Why:   Keeps every store interaction and every error translation in one place,
       independent of HTTP concerns.
How:   Receives a per-request AsyncSession, validates documents with the
       shared Pydantic schemas, writes through the ORM, and raises the
       application exception taxonomy.
Who:   Constructed once by the app factory; injected into route handlers.

Error Translation:
    pydantic ValidationError        → ValidationError   (400, per-field details)
    IntegrityError (unique index)   → DuplicateKeyError (400)
    malformed id / unknown id       → NotFoundError     (404)
    any other SQLAlchemyError       → DatabaseError     (500)

Concurrency:
    Writes are single-row and last-write-wins; no version token is checked.
    With UNIQUE_EMAIL on, email uniqueness is a read-before-write check, so
    concurrent writers can still store the same email twice.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import String, asc, column, exists, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pharmacy_directory.exceptions import (
    DatabaseError,
    DuplicateKeyError,
    NotFoundError,
    PharmacyDirectoryError,
    ValidationError,
)
from pharmacy_directory.models.pharmacy import Pharmacy, utcnow
from pharmacy_directory.schemas.pharmacy import (
    MessageResponse,
    PharmacyBase,
    PharmacyCreate,
    PharmacyDocument,
    PharmacyResponse,
    collect_field_errors,
    to_document_keys,
)
from pharmacy_directory.services.identifiers import InvalidPharmacyId, parse_pharmacy_id

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when `exc` was raised by a unique index rather than another constraint."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return code == UNIQUE_VIOLATION
    return "unique" in str(orig).lower()


def substring_pattern(term: str) -> str:
    """LIKE pattern matching `term` literally anywhere in the value."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def service_offered_matches(term: str, dialect_name: str):
    """
    EXISTS clause: some element of services_offered contains `term`.

    Each array element is unnested to text (jsonb_array_elements_text on
    PostgreSQL, json_each on SQLite) and matched on its own.
    """
    if dialect_name == "sqlite":
        unnest = func.json_each(Pharmacy.services_offered)
    else:
        unnest = func.jsonb_array_elements_text(Pharmacy.services_offered)
    elements = unnest.table_valued(column("value", String))
    return exists(
        select(1)
        .select_from(elements)
        .where(elements.c.value.ilike(substring_pattern(term), escape="\\"))
    )


def dialect_of(db: AsyncSession) -> str:
    bind = db.bind
    return bind.dialect.name if bind is not None else "postgresql"


def document_columns(document: PharmacyBase) -> Dict[str, Any]:
    """Map a validated document onto Pharmacy column values."""
    columns: Dict[str, Any] = {
        "name": document.name,
        "address": document.address.model_dump(by_alias=True, exclude_none=True),
        "phone_number": document.phone_number,
        "email": document.email,
        "website": document.website,
        "license_number": document.license_number,
        "services_offered": list(document.services_offered),
        "opening_hours": [hours.model_dump(by_alias=True) for hours in document.opening_hours],
    }
    if isinstance(document, PharmacyDocument):
        columns["is_active"] = document.is_active
    return columns


class PharmacyService:
    """
    Business logic layer for pharmacy listings.

    Responsibilities:
        - create_pharmacy(): insert with defaults applied
        - list_pharmacies(): active listings, optional city/service filters
        - get_pharmacy(): single active listing
        - update_pharmacy(): merge-update with full re-validation
        - delete_pharmacy(): soft delete (is_active = False)

    Args:
        unique_email: Also reject a second listing with an email already on file.
    """

    def __init__(self, unique_email: bool = False):
        self.unique_email = unique_email

    # ── Create ────────────────────────────────────────────────────────────

    async def create_pharmacy(self, db: AsyncSession, data: PharmacyCreate) -> PharmacyResponse:
        """
        Insert a new, active pharmacy.

        Raises:
            DuplicateKeyError: license number (or email, when enforced) taken
            DatabaseError: any other store failure
        """
        try:
            if self.unique_email and data.email:
                await self._ensure_email_available(db, data.email)

            pharmacy = Pharmacy(**document_columns(data))
            db.add(pharmacy)
            await db.flush()
            logger.info("Pharmacy created: %s (license=%s)", pharmacy.id, pharmacy.license_number)
            return PharmacyResponse.model_validate(pharmacy)

        except IntegrityError as e:
            raise self._integrity_error(
                e, "Pharmacy with this license number already exists."
            ) from e
        except PharmacyDirectoryError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error creating pharmacy: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the pharmacy. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

    # ── Read ──────────────────────────────────────────────────────────────

    async def list_pharmacies(
        self,
        db: AsyncSession,
        city: Optional[str] = None,
        service: Optional[str] = None,
    ) -> List[PharmacyResponse]:
        """
        List active pharmacies sorted by name.

        Filters (both case-insensitive, matched as literal substrings):
            city:    against address.city
            service: against any entry of servicesOffered

        Query plan:
            SELECT ... WHERE is_active [AND address->>'city' ILIKE :city]
            [AND EXISTS (SELECT 1 FROM jsonb_array_elements_text(services_offered)
                         WHERE value ILIKE :service)] ORDER BY name
        """
        try:
            query = select(Pharmacy).where(Pharmacy.is_active.is_(True))

            if city:
                query = query.where(
                    Pharmacy.address["city"].as_string().ilike(substring_pattern(city), escape="\\")
                )
            if service:
                query = query.where(service_offered_matches(service, dialect_of(db)))

            query = query.order_by(asc(Pharmacy.name))

            result = await db.execute(query)
            pharmacies = list(result.scalars().all())
            return [PharmacyResponse.model_validate(p) for p in pharmacies]

        except SQLAlchemyError as e:
            logger.error("Database error listing pharmacies: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve pharmacies. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

    async def get_pharmacy(self, db: AsyncSession, pharmacy_id: str) -> PharmacyResponse:
        """
        Fetch one pharmacy by id.

        Inactive (soft-deleted) listings are reported as not found.
        """
        pharmacy = await self._load(db, pharmacy_id)
        if not pharmacy.is_active:
            raise NotFoundError(resource="pharmacy", resource_id=pharmacy_id)
        return PharmacyResponse.model_validate(pharmacy)

    # ── Update ────────────────────────────────────────────────────────────

    async def update_pharmacy(
        self,
        db: AsyncSession,
        pharmacy_id: str,
        payload: Dict[str, Any],
    ) -> PharmacyResponse:
        """
        Merge `payload` over the stored document and persist it.

        Workflow:
            1. Parse id and load the row (active or not) → 404 if absent
            2. Overlay supplied top-level fields on the stored document;
               omitted fields keep their values, nested objects are replaced whole
            3. Re-validate the merged document against the full schema
            4. Write the columns back and flush (unique index checked here)

        Raises:
            NotFoundError, ValidationError, DuplicateKeyError, DatabaseError
        """
        pharmacy = await self._load(db, pharmacy_id)

        current = PharmacyDocument.model_validate(pharmacy).model_dump(by_alias=True)
        merged = {**current, **to_document_keys(payload)}

        try:
            document = PharmacyDocument.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(errors=collect_field_errors(e.errors())) from e

        try:
            if self.unique_email and document.email:
                await self._ensure_email_available(db, document.email, exclude_id=pharmacy.id)

            for column, value in document_columns(document).items():
                setattr(pharmacy, column, value)
            pharmacy.updated_at = utcnow()
            await db.flush()
            logger.info("Pharmacy updated: %s (fields=%s)", pharmacy.id, sorted(payload))
            return PharmacyResponse.model_validate(pharmacy)

        except IntegrityError as e:
            raise self._integrity_error(
                e, "Update failed: duplicate key violation (license number)."
            ) from e
        except PharmacyDirectoryError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error updating pharmacy %s: %s", pharmacy_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the pharmacy. Please try again.",
                context={"pharmacy_id": pharmacy_id},
            ) from e

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete_pharmacy(self, db: AsyncSession, pharmacy_id: str) -> MessageResponse:
        """
        Soft-delete: mark the listing inactive. The row is kept.

        Already-inactive listings are found and stay inactive.
        """
        pharmacy = await self._load(db, pharmacy_id)
        try:
            pharmacy.is_active = False
            pharmacy.updated_at = utcnow()
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting pharmacy %s: %s", pharmacy_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not delete the pharmacy. Please try again.",
                context={"pharmacy_id": pharmacy_id},
            ) from e

        logger.info("Pharmacy marked inactive: %s", pharmacy.id)
        return MessageResponse(msg="Pharmacy marked as inactive")

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _load(self, db: AsyncSession, pharmacy_id: str) -> Pharmacy:
        """Resolve a raw path id to a row, regardless of is_active."""
        parsed = parse_pharmacy_id(pharmacy_id)
        if isinstance(parsed, InvalidPharmacyId):
            raise NotFoundError(
                resource="pharmacy",
                resource_id=parsed.raw,
                message="Pharmacy not found (Invalid ID format)",
            )

        try:
            result = await db.execute(select(Pharmacy).where(Pharmacy.id == parsed.value))
            pharmacy = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching pharmacy %s: %s", pharmacy_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the pharmacy. Please try again.",
                context={"pharmacy_id": pharmacy_id},
            ) from e

        if pharmacy is None:
            raise NotFoundError(resource="pharmacy", resource_id=pharmacy_id)
        return pharmacy

    async def _ensure_email_available(
        self,
        db: AsyncSession,
        email: str,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        """
        Reject `email` if another listing already holds it.

        Check-then-write: there is no unique index on email (the rule is
        optional), so two concurrent writes with the same new email can both
        pass this check. License numbers do not have this gap; their unique
        index is enforced by the store.
        """
        query = select(Pharmacy.id).where(Pharmacy.email == email)
        if exclude_id is not None:
            query = query.where(Pharmacy.id != exclude_id)
        result = await db.execute(query.limit(1))
        if result.scalar_one_or_none() is not None:
            raise DuplicateKeyError(
                message="Pharmacy with this email already exists.",
                field="email",
            )

    @staticmethod
    def _integrity_error(exc: IntegrityError, duplicate_message: str) -> PharmacyDirectoryError:
        if is_unique_violation(exc):
            logger.warning("Unique constraint violated: %s", str(exc.orig))
            return DuplicateKeyError(message=duplicate_message)
        logger.error("Integrity error: %s", str(exc), exc_info=True)
        return DatabaseError(context={"error_type": type(exc).__name__})
