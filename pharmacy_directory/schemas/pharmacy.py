"""
Pharmacy Directory Backend — Pydantic Request/Response Schemas
===============================================================

What:  The one shared definition of a pharmacy document and its embedded values.
Why:   Field-level validation, defaults, and (camelCase) serialization live in
       a single place used by routes, the service, and tests.
How:   FastAPI validates request bodies against these models; the service
       re-validates merged documents on update; responses are serialized
       by alias so the wire format is camelCase.

Validation Rules:
    - Required, non-empty (after trimming): name, address.street/city/state/zipCode,
      phoneNumber, licenseNumber
    - email: optional, lowercased, must look like text@text.text
    - openTime / closeTime: HH:MM, 24-hour
    - dayOfWeek: 0 (Sunday) .. 6 (Saturday)
    - Defaults: address.country = "USA", isActive = true

    closeTime is not compared with openTime;
    overnight hours are legal listings.
"""

import re
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

# HH:MM, 00:00 through 23:59
TIME_PATTERN = r"^([01]\d|2[0-3]):([0-5]\d)$"

# something@something.something, no whitespace
EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


class DocumentModel(BaseModel):
    """Common config: camelCase aliases, snake_case accepted, strings trimmed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        from_attributes=True,
    )


# ══════════════════════════════════════════════════════════════════════════
# Embedded Values (no identity of their own)
# ══════════════════════════════════════════════════════════════════════════


class Coordinates(DocumentModel):
    """Optional map position of a pharmacy."""
    latitude: Optional[float] = Field(default=None, description="Latitude in decimal degrees")
    longitude: Optional[float] = Field(default=None, description="Longitude in decimal degrees")


class Address(DocumentModel):
    street: str = Field(min_length=1, description="Street address")
    city: str = Field(min_length=1, description="City (used by the ?city= filter)")
    state: str = Field(min_length=1, description="State or province")
    zip_code: str = Field(min_length=1, description="Postal code")
    country: str = Field(default="USA", min_length=1, description="Country, defaults to USA")
    coordinates: Optional[Coordinates] = Field(default=None)


class OpeningHours(DocumentModel):
    """Hours for one day of the week."""
    day_of_week: int = Field(ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    open_time: str = Field(pattern=TIME_PATTERN, description="Opening time, HH:MM (24h)")
    close_time: str = Field(pattern=TIME_PATTERN, description="Closing time, HH:MM (24h)")


# ══════════════════════════════════════════════════════════════════════════
# Pharmacy Documents
# ══════════════════════════════════════════════════════════════════════════


class PharmacyBase(DocumentModel):
    """Fields a client may supply for a pharmacy."""
    name: str = Field(min_length=1, description="Pharmacy name")
    address: Address
    phone_number: str = Field(min_length=1, description="Contact phone number")
    email: Optional[str] = Field(default=None, description="Contact email (stored lowercase)")
    website: Optional[str] = Field(default=None)
    license_number: str = Field(min_length=1, description="Pharmacy license number (unique)")
    services_offered: List[str] = Field(
        default_factory=list,
        description="Free-text services, e.g. 'Prescriptions', 'Vaccinations'",
    )
    opening_hours: List[OpeningHours] = Field(default_factory=list)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if not v:
                return None
            if not EMAIL_PATTERN.search(v):
                raise PydanticCustomError("email_invalid", "is invalid")
        return v

    @field_validator("services_offered", "opening_hours", mode="before")
    @classmethod
    def null_list_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class PharmacyCreate(PharmacyBase):
    """
    Body of POST /api/pharmacies.

    isActive is not accepted here; new listings always start active.
    """


class PharmacyDocument(PharmacyBase):
    """
    The full writable document, including the soft-delete flag.

    Used to re-validate the merged result of a partial update.
    """
    is_active: bool = Field(default=True, description="False once soft-deleted")


class PharmacyResponse(PharmacyDocument):
    """A stored pharmacy as returned by the API."""
    id: uuid.UUID = Field(description="Unique pharmacy identifier (UUID)")
    created_at: datetime = Field(description="When the listing was created (UTC)")
    updated_at: datetime = Field(description="When the listing was last written (UTC)")


# Server-managed keys silently dropped from update payloads
READ_ONLY_FIELDS = frozenset({"id", "_id", "createdAt", "created_at", "updatedAt", "updated_at"})


def to_document_keys(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rename snake_case keys to their camelCase aliases and drop read-only keys.

    Merging by alias keeps a snake_case key in the payload from being shadowed
    by the stored camelCase value of the same field.
    """
    fields = PharmacyDocument.model_fields
    normalized: Dict[str, Any] = {}
    for key, value in payload.items():
        if key in READ_ONLY_FIELDS:
            continue
        field = fields.get(key)
        normalized[field.alias if field and field.alias else key] = value
    return normalized


def collect_field_errors(
    errors: Iterable[Dict[str, Any]],
    strip_prefix: Optional[str] = None,
) -> Dict[str, str]:
    """
    Flatten pydantic error dicts into {dotted.field.path: message}.

    strip_prefix drops a leading location segment such as FastAPI's "body".
    When several errors hit the same field, the first one wins.
    """
    flattened: Dict[str, str] = {}
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if strip_prefix and loc and loc[0] == strip_prefix and len(loc) > 1:
            loc = loc[1:]
        path = ".".join(loc) or "__root__"
        flattened.setdefault(path, error.get("msg", "Invalid value"))
    return flattened


# ══════════════════════════════════════════════════════════════════════════
# Auxiliary Response Models
# ══════════════════════════════════════════════════════════════════════════


class MessageResponse(BaseModel):
    """Confirmation returned by DELETE /api/pharmacies/{id}."""
    msg: str = Field(description="Human-readable confirmation")


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (e.g., "validation_error", "not_found")
        message: Human-readable description for display to users
        details: Optional extra context (e.g., per-field validation errors)
        request_id: Correlation ID for tracing this error in server logs
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and database status."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
