"""
Pharmacy Directory Backend — Pharmacy Identifier Parsing
=========================================================

What:  Turns the raw `{id}` path segment into a tagged result.
Why:   A malformed id must answer 404 exactly like an unknown id. Parsing into
       ValidPharmacyId | InvalidPharmacyId makes that mapping an explicit
       branch in the service instead of a side effect of a failed query.
Who:   PharmacyService (get, update, delete).

Accepted formats are whatever `uuid.UUID` accepts: canonical hyphenated,
32 hex digits, braces, or a `urn:uuid:` prefix.
"""

from dataclasses import dataclass
from typing import Union
from uuid import UUID


@dataclass(frozen=True)
class ValidPharmacyId:
    value: UUID


@dataclass(frozen=True)
class InvalidPharmacyId:
    raw: str


ParsedPharmacyId = Union[ValidPharmacyId, InvalidPharmacyId]


def parse_pharmacy_id(raw: str) -> ParsedPharmacyId:
    """Parse `raw` as a UUID, never raising."""
    try:
        return ValidPharmacyId(UUID(raw.strip()))
    except (ValueError, TypeError, AttributeError):
        return InvalidPharmacyId(str(raw))
