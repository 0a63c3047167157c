"""
Pharmacy Directory Backend — Custom Exception Hierarchy
========================================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and middleware; caught by global handlers.

Exception Hierarchy:
    PharmacyDirectoryError (base)
    ├── ValidationError          → 400 Bad Request (field-level details)
    ├── DuplicateKeyError        → 400 Bad Request (unique constraint violated)
    ├── NotFoundError            → 404 Not Found (missing OR malformed id)
    ├── DatabaseError            → 500 Internal Server Error
    └── RateLimitExceededError   → 429 Too Many Requests

    ValidationError and DuplicateKeyError share a status code but are
    separate classes so callers can tell a bad field from a taken license.
"""

from typing import Any, Dict, Optional


class PharmacyDirectoryError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client for 5xx)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PharmacyDirectoryError):
    """
    Raised when a pharmacy document fails schema validation.

    What:    One or more fields are missing, malformed, or out of range.
    HTTP:    400 Bad Request

    `errors` maps a dotted field path to a message, e.g.
        {"address.city": "Field required", "openingHours.0.openTime": "..."}

    Example response:
        {
            "error": "validation_error",
            "message": "Validation Error",
            "details": {"errors": {"email": "is invalid"}},
            "request_id": "a1b2c3d4"
        }
    """

    def __init__(
        self,
        message: str = "Validation Error",
        errors: Optional[Dict[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        self.errors = errors or {}
        ctx["errors"] = self.errors
        super().__init__(message=message, context=ctx)


class DuplicateKeyError(PharmacyDirectoryError):
    """
    Raised when a write would duplicate a value that must be unique.

    What:    The store's unique index rejected the insert/update.
    When:    Creating or updating a pharmacy with a license number (or, when
             UNIQUE_EMAIL is on, an email) that another record already holds.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Pharmacy with this license number already exists.",
        field: Optional[str] = "licenseNumber",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(PharmacyDirectoryError):
    """
    Raised when a requested resource does not exist.

    When:    GET/PUT/DELETE /api/pharmacies/{id} with an unknown id, an id that
             is not a valid UUID, or (for GET) an inactive pharmacy.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DatabaseError(PharmacyDirectoryError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic.
        Detailed error info is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(PharmacyDirectoryError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
