"""
Pharmacy Directory Backend — Pharmacy Route Handlers
=====================================================

What:  The five CRUD endpoints under /api/pharmacies.
Why:   HTTP entry point for managing directory listings.
How:   Extracts path/query/body data, delegates to PharmacyService, returns JSON.
       Errors are raised as application exceptions and rendered by the
       global handlers registered in main.py.

Endpoints:
    POST   /api/pharmacies          → 201 created record
    GET    /api/pharmacies          → 200 active records sorted by name
    GET    /api/pharmacies/{id}     → 200 record | 404
    PUT    /api/pharmacies/{id}     → 200 updated record | 400 | 404
    DELETE /api/pharmacies/{id}     → 200 {"msg": ...} | 404

The collection routes answer on both `/api/pharmacies` and `/api/pharmacies/`.
`{id}` is taken as a plain string so a malformed id reaches the service and
comes back as 404 instead of FastAPI's 422.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pharmacy_directory.database import get_db_session
from pharmacy_directory.schemas.pharmacy import (
    ErrorResponse,
    MessageResponse,
    PharmacyCreate,
    PharmacyResponse,
)
from pharmacy_directory.services.pharmacy_service import PharmacyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pharmacies", tags=["Pharmacies"])


def get_pharmacy_service(request: Request) -> PharmacyService:
    """Dependency: the service instance built by the app factory."""
    return request.app.state.pharmacy_service


@router.post(
    "",
    status_code=201,
    response_model=PharmacyResponse,
    responses={
        201: {"description": "Pharmacy created", "model": PharmacyResponse},
        400: {"description": "Duplicate license number or validation error", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Create a pharmacy",
)
@router.post("/", status_code=201, response_model=PharmacyResponse, include_in_schema=False)
async def create_pharmacy(
    payload: PharmacyCreate,
    db: AsyncSession = Depends(get_db_session),
    service: PharmacyService = Depends(get_pharmacy_service),
) -> PharmacyResponse:
    """
    Create a new pharmacy listing.

    New listings are always active; `isActive` in the body is ignored.
    """
    return await service.create_pharmacy(db=db, data=payload)


@router.get(
    "",
    response_model=List[PharmacyResponse],
    responses={
        200: {"description": "Active pharmacies sorted by name"},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="List active pharmacies",
    description=(
        "Returns every active pharmacy, sorted by name. Optional filters match "
        "case-insensitive substrings of the address city and of any offered service. "
        "Results are not paginated."
    ),
)
@router.get("/", response_model=List[PharmacyResponse], include_in_schema=False)
async def list_pharmacies(
    response: Response,
    city: Optional[str] = Query(default=None, description="Substring of address.city"),
    service_name: Optional[str] = Query(
        default=None,
        alias="service",
        description="Substring of any entry in servicesOffered",
    ),
    db: AsyncSession = Depends(get_db_session),
    service: PharmacyService = Depends(get_pharmacy_service),
) -> List[PharmacyResponse]:
    # TODO: add ?limit=&skip= once clients can page through results
    pharmacies = await service.list_pharmacies(db=db, city=city, service=service_name)
    response.headers["X-Total-Count"] = str(len(pharmacies))
    return pharmacies


@router.get(
    "/{pharmacy_id}",
    response_model=PharmacyResponse,
    responses={
        404: {"description": "Pharmacy not found, inactive, or malformed id", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Get a pharmacy by ID",
)
async def get_pharmacy(
    pharmacy_id: str,
    db: AsyncSession = Depends(get_db_session),
    service: PharmacyService = Depends(get_pharmacy_service),
) -> PharmacyResponse:
    return await service.get_pharmacy(db=db, pharmacy_id=pharmacy_id)


@router.put(
    "/{pharmacy_id}",
    response_model=PharmacyResponse,
    responses={
        400: {"description": "Duplicate license number or validation error", "model": ErrorResponse},
        404: {"description": "Pharmacy not found or malformed id", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Update a pharmacy",
    description=(
        "Merges the supplied fields over the stored listing. Fields left out of the "
        "body keep their current values; the merged listing is re-validated before it "
        "is saved. Inactive listings can be updated (and reactivated with isActive)."
    ),
)
async def update_pharmacy(
    pharmacy_id: str,
    payload: Dict[str, Any] = Body(..., description="Partial or full pharmacy fields"),
    db: AsyncSession = Depends(get_db_session),
    service: PharmacyService = Depends(get_pharmacy_service),
) -> PharmacyResponse:
    return await service.update_pharmacy(db=db, pharmacy_id=pharmacy_id, payload=payload)


@router.delete(
    "/{pharmacy_id}",
    response_model=MessageResponse,
    responses={
        404: {"description": "Pharmacy not found or malformed id", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Soft-delete a pharmacy",
    description="Marks the listing inactive. The record is kept in storage.",
)
async def delete_pharmacy(
    pharmacy_id: str,
    db: AsyncSession = Depends(get_db_session),
    service: PharmacyService = Depends(get_pharmacy_service),
) -> MessageResponse:
    return await service.delete_pharmacy(db=db, pharmacy_id=pharmacy_id)
