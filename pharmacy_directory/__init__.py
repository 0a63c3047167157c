"""
Pharmacy Directory Backend — Application Package Initializer
=============================================================

What: Marks the `pharmacy_directory` directory as a Python package.
Why:  Enables module imports like `from pharmacy_directory.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend is a thin layered CRUD service:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Merge, soft delete, error mapping
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes receive the service and a session through FastAPI dependencies;
    nothing is registered against a global store at import time.
"""

__version__ = "1.0.0"
