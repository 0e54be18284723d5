"""
VetPintar Backend — Application Package
========================================

What: Multi-tenant veterinary clinic management API.
Who:  Imported by uvicorn (`vetpintar.main:app`), Alembic, pytest and the seed CLI.

Architecture Note:

    ┌─────────────────────────────────────┐
    │     Routes + Dependencies (API)     │  ← HTTP, auth, clinic access
    ├─────────────────────────────────────┤
    │        Services (Business Logic)    │  ← clinic scoping, soft delete, events
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Every clinic-owned record carries a clinic_id. Services never query
    clinic data without it; routes resolve it through the clinic access
    dependency before calling a service.
"""

__version__ = "1.0.0"
