"""
VetPintar Backend — Shared Pydantic Schemas
=============================================

What:  Response envelopes, error format, pagination metadata and the small
       "summary" shapes embedded in other resources.
How:   Route handlers wrap service results in ApiResponse / PaginatedResponse.
       ORM objects are converted with `model_validate` (from_attributes).
Who:   Every router; the exception handlers in main.py use ErrorResponse.

Envelope format:
    success   → {"success": true, "message": "...", "data": {...}}
    list      → {"success": true, "data": [...],
                 "pagination": {"page", "limit", "total", "total_pages"}}
    error     → {"success": false, "error", "message", "details", "request_id"}
"""

import uuid
from datetime import datetime
from typing import Any, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field

from vetpintar.models.enums import AccessRole, UserRole

T = TypeVar("T")


# ══════════════════════════════════════════════════════════════════════════
# Envelopes
# ══════════════════════════════════════════════════════════════════════════


class PaginationMeta(BaseModel):
    page: int = Field(description="Current page (1-based)")
    limit: int = Field(description="Items per page")
    total: int = Field(description="Total items matching the filters")
    total_pages: int = Field(description="ceil(total / limit); 0 when empty")


class ApiResponse(BaseModel, Generic[T]):
    """Single-resource success envelope."""
    success: bool = True
    message: Optional[str] = None
    data: T


class PaginatedResponse(BaseModel, Generic[T]):
    """List envelope. The same total is also sent in the X-Total-Count header."""
    success: bool = True
    data: List[T]
    pagination: PaginationMeta


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def paginated(page: Any, item_schema: Type[BaseModel]) -> PaginatedResponse:
    """Converts a services.base_service.Page of ORM objects into the list envelope."""
    return PaginatedResponse[item_schema](
        data=[item_schema.model_validate(item) for item in page.items],
        pagination=PaginationMeta(
            page=page.page,
            limit=page.limit,
            total=page.total,
            total_pages=page.total_pages,
        ),
    )


# ══════════════════════════════════════════════════════════════════════════
# Error / Health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error body for every non-2xx response.

    Example:
        {
            "success": false,
            "error": "not_found",
            "message": "Patient not found",
            "details": {"resource": "patient"},
            "request_id": "a1b2c3d4"
        }
    """
    success: bool = False
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="OK or ERROR")
    timestamp: datetime
    uptime_seconds: float = Field(description="Seconds since service started")
    version: str
    database: str = Field(description="connected or disconnected")
    ai_service: str = Field(description="AI proxy circuit state: closed, open, half_open")


# ══════════════════════════════════════════════════════════════════════════
# Embedded summaries
# ══════════════════════════════════════════════════════════════════════════


class UserSummary(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    phone: Optional[str] = None

    model_config = {"from_attributes": True}


class VeterinarianSummary(BaseModel):
    id: uuid.UUID
    name: str
    role: UserRole

    model_config = {"from_attributes": True}


class PatientSummary(BaseModel):
    id: uuid.UUID
    name: str
    species: str
    breed: Optional[str] = None
    owner: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class ClinicSummary(BaseModel):
    id: uuid.UUID
    name: str
    city: Optional[str] = None
    logo_url: Optional[str] = None

    model_config = {"from_attributes": True}


class ClinicAccessSummary(BaseModel):
    """One row of a user's clinic memberships."""
    clinic_id: uuid.UUID
    access_role: AccessRole
    granted_at: datetime
    clinic: ClinicSummary

    model_config = {"from_attributes": True}


class SpeciesCount(BaseModel):
    species: str
    count: int
