"""
VetPintar Backend — Dashboard Routes
======================================

What:  /api/dashboard — counters and chart data for the clinic home screen.
How:   Scoped to ?clinic_id or the clinic in the token. A caller with no
       clinic at all gets zeros and empty lists instead of an error.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.database import get_db_session
from vetpintar.dependencies import ClinicContext, optional_clinic
from vetpintar.schemas.common import ApiResponse, ErrorResponse, SpeciesCount
from vetpintar.schemas.dashboard import ActivityItem, AppointmentChartPoint, DashboardStats, RevenueChartPoint
from vetpintar.services.dashboard_service import dashboard_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])

_PERIOD_DOC = "week (7 daily buckets), month (daily since the 1st) or year (monthly since Jan 1)"
_BAD_PERIOD = {400: {"description": "Unknown period", "model": ErrorResponse}}


def _clinic_id(ctx: Optional[ClinicContext]):
    return ctx.clinic_id if ctx is not None else None


@router.get("/stats", response_model=ApiResponse[DashboardStats], summary="Headline counters")
async def get_stats(
    ctx: Optional[ClinicContext] = Depends(optional_clinic),
    db: AsyncSession = Depends(get_db_session),
):
    stats = await dashboard_service.get_stats(db, _clinic_id(ctx))
    return ApiResponse(data=DashboardStats(**stats))


@router.get(
    "/appointments-chart",
    response_model=ApiResponse[List[AppointmentChartPoint]],
    responses=_BAD_PERIOD,
)
async def get_appointments_chart(
    period: str = Query(default="week", description=_PERIOD_DOC),
    ctx: Optional[ClinicContext] = Depends(optional_clinic),
    db: AsyncSession = Depends(get_db_session),
):
    points = await dashboard_service.get_appointments_chart(db, _clinic_id(ctx), period)
    return ApiResponse(data=[AppointmentChartPoint(**p) for p in points])


@router.get(
    "/revenue-chart",
    response_model=ApiResponse[List[RevenueChartPoint]],
    responses=_BAD_PERIOD,
)
async def get_revenue_chart(
    period: str = Query(default="month", description=_PERIOD_DOC),
    ctx: Optional[ClinicContext] = Depends(optional_clinic),
    db: AsyncSession = Depends(get_db_session),
):
    points = await dashboard_service.get_revenue_chart(db, _clinic_id(ctx), period)
    return ApiResponse(data=[RevenueChartPoint(**p) for p in points])


@router.get("/species-distribution", response_model=ApiResponse[List[SpeciesCount]])
async def get_species_distribution(
    ctx: Optional[ClinicContext] = Depends(optional_clinic),
    db: AsyncSession = Depends(get_db_session),
):
    rows = await dashboard_service.get_species_distribution(db, _clinic_id(ctx))
    return ApiResponse(data=[SpeciesCount(**r) for r in rows])


@router.get("/recent-activity", response_model=ApiResponse[List[ActivityItem]])
async def get_recent_activity(
    limit: int = Query(default=10, ge=1, le=50),
    ctx: Optional[ClinicContext] = Depends(optional_clinic),
    db: AsyncSession = Depends(get_db_session),
):
    items = await dashboard_service.get_recent_activity(db, _clinic_id(ctx), limit)
    return ApiResponse(data=[ActivityItem(**i) for i in items])
