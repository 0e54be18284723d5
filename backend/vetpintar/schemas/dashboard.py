"""
VetPintar Backend — Dashboard Schemas
=======================================

Chart buckets are keyed by `date`: "YYYY-MM-DD" for week/month periods,
"YYYY-MM" for the year period.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_patients: int
    total_appointments: int
    pending_invoices: int
    total_revenue: Decimal


class AppointmentChartPoint(BaseModel):
    date: str
    total: int = 0
    completed: int = 0
    cancelled: int = 0
    pending: int = 0


class RevenueChartPoint(BaseModel):
    date: str
    revenue: Decimal = Decimal("0")


class ActivityItem(BaseModel):
    id: str
    type: str  # appointment | invoice | medical_record
    title: str
    description: Optional[str] = None
    status: Optional[str] = None
    timestamp: datetime
