"""
VetPintar Backend — Dashboard Service
=======================================

What:  Read-only aggregates for the clinic dashboard: headline counters,
       appointment and revenue charts, species mix and an activity feed.
Who:   routes/dashboard.py.

Periods:
    week   → last 7 days (today included), one bucket per day  "YYYY-MM-DD"
    month  → 1st of this month .. today, one bucket per day    "YYYY-MM-DD"
    year   → Jan 1 .. today, one bucket per month              "YYYY-MM"

Buckets are pre-filled so empty days still appear in the chart. Rows are
grouped in Python, which keeps the queries identical on every database.
"""

import logging
import uuid
from collections import OrderedDict
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.exceptions import ValidationError
from vetpintar.models.appointment import Appointment
from vetpintar.models.enums import AppointmentStatus, InvoiceStatus
from vetpintar.models.invoice import Invoice
from vetpintar.models.medical_record import MedicalRecord
from vetpintar.models.mixins import utcnow
from vetpintar.models.patient import Patient
from vetpintar.services.base_service import wrap_unexpected
from vetpintar.services.billing import ZERO, to_money

logger = logging.getLogger(__name__)

PERIODS = ("week", "month", "year")
PENDING_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)
CANCELLED_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)


def period_buckets(period: str, today: date) -> Tuple[date, List[str]]:
    """Returns (first day of the period, ordered bucket keys)."""
    if period == "week":
        start = today - timedelta(days=6)
    elif period == "month":
        start = today.replace(day=1)
    elif period == "year":
        start = today.replace(month=1, day=1)
        return start, [f"{today.year}-{m:02d}" for m in range(1, today.month + 1)]
    else:
        raise ValidationError("Period must be one of: week, month, year", field="period")

    days = (today - start).days + 1
    return start, [(start + timedelta(days=i)).isoformat() for i in range(days)]


def bucket_key(period: str, day: date) -> str:
    return f"{day:%Y-%m}" if period == "year" else day.isoformat()


class DashboardService:

    async def get_stats(self, db: AsyncSession, clinic_id: Optional[uuid.UUID]) -> Dict[str, Any]:
        if clinic_id is None:
            return {"total_patients": 0, "total_appointments": 0, "pending_invoices": 0, "total_revenue": ZERO}
        try:
            month_start = utcnow().date().replace(day=1)

            total_patients = (await db.execute(
                select(func.count(Patient.id)).where(
                    Patient.clinic_id == clinic_id, Patient.is_active.is_(True)
                )
            )).scalar() or 0
            total_appointments = (await db.execute(
                select(func.count(Appointment.id)).where(
                    Appointment.clinic_id == clinic_id,
                    Appointment.appointment_date >= month_start,
                )
            )).scalar() or 0
            pending_invoices = (await db.execute(
                select(func.count(Invoice.id)).where(
                    Invoice.clinic_id == clinic_id, Invoice.status == InvoiceStatus.SENT
                )
            )).scalar() or 0
            total_revenue = (await db.execute(
                select(func.coalesce(func.sum(Invoice.total_amount), 0)).where(
                    Invoice.clinic_id == clinic_id,
                    Invoice.status == InvoiceStatus.PAID,
                    Invoice.issue_date >= month_start,
                )
            )).scalar()

            return {
                "total_patients": total_patients,
                "total_appointments": total_appointments,
                "pending_invoices": pending_invoices,
                "total_revenue": to_money(total_revenue),
            }
        except Exception as e:
            wrap_unexpected(e, "compute dashboard statistics", clinic_id=clinic_id)

    async def get_appointments_chart(
        self, db: AsyncSession, clinic_id: Optional[uuid.UUID], period: str = "week"
    ) -> List[Dict[str, Any]]:
        start, keys = period_buckets(period, utcnow().date())
        if clinic_id is None:
            return []
        try:
            buckets = OrderedDict(
                (k, {"date": k, "total": 0, "completed": 0, "cancelled": 0, "pending": 0}) for k in keys
            )
            rows = await db.execute(
                select(Appointment.appointment_date, Appointment.status).where(
                    Appointment.clinic_id == clinic_id,
                    Appointment.appointment_date >= start,
                )
            )
            for appointment_date, status in rows.all():
                bucket = buckets.get(bucket_key(period, appointment_date))
                if bucket is None:
                    continue
                bucket["total"] += 1
                if status == AppointmentStatus.COMPLETED:
                    bucket["completed"] += 1
                elif status in CANCELLED_STATUSES:
                    bucket["cancelled"] += 1
                elif status in PENDING_STATUSES:
                    bucket["pending"] += 1
            return list(buckets.values())
        except Exception as e:
            wrap_unexpected(e, "build appointments chart", clinic_id=clinic_id)

    async def get_revenue_chart(
        self, db: AsyncSession, clinic_id: Optional[uuid.UUID], period: str = "month"
    ) -> List[Dict[str, Any]]:
        start, keys = period_buckets(period, utcnow().date())
        if clinic_id is None:
            return []
        try:
            revenue = OrderedDict((k, ZERO) for k in keys)
            rows = await db.execute(
                select(Invoice.issue_date, Invoice.total_amount).where(
                    Invoice.clinic_id == clinic_id,
                    Invoice.status == InvoiceStatus.PAID,
                    Invoice.issue_date >= start,
                )
            )
            for issue_date, amount in rows.all():
                key = bucket_key(period, issue_date)
                if key in revenue:
                    revenue[key] = to_money(revenue[key] + to_money(amount))
            return [{"date": k, "revenue": v} for k, v in revenue.items()]
        except Exception as e:
            wrap_unexpected(e, "build revenue chart", clinic_id=clinic_id)

    async def get_species_distribution(
        self, db: AsyncSession, clinic_id: Optional[uuid.UUID]
    ) -> List[Dict[str, Any]]:
        if clinic_id is None:
            return []
        try:
            rows = await db.execute(
                select(Patient.species, func.count(Patient.id))
                .where(Patient.clinic_id == clinic_id, Patient.is_active.is_(True))
                .group_by(Patient.species)
                .order_by(func.count(Patient.id).desc())
            )
            return [{"species": species, "count": count} for species, count in rows.all()]
        except Exception as e:
            wrap_unexpected(e, "compute species distribution", clinic_id=clinic_id)

    async def get_recent_activity(
        self, db: AsyncSession, clinic_id: Optional[uuid.UUID], limit: int = 10
    ) -> List[Dict[str, Any]]:
        """Latest appointments, invoices and medical records merged newest first."""
        if clinic_id is None:
            return []
        try:
            appointments = await db.execute(
                select(Appointment)
                .where(Appointment.clinic_id == clinic_id)
                .order_by(Appointment.created_at.desc())
                .limit(limit)
            )
            invoices = await db.execute(
                select(Invoice)
                .where(Invoice.clinic_id == clinic_id)
                .order_by(Invoice.created_at.desc())
                .limit(limit)
            )
            records = await db.execute(
                select(MedicalRecord)
                .where(MedicalRecord.clinic_id == clinic_id)
                .order_by(MedicalRecord.created_at.desc())
                .limit(limit)
            )

            activity = []
            for a in appointments.scalars().all():
                activity.append({
                    "id": str(a.id),
                    "type": "appointment",
                    "title": f"Appointment for {a.patient.name if a.patient else 'patient'}",
                    "description": f"{a.type} on {a.appointment_date.isoformat()} at {a.appointment_time}",
                    "status": a.status.value,
                    "timestamp": a.created_at,
                })
            for i in invoices.scalars().all():
                activity.append({
                    "id": str(i.id),
                    "type": "invoice",
                    "title": f"Invoice {i.invoice_number}",
                    "description": f"Total {to_money(i.total_amount)}",
                    "status": i.status.value,
                    "timestamp": i.created_at,
                })
            for r in records.scalars().all():
                activity.append({
                    "id": str(r.id),
                    "type": "medical_record",
                    "title": f"Medical record for {r.patient.name if r.patient else 'patient'}",
                    "description": r.chief_complaint,
                    "status": r.status.value,
                    "timestamp": r.created_at,
                })

            activity.sort(key=lambda item: item["timestamp"], reverse=True)
            return activity[:limit]
        except Exception as e:
            wrap_unexpected(e, "load recent activity", clinic_id=clinic_id)


# ── Singleton Instance ────────────────────────────────────────────────────
dashboard_service = DashboardService()
