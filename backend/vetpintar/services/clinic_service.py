"""
VetPintar Backend — Clinic Service
====================================

What:  Clinic (tenant) lifecycle, membership management and per-clinic
       statistics.
Who:   routes/clinics.py.

Membership:
    ClinicAccess(user, clinic, access_role) is unique per (user, clinic).
    Adding an existing member updates the role in place.

Deletion policy:
    A clinic that already holds patients, invoices, products or
    appointments is deactivated; an empty clinic is removed.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.exceptions import NotFoundError
from vetpintar.models.appointment import Appointment
from vetpintar.models.clinic import Clinic, ClinicAccess
from vetpintar.models.enums import AccessRole, InvoiceStatus, SubscriptionStatus
from vetpintar.models.invoice import Invoice
from vetpintar.models.mixins import utcnow
from vetpintar.models.patient import Patient
from vetpintar.models.product import Product
from vetpintar.models.user import User
from vetpintar.schemas.clinic import ClinicCreate, ClinicUpdate
from vetpintar.services.base_service import (
    Page,
    changed_fields,
    paginate,
    search_filter,
    wrap_unexpected,
)
from vetpintar.services.user_service import user_service

logger = logging.getLogger(__name__)

CLEARABLE_FIELDS = {"email", "phone", "address", "city", "province", "postal_code", "logo_url"}


class ClinicService:

    async def _get_or_404(self, db: AsyncSession, clinic_id: uuid.UUID) -> Clinic:
        clinic = await db.get(Clinic, clinic_id)
        if clinic is None:
            raise NotFoundError(resource="clinic", message="Clinic not found")
        return clinic

    async def create_clinic(self, db: AsyncSession, data: ClinicCreate, creator_id: uuid.UUID) -> Clinic:
        """Creates the clinic and grants the creator OWNER access to it."""
        try:
            clinic = Clinic(
                **data.model_dump(),
                subscription_status=SubscriptionStatus.TRIAL,
                is_active=True,
            )
            db.add(clinic)
            await db.flush()

            db.add(ClinicAccess(
                user_id=creator_id,
                clinic_id=clinic.id,
                access_role=AccessRole.OWNER,
            ))
            await db.flush()
            await db.refresh(clinic)
            logger.info("Clinic created: %s by user %s", clinic.id, creator_id)
            return clinic
        except Exception as e:
            wrap_unexpected(e, "create clinic")

    async def list_clinics(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        city: Optional[str] = None,
        subscription_status: Optional[SubscriptionStatus] = None,
        is_active: Optional[bool] = True,
    ) -> Page:
        try:
            query = select(Clinic)
            if is_active is not None:
                query = query.where(Clinic.is_active == is_active)
            if city:
                query = query.where(Clinic.city.ilike(f"%{city}%"))
            if subscription_status is not None:
                query = query.where(Clinic.subscription_status == subscription_status)
            clause = search_filter(search, Clinic.name, Clinic.city, Clinic.email)
            if clause is not None:
                query = query.where(clause)
            return await paginate(db, query.order_by(Clinic.name), page, limit)
        except Exception as e:
            wrap_unexpected(e, "list clinics")

    async def get_clinic(self, db: AsyncSession, clinic_id: uuid.UUID) -> Clinic:
        try:
            return await self._get_or_404(db, clinic_id)
        except Exception as e:
            wrap_unexpected(e, "retrieve clinic", clinic_id=clinic_id)

    async def get_my_clinics(self, db: AsyncSession, user_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Active clinics the user belongs to, each with the user's access_role."""
        try:
            result = await db.execute(
                select(Clinic, ClinicAccess.access_role, ClinicAccess.granted_at)
                .join(ClinicAccess, ClinicAccess.clinic_id == Clinic.id)
                .where(ClinicAccess.user_id == user_id, Clinic.is_active.is_(True))
                .order_by(ClinicAccess.granted_at)
            )
            clinics = []
            for clinic, access_role, granted_at in result.all():
                clinics.append({
                    **{c.key: getattr(clinic, c.key) for c in Clinic.__table__.columns},
                    "access_role": access_role,
                    "granted_at": granted_at,
                })
            return clinics
        except Exception as e:
            wrap_unexpected(e, "list user clinics", user_id=user_id)

    async def update_clinic(self, db: AsyncSession, clinic_id: uuid.UUID, data: ClinicUpdate) -> Clinic:
        try:
            clinic = await self._get_or_404(db, clinic_id)
            changes = changed_fields(data, CLEARABLE_FIELDS)
            for field, value in changes.items():
                setattr(clinic, field, value)
            await db.flush()
            logger.info("Clinic %s updated: %s", clinic_id, sorted(changes))
            return clinic
        except Exception as e:
            wrap_unexpected(e, "update clinic", clinic_id=clinic_id)

    async def delete_clinic(self, db: AsyncSession, clinic_id: uuid.UUID) -> bool:
        """Returns True for a hard delete, False when only deactivated."""
        try:
            clinic = await self._get_or_404(db, clinic_id)
            has_data = await db.execute(
                select(or_(
                    exists().where(Patient.clinic_id == clinic_id),
                    exists().where(Invoice.clinic_id == clinic_id),
                    exists().where(Product.clinic_id == clinic_id),
                    exists().where(Appointment.clinic_id == clinic_id),
                ))
            )
            if has_data.scalar():
                clinic.is_active = False
                await db.flush()
                logger.info("Clinic %s has data; deactivated instead of deleted", clinic_id)
                return False

            await db.delete(clinic)
            await db.flush()
            logger.info("Clinic %s deleted", clinic_id)
            return True
        except Exception as e:
            wrap_unexpected(e, "delete clinic", clinic_id=clinic_id)

    # ── Membership ────────────────────────────────────────────────────────

    async def add_user_to_clinic(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        user_id: uuid.UUID,
        access_role: AccessRole,
    ) -> ClinicAccess:
        try:
            await self._get_or_404(db, clinic_id)
            if await db.get(User, user_id) is None:
                raise NotFoundError(resource="user", message="User not found")

            result = await db.execute(
                select(ClinicAccess).where(
                    ClinicAccess.user_id == user_id,
                    ClinicAccess.clinic_id == clinic_id,
                )
            )
            access = result.scalar_one_or_none()
            if access is not None:
                access.access_role = access_role
                logger.info("Clinic %s: user %s role changed to %s", clinic_id, user_id, access_role.value)
            else:
                access = ClinicAccess(user_id=user_id, clinic_id=clinic_id, access_role=access_role)
                db.add(access)
                logger.info("Clinic %s: user %s added as %s", clinic_id, user_id, access_role.value)
            await db.flush()
            return access
        except Exception as e:
            wrap_unexpected(e, "add user to clinic", clinic_id=clinic_id, user_id=user_id)

    async def remove_user_from_clinic(self, db: AsyncSession, clinic_id: uuid.UUID, user_id: uuid.UUID) -> None:
        try:
            result = await db.execute(
                select(ClinicAccess).where(
                    ClinicAccess.user_id == user_id,
                    ClinicAccess.clinic_id == clinic_id,
                )
            )
            access = result.scalar_one_or_none()
            if access is None:
                raise NotFoundError(
                    resource="clinic access",
                    message="User access not found for this clinic",
                )
            await db.delete(access)
            await db.flush()
            logger.info("Clinic %s: user %s removed", clinic_id, user_id)
        except Exception as e:
            wrap_unexpected(e, "remove user from clinic", clinic_id=clinic_id, user_id=user_id)

    async def get_clinic_users(self, db: AsyncSession, clinic_id: uuid.UUID) -> List[Dict[str, Any]]:
        await self.get_clinic(db, clinic_id)
        return await user_service.get_clinic_users(db, clinic_id)

    async def get_user_clinics(self, db: AsyncSession, user_id: uuid.UUID) -> List[Dict[str, Any]]:
        return await self.get_my_clinics(db, user_id)

    # ── Statistics ────────────────────────────────────────────────────────

    async def get_clinic_stats(self, db: AsyncSession, clinic_id: uuid.UUID) -> Dict[str, Any]:
        try:
            await self._get_or_404(db, clinic_id)
            month_start = utcnow().date().replace(day=1)

            total_patients = (await db.execute(
                select(func.count(Patient.id)).where(Patient.clinic_id == clinic_id)
            )).scalar() or 0
            active_patients = (await db.execute(
                select(func.count(Patient.id)).where(
                    Patient.clinic_id == clinic_id, Patient.is_active.is_(True)
                )
            )).scalar() or 0
            total_invoices = (await db.execute(
                select(func.count(Invoice.id)).where(Invoice.clinic_id == clinic_id)
            )).scalar() or 0
            total_products = (await db.execute(
                select(func.count(Product.id)).where(
                    Product.clinic_id == clinic_id, Product.is_active.is_(True)
                )
            )).scalar() or 0
            total_users = (await db.execute(
                select(func.count(ClinicAccess.id)).where(ClinicAccess.clinic_id == clinic_id)
            )).scalar() or 0
            monthly_revenue = (await db.execute(
                select(func.coalesce(func.sum(Invoice.total_amount), 0)).where(
                    Invoice.clinic_id == clinic_id,
                    Invoice.status == InvoiceStatus.PAID,
                    Invoice.issue_date >= month_start,
                )
            )).scalar() or 0

            return {
                "total_patients": total_patients,
                "active_patients": active_patients,
                "total_invoices": total_invoices,
                "total_products": total_products,
                "total_users": total_users,
                "monthly_revenue": monthly_revenue,
            }
        except Exception as e:
            wrap_unexpected(e, "compute clinic statistics", clinic_id=clinic_id)


# ── Singleton Instance ────────────────────────────────────────────────────
clinic_service = ClinicService()
