"""
VetPintar Backend — Patient Service
=====================================

What:  CRUD and statistics for the animals registered at a clinic.
Who:   routes/patients.py.

Invariants:
    - A patient's owner must hold a ClinicAccess row for the patient's clinic
    - microchip_id is unique within a clinic (checked here, not by the DB)
    - Patients with medical records or invoices are deactivated, never
      deleted
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.exceptions import ConflictError, NotFoundError
from vetpintar.models.clinic import ClinicAccess
from vetpintar.models.invoice import Invoice
from vetpintar.models.medical_record import MedicalRecord
from vetpintar.models.mixins import utcnow
from vetpintar.models.patient import Patient
from vetpintar.models.user import User
from vetpintar.schemas.patient import PatientCreate, PatientUpdate
from vetpintar.services.base_service import (
    Page,
    changed_fields,
    paginate,
    search_filter,
    wrap_unexpected,
)

logger = logging.getLogger(__name__)

RECENT_HISTORY_LIMIT = 10
CLEARABLE_FIELDS = {"breed", "birth_date", "color", "microchip_id", "photo_url"}


class PatientService:

    async def _get_scoped(self, db: AsyncSession, clinic_id: uuid.UUID, patient_id: uuid.UUID) -> Patient:
        result = await db.execute(
            select(Patient).where(Patient.id == patient_id, Patient.clinic_id == clinic_id)
        )
        patient = result.scalar_one_or_none()
        if patient is None:
            raise NotFoundError(resource="patient", message="Patient not found")
        return patient

    async def _ensure_unique_microchip(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        microchip_id: Optional[str],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        if not microchip_id:
            return
        query = select(Patient.id).where(
            Patient.clinic_id == clinic_id,
            Patient.microchip_id == microchip_id,
        )
        if exclude_id is not None:
            query = query.where(Patient.id != exclude_id)
        result = await db.execute(query.limit(1))
        if result.scalar_one_or_none() is not None:
            raise ConflictError("Patient with this microchip ID already exists")

    async def create_patient(self, db: AsyncSession, clinic_id: uuid.UUID, data: PatientCreate) -> Patient:
        try:
            owner = await db.execute(
                select(User.id).where(
                    User.id == data.owner_id,
                    exists().where(
                        ClinicAccess.user_id == User.id,
                        ClinicAccess.clinic_id == clinic_id,
                    ),
                )
            )
            if owner.scalar_one_or_none() is None:
                raise NotFoundError(
                    resource="owner",
                    message="Owner not found or does not have access to this clinic",
                )

            await self._ensure_unique_microchip(db, clinic_id, data.microchip_id)

            patient = Patient(**data.model_dump(), clinic_id=clinic_id, is_active=True)
            db.add(patient)
            await db.flush()
            await db.refresh(patient)
            logger.info("Patient created: %s for clinic %s", patient.id, clinic_id)
            return patient
        except Exception as e:
            wrap_unexpected(e, "create patient", clinic_id=clinic_id)

    async def list_patients(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
        owner_id: Optional[uuid.UUID] = None,
        species: Optional[str] = None,
        search: Optional[str] = None,
        is_active: Optional[bool] = True,
    ) -> Page:
        try:
            query = select(Patient).where(Patient.clinic_id == clinic_id)
            if is_active is not None:
                query = query.where(Patient.is_active == is_active)
            if owner_id is not None:
                query = query.where(Patient.owner_id == owner_id)
            if species:
                query = query.where(Patient.species.ilike(species))
            clause = search_filter(search, Patient.name, Patient.breed, Patient.microchip_id)
            if clause is not None:
                query = query.where(clause)
            return await paginate(db, query.order_by(Patient.created_at.desc()), page, limit)
        except Exception as e:
            wrap_unexpected(e, "list patients", clinic_id=clinic_id)

    async def get_patient(
        self, db: AsyncSession, clinic_id: uuid.UUID, patient_id: uuid.UUID
    ) -> Tuple[Patient, List[MedicalRecord], List[Invoice]]:
        """Returns the patient with its 10 latest medical records and invoices."""
        try:
            patient = await self._get_scoped(db, clinic_id, patient_id)
            records = await db.execute(
                select(MedicalRecord)
                .where(MedicalRecord.patient_id == patient_id)
                .order_by(MedicalRecord.visit_date.desc())
                .limit(RECENT_HISTORY_LIMIT)
            )
            invoices = await db.execute(
                select(Invoice)
                .where(Invoice.patient_id == patient_id)
                .order_by(Invoice.issue_date.desc())
                .limit(RECENT_HISTORY_LIMIT)
            )
            return patient, list(records.scalars().all()), list(invoices.scalars().all())
        except Exception as e:
            wrap_unexpected(e, "retrieve patient", patient_id=patient_id)

    async def update_patient(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        patient_id: uuid.UUID,
        data: PatientUpdate,
    ) -> Patient:
        try:
            patient = await self._get_scoped(db, clinic_id, patient_id)
            changes = changed_fields(data, CLEARABLE_FIELDS)
            if changes.get("microchip_id") and changes["microchip_id"] != patient.microchip_id:
                await self._ensure_unique_microchip(
                    db, clinic_id, changes["microchip_id"], exclude_id=patient_id
                )
            for field, value in changes.items():
                setattr(patient, field, value)
            await db.flush()
            logger.info("Patient %s updated: %s", patient_id, sorted(changes))
            return patient
        except Exception as e:
            wrap_unexpected(e, "update patient", patient_id=patient_id)

    async def delete_patient(self, db: AsyncSession, clinic_id: uuid.UUID, patient_id: uuid.UUID) -> bool:
        """Returns True for a hard delete, False when only deactivated."""
        try:
            patient = await self._get_scoped(db, clinic_id, patient_id)
            has_history = await db.execute(
                select(or_(
                    exists().where(MedicalRecord.patient_id == patient_id),
                    exists().where(Invoice.patient_id == patient_id),
                ))
            )
            if has_history.scalar():
                patient.is_active = False
                await db.flush()
                logger.info("Patient %s has history; deactivated instead of deleted", patient_id)
                return False

            await db.delete(patient)
            await db.flush()
            logger.info("Patient %s deleted", patient_id)
            return True
        except Exception as e:
            wrap_unexpected(e, "delete patient", patient_id=patient_id)

    async def get_patient_stats(self, db: AsyncSession, clinic_id: uuid.UUID) -> Dict[str, Any]:
        try:
            month_start = utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

            total = (await db.execute(
                select(func.count(Patient.id)).where(Patient.clinic_id == clinic_id)
            )).scalar() or 0
            active = (await db.execute(
                select(func.count(Patient.id)).where(
                    Patient.clinic_id == clinic_id, Patient.is_active.is_(True)
                )
            )).scalar() or 0
            new_this_month = (await db.execute(
                select(func.count(Patient.id)).where(
                    Patient.clinic_id == clinic_id, Patient.created_at >= month_start
                )
            )).scalar() or 0
            species_rows = await db.execute(
                select(Patient.species, func.count(Patient.id))
                .where(Patient.clinic_id == clinic_id, Patient.is_active.is_(True))
                .group_by(Patient.species)
                .order_by(func.count(Patient.id).desc())
            )

            return {
                "total": total,
                "active": active,
                "new_this_month": new_this_month,
                "species_distribution": [
                    {"species": species, "count": count} for species, count in species_rows.all()
                ],
            }
        except Exception as e:
            wrap_unexpected(e, "compute patient statistics", clinic_id=clinic_id)


# ── Singleton Instance ────────────────────────────────────────────────────
patient_service = PatientService()
