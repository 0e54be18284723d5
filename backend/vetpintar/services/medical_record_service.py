"""
VetPintar Backend — Medical Record Service
============================================

What:  Visit records and inpatient stays (hospitalizations).
Who:   routes/medical_records.py.

Hospitalization lifecycle:
    admit_patient            → Hospitalization(ADMITTED), record → INPATIENT
    first discharge_date set → Hospitalization(DISCHARGED), record → DISCHARGED
    At most one ADMITTED hospitalization per record.

Events:
    medical-record-created  {medical_record_id, patient_id, patient_name, veterinarian_id, status}
    medical-record-updated  {medical_record_id, patient_id, status}
    patient-admitted        {medical_record_id, hospitalization_id, patient_name, cage_number}
    patient-discharged      {medical_record_id, hospitalization_id, patient_name, discharge_date}
"""

import logging
import uuid
from collections import Counter
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.exceptions import BusinessRuleError, NotFoundError
from vetpintar.models.clinic import ClinicAccess
from vetpintar.models.enums import HospitalizationStatus, RecordStatus
from vetpintar.models.medical_record import Hospitalization, MedicalRecord
from vetpintar.models.patient import Patient
from vetpintar.models.user import User
from vetpintar.schemas.medical_record import (
    HospitalizationCreate,
    HospitalizationUpdate,
    MedicalRecordCreate,
    MedicalRecordUpdate,
)
from vetpintar.services.base_service import (
    Page,
    changed_fields,
    paginate,
    search_filter,
    wrap_unexpected,
)
from vetpintar.services.billing import to_money
from vetpintar.services.notification_service import notification_service

logger = logging.getLogger(__name__)

RECORD_CLEARABLE_FIELDS = {
    "diagnosis", "treatment", "prescription", "notes", "weight", "temperature", "total_amount",
}
# discharge_date is not clearable: a discharge is final
STAY_CLEARABLE_FIELDS = {"cage_number", "daily_notes"}


class MedicalRecordService:

    # ── Lookups ───────────────────────────────────────────────────────────

    async def _get_scoped(self, db: AsyncSession, clinic_id: uuid.UUID, record_id: uuid.UUID) -> MedicalRecord:
        result = await db.execute(
            select(MedicalRecord).where(
                MedicalRecord.id == record_id,
                MedicalRecord.clinic_id == clinic_id,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError(resource="medical record", message="Medical record not found")
        return record

    async def _get_patient(self, db: AsyncSession, clinic_id: uuid.UUID, patient_id: uuid.UUID) -> Patient:
        result = await db.execute(
            select(Patient).where(Patient.id == patient_id, Patient.clinic_id == clinic_id)
        )
        patient = result.scalar_one_or_none()
        if patient is None:
            raise NotFoundError(resource="patient", message="Patient not found or access denied")
        return patient

    async def _ensure_veterinarian(self, db: AsyncSession, clinic_id: uuid.UUID, veterinarian_id: uuid.UUID) -> None:
        result = await db.execute(
            select(User.id).where(
                User.id == veterinarian_id,
                User.is_active.is_(True),
                exists().where(
                    ClinicAccess.user_id == User.id,
                    ClinicAccess.clinic_id == clinic_id,
                ),
            )
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError(
                resource="veterinarian",
                message="Veterinarian not found or access denied",
            )

    # ── Medical records ───────────────────────────────────────────────────

    async def create_medical_record(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        data: MedicalRecordCreate,
        current_user_id: uuid.UUID,
    ) -> MedicalRecord:
        """The veterinarian defaults to the calling user when not given."""
        try:
            patient = await self._get_patient(db, clinic_id, data.patient_id)
            veterinarian_id = data.veterinarian_id or current_user_id
            await self._ensure_veterinarian(db, clinic_id, veterinarian_id)

            record = MedicalRecord(
                **data.model_dump(exclude={"veterinarian_id"}),
                veterinarian_id=veterinarian_id,
                clinic_id=clinic_id,
            )
            db.add(record)
            await db.flush()
            await db.refresh(record)
            logger.info("Medical record created: %s for patient %s", record.id, patient.id)
        except Exception as e:
            wrap_unexpected(e, "create medical record", clinic_id=clinic_id)

        notification_service.defer(db, clinic_id, "medical-record-created", {
            "medical_record_id": record.id,
            "patient_id": patient.id,
            "patient_name": patient.name,
            "veterinarian_id": veterinarian_id,
            "status": record.status,
        })
        return record

    async def list_medical_records(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
        patient_id: Optional[uuid.UUID] = None,
        veterinarian_id: Optional[uuid.UUID] = None,
        status: Optional[RecordStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> Page:
        try:
            query = select(MedicalRecord).where(MedicalRecord.clinic_id == clinic_id)
            if patient_id is not None:
                query = query.where(MedicalRecord.patient_id == patient_id)
            if veterinarian_id is not None:
                query = query.where(MedicalRecord.veterinarian_id == veterinarian_id)
            if status is not None:
                query = query.where(MedicalRecord.status == status)
            if date_from is not None:
                query = query.where(MedicalRecord.visit_date >= date_from)
            if date_to is not None:
                query = query.where(MedicalRecord.visit_date <= date_to)
            if search and search.strip():
                query = query.join(Patient, Patient.id == MedicalRecord.patient_id).where(
                    search_filter(
                        search,
                        MedicalRecord.chief_complaint,
                        MedicalRecord.diagnosis,
                        MedicalRecord.treatment,
                        Patient.name,
                    )
                )
            return await paginate(db, query.order_by(MedicalRecord.visit_date.desc()), page, limit)
        except Exception as e:
            wrap_unexpected(e, "list medical records", clinic_id=clinic_id)

    async def get_medical_record(self, db: AsyncSession, clinic_id: uuid.UUID, record_id: uuid.UUID) -> MedicalRecord:
        try:
            return await self._get_scoped(db, clinic_id, record_id)
        except Exception as e:
            wrap_unexpected(e, "retrieve medical record", record_id=record_id)

    async def update_medical_record(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        record_id: uuid.UUID,
        data: MedicalRecordUpdate,
    ) -> MedicalRecord:
        try:
            record = await self._get_scoped(db, clinic_id, record_id)
            changes = changed_fields(data, RECORD_CLEARABLE_FIELDS)
            for field, value in changes.items():
                setattr(record, field, value)
            await db.flush()
            logger.info("Medical record %s updated: %s", record_id, sorted(changes))
        except Exception as e:
            wrap_unexpected(e, "update medical record", record_id=record_id)

        notification_service.defer(db, clinic_id, "medical-record-updated", {
            "medical_record_id": record.id,
            "patient_id": record.patient_id,
            "status": record.status,
        })
        return record

    async def delete_medical_record(self, db: AsyncSession, clinic_id: uuid.UUID, record_id: uuid.UUID) -> None:
        try:
            record = await self._get_scoped(db, clinic_id, record_id)
            if any(h.status == HospitalizationStatus.ADMITTED for h in record.hospitalizations):
                raise BusinessRuleError("Cannot delete medical record while patient is hospitalized")
            await db.delete(record)
            await db.flush()
            logger.info("Medical record %s deleted", record_id)
        except Exception as e:
            wrap_unexpected(e, "delete medical record", record_id=record_id)

    async def get_patient_records(
        self, db: AsyncSession, clinic_id: uuid.UUID, patient_id: uuid.UUID
    ) -> List[MedicalRecord]:
        try:
            await self._get_patient(db, clinic_id, patient_id)
            result = await db.execute(
                select(MedicalRecord)
                .where(MedicalRecord.patient_id == patient_id, MedicalRecord.clinic_id == clinic_id)
                .order_by(MedicalRecord.visit_date.desc())
            )
            return list(result.scalars().all())
        except Exception as e:
            wrap_unexpected(e, "list patient medical records", patient_id=patient_id)

    async def get_stats(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Per-status counts, the mean `total_amount` of billed visits and a
        YYYY-MM histogram of visit dates. Bucketing happens in Python so the
        query stays portable across database backends.
        """
        try:
            conditions = [MedicalRecord.clinic_id == clinic_id]
            if date_from is not None:
                conditions.append(MedicalRecord.visit_date >= date_from)
            if date_to is not None:
                conditions.append(MedicalRecord.visit_date <= date_to)

            rows = await db.execute(
                select(MedicalRecord.status, func.count(MedicalRecord.id))
                .where(*conditions)
                .group_by(MedicalRecord.status)
            )
            by_status = {getattr(s, "value", s): count for s, count in rows.all()}

            average = (await db.execute(
                select(func.avg(MedicalRecord.total_amount)).where(
                    *conditions, MedicalRecord.total_amount.is_not(None)
                )
            )).scalar()

            visit_dates = await db.execute(select(MedicalRecord.visit_date).where(*conditions))
            monthly = Counter(visit.strftime("%Y-%m") for visit in visit_dates.scalars().all())

            return {
                "total_records": sum(by_status.values()),
                "outpatient": by_status.get(RecordStatus.OUTPATIENT.value, 0),
                "inpatient": by_status.get(RecordStatus.INPATIENT.value, 0),
                "discharged": by_status.get(RecordStatus.DISCHARGED.value, 0),
                "referred": by_status.get(RecordStatus.REFERRED.value, 0),
                "average_visit_cost": to_money(Decimal(str(average)) if average is not None else None),
                "monthly_visits": dict(sorted(monthly.items())),
            }
        except Exception as e:
            wrap_unexpected(e, "compute medical record statistics", clinic_id=clinic_id)

    # ── Hospitalization ───────────────────────────────────────────────────

    async def admit_patient(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        record_id: uuid.UUID,
        data: HospitalizationCreate,
    ) -> Hospitalization:
        try:
            record = await self._get_scoped(db, clinic_id, record_id)
            if any(h.status == HospitalizationStatus.ADMITTED for h in record.hospitalizations):
                raise BusinessRuleError("Patient is already hospitalized")

            hospitalization = Hospitalization(
                **data.model_dump(),
                medical_record_id=record.id,
                status=HospitalizationStatus.ADMITTED,
            )
            record.hospitalizations.append(hospitalization)
            record.status = RecordStatus.INPATIENT
            await db.flush()
            await db.refresh(hospitalization)
            logger.info("Patient %s admitted (record %s, cage %s)", record.patient_id, record_id, data.cage_number)
        except Exception as e:
            wrap_unexpected(e, "admit patient", record_id=record_id)

        notification_service.defer(db, clinic_id, "patient-admitted", {
            "medical_record_id": record.id,
            "hospitalization_id": hospitalization.id,
            "patient_name": record.patient.name if record.patient else None,
            "cage_number": hospitalization.cage_number,
        })
        return hospitalization

    async def update_hospitalization(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        hospitalization_id: uuid.UUID,
        data: HospitalizationUpdate,
    ) -> Hospitalization:
        """Setting discharge_date for the first time discharges both the stay and the record."""
        try:
            result = await db.execute(
                select(Hospitalization, MedicalRecord)
                .join(MedicalRecord, MedicalRecord.id == Hospitalization.medical_record_id)
                .where(
                    Hospitalization.id == hospitalization_id,
                    MedicalRecord.clinic_id == clinic_id,
                )
            )
            row = result.first()
            if row is None:
                raise NotFoundError(resource="hospitalization", message="Hospitalization not found")
            hospitalization, record = row

            changes = changed_fields(data, STAY_CLEARABLE_FIELDS)
            discharging = (
                changes.get("discharge_date") is not None
                and hospitalization.discharge_date is None
            )
            for field, value in changes.items():
                setattr(hospitalization, field, value)
            if discharging:
                hospitalization.status = HospitalizationStatus.DISCHARGED
                record.status = RecordStatus.DISCHARGED
            await db.flush()
            logger.info(
                "Hospitalization %s updated: %s%s",
                hospitalization_id, sorted(changes), " (discharged)" if discharging else "",
            )
        except Exception as e:
            wrap_unexpected(e, "update hospitalization", hospitalization_id=hospitalization_id)

        if discharging:
            notification_service.defer(db, clinic_id, "patient-discharged", {
                "medical_record_id": record.id,
                "hospitalization_id": hospitalization.id,
                "patient_name": record.patient.name if record.patient else None,
                "discharge_date": hospitalization.discharge_date,
            })
        return hospitalization


# ── Singleton Instance ────────────────────────────────────────────────────
medical_record_service = MedicalRecordService()
