"""
VetPintar Backend — Patient Service Unit Tests
================================================

What we test:
    ✅ Owner must have access to the clinic
    ✅ Microchip IDs are unique per clinic (create and update)
    ✅ Explicit nulls on update only clear optional fields
    ✅ Patients with history are deactivated, others deleted
    ✅ Detail view returns recent records and invoices
    ✅ Statistics shape
"""

from types import SimpleNamespace
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from vetpintar.exceptions import ConflictError, NotFoundError
from vetpintar.schemas.patient import PatientCreate, PatientUpdate
from vetpintar.services.patient_service import PatientService


class TestCreatePatient:

    def setup_method(self):
        self.service = PatientService()
        self.clinic_id = uuid4()
        self.owner_id = uuid4()

    @pytest.mark.asyncio
    async def test_create_success(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(scalar=self.owner_id),
            make_result(scalar=None),
        ]

        patient = await self.service.create_patient(
            mock_db_session,
            self.clinic_id,
            PatientCreate(name="Milo", species="Cat", owner_id=self.owner_id, microchip_id="CHIP-1"),
        )

        assert patient.name == "Milo"
        assert patient.clinic_id == self.clinic_id
        assert patient.is_active is True
        mock_db_session.add.assert_called_once_with(patient)
        mock_db_session.refresh.assert_awaited_once_with(patient)

    @pytest.mark.asyncio
    async def test_no_microchip_skips_uniqueness_query(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [make_result(scalar=self.owner_id)]

        await self.service.create_patient(
            mock_db_session,
            self.clinic_id,
            PatientCreate(name="Bruno", species="Dog", owner_id=self.owner_id),
        )

        assert mock_db_session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_owner_without_clinic_access(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [make_result(scalar=None)]

        with pytest.raises(NotFoundError, match="Owner not found"):
            await self.service.create_patient(
                mock_db_session,
                self.clinic_id,
                PatientCreate(name="Milo", species="Cat", owner_id=self.owner_id),
            )
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_microchip(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(scalar=self.owner_id),
            make_result(scalar=uuid4()),
        ]

        with pytest.raises(ConflictError, match="microchip"):
            await self.service.create_patient(
                mock_db_session,
                self.clinic_id,
                PatientCreate(name="Milo", species="Cat", owner_id=self.owner_id, microchip_id="CHIP-1"),
            )

    @pytest.mark.asyncio
    async def test_integrity_error_passes_through(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [make_result(scalar=self.owner_id)]
        mock_db_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate"))

        with pytest.raises(IntegrityError):
            await self.service.create_patient(
                mock_db_session,
                self.clinic_id,
                PatientCreate(name="Milo", species="Cat", owner_id=self.owner_id),
            )


class TestUpdatePatient:

    def setup_method(self):
        self.service = PatientService()
        self.clinic_id = uuid4()

    @pytest.mark.asyncio
    async def test_unchanged_microchip_is_not_rechecked(self, mock_db_session, make_result):
        patient = SimpleNamespace(id=uuid4(), microchip_id="CHIP-1", name="Milo")
        mock_db_session.execute.side_effect = [make_result(scalar=patient)]

        updated = await self.service.update_patient(
            mock_db_session, self.clinic_id, patient.id,
            PatientUpdate(microchip_id="CHIP-1", name="Milo Jr"),
        )

        assert updated.name == "Milo Jr"
        assert mock_db_session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_new_microchip_taken_by_other_patient(self, mock_db_session, make_result):
        patient = SimpleNamespace(id=uuid4(), microchip_id="CHIP-1", name="Milo")
        mock_db_session.execute.side_effect = [
            make_result(scalar=patient),
            make_result(scalar=uuid4()),
        ]

        with pytest.raises(ConflictError):
            await self.service.update_patient(
                mock_db_session, self.clinic_id, patient.id, PatientUpdate(microchip_id="CHIP-2")
            )
        assert patient.microchip_id == "CHIP-1"

    @pytest.mark.asyncio
    async def test_explicit_nulls_only_clear_optional_fields(self, mock_db_session, make_result):
        patient = SimpleNamespace(
            id=uuid4(), microchip_id="CHIP-1", name="Milo", species="Cat", breed="Persian", is_active=True
        )
        mock_db_session.execute.side_effect = [make_result(scalar=patient)]

        updated = await self.service.update_patient(
            mock_db_session, self.clinic_id, patient.id,
            PatientUpdate.model_validate({
                "name": None, "species": None, "is_active": None, "breed": None, "microchip_id": None,
            }),
        )

        assert (updated.name, updated.species, updated.is_active) == ("Milo", "Cat", True)
        assert updated.breed is None
        assert updated.microchip_id is None


class TestGetAndDeletePatient:

    def setup_method(self):
        self.service = PatientService()
        self.clinic_id = uuid4()

    @pytest.mark.asyncio
    async def test_get_patient_with_history(self, mock_db_session, make_result):
        patient = SimpleNamespace(id=uuid4())
        record, invoice = MagicMock(), MagicMock()
        mock_db_session.execute.side_effect = [
            make_result(scalar=patient),
            make_result(scalars=[record]),
            make_result(scalars=[invoice]),
        ]

        found, records, invoices = await self.service.get_patient(
            mock_db_session, self.clinic_id, patient.id
        )

        assert found is patient
        assert records == [record]
        assert invoices == [invoice]

    @pytest.mark.asyncio
    async def test_get_patient_other_clinic(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(scalar=None)
        with pytest.raises(NotFoundError, match="Patient not found"):
            await self.service.get_patient(mock_db_session, self.clinic_id, uuid4())

    @pytest.mark.asyncio
    async def test_delete_without_history_is_hard_delete(self, mock_db_session, make_result):
        patient = SimpleNamespace(id=uuid4(), is_active=True)
        mock_db_session.execute.side_effect = [
            make_result(scalar=patient),
            make_result(scalar=False),
        ]

        deleted = await self.service.delete_patient(mock_db_session, self.clinic_id, patient.id)

        assert deleted is True
        mock_db_session.delete.assert_awaited_once_with(patient)

    @pytest.mark.asyncio
    async def test_delete_with_history_deactivates(self, mock_db_session, make_result):
        patient = SimpleNamespace(id=uuid4(), is_active=True)
        mock_db_session.execute.side_effect = [
            make_result(scalar=patient),
            make_result(scalar=True),
        ]

        deleted = await self.service.delete_patient(mock_db_session, self.clinic_id, patient.id)

        assert deleted is False
        assert patient.is_active is False
        mock_db_session.delete.assert_not_awaited()


class TestPatientStats:

    @pytest.mark.asyncio
    async def test_stats(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(count=12),
            make_result(count=10),
            make_result(count=2),
            make_result(rows=[("Cat", 6), ("Dog", 4)]),
        ]

        stats = await PatientService().get_patient_stats(mock_db_session, uuid4())

        assert stats["total"] == 12
        assert stats["active"] == 10
        assert stats["new_this_month"] == 2
        assert stats["species_distribution"] == [
            {"species": "Cat", "count": 6},
            {"species": "Dog", "count": 4},
        ]
