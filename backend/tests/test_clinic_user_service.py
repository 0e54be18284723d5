"""
VetPintar Backend — Clinic & User Service Unit Tests
======================================================

What we test:
    ✅ Clinic creator becomes OWNER
    ✅ Re-adding a member updates the role in place
    ✅ A null in a clinic update only clears optional contact fields
    ✅ Clinics / users with data are deactivated, not deleted
    ✅ The last active super admin cannot be deactivated
    ✅ Duplicate emails and wrong current passwords are rejected
"""

from types import SimpleNamespace
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from vetpintar.exceptions import BusinessRuleError, ConflictError, NotFoundError
from vetpintar.models.clinic import ClinicAccess
from vetpintar.models.enums import AccessRole, SubscriptionStatus, UserRole
from vetpintar.schemas.clinic import ClinicCreate, ClinicUpdate
from vetpintar.schemas.user import UserCreate, UserUpdate
from vetpintar.security import hash_password, verify_password
from vetpintar.services.clinic_service import ClinicService
from vetpintar.services.user_service import UserService


class TestClinicService:

    def setup_method(self):
        self.service = ClinicService()

    @pytest.mark.asyncio
    async def test_create_grants_owner_access(self, mock_db_session):
        creator_id = uuid4()

        async def assign_ids():
            for call in mock_db_session.add.call_args_list:
                obj = call.args[0]
                if getattr(obj, "id", None) is None:
                    obj.id = uuid4()
        mock_db_session.flush.side_effect = assign_ids

        clinic = await self.service.create_clinic(
            mock_db_session, ClinicCreate(name="Klinik Hewan Sehat", city="Jakarta"), creator_id
        )

        assert clinic.subscription_status == SubscriptionStatus.TRIAL
        assert clinic.is_active is True
        access = mock_db_session.add.call_args_list[1].args[0]
        assert isinstance(access, ClinicAccess)
        assert access.user_id == creator_id
        assert access.clinic_id == clinic.id
        assert access.access_role == AccessRole.OWNER

    @pytest.mark.asyncio
    async def test_add_existing_member_updates_role(self, mock_db_session, make_result):
        clinic_id, user_id = uuid4(), uuid4()
        access = SimpleNamespace(access_role=AccessRole.VIEWER)
        mock_db_session.get.side_effect = [MagicMock(), MagicMock()]
        mock_db_session.execute.return_value = make_result(scalar=access)

        result = await self.service.add_user_to_clinic(
            mock_db_session, clinic_id, user_id, AccessRole.VETERINARIAN
        )

        assert result is access
        assert access.access_role == AccessRole.VETERINARIAN
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_add_new_member(self, mock_db_session, make_result):
        clinic_id, user_id = uuid4(), uuid4()
        mock_db_session.get.side_effect = [MagicMock(), MagicMock()]
        mock_db_session.execute.return_value = make_result(scalar=None)

        access = await self.service.add_user_to_clinic(
            mock_db_session, clinic_id, user_id, AccessRole.STAFF
        )

        assert access.clinic_id == clinic_id
        assert access.access_role == AccessRole.STAFF
        mock_db_session.add.assert_called_once_with(access)

    @pytest.mark.asyncio
    async def test_add_unknown_user(self, mock_db_session):
        mock_db_session.get.side_effect = [MagicMock(), None]
        with pytest.raises(NotFoundError, match="User not found"):
            await self.service.add_user_to_clinic(mock_db_session, uuid4(), uuid4(), AccessRole.STAFF)

    @pytest.mark.asyncio
    async def test_remove_missing_member(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(scalar=None)
        with pytest.raises(NotFoundError, match="User access not found"):
            await self.service.remove_user_from_clinic(mock_db_session, uuid4(), uuid4())

    @pytest.mark.asyncio
    async def test_delete_clinic_with_data_deactivates(self, mock_db_session, make_result):
        clinic = SimpleNamespace(id=uuid4(), is_active=True)
        mock_db_session.get.return_value = clinic
        mock_db_session.execute.return_value = make_result(scalar=True)

        assert await self.service.delete_clinic(mock_db_session, clinic.id) is False
        assert clinic.is_active is False
        mock_db_session.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_empty_clinic(self, mock_db_session, make_result):
        clinic = SimpleNamespace(id=uuid4(), is_active=True)
        mock_db_session.get.return_value = clinic
        mock_db_session.execute.return_value = make_result(scalar=False)

        assert await self.service.delete_clinic(mock_db_session, clinic.id) is True
        mock_db_session.delete.assert_awaited_once_with(clinic)

    @pytest.mark.asyncio
    async def test_update_nulls_clear_contact_fields_only(self, mock_db_session):
        clinic = SimpleNamespace(
            id=uuid4(), name="Klinik Sehat", phone="021-555", is_active=True,
            subscription_status=SubscriptionStatus.ACTIVE,
        )
        mock_db_session.get.return_value = clinic

        updated = await self.service.update_clinic(
            mock_db_session, clinic.id,
            ClinicUpdate.model_validate({
                "name": None, "is_active": None, "subscription_status": None, "phone": None,
            }),
        )

        assert updated.name == "Klinik Sehat"
        assert updated.is_active is True
        assert updated.subscription_status == SubscriptionStatus.ACTIVE
        assert updated.phone is None


class TestUserService:

    def setup_method(self):
        self.service = UserService()

    @pytest.mark.asyncio
    async def test_create_lowercases_email_and_hashes(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(scalar=None)

        user = await self.service.create_user(
            mock_db_session,
            UserCreate(email="Vet@VetPintar.id", password="Password123!", name="drh. Sari", role=UserRole.VETERINARIAN),
        )

        assert user.email == "vet@vetpintar.id"
        assert user.password_hash != "Password123!"
        assert user.role == UserRole.VETERINARIAN

    @pytest.mark.asyncio
    async def test_duplicate_email(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(scalar=uuid4())
        with pytest.raises(ConflictError, match="email already exists"):
            await self.service.create_user(
                mock_db_session,
                UserCreate(email="vet@vetpintar.id", password="Password123!", name="drh. Sari"),
            )

    @pytest.mark.asyncio
    async def test_last_super_admin_cannot_be_deactivated(self, mock_db_session, make_result):
        admin = SimpleNamespace(id=uuid4(), role=UserRole.SUPER_ADMIN, is_active=True)
        mock_db_session.get.return_value = admin
        mock_db_session.execute.return_value = make_result(count=1)

        with pytest.raises(BusinessRuleError, match="last super admin"):
            await self.service.deactivate_user(mock_db_session, admin.id)
        assert admin.is_active is True

    @pytest.mark.asyncio
    async def test_super_admin_deactivated_when_another_exists(self, mock_db_session, make_result):
        admin = SimpleNamespace(id=uuid4(), role=UserRole.SUPER_ADMIN, is_active=True)
        mock_db_session.get.return_value = admin
        mock_db_session.execute.return_value = make_result(count=2)

        await self.service.deactivate_user(mock_db_session, admin.id)

        assert admin.is_active is False

    @pytest.mark.asyncio
    async def test_update_via_is_active_guards_last_super_admin(self, mock_db_session, make_result):
        admin = SimpleNamespace(id=uuid4(), role=UserRole.SUPER_ADMIN, is_active=True)
        mock_db_session.get.return_value = admin
        mock_db_session.execute.return_value = make_result(count=1)

        with pytest.raises(BusinessRuleError):
            await self.service.update_user(mock_db_session, admin.id, UserUpdate(is_active=False))

    @pytest.mark.asyncio
    async def test_delete_user_with_patients_deactivates(self, mock_db_session, make_result):
        user = SimpleNamespace(id=uuid4(), role=UserRole.CUSTOMER, is_active=True)
        mock_db_session.get.return_value = user
        mock_db_session.execute.return_value = make_result(scalar=True)

        assert await self.service.delete_user(mock_db_session, user.id) is False
        assert user.is_active is False

    @pytest.mark.asyncio
    async def test_update_password_checks_current(self, mock_db_session):
        user = SimpleNamespace(id=uuid4(), password_hash=hash_password("Password123!"))
        mock_db_session.get.return_value = user

        with pytest.raises(BusinessRuleError, match="Current password is incorrect"):
            await self.service.update_password(mock_db_session, user.id, "nope", "NewPassword1!")

        await self.service.update_password(mock_db_session, user.id, "Password123!", "NewPassword1!")
        assert verify_password("NewPassword1!", user.password_hash)

    @pytest.mark.asyncio
    async def test_user_stats(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(rows=[
            (UserRole.VETERINARIAN, True, 3),
            (UserRole.VETERINARIAN, False, 1),
            (UserRole.CUSTOMER, True, 10),
        ])

        stats = await self.service.get_user_stats(mock_db_session)

        assert stats == {
            "total": 14,
            "active": 13,
            "inactive": 1,
            "by_role": {"VETERINARIAN": 4, "CUSTOMER": 10},
        }

    @pytest.mark.asyncio
    async def test_blank_search_skips_query(self, mock_db_session):
        assert await self.service.search_users(mock_db_session, "   ") == []
        mock_db_session.execute.assert_not_awaited()
