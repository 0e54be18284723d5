"""
VetPintar Backend — User Service
==================================

What:  Platform-level user administration: CRUD, activation, password
       management, statistics and search.
Who:   routes/users.py (admin endpoints and self-service profile).

Deletion policy:
    A user referenced by clinical data (owns patients, or is the
    veterinarian of a medical record or appointment) is deactivated instead
    of deleted. Otherwise the row is removed and ClinicAccess rows cascade.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vetpintar.exceptions import BusinessRuleError, ConflictError, NotFoundError
from vetpintar.models.appointment import Appointment
from vetpintar.models.clinic import ClinicAccess
from vetpintar.models.enums import UserRole
from vetpintar.models.medical_record import MedicalRecord
from vetpintar.models.patient import Patient
from vetpintar.models.user import User
from vetpintar.schemas.user import UserCreate, UserUpdate
from vetpintar.security import hash_password, verify_password
from vetpintar.services.base_service import Page, paginate, search_filter, wrap_unexpected

logger = logging.getLogger(__name__)


class UserService:

    async def _get_or_404(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", message="User not found")
        return user

    async def create_user(self, db: AsyncSession, data: UserCreate) -> User:
        try:
            email = data.email.lower()
            existing = await db.execute(select(User.id).where(User.email == email))
            if existing.scalar_one_or_none() is not None:
                raise ConflictError("User with this email already exists")

            user = User(
                email=email,
                password_hash=hash_password(data.password),
                name=data.name,
                phone=data.phone,
                role=data.role,
                is_active=True,
            )
            db.add(user)
            await db.flush()
            await db.refresh(user)
            logger.info("User created: %s (role=%s)", user.id, user.role.value)
            return user
        except Exception as e:
            wrap_unexpected(e, "create user", email=data.email)

    async def list_users(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 20,
        role: Optional[UserRole] = None,
        clinic_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        is_active: Optional[bool] = True,
    ) -> Page:
        try:
            query = select(User)
            if role is not None:
                query = query.where(User.role == role)
            if is_active is not None:
                query = query.where(User.is_active == is_active)
            if clinic_id is not None:
                query = query.where(
                    exists().where(
                        ClinicAccess.user_id == User.id,
                        ClinicAccess.clinic_id == clinic_id,
                    )
                )
            clause = search_filter(search, User.name, User.email, User.phone)
            if clause is not None:
                query = query.where(clause)

            query = query.order_by(User.created_at.desc())
            return await paginate(db, query, page, limit)
        except Exception as e:
            wrap_unexpected(e, "list users")

    async def get_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        try:
            result = await db.execute(
                select(User)
                .options(selectinload(User.clinic_accesses))
                .where(User.id == user_id)
            )
            user = result.scalar_one_or_none()
            if user is None:
                raise NotFoundError(resource="user", message="User not found")
            return user
        except Exception as e:
            wrap_unexpected(e, "retrieve user", user_id=user_id)

    async def update_user(self, db: AsyncSession, user_id: uuid.UUID, data: UserUpdate) -> User:
        try:
            user = await self._get_or_404(db, user_id)
            changes = data.model_dump(exclude_unset=True, exclude_none=True)
            if changes.get("is_active") is False and user.is_active:
                await self._ensure_not_last_super_admin(db, user)
            for field, value in changes.items():
                setattr(user, field, value)
            await db.flush()
            logger.info("User %s updated: %s", user_id, sorted(changes))
            return user
        except Exception as e:
            wrap_unexpected(e, "update user", user_id=user_id)

    # ── Passwords ─────────────────────────────────────────────────────────

    async def update_password(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        current_password: str,
        new_password: str,
    ) -> None:
        try:
            user = await self._get_or_404(db, user_id)
            if not verify_password(current_password, user.password_hash):
                raise BusinessRuleError("Current password is incorrect")
            user.password_hash = hash_password(new_password)
            await db.flush()
            logger.info("Password updated for user %s", user_id)
        except Exception as e:
            wrap_unexpected(e, "update password", user_id=user_id)

    async def reset_password(self, db: AsyncSession, user_id: uuid.UUID, new_password: str) -> None:
        try:
            user = await self._get_or_404(db, user_id)
            user.password_hash = hash_password(new_password)
            await db.flush()
            logger.info("Password reset by admin for user %s", user_id)
        except Exception as e:
            wrap_unexpected(e, "reset password", user_id=user_id)

    # ── Activation ────────────────────────────────────────────────────────

    async def _ensure_not_last_super_admin(self, db: AsyncSession, user: User) -> None:
        if user.role != UserRole.SUPER_ADMIN:
            return
        result = await db.execute(
            select(func.count(User.id)).where(
                User.role == UserRole.SUPER_ADMIN,
                User.is_active.is_(True),
            )
        )
        if (result.scalar() or 0) <= 1:
            raise BusinessRuleError("Cannot deactivate the last super admin")

    async def deactivate_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        try:
            user = await self._get_or_404(db, user_id)
            if user.is_active:
                await self._ensure_not_last_super_admin(db, user)
            user.is_active = False
            await db.flush()
            logger.info("User %s deactivated", user_id)
            return user
        except Exception as e:
            wrap_unexpected(e, "deactivate user", user_id=user_id)

    async def activate_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        try:
            user = await self._get_or_404(db, user_id)
            user.is_active = True
            await db.flush()
            logger.info("User %s activated", user_id)
            return user
        except Exception as e:
            wrap_unexpected(e, "activate user", user_id=user_id)

    async def delete_user(self, db: AsyncSession, user_id: uuid.UUID) -> bool:
        """
        Returns:
            True when the row was removed, False when it was only deactivated.
        """
        try:
            user = await self._get_or_404(db, user_id)

            referenced = await db.execute(
                select(
                    exists().where(Patient.owner_id == user_id)
                    | exists().where(MedicalRecord.veterinarian_id == user_id)
                    | exists().where(Appointment.veterinarian_id == user_id)
                )
            )
            if referenced.scalar():
                if user.is_active:
                    await self._ensure_not_last_super_admin(db, user)
                user.is_active = False
                await db.flush()
                logger.info("User %s has clinical data; deactivated instead of deleted", user_id)
                return False

            if user.is_active:
                await self._ensure_not_last_super_admin(db, user)
            await db.delete(user)
            await db.flush()
            logger.info("User %s deleted", user_id)
            return True
        except Exception as e:
            wrap_unexpected(e, "delete user", user_id=user_id)

    # ── Queries ───────────────────────────────────────────────────────────

    async def get_user_stats(self, db: AsyncSession) -> Dict[str, Any]:
        try:
            result = await db.execute(
                select(User.role, User.is_active, func.count(User.id))
                .group_by(User.role, User.is_active)
            )
            stats = {"total": 0, "active": 0, "inactive": 0, "by_role": {}}
            for role, is_active, count in result.all():
                stats["total"] += count
                stats["active" if is_active else "inactive"] += count
                key = getattr(role, "value", role)
                stats["by_role"][key] = stats["by_role"].get(key, 0) + count
            return stats
        except Exception as e:
            wrap_unexpected(e, "compute user statistics")

    async def search_users(self, db: AsyncSession, q: str, limit: int = 10) -> List[User]:
        try:
            clause = search_filter(q, User.name, User.email, User.phone)
            if clause is None:
                return []
            result = await db.execute(
                select(User)
                .where(User.is_active.is_(True), clause)
                .order_by(User.name)
                .limit(limit)
            )
            return list(result.scalars().all())
        except Exception as e:
            wrap_unexpected(e, "search users")

    async def get_clinic_users(self, db: AsyncSession, clinic_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Members of a clinic, each as the user's columns plus access_role and granted_at."""
        try:
            result = await db.execute(
                select(ClinicAccess)
                .where(ClinicAccess.clinic_id == clinic_id)
                .order_by(ClinicAccess.granted_at)
            )
            members = []
            for access in result.scalars().all():
                user = access.user
                members.append({
                    "id": user.id,
                    "email": user.email,
                    "name": user.name,
                    "phone": user.phone,
                    "role": user.role,
                    "is_active": user.is_active,
                    "created_at": user.created_at,
                    "updated_at": user.updated_at,
                    "access_role": access.access_role,
                    "granted_at": access.granted_at,
                })
            return members
        except Exception as e:
            wrap_unexpected(e, "list clinic users", clinic_id=clinic_id)


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()
