"""
VetPintar Backend — Demo Data Seeder
======================================

What:  Fills an empty database with a demo clinic to click through.
How:   `python -m vetpintar.seed [--reset]` from the backend/ directory.
       Every row is looked up by a natural key first, so running the seeder
       twice changes nothing.

Created:
    superadmin@vetpintar.id   SUPER_ADMIN
    owner@vetpintar.id        OWNER of "Klinik Hewan Sehat"
    dokter@vetpintar.id       VETERINARIAN (clinic access VETERINARIAN)
    customer@vetpintar.id     CUSTOMER, owner of two patients
    products (one below its stock alert) and one appointment tomorrow

All demo accounts share the password printed at the end.
"""

import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import vetpintar.models  # noqa: F401
from vetpintar.database import Base, async_session_factory, dispose_engine, engine
from vetpintar.models.appointment import Appointment
from vetpintar.models.clinic import Clinic, ClinicAccess
from vetpintar.models.enums import AccessRole, PatientGender, ProductCategory, UserRole
from vetpintar.models.mixins import utcnow
from vetpintar.models.patient import Patient
from vetpintar.models.product import Product
from vetpintar.models.user import User
from vetpintar.security import hash_password

logger = logging.getLogger("vetpintar.seed")

DEMO_PASSWORD = "Password123!"
DEMO_CLINIC = "Klinik Hewan Sehat"


async def _get_or_create_user(db: AsyncSession, email: str, name: str, role: UserRole) -> User:
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        user = User(email=email, name=name, role=role, password_hash=hash_password(DEMO_PASSWORD))
        db.add(user)
        await db.flush()
        logger.info("Created user %s (%s)", email, role.value)
    return user


async def _grant(db: AsyncSession, user: User, clinic: Clinic, role: AccessRole) -> None:
    existing = await db.execute(
        select(ClinicAccess).where(
            ClinicAccess.user_id == user.id, ClinicAccess.clinic_id == clinic.id
        )
    )
    if existing.scalar_one_or_none() is None:
        db.add(ClinicAccess(user_id=user.id, clinic_id=clinic.id, access_role=role))
        await db.flush()


async def _get_or_create_patient(
    db: AsyncSession, clinic: Clinic, owner: User, name: str, species: str, **fields
) -> Patient:
    patient = (await db.execute(
        select(Patient).where(
            Patient.clinic_id == clinic.id, Patient.owner_id == owner.id, Patient.name == name
        )
    )).scalar_one_or_none()
    if patient is None:
        patient = Patient(clinic_id=clinic.id, owner_id=owner.id, name=name, species=species, **fields)
        db.add(patient)
        await db.flush()
        logger.info("Created patient %s (%s)", name, species)
    return patient


async def _get_or_create_product(db: AsyncSession, clinic: Clinic, sku: str, **fields) -> Product:
    product = (await db.execute(
        select(Product).where(Product.clinic_id == clinic.id, Product.sku == sku)
    )).scalar_one_or_none()
    if product is None:
        product = Product(clinic_id=clinic.id, sku=sku, **fields)
        db.add(product)
        await db.flush()
        logger.info("Created product %s", sku)
    return product


async def seed(db: AsyncSession) -> None:
    await _get_or_create_user(db, "superadmin@vetpintar.id", "Super Admin", UserRole.SUPER_ADMIN)
    owner = await _get_or_create_user(db, "owner@vetpintar.id", "Budi Santoso", UserRole.OWNER)
    vet = await _get_or_create_user(db, "dokter@vetpintar.id", "drh. Sari Wulandari", UserRole.VETERINARIAN)
    customer = await _get_or_create_user(db, "customer@vetpintar.id", "Andi Pratama", UserRole.CUSTOMER)

    clinic: Optional[Clinic] = (
        await db.execute(select(Clinic).where(Clinic.name == DEMO_CLINIC))
    ).scalar_one_or_none()
    if clinic is None:
        clinic = Clinic(
            name=DEMO_CLINIC,
            email="halo@klinikhewansehat.id",
            phone="021-5550123",
            address="Jl. Kemang Raya No. 10",
            city="Jakarta Selatan",
            province="DKI Jakarta",
            postal_code="12730",
        )
        db.add(clinic)
        await db.flush()
        logger.info("Created clinic %s", DEMO_CLINIC)

    await _grant(db, owner, clinic, AccessRole.OWNER)
    await _grant(db, vet, clinic, AccessRole.VETERINARIAN)
    await _grant(db, customer, clinic, AccessRole.VIEWER)

    milo = await _get_or_create_patient(
        db, clinic, customer, "Milo", "Cat",
        breed="Persian", gender=PatientGender.MALE, color="White",
    )
    await _get_or_create_patient(
        db, clinic, customer, "Bruno", "Dog",
        breed="Golden Retriever", gender=PatientGender.MALE, color="Golden",
    )

    today = utcnow().date()
    await _get_or_create_product(
        db, clinic, "MED-DEMO-0001",
        name="Amoxicillin 250mg", category=ProductCategory.MEDICINE, unit="tablet",
        price=Decimal("5000.00"), stock_quantity=200, min_stock_alert=20,
        expiry_date=today + timedelta(days=365),
    )
    await _get_or_create_product(
        db, clinic, "VAC-DEMO-0001",
        name="Rabies Vaccine", category=ProductCategory.VACCINE, unit="vial",
        price=Decimal("150000.00"), stock_quantity=3, min_stock_alert=5,
        expiry_date=today + timedelta(days=20),
    )
    await _get_or_create_product(
        db, clinic, "FOO-DEMO-0001",
        name="Royal Canin Kitten 2kg", category=ProductCategory.FOOD, unit="pack",
        price=Decimal("285000.00"), stock_quantity=40, min_stock_alert=10,
    )

    tomorrow = today + timedelta(days=1)
    appointment = (await db.execute(
        select(Appointment).where(
            Appointment.patient_id == milo.id, Appointment.appointment_date == tomorrow
        )
    )).scalar_one_or_none()
    if appointment is None:
        db.add(Appointment(
            clinic_id=clinic.id,
            patient_id=milo.id,
            veterinarian_id=vet.id,
            appointment_date=tomorrow,
            appointment_time="10:00",
            duration=30,
            type="Vaccination",
            reason="Annual vaccination",
        ))
        await db.flush()
        logger.info("Created appointment for Milo on %s", tomorrow)


async def main(reset: bool = False) -> None:
    async with engine.begin() as conn:
        if reset:
            logger.warning("Dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        try:
            await seed(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    await dispose_engine()
    logger.info("Seeding complete. Demo password for every account: %s", DEMO_PASSWORD)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the VetPintar database with demo data.")
    parser.add_argument(
        "--reset", action="store_true", help="drop and recreate all tables before seeding"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    asyncio.run(main(reset=args.reset))
