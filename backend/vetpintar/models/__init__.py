"""
ORM models. Importing this package registers every table on Base.metadata
(needed by Alembic autogenerate, relationship string resolution and the
seed CLI).
"""

from vetpintar.models.user import User
from vetpintar.models.clinic import Clinic, ClinicAccess
from vetpintar.models.patient import Patient
from vetpintar.models.appointment import Appointment
from vetpintar.models.medical_record import Hospitalization, MedicalRecord
from vetpintar.models.product import Product
from vetpintar.models.invoice import Invoice, InvoiceItem, Payment

__all__ = [
    "User",
    "Clinic",
    "ClinicAccess",
    "Patient",
    "Appointment",
    "MedicalRecord",
    "Hospitalization",
    "Product",
    "Invoice",
    "InvoiceItem",
    "Payment",
]
