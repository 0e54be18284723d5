"""
Domain enumerations shared by models, schemas and services.

Stored as short strings (not native PostgreSQL ENUM types) so adding a
value needs no migration of the type itself.
"""

from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    OWNER = "OWNER"
    VETERINARIAN = "VETERINARIAN"
    STAFF = "STAFF"
    CUSTOMER = "CUSTOMER"
    GUEST = "GUEST"


class AccessRole(str, Enum):
    """Role a user holds inside one clinic (ClinicAccess.access_role)."""
    OWNER = "OWNER"
    VETERINARIAN = "VETERINARIAN"
    STAFF = "STAFF"
    VIEWER = "VIEWER"


class SubscriptionStatus(str, Enum):
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    SUSPENDED = "SUSPENDED"


class PatientGender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    UNKNOWN = "UNKNOWN"


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class RecordStatus(str, Enum):
    OUTPATIENT = "OUTPATIENT"
    INPATIENT = "INPATIENT"
    DISCHARGED = "DISCHARGED"
    REFERRED = "REFERRED"


class HospitalizationStatus(str, Enum):
    ADMITTED = "ADMITTED"
    DISCHARGED = "DISCHARGED"


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    PARTIAL = "PARTIAL"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    TRANSFER = "TRANSFER"
    CREDIT_CARD = "CREDIT_CARD"
    E_WALLET = "E_WALLET"
    XENDIT = "XENDIT"


class PaymentStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class ProductCategory(str, Enum):
    MEDICINE = "MEDICINE"
    FOOD = "FOOD"
    ACCESSORY = "ACCESSORY"
    SERVICE = "SERVICE"
    VACCINE = "VACCINE"
    CONSUMABLE = "CONSUMABLE"


class StockOperation(str, Enum):
    ADD = "ADD"
    SUBTRACT = "SUBTRACT"
    SET = "SET"


# Roles allowed to be assigned as the veterinarian of an appointment
VETERINARIAN_ROLES = (UserRole.VETERINARIAN, UserRole.ADMIN)

# Platform-level administrators
ADMIN_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN)
