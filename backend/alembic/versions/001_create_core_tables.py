"""Create core tables

Revision ID: 001
Revises: None
Create Date: 2025-01-15 00:00:00.000000+00:00

What:  Creates every table of the clinic schema: users, clinics,
       clinic_accesses, patients, appointments, medical_records,
       hospitalizations, products, invoices, invoice_items, payments.
How:   UUID primary keys (gen_random_uuid, PostgreSQL 13+), TIMESTAMP WITH
       TIME ZONE audit columns, enums stored as VARCHAR(20).

Rollback: downgrade() drops every table (destructive — all data lost).
"""

from typing import List, Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamps() -> List[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def _fk(name: str, target: str, nullable: bool = False, ondelete: str = None) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _flag(name: str, default: str) -> sa.Column:
    return sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.text(default))


def _money(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable)


def upgrade() -> None:
    # ── Accounts and tenancy ──────────────────────────────────────────────
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, comment="Login identifier, stored lower-cased"),
        sa.Column("password_hash", sa.String(255), nullable=False, comment="bcrypt hash (passlib)"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'CUSTOMER'")),
        _flag("is_active", "true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("idx_users_role", "users", ["role"])
    op.create_index("idx_users_is_active", "users", ["is_active"])

    op.create_table(
        "clinics",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("province", sa.String(100), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
        sa.Column("logo_url", sa.String(500), nullable=True),
        sa.Column(
            "subscription_status", sa.String(20), nullable=False, server_default=sa.text("'TRIAL'")
        ),
        _flag("is_active", "true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_clinics_city", "clinics", ["city"])
    op.create_index("idx_clinics_is_active", "clinics", ["is_active"])

    op.create_table(
        "clinic_accesses",
        _id(),
        _fk("user_id", "users.id", ondelete="CASCADE"),
        _fk("clinic_id", "clinics.id", ondelete="CASCADE"),
        sa.Column("access_role", sa.String(20), nullable=False),
        sa.Column(
            "granted_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        # One role per user per clinic
        sa.UniqueConstraint("user_id", "clinic_id", name="uq_clinic_accesses_user_clinic"),
    )
    op.create_index("idx_clinic_accesses_clinic_id", "clinic_accesses", ["clinic_id"])

    # ── Clinical data ─────────────────────────────────────────────────────
    op.create_table(
        "patients",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("species", sa.String(100), nullable=False),
        sa.Column("breed", sa.String(100), nullable=True),
        sa.Column("gender", sa.String(20), nullable=False, server_default=sa.text("'UNKNOWN'")),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("color", sa.String(100), nullable=True),
        sa.Column("microchip_id", sa.String(100), nullable=True),
        sa.Column("photo_url", sa.String(500), nullable=True),
        _fk("owner_id", "users.id"),
        _fk("clinic_id", "clinics.id"),
        _flag("is_active", "true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_patients_clinic_active", "patients", ["clinic_id", "is_active"])
    op.create_index("idx_patients_owner_id", "patients", ["owner_id"])
    op.create_index("idx_patients_clinic_microchip", "patients", ["clinic_id", "microchip_id"])

    op.create_table(
        "appointments",
        _id(),
        _fk("clinic_id", "clinics.id"),
        _fk("patient_id", "patients.id"),
        _fk("veterinarian_id", "users.id", nullable=True),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("appointment_time", sa.String(5), nullable=False, comment="Start time, HH:MM (24h)"),
        sa.Column("duration", sa.Integer(), nullable=False, server_default=sa.text("30")),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'SCHEDULED'")),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _flag("reminder_sent", "false"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_appointments_clinic_date", "appointments", ["clinic_id", "appointment_date"])
    # Serves the per-veterinarian overlap lookup
    op.create_index("idx_appointments_vet_date", "appointments", ["veterinarian_id", "appointment_date"])
    op.create_index("idx_appointments_patient_id", "appointments", ["patient_id"])

    op.create_table(
        "medical_records",
        _id(),
        _fk("patient_id", "patients.id"),
        _fk("veterinarian_id", "users.id"),
        _fk("clinic_id", "clinics.id"),
        sa.Column("visit_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("chief_complaint", sa.Text(), nullable=False),
        sa.Column("diagnosis", sa.Text(), nullable=True),
        sa.Column("treatment", sa.Text(), nullable=True),
        sa.Column("prescription", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("weight", sa.Numeric(6, 2), nullable=True, comment="Kilograms"),
        sa.Column("temperature", sa.Numeric(4, 1), nullable=True, comment="Degrees Celsius"),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'OUTPATIENT'")),
        _money("total_amount", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_medical_records_clinic_visit", "medical_records", ["clinic_id", "visit_date"])
    op.create_index("idx_medical_records_patient_id", "medical_records", ["patient_id"])
    op.create_index("idx_medical_records_veterinarian_id", "medical_records", ["veterinarian_id"])

    op.create_table(
        "hospitalizations",
        _id(),
        _fk("medical_record_id", "medical_records.id", ondelete="CASCADE"),
        sa.Column("admission_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("discharge_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("cage_number", sa.String(50), nullable=True),
        sa.Column("daily_notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'ADMITTED'")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_hospitalizations_record_status", "hospitalizations", ["medical_record_id", "status"]
    )

    # ── Inventory and billing ─────────────────────────────────────────────
    op.create_table(
        "products",
        _id(),
        _fk("clinic_id", "clinics.id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("unit", sa.String(50), nullable=True),
        _money("price"),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("min_stock_alert", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("sku", sa.String(100), nullable=True),
        sa.Column("barcode", sa.String(100), nullable=True),
        sa.Column("photo_url", sa.String(500), nullable=True),
        _flag("is_active", "true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_products_clinic_active", "products", ["clinic_id", "is_active"])
    op.create_index("idx_products_clinic_sku", "products", ["clinic_id", "sku"])
    op.create_index("idx_products_expiry_date", "products", ["expiry_date"])

    op.create_table(
        "invoices",
        _id(),
        sa.Column("invoice_number", sa.String(50), nullable=False),
        _fk("clinic_id", "clinics.id"),
        _fk("patient_id", "patients.id"),
        _fk("owner_id", "users.id"),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        _money("subtotal"),
        _money("tax_amount"),
        _money("discount_amount"),
        _money("total_amount"),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'DRAFT'")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("payment_method", sa.String(20), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
    )
    op.create_index("idx_invoices_clinic_issue", "invoices", ["clinic_id", "issue_date"])
    op.create_index("idx_invoices_clinic_status", "invoices", ["clinic_id", "status"])
    op.create_index("idx_invoices_patient_id", "invoices", ["patient_id"])

    op.create_table(
        "invoice_items",
        _id(),
        _fk("invoice_id", "invoices.id", ondelete="CASCADE"),
        _fk("product_id", "products.id", nullable=True),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("quantity", sa.Numeric(10, 2), nullable=False),
        _money("unit_price"),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        _money("total_price"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_invoice_items_invoice_id", "invoice_items", ["invoice_id"])
    op.create_index("idx_invoice_items_product_id", "invoice_items", ["product_id"])

    op.create_table(
        "payments",
        _id(),
        _fk("invoice_id", "invoices.id", ondelete="CASCADE"),
        _money("amount"),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'SUCCESS'")),
        sa.Column("payment_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_payments_invoice_id", "payments", ["invoice_id"])


def downgrade() -> None:
    """Drops every table, children first. All data is lost."""
    for table in (
        "payments",
        "invoice_items",
        "invoices",
        "products",
        "hospitalizations",
        "medical_records",
        "appointments",
        "patients",
        "clinic_accesses",
        "clinics",
        "users",
    ):
        op.drop_table(table)
