"""initial ledger schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


ROLE = postgresql.ENUM("dentist", "reception", "superadmin", name="role_enum", create_type=False)
TREATMENT_CATEGORY = postgresql.ENUM(
    "preventive",
    "restorative",
    "endodontics",
    "periodontics",
    "orthodontics",
    "prosthodontics",
    "oral_surgery",
    "pediatric",
    "cosmetic",
    "diagnostic",
    name="treatment_category",
    create_type=False,
)
TOOTH_TYPE = postgresql.ENUM(
    "incisor", "canine", "premolar", "molar", name="tooth_type", create_type=False
)
TOOTH_CONDITION = postgresql.ENUM(
    "healthy",
    "caries",
    "filled",
    "crowned",
    "missing",
    "root_canal",
    "extracted",
    "bridge",
    "implant",
    "fracture",
    "sealant",
    "prosthesis",
    name="tooth_condition",
    create_type=False,
)
TOOTH_SURFACE = postgresql.ENUM(
    "mesial", "distal", "buccal", "lingual", "occlusal", name="tooth_surface", create_type=False
)
INVOICE_STATUS = postgresql.ENUM(
    "draft",
    "issued",
    "partially_paid",
    "paid",
    "cancelled",
    name="invoice_status",
    create_type=False,
)
PAYMENT_METHOD = postgresql.ENUM(
    "cash",
    "credit_card",
    "debit_card",
    "bank_transfer",
    "check",
    "other",
    name="payment_method",
    create_type=False,
)
ENUMS = (
    ROLE,
    TREATMENT_CATEGORY,
    TOOTH_TYPE,
    TOOTH_CONDITION,
    TOOTH_SURFACE,
    INVOICE_STATUS,
    PAYMENT_METHOD,
)


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("role", ROLE, nullable=False, server_default="reception"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("actor_email", sa.String(length=320), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])

    op.create_table(
        "patients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        *_audit_columns(),
    )

    op.create_table(
        "treatments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", TREATMENT_CATEGORY, nullable=False),
        sa.Column("default_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("is_global", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_audit_columns(),
    )
    op.create_index("ix_treatments_code", "treatments", ["code"], unique=True)

    op.create_table(
        "odontograms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("doctor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("examination_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("superseded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_audit_columns(),
    )
    op.create_index("ix_odontograms_patient_id", "odontograms", ["patient_id"])
    op.create_index(
        "uq_odontograms_current_patient",
        "odontograms",
        ["patient_id"],
        unique=True,
        postgresql_where=sa.text("is_current"),
    )

    op.create_table(
        "tooth_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("odontogram_id", sa.Integer(), sa.ForeignKey("odontograms.id"), nullable=False),
        sa.Column("tooth_number", sa.Integer(), nullable=False),
        sa.Column("tooth_type", TOOTH_TYPE, nullable=False),
        sa.Column("condition", TOOTH_CONDITION, nullable=False, server_default="healthy"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("odontogram_id", "tooth_number"),
        sa.CheckConstraint("tooth_number BETWEEN 1 AND 32", name="ck_tooth_records_number_range"),
    )
    op.create_index("ix_tooth_records_odontogram_id", "tooth_records", ["odontogram_id"])

    op.create_table(
        "tooth_surfaces",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tooth_record_id", sa.Integer(), sa.ForeignKey("tooth_records.id"), nullable=False),
        sa.Column("surface", TOOTH_SURFACE, nullable=False),
        sa.Column("condition", TOOTH_CONDITION, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("tooth_record_id", "surface"),
    )
    op.create_index("ix_tooth_surfaces_tooth_record_id", "tooth_surfaces", ["tooth_record_id"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("invoice_number", sa.String(length=32), nullable=True),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("odontogram_id", sa.Integer(), sa.ForeignKey("odontograms.id"), nullable=False),
        sa.Column("issued_date", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("status", INVOICE_STATUS, nullable=False, server_default="issued"),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("tax_rate", sa.Numeric(6, 4), nullable=False, server_default="0"),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_invoices_invoice_number", "invoices", ["invoice_number"], unique=True)
    op.create_index("ix_invoices_patient_id", "invoices", ["patient_id"])
    op.create_index("ix_invoices_odontogram_id", "invoices", ["odontogram_id"])
    op.create_index("ix_invoices_issued_date", "invoices", ["issued_date"])
    op.create_index("ix_invoices_due_date", "invoices", ["due_date"])
    op.create_index("ix_invoices_status", "invoices", ["status"])

    op.create_table(
        "tooth_treatment_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("odontogram_id", sa.Integer(), sa.ForeignKey("odontograms.id"), nullable=False),
        sa.Column("tooth_record_id", sa.Integer(), sa.ForeignKey("tooth_records.id"), nullable=True),
        sa.Column("treatment_code", sa.String(length=50), nullable=False),
        sa.Column("treatment_name", sa.String(length=200), nullable=False),
        sa.Column("treatment_category", TREATMENT_CATEGORY, nullable=False),
        sa.Column("doctor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("doctor_name", sa.String(length=200), nullable=False),
        sa.Column("performed_date", sa.Date(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("surfaces_affected", sa.String(length=64), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint("price >= 0", name="ck_tooth_treatment_records_price"),
    )
    op.create_index(
        "ix_tooth_treatment_records_odontogram_id", "tooth_treatment_records", ["odontogram_id"]
    )
    op.create_index(
        "ix_tooth_treatment_records_tooth_record_id", "tooth_treatment_records", ["tooth_record_id"]
    )
    op.create_index(
        "ix_tooth_treatment_records_invoice_id", "tooth_treatment_records", ["invoice_id"]
    )

    op.create_table(
        "invoice_lines",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column(
            "treatment_record_id",
            sa.Integer(),
            sa.ForeignKey("tooth_treatment_records.id"),
            nullable=False,
        ),
        sa.Column("treatment_code", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("tooth_number", sa.Integer(), nullable=True),
        sa.Column("is_global", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
    )
    op.create_index("ix_invoice_lines_invoice_id", "invoice_lines", ["invoice_id"])
    op.create_index(
        "ix_invoice_lines_treatment_record_id", "invoice_lines", ["treatment_record_id"]
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("method", PAYMENT_METHOD, nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reference", sa.String(length=120), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("received_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )
    op.create_index("ix_payments_invoice_id", "payments", ["invoice_id"])


def downgrade() -> None:
    op.drop_index("ix_payments_invoice_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_invoice_lines_treatment_record_id", table_name="invoice_lines")
    op.drop_index("ix_invoice_lines_invoice_id", table_name="invoice_lines")
    op.drop_table("invoice_lines")
    op.drop_index("ix_tooth_treatment_records_invoice_id", table_name="tooth_treatment_records")
    op.drop_index("ix_tooth_treatment_records_tooth_record_id", table_name="tooth_treatment_records")
    op.drop_index("ix_tooth_treatment_records_odontogram_id", table_name="tooth_treatment_records")
    op.drop_table("tooth_treatment_records")
    for index in (
        "ix_invoices_status",
        "ix_invoices_due_date",
        "ix_invoices_issued_date",
        "ix_invoices_odontogram_id",
        "ix_invoices_patient_id",
        "ix_invoices_invoice_number",
    ):
        op.drop_index(index, table_name="invoices")
    op.drop_table("invoices")
    op.drop_index("ix_tooth_surfaces_tooth_record_id", table_name="tooth_surfaces")
    op.drop_table("tooth_surfaces")
    op.drop_index("ix_tooth_records_odontogram_id", table_name="tooth_records")
    op.drop_table("tooth_records")
    op.drop_index("uq_odontograms_current_patient", table_name="odontograms")
    op.drop_index("ix_odontograms_patient_id", table_name="odontograms")
    op.drop_table("odontograms")
    op.drop_index("ix_treatments_code", table_name="treatments")
    op.drop_table("treatments")
    op.drop_table("patients")
    op.drop_index("ix_audit_logs_entity_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_entity_type", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)
