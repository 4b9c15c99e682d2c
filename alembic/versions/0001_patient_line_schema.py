"""patient line schema

Revision ID: 0001_patient_line_schema
Revises: 
Create Date: 2026-10-17

"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_patient_line_schema"
down_revision = None
branch_labels = None
depends_on = None


def _user_fk() -> sa.Column:
    return sa.Column(
        "user_id",
        sa.Integer(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=32), nullable=False),
        sa.Column("password", sa.String(length=64), nullable=False),
        sa.Column("phone_number", sa.String(length=32), nullable=True, unique=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("date_of_birth", sa.String(length=16), nullable=True),
        sa.Column("allergies", sa.Text(), nullable=True),
        sa.Column("conditions", sa.Text(), nullable=True),
        sa.Column("medications", sa.Text(), nullable=True),
        sa.Column("last_visit", sa.String(length=16), nullable=True),
        sa.Column("primary_doctor", sa.String(length=128), nullable=True),
    )
    op.create_index("ix_users_user_id", "users", ["user_id"], unique=True)

    op.create_table(
        "medical_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        _user_fk(),
        sa.Column("date", sa.String(length=16), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("doctor", sa.String(length=128), nullable=False),
    )
    op.create_index("ix_medical_history_user_id", "medical_history", ["user_id"], unique=False)

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        _user_fk(),
        sa.Column("doctor", sa.String(length=128), nullable=False),
        sa.Column("date", sa.String(length=64), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
    )
    op.create_index("ix_appointments_user_id", "appointments", ["user_id"], unique=False)

    op.create_table(
        "emails",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        _user_fk(),
        sa.Column("doctor", sa.String(length=128), nullable=False),
        sa.Column("subject", sa.String(length=256), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
    )
    op.create_index("ix_emails_user_id", "emails", ["user_id"], unique=False)

    op.create_table(
        "calls",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        _user_fk(),
        sa.Column("transcript", sa.Text(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_calls_user_id", "calls", ["user_id"], unique=False)
    op.create_index("ix_calls_date", "calls", ["date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_calls_date", table_name="calls")
    op.drop_index("ix_calls_user_id", table_name="calls")
    op.drop_table("calls")

    op.drop_index("ix_emails_user_id", table_name="emails")
    op.drop_table("emails")

    op.drop_index("ix_appointments_user_id", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("ix_medical_history_user_id", table_name="medical_history")
    op.drop_table("medical_history")

    op.drop_index("ix_users_user_id", table_name="users")
    op.drop_table("users")
