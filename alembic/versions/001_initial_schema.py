"""Create users, districts, schools, and import_jobs tables.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "districts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("nces_id", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=True),
        sa.Column("state", sa.Text, nullable=True),
        sa.Column("state_name", sa.Text, nullable=True),
        sa.Column("state_lea_id", sa.Text, nullable=True),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("city", sa.Text, nullable=True),
        sa.Column("zip", sa.Text, nullable=True),
        sa.Column("zip4", sa.Text, nullable=True),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("website", sa.Text, nullable=True),
        sa.Column("lea_type", sa.Text, nullable=True),
        sa.Column("lea_type_text", sa.Text, nullable=True),
        sa.Column("charter_lea", sa.Text, nullable=True),
        sa.Column("operational_status", sa.Text, nullable=True),
        sa.Column("operational_status_text", sa.Text, nullable=True),
        sa.Column("lowest_grade", sa.Text, nullable=True),
        sa.Column("highest_grade", sa.Text, nullable=True),
        sa.Column("operational_schools", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    # Unique index is the ON CONFLICT target for district upserts
    op.create_index("ix_districts_nces_id", "districts", ["nces_id"], unique=True)
    op.create_index("ix_districts_state", "districts", ["state"])

    op.create_table(
        "schools",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("nces_id", sa.Text, nullable=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("state", sa.Text, nullable=True),
        sa.Column("city", sa.Text, nullable=True),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("zip", sa.Text, nullable=True),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("website", sa.Text, nullable=True),
        sa.Column("level", sa.Text, nullable=True),
        sa.Column("school_type", sa.Text, nullable=True),
        sa.Column("operational_status", sa.Text, nullable=True),
        sa.Column("county", sa.Text, nullable=True),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("school_year", sa.Text, nullable=True),
        sa.Column("sy_status", sa.Text, nullable=True),
        sa.Column("charter_status", sa.Text, nullable=True),
        sa.Column("magnet_status", sa.Text, nullable=True),
        sa.Column("virtual_status", sa.Text, nullable=True),
        sa.Column("title1_status", sa.Text, nullable=True),
        sa.Column(
            "district_id",
            UUID(as_uuid=True),
            sa.ForeignKey("districts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("lea_id", sa.Text, nullable=True),
        sa.Column("import_job_id", UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_schools_nces_id", "schools", ["nces_id"])
    op.create_index("ix_schools_state", "schools", ["state"])
    op.create_index("ix_schools_district_id", "schools", ["district_id"])
    op.create_index("ix_schools_import_job_id", "schools", ["import_job_id"])

    op.create_table(
        "import_jobs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("format_label", sa.String(20), nullable=True),
        sa.Column("total_rows", sa.Integer, nullable=True),
        sa.Column("total_batches", sa.Integer, nullable=True),
        sa.Column("rows_inserted", sa.Integer, nullable=False, server_default="0"),
        sa.Column("districts_processed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("batches_processed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("errors", sa.Integer, nullable=False, server_default="0"),
        sa.Column("scientific_notation_fixed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status_breakdown", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("state_breakdown", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("triggered_by", UUID(as_uuid=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_import_jobs_file_type", "import_jobs", ["file_type"])
    op.create_index("ix_import_jobs_status", "import_jobs", ["status"])
    op.create_index("ix_import_jobs_created_at", "import_jobs", ["created_at"])


def downgrade() -> None:
    op.drop_table("import_jobs")
    op.drop_table("schools")
    op.drop_table("districts")
    op.drop_table("users")
