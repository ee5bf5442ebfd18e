"""accreditation projects, records, history and scan log

Revision ID: 20261017_01
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "accreditation_projects",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("bump_in_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("bump_in_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("live_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("live_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("bump_out_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("bump_out_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("access_groups", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_accreditation_projects_code", "accreditation_projects", ["code"], unique=True)

    op.create_table(
        "accreditations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("accreditation_number", sa.String(length=32), nullable=False),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("accreditation_projects.id"), nullable=False),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.Column("organization", sa.String(length=256), nullable=False),
        sa.Column("job_title", sa.String(length=256), nullable=False),
        sa.Column("access_group", sa.String(length=128), nullable=False),
        sa.Column("qid_number", sa.String(length=11), nullable=True),
        sa.Column("qid_expiry", sa.Date(), nullable=True),
        sa.Column("passport_number", sa.String(length=32), nullable=True),
        sa.Column("passport_country", sa.String(length=64), nullable=True),
        sa.Column("passport_expiry", sa.Date(), nullable=True),
        sa.Column("hayya_visa_number", sa.String(length=64), nullable=True),
        sa.Column("hayya_visa_expiry", sa.Date(), nullable=True),
        sa.Column("has_bump_in_access", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("bump_in_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bump_in_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("has_live_access", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("live_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("live_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("has_bump_out_access", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("bump_out_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bump_out_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="DRAFT"),
        sa.Column("qr_token", sa.String(length=64), nullable=True),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("submitted_by", sa.String(length=128), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(length=128), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(length=128), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(length=1024), nullable=True),
        sa.Column("revoked_by", sa.String(length=128), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revocation_reason", sa.String(length=1024), nullable=True),
        sa.UniqueConstraint("qr_token", name="uq_accreditations_qr_token"),
    )
    op.create_index(
        "ix_accreditations_accreditation_number", "accreditations", ["accreditation_number"], unique=True
    )
    op.create_index("ix_accreditations_project_id", "accreditations", ["project_id"])
    op.create_index("ix_accreditations_organization", "accreditations", ["organization"])
    op.create_index("ix_accreditations_qid_number", "accreditations", ["qid_number"])
    op.create_index("ix_accreditations_passport_number", "accreditations", ["passport_number"])
    op.create_index("ix_accreditations_status", "accreditations", ["status"])

    op.create_table(
        "accreditation_history",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("accreditation_id", sa.String(length=36), sa.ForeignKey("accreditations.id"), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("old_status", sa.String(length=16), nullable=True),
        sa.Column("new_status", sa.String(length=16), nullable=True),
        sa.Column("notes", sa.String(length=1024), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("performed_by", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_accreditation_history_accreditation_id", "accreditation_history", ["accreditation_id"])

    op.create_table(
        "accreditation_scans",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("accreditation_id", sa.String(length=36), sa.ForeignKey("accreditations.id"), nullable=False),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("was_valid", sa.Boolean(), nullable=False),
        sa.Column("valid_phases", sa.JSON(), nullable=False),
        sa.Column("reason", sa.String(length=32), nullable=False),
        sa.Column("scanned_by", sa.String(length=128), nullable=True),
        sa.Column("device", sa.String(length=512), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("location", sa.String(length=256), nullable=True),
        sa.Column("notes", sa.String(length=1024), nullable=True),
    )
    op.create_index("ix_accreditation_scans_accreditation_id", "accreditation_scans", ["accreditation_id"])
    op.create_index("ix_accreditation_scans_scanned_at", "accreditation_scans", ["scanned_at"])
    op.create_index("ix_accreditation_scans_was_valid", "accreditation_scans", ["was_valid"])


def downgrade() -> None:
    op.drop_table("accreditation_scans")
    op.drop_table("accreditation_history")
    op.drop_table("accreditations")
    op.drop_table("accreditation_projects")
