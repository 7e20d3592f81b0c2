"""promotion workflow: roster, requests, steps, history, audit

Revision ID: 3a9e4c2b7d10
Revises:
Create Date: 2026-10-19 09:12:41.518302
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3a9e4c2b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

OPEN_SUBJECT_WHERE = sa.text("status IN ('pending_approval', 'active')")


def _table_exists(bind, name: str) -> bool:
    insp = sa.inspect(bind)
    return name in insp.get_table_names()


def _index_exists(bind, table: str, name: str) -> bool:
    insp = sa.inspect(bind)
    for ix in insp.get_indexes(table_name=table):
        if ix.get("name") in {name, op.f(name)}:
            return True
    return False


def upgrade() -> None:
    """Create required tables/indexes if they don't already exist."""
    bind = op.get_bind()

    # ---- ROSTER ----
    if not _table_exists(bind, "org_units"):
        op.create_table(
            "org_units",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("kind", sa.String(length=16), nullable=False),
            sa.Column("parent_id", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["parent_id"], ["org_units.id"], name=op.f("org_units_parent_id_fkey")),
            sa.PrimaryKeyConstraint("id", name=op.f("org_units_pkey")),
        )
    if not _table_exists(bind, "members"):
        op.create_table(
            "members",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("unit_id", sa.Integer(), nullable=True),
            sa.Column("position", sa.String(length=32), nullable=True),
            sa.Column("current_role", sa.String(length=255), nullable=True),
            sa.Column("active_training_role_id", sa.String(length=64), nullable=True),
            sa.ForeignKeyConstraint(["unit_id"], ["org_units.id"], name=op.f("members_unit_id_fkey")),
            sa.PrimaryKeyConstraint("id", name=op.f("members_pkey")),
        )
    if not _index_exists(bind, "members", "ix_members_unit_id"):
        op.create_index(op.f("ix_members_unit_id"), "members", ["unit_id"], unique=False)
    if not _index_exists(bind, "members", "ix_members_position"):
        op.create_index(op.f("ix_members_position"), "members", ["position"], unique=False)

    # ---- PROMOTION REQUESTS ----
    if not _table_exists(bind, "promotion_requests"):
        op.create_table(
            "promotion_requests",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("subject_id", sa.Integer(), nullable=False),
            sa.Column("subject_name", sa.String(length=255), nullable=False),
            sa.Column("subject_unit_id", sa.Integer(), nullable=True),
            sa.Column("subject_unit_name", sa.String(length=255), nullable=True),
            sa.Column("subject_regional_unit_id", sa.Integer(), nullable=True),
            sa.Column("subject_current_role", sa.String(length=255), nullable=True),
            sa.Column("target_role_id", sa.String(length=64), nullable=False),
            sa.Column("target_tier", sa.String(length=32), nullable=False),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("duration_months", sa.Integer(), nullable=False),
            sa.Column("expected_end_date", sa.Date(), nullable=False),
            sa.Column("requested_by", sa.Integer(), nullable=False),
            sa.Column("requested_by_name", sa.String(length=255), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False),
            sa.Column("outcome", sa.String(length=64), nullable=True),
            sa.Column("closing_note", sa.Text(), nullable=True),
            sa.Column("closed_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.Column("decided_at", sa.DateTime(), nullable=True),
            sa.Column("closed_at", sa.DateTime(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["subject_id"], ["members.id"], name=op.f("promotion_requests_subject_id_fkey")),
            sa.PrimaryKeyConstraint("id", name=op.f("promotion_requests_pkey")),
        )
    if not _index_exists(bind, "promotion_requests", "ix_promotion_requests_subject_id"):
        op.create_index(op.f("ix_promotion_requests_subject_id"), "promotion_requests", ["subject_id"], unique=False)
    if not _index_exists(bind, "promotion_requests", "ix_promotion_requests_status"):
        op.create_index(op.f("ix_promotion_requests_status"), "promotion_requests", ["status"], unique=False)
    if not _index_exists(bind, "promotion_requests", "ix_promotion_requests_subject_regional_unit_id"):
        op.create_index(
            op.f("ix_promotion_requests_subject_regional_unit_id"),
            "promotion_requests", ["subject_regional_unit_id"], unique=False,
        )
    # at most one pending/active request per subject
    if not _index_exists(bind, "promotion_requests", "uq_promotion_requests_open_subject"):
        op.create_index(
            "uq_promotion_requests_open_subject",
            "promotion_requests", ["subject_id"], unique=True,
            sqlite_where=OPEN_SUBJECT_WHERE,
            postgresql_where=OPEN_SUBJECT_WHERE,
        )

    # ---- APPROVAL STEPS ----
    if not _table_exists(bind, "approval_steps"):
        op.create_table(
            "approval_steps",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("request_id", sa.Integer(), nullable=False),
            sa.Column("level", sa.Integer(), nullable=False),
            sa.Column("approver_role", sa.String(length=32), nullable=False),
            sa.Column("approver_actor_id", sa.Integer(), nullable=True),
            sa.Column("approver_name", sa.String(length=255), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False),
            sa.Column("decided_at", sa.DateTime(), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            sa.Column("decided_by_escalation", sa.Boolean(), nullable=False),
            sa.Column("escalation_actor_id", sa.Integer(), nullable=True),
            sa.Column("escalation_justification", sa.Text(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["request_id"], ["promotion_requests.id"], name=op.f("approval_steps_request_id_fkey")),
            sa.PrimaryKeyConstraint("id", name=op.f("approval_steps_pkey")),
            sa.UniqueConstraint("request_id", "level", name="uq_approval_steps_request_level"),
        )
    if not _index_exists(bind, "approval_steps", "ix_approval_steps_request_id"):
        op.create_index(op.f("ix_approval_steps_request_id"), "approval_steps", ["request_id"], unique=False)
    if not _index_exists(bind, "approval_steps", "ix_approval_steps_approver_actor_id"):
        op.create_index(op.f("ix_approval_steps_approver_actor_id"), "approval_steps", ["approver_actor_id"], unique=False)

    # ---- PROBATION HISTORY ----
    if not _table_exists(bind, "probation_history"):
        op.create_table(
            "probation_history",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("subject_id", sa.Integer(), nullable=False),
            sa.Column("request_id", sa.Integer(), nullable=False),
            sa.Column("target_role_id", sa.String(length=64), nullable=True),
            sa.Column("closing_type", sa.String(length=64), nullable=False),
            sa.Column("observation", sa.Text(), nullable=True),
            sa.Column("closed_by", sa.Integer(), nullable=True),
            sa.Column("closed_by_name", sa.String(length=255), nullable=True),
            sa.Column("closed_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id", name=op.f("probation_history_pkey")),
        )
    if not _index_exists(bind, "probation_history", "ix_probation_history_subject_id"):
        op.create_index(op.f("ix_probation_history_subject_id"), "probation_history", ["subject_id"], unique=False)
    if not _index_exists(bind, "probation_history", "ix_probation_history_request_id"):
        op.create_index(op.f("ix_probation_history_request_id"), "probation_history", ["request_id"], unique=False)

    # ---- AUDIT LOG ----
    if not _table_exists(bind, "audit_log"):
        op.create_table(
            "audit_log",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("action", sa.String(length=128), nullable=True),
            sa.Column("request_id", sa.Integer(), nullable=True),
            sa.Column("subject_id", sa.Integer(), nullable=True),
            sa.Column("actor", sa.String(length=255), nullable=True),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id", name=op.f("audit_log_pkey")),
        )
    for col in ("action", "request_id", "subject_id"):
        if not _index_exists(bind, "audit_log", f"ix_audit_log_{col}"):
            op.create_index(op.f(f"ix_audit_log_{col}"), "audit_log", [col], unique=False)


def downgrade() -> None:
    """Drop the same objects (guarded) to roll back this revision."""
    # Drop in reverse dependency order
    op.execute("DROP TABLE IF EXISTS audit_log")
    op.execute("DROP TABLE IF EXISTS probation_history")
    op.execute("DROP TABLE IF EXISTS approval_steps")
    op.execute("DROP INDEX IF EXISTS uq_promotion_requests_open_subject")
    op.execute("DROP TABLE IF EXISTS promotion_requests")
    op.execute("DROP TABLE IF EXISTS members")
    op.execute("DROP TABLE IF EXISTS org_units")
