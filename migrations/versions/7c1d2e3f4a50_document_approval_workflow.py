"""document_approval_workflow

Create users, projects, project membership, documents, approval workflow
and document activity log tables.

Revision ID: 7c1d2e3f4a50
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7c1d2e3f4a50"
down_revision = None
branch_labels = None
depends_on = None

_ACTIVE_SQL = "overall_status IN ('pending', 'under-review')"


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=True),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    if "project_team" not in existing_tables:
        op.create_table(
            "project_team",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "user_id", name="uq_project_team_member"),
        )
        op.create_index("ix_project_team_project", "project_team", ["project_id"])

    if "project_managers" not in existing_tables:
        op.create_table(
            "project_managers",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "user_id", name="uq_project_manager"),
        )
        op.create_index("ix_project_managers_project", "project_managers", ["project_id"])

    if "documents" not in existing_tables:
        op.create_table(
            "documents",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("file_name", sa.String(length=300), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
            sa.Column("uploaded_by", sa.String(length=36), nullable=True),
            sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["uploaded_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_documents_project_id", "documents", ["project_id"])

    if "approval_workflows" not in existing_tables:
        op.create_table(
            "approval_workflows",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("document_id", sa.String(length=36), nullable=False),
            sa.Column("requested_by", sa.String(length=36), nullable=True),
            sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("total_steps", sa.Integer(), nullable=False),
            sa.Column("current_step", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("overall_status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("total_steps >= 1", name="ck_approval_workflow_total_steps"),
            sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["requested_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_approval_workflows_document_id", "approval_workflows", ["document_id"])
        op.create_index(
            "uq_approval_workflow_active",
            "approval_workflows",
            ["document_id"],
            unique=True,
            postgresql_where=sa.text(_ACTIVE_SQL),
            sqlite_where=sa.text(_ACTIVE_SQL),
        )

    if "approval_steps" not in existing_tables:
        op.create_table(
            "approval_steps",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("workflow_id", sa.String(length=36), nullable=False),
            sa.Column("approver_id", sa.String(length=36), nullable=False),
            sa.Column("step_order", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("viewed_document", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("step_order >= 1", name="ck_approval_step_order"),
            sa.ForeignKeyConstraint(["workflow_id"], ["approval_workflows.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["approver_id"], ["users.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("workflow_id", "step_order", name="uq_approval_step_order"),
        )
        op.create_index("ix_approval_steps_workflow_id", "approval_steps", ["workflow_id"])
        op.create_index("ix_approval_steps_approver_id", "approval_steps", ["approver_id"])

    if "document_logs" not in existing_tables:
        op.create_table(
            "document_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("document_id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=True),
            sa.Column("action", sa.String(length=40), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=False),
            sa.Column("details_json", sa.Text(), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_document_logs_document", "document_logs", ["document_id"])
        op.create_index("idx_document_logs_action", "document_logs", ["action"])
        op.create_index("idx_document_logs_ts", "document_logs", ["created_at"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in (
        "document_logs",
        "approval_steps",
        "approval_workflows",
        "documents",
        "project_managers",
        "project_team",
        "projects",
        "users",
    ):
        if table in existing_tables:
            op.drop_table(table)
