"""Initial schema: users, projects, columns, tasks and the append-only activity log.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_fk(name: str, target: str, *, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    ]


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _uuid_fk("owner_id", "users.id"),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_projects_owner_id", "projects", ["owner_id"])

    op.create_table(
        "project_members",
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("joined_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_project_members_user_id", "project_members", ["user_id"])

    # Positions are dense per container but deliberately not UNIQUE: the
    # reindexing shifts pass through transient duplicates inside one statement.
    op.create_table(
        "columns",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _uuid_fk("project_id", "projects.id"),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("wip_limit", sa.Integer(), nullable=True),
        sa.Column("color", sa.Text(), nullable=False, server_default="#6366f1"),
        *_timestamps(),
        sa.CheckConstraint("position >= 0", name="columns_position_non_negative"),
    )
    op.create_index("ix_columns_project_position", "columns", ["project_id", "position"])

    op.create_table(
        "tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _uuid_fk("project_id", "projects.id"),
        _uuid_fk("column_id", "columns.id"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("priority", sa.Text(), nullable=False, server_default="medium"),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        _uuid_fk("assignee_id", "users.id", nullable=True, ondelete="SET NULL"),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("labels", sa.JSON(), nullable=False, server_default="[]"),
        _uuid_fk("created_by", "users.id"),
        *_timestamps(),
        sa.CheckConstraint("position >= 0", name="tasks_position_non_negative"),
        sa.CheckConstraint(
            "priority IN ('low', 'medium', 'high', 'critical')", name="tasks_priority_valid"
        ),
    )
    op.create_index("ix_tasks_column_position", "tasks", ["column_id", "position"])
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
    op.create_index("ix_tasks_due_date", "tasks", ["due_date"])

    op.create_table(
        "subtasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _uuid_fk("task_id", "tasks.id"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_subtasks_task_id", "subtasks", ["task_id"])

    op.create_table(
        "comments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _uuid_fk("task_id", "tasks.id"),
        _uuid_fk("user_id", "users.id"),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_comments_task_id", "comments", ["task_id"])

    op.create_table(
        "attachments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _uuid_fk("task_id", "tasks.id"),
        _uuid_fk("user_id", "users.id"),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("storage_key", sa.Text(), nullable=False, unique=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_attachments_task_id", "attachments", ["task_id"])

    op.create_table(
        "activity_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _uuid_fk("project_id", "projects.id"),
        _uuid_fk("task_id", "tasks.id", nullable=True, ondelete="SET NULL"),
        _uuid_fk("user_id", "users.id"),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_activity_log_project_created", "activity_log", ["project_id", "created_at"])
    op.create_index("ix_activity_log_action", "activity_log", ["action"])

    # -----------------------------------------------------------------------
    # Activity immutability trigger
    # -----------------------------------------------------------------------
    # The only permitted UPDATE is the ON DELETE SET NULL of task_id.

    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_activity_mutation()
        RETURNS TRIGGER AS $$
        BEGIN
            IF OLD.task_id IS NOT NULL AND NEW.task_id IS NULL
               AND NEW.id = OLD.id
               AND NEW.project_id = OLD.project_id
               AND NEW.user_id = OLD.user_id
               AND NEW.action = OLD.action
               AND NEW.details::text = OLD.details::text
               AND NEW.created_at = OLD.created_at THEN
                RETURN NEW;
            END IF;
            RAISE EXCEPTION 'Activity log entries are immutable.';
        END;
        $$ LANGUAGE plpgsql
    """)
    op.execute("""
        CREATE TRIGGER activity_log_immutable
        BEFORE UPDATE ON activity_log
        FOR EACH ROW EXECUTE FUNCTION prevent_activity_mutation()
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS activity_log_immutable ON activity_log")
    op.execute("DROP FUNCTION IF EXISTS prevent_activity_mutation()")

    op.drop_table("activity_log")
    op.drop_table("attachments")
    op.drop_table("comments")
    op.drop_table("subtasks")
    op.drop_table("tasks")
    op.drop_table("columns")
    op.drop_table("project_members")
    op.drop_table("projects")
    op.drop_table("users")
