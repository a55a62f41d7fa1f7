"""Initial schema: all tables.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    ]


def upgrade() -> None:
    # roles
    op.create_table(
        "roles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("description", sa.String(255), nullable=False, server_default=""),
        *_timestamps(),
    )
    op.create_index("ix_roles_name", "roles", ["name"])

    # users
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("subscription_plan", sa.String(20), nullable=False, server_default="free"),
        sa.Column(
            "subscription_status", sa.String(20), nullable=False, server_default="inactive"
        ),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column(
            "role_id",
            sa.String(36),
            sa.ForeignKey("roles.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_username", "users", ["username"])
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role_id", "users", ["role_id"])
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"])
    op.create_index("ix_users_stripe_customer_id", "users", ["stripe_customer_id"])
    op.create_index("ix_users_stripe_subscription_id", "users", ["stripe_subscription_id"])

    # company_profiles
    op.create_table(
        "company_profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("departments", sa.JSON, nullable=False),
        sa.Column("sectors", sa.JSON, nullable=False),
        sa.Column("custom_sectors", sa.JSON, nullable=False),
        sa.Column("company_size", sa.String(20), nullable=True),
        sa.Column("employee_count", sa.String(50), nullable=True),
        sa.Column("employee_count_type", sa.String(20), nullable=True),
        sa.Column("industry", sa.String(255), nullable=True),
        sa.Column("primary_contact", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("is_completed", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    # company_sectors
    op.create_table(
        "company_sectors",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_company_sectors_user_id", "company_sectors", ["user_id"])
    op.create_index("ix_company_sectors_is_active", "company_sectors", ["is_active"])

    # questionnaire_responses
    op.create_table(
        "questionnaire_responses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "sector_id",
            sa.String(36),
            sa.ForeignKey("company_sectors.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_complete", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("compliance_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "sector_id", name="uq_questionnaire_user_sector"),
    )
    op.create_index("ix_questionnaire_responses_user_id", "questionnaire_responses", ["user_id"])
    op.create_index(
        "ix_questionnaire_responses_sector_id", "questionnaire_responses", ["sector_id"]
    )

    # questionnaire_answers
    op.create_table(
        "questionnaire_answers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "response_id",
            sa.String(36),
            sa.ForeignKey("questionnaire_responses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("question_id", sa.Integer, nullable=False),
        sa.Column("answer", sa.JSON, nullable=True),
        sa.Column("observation", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("response_id", "question_id", name="uq_answer_response_question"),
    )
    op.create_index(
        "ix_questionnaire_answers_response_id", "questionnaire_answers", ["response_id"]
    )

    # compliance_tasks
    op.create_table(
        "compliance_tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "sector_id",
            sa.String(36),
            sa.ForeignKey("company_sectors.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("steps", sa.JSON, nullable=False),
        sa.Column("category", sa.String(100), nullable=False, server_default="documentation"),
        sa.Column("lgpd_requirement", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("severity", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("source_question_id", sa.Integer, nullable=True),
        sa.Column("is_auto_generated", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "reviewed_by",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("user_comments", sa.Text, nullable=True),
        sa.Column("admin_comments", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_compliance_tasks_user_id", "compliance_tasks", ["user_id"])
    op.create_index("ix_compliance_tasks_sector_id", "compliance_tasks", ["sector_id"])
    op.create_index("ix_compliance_tasks_status", "compliance_tasks", ["status"])

    # task_status_history
    op.create_table(
        "task_status_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "task_id",
            sa.String(36),
            sa.ForeignKey("compliance_tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_status", sa.String(20), nullable=True),
        sa.Column("to_status", sa.String(20), nullable=False),
        sa.Column("comments", sa.Text, nullable=True),
        sa.Column(
            "changed_by",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_task_status_history_task_id", "task_status_history", ["task_id"])

    # documents
    op.create_table(
        "documents",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False, server_default="general"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("filename", sa.String(500), nullable=False),
        sa.Column("original_filename", sa.String(500), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("file_size_bytes", sa.BigInteger, nullable=False),
        sa.Column("file_hash", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("review_notes", sa.Text, nullable=True),
        sa.Column(
            "reviewed_by",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "questionnaire_response_id",
            sa.String(36),
            sa.ForeignKey("questionnaire_responses.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "task_id",
            sa.String(36),
            sa.ForeignKey("compliance_tasks.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_documents_user_id", "documents", ["user_id"])
    op.create_index("ix_documents_file_hash", "documents", ["file_hash"])
    op.create_index("ix_documents_status", "documents", ["status"])
    op.create_index(
        "ix_documents_questionnaire_response_id", "documents", ["questionnaire_response_id"]
    )
    op.create_index("ix_documents_task_id", "documents", ["task_id"])
    op.create_index("ix_documents_deleted_at", "documents", ["deleted_at"])

    # compliance_reports
    op.create_table(
        "compliance_reports",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "sector_id",
            sa.String(36),
            sa.ForeignKey("company_sectors.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("report_type", sa.String(30), nullable=False),
        sa.Column("compliance_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("filename", sa.String(500), nullable=False),
        sa.Column("file_size_bytes", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="generated"),
        *_timestamps(),
    )
    op.create_index("ix_compliance_reports_user_id", "compliance_reports", ["user_id"])

    # notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column(
            "related_task_id",
            sa.String(36),
            sa.ForeignKey("compliance_tasks.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"])

    # audit_events
    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("sequence_no", sa.Integer, nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("actor_id", sa.String(36), nullable=True),
        sa.Column("actor_username", sa.String(100), nullable=True),
        sa.Column("entity_type", sa.String(100), nullable=True),
        sa.Column("entity_id", sa.String(36), nullable=True),
        sa.Column("correlation_id", sa.String(36), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("payload_json", sa.Text, nullable=True),
        sa.Column("event_hash", sa.String(64), nullable=False),
        sa.Column("prev_hash", sa.String(64), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("event_hash", name="uq_audit_event_hash"),
        sa.UniqueConstraint("sequence_no", name="uq_audit_sequence_no"),
    )
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])
    op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"])
    op.create_index("ix_audit_events_correlation_id", "audit_events", ["correlation_id"])
    op.create_index(
        "ix_audit_events_actor_entity", "audit_events", ["actor_id", "entity_type", "entity_id"]
    )


def downgrade() -> None:
    for table in (
        "audit_events",
        "notifications",
        "compliance_reports",
        "documents",
        "task_status_history",
        "compliance_tasks",
        "questionnaire_answers",
        "questionnaire_responses",
        "company_sectors",
        "company_profiles",
        "users",
        "roles",
    ):
        op.drop_table(table)
