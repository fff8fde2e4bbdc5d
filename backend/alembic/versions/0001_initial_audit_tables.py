"""Initial audit schema (five tables).

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-18

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("industry", sa.String(100)),
        sa.Column("employee_count_range", sa.String(50)),
        sa.Column("annual_revenue_range", sa.String(50)),
        sa.Column("website", sa.String(255)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_companies_name", "companies", ["name"])

    op.create_table(
        "audit_submissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("company_id", sa.String(36), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("correlation_id", sa.String(64)),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("form_data", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), server_default="in_progress"),
        sa.Column("completion_percentage", sa.Integer(), server_default="0"),
        sa.Column("calculated_metrics", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime()),
    )
    op.create_index("ix_audit_submissions_company_id", "audit_submissions", ["company_id"])
    op.create_index("ix_audit_submissions_correlation_id", "audit_submissions", ["correlation_id"])
    op.create_index("ix_audit_submissions_email", "audit_submissions", ["email"])
    op.create_index("ix_audit_submissions_created_at", "audit_submissions", ["created_at"])

    op.create_table(
        "audit_reports",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "submission_id", sa.String(36),
            sa.ForeignKey("audit_submissions.id"), nullable=False,
        ),
        sa.Column("report_type", sa.String(50), server_default="comprehensive"),
        sa.Column("report_data", sa.JSON(), nullable=False),
        sa.Column("pdf_url", sa.String(500)),
        sa.Column("pdf_filename", sa.String(255)),
        sa.Column("pdf_file_size", sa.Integer()),
        sa.Column("pdf_stored_at", sa.DateTime()),
        sa.Column("pdf_data", sa.LargeBinary()),
        sa.Column("generated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("sent_at", sa.DateTime()),
        sa.Column("opened_at", sa.DateTime()),
    )
    op.create_index("ix_audit_reports_submission_id", "audit_reports", ["submission_id"])

    op.create_table(
        "user_interactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "submission_id", sa.String(36),
            sa.ForeignKey("audit_submissions.id"), nullable=False,
        ),
        sa.Column("interaction_type", sa.String(50), nullable=False),
        sa.Column("step_name", sa.String(100)),
        sa.Column("time_spent", sa.Integer()),
        sa.Column("interaction_data", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_user_interactions_submission_id", "user_interactions", ["submission_id"])
    op.create_index("ix_user_interactions_interaction_type", "user_interactions", ["interaction_type"])

    op.create_table(
        "wizard_drafts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("current_step", sa.Integer(), server_default="0"),
        sa.Column("form_data", sa.JSON()),
        sa.Column("completion_score", sa.Integer(), server_default="0"),
        sa.Column("step_history", sa.JSON()),
        sa.Column("step_started_at", sa.DateTime()),
        sa.Column("correlation_id", sa.String(64)),
        sa.Column("submission_id", sa.String(36)),
        sa.Column("is_submitted", sa.Boolean(), server_default="false"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("wizard_drafts")
    op.drop_table("user_interactions")
    op.drop_table("audit_reports")
    op.drop_table("audit_submissions")
    op.drop_table("companies")
