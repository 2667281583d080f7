"""Initial schema – usage accounts, course usage, response cache, analytics.

Revision ID: 001
Revises:
Create Date: 2025-01-01 00:00:00.000000
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ai_usage_accounts
    op.create_table(
        "ai_usage_accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("subscription_usage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_cost_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "period_start", name="uq_usage_user_period"),
    )
    op.create_index("ix_usage_period", "ai_usage_accounts", ["period_start"])

    # ai_course_usage
    op.create_table(
        "ai_course_usage",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("question_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "user_id", "period_start", "course_id",
            name="uq_course_usage_user_period_course",
        ),
    )

    # ai_response_cache
    op.create_table(
        "ai_response_cache",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("question_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("response_data", sa.JSON(), nullable=False),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_ai_cache_expires", "ai_response_cache", ["expires_at"])

    # ai_question_analytics
    op.create_table(
        "ai_question_analytics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("response_cached", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("cost_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("response_time_ms", sa.Integer(), nullable=True),
        sa.Column("course_context", sa.Integer(), nullable=True),
        sa.Column("asked_by_admin", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("failed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_ai_analytics_created_at", "ai_question_analytics", ["created_at"])
    op.create_index(
        "ix_ai_analytics_user_created", "ai_question_analytics", ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_ai_analytics_user_created", table_name="ai_question_analytics")
    op.drop_index("ix_ai_analytics_created_at", table_name="ai_question_analytics")
    op.drop_table("ai_question_analytics")
    op.drop_index("ix_ai_cache_expires", table_name="ai_response_cache")
    op.drop_table("ai_response_cache")
    op.drop_table("ai_course_usage")
    op.drop_index("ix_usage_period", table_name="ai_usage_accounts")
    op.drop_table("ai_usage_accounts")
