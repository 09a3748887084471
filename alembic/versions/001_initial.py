"""Initial schema: users, user_quotas, english_analysis_requests.

Tables are also created by app startup (Base.metadata.create_all), so each
create is skipped when the table already exists.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    existing = set(sa.inspect(op.get_bind()).get_table_names())

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("firebase_uid", sa.String(255), nullable=False),
            sa.Column("email", sa.String(255), nullable=False),
            sa.Column("phone", sa.String(20), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_users_firebase_uid", "users", ["firebase_uid"], unique=True)
        op.create_index("ix_users_email", "users", ["email"])

    if "user_quotas" not in existing:
        op.create_table(
            "user_quotas",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(255), sa.ForeignKey("users.firebase_uid"), nullable=False),
            sa.Column("user_email", sa.String(255), nullable=False),
            sa.Column("english_analysis_quota", sa.Integer(), nullable=False, server_default="100"),
            sa.Column("career_survey_quota", sa.Integer(), nullable=False, server_default="5"),
            sa.Column("premium_modules_quota", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_user_quotas_user_id", "user_quotas", ["user_id"], unique=True)

    if "english_analysis_requests" not in existing:
        op.create_table(
            "english_analysis_requests",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("request_id", sa.String(255), nullable=False),
            sa.Column("user_id", sa.String(255), sa.ForeignKey("users.firebase_uid"), nullable=False),
            sa.Column("user_email", sa.String(255), nullable=False),
            sa.Column("input_text", sa.Text(), nullable=False),
            sa.Column("request_processed", sa.String(32), nullable=False),
            sa.Column("assessed_level", sa.String(50), nullable=False, server_default="Pending"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("gcs_file_path", sa.String(), nullable=True),
            sa.Column("gcs_bucket", sa.String(255), nullable=True),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_english_analysis_requests_user_id", "english_analysis_requests", ["user_id"])
        op.create_index("ix_english_analysis_requests_created_at", "english_analysis_requests", ["created_at"])


def downgrade() -> None:
    op.drop_table("english_analysis_requests")
    op.drop_table("user_quotas")
    op.drop_table("users")
