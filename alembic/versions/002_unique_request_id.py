"""Make english_analysis_requests.request_id unique.

Databases created by the old setup scripts had no uniqueness on request_id,
so a resubmitted requestId was stored (and charged) twice. Duplicate rows must
be cleaned up by hand before this revision can apply.

Revision ID: 002_unique_request_id
Revises: 001_initial
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002_unique_request_id"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

INDEX_NAME = "ix_english_analysis_requests_request_id"


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    indexes = {ix["name"]: ix for ix in inspector.get_indexes("english_analysis_requests")}
    existing = indexes.get(INDEX_NAME)
    if existing and existing.get("unique"):
        return
    if existing:
        op.drop_index(INDEX_NAME, table_name="english_analysis_requests")
    op.create_index(INDEX_NAME, "english_analysis_requests", ["request_id"], unique=True)


def downgrade() -> None:
    op.drop_index(INDEX_NAME, table_name="english_analysis_requests")
    op.create_index(INDEX_NAME, "english_analysis_requests", ["request_id"])
