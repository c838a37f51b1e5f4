"""Org metadata cache and Salesforce credential tables.

Revision ID: 001_org_metadata
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSON

# revision identifiers, used by Alembic.
revision: str = "001_org_metadata"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "org_metadata",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("instance_key", sa.String(500), nullable=False),
        sa.Column("standard_objects", JSON(), nullable=False, server_default=sa.text("'[]'::json")),
        sa.Column("custom_objects", JSON(), nullable=False, server_default=sa.text("'[]'::json")),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sync_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("sync_error", sa.Text(), nullable=True),
        sa.Column("sync_generation", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_org_metadata_instance_key", "org_metadata", ["instance_key"], unique=True)

    op.create_table(
        "salesforce_auth",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", sa.String(200), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("instance_url", sa.String(500), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_salesforce_auth_user_id", "salesforce_auth", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_salesforce_auth_user_id", table_name="salesforce_auth")
    op.drop_table("salesforce_auth")
    op.drop_index("ix_org_metadata_instance_key", table_name="org_metadata")
    op.drop_table("org_metadata")
