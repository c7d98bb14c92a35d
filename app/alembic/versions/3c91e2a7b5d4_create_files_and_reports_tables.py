"""create files and reports tables

Revision ID: 3c91e2a7b5d4
Revises:
Create Date: 2026-10-12 10:14:52.301877

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c91e2a7b5d4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="The time the record was created.",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="The time the record was last updated.",
        ),
    ]


def upgrade() -> None:
    """Creates the file metadata table and the report file-list projection."""
    op.create_table(
        "files",
        sa.Column("id", sa.String(length=11), nullable=False),
        sa.Column("report_id", sa.String(length=10), nullable=False),
        sa.Column("original_name", sa.String(length=255), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column(
            "storage_locator",
            sa.String(length=1024),
            nullable=False,
            comment="Backend-opaque reference: relative path or remote object path.",
        ),
        sa.Column("storage_backend", sa.String(length=20), nullable=False),
        sa.Column("public_url", sa.Text(), nullable=False),
        sa.Column("thumbnail_url", sa.Text(), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("uploaded_by_ip", sa.String(length=45), nullable=True),
        sa.Column("processing_status", sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_files_report_id"), "files", ["report_id"], unique=False)

    op.create_table(
        "reports",
        sa.Column("id", sa.String(length=10), nullable=False),
        sa.Column(
            "uploaded_files",
            sa.JSON(),
            nullable=False,
            comment="Ordered ids of files attached to the report.",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Drops both tables."""
    op.drop_table("reports")
    op.drop_index(op.f("ix_files_report_id"), table_name="files")
    op.drop_table("files")
