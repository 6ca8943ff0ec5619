"""create_crawl_tables

Revision ID: 7d2e4a91c3b0
Revises:
Create Date: 2026-10-18 09:12:41.118204

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7d2e4a91c3b0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "crawl_jobs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("target_url", sa.Text(), nullable=False),
        sa.Column("max_pages", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("timeout_ms", sa.Integer(), nullable=False, server_default=sa.text("60000")),
        sa.Column(
            "include_css_backgrounds",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("TRUE"),
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("pages_processed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_pages_found", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("images_found", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_page", sa.Text(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("clock_timestamp()"),
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="ck_crawl_jobs_status",
        ),
        sa.CheckConstraint("max_pages >= 1", name="ck_crawl_jobs_max_pages"),
        sa.CheckConstraint("progress BETWEEN 0 AND 100", name="ck_crawl_jobs_progress"),
    )
    op.create_index("idx_crawl_jobs_created_at", "crawl_jobs", ["created_at"])

    op.create_table(
        "crawled_images",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "job_id",
            sa.String(36),
            sa.ForeignKey("crawl_jobs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("page_url", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("alt_text", sa.Text(), nullable=True),
        sa.Column("raw_markup", sa.Text(), nullable=True),
        sa.Column("image_type", sa.String(10), nullable=True),
        sa.Column("filename", sa.Text(), nullable=True),
        sa.Column("dimensions", sa.String(32), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("clock_timestamp()"),
        ),
    )
    op.create_index("idx_crawled_images_job_id", "crawled_images", ["job_id"])
    op.create_index("idx_crawled_images_created_at", "crawled_images", ["created_at"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("idx_crawled_images_created_at", table_name="crawled_images")
    op.drop_index("idx_crawled_images_job_id", table_name="crawled_images")
    op.drop_table("crawled_images")
    op.drop_index("idx_crawl_jobs_created_at", table_name="crawl_jobs")
    op.drop_table("crawl_jobs")
