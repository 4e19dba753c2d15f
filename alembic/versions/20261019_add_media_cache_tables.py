"""Add post photo and profile photo cache tables."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_add_media_cache_tables"
down_revision: str | None = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "cached_post_photos",
        sa.Column("post_id", sa.String(length=255), primary_key=True, nullable=False),
        sa.Column("photo_index", sa.Integer(), primary_key=True, nullable=False, autoincrement=False),
        sa.Column("data", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_cached_post_photos_post_id", "cached_post_photos", ["post_id"])
    op.create_index("ix_cached_post_photos_created_at", "cached_post_photos", ["created_at"])

    op.create_table(
        "profile_photo_cache",
        sa.Column("user_id", sa.String(length=255), primary_key=True, nullable=False),
        sa.Column("image_data", sa.Text(), nullable=False),
        sa.Column("cached_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_profile_photo_cache_cached_at", "profile_photo_cache", ["cached_at"])


def downgrade() -> None:
    op.drop_index("ix_profile_photo_cache_cached_at", table_name="profile_photo_cache")
    op.drop_table("profile_photo_cache")
    op.drop_index("ix_cached_post_photos_created_at", table_name="cached_post_photos")
    op.drop_index("ix_cached_post_photos_post_id", table_name="cached_post_photos")
    op.drop_table("cached_post_photos")
