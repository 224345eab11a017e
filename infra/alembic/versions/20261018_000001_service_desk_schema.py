"""Service desk requests, timeline entries and entry views."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261018_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "service_desk_requests",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("human_id", sa.String(length=32), nullable=False),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("outlet_name", sa.String(length=255), nullable=True),
        sa.Column("camera_type", sa.String(length=255), nullable=True),
        sa.Column("camera_count", sa.Integer(), nullable=True),
        sa.Column("preferred_visit_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("assigned_visit_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("viewed_by_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("kind", "human_id", name="uq_service_desk_requests_kind_human_id"),
    )
    op.create_index("ix_service_desk_requests_kind", "service_desk_requests", ["kind"])
    op.create_index("ix_service_desk_requests_owner_id", "service_desk_requests", ["owner_id"])
    op.create_index(
        "ix_service_desk_requests_kind_created_at",
        "service_desk_requests",
        ["kind", sa.text("created_at DESC")],
    )

    op.create_table(
        "request_timeline_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "request_id",
            sa.String(length=36),
            sa.ForeignKey("service_desk_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("added_by", sa.String(length=255), nullable=False),
        sa.Column("added_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("price_list", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("total_price", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("request_id", "position", name="uq_request_timeline_entries_position"),
    )

    op.create_table(
        "timeline_entry_views",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "entry_id",
            sa.String(length=36),
            sa.ForeignKey("request_timeline_entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("seen_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("entry_id", "user_id", name="uq_timeline_entry_views_entry_user"),
    )


def downgrade() -> None:
    op.drop_table("timeline_entry_views")
    op.drop_table("request_timeline_entries")
    op.drop_index("ix_service_desk_requests_kind_created_at", table_name="service_desk_requests")
    op.drop_index("ix_service_desk_requests_owner_id", table_name="service_desk_requests")
    op.drop_index("ix_service_desk_requests_kind", table_name="service_desk_requests")
    op.drop_table("service_desk_requests")
