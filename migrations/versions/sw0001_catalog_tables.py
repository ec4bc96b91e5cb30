"""catalog tables: resource_types, frameworks, topics, documents

Revision ID: sw0001
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "sw0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_update_size = sa.Enum("unknown", "small", "medium", "large", name="update_size")


def upgrade() -> None:
    op.create_table(
        "resource_types",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("identifier", sa.String(length=64), nullable=False),
        sa.Column("key", sa.SmallInteger(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sort_order", sa.SmallInteger(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("identifier"),
    )
    op.create_index("ix_resource_types_key", "resource_types", ["key"])
    op.create_index("ix_resource_types_name", "resource_types", ["name"])

    op.create_table(
        "frameworks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("identifier", sa.SmallInteger(), nullable=False),
        sa.Column("key", sa.SmallInteger(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("identifier"),
    )
    op.create_index("ix_frameworks_key", "frameworks", ["key"])

    op.create_table(
        "topics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("identifier", sa.SmallInteger(), nullable=False),
        sa.Column("key", sa.SmallInteger(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["parent_id"], ["topics.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("identifier"),
    )
    op.create_index("ix_topics_key", "topics", ["key"])
    op.create_index("ix_topics_parent_id", "topics", ["parent_id"])

    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("identifier", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=512), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("display_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sort_order", sa.SmallInteger(), nullable=False),
        sa.Column("update_size", _update_size, nullable=False),
        sa.Column("release_version", sa.SmallInteger(), nullable=False),
        sa.Column("platform", sa.String(length=64), nullable=True),
        sa.Column("type_id", sa.Integer(), nullable=True),
        sa.Column("topic_id", sa.Integer(), nullable=True),
        sa.Column("sub_topic_id", sa.Integer(), nullable=True),
        sa.Column("framework_id", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["type_id"], ["resource_types.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["topic_id"], ["topics.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["sub_topic_id"], ["topics.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["framework_id"], ["frameworks.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("identifier"),
    )
    for column in ("type_id", "topic_id", "sub_topic_id", "framework_id"):
        op.create_index(f"ix_documents_{column}", "documents", [column])


def downgrade() -> None:
    for column in ("type_id", "topic_id", "sub_topic_id", "framework_id"):
        op.drop_index(f"ix_documents_{column}", table_name="documents")
    op.drop_table("documents")
    op.drop_index("ix_topics_parent_id", table_name="topics")
    op.drop_index("ix_topics_key", table_name="topics")
    op.drop_table("topics")
    op.drop_index("ix_frameworks_key", table_name="frameworks")
    op.drop_table("frameworks")
    op.drop_index("ix_resource_types_name", table_name="resource_types")
    op.drop_index("ix_resource_types_key", table_name="resource_types")
    op.drop_table("resource_types")
    _update_size.drop(op.get_bind(), checkfirst=True)
