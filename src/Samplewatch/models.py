# models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    Text,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from Samplewatch.db import Base


class UpdateSize(enum.IntEnum):
    unknown = 0
    small = 1
    medium = 2
    large = 3

    @classmethod
    def from_code(cls, code: int | None) -> UpdateSize:
        try:
            return cls(code)
        except ValueError:
            return cls.unknown


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResourceType(Base):
    __tablename__ = "resource_types"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String(64), unique=True)
    # Lookup key is only meaningful within one ingestion pass; never unique
    key: Mapped[int] = mapped_column(SmallInteger, index=True, default=-1)
    name: Mapped[str] = mapped_column(String(255), index=True)
    sort_order: Mapped[int] = mapped_column(SmallInteger, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class Framework(Base):
    __tablename__ = "frameworks"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[int] = mapped_column(SmallInteger, unique=True)
    key: Mapped[int] = mapped_column(SmallInteger, index=True, default=-1)
    name: Mapped[str] = mapped_column(String(255))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class Topic(Base):
    __tablename__ = "topics"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[int] = mapped_column(SmallInteger, unique=True)
    key: Mapped[int] = mapped_column(SmallInteger, index=True, default=-1)
    name: Mapped[str] = mapped_column(String(255))
    # None means top-level topic (or a parent that was not yet imported)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("topics.id", ondelete="SET NULL"), nullable=True, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class Document(Base):
    __tablename__ = "documents"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String(64), unique=True)
    name: Mapped[str] = mapped_column(String(512))
    url: Mapped[str] = mapped_column(Text)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    display_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    sort_order: Mapped[int] = mapped_column(SmallInteger, default=0)
    update_size: Mapped[UpdateSize] = mapped_column(
        SAEnum(UpdateSize, name="update_size"), default=UpdateSize.unknown
    )
    release_version: Mapped[int] = mapped_column(SmallInteger)
    platform: Mapped[str | None] = mapped_column(String(64), nullable=True)

    type_id: Mapped[int | None] = mapped_column(
        ForeignKey("resource_types.id", ondelete="SET NULL"), nullable=True, index=True
    )
    topic_id: Mapped[int | None] = mapped_column(
        ForeignKey("topics.id", ondelete="SET NULL"), nullable=True, index=True
    )
    sub_topic_id: Mapped[int | None] = mapped_column(
        ForeignKey("topics.id", ondelete="SET NULL"), nullable=True, index=True
    )
    framework_id: Mapped[int | None] = mapped_column(
        ForeignKey("frameworks.id", ondelete="SET NULL"), nullable=True, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
