# repos.py

from __future__ import annotations

import asyncio
import contextlib
from collections import Counter
from collections.abc import AsyncIterator
from typing import TypeVar

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from Samplewatch import models
from Samplewatch.db import Base, session_scope

log = structlog.get_logger()

EntityT = TypeVar("EntityT", models.ResourceType, models.Framework, models.Topic, models.Document)

# Kinds that carry a pass-scoped lookup key
KEYED_KINDS: tuple[type[Base], ...] = (models.ResourceType, models.Framework, models.Topic)


async def _flush_retry(s: AsyncSession, attempts: int = 5, delay: float = 0.2) -> None:
    """Retry session.flush() on transient SQLite 'database is locked' errors.

    Exponential backoff: delay * 2^i between attempts.
    """
    for i in range(attempts):
        try:
            await s.flush()
            return
        except OperationalError as e:  # pragma: no cover - timing dependent
            msg = str(e).lower()
            if "database is locked" in msg or "database is busy" in msg:
                if i == attempts - 1:
                    raise
                await asyncio.sleep(delay * (2**i))
                continue
            raise


_KeyIndex = dict[tuple[type[Base], int], int | None]


class RecordStore:
    """Upsert store for catalog entities, indexed by identity and by lookup key.

    Identity lookups go to the database (``identifier`` is unique per table).
    Lookup keys are only meaningful inside one ingestion pass, so the key index
    lives on this object: it maps ``(kind, key)`` to the row's primary key and
    the most recent registration of a key wins. When an entity's key changes,
    its old key stops resolving to it.

    All reads and writes happen inside ``transaction()``; registrations made in
    a transaction that rolls back are dropped with it.
    """

    def __init__(self) -> None:
        self._lookup: dict[tuple[type[Base], int], int] = {}
        self._written: set[tuple[type[Base], int]] = set()
        # Open transaction overlay; a None value unregisters the key on commit
        self._pending: _KeyIndex | None = None
        self._pending_written: set[tuple[type[Base], int]] | None = None
        self._session: AsyncSession | None = None

    @contextlib.asynccontextmanager
    async def transaction(self, phase: str) -> AsyncIterator[AsyncSession]:
        if self._session is not None:
            raise RuntimeError("RecordStore transaction already open")
        pending: _KeyIndex = {}
        written: set[tuple[type[Base], int]] = set()
        async with session_scope() as s:
            self._session = s
            self._pending = pending
            self._pending_written = written
            try:
                yield s
            finally:
                self._session = None
                self._pending = None
                self._pending_written = None
        # Only reached once session_scope committed
        for entry, pk in pending.items():
            if pk is None:
                self._lookup.pop(entry, None)
            else:
                self._lookup[entry] = pk
        self._written |= written
        log.debug("store.transaction.committed", phase=phase, registered=len(pending))

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("RecordStore used outside of a transaction")
        return self._session

    async def get_by_identity(self, kind: type[EntityT], identity: str | int) -> EntityT | None:
        q = await self.session.execute(select(kind).where(kind.identifier == identity))
        return q.scalar_one_or_none()

    async def upsert(self, kind: type[EntityT], identity: str | int, **fields) -> EntityT:
        """Update the entity of ``kind`` with this identity, or insert a new one."""
        s = self.session
        obj = await self.get_by_identity(kind, identity)
        old_key = None
        if obj is not None:
            old_key = getattr(obj, "key", None)
            for name, value in fields.items():
                setattr(obj, name, value)
        else:
            obj = kind(identifier=identity, **fields)
            s.add(obj)
        await _flush_retry(s)
        self._mark_written(kind, obj.id)
        if kind in KEYED_KINDS:
            if old_key is not None and old_key != obj.key:
                self._unregister(kind, old_key, obj.id)
            self._register(kind, obj.key, obj.id)
        return obj

    def _overlay(self) -> _KeyIndex:
        if self._pending is None:
            raise RuntimeError("RecordStore used outside of a transaction")
        return self._pending

    def _mark_written(self, kind: type[Base], pk: int) -> None:
        if self._pending_written is None:
            raise RuntimeError("RecordStore used outside of a transaction")
        self._pending_written.add((kind, pk))

    def _register(self, kind: type[Base], key: int, pk: int) -> None:
        self._overlay()[(kind, key)] = pk

    def _unregister(self, kind: type[Base], key: int, pk: int) -> None:
        # Another entity may have taken the key since; leave that registration alone
        if self._registered_pk(kind, key) == pk:
            self._overlay()[(kind, key)] = None

    def _registered_pk(self, kind: type[Base], key: int) -> int | None:
        entry = (kind, key)
        if self._pending is not None and entry in self._pending:
            return self._pending[entry]
        return self._lookup.get(entry)

    def _written_ids(self, kind: type[Base]) -> set[int]:
        written = self._written | (self._pending_written or set())
        return {pk for k, pk in written if k is kind}

    async def find_by_lookup_key(self, kind: type[EntityT], key: int) -> EntityT | None:
        """Return the entity currently registered under ``key`` in this pass.

        ``None`` covers both "no such key" and "not imported yet".
        """
        pk = self._registered_pk(kind, key)
        if pk is None:
            return None
        return await self.session.get(kind, pk)

    async def find_resource_type_by_name(self, name: str) -> models.ResourceType | None:
        """First resource type with this name written during this pass.

        Rows left over from earlier passes are ignored; their keys are stale.
        """
        ids = self._written_ids(models.ResourceType)
        if not ids:
            return None
        q = await self.session.execute(
            select(models.ResourceType)
            .where(models.ResourceType.name == name, models.ResourceType.id.in_(ids))
            .order_by(models.ResourceType.id)
            .limit(1)
        )
        return q.scalar_one_or_none()

    def stats(self) -> dict[str, int]:
        """Number of registered lookup keys per table."""
        index: _KeyIndex = dict(self._lookup)
        index.update(self._pending or {})
        live = (kind for (kind, _), pk in index.items() if pk is not None)
        return dict(Counter(kind.__tablename__ for kind in live))


async def count(s: AsyncSession, kind: type[Base]) -> int:
    q = await s.execute(select(func.count()).select_from(kind))
    return int(q.scalar_one())


async def list_all(s: AsyncSession, kind: type[EntityT]) -> list[EntityT]:
    q = await s.execute(select(kind).order_by(kind.id))
    return list(q.scalars().all())
