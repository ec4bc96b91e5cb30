"""Catalog importer: turns one raw catalog document into stored entities.

A pass runs four phases in a fixed order, each committed as its own
transaction through a shared ``RecordStore``:

1. resource types and frameworks (flat lookup entities, independent of each other)
2. topics (self-referential; a parent only resolves if it was seen earlier)
3. documents (positional rows, filtered to the "Sample Code" resource type,
   cross-referenced by lookup key)

Malformed rows are dropped without raising; every row's fate is recorded on
the phase's ``PhaseReport``. Only a catalog missing one of its top-level pieces
stops the pass before any phase runs.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

import orjson
import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from structlog.contextvars import bind_contextvars, unbind_contextvars

from Samplewatch import models
from Samplewatch.catalog_schema import (
    CatalogSections,
    DocumentRow,
    ExtractionFailure,
    FrameworkRow,
    ResourceTypeRow,
    TopicRow,
    check_column_map,
    extract_catalog,
)
from Samplewatch.importer_context import ImportReport, PhaseReport, RowStatus
from Samplewatch.metrics import inc_counter, observe_histogram
from Samplewatch.normalize import (
    canonical_url,
    clamp_int16,
    decode_entities,
    fits_int16,
    parse_catalog_date,
    parse_int16,
    try_parse_int16,
)
from Samplewatch.repos import RecordStore

log = structlog.get_logger()

SAMPLE_CODE_TYPE_NAME = "Sample Code"
MISSING_KEY = -1
DEFAULT_SORT_ORDER = 0

RowT = TypeVar("RowT", bound=BaseModel)


class ImporterError(Exception):
    """Raised when the store fails underneath a phase (not for bad catalog data)."""


def _validation_reason(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "row"
    if err.get("type") == "missing":
        return f"missing_field:{loc}"
    return f"invalid_field:{loc}"


def _parse_row(model: type[RowT], row: Mapping[str, Any]) -> RowT | str:
    """Validate one section row, returning the skip reason instead of raising."""
    try:
        return model.model_validate(row)
    except ValidationError as exc:
        return _validation_reason(exc)


def _finish_phase(report: PhaseReport) -> PhaseReport:
    inc_counter(f"importer.{report.phase}.imported", report.imported)
    inc_counter(f"importer.{report.phase}.skipped", report.skipped)
    inc_counter(f"importer.{report.phase}.filtered", report.filtered)
    log.info("importer.phase.complete", **report.summary())
    return report


class ResourceTypePhase:
    """Imports the "Resource Types" section."""

    name = "resource_types"

    async def run(self, store: RecordStore, rows: Sequence[Mapping[str, Any]]) -> PhaseReport:
        report = PhaseReport(self.name)
        async with store.transaction(self.name):
            for index, raw in enumerate(rows):
                row = _parse_row(ResourceTypeRow, raw)
                if isinstance(row, str):
                    report.record(index, RowStatus.skipped_missing_field, reason=row)
                    continue
                await store.upsert(
                    models.ResourceType,
                    row.identifier,
                    name=decode_entities(row.name),
                    key=parse_int16(row.key, MISSING_KEY),
                    sort_order=parse_int16(row.sort_order, DEFAULT_SORT_ORDER),
                )
                report.record(index, RowStatus.imported, identifier=row.identifier)
        return _finish_phase(report)


class FrameworkPhase:
    """Imports the "Technologies" section."""

    name = "frameworks"

    async def run(self, store: RecordStore, rows: Sequence[Mapping[str, Any]]) -> PhaseReport:
        report = PhaseReport(self.name)
        async with store.transaction(self.name):
            for index, raw in enumerate(rows):
                row = _parse_row(FrameworkRow, raw)
                if isinstance(row, str):
                    report.record(index, RowStatus.skipped_missing_field, reason=row)
                    continue
                if not fits_int16(row.identifier):
                    report.record(index, RowStatus.skipped_missing_field, reason="invalid_field:id")
                    continue
                await store.upsert(
                    models.Framework,
                    row.identifier,
                    name=decode_entities(row.name),
                    key=parse_int16(row.key, MISSING_KEY),
                )
                report.record(index, RowStatus.imported, identifier=row.identifier)
        return _finish_phase(report)


class TopicPhase:
    """Imports the "Topics" section in source order.

    A parent reference resolves only against topics already registered in this
    pass, earlier rows of this section included. A child listed before its
    parent is stored without a parent; that is the source contract, so it is
    counted on the report rather than repaired.
    """

    name = "topics"

    async def run(self, store: RecordStore, rows: Sequence[Mapping[str, Any]]) -> PhaseReport:
        report = PhaseReport(self.name)
        async with store.transaction(self.name):
            for index, raw in enumerate(rows):
                row = _parse_row(TopicRow, raw)
                if isinstance(row, str):
                    report.record(index, RowStatus.skipped_missing_field, reason=row)
                    continue
                if not fits_int16(row.identifier):
                    report.record(index, RowStatus.skipped_missing_field, reason="invalid_field:id")
                    continue

                parent = None
                if row.parent_key is not None:
                    parent_key = try_parse_int16(row.parent_key)
                    if parent_key is not None:
                        parent = await store.find_by_lookup_key(models.Topic, parent_key)
                    if parent is None:
                        report.unresolved_parents += 1
                        log.debug(
                            "importer.topics.parent_unresolved",
                            topic=row.identifier,
                            parent_key=row.parent_key,
                        )

                await store.upsert(
                    models.Topic,
                    row.identifier,
                    name=decode_entities(row.name),
                    key=parse_int16(row.key, MISSING_KEY),
                    parent_id=parent.id if parent is not None else None,
                )
                report.record(index, RowStatus.imported, identifier=row.identifier)
        return _finish_phase(report)


class DocumentPhase:
    """Imports the positional document table, keeping Sample Code entries only."""

    name = "documents"

    async def run(self, store: RecordStore, rows: Sequence[Sequence[Any]]) -> PhaseReport:
        report = PhaseReport(self.name)
        async with store.transaction(self.name):
            sample_code = await store.find_resource_type_by_name(SAMPLE_CODE_TYPE_NAME)
            if sample_code is None:
                report.abort(f"resource type {SAMPLE_CODE_TYPE_NAME!r} not found")
                inc_counter("importer.documents.aborted")
                log.warning("importer.documents.aborted", reason=report.abort_reason, rows=len(rows))
                return report
            sample_code_key = sample_code.key

            for index, raw in enumerate(rows):
                try:
                    row = DocumentRow.from_positional(raw)
                except ValidationError as exc:
                    report.record(
                        index, RowStatus.skipped_missing_field, reason=_validation_reason(exc)
                    )
                    continue
                if row.type_code != sample_code_key:
                    report.record(
                        index,
                        RowStatus.skipped_filtered,
                        identifier=row.identifier,
                        reason="not_sample_code",
                    )
                    continue
                await self._import_row(store, report, index, row)
        return _finish_phase(report)

    async def _import_row(
        self, store: RecordStore, report: PhaseReport, index: int, row: DocumentRow
    ) -> None:
        date = parse_catalog_date(row.date)
        display_date = parse_catalog_date(row.display_date)
        if date is None or display_date is None:
            report.record(
                index, RowStatus.skipped_missing_field, identifier=row.identifier, reason="invalid_date"
            )
            return
        if not fits_int16(row.release):
            report.record(
                index,
                RowStatus.skipped_missing_field,
                identifier=row.identifier,
                reason="invalid_field:release",
            )
            return

        resource_type = await store.find_by_lookup_key(models.ResourceType, row.type_code)
        topic = await store.find_by_lookup_key(models.Topic, row.topic_key)
        sub_topic = await store.find_by_lookup_key(models.Topic, row.subtopic_key)
        framework = await store.find_by_lookup_key(models.Framework, row.framework_key)

        await store.upsert(
            models.Document,
            row.identifier,
            name=decode_entities(row.name),
            url=canonical_url(row.url),
            date=date,
            display_date=display_date,
            sort_order=clamp_int16(row.sort_order, DEFAULT_SORT_ORDER),
            update_size=models.UpdateSize.from_code(row.update_size),
            release_version=row.release,
            platform=row.platform,
            type_id=resource_type.id if resource_type is not None else None,
            topic_id=topic.id if topic is not None else None,
            sub_topic_id=sub_topic.id if sub_topic is not None else None,
            framework_id=framework.id if framework is not None else None,
        )
        report.record(index, RowStatus.imported, identifier=row.identifier)


async def _run_phases(store: RecordStore, sections: CatalogSections, report: ImportReport) -> None:
    # Resource types and frameworks are independent; both must precede topics/documents
    report.add_phase(await ResourceTypePhase().run(store, sections.resource_types))
    report.add_phase(await FrameworkPhase().run(store, sections.frameworks))
    report.add_phase(await TopicPhase().run(store, sections.topics))
    report.add_phase(await DocumentPhase().run(store, sections.documents))


async def run_catalog_import(
    raw: Any,
    *,
    store: RecordStore | None = None,
    on_complete: Callable[[], None] | None = None,
) -> ImportReport:
    """Run one ingestion pass over a decoded catalog document.

    Args:
        raw: The catalog as decoded from JSON
        store: Store to write through; a fresh pass-scoped one by default
        on_complete: Called with no arguments on the running loop once every
            phase has committed. Not called when extraction fails.

    Returns:
        The pass report. ``report.extraction_failure`` is set when the catalog
        was rejected before any phase ran.

    Raises:
        ImporterError: If the database fails during a phase
    """
    store = store if store is not None else RecordStore()
    report = ImportReport(run_id=uuid.uuid4().hex, started_at=datetime.now(timezone.utc))
    bind_contextvars(import_run_id=report.run_id)
    start = time.perf_counter()
    try:
        sections = extract_catalog(raw)
        if isinstance(sections, ExtractionFailure):
            report.extraction_failure = sections
            inc_counter("importer.extraction_failed")
            log.error("importer.catalog.unexpected_data", piece=sections.piece, reason=sections.reason)
            return report

        report.column_mismatches = check_column_map(sections.columns)
        if report.column_mismatches:
            log.warning("importer.catalog.column_mismatch", mismatches=report.column_mismatches)

        try:
            await _run_phases(store, sections, report)
        except SQLAlchemyError as exc:
            raise ImporterError(f"Catalog import failed: {exc}") from exc

        report.finished_at = datetime.now(timezone.utc)
        duration_ms = int((time.perf_counter() - start) * 1000)
        inc_counter("importer.pass.completed")
        observe_histogram("importer.pass.duration_ms", duration_ms)
        log.info("importer.pass.complete", duration_ms=duration_ms, store=store.stats())

        if on_complete is not None:
            asyncio.get_running_loop().call_soon(on_complete)
        return report
    finally:
        unbind_contextvars("import_run_id")


def start_catalog_import(
    raw: Any,
    *,
    store: RecordStore | None = None,
    on_complete: Callable[[], None] | None = None,
) -> asyncio.Task[ImportReport]:
    """Schedule a pass in the background on the running loop and return its task."""
    return asyncio.get_running_loop().create_task(
        run_catalog_import(raw, store=store, on_complete=on_complete),
        name="samplewatch-catalog-import",
    )


def load_catalog(path: Path) -> Any:
    """Decode a catalog JSON file."""
    return orjson.loads(path.read_bytes())


__all__ = [
    "DocumentPhase",
    "FrameworkPhase",
    "ImporterError",
    "ResourceTypePhase",
    "SAMPLE_CODE_TYPE_NAME",
    "TopicPhase",
    "load_catalog",
    "run_catalog_import",
    "start_catalog_import",
]
