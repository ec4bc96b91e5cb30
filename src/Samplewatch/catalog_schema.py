"""Typed view over the raw catalog document.

The catalog arrives as loosely-typed JSON::

    {
      "topics": [{"name": "Resource Types", "contents": [...]},
                 {"name": "Technologies", "contents": [...]},
                 {"name": "Topics", "contents": [...]}],
      "documents": [["Sample A", "d1", 1, "2016-01-23", ...], ...],
      "columns": {"name": 0, "id": 1, ...}
    }

``extract_catalog`` is the only place that walks that structure. It returns
either ``CatalogSections`` or an ``ExtractionFailure`` naming the missing
piece. Individual rows stay as raw mappings/lists so each import phase can
decide per row whether to import or skip; the ``*Row`` models below do that
per-row validation.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

SECTIONS_KEY = "topics"
DOCUMENTS_KEY = "documents"
COLUMNS_KEY = "columns"

RESOURCE_TYPES_LABEL = "Resource Types"
FRAMEWORKS_LABEL = "Technologies"
TOPICS_LABEL = "Topics"


@dataclass(frozen=True)
class CatalogSections:
    resource_types: list[Mapping[str, Any]]
    frameworks: list[Mapping[str, Any]]
    topics: list[Mapping[str, Any]]
    documents: list[list[Any]]
    columns: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ExtractionFailure:
    piece: str
    reason: str

    def __str__(self) -> str:
        return f"unexpected data: {self.piece} ({self.reason})"


def _is_row_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(row, Mapping) for row in value)


def _section_contents(sections: list[Mapping[str, Any]], label: str) -> list[Mapping[str, Any]] | None:
    section = next((s for s in sections if s.get("name") == label), None)
    if section is None:
        return None
    contents = section.get("contents")
    return contents if _is_row_list(contents) else None


def extract_catalog(raw: Any) -> CatalogSections | ExtractionFailure:
    if not isinstance(raw, Mapping):
        return ExtractionFailure("catalog", "root is not an object")

    sections = raw.get(SECTIONS_KEY)
    if not _is_row_list(sections):
        return ExtractionFailure(SECTIONS_KEY, "section list missing or malformed")

    found: dict[str, list[Mapping[str, Any]]] = {}
    for label in (RESOURCE_TYPES_LABEL, FRAMEWORKS_LABEL, TOPICS_LABEL):
        contents = _section_contents(sections, label)
        if contents is None:
            return ExtractionFailure(label, "section missing or has no contents list")
        found[label] = contents

    documents = raw.get(DOCUMENTS_KEY)
    if not isinstance(documents, list) or not all(isinstance(r, list) for r in documents):
        return ExtractionFailure(DOCUMENTS_KEY, "document table missing or malformed")

    columns = raw.get(COLUMNS_KEY)
    if not isinstance(columns, Mapping) or not all(
        isinstance(k, str) and isinstance(v, int) and not isinstance(v, bool)
        for k, v in columns.items()
    ):
        return ExtractionFailure(COLUMNS_KEY, "column map missing or malformed")

    return CatalogSections(
        resource_types=found[RESOURCE_TYPES_LABEL],
        frameworks=found[FRAMEWORKS_LABEL],
        topics=found[TOPICS_LABEL],
        documents=documents,
        columns=dict(columns),
    )


# -----------------------------
# Section rows
# -----------------------------


class ResourceTypeRow(BaseModel):
    name: StrictStr
    identifier: StrictStr = Field(alias="id")
    key: StrictStr
    sort_order: StrictStr = Field(alias="sortOrder")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class FrameworkRow(BaseModel):
    name: StrictStr
    identifier: StrictInt = Field(alias="id")
    key: StrictStr

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TopicRow(BaseModel):
    name: StrictStr
    identifier: StrictInt = Field(alias="id")
    key: StrictStr
    # Optional and never a reason to skip the row: anything but a string is ignored
    parent: Any = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def parent_key(self) -> str | None:
        return self.parent if isinstance(self.parent, str) else None


# -----------------------------
# Positional document rows
# -----------------------------


class DocumentColumn(NamedTuple):
    field: str
    position: int
    source_name: str


# Documents are decoded by position, not through the catalog's column map.
# FIXME: platform shares position 11 with display_date. The source column map
# names a separate "platform" column; once verified, point platform at it here.
DOCUMENT_COLUMNS: tuple[DocumentColumn, ...] = (
    DocumentColumn("name", 0, "name"),
    DocumentColumn("identifier", 1, "id"),
    DocumentColumn("type_code", 2, "type"),
    DocumentColumn("date", 3, "date"),
    DocumentColumn("update_size", 4, "updateSize"),
    DocumentColumn("topic_key", 5, "topic"),
    DocumentColumn("framework_key", 6, "framework"),
    DocumentColumn("release", 7, "release"),
    DocumentColumn("subtopic_key", 8, "subtopic"),
    DocumentColumn("url", 9, "url"),
    DocumentColumn("sort_order", 10, "sortOrder"),
    DocumentColumn("display_date", 11, "displayDate"),
    DocumentColumn("platform", 11, "platform"),
)


class DocumentRow(BaseModel):
    name: StrictStr
    identifier: StrictStr
    type_code: StrictInt
    date: StrictStr
    update_size: StrictInt
    topic_key: StrictInt
    framework_key: StrictInt
    release: StrictInt
    subtopic_key: StrictInt
    url: StrictStr
    sort_order: StrictInt
    display_date: StrictStr
    platform: StrictStr

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_positional(cls, row: Sequence[Any]) -> DocumentRow:
        """Decode a positional record; raises ``pydantic.ValidationError`` when malformed."""
        values = {
            col.field: row[col.position] for col in DOCUMENT_COLUMNS if col.position < len(row)
        }
        return cls.model_validate(values)


def check_column_map(columns: Mapping[str, int]) -> list[str]:
    """Compare ``DOCUMENT_COLUMNS`` with the catalog's own column map.

    Columns the catalog does not name are not reported.
    """
    mismatches: list[str] = []
    for col in DOCUMENT_COLUMNS:
        source_position = columns.get(col.source_name)
        if source_position is not None and source_position != col.position:
            mismatches.append(
                f"{col.source_name}: decoded from {col.position}, catalog says {source_position}"
            )
    return mismatches
