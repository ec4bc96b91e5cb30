import pytest
from pydantic import ValidationError

from Samplewatch.catalog_schema import (
    DOCUMENT_COLUMNS,
    CatalogSections,
    DocumentRow,
    ExtractionFailure,
    FrameworkRow,
    ResourceTypeRow,
    TopicRow,
    check_column_map,
    extract_catalog,
)


def test_extract_catalog_success(sample_catalog):
    result = extract_catalog(sample_catalog)
    assert isinstance(result, CatalogSections)
    assert [r["id"] for r in result.resource_types] == ["rt1", "rt2"]
    assert result.frameworks[0]["name"] == "Foo"
    assert result.topics[0]["key"] == "10"
    assert len(result.documents) == 1
    assert result.columns == {}


def test_extract_catalog_uses_first_matching_section(catalog_factory):
    raw = catalog_factory(resource_types=[{"name": "A"}])
    raw["topics"].append({"name": "Resource Types", "contents": [{"name": "B"}]})
    result = extract_catalog(raw)
    assert isinstance(result, CatalogSections)
    assert result.resource_types == [{"name": "A"}]


def test_extract_catalog_ignores_unrelated_sections(catalog_factory):
    raw = catalog_factory()
    raw["topics"].insert(0, {"name": "Something Else", "contents": "not a list"})
    assert isinstance(extract_catalog(raw), CatalogSections)


@pytest.mark.parametrize(
    "mutate, piece",
    [
        (lambda raw: raw.pop("topics"), "topics"),
        (lambda raw: raw.__setitem__("topics", [1, 2]), "topics"),
        (lambda raw: raw["topics"].pop(0), "Resource Types"),
        (lambda raw: raw["topics"][1].pop("contents"), "Technologies"),
        (lambda raw: raw["topics"][2].__setitem__("contents", [["x"]]), "Topics"),
        (lambda raw: raw.pop("documents"), "documents"),
        (lambda raw: raw.__setitem__("documents", [{"name": "x"}]), "documents"),
        (lambda raw: raw.pop("columns"), "columns"),
        (lambda raw: raw.__setitem__("columns", {"name": "0"}), "columns"),
        (lambda raw: raw.__setitem__("columns", {"name": True}), "columns"),
    ],
)
def test_extract_catalog_failures(catalog_factory, mutate, piece):
    raw = catalog_factory()
    mutate(raw)
    result = extract_catalog(raw)
    assert isinstance(result, ExtractionFailure)
    assert result.piece == piece
    assert "unexpected data" in str(result)


def test_extract_catalog_rejects_non_object():
    result = extract_catalog([1, 2, 3])
    assert isinstance(result, ExtractionFailure)
    assert result.piece == "catalog"


def test_section_rows_require_text_fields():
    row = ResourceTypeRow.model_validate({"name": "Sample Code", "id": "rt1", "key": "1", "sortOrder": "0"})
    assert row.identifier == "rt1"
    assert row.sort_order == "0"

    with pytest.raises(ValidationError):
        ResourceTypeRow.model_validate({"name": "X", "id": "rt1", "key": 1, "sortOrder": "0"})
    with pytest.raises(ValidationError):
        ResourceTypeRow.model_validate({"name": "X", "id": "rt1", "key": "1"})


def test_framework_and_topic_rows_require_integer_ids():
    assert FrameworkRow.model_validate({"name": "Foo", "id": 3, "key": "1"}).identifier == 3
    with pytest.raises(ValidationError):
        FrameworkRow.model_validate({"name": "Foo", "id": "3", "key": "1"})
    with pytest.raises(ValidationError):
        TopicRow.model_validate({"name": "T", "id": True, "key": "1"})


def test_topic_row_parent_key_only_from_strings():
    assert TopicRow.model_validate({"name": "T", "id": 1, "key": "1", "parent": "5"}).parent_key == "5"
    assert TopicRow.model_validate({"name": "T", "id": 1, "key": "1", "parent": 5}).parent_key is None
    assert TopicRow.model_validate({"name": "T", "id": 1, "key": "1"}).parent_key is None


def test_document_row_positional_decode(row_factory):
    row = DocumentRow.from_positional(row_factory())
    assert row.name == "Sample A"
    assert row.identifier == "d1"
    assert row.type_code == 1
    assert row.update_size == 2
    assert row.url == "../a/b.html"
    assert row.display_date == "2016-01-24"
    # platform is read from the display-date position
    assert row.platform == "2016-01-24"


def test_document_row_decode_without_trailing_column(row_factory):
    row = DocumentRow.from_positional(row_factory()[:12])
    assert row.platform == row.display_date


@pytest.mark.parametrize(
    "position, value",
    [(0, None), (1, 5), (2, "1"), (2, True), (4, 2.5), (9, None), (11, 20160124)],
)
def test_document_row_rejects_bad_fields(row_factory, position, value):
    raw = row_factory()
    raw[position] = value
    with pytest.raises(ValidationError):
        DocumentRow.from_positional(raw)


def test_document_row_rejects_short_rows(row_factory):
    with pytest.raises(ValidationError):
        DocumentRow.from_positional(row_factory()[:11])


def test_document_columns_cover_row_fields():
    assert {c.field for c in DOCUMENT_COLUMNS} == set(DocumentRow.model_fields)


def test_check_column_map_reports_only_named_mismatches():
    assert check_column_map({}) == []
    assert check_column_map({"name": 0, "id": 1, "url": 9}) == []
    mismatches = check_column_map({"name": 0, "platform": 12, "date": 4})
    assert mismatches == [
        "date: decoded from 3, catalog says 4",
        "platform: decoded from 11, catalog says 12",
    ]
