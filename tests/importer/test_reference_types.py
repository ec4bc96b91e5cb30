"""Tests for the resource type and framework phases."""

import pytest

from Samplewatch import models, repos
from Samplewatch.db import session_scope
from Samplewatch.importer import FrameworkPhase, ResourceTypePhase
from Samplewatch.importer_context import RowStatus
from Samplewatch.metrics import get_counter
from Samplewatch.repos import RecordStore


@pytest.mark.asyncio
async def test_resource_types_imported_with_parsed_fields():
    store = RecordStore()
    report = await ResourceTypePhase().run(
        store,
        [
            {"name": "Sample Code", "id": "rt1", "key": "1", "sortOrder": "4"},
            {"name": "Guides &amp; Tutorials", "id": "rt2", "key": "2", "sortOrder": "1"},
        ],
    )
    assert report.imported == 2
    assert report.skipped == 0
    assert get_counter("importer.resource_types.imported") == 2

    async with session_scope() as s:
        rows = {r.identifier: r for r in await repos.list_all(s, models.ResourceType)}
    assert rows["rt1"].name == "Sample Code"
    assert rows["rt1"].key == 1
    assert rows["rt1"].sort_order == 4
    assert rows["rt2"].name == "Guides & Tutorials"


@pytest.mark.asyncio
async def test_resource_types_missing_fields_are_skipped():
    store = RecordStore()
    report = await ResourceTypePhase().run(
        store,
        [
            {"name": "No Id", "key": "1", "sortOrder": "0"},
            {"name": "Numeric key", "id": "rt2", "key": 2, "sortOrder": "0"},
            {"name": "No sort order", "id": "rt3", "key": "3"},
            {"name": "Kept", "id": "rt4", "key": "4", "sortOrder": "0"},
        ],
    )
    assert [o.status for o in report.outcomes] == [
        RowStatus.skipped_missing_field,
        RowStatus.skipped_missing_field,
        RowStatus.skipped_missing_field,
        RowStatus.imported,
    ]
    assert report.outcomes[0].reason == "missing_field:id"
    assert report.outcomes[1].reason == "invalid_field:key"
    assert report.skip_reasons() == {
        "missing_field:id": 1,
        "invalid_field:key": 1,
        "missing_field:sortOrder": 1,
    }
    async with session_scope() as s:
        assert await repos.count(s, models.ResourceType) == 1


@pytest.mark.asyncio
async def test_unparsable_key_and_sort_order_fall_back():
    store = RecordStore()
    report = await ResourceTypePhase().run(
        store, [{"name": "Odd", "id": "rt1", "key": "one", "sortOrder": "first"}]
    )
    assert report.imported == 1
    async with session_scope() as s:
        (row,) = await repos.list_all(s, models.ResourceType)
    assert row.key == -1
    assert row.sort_order == 0


@pytest.mark.asyncio
async def test_frameworks_imported_and_validated():
    store = RecordStore()
    report = await FrameworkPhase().run(
        store,
        [
            {"name": "Core Data &amp; Friends", "id": 1, "key": "1"},
            {"name": "String id", "id": "2", "key": "2"},
            {"name": "Too big", "id": 40000, "key": "3"},
            {"name": "Bad key", "id": 4, "key": "x"},
        ],
    )
    assert report.imported == 2
    assert report.skipped == 2
    assert report.outcomes[2].reason == "invalid_field:id"

    async with session_scope() as s:
        rows = {r.identifier: r for r in await repos.list_all(s, models.Framework)}
    assert rows[1].name == "Core Data & Friends"
    assert rows[4].key == -1

    async with store.transaction("check"):
        found = await store.find_by_lookup_key(models.Framework, 1)
        assert found is not None and found.identifier == 1


@pytest.mark.asyncio
async def test_framework_rekeyed_within_section_frees_old_key():
    store = RecordStore()
    report = await FrameworkPhase().run(
        store,
        [
            {"name": "Foo", "id": 1, "key": "5"},
            {"name": "Foo", "id": 1, "key": "6"},
        ],
    )
    assert report.imported == 2

    async with store.transaction("check"):
        assert await store.find_by_lookup_key(models.Framework, 5) is None
        found = await store.find_by_lookup_key(models.Framework, 6)
        assert found is not None and found.key == 6
