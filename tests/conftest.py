# tests/conftest.py

import gc
import os
from collections.abc import AsyncIterator

import pytest

# Point the app code at an in-memory DB before any Samplewatch module builds an engine.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

# The DB module reads settings at import (config.toml would outrank env), so
# override the module-level constant before any engine is created.
import Samplewatch.db as _db  # noqa: E402

_db.DATABASE_URL = os.environ["DATABASE_URL"]

from Samplewatch import models as _models  # noqa: F401,E402
from Samplewatch.db import dispose_engine, init_db  # noqa: E402
from Samplewatch.metrics import reset_counters  # noqa: E402


@pytest.fixture(autouse=True)
async def _fresh_db() -> AsyncIterator[None]:
    """Give every test its own empty in-memory database.

    With StaticPool each engine owns exactly one SQLite connection, so disposing
    the engine drops the whole database.
    """
    await dispose_engine()
    await init_db()
    reset_counters()
    try:
        yield None
    finally:
        await dispose_engine()
    gc.collect()


def make_catalog(
    *,
    resource_types=None,
    frameworks=None,
    topics=None,
    documents=None,
    columns=None,
) -> dict:
    """Build a raw catalog document in the shape the importer expects."""
    return {
        "topics": [
            {"name": "Resource Types", "contents": list(resource_types or [])},
            {"name": "Technologies", "contents": list(frameworks or [])},
            {"name": "Topics", "contents": list(topics or [])},
        ],
        "documents": [list(r) for r in (documents or [])],
        "columns": dict(columns or {}),
    }


SAMPLE_CODE = {"name": "Sample Code", "id": "rt1", "key": "1", "sortOrder": "0"}
GUIDES = {"name": "Guides", "id": "rt2", "key": "2", "sortOrder": "1"}


def doc_row(
    name="Sample A",
    identifier="d1",
    type_code=1,
    date="2016-01-23",
    update_size=2,
    topic=10,
    framework=1,
    release=3,
    subtopic=0,
    url="../a/b.html",
    sort_order=0,
    display_date="2016-01-24",
) -> list:
    return [
        name,
        identifier,
        type_code,
        date,
        update_size,
        topic,
        framework,
        release,
        subtopic,
        url,
        sort_order,
        display_date,
        None,
    ]


@pytest.fixture
def catalog_factory():
    return make_catalog


@pytest.fixture
def sample_catalog() -> dict:
    return make_catalog(
        resource_types=[SAMPLE_CODE, GUIDES],
        frameworks=[{"name": "Foo", "id": 1, "key": "1"}],
        topics=[{"name": "General", "id": 1, "key": "10"}],
        documents=[doc_row()],
    )


@pytest.fixture
def row_factory():
    return doc_row
