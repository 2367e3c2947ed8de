import pytest

from app.models.domain.segment_domain import Segment
from app.services.cache.preferences import (
    DEFAULT_VISIBLE_COLUMNS,
    ColumnPreferences,
    SegmentDirectory,
)
from app.services.errors import ValidationError


@pytest.mark.asyncio
async def test_segment_directory_upsert_remove(memory_store):
    directory = SegmentDirectory(store=memory_store)

    await directory.upsert("1", "VIPs")
    await directory.upsert("2", "Press")
    await directory.upsert("1", "VIP list")

    assert await directory.get("1") == {"id": "1", "name": "VIP list"}
    assert await directory.remove("2") is True
    assert await directory.remove("2") is False
    assert await directory.list() == [{"id": "1", "name": "VIP list"}]


@pytest.mark.asyncio
async def test_segment_directory_replace_all(memory_store):
    directory = SegmentDirectory(store=memory_store)
    await directory.upsert("old", "Old")

    await directory.replace_all([Segment({"id": "9", "name": "Nine", "query_dsl": ""})])

    assert await directory.list() == [{"id": "9", "name": "Nine"}]
    assert directory.key == "sagan_segments"


@pytest.mark.asyncio
async def test_columns_default_and_save(memory_store):
    preferences = ColumnPreferences(store=memory_store)

    assert await preferences.load() == DEFAULT_VISIBLE_COLUMNS

    saved = await preferences.save(["email", " city ", "email", ""])

    assert saved == ["email", "city"]
    assert await preferences.load() == ["email", "city"]
    assert preferences.key == "sagan_visible_columns"


@pytest.mark.asyncio
async def test_columns_reject_empty(memory_store):
    preferences = ColumnPreferences(store=memory_store)

    with pytest.raises(ValidationError):
        await preferences.save([" "])
