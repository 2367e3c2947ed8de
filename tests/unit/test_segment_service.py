from unittest.mock import AsyncMock

import pytest

from app.services.contacts.tag_query import encode_tags
from app.services.errors import UpstreamError, ValidationError
from app.services.segments.segment_service import SegmentService
from app.services.sendgrid.client import SendGridClient


@pytest.fixture
def client():
    return AsyncMock(spec=SendGridClient)


@pytest.fixture
def service(client):
    return SegmentService(client=client)


@pytest.mark.asyncio
async def test_create_segment_encodes_tags(service, client):
    client.create_segment.return_value = {"id": "seg-1"}

    segment_id = await service.create_segment("  VIPs ", ["vip", "press"])

    assert segment_id == "seg-1"
    client.create_segment.assert_awaited_once_with("VIPs", encode_tags(["vip", "press"]))


@pytest.mark.asyncio
async def test_create_segment_requires_tags(service, client):
    with pytest.raises(ValidationError) as exc:
        await service.create_segment("VIPs", [])

    assert exc.value.message == "At least one tag must be selected"
    client.create_segment.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_segment_requires_name(service, client):
    with pytest.raises(ValidationError):
        await service.create_segment("   ", ["vip"])

    client.create_segment.assert_not_awaited()


@pytest.mark.asyncio
async def test_list_segments_decodes_tags(service, client):
    client.list_segments.return_value = {
        "results": [
            {"id": "seg-1", "name": "VIPs", "query_dsl": encode_tags(["vip"])},
            {"id": "seg-2", "name": "Manual", "query_dsl": "select * from contact_data"},
        ]
    }

    segments = await service.list_segments()

    assert [segment.id for segment in segments] == ["seg-1", "seg-2"]
    assert segments[0].tags == ["vip"]
    assert segments[1].tags == []
    assert segments[1].has_recognized_tags() is False


@pytest.mark.asyncio
async def test_get_segment_parses_dates(service, client):
    client.get_segment.return_value = {
        "id": "seg-1",
        "name": "VIPs",
        "query_dsl": encode_tags(["vip"]),
        "contacts_count": 12,
        "created_at": "2024-03-01T10:00:00Z",
    }

    segment = await service.get_segment("seg-1")

    assert segment.contacts_count == 12
    assert segment.created_at.year == 2024
    assert segment.to_dict()["tags"] == ["vip"]


@pytest.mark.asyncio
async def test_update_segment_sends_new_query(service, client):
    await service.update_segment("seg-1", "Press", ["press"])

    client.update_segment.assert_awaited_once_with("seg-1", "Press", encode_tags(["press"]))


@pytest.mark.asyncio
async def test_delete_requires_id(service, client):
    with pytest.raises(ValidationError):
        await service.delete_segment("")

    client.delete_segment.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_upstream_error_surfaces(service, client):
    client.delete_segment.side_effect = UpstreamError(404, "not found")

    with pytest.raises(UpstreamError) as exc:
        await service.delete_segment("seg-9")

    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_refresh_segment_defaults_to_utc(service, client):
    client.refresh_segment.return_value = {"job_id": "job-7"}

    job_id = await service.refresh_segment("seg-1")

    assert job_id == "job-7"
    client.refresh_segment.assert_awaited_once_with("seg-1", "UTC")
