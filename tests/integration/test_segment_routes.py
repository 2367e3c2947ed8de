import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.models.domain.segment_domain import Segment
from app.services.cache.preferences import segment_directory
from app.services.contacts.tag_query import encode_tags
from app.services.errors import UpstreamError, ValidationError
from app.services.segments.segment_service import SegmentService

client = TestClient(app)


@pytest.fixture
def service(monkeypatch):
    service = AsyncMock(spec=SegmentService)
    monkeypatch.setattr("app.routes.segments.segment_service", service)
    return service


def _segment(segment_id="seg-1", name="VIPs", tags=("vip",)):
    return Segment(
        {
            "id": segment_id,
            "name": name,
            "query_dsl": encode_tags(list(tags)),
            "contacts_count": 3,
            "created_at": "2024-03-01T10:00:00Z",
        }
    )


def test_create_segment_returns_201(service):
    service.create_segment.return_value = "seg-1"

    response = client.post("/api/segments", json={"name": "VIPs", "tags": ["vip"]})

    assert response.status_code == 201
    assert response.json() == {"success": True, "id": "seg-1"}
    service.create_segment.assert_awaited_once_with("VIPs", ["vip"])


def test_create_segment_validation_error(service):
    service.create_segment.side_effect = ValidationError("At least one tag must be selected")

    response = client.post("/api/segments", json={"name": "VIPs", "tags": []})

    assert response.status_code == 400
    assert response.json()["error"] == "At least one tag must be selected"


def test_list_segments_includes_decoded_tags(service):
    service.list_segments.return_value = [_segment(), _segment("seg-2", "Press", ("press",))]

    response = client.get("/api/segments")

    data = response.json()
    assert data["total_count"] == 2
    assert data["segments"][0]["tags"] == ["vip"]
    assert data["segments"][1]["name"] == "Press"


def test_get_segment(service):
    service.get_segment.return_value = _segment()

    response = client.get("/api/segments/seg-1")

    segment = response.json()["segment"]
    assert segment["id"] == "seg-1"
    assert segment["contacts_count"] == 3
    assert segment["query_dsl"] == encode_tags(["vip"])


def test_get_segment_not_found(service):
    service.get_segment.side_effect = UpstreamError(404, "not found")

    response = client.get("/api/segments/missing")

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_update_segment(service):
    response = client.patch("/api/segments/seg-1", json={"name": "Press", "tags": ["press"]})

    assert response.json() == {"success": True}
    service.update_segment.assert_awaited_once_with("seg-1", "Press", ["press"])


def test_delete_segment(service):
    response = client.delete("/api/segments/seg-1")

    assert response.json() == {"success": True}
    service.delete_segment.assert_awaited_once_with("seg-1")


def test_refresh_segment(service):
    service.refresh_segment.return_value = "job-9"

    response = client.post(
        "/api/segments/seg-1/refresh", json={"user_time_zone": "America/Chicago"}
    )

    assert response.json() == {"success": True, "job_id": "job-9"}
    service.refresh_segment.assert_awaited_once_with("seg-1", "America/Chicago")


def test_directory_follows_create_and_delete(service):
    service.create_segment.return_value = "seg-1"

    client.post("/api/segments", json={"name": "VIPs", "tags": ["vip"]})
    assert asyncio.run(segment_directory.list()) == [{"id": "seg-1", "name": "VIPs"}]

    client.delete("/api/segments/seg-1")
    assert asyncio.run(segment_directory.list()) == []
