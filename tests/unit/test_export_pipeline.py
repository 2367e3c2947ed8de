import gzip
import json
from unittest.mock import AsyncMock

import pytest

from app.models.domain.job_domain import ExportReady, ExportTimedOut
from app.services.contacts.export_pipeline import ContactExportPipeline
from app.services.errors import (
    ConfigurationError,
    DownloadFailed,
    ExportStartFailed,
    ExportTimeout,
    UpstreamError,
    ValidationError,
)
from app.services.sendgrid.client import SendGridClient

EXPORT_URL = "https://exports.example.com/contacts-1.json.gz"


def _client() -> AsyncMock:
    client = AsyncMock(spec=SendGridClient)
    client.start_export.return_value = {"id": "exp-1"}
    return client


def _pipeline(client, max_attempts=10) -> tuple[ContactExportPipeline, list[float]]:
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    pipeline = ContactExportPipeline(
        client=client, poll_interval=1.0, max_attempts=max_attempts, sleep=fake_sleep
    )
    return pipeline, sleeps


def _pending():
    return {"id": "exp-1", "status": "pending"}


def _ready():
    return {"id": "exp-1", "status": "ready", "urls": [EXPORT_URL]}


@pytest.mark.asyncio
async def test_ready_on_last_attempt():
    client = _client()
    client.get_export_status.side_effect = [_pending()] * 9 + [_ready()]
    pipeline, sleeps = _pipeline(client)

    result = await pipeline.wait_for_export("exp-1")

    assert result == ExportReady(urls=[EXPORT_URL], attempts=10)
    assert client.get_export_status.await_count == 10
    assert sleeps == [1.0] * 10


@pytest.mark.asyncio
async def test_never_ready_times_out():
    client = _client()
    client.get_export_status.return_value = _pending()
    pipeline, _ = _pipeline(client)

    result = await pipeline.wait_for_export("exp-1")

    assert result == ExportTimedOut(last_status="pending", attempts=10)
    assert client.get_export_status.await_count == 10


@pytest.mark.asyncio
async def test_export_urls_raises_timeout_with_last_status():
    client = _client()
    client.get_export_status.return_value = _pending()
    pipeline, _ = _pipeline(client, max_attempts=3)

    with pytest.raises(ExportTimeout) as exc:
        await pipeline.export_urls()

    assert exc.value.status_code == 408
    assert exc.value.to_dict()["status"] == "pending"
    assert client.get_export_status.await_count == 3


@pytest.mark.asyncio
async def test_ready_without_urls_keeps_polling():
    client = _client()
    client.get_export_status.side_effect = [
        {"id": "exp-1", "status": "ready", "urls": []},
        _ready(),
    ]
    pipeline, _ = _pipeline(client)

    result = await pipeline.wait_for_export("exp-1")

    assert result == ExportReady(urls=[EXPORT_URL], attempts=2)


@pytest.mark.asyncio
async def test_status_check_error_counts_as_attempt():
    client = _client()
    client.get_export_status.side_effect = [UpstreamError(500, "boom"), _ready()]
    pipeline, _ = _pipeline(client)

    result = await pipeline.wait_for_export("exp-1")

    assert isinstance(result, ExportReady)
    assert result.attempts == 2


@pytest.mark.asyncio
async def test_start_failure_maps_to_export_start_failed():
    client = _client()
    client.start_export.side_effect = UpstreamError(401, "unauthorized")
    pipeline, _ = _pipeline(client)

    with pytest.raises(ExportStartFailed) as exc:
        await pipeline.fetch_contacts()

    assert exc.value.status_code == 401
    client.get_export_status.assert_not_awaited()


@pytest.mark.asyncio
async def test_start_without_id_fails():
    client = _client()
    client.start_export.return_value = {}
    pipeline, _ = _pipeline(client)

    with pytest.raises(ExportStartFailed) as exc:
        await pipeline.start_export()

    assert exc.value.message == "No export ID returned from SendGrid"


@pytest.mark.asyncio
async def test_missing_api_key_propagates():
    client = _client()
    client.start_export.side_effect = ConfigurationError("API key not configured")
    pipeline, _ = _pipeline(client)

    with pytest.raises(ConfigurationError):
        await pipeline.fetch_contacts()


@pytest.mark.asyncio
async def test_fetch_contacts_reads_first_file_only():
    client = _client()
    client.get_export_status.return_value = {
        "id": "exp-1",
        "status": "ready",
        "urls": [EXPORT_URL, "https://exports.example.com/contacts-2.json.gz"],
    }
    lines = "\n".join(json.dumps({"email": f"user{i}@x.com"}) for i in range(3))
    client.download_export.return_value = gzip.compress(lines.encode("utf-8"))
    pipeline, _ = _pipeline(client)

    batch = await pipeline.fetch_contacts()

    client.download_export.assert_awaited_once_with(EXPORT_URL)
    assert batch.export_id == "exp-1"
    assert len(batch.urls) == 2
    assert [c["email"] for c in batch.contacts] == ["user0@x.com", "user1@x.com", "user2@x.com"]


@pytest.mark.asyncio
async def test_download_failure_maps_to_download_failed():
    client = _client()
    client.download_export.side_effect = UpstreamError(403, "Forbidden")
    pipeline, _ = _pipeline(client)

    with pytest.raises(DownloadFailed) as exc:
        await pipeline.download(EXPORT_URL)

    assert exc.value.status_code == 403
    assert exc.value.message == "Failed to download contacts: 403 Forbidden"


@pytest.mark.asyncio
async def test_download_requires_url():
    pipeline, _ = _pipeline(_client())

    with pytest.raises(ValidationError):
        await pipeline.download("")


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        ContactExportPipeline(client=_client(), max_attempts=0)
