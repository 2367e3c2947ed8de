from unittest.mock import AsyncMock

import pytest

from app.models.domain.job_domain import ImportErrorSummary, ImportJobStatus, PendingJob
from app.services.cache.pending_jobs import PendingJobTracker
from app.services.contacts.contact_service import ContactService
from app.services.errors import UpstreamError, ValidationError


@pytest.fixture
def tracker(memory_store):
    return PendingJobTracker(store=memory_store, limit=3)


def _status(job_id, status, error_info=None):
    return ImportJobStatus(job_id=job_id, status=status, raw={}, error_info=error_info)


@pytest.mark.asyncio
async def test_add_keeps_most_recent_first_and_caps(tracker):
    for index in range(5):
        await tracker.add(PendingJob(job_id=f"job-{index}", emails=[f"u{index}@x.com"]))

    jobs = await tracker.all()

    assert [job.job_id for job in jobs] == ["job-4", "job-3", "job-2"]


@pytest.mark.asyncio
async def test_add_same_job_moves_it_to_front(tracker):
    await tracker.add(PendingJob(job_id="a", emails=["a@x.com"]))
    await tracker.add(PendingJob(job_id="b", emails=["b@x.com"]))
    await tracker.add(PendingJob(job_id="a", emails=["a@x.com"], name="Ann"))

    jobs = await tracker.all()

    assert [job.job_id for job in jobs] == ["a", "b"]
    assert jobs[0].name == "Ann"


@pytest.mark.asyncio
async def test_update_status_and_pending(tracker):
    await tracker.add(PendingJob(job_id="a", emails=["a@x.com"]))
    await tracker.add(PendingJob(job_id="b", emails=["b@x.com"]))

    updated = await tracker.update_status("a", "completed")

    assert updated.status == "completed"
    assert [job.job_id for job in await tracker.pending()] == ["b"]
    assert await tracker.update_status("missing", "completed") is None


@pytest.mark.asyncio
async def test_refresh_pending_records_results(tracker):
    await tracker.add(PendingJob(job_id="a", emails=["a@x.com"]))
    await tracker.add(PendingJob(job_id="b", emails=["b@x.com"]))
    await tracker.add(PendingJob(job_id="c", emails=["c@x.com"], status="completed"))

    summary = ImportErrorSummary(errored_count=1, requested_count=1, error_details="details")
    service = AsyncMock(spec=ContactService)
    service.get_job_status.side_effect = [
        UpstreamError(500, "boom"),
        _status("a", "failed", summary),
    ]

    jobs = await tracker.refresh_pending(service)

    by_id = {job.job_id: job for job in jobs}
    assert by_id["b"].status is None
    assert by_id["a"].status == "failed"
    assert by_id["a"].error_info["erroredCount"] == 1
    assert service.get_job_status.await_count == 2
    assert [job.job_id for job in await tracker.pending()] == ["b"]


@pytest.mark.asyncio
async def test_clear(tracker):
    await tracker.add(PendingJob(job_id="a", emails=["a@x.com"]))

    await tracker.clear()

    assert await tracker.all() == []


def test_pending_job_from_legacy_dict():
    job = PendingJob.from_dict({"jobId": "j1", "email": "a@x.com", "createdAt": 1700000000})

    assert job.job_id == "j1"
    assert job.emails == ["a@x.com"]
    assert job.is_pending() is True


@pytest.mark.asyncio
async def test_refresh_pending_skips_blank_ids_and_survives_rejections(tracker):
    await tracker.add(PendingJob(job_id="", emails=["blank@x.com"]))
    await tracker.add(PendingJob(job_id="rejected", emails=["r@x.com"]))
    await tracker.add(PendingJob(job_id="good", emails=["g@x.com"]))

    service = AsyncMock(spec=ContactService)

    async def job_status(job_id):
        if job_id == "rejected":
            raise ValidationError("job_id parameter is required")
        return _status(job_id, "completed")

    service.get_job_status.side_effect = job_status

    jobs = await tracker.refresh_pending(service)

    by_id = {job.job_id: job for job in jobs}
    assert by_id["good"].status == "completed"
    assert by_id["rejected"].status is None
    assert by_id[""].status is None
    assert [call.args[0] for call in service.get_job_status.await_args_list] == [
        "good",
        "rejected",
    ]
