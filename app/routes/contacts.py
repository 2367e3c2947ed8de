"""
Contact API Routes
HTTP endpoints for contact submission, tagging, lookups, the cached contact
list and the pending submission jobs. Errors raised by the service layer are
turned into the JSON error envelope by the handler registered in app.main.
"""

from fastapi import APIRouter, Query

from app.infrastructure.observability.logging import get_logger
from app.models.api.contact_request import (
    BulkUpdateTagsRequest,
    CheckEmailRequest,
    ColumnsRequest,
    CreateContactRequest,
    DownloadRequest,
    UpdateTagsRequest,
)
from app.models.api.contact_response import (
    CachedContactsResponse,
    ColumnsResponse,
    ContactsPayload,
    CustomFieldsResponse,
    DownloadResponse,
    EmailCheckResponse,
    ExportUrlsResponse,
    JobStatusResponse,
    JobSubmittedResponse,
    PendingJobsResponse,
    SuccessResponse,
    TagsResponse,
)
from app.models.domain.contact_domain import record_tags
from app.models.domain.job_domain import PendingJob
from app.services.cache.contact_cache import contact_directory, filter_contacts
from app.services.cache.pending_jobs import pending_job_tracker
from app.services.cache.preferences import column_preferences
from app.services.contacts.contact_service import (
    contact_service,
    map_contact_fields,
    serialize_tags,
)
from app.services.contacts.export_pipeline import contact_export_pipeline

logger = get_logger(__name__)

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


def _cached_row(fields: dict) -> dict:
    """Flatten a submitted contact into the shape of an exported row."""
    contact = map_contact_fields(fields)
    row = {name: value for name, value in contact.items() if name != "custom_fields"}
    row["tags"] = serialize_tags(fields.get("tags"))
    row["tags_array"] = record_tags(row)
    return row


@router.post("", response_model=JobSubmittedResponse)
async def create_contact(request: CreateContactRequest):
    """Add or update one contact and track its import job."""
    fields = request.model_dump(exclude_none=True)
    job_id = await contact_service.upsert_contact(fields)

    email = fields["email"].strip()
    display_name = request.name or " ".join(
        str(fields.get(key, "")).strip()
        for key in ("first_name", "firstName", "last_name", "lastName")
        if fields.get(key)
    )
    await pending_job_tracker.add(PendingJob(job_id=job_id, emails=[email], name=display_name))
    await contact_directory.cache.replace_contact(_cached_row(fields))

    return JobSubmittedResponse(job_id=job_id)


@router.post("/check-email", response_model=EmailCheckResponse)
async def check_email(request: CheckEmailRequest):
    """Advisory duplicate check; lookup failures answer exists=false."""
    lookup = await contact_service.check_email_exists_safe(request.email)
    if lookup.advisory_error:
        logger.info("Email check degraded to not-found", error=lookup.advisory_error)
    return EmailCheckResponse(exists=lookup.exists, contact=lookup.contact)


@router.post("/update-tags", response_model=JobSubmittedResponse)
async def update_tags(request: UpdateTagsRequest):
    job_id = await contact_service.update_tags(request.emails, request.tags)
    await contact_directory.cache.apply_tag_update(
        {"email": email, "tags": request.tags} for email in request.emails
    )
    return JobSubmittedResponse(job_id=job_id)


@router.post("/bulk-update-tags", response_model=JobSubmittedResponse)
async def bulk_update_tags(request: BulkUpdateTagsRequest):
    job_id = await contact_service.bulk_update_tags(request.updates)
    await contact_directory.cache.apply_tag_update(request.updates)
    return JobSubmittedResponse(job_id=job_id)


@router.get("/status", response_model=JobStatusResponse)
async def get_job_status(job_id: str | None = Query(default=None, description="Import job id")):
    """Check an import job and record its status on the pending list."""
    job_status = await contact_service.get_job_status(job_id)
    error_info = job_status.error_info.to_dict() if job_status.error_info else None

    await pending_job_tracker.update_status(job_status.job_id, job_status.status, error_info)

    return JobStatusResponse(status=job_status.status, error_info=error_info, job=job_status.raw)


@router.get("/custom-fields", response_model=CustomFieldsResponse)
async def list_custom_fields(
    include_reserved: bool = Query(default=False, description="Also list reserved fields"),
):
    fields = await contact_service.list_custom_fields(include_reserved=include_reserved)
    return CustomFieldsResponse(custom_fields=[field.to_dict() for field in fields])


@router.get("/get-all", response_model=ExportUrlsResponse)
async def get_all_contacts():
    """Start an export and wait (bounded) for its download URLs."""
    export_id, urls = await contact_export_pipeline.export_urls()
    return ExportUrlsResponse(urls=urls, export_id=export_id)


@router.post("/download", response_model=DownloadResponse)
async def download_contacts(request: DownloadRequest):
    """Download one export file and return its parsed contacts."""
    result = await contact_export_pipeline.download_and_parse(request.url)
    return DownloadResponse(
        data=ContactsPayload(contacts=result.contacts),
        skipped=result.skipped,
        format=result.format,
    )


@router.get("/cached", response_model=CachedContactsResponse)
async def get_cached_contacts(
    refresh: bool = Query(default=False, description="Bypass the cache"),
    search: str | None = Query(default=None, description="Case-insensitive search term"),
    sort: str | None = Query(default=None, description="Field to sort by"),
    direction: str = Query(default="asc", pattern="^(asc|desc)$"),
):
    cached, from_cache = await contact_directory.get_contacts(force_refresh=refresh)
    contacts = filter_contacts(cached.contacts, term=search, sort_field=sort, direction=direction)

    return CachedContactsResponse(
        contacts=contacts,
        total=len(contacts),
        last_updated=cached.fetched_at_ms,
        using_cached_data=from_cache,
        state=cached.state,
    )


@router.get("/tags", response_model=TagsResponse)
async def list_known_tags():
    """Tags seen on cached contacts."""
    return TagsResponse(tags=await contact_directory.cache.available_tags())


@router.get("/pending-jobs", response_model=PendingJobsResponse)
async def list_pending_jobs():
    jobs = await pending_job_tracker.all()
    return PendingJobsResponse(
        jobs=[job.to_dict() for job in jobs],
        pending_count=sum(1 for job in jobs if job.is_pending()),
    )


@router.post("/pending-jobs/refresh", response_model=PendingJobsResponse)
async def refresh_pending_jobs():
    jobs = await pending_job_tracker.refresh_pending(contact_service)
    return PendingJobsResponse(
        jobs=[job.to_dict() for job in jobs],
        pending_count=sum(1 for job in jobs if job.is_pending()),
    )


@router.delete("/pending-jobs", response_model=SuccessResponse)
async def clear_pending_jobs():
    await pending_job_tracker.clear()
    return SuccessResponse()


@router.get("/columns", response_model=ColumnsResponse)
async def get_visible_columns():
    return ColumnsResponse(columns=await column_preferences.load())


@router.put("/columns", response_model=ColumnsResponse)
async def save_visible_columns(request: ColumnsRequest):
    return ColumnsResponse(columns=await column_preferences.save(request.columns))
