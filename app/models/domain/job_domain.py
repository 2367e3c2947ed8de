# app/models/domain/job_domain.py
"""
Job Domain Models
Asynchronous SendGrid jobs: bulk contact exports and contact import (upsert) jobs.
"""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from app.models.domain.contact_domain import ContactRecord

EXPORT_STATUS_READY = "ready"
EXPORT_STATUS_PENDING = "pending"
EXPORT_STATUS_FAILED = "failed"

IMPORT_STATUS_PENDING = "pending"
IMPORT_STATUS_FAILED = "failed"


@dataclass(slots=True)
class ExportJob:
    """One bulk-export request and its last observed state."""

    id: str
    status: str = EXPORT_STATUS_PENDING
    urls: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "ExportJob":
        urls = data.get("urls") or []
        return cls(
            id=str(data.get("id", "")),
            status=str(data.get("status") or EXPORT_STATUS_PENDING),
            urls=[str(url) for url in urls if url],
        )

    def is_ready(self) -> bool:
        return self.status == EXPORT_STATUS_READY and len(self.urls) > 0


@dataclass(slots=True, frozen=True)
class ExportReady:
    """Terminal poll result: the export files can be downloaded."""

    urls: list[str]
    attempts: int


@dataclass(slots=True, frozen=True)
class ExportTimedOut:
    """Terminal poll result: the attempt budget ran out before 'ready'."""

    last_status: str | None
    attempts: int


ExportPollResult = ExportReady | ExportTimedOut


@dataclass(slots=True)
class ExportBatch:
    """Normalized output of a full export fetch."""

    contacts: list[ContactRecord]
    skipped: int
    export_id: str
    urls: list[str]
    format: str


@dataclass(slots=True)
class ImportErrorSummary:
    """Partial-failure counts reported by SendGrid for an import job."""

    errored_count: int
    requested_count: int
    error_details: str
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "erroredCount": self.errored_count,
            "requestedCount": self.requested_count,
            "errorDetails": self.error_details,
        }
        if self.error_message:
            data["errorMessage"] = self.error_message
        return data


@dataclass(slots=True)
class ImportJobStatus:
    """Normalized SendGrid contact import job status."""

    job_id: str
    status: str
    raw: dict[str, Any]
    error_info: ImportErrorSummary | None = None

    def is_pending(self) -> bool:
        return self.status == IMPORT_STATUS_PENDING


@dataclass(slots=True)
class PendingJob:
    """A contact submission tracked locally until its status settles."""

    job_id: str
    emails: list[str]
    name: str = ""
    created_at: float = field(default_factory=lambda: datetime.now(UTC).timestamp())
    status: str | None = None
    error_info: dict[str, Any] | None = None

    def is_pending(self) -> bool:
        return not self.status or self.status == IMPORT_STATUS_PENDING

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PendingJob":
        emails = data.get("emails")
        if emails is None and data.get("email"):
            emails = [data["email"]]
        return cls(
            job_id=str(data.get("job_id") or data.get("jobId") or ""),
            emails=[str(email) for email in emails or []],
            name=str(data.get("name") or ""),
            created_at=float(data.get("created_at") or data.get("createdAt") or 0),
            status=data.get("status"),
            error_info=data.get("error_info") or data.get("errorInfo"),
        )
