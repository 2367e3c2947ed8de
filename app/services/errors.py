"""
Shared error types for the contact desk service layer.

Every failure carries a machine-checkable ``kind`` and the HTTP status the
API layer should answer with. Centralised here so the SendGrid client, the
export pipeline and the gateway services raise the same taxonomy.
"""


class ContactDeskError(Exception):
    """Base exception for all contact desk failures."""

    kind = "error"
    default_status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "error_kind": self.kind}


class ValidationError(ContactDeskError):
    """Malformed or missing input, raised before any network call."""

    kind = "validation_error"
    default_status_code = 400


class ConfigurationError(ContactDeskError):
    """Missing credential or unusable configuration."""

    kind = "configuration_error"
    default_status_code = 500


class UpstreamError(ContactDeskError):
    """Non-2xx response from the SendGrid API."""

    kind = "upstream_error"

    def __init__(self, status_code: int, raw_body: str = "", operation: str | None = None):
        super().__init__(
            f"SendGrid API returned status {status_code}: {raw_body}", status_code=status_code
        )
        self.raw_body = raw_body
        self.operation = operation


class ExportStartFailed(ContactDeskError):
    """The export job could not be started."""

    kind = "export_start_failed"
    default_status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message, status_code=upstream_status)
        self.upstream_status = upstream_status


class ExportTimeout(ContactDeskError):
    """The export job did not become ready within the poll budget."""

    kind = "export_timeout"
    default_status_code = 408

    def __init__(self, last_status: str | None, attempts: int):
        super().__init__("Export is taking too long to complete")
        self.last_status = last_status or "unknown"
        self.attempts = attempts

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status"] = self.last_status
        return data


class DownloadFailed(ContactDeskError):
    """The export result file could not be downloaded."""

    kind = "download_failed"

    def __init__(self, status_code: int, reason: str = ""):
        message = f"Failed to download contacts: {status_code}"
        if reason:
            message = f"{message} {reason}"
        super().__init__(message, status_code=status_code)


class DecompressFailed(ContactDeskError):
    """A gzip-signed payload could not be decompressed."""

    kind = "decompress_failed"
    default_status_code = 502


class ParseError(ContactDeskError):
    """The export payload could not be turned into contact records."""

    kind = "parse_error"
    default_status_code = 502


class MissingJobId(ContactDeskError):
    """SendGrid accepted a contact upsert but returned no job id to track."""

    kind = "missing_job_id"
    default_status_code = 502
