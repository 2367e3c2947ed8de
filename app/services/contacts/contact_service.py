"""
Contact gateway service.
Maps this service's contact shapes onto SendGrid's: field renames, tag text
serialization, duplicate lookups, import job status and field definitions.
Input is validated before any SendGrid call is made.
"""

import re
from collections.abc import Iterable
from typing import Any

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.contact_domain import (
    ContactRecord,
    CustomFieldDefinition,
    EmailLookup,
)
from app.models.domain.job_domain import (
    IMPORT_STATUS_FAILED,
    IMPORT_STATUS_PENDING,
    ImportErrorSummary,
    ImportJobStatus,
)
from app.services.errors import MissingJobId, UpstreamError, ValidationError
from app.services.sendgrid.client import SendGridClient, sendgrid_client

logger = get_logger(__name__)

# Shape check only, not full RFC 5322 validation
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Input name -> SendGrid reserved field name
CONTACT_FIELD_MAP = {
    "first_name": "first_name",
    "firstName": "first_name",
    "last_name": "last_name",
    "lastName": "last_name",
    "phone": "phone_number",
    "phone_number": "phone_number",
    "address_line_1": "address_line_1",
    "addressLine1": "address_line_1",
    "address_line_2": "address_line_2",
    "addressLine2": "address_line_2",
    "city": "city",
    "state": "state_province_region",
    "state_province_region": "state_province_region",
    "postal_code": "postal_code",
    "postalCode": "postal_code",
    "country": "country",
}

# Sent as empty strings when not supplied
DEFAULT_BLANK_FIELDS = (
    "first_name",
    "last_name",
    "city",
    "state_province_region",
    "country",
    "postal_code",
    "phone_number",
)

IMPORT_ERROR_DETAILS = (
    "There were errors processing this contact. "
    "Check the errors_url in the full response for details."
)


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email.strip()))


def validate_email(email: Any) -> str:
    """Return the trimmed email or raise ValidationError."""
    if email is None or (isinstance(email, str) and not email.strip()):
        raise ValidationError("Email is required")
    if not is_valid_email(email):
        raise ValidationError("Invalid email format")
    return email.strip()


def serialize_tags(tags: Any) -> str:
    """Serialize a tag input to SendGrid's Text representation (comma-joined)."""
    if tags is None:
        return ""
    if isinstance(tags, str):
        return tags
    if isinstance(tags, Iterable):
        cleaned = []
        for tag in tags:
            if not isinstance(tag, str):
                raise ValidationError("Tags must be strings")
            if tag.strip() and tag.strip() not in cleaned:
                cleaned.append(tag.strip())
        return ", ".join(cleaned)
    raise ValidationError("Tags must be a list of strings or a comma-separated string")


def map_contact_fields(fields: dict[str, Any], tags_field: str | None = None) -> dict[str, Any]:
    """
    Map an input contact onto a SendGrid contact payload.

    Args:
        fields: Input fields (snake_case or the UI's camelCase names)
        tags_field: Custom field that stores tag text

    Returns:
        dict: SendGrid contact with reserved fields and ``custom_fields``
    """
    email = validate_email(fields.get("email"))
    contact: dict[str, Any] = {name: "" for name in DEFAULT_BLANK_FIELDS}
    contact["email"] = email

    for input_name, value in fields.items():
        target = CONTACT_FIELD_MAP.get(input_name)
        if target is None or value is None:
            continue
        contact[target] = str(value).strip()

    custom_fields = dict(fields.get("custom_fields") or {})
    custom_fields[tags_field or settings.SENDGRID_TAGS_FIELD] = serialize_tags(fields.get("tags"))
    contact["custom_fields"] = custom_fields
    return contact


def _error_summary(body: dict) -> ImportErrorSummary | None:
    results = body.get("results") or {}
    errored = int(results.get("errored_count") or 0)
    if errored <= 0:
        return None

    summary = ImportErrorSummary(
        errored_count=errored,
        requested_count=int(results.get("requested_count") or 0),
        error_details=IMPORT_ERROR_DETAILS,
    )
    status = body.get("status")
    if status == IMPORT_STATUS_FAILED:
        summary.error_message = (
            "The contact submission failed. This could be due to invalid field formats "
            "or missing required data."
        )
    elif status == IMPORT_STATUS_PENDING:
        summary.error_message = (
            "There were some errors with the submission, but it might still be processing."
        )
    return summary


def _match_from_lookup(email: str, body: dict) -> ContactRecord | None:
    """Pull the matched contact out of a search/emails response."""
    result = body.get("result")

    # Current API: {"result": {"a@b.com": {"contact": {...}}}}
    if isinstance(result, dict):
        entry = result.get(email)
        if entry is None:
            entry = next(
                (value for key, value in result.items() if key.lower() == email.lower()), None
            )
        if isinstance(entry, dict) and isinstance(entry.get("contact"), dict):
            return entry["contact"]
        return None

    # Older shape: {"result": [{"id": ..., "contact": {...}}]}
    if isinstance(result, list) and result:
        first = result[0]
        if isinstance(first, dict):
            contact = first.get("contact", first)
            return contact if isinstance(contact, dict) else None
    return None


def _job_id_from(body: dict, operation: str) -> str:
    job_id = body.get("job_id") if isinstance(body, dict) else None
    if not job_id or not str(job_id).strip():
        logger.error(
            "Upsert accepted without a job id",
            operation=operation,
            response_keys=list(body.keys()) if isinstance(body, dict) else None,
        )
        raise MissingJobId("No job ID returned from SendGrid")
    return str(job_id)


class ContactService:
    """
    Gateway for contact operations on SendGrid.

    Every method validates its input first; on failure no request is sent.
    Upstream failures surface as UpstreamError and are never retried.
    """

    def __init__(self, client: SendGridClient | None = None):
        self._client = client or sendgrid_client

    async def upsert_contact(self, fields: dict[str, Any]) -> str:
        """
        Add or update one contact.

        Returns:
            str: SendGrid import job id

        Raises:
            ValidationError: If the email is missing or malformed
            UpstreamError: If SendGrid rejects the request
            MissingJobId: If SendGrid answers 2xx without a job id
        """
        contact = map_contact_fields(fields)
        logger.info("Submitting contact to SendGrid", email_domain=contact["email"].split("@")[-1])

        body = await self._client.upsert_contacts([contact])
        job_id = _job_id_from(body, "upsert_contact")
        logger.info("Contact submission accepted", job_id=job_id)
        return job_id

    async def bulk_update_tags(self, updates: list[dict[str, Any]]) -> str:
        """
        Replace the tag text of many contacts in a single upsert.

        Every entry must carry a well-formed email and a string ``tags``;
        one bad entry fails the whole batch before anything is sent.
        """
        if not isinstance(updates, list) or not updates:
            raise ValidationError("No updates provided")

        contacts = []
        for update in updates:
            if not isinstance(update, dict):
                raise ValidationError("Each update must have a valid email")
            email = update.get("email")
            if not is_valid_email(email):
                raise ValidationError("Each update must have a valid email")
            if not isinstance(update.get("tags"), str):
                raise ValidationError("Tags must be a comma-separated string")
            contacts.append(
                {
                    "email": email.strip(),
                    "custom_fields": {settings.SENDGRID_TAGS_FIELD: update["tags"]},
                }
            )

        logger.info("Bulk updating tags", count=len(contacts))
        body = await self._client.upsert_contacts(contacts)
        return _job_id_from(body, "bulk_update_tags")

    async def update_tags(self, emails: list[str], tags: str) -> str:
        """Set the same tag text on every given contact."""
        if not isinstance(emails, list) or not emails:
            raise ValidationError("No emails provided")
        if not isinstance(tags, str):
            raise ValidationError("Tags must be a comma-separated string")

        return await self.bulk_update_tags([{"email": email, "tags": tags} for email in emails])

    async def check_email_exists(self, email: str) -> EmailLookup:
        """
        Exact lookup of a contact by email.

        A 404 from SendGrid means no match. Other failures raise.
        """
        email = validate_email(email)

        try:
            body = await self._client.search_contacts_by_emails([email])
        except UpstreamError as e:
            if e.status_code == 404:
                return EmailLookup(email=email, exists=False)
            raise

        contact = _match_from_lookup(email, body)
        return EmailLookup(email=email, exists=contact is not None, contact=contact)

    async def search_email_like(self, email: str) -> EmailLookup:
        """Fallback lookup through the SGQL search endpoint."""
        email = validate_email(email)
        escaped = email.replace("'", "''")
        body = await self._client.search_contacts(f"email LIKE '{escaped}'")

        matches = body.get("result") or []
        contact = matches[0] if isinstance(matches, list) and matches else None
        return EmailLookup(email=email, exists=contact is not None, contact=contact)

    async def check_email_exists_safe(self, email: str) -> EmailLookup:
        """
        Duplicate check for interactive forms.

        Advisory only: SendGrid failures degrade to ``exists=False`` after one
        fallback search, so a lookup problem never blocks a submission.
        Malformed input still raises ValidationError.
        """
        email = validate_email(email)

        try:
            return await self.check_email_exists(email)
        except UpstreamError as e:
            logger.warning("Exact email lookup failed, trying search", status_code=e.status_code)

        try:
            return await self.search_email_like(email)
        except UpstreamError as e:
            logger.warning("Email search fallback failed", status_code=e.status_code)
            return EmailLookup(email=email, exists=False, advisory_error=e.message)

    async def get_job_status(self, job_id: str) -> ImportJobStatus:
        """Fetch an import job and summarize any partial failures."""
        if not job_id or not str(job_id).strip():
            raise ValidationError("job_id parameter is required")

        body = await self._client.get_import_status(str(job_id).strip())
        status = ImportJobStatus(
            job_id=str(job_id),
            status=str(body.get("status") or IMPORT_STATUS_PENDING),
            raw=body,
            error_info=_error_summary(body),
        )
        logger.debug("Import job status", job_id=job_id, status=status.status)
        return status

    async def list_custom_fields(
        self, include_reserved: bool = False
    ) -> list[CustomFieldDefinition]:
        """List field definitions. Used for display and configuration only."""
        body = await self._client.list_field_definitions()

        fields = [
            CustomFieldDefinition.from_api(field) for field in body.get("custom_fields") or []
        ]
        if include_reserved:
            fields.extend(
                CustomFieldDefinition.from_api(field, reserved=True)
                for field in body.get("reserved_fields") or []
            )
        return fields


# Global instance
contact_service = ContactService()
