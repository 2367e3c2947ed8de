# app/models/domain/contact_domain.py
"""
Contact Domain Models
Shapes for contact records parsed from SendGrid exports and lookups.
Used by services for internal processing; routes convert them to API models.
"""

from dataclasses import dataclass, field
from typing import Any

# A contact is a plain field-name -> value mapping. Values are strings, or a
# list of strings for multi-valued fields such as ``tags_array``.
ContactRecord = dict[str, Any]

STANDARD_CONTACT_FIELDS = (
    "email",
    "first_name",
    "last_name",
    "phone_number",
    "address_line_1",
    "address_line_2",
    "city",
    "state_province_region",
    "postal_code",
    "country",
    "created_at",
    "updated_at",
    "tags",
)


def record_email(record: ContactRecord) -> str | None:
    """Return the normalized email key of a record, or None when unusable."""
    email = record.get("email")
    if not isinstance(email, str):
        return None
    email = email.strip()
    return email or None


def record_tags(record: ContactRecord) -> list[str]:
    """Return the tag list of a record, preferring the parsed ``tags_array``."""
    tags_array = record.get("tags_array")
    if isinstance(tags_array, list):
        return [str(tag) for tag in tags_array if str(tag).strip()]

    tags = record.get("tags")
    if isinstance(tags, list):
        return [str(tag) for tag in tags if str(tag).strip()]
    if isinstance(tags, str):
        return [tag.strip() for tag in tags.split(",") if tag.strip()]
    return []


@dataclass(slots=True)
class ParseResult:
    """Contacts parsed from one export file, in file order."""

    contacts: list[ContactRecord] = field(default_factory=list)
    skipped: int = 0
    format: str = "ndjson"

    def keyed_contacts(self) -> list[ContactRecord]:
        """Records usable for email-keyed operations such as upserts."""
        return [record for record in self.contacts if record_email(record)]

    @property
    def unkeyed_count(self) -> int:
        return sum(1 for record in self.contacts if not record_email(record))


@dataclass(slots=True)
class EmailLookup:
    """Result of an exact-email duplicate check."""

    email: str
    exists: bool
    contact: ContactRecord | None = None
    advisory_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"exists": self.exists, "contact": self.contact}


@dataclass(slots=True)
class CustomFieldDefinition:
    """Field metadata as defined on SendGrid."""

    id: str
    name: str
    field_type: str
    reserved: bool = False

    @property
    def key(self) -> str:
        # SendGrid addresses custom fields by this id format in exports
        return self.name if self.reserved else f"cf_{self.id}"

    @classmethod
    def from_api(cls, data: dict, reserved: bool = False) -> "CustomFieldDefinition":
        return cls(
            id=str(data.get("id", data.get("name", ""))),
            name=str(data.get("name", "")),
            field_type=str(data.get("field_type", "Text")),
            reserved=reserved,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "field_type": self.field_type,
            "key": self.key,
            "reserved": self.reserved,
        }
