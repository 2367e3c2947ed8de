# app/models/domain/segment_domain.py
"""
Segment Domain Models
Saved tag-based contact queries as stored on SendGrid.
"""

from datetime import datetime
from typing import Any

from app.services.contacts.tag_query import decode_tags


class Segment:
    """
    Domain model for a SendGrid segment.

    ``query_dsl`` is authoritative. ``tags`` is a best-effort reverse parse of
    it and is empty for queries that were not built from a tag selection.
    """

    def __init__(self, data: dict):
        self.id = str(data.get("id", ""))
        self.name = data.get("name", "")
        self.query_dsl = data.get("query_dsl") or ""
        self.contacts_count = int(data.get("contacts_count") or 0)
        self.created_at = self._parse_datetime_iso(data.get("created_at"))
        self.updated_at = self._parse_datetime_iso(data.get("updated_at"))
        self.next_sample_update = self._parse_datetime_iso(data.get("next_sample_update"))
        self.sample_updated_at = self._parse_datetime_iso(data.get("sample_updated_at"))
        self.tags = decode_tags(self.query_dsl)
        self.raw_data = data

    def _parse_datetime_iso(self, dt_str: str | None) -> datetime | None:
        """Parse ISO datetime string."""
        if not dt_str:
            return None
        try:
            return datetime.fromisoformat(str(dt_str).replace("Z", "+00:00"))
        except ValueError:
            return None

    def has_recognized_tags(self) -> bool:
        """False when the query was authored outside this service."""
        return len(self.tags) > 0

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.raw_data)
        data["tags"] = list(self.tags)
        return data

    def directory_entry(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}
