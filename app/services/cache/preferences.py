"""Small cached documents: the segment directory and visible contact columns."""
from __future__ import annotations

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.segment_domain import Segment
from app.services.cache.store import CacheStore, get_cache_store
from app.services.errors import ValidationError

logger = get_logger(__name__)

DEFAULT_VISIBLE_COLUMNS = ["email", "first_name", "last_name", "tags"]


class SegmentDirectory:
    """Id/name pairs of known segments, for quick pickers without a SendGrid call."""

    def __init__(self, store: CacheStore | None = None):
        self._store = store
        self.key = settings.cache_key("segments")

    @property
    def documents(self) -> CacheStore:
        return self._store or get_cache_store()

    async def list(self) -> list[dict]:
        document = await self.documents.read(self.key)
        if not isinstance(document, list):
            return []
        return [
            {"id": str(item["id"]), "name": str(item.get("name") or "")}
            for item in document
            if isinstance(item, dict) and item.get("id")
        ]

    async def get(self, segment_id: str) -> dict | None:
        return next((entry for entry in await self.list() if entry["id"] == segment_id), None)

    async def upsert(self, segment_id: str, name: str) -> None:
        entries = [entry for entry in await self.list() if entry["id"] != segment_id]
        entries.append({"id": segment_id, "name": name})
        await self.documents.write(self.key, entries)

    async def remove(self, segment_id: str) -> bool:
        entries = await self.list()
        remaining = [entry for entry in entries if entry["id"] != segment_id]
        if len(remaining) == len(entries):
            return False
        await self.documents.write(self.key, remaining)
        return True

    async def replace_all(self, segments: list[Segment]) -> None:
        await self.documents.write(self.key, [segment.directory_entry() for segment in segments])
        logger.debug("Segment directory replaced", count=len(segments))


class ColumnPreferences:
    def __init__(self, store: CacheStore | None = None):
        self._store = store
        self.key = settings.cache_key("visible_columns")

    @property
    def documents(self) -> CacheStore:
        return self._store or get_cache_store()

    async def load(self) -> list[str]:
        document = await self.documents.read(self.key)
        if isinstance(document, list) and all(isinstance(column, str) for column in document):
            return document
        return list(DEFAULT_VISIBLE_COLUMNS)

    async def save(self, columns: list[str]) -> list[str]:
        if not isinstance(columns, list) or not all(isinstance(c, str) for c in columns):
            raise ValidationError("Columns must be a list of field names")

        cleaned = []
        for column in columns:
            if column.strip() and column.strip() not in cleaned:
                cleaned.append(column.strip())
        if not cleaned:
            raise ValidationError("At least one column must be visible")

        await self.documents.write(self.key, cleaned)
        return cleaned


# Global instances
segment_directory = SegmentDirectory()
column_preferences = ColumnPreferences()
