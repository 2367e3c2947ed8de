"""
Cached contact list.

The full contact list is expensive to fetch (a SendGrid export round trip),
so it is kept in the document store with its fetch time:

- fresh (under 10 minutes): served from cache
- stale (under 1 hour): served from cache, refresh scheduled in the background
- expired or missing: fetched through the export pipeline, then stored
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.contact_domain import ContactRecord, record_email, record_tags
from app.services.cache.store import (
    FRESHNESS_EXPIRED,
    FRESHNESS_FRESH,
    FRESHNESS_STALE,
    CacheStore,
    FreshnessPolicy,
    get_cache_store,
    now_ms,
)
from app.services.contacts.export_pipeline import ContactExportPipeline, contact_export_pipeline

logger = get_logger(__name__)

SEARCHABLE_FIELDS = ("email", "first_name", "last_name", "city", "country", "tags")
SORT_DIRECTIONS = ("asc", "desc")


@dataclass(slots=True)
class CachedContacts:
    contacts: list[ContactRecord]
    fetched_at_ms: int
    age_seconds: float
    state: str


def default_policy() -> FreshnessPolicy:
    return FreshnessPolicy(
        max_age_seconds=settings.CONTACT_CACHE_MAX_AGE_SECONDS,
        stale_after_seconds=settings.CONTACT_CACHE_STALE_AFTER_SECONDS,
    )


def _tags_text(tags: list[str]) -> str:
    return ", ".join(tags)


class ContactListCache:
    """Whole-list contact cache with a separate fetch timestamp."""

    def __init__(self, store: CacheStore | None = None, policy: FreshnessPolicy | None = None):
        self._store = store
        self.policy = policy or default_policy()
        self.contacts_key = settings.cache_key("contacts")
        self.timestamp_key = settings.cache_key("contacts_timestamp")

    @property
    def documents(self) -> CacheStore:
        return self._store or get_cache_store()

    async def load(self) -> CachedContacts | None:
        contacts = await self.documents.read(self.contacts_key)
        stamp = await self.documents.read(self.timestamp_key)
        if not isinstance(contacts, list) or not isinstance(stamp, dict):
            return None

        try:
            fetched_at_ms = int(stamp.get("fetched_at_ms"))
        except (TypeError, ValueError):
            logger.warning("Cached contact timestamp unreadable, ignoring cache")
            return None

        age_seconds = (now_ms() - fetched_at_ms) / 1000
        return CachedContacts(
            contacts=[record for record in contacts if isinstance(record, dict)],
            fetched_at_ms=fetched_at_ms,
            age_seconds=age_seconds,
            state=self.policy.classify(age_seconds),
        )

    async def store(self, contacts: list[ContactRecord]) -> int:
        """Overwrite the cached list. Returns the fetch timestamp in milliseconds."""
        fetched_at_ms = now_ms()
        await self.documents.write(self.contacts_key, list(contacts))
        await self.documents.write(self.timestamp_key, {"fetched_at_ms": fetched_at_ms})
        logger.info("Contact cache updated", count=len(contacts))
        return fetched_at_ms

    async def clear(self) -> None:
        await self.documents.clear(self.contacts_key)
        await self.documents.clear(self.timestamp_key)

    async def replace_contact(self, contact: ContactRecord) -> bool:
        """
        Patch one contact into the cached list after a local edit.

        Matches on email (case-insensitive); unknown contacts are prepended.
        The fetch timestamp is left untouched. Returns False when nothing is cached.
        """
        email = record_email(contact)
        contacts = await self.documents.read(self.contacts_key)
        if email is None or not isinstance(contacts, list):
            return False

        for index, record in enumerate(contacts):
            existing = record_email(record) if isinstance(record, dict) else None
            if existing and existing.lower() == email.lower():
                contacts[index] = {**record, **contact}
                break
        else:
            contacts.insert(0, dict(contact))

        await self.documents.write(self.contacts_key, contacts)
        return True

    async def apply_tag_update(self, updates: Iterable[dict[str, Any]]) -> int:
        """Rewrite cached tags for each ``{email, tags}`` update. Returns rows touched."""
        contacts = await self.documents.read(self.contacts_key)
        if not isinstance(contacts, list):
            return 0

        tags_by_email = {}
        for update in updates:
            email = record_email(update)
            if email:
                tags_by_email[email.lower()] = record_tags({"tags": update.get("tags")})

        touched = 0
        for record in contacts:
            email = record_email(record) if isinstance(record, dict) else None
            if email and email.lower() in tags_by_email:
                tags = tags_by_email[email.lower()]
                record["tags"] = _tags_text(tags)
                record["tags_array"] = tags
                touched += 1

        if touched:
            await self.documents.write(self.contacts_key, contacts)
        return touched

    async def available_tags(self) -> list[str]:
        contacts = await self.documents.read(self.contacts_key)
        if not isinstance(contacts, list):
            return []
        tags = {
            tag for record in contacts if isinstance(record, dict) for tag in record_tags(record)
        }
        return sorted(tags, key=str.lower)


class ContactDirectory:
    """Read-through access to the contact list."""

    def __init__(
        self,
        cache: ContactListCache | None = None,
        pipeline: ContactExportPipeline | None = None,
    ):
        self.cache = cache or ContactListCache()
        self._pipeline = pipeline or contact_export_pipeline
        self._refresh_task: asyncio.Task | None = None

    async def refresh(self) -> CachedContacts:
        """Fetch the list through the export pipeline and overwrite the cache."""
        batch = await self._pipeline.fetch_contacts()
        fetched_at_ms = await self.cache.store(batch.contacts)
        return CachedContacts(
            contacts=batch.contacts,
            fetched_at_ms=fetched_at_ms,
            age_seconds=0.0,
            state=FRESHNESS_FRESH,
        )

    def schedule_refresh(self) -> asyncio.Task:
        """Start a background refresh unless one is already running."""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_in_background())
        return self._refresh_task

    async def _refresh_in_background(self) -> None:
        try:
            await self.refresh()
        except Exception as e:
            # Stale data stays in place; the next read retries
            logger.warning("Background contact refresh failed", error=str(e))

    async def get_contacts(self, force_refresh: bool = False) -> tuple[CachedContacts, bool]:
        """
        Return the contact list and whether it came from cache.

        Raises:
            Any export pipeline error when the cache cannot be used
        """
        if not force_refresh:
            cached = await self.cache.load()
            if cached is not None and cached.state != FRESHNESS_EXPIRED:
                if cached.state == FRESHNESS_STALE:
                    logger.info("Serving stale contacts, refreshing in background")
                    self.schedule_refresh()
                return cached, True

        return await self.refresh(), False


def _sort_value(record: ContactRecord, field: str) -> tuple[int, str]:
    value = record.get(field)
    if field == "tags":
        value = _tags_text(record_tags(record))
    if value is None or value == "":
        return (1, "")
    return (0, str(value).lower())


def filter_contacts(
    contacts: list[ContactRecord],
    term: str | None = None,
    sort_field: str | None = None,
    direction: str = "asc",
) -> list[ContactRecord]:
    """Case-insensitive search over common fields, optionally sorted. Blanks sort last."""
    results = contacts
    if term and term.strip():
        needle = term.strip().lower()
        results = [
            record
            for record in results
            if any(needle in str(record.get(name) or "").lower() for name in SEARCHABLE_FIELDS)
        ]

    if sort_field:
        if direction not in SORT_DIRECTIONS:
            direction = "asc"
        present = [record for record in results if _sort_value(record, sort_field)[0] == 0]
        blank = [record for record in results if _sort_value(record, sort_field)[0] == 1]
        present.sort(
            key=lambda record: _sort_value(record, sort_field)[1], reverse=direction == "desc"
        )
        results = present + blank

    return list(results)


# Global instance
contact_directory = ContactDirectory()
