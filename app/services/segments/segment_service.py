"""
Segment gateway service.
CRUD for SendGrid segments (Segments API v2). Queries are built from a tag
selection with the tag query codec; returned segments carry a best-effort
tag list decoded from their stored query.
"""

from collections.abc import Iterable

from app.infrastructure.observability.logging import get_logger
from app.models.domain.segment_domain import Segment
from app.services.contacts.tag_query import encode_tags
from app.services.errors import ValidationError
from app.services.sendgrid.client import SendGridClient, sendgrid_client

logger = get_logger(__name__)


def _validate_segment_id(segment_id: str) -> str:
    if not segment_id or not str(segment_id).strip():
        raise ValidationError("Segment id is required")
    return str(segment_id).strip()


def _validate_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Segment name is required")
    return name.strip()


class SegmentService:
    """Gateway for segment operations on SendGrid."""

    def __init__(self, client: SendGridClient | None = None):
        self._client = client or sendgrid_client

    async def list_segments(self) -> list[Segment]:
        body = await self._client.list_segments()
        segments = [Segment(item) for item in body.get("results") or [] if isinstance(item, dict)]

        unrecognized = [segment.id for segment in segments if not segment.has_recognized_tags()]
        if unrecognized:
            logger.debug("Segments without recognizable tag queries", segment_ids=unrecognized)

        return segments

    async def get_segment(self, segment_id: str) -> Segment:
        segment_id = _validate_segment_id(segment_id)
        body = await self._client.get_segment(segment_id)
        return Segment(body)

    async def create_segment(self, name: str, tags: Iterable[str]) -> str:
        """
        Create a segment matching contacts that carry any of ``tags``.

        Returns:
            str: New segment id

        Raises:
            ValidationError: If the name is blank or no tag is selected
        """
        name = _validate_name(name)
        query_dsl = encode_tags(tags)

        body = await self._client.create_segment(name, query_dsl)
        segment_id = body.get("id")
        logger.info("Segment created", segment_id=segment_id)
        return segment_id

    async def update_segment(self, segment_id: str, name: str, tags: Iterable[str]) -> None:
        """Replace a segment's name and tag query."""
        segment_id = _validate_segment_id(segment_id)
        name = _validate_name(name)
        query_dsl = encode_tags(tags)

        await self._client.update_segment(segment_id, name, query_dsl)
        logger.info("Segment updated", segment_id=segment_id)

    async def delete_segment(self, segment_id: str) -> None:
        segment_id = _validate_segment_id(segment_id)
        await self._client.delete_segment(segment_id)
        logger.info("Segment deleted", segment_id=segment_id)

    async def refresh_segment(self, segment_id: str, user_time_zone: str | None = None) -> str:
        """Ask SendGrid to recount a segment. Returns the refresh job id."""
        segment_id = _validate_segment_id(segment_id)
        body = await self._client.refresh_segment(segment_id, user_time_zone or "UTC")
        return body.get("job_id")


# Global instance
segment_service = SegmentService()
