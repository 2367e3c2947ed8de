"""
Segment API Routes
CRUD for tag-based SendGrid segments. The local segment directory (id/name
pairs) is kept in step with every successful change.
"""

from fastapi import APIRouter, status

from app.infrastructure.observability.logging import get_logger
from app.models.api.contact_response import SuccessResponse
from app.models.api.segment_request import RefreshSegmentRequest, SegmentRequest
from app.models.api.segment_response import (
    SegmentCreatedResponse,
    SegmentDetailResponse,
    SegmentListResponse,
    SegmentRefreshResponse,
    SegmentResponse,
)
from app.models.domain.segment_domain import Segment
from app.services.cache.preferences import segment_directory
from app.services.segments.segment_service import segment_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/segments", tags=["segments"])


def _to_response(segment: Segment) -> SegmentResponse:
    return SegmentResponse(
        id=segment.id,
        name=segment.name,
        query_dsl=segment.query_dsl,
        tags=segment.tags,
        contacts_count=segment.contacts_count,
        created_at=segment.created_at,
        updated_at=segment.updated_at,
        sample_updated_at=segment.sample_updated_at,
    )


@router.get("", response_model=SegmentListResponse)
async def list_segments():
    """List segments and refresh the local directory."""
    segments = await segment_service.list_segments()
    await segment_directory.replace_all(segments)

    return SegmentListResponse(
        segments=[_to_response(segment) for segment in segments],
        total_count=len(segments),
    )


@router.post("", response_model=SegmentCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_segment(request: SegmentRequest):
    segment_id = await segment_service.create_segment(request.name, request.tags)
    if segment_id:
        await segment_directory.upsert(segment_id, request.name.strip())
    return SegmentCreatedResponse(id=segment_id)


@router.get("/{segment_id}", response_model=SegmentDetailResponse)
async def get_segment(segment_id: str):
    segment = await segment_service.get_segment(segment_id)
    return SegmentDetailResponse(segment=_to_response(segment))


@router.patch("/{segment_id}", response_model=SuccessResponse)
async def update_segment(segment_id: str, request: SegmentRequest):
    """Replace a segment's name and tag selection."""
    await segment_service.update_segment(segment_id, request.name, request.tags)
    await segment_directory.upsert(segment_id, request.name.strip())
    return SuccessResponse()


@router.delete("/{segment_id}", response_model=SuccessResponse)
async def delete_segment(segment_id: str):
    await segment_service.delete_segment(segment_id)
    await segment_directory.remove(segment_id)
    return SuccessResponse()


@router.post("/{segment_id}/refresh", response_model=SegmentRefreshResponse)
async def refresh_segment(segment_id: str, request: RefreshSegmentRequest | None = None):
    """Ask SendGrid to recount a segment's members."""
    user_time_zone = request.user_time_zone if request else "UTC"
    job_id = await segment_service.refresh_segment(segment_id, user_time_zone)
    return SegmentRefreshResponse(job_id=job_id)
