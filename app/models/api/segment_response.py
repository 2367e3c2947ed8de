# app/models/api/segment_response.py
"""
Segment API response models.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from app.models.api.contact_response import SuccessResponse


class SegmentResponse(BaseModel):
    """Response model for one segment."""

    id: str = Field(..., description="Segment ID")
    name: str = Field(..., description="Segment name")
    query_dsl: str = Field(default="", description="SendGrid SGQL query")
    tags: list[str] = Field(
        default_factory=list, description="Tags decoded from the query (empty if unrecognized)"
    )
    contacts_count: int = Field(default=0, description="Contacts in the last sample")
    created_at: datetime | None = Field(None, description="When the segment was created")
    updated_at: datetime | None = Field(None, description="When the segment was last updated")
    sample_updated_at: datetime | None = Field(None, description="When the count was sampled")


class SegmentListResponse(SuccessResponse):
    segments: list[SegmentResponse] = Field(default_factory=list)
    total_count: int = Field(default=0)


class SegmentDetailResponse(SuccessResponse):
    segment: SegmentResponse


class SegmentCreatedResponse(SuccessResponse):
    id: str | None = Field(None, description="New segment id")


class SegmentRefreshResponse(SuccessResponse):
    job_id: str | None = Field(None, description="SendGrid refresh job id")
