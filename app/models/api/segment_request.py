# app/models/api/segment_request.py
"""
Segment API request models.
"""

from typing import Any

from pydantic import BaseModel, Field


class SegmentRequest(BaseModel):
    """Request for creating or replacing a segment from a tag selection."""

    name: str = Field(default="", max_length=100, description="Segment name")
    tags: Any = Field(default=None, description="Selected tags; contacts matching any are included")


class RefreshSegmentRequest(BaseModel):
    user_time_zone: str = Field(default="UTC", description="IANA time zone for the recount")
