# backend/bullion/schemas/sync.py
"""
Pydantic schemas for the price sync API.

The response mirrors the sync service's SyncReport: every asset that was
part of the cycle appears in exactly one of updated, missing, failed or
cancelled.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class SyncRequest(BaseModel):
    """Optional restriction of a sync cycle to some assets."""

    asset_ids: list[int] | None = Field(
        default=None,
        description="Assets to refresh (default: all assets)"
    )


class SyncFailureResponse(BaseModel):
    """An asset that could not be updated."""

    asset_id: int
    reason: str = Field(
        ...,
        examples=["source_unavailable", "source_rejected", "commit_failed"],
    )
    message: str


class SyncReportResponse(BaseModel):
    """Outcome of one sync cycle."""

    status: str = Field(..., description="completed, partial or failed")
    started_at: datetime
    completed_at: datetime | None = None
    updated: list[int] = Field(default_factory=list)
    missing: list[int] = Field(default_factory=list)
    failed: list[SyncFailureResponse] = Field(default_factory=list)
    cancelled: list[int] = Field(default_factory=list)
    source_calls: int = Field(0, description="Number of requests made to price sources")
