"""
Pydantic models for API request/response validation.
"""

from typing import Optional
from pydantic import BaseModel, Field

from tab_grouper.grouping.models import GroupColor, Metadata


# ============================================================================
# Request Models
# ============================================================================


class GroupTabRequest(BaseModel):
    """Request model for /api/tabs/group endpoint.

    Without a tab_id the active tab of the window is grouped.
    """

    tab_id: Optional[int] = None
    window_id: Optional[int] = None
    category: Optional[str] = None  # Explicit override
    metadata: Optional[Metadata] = None


class BatchGroupRequest(BaseModel):
    """Request model for /api/tabs/batch-group endpoint."""

    window_id: Optional[int] = None


class GroupRemovedEvent(BaseModel):
    """Host notification that a tab group was removed."""

    group_id: int


class GroupUpdatedEvent(BaseModel):
    """Host notification that a tab group was renamed or recolored."""

    id: int
    window_id: int
    title: Optional[str] = ""
    color: Optional[str] = None


class CleanupRequest(BaseModel):
    """Request model for /api/groups/cleanup endpoint."""

    grace_ms: Optional[int] = Field(default=None, ge=0)


# ============================================================================
# Response Models
# ============================================================================


class GroupTabResponse(BaseModel):
    """Response model for /api/tabs/group endpoint."""

    success: bool
    category: Optional[str] = None
    color: Optional[GroupColor] = None
    group_id: Optional[int] = None
    error: Optional[str] = None
    code: Optional[str] = None


class BatchGroupResponse(BaseModel):
    """Response model for /api/tabs/batch-group endpoint."""

    success: bool
    count: Optional[int] = None
    errors: Optional[list[str]] = None
    error: Optional[str] = None


class GroupedStatusResponse(BaseModel):
    """Response model for /api/tabs/grouped endpoint."""

    success: bool
    grouped: bool = False
    error: Optional[str] = None


class EventAckResponse(BaseModel):
    """Response model for host event notifications."""

    success: bool


class CleanupResponse(BaseModel):
    """Response model for /api/groups/cleanup endpoint."""

    success: bool
    removed: list[int] = Field(default_factory=list)
    pending: list[int] = Field(default_factory=list)
    error: Optional[str] = None


class HealthResponse(BaseModel):
    """Response model for /health endpoint."""

    status: str
    version: str = "0.1.0"
    timestamp: str
