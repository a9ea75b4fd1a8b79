"""Pydantic models for API I/O."""

from .players import SnapshotInfo, TierResponse
from .reconcile import ReconciliationResponse, TeamDeltaResponse, TeamFailureResponse
from .team import (
    PaidUpdateRequest,
    RecentHomeRunsResponse,
    RosterUpdateRequest,
    TeamCreateRequest,
    TeamResponse,
)

__all__ = [
    "PaidUpdateRequest",
    "ReconciliationResponse",
    "RecentHomeRunsResponse",
    "RosterUpdateRequest",
    "SnapshotInfo",
    "TeamCreateRequest",
    "TeamDeltaResponse",
    "TeamFailureResponse",
    "TeamResponse",
    "TierResponse",
]
