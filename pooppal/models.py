"""Pydantic models for records, derived statistics, and API payloads."""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Records (as stored in Supabase)
# =============================================================================


class FriendshipStatus(str, Enum):
    """Friend request lifecycle states."""

    pending = "pending"
    accepted = "accepted"


class LogEntry(BaseModel):
    """One logged event on the Bristol scale."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    type: int = Field(..., ge=1, le=7)
    notes: str | None = None
    occurred_at: datetime


class Profile(BaseModel):
    """Public profile row, one per user."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None


class FriendshipRecord(BaseModel):
    """Directed friend edge: user_id requested, friend_id received."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    friend_id: str
    status: FriendshipStatus
    created_at: datetime


class StoolType(BaseModel):
    """Catalogue entry for one Bristol type."""

    model_config = ConfigDict(frozen=True)

    type: int
    label: str
    emoji: str


class AuthenticatedUser(BaseModel):
    """Identity decoded from a Supabase access token."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = {}


# =============================================================================
# Derived statistics
# =============================================================================


class TimePeriodBucket(BaseModel):
    """Log count for one time-of-day bucket."""

    model_config = ConfigDict(frozen=True)

    label: str
    hours: tuple[int, ...]
    emoji: str
    count: int = 0
    percentage: int = 0


class WeeklyActivityDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    day_date: date
    day: str
    count: int
    is_today: bool = False


class WeekDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    day_date: date
    day: str
    has_log: bool
    is_today: bool = False


class TypeDistributionEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: int
    label: str
    emoji: str
    count: int
    percentage: float


class Insight(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    subtitle: str


class StatsInsights(BaseModel):
    model_config = ConfigDict(frozen=True)

    average: Insight
    streak: Insight
    best_period: Insight


class StatsSummary(BaseModel):
    """Everything the statistics view needs for one log collection."""

    model_config = ConfigDict(frozen=True)

    total_logs: int
    today_count: int
    streak: int
    avg_type: float | None
    avg_type_display: str
    health_score: int
    health_score_display: str
    time_period_stats: list[TimePeriodBucket]
    best_period: TimePeriodBucket | None
    weekly_activity: list[WeeklyActivityDay]
    current_week: list[WeekDay]
    type_distribution: list[TypeDistributionEntry]
    insights: StatsInsights


# =============================================================================
# Session Models
# =============================================================================


class SessionResponse(BaseModel):
    """Signed-in session state."""
    user_id: str
    email: str | None
    greeting_name: str
    profile: Profile | None
    log_count: int
    friend_count: int
    errors: dict[str, str] = {}


# =============================================================================
# Log Models
# =============================================================================


class LogCreate(BaseModel):
    """Request to add a log entry."""
    type: int
    notes: str = ""


class LogListResponse(BaseModel):
    logs: list[LogEntry]
    total: int
    error: str | None = None


class LogDeleteResponse(BaseModel):
    """Response from an optimistic delete."""
    deleted: str
    undo_until: datetime


# =============================================================================
# Friend Models
# =============================================================================


class FriendRequestCreate(BaseModel):
    """Request to send a friend request by email."""
    email: str = Field(..., max_length=320)


class FriendView(BaseModel):
    """A friendship record with the other party's profile attached."""
    friendship: FriendshipRecord
    other_user_id: str
    profile: Profile | None = None


class FriendsResponse(BaseModel):
    accepted: list[FriendView]
    incoming: list[FriendView]
    outgoing: list[FriendView]
    error: str | None = None
