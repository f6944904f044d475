"""
Community data models.

Challenges, clubs and leaderboard entries as held by the community model, the
daily activity summaries consumed from the tracking pipeline, and the queued
write variants persisted by the offline write queue.
"""

import uuid
from datetime import date, timedelta
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class LeaderboardSort(str, Enum):
    """Leaderboard ordering modes."""

    DISTANCE = "distance"
    PACE = "pace"
    STREAK = "streak"


class Challenge(BaseModel):
    """Time-boxed distance goal joinable by users."""

    id: str = Field(..., description="Challenge identifier (UUID string)")
    title: str = Field(..., description="Challenge title")
    detail: str = Field(default="", description="Challenge description")
    start_date: date = Field(..., description="First day of the challenge")
    end_date: date = Field(..., description="Last day of the challenge (inclusive)")
    goal_distance_meters: float = Field(default=0.0, description="Distance goal in meters")
    is_public: bool = Field(default=True, description="Whether the challenge is public")
    created_by: Optional[str] = Field(None, description="Creator user identifier")
    created_by_username: Optional[str] = Field(None, description="Creator display name")
    is_joined: bool = Field(default=False, description="Local join state")
    progress_meters: float = Field(default=0.0, description="Distance logged within the date range")

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days

    @property
    def progress_fraction(self) -> float:
        """Progress towards the goal clamped to [0, 1]; progress itself is not capped."""
        if self.goal_distance_meters <= 0:
            return 0.0
        return max(0.0, min(self.progress_meters / self.goal_distance_meters, 1.0))

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @classmethod
    def demo(
        cls,
        start: date,
        days: int,
        title: str,
        detail: str,
        goal_km: float,
        id: Optional[str] = None,
    ) -> "Challenge":
        """Build a local demo challenge spanning ``days`` days from ``start``."""
        return cls(
            id=id or str(uuid.uuid4()),
            title=title,
            detail=detail,
            start_date=start,
            end_date=start + timedelta(days=days),
            goal_distance_meters=goal_km * 1000,
        )


class Club(BaseModel):
    """Community club users can join."""

    id: str = Field(..., description="Club identifier (UUID string)")
    name: str = Field(..., description="Club name")
    description: str = Field(default="", description="Club description")
    is_public: bool = Field(default=True, description="Whether the club is public")
    is_joined: bool = Field(default=False, description="Local membership state")
    member_count: int = Field(default=0, description="Number of members")


class LeaderboardEntry(BaseModel):
    """Leaderboard row; rank is derived from list order."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    rank: int = Field(default=0, description="1-based rank, reassigned on every sort")
    user_name: str = Field(..., description="Display name")
    total_distance_meters: float = Field(default=0.0)
    total_duration_seconds: Optional[float] = Field(None)
    streak_days: Optional[int] = Field(None)

    @property
    def average_pace_seconds_per_km(self) -> float:
        """Seconds per kilometer; entries without a duration count as zero."""
        if not self.total_duration_seconds:
            return 0.0
        return self.total_duration_seconds / (max(self.total_distance_meters, 1.0) / 1000.0)


class DailySummary(BaseModel):
    """Per-day aggregate produced by the activity tracking pipeline."""

    day_start: date
    total_distance_meters: float = 0.0
    total_duration_seconds: float = 0.0
    run_count: int = 0


class DayContribution(BaseModel):
    """Day-granular distance/count record uploaded per joined challenge."""

    day: date
    distance_meters: float = 0.0
    contribution_count: int = 0


# Queued writes

class JoinWrite(BaseModel):
    kind: Literal["join"] = "join"
    challenge_id: str
    is_joined: bool


class ContributionsWrite(BaseModel):
    kind: Literal["contributions"] = "contributions"
    challenge_id: str
    contributions: List[DayContribution]


class ClubJoinWrite(BaseModel):
    kind: Literal["club_join"] = "club_join"
    club_id: str
    is_joined: bool


class InviteWrite(BaseModel):
    kind: Literal["invite"] = "invite"
    challenge_id: str
    usernames: List[str]


QueuedWrite = Annotated[
    Union[JoinWrite, ContributionsWrite, ClubJoinWrite, InviteWrite],
    Field(discriminator="kind"),
]

queued_write_adapter: TypeAdapter = TypeAdapter(QueuedWrite)
