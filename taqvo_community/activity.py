"""
Activity source collaborator.

The tracking pipeline is consumed only through ``daily_summaries()``. This
module also provides an in-memory source that buckets recorded activities by
the calendar day they ended on, and the per-day contribution builder used for
challenge uploads and detail views.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Protocol

from taqvo_community.models import Challenge, DailySummary, DayContribution


class ActivitySource(Protocol):
    def daily_summaries(self) -> List[DailySummary]: ...


@dataclass
class RecordedActivity:
    """Finished run/walk/hike as reported by the tracker."""

    end_time: datetime
    distance_meters: float
    duration_seconds: float = 0.0


class InMemoryActivitySource:
    """Activity source over a list of recorded activities."""

    def __init__(self, activities: Iterable[RecordedActivity] = ()):
        self.activities: List[RecordedActivity] = list(activities)

    def add(self, activity: RecordedActivity) -> None:
        self.activities.append(activity)

    def daily_summaries(self) -> List[DailySummary]:
        """One summary per calendar day, newest first."""
        bucket: Dict[date, DailySummary] = {}
        for activity in self.activities:
            day = activity.end_time.date()
            summary = bucket.get(day)
            if summary is None:
                summary = DailySummary(day_start=day)
                bucket[day] = summary
            summary.total_distance_meters += activity.distance_meters
            summary.total_duration_seconds += activity.duration_seconds
            summary.run_count += 1
        return sorted(bucket.values(), key=lambda s: s.day_start, reverse=True)


def sum_distance_in_range(summaries: Iterable[DailySummary], start: date, end: date) -> float:
    """Total distance of the summaries whose day falls in [start, end]."""
    return sum(s.total_distance_meters for s in summaries if start <= s.day_start <= end)


def build_day_contributions(challenge: Challenge, summaries: Iterable[DailySummary]) -> List[DayContribution]:
    """
    One contribution record per calendar day of the challenge, both ends inclusive.

    Days without activity still get a record with zero distance and count.
    """
    by_day: Dict[date, DayContribution] = {}
    for summary in summaries:
        if not challenge.contains(summary.day_start):
            continue
        record = by_day.setdefault(summary.day_start, DayContribution(day=summary.day_start))
        record.distance_meters += summary.total_distance_meters
        record.contribution_count += summary.run_count

    contributions = []
    day = challenge.start_date
    while day <= challenge.end_date:
        contributions.append(by_day.get(day, DayContribution(day=day)))
        day += timedelta(days=1)
    return contributions
