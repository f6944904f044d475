"""
Data validation utilities for Taqvo Community.

This module provides parsing helpers for remote rows and validation of user
input before anything is sent to the backend.
"""

import uuid
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from taqvo_community.exceptions import DataValidationError

ISO_DAY_FORMAT = "%Y-%m-%d"


def parse_uuid(value: Any) -> str:
    """
    Validate a UUID string and return it in canonical lowercase form.

    Raises:
        DataValidationError: If the value is not a UUID
    """
    if isinstance(value, uuid.UUID):
        return str(value)
    if not value or not isinstance(value, str):
        raise DataValidationError("Identifier must be a non-empty string", {"value": value})
    try:
        return str(uuid.UUID(value))
    except ValueError as e:
        raise DataValidationError(f"Invalid identifier: {e}", {"value": value})


def parse_iso_day(value: Any) -> date:
    """
    Parse a ``yyyy-MM-dd`` calendar day.

    Timestamps with a time part are accepted and truncated to their date,
    since PostgREST may render DATE columns either way.

    Raises:
        DataValidationError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        raise DataValidationError("Date must be a non-empty string", {"value": value})

    try:
        return datetime.strptime(value[:10], ISO_DAY_FORMAT).date()
    except ValueError as e:
        raise DataValidationError(f"Invalid date format. Expected {ISO_DAY_FORMAT}: {e}", {"value": value})


def format_iso_day(day: date) -> str:
    """Render a calendar day as ``yyyy-MM-dd``."""
    return day.strftime(ISO_DAY_FORMAT)


def validate_challenge_input(
    title: str,
    start_date: date,
    end_date: date,
    goal_distance_meters: float,
) -> str:
    """
    Validate challenge creation input.

    Returns:
        The stripped title

    Raises:
        DataValidationError: If any value is invalid
    """
    clean_title = (title or "").strip()
    if not clean_title:
        raise DataValidationError("Challenge title must not be empty")
    if end_date < start_date:
        raise DataValidationError(
            "Challenge end date must not be before start date",
            {"start_date": format_iso_day(start_date), "end_date": format_iso_day(end_date)},
        )
    if goal_distance_meters < 0:
        raise DataValidationError(
            "Goal distance must not be negative",
            {"goal_distance_meters": goal_distance_meters},
        )
    return clean_title


def validate_club_name(name: str) -> str:
    """Validate a club name and return it stripped."""
    clean_name = (name or "").strip()
    if not clean_name:
        raise DataValidationError("Club name must not be empty")
    return clean_name


def clean_usernames(usernames: Iterable[Optional[str]]) -> List[str]:
    """Strip whitespace and a leading '@', drop blanks and duplicates, keep order."""
    seen = set()
    result = []
    for name in usernames:
        if not name:
            continue
        clean = name.strip().lstrip("@").strip()
        if clean and clean not in seen:
            seen.add(clean)
            result.append(clean)
    return result
