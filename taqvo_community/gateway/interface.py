"""
Remote data gateway interface - separates the community model from the backend.

Reads degrade to empty results when the backend is unreachable so the UI keeps
working offline. Writes raise so the caller can queue them.
"""
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Set

from taqvo_community.models import Challenge, Club, DayContribution, LeaderboardEntry


class CommunityGateway(ABC):
    """Stateless request/response boundary to the community backend."""

    # Reads

    @abstractmethod
    async def load_challenges(self) -> List[Challenge]:
        """Public challenges plus the caller's own; unparseable rows are dropped."""
        pass

    @abstractmethod
    async def load_joined_challenge_ids(self) -> Set[str]:
        """Challenge ids the signed-in user has joined on the server."""
        pass

    @abstractmethod
    async def load_leaderboard(self) -> List[LeaderboardEntry]:
        pass

    @abstractmethod
    async def load_clubs(self) -> List[Club]:
        pass

    @abstractmethod
    async def load_joined_club_ids(self) -> Set[str]:
        pass

    # Writes

    @abstractmethod
    async def create_challenge(
        self,
        title: str,
        detail: str,
        start_date: date,
        end_date: date,
        goal_distance_meters: float,
        is_public: bool,
    ) -> Challenge:
        """Create a challenge and return the canonical row."""
        pass

    @abstractmethod
    async def delete_challenge(self, challenge_id: str) -> None:
        pass

    @abstractmethod
    async def set_join_state(self, challenge_id: str, is_joined: bool) -> None:
        pass

    @abstractmethod
    async def create_club(self, name: str, description: str, is_public: bool) -> Club:
        pass

    @abstractmethod
    async def set_club_membership(self, club_id: str, is_joined: bool) -> None:
        pass

    @abstractmethod
    async def invite_participants(self, challenge_id: str, usernames: List[str]) -> None:
        pass

    @abstractmethod
    async def upload_contributions(self, challenge_id: str, contributions: List[DayContribution]) -> None:
        """Upsert one record per challenge/day."""
        pass

    async def aclose(self) -> None:
        """Release transport resources."""
        pass
