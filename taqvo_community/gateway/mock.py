"""
In-memory community gateway with demo data.

Used when no backend is configured and in tests. ``online`` can be switched
off to simulate an unreachable backend: reads then return empty results and
writes raise GatewayError.
"""

import uuid
from datetime import date
from typing import Dict, List, Optional, Set, Tuple

from taqvo_community.auth import AuthProvider
from taqvo_community.exceptions import GatewayError, sign_in_required
from taqvo_community.models import Challenge, Club, DayContribution, LeaderboardEntry
from .interface import CommunityGateway


# Demo ids are derived from the title so they survive process restarts
DEMO_NAMESPACE = uuid.UUID("6f1c1d3e-2a4b-4c5d-9e8f-7a6b5c4d3e2f")


def demo_challenge_id(title: str) -> str:
    return str(uuid.uuid5(DEMO_NAMESPACE, title))


def demo_challenges(today: Optional[date] = None) -> List[Challenge]:
    start = today or date.today()
    seeds = [
        (7, "7-Day Sprint", "Run 10 km this week", 10),
        (30, "October Mileage", "Log 50 km in October", 50),
        (90, "Season Challenge", "Rack up 150 km", 150),
    ]
    return [
        Challenge.demo(start, days, title, detail, goal_km, id=demo_challenge_id(title))
        for days, title, detail, goal_km in seeds
    ]


def demo_leaderboard() -> List[LeaderboardEntry]:
    return [
        LeaderboardEntry(rank=1, user_name="Alex", total_distance_meters=42000),
        LeaderboardEntry(rank=2, user_name="Sam", total_distance_meters=38000),
        LeaderboardEntry(rank=3, user_name="Taylor", total_distance_meters=35000),
        LeaderboardEntry(rank=4, user_name="Jordan", total_distance_meters=33000),
        LeaderboardEntry(rank=5, user_name="Riley", total_distance_meters=30000),
    ]


class MockCommunityGateway(CommunityGateway):
    """Gateway that keeps every table in memory."""

    def __init__(
        self,
        auth: Optional[AuthProvider] = None,
        challenges: Optional[List[Challenge]] = None,
        leaderboard: Optional[List[LeaderboardEntry]] = None,
        clubs: Optional[List[Club]] = None,
        require_auth: bool = False,
    ):
        self.auth = auth
        self.require_auth = require_auth
        self.online = True
        self.challenges: List[Challenge] = list(challenges) if challenges is not None else demo_challenges()
        self.leaderboard: List[LeaderboardEntry] = (
            list(leaderboard) if leaderboard is not None else demo_leaderboard()
        )
        self.clubs: List[Club] = list(clubs) if clubs is not None else []
        self.participants: Set[Tuple[str, str]] = set()
        self.club_members: Set[Tuple[str, str]] = set()
        self.invites: List[Tuple[str, List[str]]] = []
        self.contributions: Dict[Tuple[str, str, date], DayContribution] = {}
        self.calls: List[str] = []

    @property
    def _user(self) -> str:
        return (self.auth.user_id if self.auth else None) or "anonymous"

    def _check_online(self, operation: str) -> None:
        self.calls.append(operation)
        if not self.online:
            raise GatewayError(f"{operation} failed: backend unreachable")

    def _require_user(self, operation: str) -> str:
        if self.require_auth and not (self.auth and self.auth.user_id):
            raise sign_in_required(operation)
        return self._user

    # Reads

    async def load_challenges(self) -> List[Challenge]:
        self.calls.append("load_challenges")
        if not self.online:
            return []
        return [c.model_copy() for c in self.challenges]

    async def load_joined_challenge_ids(self) -> Set[str]:
        self.calls.append("load_joined_challenge_ids")
        if not self.online:
            return set()
        return {cid for cid, uid in self.participants if uid == self._user}

    async def load_leaderboard(self) -> List[LeaderboardEntry]:
        self.calls.append("load_leaderboard")
        if not self.online:
            return []
        return [e.model_copy() for e in self.leaderboard]

    async def load_clubs(self) -> List[Club]:
        self.calls.append("load_clubs")
        if not self.online:
            return []
        return [c.model_copy() for c in self.clubs]

    async def load_joined_club_ids(self) -> Set[str]:
        self.calls.append("load_joined_club_ids")
        if not self.online:
            return set()
        return {cid for cid, uid in self.club_members if uid == self._user}

    # Writes

    async def create_challenge(
        self,
        title: str,
        detail: str,
        start_date: date,
        end_date: date,
        goal_distance_meters: float,
        is_public: bool,
    ) -> Challenge:
        user_id = self._require_user("create a challenge")
        self._check_online("create_challenge")
        challenge = Challenge(
            id=str(uuid.uuid4()),
            title=title,
            detail=detail,
            start_date=start_date,
            end_date=end_date,
            goal_distance_meters=goal_distance_meters,
            is_public=is_public,
            created_by=user_id,
        )
        self.challenges.insert(0, challenge)
        return challenge.model_copy()

    async def delete_challenge(self, challenge_id: str) -> None:
        self._require_user("delete a challenge")
        self._check_online("delete_challenge")
        self.challenges = [c for c in self.challenges if c.id != challenge_id]

    async def set_join_state(self, challenge_id: str, is_joined: bool) -> None:
        user_id = self._require_user("join a challenge")
        self._check_online("set_join_state")
        if is_joined:
            self.participants.add((challenge_id, user_id))
        else:
            self.participants.discard((challenge_id, user_id))

    async def create_club(self, name: str, description: str, is_public: bool) -> Club:
        self._require_user("create a club")
        self._check_online("create_club")
        club = Club(id=str(uuid.uuid4()), name=name, description=description, is_public=is_public)
        self.clubs.insert(0, club)
        return club.model_copy()

    async def set_club_membership(self, club_id: str, is_joined: bool) -> None:
        user_id = self._require_user("join a club")
        self._check_online("set_club_membership")
        if is_joined:
            self.club_members.add((club_id, user_id))
        else:
            self.club_members.discard((club_id, user_id))

    async def invite_participants(self, challenge_id: str, usernames: List[str]) -> None:
        self._require_user("invite participants")
        self._check_online("invite_participants")
        self.invites.append((challenge_id, list(usernames)))

    async def upload_contributions(self, challenge_id: str, contributions: List[DayContribution]) -> None:
        user_id = self._require_user("upload contributions")
        self._check_online("upload_contributions")
        for contribution in contributions:
            self.contributions[(challenge_id, user_id, contribution.day)] = contribution.model_copy()
