"""
Community model.

Holds challenges, clubs and the leaderboard in memory and keeps them
consistent with the remote gateway. User actions update local state first,
persist the per-user override, notify listeners, and only then talk to the
network; a failed write is queued for replay instead of being rolled back.

All methods are expected to run on a single asyncio event loop, which is the
only context that mutates this model and its persisted stores.
"""

import asyncio
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar, Union

import structlog

from taqvo_community.activity import ActivitySource, build_day_contributions, sum_distance_in_range
from taqvo_community.exceptions import (
    GatewayError,
    TaqvoCommunityError,
    data_validation_error,
    permission_denied,
)
from taqvo_community.gateway import CommunityGateway
from taqvo_community.models import (
    Challenge,
    Club,
    ClubJoinWrite,
    ContributionsWrite,
    DailySummary,
    DayContribution,
    InviteWrite,
    JoinWrite,
    LeaderboardEntry,
    LeaderboardSort,
    QueuedWrite,
)
from taqvo_community.overrides import (
    CHALLENGES_NAMESPACE,
    CLUBS_NAMESPACE,
    LocalOverrideStore,
    purge_legacy_keys,
)
from taqvo_community.storage import KeyValueStore
from taqvo_community.utils.validation import (
    clean_usernames,
    validate_challenge_input,
    validate_club_name,
)
from taqvo_community.write_queue import DrainResult, OfflineWriteQueue

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Listener = Callable[["CommunityModel"], None]


def _write_key(op: QueuedWrite) -> Optional[Tuple[str, str]]:
    """Writes sharing a key carry full state, so a newer one supersedes older ones."""
    if isinstance(op, JoinWrite):
        return (op.kind, op.challenge_id)
    if isinstance(op, ClubJoinWrite):
        return (op.kind, op.club_id)
    if isinstance(op, ContributionsWrite):
        return (op.kind, op.challenge_id)
    return None


def _references_challenge(op: QueuedWrite, challenge_id: str) -> bool:
    return getattr(op, "challenge_id", None) == challenge_id


def sort_leaderboard(entries: List[LeaderboardEntry], mode: LeaderboardSort) -> None:
    """
    Sort entries in place and reassign ranks 1..N.

    Pace sorts ascending by seconds per kilometer; entries without a duration
    have pace zero and therefore sort first. Ties keep their incoming order.
    """
    if mode == LeaderboardSort.PACE:
        entries.sort(key=lambda e: e.average_pace_seconds_per_km)
    elif mode == LeaderboardSort.STREAK:
        entries.sort(key=lambda e: e.streak_days or 0, reverse=True)
    else:
        entries.sort(key=lambda e: e.total_distance_meters, reverse=True)

    for index, entry in enumerate(entries, start=1):
        entry.rank = index


class CommunityModel:
    """Client-side state for challenges, clubs and the leaderboard."""

    def __init__(
        self,
        gateway: CommunityGateway,
        kv: KeyValueStore,
        user_id: Optional[str] = None,
    ):
        self.gateway = gateway
        self.kv = kv
        self._user_id = user_id

        purge_legacy_keys(kv)
        self.challenge_overrides = LocalOverrideStore(kv, CHALLENGES_NAMESPACE, user_id)
        self.club_overrides = LocalOverrideStore(kv, CLUBS_NAMESPACE, user_id)
        self.queue = OfflineWriteQueue(kv, user_id)

        self.challenges: List[Challenge] = []
        self.clubs: List[Club] = []
        self.leaderboard: List[LeaderboardEntry] = []
        self.leaderboard_sort = LeaderboardSort.DISTANCE
        self._listeners: List[Listener] = []
        self._target_locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def pending_writes(self) -> List[QueuedWrite]:
        return self.queue.items

    # Change notification

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # Lookup

    def find_challenge(self, challenge_id: str) -> Optional[Challenge]:
        return next((c for c in self.challenges if c.id == challenge_id), None)

    def find_club(self, club_id: str) -> Optional[Club]:
        return next((c for c in self.clubs if c.id == club_id), None)

    # Loading

    async def _degrading(self, read: Awaitable[T], fallback: T, what: str) -> T:
        try:
            return await read
        except GatewayError as e:
            logger.warning("Community read failed, continuing offline", what=what, error=str(e))
            return fallback

    async def load(self) -> DrainResult:
        """
        Reload challenges, leaderboard and clubs, then flush queued writes.

        Server join state is the base; local overrides win. Transport failures
        leave empty lists rather than raising.
        """
        challenges = await self._degrading(self.gateway.load_challenges(), [], "challenges")
        joined_ids = await self._degrading(self.gateway.load_joined_challenge_ids(), set(), "participations")
        leaderboard = await self._degrading(self.gateway.load_leaderboard(), [], "leaderboard")

        progress = {c.id: c.progress_meters for c in self.challenges}
        for challenge in challenges:
            challenge.is_joined = self.challenge_overrides.apply(challenge.id, challenge.id in joined_ids)
            challenge.progress_meters = progress.get(challenge.id, 0.0)

        clubs = await self._degrading(self.gateway.load_clubs(), [], "clubs")
        joined_club_ids = await self._degrading(self.gateway.load_joined_club_ids(), set(), "memberships")
        for club in clubs:
            club.is_joined = self.club_overrides.apply(club.id, club.id in joined_club_ids)

        self.challenges = challenges
        self.clubs = clubs
        self.leaderboard = leaderboard
        sort_leaderboard(self.leaderboard, self.leaderboard_sort)
        self._notify()

        logger.info(
            "Community loaded",
            challenges=len(challenges),
            clubs=len(clubs),
            leaderboard=len(leaderboard),
            user_id=self._user_id,
        )
        return await self.flush_pending_writes()

    # Queue

    async def _replay(self, op: QueuedWrite) -> None:
        if isinstance(op, JoinWrite):
            await self.gateway.set_join_state(op.challenge_id, op.is_joined)
        elif isinstance(op, ContributionsWrite):
            await self.gateway.upload_contributions(op.challenge_id, op.contributions)
        elif isinstance(op, ClubJoinWrite):
            await self.gateway.set_club_membership(op.club_id, op.is_joined)
        elif isinstance(op, InviteWrite):
            await self.gateway.invite_participants(op.challenge_id, op.usernames)
        else:
            raise TypeError(f"Unknown queued write: {op!r}")

    def _target_lock(self, key: Optional[Tuple[str, str]]) -> Optional[asyncio.Lock]:
        if key is None:
            return None
        lock = self._target_locks.get(key)
        if lock is None:
            lock = self._target_locks[key] = asyncio.Lock()
        return lock

    async def _push_or_queue(self, op: QueuedWrite) -> bool:
        """Send a write now; queue it on failure. Returns whether it was delivered."""
        key = _write_key(op)
        lock = self._target_lock(key)
        if lock is None:
            return await self._send_or_queue(op)
        # wait for an in-flight write to the same target so ours lands last
        async with lock:
            self.queue.discard(lambda queued: _write_key(queued) == key)
            return await self._send_or_queue(op)

    async def _send_or_queue(self, op: QueuedWrite) -> bool:
        try:
            await self._replay(op)
        except TaqvoCommunityError as e:
            logger.warning("Write failed, queueing for retry", kind=op.kind, error=str(e))
            self.queue.enqueue(op)
            return False
        return True

    async def _replay_queued(self, op: QueuedWrite) -> None:
        lock = self._target_lock(_write_key(op))
        if lock is None:
            await self._replay(op)
            return
        async with lock:
            if op not in self.queue:
                logger.debug("Skipping write superseded while waiting", kind=op.kind)
                return
            await self._replay(op)

    async def flush_pending_writes(self) -> DrainResult:
        return await self.queue.drain(self._replay_queued)

    # Challenges

    async def toggle_join(self, challenge_id: str) -> Optional[bool]:
        """
        Flip the join flag optimistically and push it.

        Returns the new flag, or None for an unknown challenge. A failed push
        queues the write; the local flip is never rolled back.
        """
        challenge = self.find_challenge(challenge_id)
        if challenge is None:
            logger.warning("Toggle join for unknown challenge", challenge_id=challenge_id)
            return None

        challenge.is_joined = not challenge.is_joined
        is_joined = challenge.is_joined
        self.challenge_overrides.set(challenge_id, is_joined)
        self._notify()

        await self._push_or_queue(JoinWrite(challenge_id=challenge_id, is_joined=is_joined))
        return is_joined

    async def create_challenge(
        self,
        title: str,
        detail: str,
        start_date: date,
        end_date: date,
        goal_distance_meters: float,
        is_public: bool = True,
        auto_join: bool = True,
    ) -> Challenge:
        """
        Create a challenge remotely and insert it at the front of the list.

        Raises:
            DataValidationError: Invalid input, before any network call
            SignInRequiredError: No signed-in user
            GatewayError: Backend rejected or could not be reached
        """
        clean_title = validate_challenge_input(title, start_date, end_date, goal_distance_meters)
        challenge = await self.gateway.create_challenge(
            clean_title, (detail or "").strip(), start_date, end_date, goal_distance_meters, is_public
        )
        if challenge.created_by is None:
            challenge.created_by = self._user_id

        self.challenges.insert(0, challenge)
        if auto_join:
            challenge.is_joined = True
            self.challenge_overrides.set(challenge.id, True)
        self._notify()

        if auto_join:
            await self._push_or_queue(JoinWrite(challenge_id=challenge.id, is_joined=True))
        return challenge

    async def delete_challenge(self, challenge_id: str) -> None:
        """
        Delete a challenge owned by the current user.

        Raises:
            PermissionDeniedError: Requester is not the creator
            DataValidationError: Unknown challenge
            GatewayError: Remote delete failed; nothing is removed locally
        """
        challenge = self.find_challenge(challenge_id)
        if challenge is None:
            raise data_validation_error("Unknown challenge", challenge_id=challenge_id)
        if self._user_id is None or challenge.created_by != self._user_id:
            raise permission_denied(
                "Only the creator can delete this challenge",
                challenge_id=challenge_id,
                user_id=self._user_id,
            )

        await self.gateway.delete_challenge(challenge_id)

        self.challenges = [c for c in self.challenges if c.id != challenge_id]
        self.challenge_overrides.remove(challenge_id)
        self.queue.discard(lambda op: _references_challenge(op, challenge_id))
        self._notify()
        logger.info("Challenge deleted", challenge_id=challenge_id, user_id=self._user_id)

    async def invite_participants(self, challenge_id: str, usernames: List[str]) -> bool:
        """Invite users to a challenge; queues on failure. Returns whether it was delivered."""
        names = clean_usernames(usernames)
        if not names:
            return True
        return await self._push_or_queue(InviteWrite(challenge_id=challenge_id, usernames=names))

    # Clubs

    async def toggle_club_membership(self, club_id: str) -> Optional[bool]:
        club = self.find_club(club_id)
        if club is None:
            logger.warning("Toggle membership for unknown club", club_id=club_id)
            return None

        club.is_joined = not club.is_joined
        club.member_count = max(0, club.member_count + (1 if club.is_joined else -1))
        is_joined = club.is_joined
        self.club_overrides.set(club_id, is_joined)
        self._notify()

        await self._push_or_queue(ClubJoinWrite(club_id=club_id, is_joined=is_joined))
        return is_joined

    async def create_club(
        self,
        name: str,
        description: str = "",
        is_public: bool = True,
        auto_join: bool = True,
    ) -> Club:
        clean_name = validate_club_name(name)
        club = await self.gateway.create_club(clean_name, (description or "").strip(), is_public)

        self.clubs.insert(0, club)
        if auto_join:
            club.is_joined = True
            club.member_count = max(club.member_count, 1)
            self.club_overrides.set(club.id, True)
        self._notify()

        if auto_join:
            await self._push_or_queue(ClubJoinWrite(club_id=club.id, is_joined=True))
        return club

    # Progress and leaderboard

    def set_leaderboard_sort(self, mode: Union[LeaderboardSort, str]) -> None:
        self.leaderboard_sort = LeaderboardSort(mode)
        sort_leaderboard(self.leaderboard, self.leaderboard_sort)
        self._notify()

    async def refresh_progress(self, activity_source: ActivitySource, upload: bool = True) -> None:
        """
        Recompute challenge progress from daily summaries and upload contributions.

        Every joined challenge gets one contribution record per day of its
        range; failed uploads are queued.
        """
        summaries = activity_source.daily_summaries()
        for challenge in self.challenges:
            challenge.progress_meters = sum_distance_in_range(
                summaries, challenge.start_date, challenge.end_date
            )
        sort_leaderboard(self.leaderboard, self.leaderboard_sort)
        self._notify()

        if not upload:
            return
        joined = [c for c in self.challenges if c.is_joined]
        await asyncio.gather(*(self._upload_contributions(c, summaries) for c in joined))

    async def _upload_contributions(self, challenge: Challenge, summaries: List[DailySummary]) -> None:
        contributions = build_day_contributions(challenge, summaries)
        await self._push_or_queue(ContributionsWrite(challenge_id=challenge.id, contributions=contributions))

    def day_contributions(self, challenge_id: str, activity_source: ActivitySource) -> List[DayContribution]:
        challenge = self.find_challenge(challenge_id)
        if challenge is None:
            raise data_validation_error("Unknown challenge", challenge_id=challenge_id)
        return build_day_contributions(challenge, activity_source.daily_summaries())

    # Identity

    def switch_user(self, user_id: Optional[str]) -> bool:
        """
        Rescope persisted state to ``user_id`` and drop user-scoped memory.

        Returns False when the identity did not change.
        """
        if user_id == self._user_id:
            return False

        logger.info("Switching community user", previous=self._user_id, user_id=user_id)
        self._user_id = user_id
        self.challenge_overrides.rescope(user_id)
        self.club_overrides.rescope(user_id)
        self.queue.rescope(user_id)

        self.challenges = []
        self.clubs = []
        self.leaderboard = []
        self._notify()
        return True

    def snapshot(self) -> dict[str, Any]:
        """Plain-data view of the model, as rendered by the CLI."""
        return {
            "user_id": self._user_id,
            "challenges": [c.model_dump(mode="json") for c in self.challenges],
            "clubs": [c.model_dump(mode="json") for c in self.clubs],
            "leaderboard": [e.model_dump(mode="json") for e in self.leaderboard],
            "leaderboard_sort": self.leaderboard_sort.value,
            "pending_writes": len(self.queue),
        }
