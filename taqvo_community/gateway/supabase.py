"""
Supabase (PostgREST) implementation of the community gateway.

Tables: challenges, challenge_participants, challenge_daily_contributions,
clubs, club_members, and the computed leaderboard_view. Invites go through the
invite_to_challenge RPC.
"""

from datetime import date
from typing import Any, Callable, Dict, List, Optional, Set, TypeVar

import httpx
import structlog
from pydantic import ValidationError

from taqvo_community.auth import AuthProvider
from taqvo_community.config import SupabaseConfig
from taqvo_community.exceptions import (
    DataValidationError,
    GatewayError,
    authorization_error,
    configuration_error,
    gateway_error,
    sign_in_required,
)
from taqvo_community.models import Challenge, Club, DayContribution, LeaderboardEntry
from taqvo_community.utils.retry import read_retry_config
from taqvo_community.utils.validation import format_iso_day, parse_iso_day, parse_uuid
from .interface import CommunityGateway

logger = structlog.get_logger(__name__)

T = TypeVar("T")

CHALLENGE_COLUMNS = (
    "id,title,detail,start_date,end_date,goal_distance_meters,is_public,created_by,created_by_username"
)
LEADERBOARD_COLUMNS = (
    "challenge_id,user_id,display_name,total_distance_meters,total_duration_seconds,current_streak_days"
)
CLUB_COLUMNS = "id,name,description,is_public,member_count"

MERGE_DUPLICATES = "resolution=merge-duplicates,return=minimal"
RETURN_REPRESENTATION = "return=representation"


def parse_challenge_row(row: Dict[str, Any]) -> Challenge:
    """Build a challenge from a table row; raises DataValidationError on bad id/date."""
    title = row.get("title")
    if not title:
        raise DataValidationError("Challenge row without title", {"id": row.get("id")})
    created_by = row.get("created_by")
    return Challenge(
        id=parse_uuid(row.get("id")),
        title=title,
        detail=row.get("detail") or "",
        start_date=parse_iso_day(row.get("start_date")),
        end_date=parse_iso_day(row.get("end_date")),
        goal_distance_meters=float(row.get("goal_distance_meters") or 0),
        is_public=row.get("is_public", True) is not False,
        created_by=parse_uuid(created_by) if created_by else None,
        created_by_username=row.get("created_by_username"),
    )


def parse_leaderboard_row(row: Dict[str, Any]) -> LeaderboardEntry:
    user_id = row.get("user_id")
    if not user_id:
        raise DataValidationError("Leaderboard row without user_id")
    duration = row.get("total_duration_seconds")
    streak = row.get("current_streak_days")
    return LeaderboardEntry(
        user_name=row.get("display_name") or f"Runner {str(user_id)[:6]}",
        total_distance_meters=float(row.get("total_distance_meters") or 0),
        total_duration_seconds=float(duration) if duration is not None else None,
        streak_days=int(streak) if streak is not None else None,
    )


def parse_club_row(row: Dict[str, Any]) -> Club:
    name = row.get("name")
    if not name:
        raise DataValidationError("Club row without name", {"id": row.get("id")})
    return Club(
        id=parse_uuid(row.get("id")),
        name=name,
        description=row.get("description") or "",
        is_public=row.get("is_public", True) is not False,
        member_count=int(row.get("member_count") or 0),
    )


def parse_rows(rows: List[Dict[str, Any]], parser: Callable[[Dict[str, Any]], T], kind: str) -> List[T]:
    """Parse rows, dropping the ones that do not validate."""
    parsed = []
    for row in rows:
        try:
            parsed.append(parser(row))
        except (DataValidationError, ValidationError, AttributeError, TypeError, ValueError) as e:
            logger.warning("Dropping unparseable row", kind=kind, error=str(e))
    return parsed


class SupabaseCommunityGateway(CommunityGateway):
    """Community gateway backed by Supabase's REST interface."""

    def __init__(
        self,
        config: SupabaseConfig,
        auth: AuthProvider,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not config.is_configured:
            raise configuration_error("SUPABASE_URL and SUPABASE_ANON_KEY must be set")

        self.config = config
        self.auth = auth
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=config.rest_url, timeout=config.timeout)
        self._get_rows = read_retry_config(
            "supabase_read", max_attempts=config.read_retries + 1
        )(self._get_rows_once)

    # Networking

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        token = self.auth.access_token or self.config.anon_key
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "apikey": self.config.anon_key,
            "Authorization": f"Bearer {token}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _require_user(self, operation: str) -> str:
        user_id = self.auth.user_id
        if not user_id:
            raise sign_in_required(operation)
        return user_id

    async def _get_rows_once(self, path: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        response = await self._client.get(path, params=params, headers=self._headers())
        if not response.is_success:
            raise gateway_error(f"GET {path} failed", status_code=response.status_code)
        rows = response.json()
        if not isinstance(rows, list):
            raise gateway_error(f"GET {path} returned a non-list body")
        return rows

    async def _read(self, path: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        """Fetch rows; an unreachable or failing backend yields an empty list."""
        try:
            return await self._get_rows(path, params)
        except (httpx.HTTPError, GatewayError, ValueError) as e:
            logger.warning("Read degraded to empty result", path=path, error=str(e))
            return []

    async def _write(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=self._headers(prefer)
            )
        except httpx.HTTPError as e:
            raise gateway_error(f"{method} {path} failed: {e}", path=path)

        if response.status_code in (401, 403):
            raise authorization_error(f"{method} {path} was rejected", status_code=response.status_code)
        if not response.is_success:
            raise gateway_error(f"{method} {path} failed", status_code=response.status_code, path=path)
        return response

    # Reads

    async def load_challenges(self) -> List[Challenge]:
        params = {"select": CHALLENGE_COLUMNS, "order": "start_date.asc"}
        user_id = self.auth.user_id
        if user_id:
            params["or"] = f"(is_public.eq.true,created_by.eq.{user_id})"
        else:
            params["is_public"] = "eq.true"
        rows = await self._read("/challenges", params)
        return parse_rows(rows, parse_challenge_row, "challenge")

    async def load_joined_challenge_ids(self) -> Set[str]:
        user_id = self.auth.user_id
        if not user_id:
            return set()
        rows = await self._read(
            "/challenge_participants", {"select": "challenge_id", "user_id": f"eq.{user_id}"}
        )
        return set(parse_rows(rows, lambda r: parse_uuid(r.get("challenge_id")), "participation"))

    async def load_leaderboard(self) -> List[LeaderboardEntry]:
        rows = await self._read("/leaderboard_view", {
            "select": LEADERBOARD_COLUMNS,
            "order": "total_distance_meters.desc",
            "limit": str(self.config.leaderboard_limit),
        })
        entries = parse_rows(rows, parse_leaderboard_row, "leaderboard")
        for index, entry in enumerate(entries):
            entry.rank = index + 1
        return entries

    async def load_clubs(self) -> List[Club]:
        rows = await self._read("/clubs", {"select": CLUB_COLUMNS, "order": "name.asc"})
        return parse_rows(rows, parse_club_row, "club")

    async def load_joined_club_ids(self) -> Set[str]:
        user_id = self.auth.user_id
        if not user_id:
            return set()
        rows = await self._read("/club_members", {"select": "club_id", "user_id": f"eq.{user_id}"})
        return set(parse_rows(rows, lambda r: parse_uuid(r.get("club_id")), "membership"))

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
        response = await self._write("POST", "/challenges", json={
            "title": title,
            "detail": detail,
            "start_date": format_iso_day(start_date),
            "end_date": format_iso_day(end_date),
            "goal_distance_meters": goal_distance_meters,
            "is_public": is_public,
            "created_by": user_id,
        }, prefer=RETURN_REPRESENTATION)

        created = parse_rows(_as_rows(response), parse_challenge_row, "challenge")
        if not created:
            raise gateway_error("Backend returned no challenge row")
        logger.info("Challenge created", challenge_id=created[0].id, user_id=user_id)
        return created[0]

    async def delete_challenge(self, challenge_id: str) -> None:
        self._require_user("delete a challenge")
        await self._write("DELETE", "/challenges", params={"id": f"eq.{challenge_id}"})

    async def set_join_state(self, challenge_id: str, is_joined: bool) -> None:
        user_id = self._require_user("join a challenge")
        if is_joined:
            await self._write(
                "POST",
                "/challenge_participants",
                json={"challenge_id": challenge_id, "user_id": user_id},
                prefer=MERGE_DUPLICATES,
            )
        else:
            await self._write("DELETE", "/challenge_participants", params={
                "challenge_id": f"eq.{challenge_id}",
                "user_id": f"eq.{user_id}",
            })

    async def create_club(self, name: str, description: str, is_public: bool) -> Club:
        user_id = self._require_user("create a club")
        response = await self._write("POST", "/clubs", json={
            "name": name,
            "description": description,
            "is_public": is_public,
            "created_by": user_id,
        }, prefer=RETURN_REPRESENTATION)

        created = parse_rows(_as_rows(response), parse_club_row, "club")
        if not created:
            raise gateway_error("Backend returned no club row")
        return created[0]

    async def set_club_membership(self, club_id: str, is_joined: bool) -> None:
        user_id = self._require_user("join a club")
        if is_joined:
            await self._write(
                "POST",
                "/club_members",
                json={"club_id": club_id, "user_id": user_id},
                prefer=MERGE_DUPLICATES,
            )
        else:
            await self._write("DELETE", "/club_members", params={
                "club_id": f"eq.{club_id}",
                "user_id": f"eq.{user_id}",
            })

    async def invite_participants(self, challenge_id: str, usernames: List[str]) -> None:
        self._require_user("invite participants")
        await self._write("POST", "/rpc/invite_to_challenge", json={
            "challenge_id": challenge_id,
            "usernames": usernames,
        })

    async def upload_contributions(self, challenge_id: str, contributions: List[DayContribution]) -> None:
        user_id = self._require_user("upload contributions")
        if not contributions:
            return
        rows = [
            {
                "challenge_id": challenge_id,
                "user_id": user_id,
                "contribution_date": format_iso_day(c.day),
                "distance_meters": c.distance_meters,
                "contribution_count": c.contribution_count,
            }
            for c in contributions
        ]
        await self._write("POST", "/challenge_daily_contributions", json=rows, prefer=MERGE_DUPLICATES)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _as_rows(response: httpx.Response) -> List[Dict[str, Any]]:
    try:
        body = response.json()
    except ValueError:
        return []
    if isinstance(body, dict):
        return [body]
    return body if isinstance(body, list) else []
