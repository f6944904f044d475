"""
Pytest configuration and fixtures for Taqvo Community tests.

This module provides shared fixtures for the community model, its stores and
the gateways it talks to. No test touches the network: the Supabase gateway is
exercised through httpx.MockTransport.
"""

import json
import logging
import sys
from datetime import date, datetime
from typing import Callable, List

import httpx
import pytest
import structlog

from taqvo_community.activity import InMemoryActivitySource, RecordedActivity
from taqvo_community.auth import SessionAuthProvider
from taqvo_community.community import CommunityModel
from taqvo_community.config import SupabaseConfig, reset_settings
from taqvo_community.gateway import MockCommunityGateway, SupabaseCommunityGateway
from taqvo_community.models import Challenge, Club, LeaderboardEntry
from taqvo_community.storage import MemoryKeyValueStore

USER_A = "11111111-1111-1111-1111-111111111111"
USER_B = "22222222-2222-2222-2222-222222222222"

CHALLENGE_1 = "aaaaaaaa-0000-0000-0000-000000000001"
CHALLENGE_2 = "aaaaaaaa-0000-0000-0000-000000000002"
CLUB_1 = "cccccccc-0000-0000-0000-000000000001"

SUPABASE_URL = "https://project.supabase.co"
ANON_KEY = "anon-key"


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Keep cached settings and backend env vars out of tests."""
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(autouse=True)
def quiet_structlog():
    """Route structlog to stderr at WARNING so CLI output stays parseable."""
    structlog.configure(
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def auth():
    return SessionAuthProvider(user_id=USER_A, access_token="token-a")


@pytest.fixture
def sample_challenges() -> List[Challenge]:
    return [
        Challenge(
            id=CHALLENGE_1,
            title="October Mileage",
            detail="Log 50 km in October",
            start_date=date(2026, 10, 1),
            end_date=date(2026, 10, 31),
            goal_distance_meters=50000,
            created_by=USER_A,
        ),
        Challenge(
            id=CHALLENGE_2,
            title="Weekend Sprint",
            detail="Run 10 km over the weekend",
            start_date=date(2026, 10, 10),
            end_date=date(2026, 10, 12),
            goal_distance_meters=10000,
            created_by=USER_B,
        ),
    ]


@pytest.fixture
def sample_leaderboard() -> List[LeaderboardEntry]:
    return [
        LeaderboardEntry(user_name="Sam", total_distance_meters=38000, total_duration_seconds=13680, streak_days=3),
        LeaderboardEntry(user_name="Alex", total_distance_meters=42000, total_duration_seconds=16800, streak_days=9),
        LeaderboardEntry(user_name="Riley", total_distance_meters=30000),
    ]


@pytest.fixture
def sample_clubs() -> List[Club]:
    return [Club(id=CLUB_1, name="Dawn Runners", description="Early miles", member_count=4)]


@pytest.fixture
def gateway(auth, sample_challenges, sample_leaderboard, sample_clubs):
    return MockCommunityGateway(
        auth=auth,
        challenges=sample_challenges,
        leaderboard=sample_leaderboard,
        clubs=sample_clubs,
        require_auth=True,
    )


@pytest.fixture
def model(gateway, kv, auth):
    return CommunityModel(gateway, kv, user_id=auth.user_id)


@pytest.fixture
def activity_source():
    """Runs on 10 Oct (two), 12 Oct and 20 Oct 2026, plus one in September."""
    return InMemoryActivitySource([
        RecordedActivity(end_time=datetime(2026, 10, 10, 7, 30), distance_meters=5000, duration_seconds=1500),
        RecordedActivity(end_time=datetime(2026, 10, 10, 18, 0), distance_meters=3000, duration_seconds=900),
        RecordedActivity(end_time=datetime(2026, 10, 12, 8, 0), distance_meters=4000, duration_seconds=1300),
        RecordedActivity(end_time=datetime(2026, 10, 20, 8, 0), distance_meters=10000, duration_seconds=3000),
        RecordedActivity(end_time=datetime(2026, 9, 28, 8, 0), distance_meters=7000, duration_seconds=2100),
    ])


@pytest.fixture
def supabase_config():
    return SupabaseConfig(url=SUPABASE_URL, anon_key=ANON_KEY, read_retries=0)


@pytest.fixture
def make_supabase_gateway(supabase_config, auth) -> Callable[..., SupabaseCommunityGateway]:
    """Build a Supabase gateway whose HTTP traffic goes to ``handler``."""

    def factory(handler, config=None, auth_provider=None):
        config = config or supabase_config
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            base_url=config.rest_url,
        )
        return SupabaseCommunityGateway(config, auth_provider or auth, client=client)

    return factory


def json_response(status_code: int, body) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(body), headers={"Content-Type": "application/json"})
