"""
Gateway Module - remote data access for community challenges, clubs and leaderboards
"""

from typing import Optional

import structlog

from taqvo_community.auth import AuthProvider
from taqvo_community.config import Settings, get_settings

from .interface import CommunityGateway
from .mock import MockCommunityGateway
from .supabase import SupabaseCommunityGateway

logger = structlog.get_logger(__name__)


def create_gateway(auth: AuthProvider, settings: Optional[Settings] = None) -> CommunityGateway:
    """Supabase gateway when configured, otherwise the in-memory demo gateway."""
    settings = settings or get_settings()
    if settings.supabase.is_configured:
        return SupabaseCommunityGateway(settings.supabase, auth)

    logger.info("Supabase not configured, using demo community data")
    return MockCommunityGateway(auth=auth)


__all__ = [
    'CommunityGateway',
    'MockCommunityGateway',
    'SupabaseCommunityGateway',
    'create_gateway',
]
