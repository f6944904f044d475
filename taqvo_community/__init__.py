"""
Taqvo Community - client-side sync for challenges, clubs and leaderboards.

This package keeps the Taqvo community state consistent with the Supabase
backend under unreliable connectivity:
- Remote data gateway (PostgREST over httpx, or in-memory demo data)
- Per-user local override store for join and membership flags
- Durable offline write queue replayed on reload and sign-in
- Community model with optimistic updates and leaderboard sorting
- Reconciliation driver subscribed to authentication state changes

Author: Taqvo Team
License: MIT
"""

__version__ = "0.1.0"
__author__ = "Taqvo Team"

from taqvo_community.community import CommunityModel
from taqvo_community.reconciliation import ReconciliationDriver

__all__ = ["CommunityModel", "ReconciliationDriver"]
