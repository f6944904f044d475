"""
Reconciliation driver.

Subscribes to authentication state changes at construction and unsubscribes
on close. Each change rescopes the community model to the new identity
(dropping the previous user's in-memory state), reloads from the gateway and
flushes the offline write queue.
"""

import asyncio
from typing import Optional

from taqvo_community.auth import AuthProvider, AuthState
from taqvo_community.community import CommunityModel
from taqvo_community.utils.logging import get_logger
from taqvo_community.write_queue import DrainResult


class ReconciliationDriver:
    """Keeps a community model in step with the signed-in user."""

    def __init__(self, model: CommunityModel, auth: AuthProvider):
        self.model = model
        self.auth = auth
        self.passes = 0
        self.last_result: Optional[DrainResult] = None
        self._lock = asyncio.Lock()
        self._unsubscribe = auth.events.subscribe(self._on_auth_state_changed)

    @property
    def is_subscribed(self) -> bool:
        return self._unsubscribe is not None

    async def _on_auth_state_changed(self, state: AuthState) -> None:
        await self.reconcile(state.user_id)

    async def reconcile(self, user_id: Optional[str] = None) -> DrainResult:
        """
        Run one reconciliation pass for ``user_id`` (current auth user if omitted).

        Passes are serialized; a pass triggered while another runs waits for it.
        """
        if user_id is None:
            user_id = self.auth.user_id
        log = get_logger(__name__, user_id=user_id)

        async with self._lock:
            switched = self.model.switch_user(user_id)
            result = await self.model.load()
            self.passes += 1
            self.last_result = result

        log.info(
            "Reconciled community state",
            switched_user=switched,
            replayed=result.succeeded,
            still_pending=len(self.model.queue),
        )
        return result

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def __aenter__(self) -> "ReconciliationDriver":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
