"""
Authentication collaborator interface.

The community layer only needs the current user identity, an access token for
the backend, and a notification when either changes. Auth state changes are
published on an explicit channel; subscribers receive an unsubscribe callable.
"""

from typing import Awaitable, Callable, List, Optional, Protocol

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class AuthState(BaseModel):
    """Snapshot of authentication state carried by auth events."""

    user_id: Optional[str] = None
    is_authenticated: bool = False


AuthStateHandler = Callable[[AuthState], Awaitable[None]]


class AuthStateChannel:
    """Explicit event channel for authentication state changes."""

    def __init__(self):
        self._handlers: List[AuthStateHandler] = []

    def subscribe(self, handler: AuthStateHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    async def publish(self, state: AuthState) -> None:
        """Deliver ``state`` to every subscriber in subscription order."""
        for handler in list(self._handlers):
            await handler(state)


class AuthProvider(Protocol):
    """What the community layer consumes from the authentication subsystem."""

    @property
    def user_id(self) -> Optional[str]: ...

    @property
    def access_token(self) -> Optional[str]: ...

    @property
    def events(self) -> AuthStateChannel: ...


class SessionAuthProvider:
    """
    In-process auth session.

    Holds the identity and token obtained by the app's sign-in flow and
    publishes an event whenever they change.
    """

    def __init__(self, user_id: Optional[str] = None, access_token: Optional[str] = None):
        self._user_id = user_id
        self._access_token = access_token
        self._events = AuthStateChannel()

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def events(self) -> AuthStateChannel:
        return self._events

    @property
    def state(self) -> AuthState:
        return AuthState(user_id=self._user_id, is_authenticated=self._user_id is not None)

    async def sign_in(self, user_id: str, access_token: Optional[str] = None) -> None:
        self._user_id = user_id
        self._access_token = access_token
        logger.info("Signed in", user_id=user_id)
        await self._events.publish(self.state)

    async def sign_out(self) -> None:
        previous = self._user_id
        self._user_id = None
        self._access_token = None
        logger.info("Signed out", user_id=previous)
        await self._events.publish(self.state)

    async def update_token(self, access_token: Optional[str]) -> None:
        """Token refreshed (or dropped after a failed refresh)."""
        self._access_token = access_token
        await self._events.publish(self.state)
