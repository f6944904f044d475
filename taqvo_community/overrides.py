"""
Local override store for join and membership flags.

Flags are stored per user identity so join state never leaks between two
accounts used on the same device. Unauthenticated use gets its own
``anonymous`` scope. Older builds wrote a single unscoped key per namespace;
those are purged once by :func:`purge_legacy_keys`.
"""

from typing import Dict, Optional

import structlog

from taqvo_community.storage import KeyValueStore

logger = structlog.get_logger(__name__)

KEY_PREFIX = "community"
ANONYMOUS_SCOPE = "anonymous"

CHALLENGES_NAMESPACE = "joined_challenges"
CLUBS_NAMESPACE = "joined_clubs"
QUEUE_NAMESPACE = "pending_writes"

LEGACY_KEYS = (
    f"{KEY_PREFIX}.{CHALLENGES_NAMESPACE}",
    f"{KEY_PREFIX}.{CLUBS_NAMESPACE}",
    f"{KEY_PREFIX}.{QUEUE_NAMESPACE}",
)
MIGRATION_MARKER_KEY = f"{KEY_PREFIX}.migrations.user_scoped_keys"


def scoped_key(namespace: str, user_id: Optional[str]) -> str:
    """Storage key for ``namespace`` under the given identity."""
    return f"{KEY_PREFIX}.{namespace}.{user_id or ANONYMOUS_SCOPE}"


def purge_legacy_keys(kv: KeyValueStore) -> int:
    """
    Delete unscoped keys left by earlier versions.

    Runs once per store; a marker key records completion.

    Returns:
        Number of legacy keys removed
    """
    if kv.get(MIGRATION_MARKER_KEY, False):
        return 0

    removed = 0
    for key in LEGACY_KEYS:
        if kv.delete(key):
            removed += 1
    kv.set(MIGRATION_MARKER_KEY, True)

    if removed:
        logger.info("Purged legacy unscoped community keys", removed=removed)
    return removed


class LocalOverrideStore:
    """Maps an identifier to a local join flag that wins over server state."""

    def __init__(self, kv: KeyValueStore, namespace: str, user_id: Optional[str] = None):
        self.kv = kv
        self.namespace = namespace
        self.user_id = user_id

    @property
    def key(self) -> str:
        return scoped_key(self.namespace, self.user_id)

    def rescope(self, user_id: Optional[str]) -> None:
        """Switch to another identity; subsequent reads see only that user's flags."""
        self.user_id = user_id

    def get(self) -> Dict[str, bool]:
        raw = self.kv.get(self.key, {})
        if not isinstance(raw, dict):
            logger.warning("Discarding malformed override map", key=self.key)
            return {}
        return {str(k): bool(v) for k, v in raw.items()}

    def set(self, item_id: str, flag: bool) -> None:
        overrides = self.get()
        overrides[item_id] = bool(flag)
        self.kv.set(self.key, overrides)

    def remove(self, item_id: str) -> None:
        overrides = self.get()
        if overrides.pop(item_id, None) is not None:
            self.kv.set(self.key, overrides)

    def clear(self) -> None:
        self.kv.delete(self.key)

    def apply(self, item_id: str, server_value: bool) -> bool:
        """Server value is the base; a local override, if present, wins."""
        return self.get().get(item_id, server_value)
