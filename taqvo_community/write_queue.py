"""
Offline write queue.

Pending mutations (join/leave, contribution uploads, club membership, invites)
are kept in FIFO order and persisted after every change under a user-scoped
key, so an app restart does not lose them. A drain replays each queued write
once through an executor supplied by the community model; writes that fail
again stay queued in their original relative order.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

import structlog
from pydantic import ValidationError

from taqvo_community.exceptions import TaqvoCommunityError
from taqvo_community.models import QueuedWrite, queued_write_adapter
from taqvo_community.overrides import QUEUE_NAMESPACE, scoped_key
from taqvo_community.storage import KeyValueStore

logger = structlog.get_logger(__name__)

WriteExecutor = Callable[[QueuedWrite], Awaitable[None]]


@dataclass
class DrainResult:
    """Outcome of one drain pass."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0


class OfflineWriteQueue:
    """Durable FIFO of writes waiting for connectivity or sign-in."""

    def __init__(self, kv: KeyValueStore, user_id: Optional[str] = None):
        self.kv = kv
        self.user_id = user_id
        self._items: List[QueuedWrite] = []
        self._drain_lock = asyncio.Lock()
        self._load()

    @property
    def key(self) -> str:
        return scoped_key(QUEUE_NAMESPACE, self.user_id)

    @property
    def items(self) -> List[QueuedWrite]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def is_draining(self) -> bool:
        return self._drain_lock.locked()

    def rescope(self, user_id: Optional[str]) -> None:
        """Persist the current scope and load the queue belonging to ``user_id``."""
        self._persist()
        self.user_id = user_id
        self._load()

    def enqueue(self, op: QueuedWrite) -> None:
        self._items.append(op)
        self._persist()
        logger.info("Queued offline write", kind=op.kind, pending=len(self._items), user_id=self.user_id)

    def clear(self) -> None:
        self._items = []
        self._persist()

    def discard(self, predicate: Callable[[QueuedWrite], bool]) -> int:
        """Drop every queued write matching ``predicate``; returns how many were dropped."""
        kept = [op for op in self._items if not predicate(op)]
        dropped = len(self._items) - len(kept)
        if dropped:
            self._items = kept
            self._persist()
            logger.debug("Discarded superseded writes", dropped=dropped, user_id=self.user_id)
        return dropped

    async def drain(self, executor: WriteExecutor) -> DrainResult:
        """
        Replay queued writes in FIFO order.

        Each write present when the pass starts is attempted exactly once.
        Writes enqueued during the pass are kept behind the ones still failing.
        Only community errors keep a write queued; anything else propagates.
        """
        async with self._drain_lock:
            result = DrainResult()
            snapshot = list(self._items)
            if not snapshot:
                return result

            logger.info("Draining offline writes", pending=len(snapshot), user_id=self.user_id)
            for op in snapshot:
                if op not in self:
                    # superseded or discarded while this pass was running
                    continue
                result.attempted += 1
                try:
                    await executor(op)
                except TaqvoCommunityError as e:
                    result.failed += 1
                    logger.warning("Queued write still failing", kind=op.kind, error=str(e))
                    continue
                self._remove(op)
                result.succeeded += 1

            logger.info(
                "Drain finished",
                attempted=result.attempted,
                succeeded=result.succeeded,
                failed=result.failed,
            )
            return result

    def __contains__(self, op: object) -> bool:
        return any(item is op for item in self._items)

    def _remove(self, op: QueuedWrite) -> None:
        for index, item in enumerate(self._items):
            if item is op:
                del self._items[index]
                self._persist()
                return

    def _persist(self) -> None:
        self.kv.set(self.key, [queued_write_adapter.dump_python(op, mode="json") for op in self._items])

    def _load(self) -> None:
        raw = self.kv.get(self.key, [])
        if not isinstance(raw, list):
            logger.warning("Discarding malformed write queue", key=self.key)
            raw = []

        items: List[QueuedWrite] = []
        for entry in raw:
            try:
                items.append(queued_write_adapter.validate_python(entry))
            except ValidationError as e:
                logger.warning("Dropping undecodable queued write", key=self.key, error=str(e))
        self._items = items
