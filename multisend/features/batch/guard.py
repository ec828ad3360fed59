"""Per-actor reentrancy guard."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from multisend.features.batch.errors import BatchError, BatchErrorKind

logger = logging.getLogger(__name__)


class ReentrancyGuard:
    """Rejects a second attempt by an actor while the first is in flight.

    The guard never blocks or queues: ``enter`` either claims the actor or
    raises ``ReentrantCall`` immediately. Different actors do not contend.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    @staticmethod
    def _key(actor: str) -> str:
        return actor.strip().lower()

    def is_active(self, actor: str) -> bool:
        with self._lock:
            return self._key(actor) in self._in_flight

    def acquire(self, actor: str) -> None:
        key = self._key(actor)
        with self._lock:
            if key in self._in_flight:
                logger.warning("Rejected reentrant batch attempt for %s", actor)
                raise BatchError(
                    kind=BatchErrorKind.REENTRANT_CALL,
                    message=f"A batch for {actor} is already in flight",
                    details={"actor": actor},
                )
            self._in_flight.add(key)

    def release(self, actor: str) -> None:
        with self._lock:
            self._in_flight.discard(self._key(actor))

    @contextmanager
    def enter(self, actor: str) -> Iterator[None]:
        self.acquire(actor)
        try:
            yield
        finally:
            self.release(actor)
