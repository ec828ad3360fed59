"""Transaction lifecycle state machine observed by the presentation layer.

    idle -> preparing -> pending -> success
                 \\           \\
                  +-> error    +-> error

``success`` and ``error`` end an attempt; the next attempt starts again at
``preparing``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from multisend.features.batch.errors import BatchErrorKind

logger = logging.getLogger(__name__)


class LifecycleState(Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def in_flight(self) -> bool:
        return self in (LifecycleState.PREPARING, LifecycleState.PENDING)

    @property
    def terminal(self) -> bool:
        return self in (LifecycleState.SUCCESS, LifecycleState.ERROR)


ALLOWED_TRANSITIONS: dict[LifecycleState, frozenset[LifecycleState]] = {
    LifecycleState.IDLE: frozenset({LifecycleState.PREPARING}),
    LifecycleState.PREPARING: frozenset(
        {LifecycleState.PENDING, LifecycleState.ERROR, LifecycleState.IDLE}
    ),
    LifecycleState.PENDING: frozenset({LifecycleState.SUCCESS, LifecycleState.ERROR}),
    LifecycleState.SUCCESS: frozenset({LifecycleState.PREPARING, LifecycleState.IDLE}),
    LifecycleState.ERROR: frozenset({LifecycleState.PREPARING, LifecycleState.IDLE}),
}


class LifecycleTransitionError(Exception):
    def __init__(self, current: LifecycleState, target: LifecycleState):
        super().__init__(f"Cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


@dataclass(frozen=True)
class TransactionStatus:
    state: LifecycleState = LifecycleState.IDLE
    reference: str | None = None
    error: str | None = None
    error_kind: BatchErrorKind | None = None


StateListener = Callable[[LifecycleState, LifecycleState, TransactionStatus], None]


class LifecycleTracker:
    def __init__(self, on_state_change: StateListener | None = None):
        self._status = TransactionStatus()
        self._lock = threading.Lock()
        self._listeners: list[StateListener] = []
        if on_state_change:
            self._listeners.append(on_state_change)

    @property
    def status(self) -> TransactionStatus:
        with self._lock:
            return self._status

    @property
    def state(self) -> LifecycleState:
        return self.status.state

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def begin(self) -> TransactionStatus:
        return self._transition(TransactionStatus(state=LifecycleState.PREPARING))

    def mark_pending(self) -> TransactionStatus:
        return self._transition(TransactionStatus(state=LifecycleState.PENDING))

    def succeed(self, reference: str | None = None) -> TransactionStatus:
        return self._transition(
            TransactionStatus(state=LifecycleState.SUCCESS, reference=reference)
        )

    def fail(
        self,
        message: str,
        kind: BatchErrorKind | None = None,
        reference: str | None = None,
    ) -> TransactionStatus:
        if not message:
            raise ValueError("An error state requires a human-readable cause")
        return self._transition(
            TransactionStatus(
                state=LifecycleState.ERROR,
                reference=reference,
                error=message,
                error_kind=kind,
            )
        )

    def reset(self) -> TransactionStatus:
        """Return to idle from preparing or a terminal state, never from pending."""
        return self._transition(TransactionStatus(state=LifecycleState.IDLE))

    def _transition(self, new_status: TransactionStatus) -> TransactionStatus:
        with self._lock:
            old_state = self._status.state
            if old_state == new_status.state == LifecycleState.IDLE:
                return self._status
            if new_status.state not in ALLOWED_TRANSITIONS[old_state]:
                raise LifecycleTransitionError(old_state, new_status.state)
            self._status = new_status

        logger.debug(
            "Lifecycle transition %s -> %s", old_state.value, new_status.state.value
        )

        for listener in list(self._listeners):
            try:
                listener(old_state, new_status.state, new_status)
            except Exception as e:
                logger.error("Error in lifecycle listener: %s", e)

        return new_status
