"""Server lifecycle state management."""

import logging
import threading
import time
from enum import Enum
from typing import Optional

from restserver.domain.request_context import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("rest_server.lifecycle"), {}
)


class LifecycleState(Enum):
    """Startup and shutdown phases of a RestServer."""

    INIT = "init"
    CONTEXT_CREATED = "context_created"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"
    FAILED = "failed"


TERMINAL_STATES = frozenset({LifecycleState.STOPPED, LifecycleState.FAILED})

_ALLOWED_TRANSITIONS = {
    LifecycleState.INIT: {LifecycleState.CONTEXT_CREATED, LifecycleState.FAILED},
    LifecycleState.CONTEXT_CREATED: {LifecycleState.LISTENING, LifecycleState.FAILED},
    LifecycleState.LISTENING: {LifecycleState.SHUTTING_DOWN},
    LifecycleState.SHUTTING_DOWN: {LifecycleState.STOPPED},
    LifecycleState.STOPPED: set(),
    LifecycleState.FAILED: set(),
}


class ServerLifecycle:
    """Tracks the lifecycle state and lets threads wait for transitions."""

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.RLock())
        self._state = LifecycleState.INIT

    @property
    def state(self) -> LifecycleState:
        with self._condition:
            return self._state

    def transition(
        self, target: LifecycleState, expected: Optional[LifecycleState] = None
    ) -> bool:
        """Move to target; return False if expected does not match the current state.

        Raises RuntimeError for a transition the state machine does not allow.
        """
        with self._condition:
            current = self._state
            if expected is not None and current is not expected:
                return False
            if target not in _ALLOWED_TRANSITIONS[current]:
                raise RuntimeError(
                    f"Illegal lifecycle transition {current.value} -> {target.value}"
                )
            self._state = target
            self._condition.notify_all()
        LIFECYCLE_LOGGER.info(
            "Lifecycle state changed",
            extra={
                "event": "state_changed",
                "previous_state": current.value,
                "state": target.value,
            },
        )
        return True

    def wait_for(self, target: LifecycleState, timeout: Optional[float] = None) -> bool:
        """Block until target (or a terminal state) is reached; True if target was reached."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._condition:
            while self._state is not target:
                if self._state in TERMINAL_STATES:
                    return False
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                # Short waits keep the main thread responsive to signals.
                self._condition.wait(0.5 if remaining is None else min(0.5, remaining))
            return True
