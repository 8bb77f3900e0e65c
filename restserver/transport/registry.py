"""Tracking of connection worker threads."""

import logging
import threading
import time

from restserver.domain.request_context import CorrelationLoggerAdapter

REGISTRY_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("rest_server.transport.registry"), {}
)


class WorkerRegistry:
    """Keeps the set of live worker threads so shutdown can wait for them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._workers: set[threading.Thread] = set()

    def register_worker(self, thread: threading.Thread) -> None:
        """Register a worker thread for tracking."""
        with self._lock:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        """Remove a worker thread from tracking."""
        with self._lock:
            self._workers.discard(thread)

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout."""
        deadline = time.monotonic() + timeout
        current = threading.current_thread()
        while True:
            with self._lock:
                self._workers = {w for w in self._workers if w.is_alive()}
                active_workers = [w for w in self._workers if w is not current]
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                REGISTRY_LOGGER.warning(
                    "Shutdown grace period exceeded",
                    extra={
                        "event": "shutdown_timeout",
                        "remaining_workers": len(active_workers),
                    },
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break
