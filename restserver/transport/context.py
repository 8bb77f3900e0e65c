"""Context object shared across worker threads."""

import threading
from dataclasses import dataclass, field
from typing import Any

from restserver.bootstrap.config import EngineSettings
from restserver.pipeline.router import RouteTable
from restserver.transport.registry import WorkerRegistry


@dataclass
class WorkerContext:
    """Dependencies shared across handler threads."""

    settings: EngineSettings
    routes: RouteTable
    application_context: Any
    registry: WorkerRegistry = field(default_factory=WorkerRegistry)
    stop_event: threading.Event = field(default_factory=threading.Event)

    def is_draining(self) -> bool:
        return self.stop_event.is_set()
