"""
Run event stream - Per-site publish/subscribe channel for run progress.

Contains:
- RunEvent: one event (phase-changed, log-line, iteration-complete, run-complete)
- RunEventBus: fan-out to independent subscribers, at-most-once, no replay
- RunChannel: typed publisher bound to one run
"""

import asyncio
import contextlib
from typing import Any, AsyncIterator, Dict, List, Literal

from pydantic import BaseModel, Field

from speed_agent.core.state import utc_now

EventKind = Literal["phase-changed", "log-line", "iteration-complete", "run-complete"]


class RunEvent(BaseModel):
    kind: EventKind
    site_id: str
    run_id: str
    timestamp: str = Field(default_factory=utc_now)
    payload: Dict[str, Any] = Field(default_factory=dict)


class RunEventBus:
    """
    In-process event bus keyed by site id.

    Each subscriber gets its own bounded queue. Events published while nobody
    is subscribed are lost, and a full queue drops the event for that
    subscriber only.
    """

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}

    def subscribe(self, site_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.setdefault(site_id, []).append(queue)
        return queue

    def unsubscribe(self, site_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(site_id)
        if not queues:
            return
        if queue in queues:
            queues.remove(queue)
        if not queues:
            del self._subscribers[site_id]

    @contextlib.asynccontextmanager
    async def subscription(self, site_id: str) -> AsyncIterator[asyncio.Queue]:
        queue = self.subscribe(site_id)
        try:
            yield queue
        finally:
            self.unsubscribe(site_id, queue)

    def subscriber_count(self, site_id: str) -> int:
        return len(self._subscribers.get(site_id, ()))

    def publish(self, event: RunEvent) -> None:
        for queue in list(self._subscribers.get(event.site_id, ())):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                pass  # slow subscriber, at-most-once delivery

    def channel(self, site_id: str, run_id: str) -> "RunChannel":
        return RunChannel(self, site_id, run_id)


class RunChannel:
    """Publisher bound to one run."""

    def __init__(self, bus: RunEventBus, site_id: str, run_id: str):
        self.bus = bus
        self.site_id = site_id
        self.run_id = run_id

    def _emit(self, kind: EventKind, payload: Dict[str, Any]) -> None:
        self.bus.publish(RunEvent(kind=kind, site_id=self.site_id, run_id=self.run_id, payload=payload))

    def phase_changed(self, phase: str, iteration: int) -> None:
        self._emit("phase-changed", {"phase": phase, "iteration": iteration})

    def log_line(self, level: str, message: str) -> None:
        self._emit("log-line", {"level": level, "message": message})

    def iteration_complete(self, summary: Dict[str, Any]) -> None:
        self._emit("iteration-complete", summary)

    def run_complete(self, report: Dict[str, Any]) -> None:
        self._emit("run-complete", report)
