from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, List, Optional

from movie_agent.agents.errors import EventStreamClosedError
from movie_agent.schemas.tasks import AgentEvent, TaskStatusUpdateEvent

EventListener = Callable[[AgentEvent], None]


class ExecutionEventBus(ABC):
    """Sink an executor publishes task snapshots and status updates to."""

    @abstractmethod
    def publish(self, event: AgentEvent) -> None:
        """Deliver an event downstream, preserving call order."""

    def finished(self) -> None:
        """Signal that no more events will be published."""


class InMemoryEventBus(ExecutionEventBus):
    """Records a single turn's events and fans them out to listeners.

    Publishing after a final status update raises ``EventStreamClosedError``.
    ``stream()`` yields events as they arrive until ``finished()`` is called.
    """

    def __init__(self, listeners: Optional[List[EventListener]] = None) -> None:
        self.events: List[AgentEvent] = []
        self._listeners: List[EventListener] = list(listeners or [])
        self._queue: "asyncio.Queue[Optional[AgentEvent]]" = asyncio.Queue()
        self._closed = False
        self._done = False

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def publish(self, event: AgentEvent) -> None:
        if self._closed:
            raise EventStreamClosedError(
                f"cannot publish {event.kind} event after the final event"
            )
        self.events.append(event)
        if isinstance(event, TaskStatusUpdateEvent) and event.final:
            self._closed = True
        for listener in self._listeners:
            listener(event)
        self._queue.put_nowait(event)

    def finished(self) -> None:
        if not self._done:
            self._done = True
            self._queue.put_nowait(None)

    @property
    def final_event(self) -> Optional[TaskStatusUpdateEvent]:
        for event in reversed(self.events):
            if isinstance(event, TaskStatusUpdateEvent) and event.final:
                return event
        return None

    async def stream(self) -> AsyncIterator[AgentEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event
