from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional

from movie_agent.agents.base import AgentExecutor, RequestContext
from movie_agent.agents.errors import TaskNotCancelableError, TaskNotFoundError, TaskNotResumableError
from movie_agent.memory.task_store import InMemoryTaskStore, TaskStore
from movie_agent.schemas.messages import Message
from movie_agent.schemas.tasks import AgentEvent, Task, TaskState, TaskStatus
from movie_agent.workflows.event_bus import InMemoryEventBus

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs agent turns in-process and keeps the task store in step with their events.

    A message carrying a ``task_id`` resumes that task; otherwise the executor
    starts a new one. Every published event is folded into the stored task:
    snapshots replace it, status updates set its status and append their
    message to its history.
    """

    def __init__(self, executor: AgentExecutor, task_store: TaskStore | None = None) -> None:
        self.executor = executor
        self.task_store = task_store or InMemoryTaskStore()
        # turns in flight per task id
        self._running: Counter[str] = Counter()

    def get_task(self, task_id: str) -> Task:
        task = self.task_store.load(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def send(self, message: Message) -> List[AgentEvent]:
        """Run one turn to completion and return its events."""
        existing = self._resumable_task(message)
        bus = InMemoryEventBus()
        await self._run(message, existing, bus)
        return list(bus.events)

    async def stream(self, message: Message) -> AsyncIterator[AgentEvent]:
        """Run one turn, yielding events as the executor publishes them."""
        existing = self._resumable_task(message)
        bus = InMemoryEventBus()
        runner = asyncio.create_task(self._run(message, existing, bus))
        try:
            async for event in bus.stream():
                yield event
        finally:
            await runner

    async def cancel(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task.is_terminal:
            raise TaskNotCancelableError(task_id, task.status.state.value)

        await self.executor.cancel_task(task_id)
        if not self._running[task_id]:
            # nothing in flight will publish the final state for this task
            task.status = TaskStatus(state=TaskState.CANCELED, timestamp=_now())
            self.task_store.save(task)
            logger.info("Canceled idle task %s", task_id)
        return task

    def _resumable_task(self, message: Message) -> Optional[Task]:
        if not message.task_id:
            return None
        task = self.get_task(message.task_id)
        if task.is_terminal:
            raise TaskNotResumableError(task.id, task.status.state.value)
        return task

    async def _run(self, message: Message, existing: Optional[Task], bus: InMemoryEventBus) -> None:
        current: List[Task] = []
        if existing is not None:
            _append_history(existing, message)
            self.task_store.save(existing)
            self._running[existing.id] += 1
            current.append(existing)

        def apply(event: AgentEvent) -> None:
            if isinstance(event, Task):
                if not current:
                    self._running[event.id] += 1
                task = event.model_copy(deep=True)
                current[:] = [task]
            elif current:
                task = current[0]
                task.status = event.status
                if event.status.message is not None:
                    _append_history(task, event.status.message)
            else:
                logger.warning("Status update for unknown task %s", event.task_id)
                return
            self.task_store.save(task)

        bus.subscribe(apply)
        try:
            await self.executor.execute(RequestContext(user_message=message, task=existing), bus)
        finally:
            bus.finished()
            if current:
                task_id = current[0].id
                self._running[task_id] -= 1
                if self._running[task_id] <= 0:
                    del self._running[task_id]


def _append_history(task: Task, message: Message) -> None:
    if not any(m.message_id == message.message_id for m in task.history):
        task.history.append(message)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
