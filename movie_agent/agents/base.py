from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from movie_agent.schemas.messages import Message
from movie_agent.schemas.tasks import Task
from movie_agent.workflows.event_bus import ExecutionEventBus


@dataclass
class RequestContext:
    """Incoming turn: the user's message and the task it resumes, if any."""

    user_message: Message
    task: Optional[Task] = None


class AgentExecutor(ABC):
    """Base contract for every agent served over A2A."""

    @abstractmethod
    async def execute(self, request_context: RequestContext, event_bus: ExecutionEventBus) -> None:
        """Process one turn, publishing its events to ``event_bus``."""

    @abstractmethod
    async def cancel_task(self, task_id: str, event_bus: ExecutionEventBus | None = None) -> None:
        """Request cancellation of a running task."""
