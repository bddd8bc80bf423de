from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Optional

from movie_agent.schemas.tasks import Task


class TaskStore(ABC):
    """Load/save tasks by id."""

    @abstractmethod
    def load(self, task_id: str) -> Optional[Task]:
        """Return a copy of the stored task, or None."""

    @abstractmethod
    def save(self, task: Task) -> None:
        """Persist a snapshot of the task."""


class InMemoryTaskStore(TaskStore):
    def __init__(self) -> None:
        self._tasks: Dict[str, Task] = {}

    def load(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task is not None else None

    def save(self, task: Task) -> None:
        self._tasks[task.id] = task.model_copy(deep=True)
