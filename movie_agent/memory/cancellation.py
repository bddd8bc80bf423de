from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Set


class CancellationRegistry(ABC):
    """Task ids flagged for cooperative cancellation."""

    @abstractmethod
    def mark_cancelled(self, task_id: str) -> None:
        ...

    @abstractmethod
    def is_cancelled(self, task_id: str) -> bool:
        ...


class InMemoryCancellationRegistry(CancellationRegistry):
    def __init__(self) -> None:
        self._cancelled: Set[str] = set()

    def mark_cancelled(self, task_id: str) -> None:
        self._cancelled.add(task_id)

    def is_cancelled(self, task_id: str) -> bool:
        return task_id in self._cancelled
