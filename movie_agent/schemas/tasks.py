from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from movie_agent.schemas.base import A2ABaseModel
from movie_agent.schemas.messages import Message


class TaskState(str, Enum):
    SUBMITTED = "submitted"
    WORKING = "working"
    INPUT_REQUIRED = "input-required"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"
    UNKNOWN = "unknown"


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.CANCELED, TaskState.FAILED})


class TaskStatus(A2ABaseModel):
    state: TaskState
    message: Optional[Message] = None
    timestamp: Optional[str] = None


class Task(A2ABaseModel):
    """Unit of requested work; the snapshot published when a task is created."""

    kind: Literal["task"] = "task"
    id: str
    context_id: str
    status: TaskStatus
    history: List[Message] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.state in TERMINAL_STATES


class TaskStatusUpdateEvent(A2ABaseModel):
    kind: Literal["status-update"] = "status-update"
    task_id: str
    context_id: str
    status: TaskStatus
    final: bool = False
    metadata: Optional[Dict[str, Any]] = None


AgentEvent = Union[Task, TaskStatusUpdateEvent]
