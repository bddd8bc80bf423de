from __future__ import annotations


class MovieAgentError(Exception):
    """Base class for errors raised outside a turn."""


class ConfigurationError(MovieAgentError):
    """Settings or credentials are missing or invalid."""


class TaskNotFoundError(MovieAgentError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class TaskNotResumableError(MovieAgentError):
    def __init__(self, task_id: str, state: str) -> None:
        super().__init__(f"Task {task_id} is in terminal state '{state}' and cannot be resumed")
        self.task_id = task_id
        self.state = state


class TaskNotCancelableError(MovieAgentError):
    def __init__(self, task_id: str, state: str) -> None:
        super().__init__(f"Task {task_id} is in terminal state '{state}' and cannot be canceled")
        self.task_id = task_id
        self.state = state


class EventStreamClosedError(MovieAgentError):
    """An event was published after the turn's final event."""


class ModelInvocationTimeout(MovieAgentError, TimeoutError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"model invocation timed out after {timeout}s")
        self.timeout = timeout
