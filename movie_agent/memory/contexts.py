from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List

from movie_agent.schemas.messages import Message


class ContextStore(ABC):
    """Ordered message history per conversation context."""

    @abstractmethod
    def get(self, context_id: str) -> List[Message]:
        """Return the context's messages in arrival order (empty if unknown)."""

    @abstractmethod
    def append(self, context_id: str, message: Message) -> bool:
        """Append unless a message with the same id is already present."""


class InMemoryContextStore(ContextStore):
    """Append-only, process-lifetime history; nothing is ever evicted."""

    def __init__(self) -> None:
        self._contexts: Dict[str, List[Message]] = {}

    def get(self, context_id: str) -> List[Message]:
        return list(self._contexts.get(context_id, []))

    def append(self, context_id: str, message: Message) -> bool:
        history = self._contexts.setdefault(context_id, [])
        if any(m.message_id == message.message_id for m in history):
            return False
        history.append(message)
        return True

    def context_ids(self) -> List[str]:
        return list(self._contexts)
