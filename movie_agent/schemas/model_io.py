from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

ModelRole = Literal["user", "assistant"]


@dataclass
class ModelMessage:
    """Chat history entry in the shape the model client consumes."""

    role: ModelRole
    content: List[str] = field(default_factory=list)


@dataclass
class PromptArgs:
    now: str
    goal: Optional[str] = None


@dataclass
class ModelReply:
    text: str
