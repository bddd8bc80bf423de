from __future__ import annotations

import uuid
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field

from movie_agent.schemas.base import A2ABaseModel


class Role(str, Enum):
    USER = "user"
    AGENT = "agent"


class TextPart(A2ABaseModel):
    kind: Literal["text"] = "text"
    text: str
    metadata: Optional[Dict[str, Any]] = None


class FileContent(A2ABaseModel):
    name: Optional[str] = None
    mime_type: Optional[str] = None
    bytes: Optional[str] = None
    uri: Optional[str] = None


class FilePart(A2ABaseModel):
    kind: Literal["file"] = "file"
    file: FileContent
    metadata: Optional[Dict[str, Any]] = None


class DataPart(A2ABaseModel):
    kind: Literal["data"] = "data"
    data: Dict[str, Any]
    metadata: Optional[Dict[str, Any]] = None


Part = Annotated[Union[TextPart, FilePart, DataPart], Field(discriminator="kind")]


class Message(A2ABaseModel):
    """Single chat message exchanged between a user and the agent.

    Only text parts reach the model; other parts are kept as-is so task
    history stays faithful to what the caller sent.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["message"] = "message"
    role: Role
    message_id: str
    parts: List[Part]
    task_id: Optional[str] = None
    context_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def text_segments(self) -> List[str]:
        return [p.text for p in self.parts if isinstance(p, TextPart) and p.text]


def text_message(
    role: Role,
    text: str,
    task_id: str | None = None,
    context_id: str | None = None,
    message_id: str | None = None,
    metadata: Dict[str, Any] | None = None,
) -> Message:
    return Message(
        role=role,
        message_id=message_id or str(uuid.uuid4()),
        parts=[TextPart(text=text)],
        task_id=task_id,
        context_id=context_id,
        metadata=metadata,
    )
