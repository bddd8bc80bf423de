from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from movie_agent.schemas.base import A2ABaseModel


class AgentProvider(A2ABaseModel):
    organization: str
    url: str


class AgentCapabilities(A2ABaseModel):
    streaming: bool = False
    push_notifications: bool = False
    state_transition_history: bool = False


class AgentSkill(A2ABaseModel):
    id: str
    name: str
    description: str
    tags: List[str] = Field(default_factory=list)
    examples: List[str] = Field(default_factory=list)
    input_modes: Optional[List[str]] = None
    output_modes: Optional[List[str]] = None


class AgentCard(A2ABaseModel):
    """Static description of the agent served at the discovery endpoint."""

    name: str
    description: str
    url: str
    version: str
    provider: Optional[AgentProvider] = None
    capabilities: AgentCapabilities = Field(default_factory=AgentCapabilities)
    default_input_modes: List[str] = Field(default_factory=lambda: ["text"])
    default_output_modes: List[str] = Field(default_factory=lambda: ["text"])
    skills: List[AgentSkill] = Field(default_factory=list)
    supports_authenticated_extended_card: bool = False
