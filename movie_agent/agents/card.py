from __future__ import annotations

from movie_agent.schemas.agent_card import AgentCapabilities, AgentCard, AgentProvider, AgentSkill
from movie_agent.utils.settings import AgentCardConfig

AGENT_CARD_PATH = "/.well-known/agent.json"

TEXT_MODES = ["text"]
OUTPUT_MODES = ["text", "task-status"]

MOVIE_CHAT_SKILL = AgentSkill(
    id="general_movie_chat",
    name="General Movie Chat",
    description="Answer general questions or chat about movies, actors, directors.",
    tags=["movies", "actors", "directors"],
    examples=[
        "Tell me about the plot of Inception.",
        "Recommend a good sci-fi movie.",
        "Who directed The Matrix?",
        "What other movies has Scarlett Johansson been in?",
        "Find action movies starring Keanu Reeves",
        "Which came out first, Jurassic Park or Terminator 2?",
    ],
    input_modes=TEXT_MODES,
    output_modes=OUTPUT_MODES,
)


def build_agent_card(config: AgentCardConfig | None = None) -> AgentCard:
    """Describe the movie agent; streaming and history match the executor's event stream."""
    config = config or AgentCardConfig()
    return AgentCard(
        name=config.name,
        description=config.description,
        url=config.url,
        version=config.version,
        provider=AgentProvider(organization=config.provider_organization, url=config.provider_url),
        capabilities=AgentCapabilities(
            streaming=True,
            push_notifications=False,
            state_transition_history=True,
        ),
        default_input_modes=list(TEXT_MODES),
        default_output_modes=list(OUTPUT_MODES),
        skills=[MOVIE_CHAT_SKILL],
    )
