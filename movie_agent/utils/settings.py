from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel

from movie_agent.schemas.tasks import TaskState


class LLMConfig(BaseModel):
    provider: str
    model: str
    temperature: float = 0.0


class AgentPromptConfig(BaseModel):
    prompt_path: str


class TurnConfig(BaseModel):
    model_timeout_s: Optional[float] = None
    serialize_contexts: bool = True
    max_tool_rounds: int = 5
    unrecognized_marker_state: TaskState = TaskState.COMPLETED


class TMDBConfig(BaseModel):
    base_url: str = "https://api.themoviedb.org/3"
    image_base_url: str = "https://image.tmdb.org/t/p/w500"
    timeout_s: float = 10.0


class AgentCardConfig(BaseModel):
    name: str = "Movie Agent"
    description: str = "An agent that can answer questions about movies and actors using TMDB."
    url: str = "http://localhost:41241/"
    version: str = "0.0.2"
    provider_organization: str = "A2A Samples"
    provider_url: str = "https://example.com/a2a-samples"


class LoggingConfig(BaseModel):
    level: str


class AppConfig(BaseModel):
    llm: LLMConfig
    agents: Dict[str, AgentPromptConfig]
    turn: TurnConfig
    tmdb: TMDBConfig
    card: AgentCardConfig
    logging: LoggingConfig


def load_config(env: str = "base", config_dir: Path | str = Path("configs")) -> AppConfig:
    config_dir = Path(config_dir)
    base = _read_yaml(config_dir / "base.yaml")
    if env != "base":
        override_path = config_dir / f"{env}.yaml"
        if override_path.exists():
            base = _merge_dicts(base, _read_yaml(override_path))
    return AppConfig(
        llm=LLMConfig(**base["llm"]),
        agents={k: AgentPromptConfig(**v) for k, v in base.get("agents", {}).items()},
        turn=TurnConfig(**(base.get("turn") or {})),
        tmdb=TMDBConfig(**(base.get("tmdb") or {})),
        card=AgentCardConfig(**(base.get("card") or {})),
        logging=LoggingConfig(**base.get("logging", {"level": "INFO"})),
    )


def _read_yaml(path: Path) -> Dict[str, Any]:
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def _merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge_dicts(base[key], value)
        else:
            merged[key] = value
    return merged
