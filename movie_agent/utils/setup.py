from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

from omegaconf import DictConfig, OmegaConf

from movie_agent.agents.errors import ConfigurationError

# environment variable -> key in the local secrets file
SECRET_KEYS: Dict[str, str] = {
    "GOOGLE_API_KEY": "gemini_api",
    "OPENAI_API_KEY": "openai_api",
    "TMDB_API_KEY": "tmdb_api",
}

PROVIDER_KEYS: Dict[str, List[str]] = {
    "gemini": ["GOOGLE_API_KEY", "TMDB_API_KEY"],
    "openai": ["OPENAI_API_KEY", "TMDB_API_KEY"],
    "echo": [],
}


def setup(secrets_path: Path | str = Path("./config.yml")) -> Optional[DictConfig]:
    """Export API keys from a local secrets file without overriding the environment."""
    if os.environ.get("GEMINI_API_KEY") and not os.environ.get("GOOGLE_API_KEY"):
        os.environ["GOOGLE_API_KEY"] = os.environ["GEMINI_API_KEY"]

    secrets_path = Path(secrets_path)
    if not secrets_path.exists():
        return None

    config = OmegaConf.load(secrets_path)
    for env_name, key in SECRET_KEYS.items():
        value = config.get(key)
        if value and not os.environ.get(env_name):
            os.environ[env_name] = str(value)
    return config


def require_api_keys(provider: str) -> None:
    try:
        required = PROVIDER_KEYS[provider.lower()]
    except KeyError:
        raise ConfigurationError(f"Unknown LLM provider: {provider}") from None
    missing = [name for name in required if not os.environ.get(name)]
    if missing:
        raise ConfigurationError(
            f"{', '.join(missing)} environment variable(s) required for provider '{provider}'"
        )
