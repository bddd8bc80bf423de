"""Shared fixtures; fakes live in ``mock_utils``."""

from pathlib import Path

import pytest

from mock_utils import ScriptedLLMClient

REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def config_dir() -> Path:
    return REPO_ROOT / "configs"


@pytest.fixture
def prompt_path() -> Path:
    return REPO_ROOT / "movie_agent" / "prompts" / "movie_agent.md"


@pytest.fixture
def scripted_llm() -> ScriptedLLMClient:
    return ScriptedLLMClient(["The Wachowskis directed The Matrix.\nCOMPLETED"])
