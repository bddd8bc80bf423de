from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from langchain_core.tools import BaseTool, tool

from movie_agent.utils.settings import TMDBConfig

logger = logging.getLogger(__name__)

IMAGE_FIELDS = ("poster_path", "backdrop_path", "profile_path")


class TMDBClient:
    """Minimal async client for The Movie Database search endpoints."""

    def __init__(
        self,
        api_key: str,
        config: TMDBConfig | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.config = config or TMDBConfig()
        self._transport = transport

    async def search(self, kind: str, query: str) -> Dict[str, Any]:
        """Search ``/search/{kind}`` and return the decoded payload with image URLs."""
        logger.debug("TMDB search %s: %s", kind, query)
        async with httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout_s,
            transport=self._transport,
        ) as client:
            response = await client.get(
                f"/search/{kind}",
                params={"query": query, "api_key": self.api_key, "include_adult": "false"},
            )
            response.raise_for_status()
            payload = response.json()

        payload["results"] = [self._with_image_urls(r) for r in payload.get("results", [])]
        return payload

    def _with_image_urls(self, result: Dict[str, Any]) -> Dict[str, Any]:
        result = dict(result)
        for key in IMAGE_FIELDS:
            if result.get(key):
                result[key] = f"{self.config.image_base_url}{result[key]}"
        for known in result.get("known_for") or []:
            for key in IMAGE_FIELDS:
                if known.get(key):
                    known[key] = f"{self.config.image_base_url}{known[key]}"
        return result


def build_tmdb_tools(client: TMDBClient) -> List[BaseTool]:
    """The fixed tool set handed to the model on every turn."""

    @tool
    async def search_movies(query: str) -> Dict[str, Any]:
        """Search TMDB for movies by title."""
        return await client.search("movie", query)

    @tool
    async def search_people(query: str) -> Dict[str, Any]:
        """Search TMDB for people (actors, directors, crew) by name."""
        return await client.search("person", query)

    return [search_movies, search_people]
