"""TMDB API client.

This module exposes helper methods to query TheMovieDB (TMDB) API for
movie ids, per-movie recommendations and the top-rated list. Movie lists
are returned as newline-separated text, one movie per line in the form
``- Title (year) score``, which is what the recommender consumes. It uses
the v3 API with an API key. See https://developer.themoviedb.org for API
documentation.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.themoviedb.org/3"


class CatalogError(Exception):
    """Raised when a TMDB request fails at the transport level."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"TMDB request {path} failed: {message}")
        self.path = path


def format_movie_line(movie: Dict[str, Any]) -> str:
    """Render a TMDB movie result as ``- Title (year) vote_average``."""
    title = movie.get("title") or movie.get("original_title") or "Untitled"
    release_date = movie.get("release_date") or ""
    year = release_date.split("-")[0] if release_date else "n/a"
    score = float(movie.get("vote_average") or 0.0)
    return f"- {title} ({year}) {score:.1f}"


class TMDBClient:
    def __init__(
        self,
        api_key: str,
        language: str = "en-US",
        region: str = "US",
        base: str = DEFAULT_BASE_URL,
        timeout: float = 10,
    ) -> None:
        self.api_key = api_key
        self.language = language
        self.region = region
        self.base = base.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> "TMDBClient":
        return cls(
            api_key=os.environ.get("TMDB_API_KEY", ""),
            language=os.environ.get("TMDB_LANGUAGE", "en-US"),
            region=os.environ.get("TMDB_REGION", "US"),
            base=os.environ.get("TMDB_BASE_URL", DEFAULT_BASE_URL),
            timeout=float(os.environ.get("TMDB_TIMEOUT", "10")),
        )

    def _get(self, path: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        url = f"{self.base}{path}"
        params = params or {}
        params["api_key"] = self.api_key
        if self.language:
            params["language"] = self.language
        try:
            resp = requests.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise CatalogError(path, str(exc)) from exc
        if not isinstance(data, dict):
            raise CatalogError(path, f"expected a JSON object, got {type(data).__name__}")
        return data

    def _results(self, path: str, params: Dict[str, Any] | None = None) -> List[Dict[str, Any]]:
        results = self._get(path, params=params).get("results") or []
        if not isinstance(results, list) or not all(isinstance(m, dict) for m in results):
            raise CatalogError(path, "malformed results list")
        return results

    def _lines(self, path: str, results: List[Dict[str, Any]], take: int) -> str:
        try:
            return "\n".join(format_movie_line(movie) for movie in results[:take])
        except (AttributeError, TypeError, ValueError) as exc:
            raise CatalogError(path, f"malformed movie entry: {exc}") from exc

    def search_movie_id(self, title: str) -> str:
        """Return the TMDB id of the best match for ``title``.

        The id is returned as a decimal string; ``"0"`` means no match.
        """
        query = (title or "").strip()
        if not query:
            return "0"
        results = self._results("/search/movie", params={"query": query, "region": self.region})
        if not results or results[0].get("id") is None:
            logger.debug("No TMDB match for %r", query)
            return "0"
        return str(results[0]["id"])

    def get_movie_recommendations(self, movie_id: int, take: int = 10) -> str:
        path = f"/movie/{movie_id}/recommendations"
        return self._lines(path, self._results(path), take)

    def get_top_rated_movies(self, take: int = 20) -> str:
        path = "/movie/top_rated"
        return self._lines(path, self._results(path, params={"region": self.region}), take)
