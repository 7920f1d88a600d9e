from __future__ import annotations

from typing import Dict, List

import pytest

from movieagent.db import WatchHistory
from movieagent.services.tmdb import CatalogError


class FakeHistory:
    def __init__(self, titles: List[str] | None = None) -> None:
        self.titles = list(titles or [])
        self.reads = 0

    def all(self) -> List[str]:
        self.reads += 1
        return list(self.titles)

    def contains(self, title: str) -> bool:
        return title.strip().lower() in {t.lower() for t in self.titles}


class FakeCatalog:
    """In-memory catalog; ``None`` in any mapping simulates a transport failure."""

    def __init__(
        self,
        ids: Dict[str, str | None] | None = None,
        recommendations: Dict[int, str | None] | None = None,
        top_rated: str | None = "",
    ) -> None:
        self.ids = ids or {}
        self.recommendations = recommendations or {}
        self.top_rated = top_rated
        self.calls: List[tuple] = []

    def search_movie_id(self, title: str) -> str:
        self.calls.append(("search", title))
        value = self.ids.get(title, "0")
        if value is None:
            raise CatalogError("/search/movie", "connection reset")
        return value

    def get_movie_recommendations(self, movie_id: int, take: int = 10) -> str:
        self.calls.append(("recommendations", movie_id, take))
        value = self.recommendations.get(movie_id, "")
        if value is None:
            raise CatalogError(f"/movie/{movie_id}/recommendations", "503 Service Unavailable")
        return value

    def get_top_rated_movies(self, take: int = 20) -> str:
        self.calls.append(("top_rated", take))
        if self.top_rated is None:
            raise CatalogError("/movie/top_rated", "timed out")
        return self.top_rated


@pytest.fixture
def store(tmp_path) -> WatchHistory:
    return WatchHistory(db_path=tmp_path / "data" / "data.db")


@pytest.fixture
def make_history():
    return FakeHistory


@pytest.fixture
def make_catalog():
    return FakeCatalog
