"""Recommendation engine for the movie agent.

The recommender combines the user's watch history with TMDB's per-movie
"recommended" lists. Each watched title is resolved to a TMDB id, the
recommendations for every id are merged, duplicates and titles the user
has already seen are dropped, and the remaining lines are ranked by the
vote average printed at the end of each line. Only the top five are
returned.

If the user has no history yet, the top-rated list is returned instead.
"""

from __future__ import annotations

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import partial
from typing import Callable, List, Protocol, Sequence, Tuple, TypeVar

from .tmdb import CatalogError

logger = logging.getLogger(__name__)

MAX_RESULTS = 5
RECOMMENDATIONS_PER_MOVIE = 10

T = TypeVar("T")
R = TypeVar("R")


class WatchHistoryStore(Protocol):
    def all(self) -> List[str]: ...

    def contains(self, title: str) -> bool: ...


class CatalogLookup(Protocol):
    def search_movie_id(self, title: str) -> str: ...

    def get_movie_recommendations(self, movie_id: int, take: int = 10) -> str: ...

    def get_top_rated_movies(self, take: int = 20) -> str: ...


def split_lines(text: str | None) -> List[str]:
    """Split a catalog response into lines, dropping blank ones."""
    return [line for line in (text or "").split("\n") if line.strip()]


def title_only(line: str) -> str:
    """Extract the bare title from ``- Title (year) score``."""
    if line.startswith("- "):
        line = line[2:]
    return line.split("(")[0].strip()


def parse_score(line: str) -> float:
    """Parse the trailing score of a candidate line; 0.0 if there is none."""
    parts = line.split()
    if not parts:
        return 0.0
    try:
        score = Decimal(parts[-1])
    except InvalidOperation:
        return 0.0
    if not score.is_finite():
        return 0.0
    value = float(score)
    # out of float range
    if not math.isfinite(value):
        return 0.0
    return value


def parse_movie_id(value: str | None) -> int | None:
    """Return the id as an int, or None for the no-match sentinel."""
    try:
        movie_id = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return movie_id or None


@dataclass(frozen=True)
class Candidate:
    line: str
    title: str
    score: float

    @classmethod
    def from_line(cls, line: str) -> "Candidate":
        return cls(line=line, title=title_only(line), score=parse_score(line))


def collect_ok(
    fn: Callable[[T], R], items: Sequence[T], max_workers: int = 1
) -> Tuple[List[R], List[Tuple[T, CatalogError]]]:
    """Apply ``fn`` to every item, keeping successes and failures apart.

    Results keep the order of ``items`` whether the calls run one after
    another or in a thread pool. Only ``CatalogError`` counts as a
    per-item failure; anything else propagates.
    """
    outcomes: List[Callable[[], R]]
    if max_workers > 1 and len(items) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = [pool.submit(fn, item).result for item in items]
    else:
        outcomes = [partial(fn, item) for item in items]

    results: List[R] = []
    failures: List[Tuple[T, CatalogError]] = []
    for item, outcome in zip(items, outcomes):
        try:
            results.append(outcome())
        except CatalogError as exc:
            failures.append((item, exc))
    return results, failures


@dataclass(frozen=True)
class Recommendations:
    items: List[str]
    personalized: bool


class Recommender:
    def __init__(
        self,
        history: WatchHistoryStore,
        catalog: CatalogLookup,
        skip_failed_lookups: bool = True,
        max_workers: int = 1,
    ) -> None:
        self.history = history
        self.catalog = catalog
        self.skip_failed_lookups = skip_failed_lookups
        self.max_workers = max(1, max_workers)

    @classmethod
    def from_env(cls, history: WatchHistoryStore, catalog: CatalogLookup) -> "Recommender":
        skip = os.environ.get("RECOMMENDER_SKIP_FAILED_LOOKUPS", "true")
        return cls(
            history=history,
            catalog=catalog,
            skip_failed_lookups=skip.strip().lower() not in ("0", "false", "no", "off"),
            max_workers=int(os.environ.get("RECOMMENDER_MAX_WORKERS", "1")),
        )

    def recommend(self, top: int = 20) -> List[str]:
        """Recommend up to five movies the user has not watched.

        :param top: Size of the top-rated list requested when the user has
            no history yet. Must be at least 1.
        :returns: Candidate lines ranked by descending score, or the first
            top-rated lines for a user without history.
        :raises CatalogError: If the top-rated request fails, or any
            lookup fails while ``skip_failed_lookups`` is off.
        """
        return self.recommendations(top).items

    def recommendations(self, top: int = 20) -> Recommendations:
        """Like :meth:`recommend`, also reporting which path was taken.

        ``personalized`` is False when the history snapshot was empty and
        the items come from the top-rated list.
        """
        if top < 1:
            raise ValueError("top must be at least 1")

        watched = list(self.history.all())
        if not watched:
            return Recommendations(items=self._top_rated(top), personalized=False)

        ids = self._resolve_ids(watched)
        if not ids:
            logger.info("None of %d watched titles resolved to a TMDB id", len(watched))
            return Recommendations(items=[], personalized=True)

        candidates = self._gather(ids)
        seen = {title.strip().casefold() for title in watched}
        ranked = sorted(
            (
                Candidate.from_line(line)
                for line in _distinct(candidates)
                if title_only(line).casefold() not in seen
            ),
            key=lambda c: c.score,
            reverse=True,
        )
        result = [c.line for c in ranked[:MAX_RESULTS]]
        logger.info(
            "Ranked %d candidates from %d movies, returning %d",
            len(ranked),
            len(ids),
            len(result),
        )
        return Recommendations(items=result, personalized=True)

    def _top_rated(self, top: int) -> List[str]:
        logger.info("No watch history, falling back to top-rated list")
        return split_lines(self.catalog.get_top_rated_movies(take=top))[:MAX_RESULTS]

    def _resolve_ids(self, titles: Sequence[str]) -> List[int]:
        # Resolution is best effort regardless of skip_failed_lookups.
        raw_ids, failures = collect_ok(self.catalog.search_movie_id, titles, self.max_workers)
        for title, exc in failures:
            logger.warning("Could not resolve %r: %s", title, exc)
        ids: List[int] = []
        for value in raw_ids:
            movie_id = parse_movie_id(value)
            if movie_id is None:
                logger.debug("Discarding unresolved id %r", value)
                continue
            ids.append(movie_id)
        return ids

    def _gather(self, ids: Sequence[int]) -> List[str]:
        def fetch(movie_id: int) -> str:
            return self.catalog.get_movie_recommendations(
                movie_id, take=RECOMMENDATIONS_PER_MOVIE
            )

        responses, failures = collect_ok(fetch, ids, self.max_workers)
        if failures and not self.skip_failed_lookups:
            raise failures[0][1]
        for movie_id, exc in failures:
            logger.warning("Skipping recommendations for movie %s: %s", movie_id, exc)
        lines: List[str] = []
        for text in responses:
            lines.extend(split_lines(text))
        return lines


def _distinct(lines: Sequence[str]) -> List[str]:
    seen = set()
    unique: List[str] = []
    for line in lines:
        key = line.casefold()
        if key in seen:
            continue
        seen.add(key)
        unique.append(line)
    return unique
