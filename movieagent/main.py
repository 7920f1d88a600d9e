"""Main FastAPI application for the movie agent.

This module defines the HTTP routes, initialises service clients from the
environment, and exposes the watch history, a couple of TMDB lookups and
the personalised recommendations as JSON endpoints.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict

from fastapi import Depends, FastAPI, Form, HTTPException, Query

from .db import WatchHistory
from .services.recommender import Recommender, parse_movie_id, split_lines
from .services.tmdb import CatalogError, TMDBClient

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Movie Agent")

# Create clients from environment
history = WatchHistory.from_env()
tmdb = TMDBClient.from_env()
reco = Recommender.from_env(history=history, catalog=tmdb)


def get_history() -> WatchHistory:
    return history


def get_catalog() -> TMDBClient:
    return tmdb


def get_recommender() -> Recommender:
    return reco


def _bad_gateway(exc: CatalogError) -> HTTPException:
    logger.error("%s", exc)
    return HTTPException(status_code=502, detail=str(exc))


@app.get("/watched")
async def list_watched(store: WatchHistory = Depends(get_history)) -> Dict[str, Any]:
    """List every title the user has marked as watched."""
    return {"titles": store.all()}


@app.post("/watched", status_code=201)
async def add_watched(
    title: str = Form(...), store: WatchHistory = Depends(get_history)
) -> Dict[str, Any]:
    """Remember that the user has watched a title."""
    try:
        added = store.add(title)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {"title": title.strip(), "added": added}


@app.delete("/watched/{title}")
async def remove_watched(title: str, store: WatchHistory = Depends(get_history)) -> Dict[str, Any]:
    if not store.remove(title):
        raise HTTPException(status_code=404, detail="Title not in watch history")
    return {"title": title, "removed": True}


@app.get("/recommendations")
async def recommendations(
    top: int = Query(20, ge=1),
    recommender: Recommender = Depends(get_recommender),
) -> Dict[str, Any]:
    """Recommend up to five unwatched movies.

    ``personalized`` is False when the user has no history and the list
    comes from the top-rated fallback.
    """
    try:
        result = recommender.recommendations(top=top)
    except CatalogError as exc:
        raise _bad_gateway(exc)
    return {"recommendations": result.items, "personalized": result.personalized}


@app.get("/top-rated")
async def top_rated(
    take: int = Query(20, ge=1), catalog: TMDBClient = Depends(get_catalog)
) -> Dict[str, Any]:
    try:
        text = catalog.get_top_rated_movies(take=take)
    except CatalogError as exc:
        raise _bad_gateway(exc)
    return {"movies": split_lines(text)}


@app.get("/search")
async def search(title: str = Query(...), catalog: TMDBClient = Depends(get_catalog)) -> Dict[str, Any]:
    """Resolve a title to its TMDB id; ``movie_id`` is null when nothing matches."""
    try:
        value = catalog.search_movie_id(title)
    except CatalogError as exc:
        raise _bad_gateway(exc)
    return {"title": title, "movie_id": parse_movie_id(value)}
