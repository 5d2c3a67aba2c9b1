import logging
from typing import List, Literal

from fastapi import APIRouter, HTTPException, Query

from embedflow.metadata.tmdb import MetadataError, TMDBClient
from embedflow.schemas import CatalogCandidate, EpisodeFacts, MediaFacts
from embedflow.utils.title_matcher import find_best_match

metadata_router = APIRouter()
logger = logging.getLogger(__name__)

CATALOG_TYPES = {"movie": "MOVIE", "tv": "TVSERIES"}


async def _load_facts(media_type: str, tmdb_id: int) -> MediaFacts:
    try:
        return await TMDBClient().get_details(tmdb_id, media_type)
    except MetadataError as e:
        logger.info(f"Metadata lookup failed for {media_type}/{tmdb_id}: {e}")
        raise HTTPException(status_code=404, detail=str(e))


@metadata_router.get("/search")
async def search_titles(
    query: str = Query(..., min_length=1),
    media_type: Literal["multi", "movie", "tv"] = Query("multi"),
):
    """Raw TMDB search results."""
    try:
        return await TMDBClient().search(query, media_type)
    except MetadataError as e:
        raise HTTPException(status_code=502, detail=str(e))


@metadata_router.get("/tv/{tmdb_id}/season/{season}/episode/{episode}", response_model=EpisodeFacts)
async def get_episode(tmdb_id: int, season: int, episode: int):
    facts = await TMDBClient().get_episode(tmdb_id, season, episode)
    if facts is None:
        raise HTTPException(status_code=404, detail=f"Unknown episode S{season}E{episode} for {tmdb_id}")
    return facts


@metadata_router.get("/{media_type}/{tmdb_id}", response_model=MediaFacts)
async def get_media_facts(media_type: Literal["movie", "tv"], tmdb_id: int):
    """Title, year and season facts for a TMDB id."""
    return await _load_facts(media_type, tmdb_id)


@metadata_router.post("/{media_type}/{tmdb_id}/match", response_model=CatalogCandidate)
async def match_catalog_candidate(
    media_type: Literal["movie", "tv"], tmdb_id: int, candidates: List[CatalogCandidate]
):
    """Pick the catalog search result that corresponds to a TMDB id."""
    facts = await _load_facts(media_type, tmdb_id)
    match = find_best_match(candidates, facts, CATALOG_TYPES[media_type])
    if match is None:
        raise HTTPException(status_code=404, detail=f"No catalog match for {facts.title!r}")
    return match
