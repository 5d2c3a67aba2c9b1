import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from embedflow.configs import settings
from embedflow.schemas import EpisodeFacts, MediaFacts
from embedflow.utils.cache_utils import ResponseCache, get_response_cache
from embedflow.utils.http_utils import DownloadError, create_httpx_client, fetch_with_retry

logger = logging.getLogger(__name__)

POSTER_SIZE = "w500"
BACKDROP_SIZE = "original"


class MetadataError(Exception):
    """Raised when the metadata provider cannot answer."""


class TMDBClient:
    """Title, season and year lookups against TMDB, cached through the response cache."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        cache: Optional[ResponseCache] = None,
    ):
        self.api_key = api_key or settings.tmdb_api_key
        self.base_url = (base_url or settings.tmdb_base_url).rstrip("/")
        self.cache = cache if cache is not None else get_response_cache()

    async def _get(self, path: str, **params) -> Dict[str, Any]:
        if not self.api_key:
            raise MetadataError("TMDB API key is not configured")

        params["api_key"] = self.api_key
        async with create_httpx_client() as client:
            try:
                response = await fetch_with_retry(
                    client, "GET", f"{self.base_url}{path}", {"user-agent": settings.user_agent}, params=params
                )
            except httpx.HTTPStatusError as e:
                raise MetadataError(f"TMDB resource not found: {path}") from e
            except DownloadError as e:
                raise MetadataError(f"TMDB request failed: {e.message}") from e
        try:
            data = response.json()
        except ValueError as e:
            raise MetadataError(f"TMDB returned invalid JSON for {path}") from e
        if not isinstance(data, dict):
            raise MetadataError(f"TMDB returned an unexpected body for {path}")
        return data

    async def get_details(self, tmdb_id: int, media_type: str) -> MediaFacts:
        """Fetch movie or tv details and reduce them to the facts used for matching."""
        cache_key = f"tmdb:details:{media_type}:{tmdb_id}"
        data = await self.cache.fetch(
            cache_key, lambda: self._get(f"/{media_type}/{tmdb_id}"), settings.metadata_cache_ttl
        )
        try:
            return self.to_facts(data, media_type)
        except (KeyError, ValidationError) as e:
            raise MetadataError(f"Incomplete TMDB details for {media_type}/{tmdb_id}") from e

    async def search(self, query: str, media_type: str = "multi") -> Dict[str, Any]:
        cache_key = f"tmdb:search:{media_type}:{query.lower()}"
        return await self.cache.fetch(
            cache_key,
            lambda: self._get(f"/search/{media_type}", query=query, include_adult="false"),
            settings.metadata_cache_ttl,
        )

    async def get_episode(self, tmdb_id: int, season: int, episode: int) -> Optional[EpisodeFacts]:
        """Episode details, or None when TMDB does not know the episode."""
        cache_key = f"tmdb:episode:{tmdb_id}:{season}:{episode}"
        try:
            data = await self.cache.fetch(
                cache_key,
                lambda: self._get(f"/tv/{tmdb_id}/season/{season}/episode/{episode}"),
                settings.metadata_cache_ttl,
            )
        except MetadataError as e:
            logger.info(f"Episode lookup failed for {tmdb_id} S{season}E{episode}: {e}")
            return None
        try:
            return EpisodeFacts.model_validate(data)
        except ValidationError as e:
            logger.info(f"Unexpected episode body for {tmdb_id} S{season}E{episode}: {e.error_count()} errors")
            return None

    @staticmethod
    def image_url(path: Optional[str], size: str) -> Optional[str]:
        if not path:
            return None
        return f"{settings.tmdb_image_base_url}{size}{path}"

    @classmethod
    def to_facts(cls, data: Dict[str, Any], media_type: str) -> MediaFacts:
        is_movie = media_type == "movie"
        return MediaFacts(
            tmdb_id=data["id"],
            media_type=media_type,
            title=(data.get("title") if is_movie else data.get("name")) or "",
            overview=data.get("overview"),
            release_date=data.get("release_date") if is_movie else data.get("first_air_date"),
            number_of_seasons=None if is_movie else data.get("number_of_seasons"),
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
            poster_url=cls.image_url(data.get("poster_path"), POSTER_SIZE),
            backdrop_url=cls.image_url(data.get("backdrop_path"), BACKDROP_SIZE),
        )
