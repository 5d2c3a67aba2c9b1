from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from embedflow.const import DEFAULT_SOURCE_TYPE


@dataclass(frozen=True)
class ExtractionContext:
    """Identifier and rotating nonce scraped from an embed page."""

    content_id: str
    nonce: str


class Track(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file: str
    label: Optional[str] = None
    kind: str
    is_default: Optional[bool] = Field(None, alias="default")


class ResolvedSource(BaseModel):
    file: str
    type: str = DEFAULT_SOURCE_TYPE

    @field_validator("type", mode="before")
    def default_type(cls, value: Any):
        return value or DEFAULT_SOURCE_TYPE


class ResolutionResult(BaseModel):
    sources: List[ResolvedSource] = Field(default_factory=list)
    tracks: List[Track] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class RawSourcePayload(BaseModel):
    """Body of the getSources endpoint. Only `sources` and `tracks` drive resolution."""

    model_config = ConfigDict(extra="ignore")

    sources: Union[str, List[Any], None] = None
    tracks: List[Any] = Field(default_factory=list)
    timestamp: int = Field(0, alias="t")
    server_index: int = Field(0, alias="server")
    encrypted: Optional[bool] = None

    @field_validator("tracks", mode="before")
    def coerce_tracks(cls, value: Any):
        return value if isinstance(value, list) else []

    @field_validator("timestamp", "server_index", mode="before")
    def coerce_int(cls, value: Any):
        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0

    @property
    def is_encrypted(self) -> bool:
        """An opaque string payload is encrypted unless upstream explicitly says otherwise."""
        if not isinstance(self.sources, str):
            return False
        return self.encrypted is not False

    @property
    def is_empty(self) -> bool:
        return not self.sources and not self.tracks


class GenericParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SourcesParams(GenericParams):
    host: Literal["VideoStr", "MegaCloud"] = Field("VideoStr", description="The upstream profile to resolve with.")
    destination: str = Field(..., description="The embed page URL.", alias="d")


class MediaFacts(BaseModel):
    tmdb_id: int
    media_type: Literal["movie", "tv"]
    title: str
    overview: Optional[str] = None
    release_date: Optional[str] = None
    number_of_seasons: Optional[int] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None

    @property
    def year(self) -> Optional[str]:
        if self.release_date and len(self.release_date) >= 4:
            return self.release_date[:4]
        return None


class CatalogCandidate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str
    type: Literal["MOVIE", "TVSERIES"]
    release_date: Optional[str] = Field(None, alias="releaseDate")
    seasons: Optional[int] = None


class EpisodeFacts(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    overview: Optional[str] = None
    episode_number: Optional[int] = None
    season_number: Optional[int] = None
    air_date: Optional[str] = None
    still_path: Optional[str] = None
