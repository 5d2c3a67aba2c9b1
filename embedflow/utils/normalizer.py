import json
import logging
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from embedflow.const import PLAYLIST_URL_MARKERS, SUBTITLE_TRACK_KINDS
from embedflow.schemas import ResolutionResult, ResolvedSource, Track

logger = logging.getLogger(__name__)


def is_http_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def is_playlist_url(value: Any) -> bool:
    """True for an http(s) URL that points at a playlist or media file."""
    if not isinstance(value, str):
        return False
    value = value.strip()
    return is_http_url(value) and any(marker in value.lower() for marker in PLAYLIST_URL_MARKERS)


def _source_from_item(item: Any) -> Optional[ResolvedSource]:
    if isinstance(item, str):
        item = item.strip()
        return ResolvedSource(file=item) if is_http_url(item) else None

    if isinstance(item, dict):
        file_url = item.get("file")
        if isinstance(file_url, str) and file_url.strip():
            source_type = item.get("type")
            return ResolvedSource(file=file_url.strip(), type=source_type if isinstance(source_type, str) else None)
    return None


def normalize_sources(value: Any) -> List[ResolvedSource]:
    """
    Shape any upstream source representation into a list of ResolvedSource.

    Accepts a list of {file, type} entries, a single URL, a JSON document holding
    either of those (as produced by decryption), or nothing at all.
    """
    if value is None:
        return []

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text[0] in "[{":
            try:
                return normalize_sources(json.loads(text))
            except json.JSONDecodeError:
                logger.debug("Source text looks like JSON but does not parse")
                return []
        source = _source_from_item(text)
        return [source] if source else []

    if isinstance(value, dict):
        if "sources" in value and "file" not in value:
            return normalize_sources(value["sources"])
        source = _source_from_item(value)
        return [source] if source else []

    if isinstance(value, list):
        sources = []
        for item in value:
            source = _source_from_item(item)
            if source is not None:
                sources.append(source)
        return sources

    return []


def filter_tracks(raw_tracks: Optional[Iterable[Any]]) -> List[Track]:
    """Keep caption and subtitle tracks in upstream order; drop everything else."""
    tracks = []
    for raw in raw_tracks or []:
        if not isinstance(raw, dict) or raw.get("kind") not in SUBTITLE_TRACK_KINDS:
            continue
        try:
            tracks.append(Track.model_validate(raw))
        except ValidationError:
            logger.debug("Skipping malformed track entry: %s", raw)
    return tracks


def build_result(sources: Any = None, raw_tracks: Optional[Iterable[Any]] = None) -> ResolutionResult:
    """Always returns a well-formed result, however little the pipeline recovered."""
    return ResolutionResult(sources=normalize_sources(sources), tracks=filter_tracks(raw_tracks))
