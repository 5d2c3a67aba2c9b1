"""
Pick the catalog entry that corresponds to a metadata record.

TV series are matched on title and season count first; movies (and series
whose seasons do not settle it) on title and release year.
"""

import logging
from typing import List, Optional, Sequence

from embedflow.schemas import CatalogCandidate, MediaFacts

logger = logging.getLogger(__name__)

MIN_WORD_OVERLAP = 0.7


def is_title_similar_enough(title1: str, title2: str) -> bool:
    title1 = title1.lower().strip()
    title2 = title2.lower().strip()

    if title1 == title2:
        return True

    words1 = title1.split()
    words2 = title2.split()
    # An empty title is contained in every title; never let it match.
    if not words1 or not words2:
        return False

    # Short titles: a substring match is enough
    if len(words1) <= 2 or len(words2) <= 2:
        if title1 in title2 or title2 in title1:
            return True

    common_words = [word for word in words1 if word in words2]
    return len(common_words) / min(len(words1), len(words2)) >= MIN_WORD_OVERLAP


def _year(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value.split("-")[0] or None


def _year_number(value: Optional[str]) -> int:
    try:
        return int(_year(value) or 0)
    except ValueError:
        return 0


def _match_by_seasons(candidates: List[CatalogCandidate], title: str, seasons: int) -> Optional[CatalogCandidate]:
    for show in candidates:
        if is_title_similar_enough(show.title, title) and show.seasons == seasons:
            logger.info(f"Exact title & season match: {show.title} (ID: {show.id}) - Seasons: {show.seasons}")
            return show

    similar = [show for show in candidates if is_title_similar_enough(show.title, title)]
    if not similar:
        return None
    closest = min(similar, key=lambda show: abs((show.seasons or 0) - seasons))
    logger.info(f"Closest season match: {closest.title} (ID: {closest.id}) - Seasons: {closest.seasons}")
    return closest


def find_best_match(
    candidates: Sequence[CatalogCandidate], facts: MediaFacts, media_type: str
) -> Optional[CatalogCandidate]:
    """
    Choose the candidate that best matches ``facts``.

    Args:
        candidates: Catalog search results.
        facts: Metadata of the wanted title.
        media_type: "MOVIE" or "TVSERIES".

    Returns:
        The best candidate, or None when nothing is close enough.
    """
    is_movie = media_type == "MOVIE"
    title = facts.title.lower()
    relevant = [candidate for candidate in candidates if candidate.type == media_type]

    if not relevant:
        logger.info(f"No relevant {media_type} results for {title!r}")
        return None

    if not is_movie and facts.number_of_seasons is not None:
        match = _match_by_seasons(relevant, title, facts.number_of_seasons)
        if match is not None:
            return match

    year = facts.year
    for candidate in relevant:
        if is_title_similar_enough(candidate.title, title) and _year(candidate.release_date) == year:
            logger.info(f"Exact title & year match: {candidate.title} (ID: {candidate.id})")
            return candidate

    if is_movie and year:
        logger.info(f"No exact title & year match for movie {title!r} ({year})")
        return None

    similar = [candidate for candidate in relevant if is_title_similar_enough(candidate.title, title)]
    if similar:
        wanted_year = _year_number(year)
        if wanted_year > 0:
            return min(similar, key=lambda candidate: abs(_year_number(candidate.release_date) - wanted_year))
        return similar[0]

    if not is_movie:
        logger.info(f"Falling back to first relevant result: {relevant[0].title} (ID: {relevant[0].id})")
        return relevant[0]

    return None
