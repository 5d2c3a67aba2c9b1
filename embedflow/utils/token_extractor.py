"""
Extraction of the content id and the nonce token from an embed page.

The nonce has shipped in two layouts: a single 48 character token, and three
16 character tokens spread over the page that are joined in document order.
Both layouts are tried, in that order.
"""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup, SoupStrainer

from embedflow.schemas import ExtractionContext

logger = logging.getLogger(__name__)

NONCE_LENGTH = 48
NONCE_PART_LENGTH = 16
NONCE_PART_COUNT = NONCE_LENGTH // NONCE_PART_LENGTH

CONTENT_ID_ATTRIBUTE = "data-id"


def _alnum_run(length: int) -> re.Pattern:
    return re.compile(rf"(?<![A-Za-z0-9])[A-Za-z0-9]{{{length}}}(?![A-Za-z0-9])")


_FULL_NONCE_RE = _alnum_run(NONCE_LENGTH)
_NONCE_PART_RE = _alnum_run(NONCE_PART_LENGTH)


def extract_nonce(html: str) -> Optional[str]:
    """Return the nonce hidden in the page, or None when neither layout matches."""
    if not html:
        return None

    match = _FULL_NONCE_RE.search(html)
    if match:
        return match.group(0)

    parts = []
    for part in _NONCE_PART_RE.finditer(html):
        parts.append(part.group(0))
        if len(parts) == NONCE_PART_COUNT:
            return "".join(parts)

    return None


def extract_content_id(html: str) -> Optional[str]:
    """Return the value of the first data-id attribute in the page."""
    if not html:
        return None

    soup = BeautifulSoup(html, "lxml", parse_only=SoupStrainer(attrs={CONTENT_ID_ATTRIBUTE: True}))
    element = soup.find(attrs={CONTENT_ID_ATTRIBUTE: True})
    if element is None:
        return None

    content_id = element.get(CONTENT_ID_ATTRIBUTE, "").strip()
    return content_id or None


def extract_context(html: str) -> Optional[ExtractionContext]:
    """Build the extraction context, or None if the id or the nonce is missing."""
    content_id = extract_content_id(html)
    if content_id is None:
        logger.debug("No %s attribute found in embed page", CONTENT_ID_ATTRIBUTE)
        return None

    nonce = extract_nonce(html)
    if nonce is None:
        logger.debug("No nonce token found in embed page")
        return None

    return ExtractionContext(content_id=content_id, nonce=nonce)
