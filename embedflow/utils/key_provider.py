"""
Process-wide provider for the shared decryption secret.

The secret lives in a remote JSON document that rotates independently of this
service. A secret, once found, is kept for the lifetime of the process. Misses
are not remembered, so the document is fetched again on the next request.
"""

import logging
import threading
from typing import Any, Dict, Iterable, Optional, Tuple

import httpx

from embedflow.configs import settings
from embedflow.extractors.base import KeyFetchError
from embedflow.utils.http_utils import create_httpx_client

logger = logging.getLogger(__name__)


def lookup_field(document: Any, field_name: str) -> Optional[str]:
    """Resolve a possibly dotted field name (``rabbitstream.key``) to a non-empty string."""
    value = document
    for part in field_name.split("."):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    if isinstance(value, str) and value:
        return value
    return None


class KeyMaterialProvider:
    """Lazily fetches and caches secrets from the key document. Safe to share between threads."""

    def __init__(self, document_url: Optional[str] = None, timeout: Optional[float] = None):
        self.document_url = document_url or settings.upstream.key_document_url
        self.timeout = timeout or settings.upstream.request_timeout
        self._secrets: Dict[Tuple[str, ...], str] = {}
        self._lock = threading.Lock()

    async def _fetch_document(self, headers: Optional[Dict[str, str]] = None) -> dict:
        request_headers = {"user-agent": settings.user_agent}
        request_headers.update(headers or {})
        try:
            async with create_httpx_client(timeout=httpx.Timeout(self.timeout)) as client:
                response = await client.get(self.document_url, headers=request_headers)
                response.raise_for_status()
                document = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise KeyFetchError(f"Key document fetch failed for {self.document_url}: {e}")

        if not isinstance(document, dict):
            raise KeyFetchError(f"Key document at {self.document_url} is not a JSON object")
        return document

    async def fetch_secret(
        self, field_names: Optional[Iterable[str]] = None, headers: Optional[Dict[str, str]] = None
    ) -> str:
        """
        Return the first secret present among ``field_names``.

        Args:
            field_names: Candidate fields probed in order. Defaults to the configured candidates.
            headers: Extra request headers, typically the Referer of the current resolution.

        Raises:
            KeyFetchError: If the document is unreachable or has none of the fields.
        """
        candidates = tuple(field_names or settings.upstream.secret_fields)
        with self._lock:
            cached = self._secrets.get(candidates)
        if cached is not None:
            return cached

        # Concurrent first fetches may race here; they converge on the same value.
        document = await self._fetch_document(headers)

        for field_name in candidates:
            secret = lookup_field(document, field_name)
            if secret is not None:
                with self._lock:
                    self._secrets.setdefault(candidates, secret)
                logger.debug("Using key document field %r", field_name)
                return secret

        raise KeyFetchError(f"Key document has none of the fields {', '.join(candidates)}")

    async def get_secret(
        self, field_names: Optional[Iterable[str]] = None, headers: Optional[Dict[str, str]] = None
    ) -> Optional[str]:
        """Like :meth:`fetch_secret`, but reports failure as None."""
        try:
            return await self.fetch_secret(field_names, headers)
        except KeyFetchError as e:
            logger.warning(str(e))
            return None

    def clear(self) -> None:
        with self._lock:
            self._secrets.clear()


_key_provider: Optional[KeyMaterialProvider] = None
_key_provider_lock = threading.Lock()


def get_key_provider() -> KeyMaterialProvider:
    """Get or create the process-wide key provider (lazy singleton)."""
    global _key_provider
    if _key_provider is None:
        with _key_provider_lock:
            if _key_provider is None:
                _key_provider = KeyMaterialProvider()
    return _key_provider
