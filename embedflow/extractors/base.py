from abc import ABC, abstractmethod
from typing import Dict, Optional

import asyncio
import httpx
import logging

from embedflow.configs import settings
from embedflow.schemas import ResolutionResult
from embedflow.utils.http_utils import create_httpx_client, DownloadError

logger = logging.getLogger(__name__)


class ExtractorError(Exception):
    """Base exception for all extractors."""
    pass


class PageFetchError(ExtractorError):
    """The embed page could not be downloaded."""


class ContextExtractionError(ExtractorError):
    """The embed page lacks the content id or the nonce."""


class SourcesFetchError(ExtractorError):
    """The sources endpoint failed or returned an unusable body."""


class KeyFetchError(ExtractorError):
    """The key document could not be fetched or has none of the requested fields."""


class DecryptionStrategyFailure(ExtractorError):
    """A single decryption strategy did not apply. The chain moves on to the next one."""

    def __init__(self, strategy: str, reason: str):
        self.strategy = strategy
        self.reason = reason
        super().__init__(f"{strategy}: {reason}")


class OracleError(DecryptionStrategyFailure):
    """The remote decode service failed or answered without a file."""

    def __init__(self, reason: str):
        super().__init__("oracle", reason)


class NoUsableSourceError(ExtractorError):
    """Every decryption strategy was exhausted."""


class BaseExtractor(ABC):
    """Base class for all embed resolvers.

    - Built-in retry/backoff for transient network errors
    - Bounded timeouts with per-request overrides
    - Debug logging of non-200 responses with a body preview
    """

    def __init__(self, request_headers: dict):
        self.base_headers = {
            "user-agent": settings.user_agent,
        }
        # merge incoming headers (e.g. Accept-Language) with default base headers
        self.base_headers.update(request_headers or {})

    async def _make_request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict] = None,
        timeout: Optional[float] = None,
        retries: int = 2,
        backoff_factor: float = 0.5,
        raise_on_status: bool = True,
        **kwargs,
    ) -> httpx.Response:
        """
        Make HTTP request with retry and timeout support.

        Parameters
        ----------
        timeout : float | None
            Seconds to wait for the request (applied to httpx.Timeout). Defaults to the upstream request timeout.
        retries : int
            Number of attempts for transient errors.
        backoff_factor : float
            Base for exponential backoff between retries.
        raise_on_status : bool
            If True, HTTP non-2xx raises DownloadError (preserves status code).
        """
        attempt = 0
        last_exc = None

        request_headers = self.base_headers.copy()
        if headers:
            request_headers.update(headers)

        timeout_cfg = httpx.Timeout(timeout or settings.upstream.request_timeout)

        while attempt < retries:
            try:
                async with create_httpx_client(timeout=timeout_cfg) as client:
                    response = await client.request(
                        method,
                        url,
                        headers=request_headers,
                        **kwargs,
                    )

                    if raise_on_status:
                        try:
                            response.raise_for_status()
                        except httpx.HTTPStatusError as e:
                            body_preview = e.response.text[:500]
                            logger.debug(
                                "HTTPStatusError for %s (status=%s) -- body preview: %s",
                                url,
                                e.response.status_code,
                                body_preview,
                            )
                            raise DownloadError(
                                e.response.status_code, f"HTTP error {e.response.status_code} while requesting {url}"
                            )
                    return response

            except DownloadError:
                # HTTP status errors are the upstream's answer, not a transient condition
                raise
            except (httpx.TimeoutException, httpx.NetworkError, httpx.TransportError) as e:
                last_exc = e
                attempt += 1
                if attempt >= retries:
                    break
                sleep_for = backoff_factor * (2 ** (attempt - 1))
                logger.warning(
                    "Transient network error (attempt %s/%s) for %s: %s, retrying in %.1fs",
                    attempt,
                    retries,
                    url,
                    e,
                    sleep_for,
                )
                await asyncio.sleep(sleep_for)
            except Exception as e:
                logger.exception("Unhandled exception while requesting %s: %s", url, e)
                raise ExtractorError(f"Request failed for URL {url}: {str(e)}")

        logger.error("All retries failed for %s: %s", url, last_exc)
        raise ExtractorError(f"Request failed for URL {url}: {str(last_exc)}")

    @abstractmethod
    async def extract(self, url: str, **kwargs) -> ResolutionResult:
        """Resolve the embed URL, raising ExtractorError when nothing playable is found."""
        pass

    @abstractmethod
    async def resolve(self, url: str) -> ResolutionResult:
        """Resolve the embed URL. Never raises; failures yield an empty or partial result."""
        pass
