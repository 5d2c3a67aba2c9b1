import logging
from typing import Any, Optional, Tuple

from pydantic import ValidationError

from embedflow.configs import settings
from embedflow.const import SOURCES_PATH
from embedflow.extractors.base import (
    BaseExtractor,
    ContextExtractionError,
    ExtractorError,
    NoUsableSourceError,
    PageFetchError,
    SourcesFetchError,
)
from embedflow.extractors.decryption import DecryptionChain, DecryptionInput
from embedflow.schemas import ExtractionContext, RawSourcePayload, ResolutionResult
from embedflow.utils.http_utils import DownloadError
from embedflow.utils.key_provider import KeyMaterialProvider, get_key_provider
from embedflow.utils.normalizer import build_result
from embedflow.utils.token_extractor import extract_context

logger = logging.getLogger(__name__)


class MegaCloudExtractor(BaseExtractor):
    """Resolves MegaCloud-family embed pages into playable sources and subtitle tracks.

    Pipeline: embed page -> content id + nonce -> getSources -> passthrough or
    decryption chain -> normalized result. Subclasses select the upstream host
    and the decryption strategies to try.
    """

    strategy_tags: Tuple[str, ...] = ("oracle", "salted", "playlist")

    def __init__(self, request_headers: dict, key_provider: Optional[KeyMaterialProvider] = None):
        super().__init__(request_headers)
        self.key_provider = key_provider or get_key_provider()

    @property
    def upstream_base_url(self) -> str:
        return settings.upstream.megacloud_base_url.rstrip("/")

    async def _fetch_embed_page(self, url: str) -> str:
        try:
            response = await self._make_request(url, headers={"referer": url})
        except (DownloadError, ExtractorError) as e:
            raise PageFetchError(f"Failed to fetch embed page {url}: {e}")
        return response.text

    async def _fetch_sources(self, url: str, context: ExtractionContext) -> RawSourcePayload:
        api_url = f"{self.upstream_base_url}{SOURCES_PATH}"
        try:
            response = await self._make_request(
                api_url,
                params={"id": context.content_id, "_k": context.nonce},
                headers={
                    "accept": "*/*",
                    "x-requested-with": "XMLHttpRequest",
                    "referer": url,
                },
            )
        except (DownloadError, ExtractorError) as e:
            raise SourcesFetchError(f"Failed to fetch sources for {context.content_id}: {e}")

        try:
            data: Any = response.json()
        except ValueError:
            raise SourcesFetchError("Sources endpoint returned invalid JSON")
        if not isinstance(data, dict) or not data:
            raise SourcesFetchError("Sources endpoint returned an empty payload")

        try:
            payload = RawSourcePayload.model_validate(data)
        except ValidationError as e:
            raise SourcesFetchError(f"Unexpected sources payload: {e.error_count()} validation errors")
        if payload.is_empty:
            raise SourcesFetchError("Sources endpoint returned an empty payload")
        return payload

    async def _decrypt(self, url: str, context: ExtractionContext, payload: RawSourcePayload) -> Optional[str]:
        chain = DecryptionChain.from_tags(self.strategy_tags, self._make_request)
        secret = None
        if chain.needs_secret:
            secret = await self.key_provider.get_secret(headers={"referer": url})

        data = DecryptionInput(ciphertext=payload.sources, nonce=context.nonce, secret=secret, referer=url)
        try:
            return await chain.run(data)
        except NoUsableSourceError as e:
            logger.info("No usable source for %s: %s", url, e)
            return None

    async def _resolve(self, url: str) -> ResolutionResult:
        html = await self._fetch_embed_page(url)

        context = extract_context(html)
        if context is None:
            raise ContextExtractionError(f"Content id or nonce missing in embed page {url}")

        payload = await self._fetch_sources(url, context)

        if not payload.is_encrypted:
            logger.debug("Sources for %s are not encrypted", context.content_id)
            return build_result(payload.sources, payload.tracks)

        try:
            plaintext = await self._decrypt(url, context, payload)
        except Exception as e:
            # tracks are already known; keep them
            logger.exception("Decryption stage failed for %s: %s", url, e)
            plaintext = None
        return build_result(plaintext, payload.tracks)

    async def resolve(self, url: str) -> ResolutionResult:
        try:
            return await self._resolve(url)
        except ExtractorError as e:
            logger.warning("Resolution of %s stopped: %s", url, e)
        except Exception as e:
            logger.exception("Unexpected error while resolving %s: %s", url, e)
        return ResolutionResult()

    async def extract(self, url: str, **kwargs) -> ResolutionResult:
        result = await self._resolve(url)
        if not result.sources:
            raise NoUsableSourceError(f"No playable source found for {url}")
        return result


class VideoStrExtractor(MegaCloudExtractor):
    """videostr.net profile: local decryption first, oracle as fallback."""

    strategy_tags = ("salted", "nonce", "oracle", "playlist")

    @property
    def upstream_base_url(self) -> str:
        return settings.upstream.base_url.rstrip("/")

