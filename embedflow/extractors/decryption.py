"""
Decryption strategy chain for encrypted getSources payloads.

Upstream has shipped several payload formats over time. Each format is handled
by one tagged strategy; an upstream profile lists the tags to try, in order.
The first strategy whose plaintext yields at least one playable source wins.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Type

import httpx

from embedflow.configs import settings
from embedflow.extractors.base import (
    DecryptionStrategyFailure,
    ExtractorError,
    NoUsableSourceError,
    OracleError,
)
from embedflow.utils.crypto_utils import decrypt_salted, decrypt_with_nonce
from embedflow.utils.http_utils import DownloadError
from embedflow.utils.normalizer import is_playlist_url, normalize_sources

logger = logging.getLogger(__name__)

Requester = Callable[..., Awaitable[httpx.Response]]

_ORACLE_FILE_RE = re.compile(r'"file"\s*:\s*"((?:[^"\\]|\\.)+)"')


@dataclass(frozen=True)
class DecryptionInput:
    ciphertext: str
    nonce: str
    secret: Optional[str]
    referer: str


class DecryptionStrategy(ABC):
    name: str = ""
    requires_secret: bool = True

    def _require_secret(self, data: DecryptionInput) -> str:
        if not data.secret:
            raise DecryptionStrategyFailure(self.name, "no secret available")
        return data.secret

    @abstractmethod
    async def decrypt(self, data: DecryptionInput) -> str:
        """Return the plaintext or raise DecryptionStrategyFailure."""


class SaltedLocalStrategy(DecryptionStrategy):
    """OpenSSL ``Salted__`` framing, key and IV derived from secret + salt."""

    name = "salted"

    async def decrypt(self, data: DecryptionInput) -> str:
        secret = self._require_secret(data)
        try:
            return decrypt_salted(data.ciphertext, secret)
        except ValueError as e:
            raise DecryptionStrategyFailure(self.name, str(e))


class NonceDerivedStrategy(DecryptionStrategy):
    """Unframed ciphertext, key from sha256(secret) and IV from the nonce."""

    name = "nonce"

    async def decrypt(self, data: DecryptionInput) -> str:
        secret = self._require_secret(data)
        try:
            return decrypt_with_nonce(data.ciphertext, secret, data.nonce)
        except ValueError as e:
            raise DecryptionStrategyFailure(self.name, str(e))


class RemoteOracleStrategy(DecryptionStrategy):
    """Delegates decryption to a remote decode service and scrapes the file out of its answer."""

    name = "oracle"

    def __init__(self, requester: Requester, oracle_url: Optional[str] = None):
        self.requester = requester
        self.oracle_url = oracle_url if oracle_url is not None else settings.upstream.oracle_url

    async def decrypt(self, data: DecryptionInput) -> str:
        if not settings.upstream.oracle_enabled or not self.oracle_url:
            raise OracleError("decode service not configured")
        if not data.secret:
            raise OracleError("no secret available")

        try:
            response = await self.requester(
                self.oracle_url,
                params={"encrypted_data": data.ciphertext, "nonce": data.nonce, "secret": data.secret},
                headers={"referer": data.referer},
            )
        except (DownloadError, ExtractorError) as e:
            raise OracleError(f"request failed: {e}")

        match = _ORACLE_FILE_RE.search(response.text)
        if not match:
            raise OracleError("no file in response")
        return match.group(1).replace("\\/", "/")


class PlaylistPassthroughStrategy(DecryptionStrategy):
    """The 'ciphertext' is already a usable playlist URL."""

    name = "playlist"
    requires_secret = False

    async def decrypt(self, data: DecryptionInput) -> str:
        if is_playlist_url(data.ciphertext):
            return data.ciphertext.strip()
        raise DecryptionStrategyFailure(self.name, "payload is not a playlist URL")


STRATEGY_TYPES: Dict[str, Type[DecryptionStrategy]] = {
    SaltedLocalStrategy.name: SaltedLocalStrategy,
    NonceDerivedStrategy.name: NonceDerivedStrategy,
    RemoteOracleStrategy.name: RemoteOracleStrategy,
    PlaylistPassthroughStrategy.name: PlaylistPassthroughStrategy,
}


def build_strategy(tag: str, requester: Requester) -> DecryptionStrategy:
    strategy_cls = STRATEGY_TYPES.get(tag)
    if strategy_cls is None:
        raise ValueError(f"Unknown decryption strategy: {tag}")
    if strategy_cls is RemoteOracleStrategy:
        return RemoteOracleStrategy(requester)
    return strategy_cls()


class DecryptionChain:
    """Runs strategies in order and stops at the first usable plaintext."""

    def __init__(self, strategies: Iterable[DecryptionStrategy]):
        self.strategies: List[DecryptionStrategy] = list(strategies)

    @classmethod
    def from_tags(cls, tags: Iterable[str], requester: Requester) -> "DecryptionChain":
        return cls(build_strategy(tag, requester) for tag in tags)

    @property
    def needs_secret(self) -> bool:
        return any(strategy.requires_secret for strategy in self.strategies)

    async def run(self, data: DecryptionInput) -> str:
        """
        Try each strategy until one yields a plaintext with at least one source.

        Raises:
            NoUsableSourceError: When every strategy failed.
        """
        failures = []
        for strategy in self.strategies:
            try:
                plaintext = await strategy.decrypt(data)
            except DecryptionStrategyFailure as e:
                logger.debug("Decryption strategy %s failed: %s", strategy.name, e.reason)
                failures.append(str(e))
                continue

            if not normalize_sources(plaintext):
                logger.debug("Decryption strategy %s produced no usable source", strategy.name)
                failures.append(f"{strategy.name}: no usable source in plaintext")
                continue

            logger.debug("Decryption strategy %s succeeded", strategy.name)
            return plaintext

        raise NoUsableSourceError("All decryption strategies failed: " + "; ".join(failures))
