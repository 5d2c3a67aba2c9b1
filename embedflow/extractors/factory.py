from typing import Dict, Type

from embedflow.extractors.base import BaseExtractor, ExtractorError
from embedflow.extractors.megacloud import MegaCloudExtractor, VideoStrExtractor


class ExtractorFactory:
    """Factory for creating embed resolvers."""

    _extractors: Dict[str, Type[BaseExtractor]] = {
        "VideoStr": VideoStrExtractor,
        "MegaCloud": MegaCloudExtractor,
    }

    @classmethod
    def get_extractor(cls, host: str, request_headers: dict) -> BaseExtractor:
        """Get appropriate extractor instance for the given host."""
        extractor_class = cls._extractors.get(host)
        if not extractor_class:
            raise ExtractorError(f"Unsupported host: {host}")
        return extractor_class(request_headers)
