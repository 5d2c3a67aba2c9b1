from .extractor import extractor_router
from .metadata import metadata_router

__all__ = ["extractor_router", "metadata_router"]
