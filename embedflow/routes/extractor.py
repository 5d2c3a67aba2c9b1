import logging
from typing import Annotated

from fastapi import APIRouter, Query, HTTPException, Depends
from fastapi.responses import JSONResponse

from embedflow.configs import settings
from embedflow.extractors.base import ExtractorError
from embedflow.extractors.factory import ExtractorFactory
from embedflow.schemas import ResolutionResult, SourcesParams
from embedflow.utils.cache_utils import get_response_cache
from embedflow.utils.http_utils import ProxyRequestHeaders, get_proxy_headers

extractor_router = APIRouter()
logger = logging.getLogger(__name__)


@extractor_router.get("/sources", response_model=ResolutionResult, response_model_exclude_none=True)
async def resolve_sources(
    params: Annotated[SourcesParams, Query()],
    proxy_headers: Annotated[ProxyRequestHeaders, Depends(get_proxy_headers)],
):
    """Resolve an embed page into playable sources and subtitle tracks."""
    try:
        extractor = ExtractorFactory.get_extractor(params.host, proxy_headers.request)
    except ExtractorError as e:
        raise HTTPException(status_code=400, detail=str(e))

    async def _resolve() -> dict:
        result = await extractor.resolve(params.destination)
        return result.to_dict()

    cache_key = f"sources:{params.host}:{params.destination}"
    data = await get_response_cache().fetch(
        cache_key,
        _resolve,
        settings.resolution_cache_ttl,
        should_cache=lambda value: bool(value.get("sources")),
    )

    if not data.get("sources"):
        logger.info(f"No sources found for {params.destination}")
        return JSONResponse(content=data, status_code=404, headers=proxy_headers.response)

    logger.info(f"Found {len(data['sources'])} sources for {params.destination}")
    return JSONResponse(content=data, headers=proxy_headers.response)
