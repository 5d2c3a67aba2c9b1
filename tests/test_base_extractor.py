import httpx
import pytest

from embedflow.configs import settings
from embedflow.extractors.base import ExtractorError, PageFetchError
from embedflow.extractors.megacloud import VideoStrExtractor
from embedflow.utils.http_utils import DownloadError

EMBED_URL = "https://videostr.net/embed-1/v3/e-1/Xk92ab?z="


@pytest.fixture
def extractor(make_key_provider):
    return VideoStrExtractor({"accept-language": "fr-FR"}, key_provider=make_key_provider(None))


@pytest.mark.asyncio
async def test_requests_carry_user_agent_referer_and_forwarded_headers(mock_http, extractor):
    mock_http.respond(lambda request: httpx.Response(200, text="<html></html>"))

    await extractor._fetch_embed_page(EMBED_URL)

    headers = mock_http.requests[0].headers
    assert headers["user-agent"] == settings.user_agent
    assert headers["referer"] == EMBED_URL
    assert headers["accept-language"] == "fr-FR"


@pytest.mark.asyncio
async def test_timeout_is_bounded_by_upstream_setting(mock_http, extractor, monkeypatch):
    monkeypatch.setattr(settings.upstream, "request_timeout", 3.0)

    await extractor._make_request(EMBED_URL)
    await extractor._make_request(EMBED_URL, timeout=1.5)

    assert mock_http.client_kwargs[0]["timeout"] == httpx.Timeout(3.0)
    assert mock_http.client_kwargs[1]["timeout"] == httpx.Timeout(1.5)


@pytest.mark.asyncio
async def test_transient_errors_are_retried(mock_http, extractor):
    def handler(request):
        if len(mock_http.requests) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, text="ok")

    mock_http.respond(handler)

    response = await extractor._make_request(EMBED_URL, backoff_factor=0)

    assert response.text == "ok"
    assert len(mock_http.requests) == 2


@pytest.mark.asyncio
async def test_retries_are_bounded(mock_http, extractor):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    mock_http.respond(handler)

    with pytest.raises(ExtractorError):
        await extractor._make_request(EMBED_URL, retries=3, backoff_factor=0)
    assert len(mock_http.requests) == 3


@pytest.mark.asyncio
async def test_status_errors_are_not_retried(mock_http, extractor):
    mock_http.respond(lambda request: httpx.Response(500, text="upstream down"))

    with pytest.raises(DownloadError) as exc_info:
        await extractor._make_request(EMBED_URL, retries=3)

    assert exc_info.value.status_code == 500
    assert len(mock_http.requests) == 1


@pytest.mark.asyncio
async def test_status_check_can_be_disabled(mock_http, extractor):
    mock_http.respond(lambda request: httpx.Response(403))

    response = await extractor._make_request(EMBED_URL, raise_on_status=False)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_page_timeout_is_a_page_fetch_error(mock_http, extractor):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    mock_http.respond(handler)

    with pytest.raises(PageFetchError):
        await extractor._fetch_embed_page(EMBED_URL)


@pytest.mark.asyncio
async def test_page_timeout_yields_empty_result(mock_http, extractor):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    mock_http.respond(handler)

    result = await extractor.resolve(EMBED_URL)

    assert result.to_dict() == {"sources": [], "tracks": []}
    assert all(request.url == httpx.URL(EMBED_URL) for request in mock_http.requests)
