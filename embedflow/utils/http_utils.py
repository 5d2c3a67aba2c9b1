import logging
import ssl
from dataclasses import dataclass

import httpx
from fastapi import Request
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from embedflow.configs import settings
from embedflow.const import SUPPORTED_REQUEST_HEADERS

logger = logging.getLogger(__name__)


class DownloadError(Exception):
    def __init__(self, status_code, message):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


DEFAULT_SSL_CONTEXT = ssl.create_default_context()


def create_httpx_client(
    follow_redirects: bool = True,
    **kwargs,
) -> httpx.AsyncClient:
    """
    Create an HTTPX AsyncClient with the configured transport mounts.

    Args:
        follow_redirects (bool): Whether to follow 3xx redirects automatically.
        **kwargs: Additional AsyncClient keyword arguments.

    Returns:
        httpx.AsyncClient: Configured client. Every request carries a bounded timeout.
    """
    mounts = settings.transport_config.get_mounts()
    kwargs.setdefault("timeout", settings.transport_config.timeout)

    if settings.transport_config.disable_ssl_verification_globally:
        verify = False
    else:
        verify = DEFAULT_SSL_CONTEXT

    return httpx.AsyncClient(
        mounts=mounts,
        follow_redirects=follow_redirects,
        verify=verify,
        **kwargs,
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    retry=retry_if_exception_type(DownloadError),
    reraise=True,
)
async def fetch_with_retry(client, method, url, headers, follow_redirects=True, **kwargs):
    """
    Fetch a URL with retry logic.

    Args:
        client (httpx.AsyncClient): HTTP client to use for the request.
        method (str): HTTP method (e.g., GET, POST).
        url (str): Target URL.
        headers (dict): Request headers.
        follow_redirects (bool): Whether to follow redirects.
        **kwargs: Additional request arguments.

    Returns:
        httpx.Response: HTTP response.

    Raises:
        DownloadError: If the request fails after retries.
        httpx.HTTPStatusError: For 404 responses, which are never retried.
    """
    try:
        response = await client.request(method, url, headers=headers, follow_redirects=follow_redirects, **kwargs)
        response.raise_for_status()
        return response
    except httpx.TimeoutException:
        logger.warning(f"Timeout while requesting {url}")
        raise DownloadError(409, f"Timeout while requesting {url}")
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 404:
            logger.info(f"Resource not found: {url}")
            raise e
        logger.error(f"HTTP error {e.response.status_code} while requesting {url}")
        raise DownloadError(e.response.status_code, f"HTTP error {e.response.status_code} while requesting {url}")
    except httpx.RequestError as e:
        logger.error(f"Error requesting {url}: {e}")
        raise DownloadError(502, f"Error requesting {url}: {e}")


@dataclass
class ProxyRequestHeaders:
    request: dict
    response: dict


def get_proxy_headers(request: Request) -> ProxyRequestHeaders:
    """
    Extract upstream request headers from request headers and query parameters.

    Args:
        request (Request): Incoming HTTP request.

    Returns:
        ProxyRequestHeaders: Request headers to forward upstream and response headers to add.
    """
    request_headers = {k: v for k, v in request.headers.items() if k in SUPPORTED_REQUEST_HEADERS}
    request_headers.update({k[2:].lower(): v for k, v in request.query_params.items() if k.startswith("h_")})
    response_headers = {k[2:].lower(): v for k, v in request.query_params.items() if k.startswith("r_")}
    return ProxyRequestHeaders(request_headers, response_headers)
