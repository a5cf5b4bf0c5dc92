"""Plain HTTP access for static-HTML pages and the LeetCode query API."""

import logging

import aiohttp

from ..config import HttpConfig, config
from ..errors import SourceUnreachableError

logger = logging.getLogger(__name__)


def create_session(http_config: HttpConfig | None = None) -> aiohttp.ClientSession:
    """Create configured aiohttp session for page and API requests.

    Sets up session with connection limits, timeouts, and browser-like headers
    so static source pages are served the same markup a desktop browser gets.

    Args:
        http_config: HTTP settings, defaults to the global configuration.

    Returns:
        aiohttp.ClientSession: Configured HTTP session for making requests.
    """
    settings = http_config or config.http
    connector = aiohttp.TCPConnector(limit=50, limit_per_host=10)
    timeout = aiohttp.ClientTimeout(total=settings.timeout)

    headers = {
        "User-Agent": settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
    }

    return aiohttp.ClientSession(connector=connector, timeout=timeout, headers=headers)


async def fetch_page(session: aiohttp.ClientSession, url: str) -> tuple[int, str]:
    """Fetch a page and return its status and body.

    Status codes are returned as-is; classifying them is up to the caller.

    Raises:
        SourceUnreachableError: Timeout, DNS or connection failure.
    """
    try:
        async with session.get(url) as response:
            body = await response.text(errors="replace")
            logger.debug(f"GET {url} -> {response.status} ({len(body)} chars)")
            return response.status, body
    except TimeoutError as e:
        raise SourceUnreachableError("Request timed out", url=url, original_exception=e) from e
    except aiohttp.ClientError as e:
        raise SourceUnreachableError(f"Request failed: {e}", url=url, original_exception=e) from e
