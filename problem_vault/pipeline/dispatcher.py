"""Platform detection and routing to the matching extractor."""

import logging
from urllib.parse import urlsplit

from ..errors import UnsupportedPlatformError
from ..models import Platform, ProblemRecord
from ..scrapers.base import ExtractorRegistry
from .messages import SUPPORTED_PLATFORMS_TEXT

logger = logging.getLogger(__name__)

# Checked in this order
PLATFORM_HOSTS: tuple[tuple[Platform, str], ...] = (
    (Platform.CODEFORCES, "codeforces.com"),
    (Platform.LEETCODE, "leetcode.com"),
    (Platform.LEETCODE, "leetcode.cn"),
    (Platform.ATCODER, "atcoder.jp"),
    (Platform.CODECHEF, "codechef.com"),
)


def detect_platform(url: str) -> Platform | None:
    """Classify a URL by its hostname.

    Args:
        url: Problem URL.

    Returns:
        Platform whose domain is contained in the hostname, None otherwise.
    """
    try:
        hostname = (urlsplit(url.strip()).hostname or "").lower()
    except ValueError:
        return None

    for platform, domain in PLATFORM_HOSTS:
        if domain in hostname:
            return platform
    return None


class ProblemDispatcher:
    """Routes problem URLs to the registered extractor for their platform."""

    def __init__(self, registry: ExtractorRegistry) -> None:
        self.registry = registry

    async def dispatch(self, url: str) -> ProblemRecord:
        """Extract a problem with the extractor for the URL's platform.

        Raises:
            UnsupportedPlatformError: Host is not a supported source, or no
                extractor is registered for it.
            ProblemVaultError: Whatever the extractor raised.
        """
        platform = detect_platform(url)
        if platform is None:
            raise UnsupportedPlatformError(
                f"Unsupported platform. Supported: {SUPPORTED_PLATFORMS_TEXT}", url=url
            )

        extractor = self.registry.get(platform)
        if extractor is None:
            raise UnsupportedPlatformError(
                f"No extractor registered for {platform.value}", url=url
            )

        logger.debug(f"Dispatching {url} to {platform.value} extractor")
        return await extractor.extract(url)


async def parse_problem(url: str) -> ProblemRecord:
    """Extract a problem through the process-wide dispatcher.

    Args:
        url: Problem URL from one of the supported sources.

    Returns:
        Normalized problem record. Nothing is persisted.
    """
    from ..core.container import get_container

    return await get_container().dispatcher().dispatch(url)
