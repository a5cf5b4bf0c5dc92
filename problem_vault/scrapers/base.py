"""Base extractor protocol and abstractions for problem extraction.

Defines the unified interface that all source extractors implement so the
dispatcher can treat them polymorphically, plus the shared plumbing: URL
identifier parsing (always before any I/O), logging helpers and record
assembly.
"""

import logging
import re
from datetime import UTC, datetime
from typing import Protocol

from bs4 import BeautifulSoup

from ..config import SourceSettings
from ..errors import (
    ExtractionFailedError,
    InvalidUrlFormatError,
    ProblemVaultError,
    raise_for_status,
)
from ..models import Platform, ProblemRecord, SampleTest
from ..services.browser_session import BrowsingContext
from ..services.url_canonicalizer import canonicalize

logger = logging.getLogger(__name__)


class ExtractorProtocol(Protocol):
    """Protocol defining the interface for all source extractors.

    Methods:
        extract: Turn a problem URL into a ProblemRecord.
        parse_identifier: Get the source-native problem id from a URL.
        supports_url: Check if extractor can handle given URL.
        get_platform: Get platform identifier.
    """

    async def extract(self, url: str) -> ProblemRecord:
        """Extract a problem from its source URL.

        Args:
            url: Problem page URL.

        Returns:
            Normalized problem record.

        Raises:
            ProblemVaultError: Subclass describing why extraction failed.
        """
        ...

    def parse_identifier(self, url: str) -> str:
        ...

    def supports_url(self, url: str) -> bool:
        ...

    def get_platform(self) -> Platform:
        ...


class BaseExtractor:
    """Base class providing common functionality for all extractors.

    Subclasses set URL_PATTERNS and implement _extract().

    Attributes:
        URL_PATTERNS: Compiled identifier patterns tried in order.
    """

    URL_PATTERNS: tuple[re.Pattern[str], ...] = ()

    def __init__(self, platform: Platform):
        """Initialize base extractor.

        Args:
            platform: Source platform handled by this extractor.
        """
        self.platform = platform
        self.logger = logging.getLogger(f"{__name__}.{platform.value}")

    def get_platform(self) -> Platform:
        return self.platform

    def parse_identifier(self, url: str) -> str:
        """Extract the source problem id from a URL.

        Args:
            url: Problem URL.

        Returns:
            Source-native problem identifier.

        Raises:
            InvalidUrlFormatError: URL matches none of the known patterns.
        """
        for pattern in self.URL_PATTERNS:
            match = pattern.search(url)
            if match:
                return self._identifier_from_match(match)
        raise InvalidUrlFormatError(
            f"Not a recognized {self.platform.value} problem URL", url=url
        )

    def _identifier_from_match(self, match: re.Match[str]) -> str:
        return match.group(1)

    def supports_url(self, url: str) -> bool:
        try:
            self.parse_identifier(url)
        except InvalidUrlFormatError:
            return False
        return True

    async def extract(self, url: str) -> ProblemRecord:
        """Extract a problem, validating the URL before any network I/O."""
        source_problem_id = self.parse_identifier(url)
        self._log_extraction_start(url)

        try:
            record = await self._extract(url, source_problem_id)
        except ProblemVaultError as e:
            self._log_extraction_error(url, e)
            raise
        except Exception as e:
            self._log_extraction_error(url, e)
            raise ExtractionFailedError(
                f"Unexpected error while extracting: {e}", url=url, original_exception=e
            ) from e

        self._log_extraction_success(
            url, f"'{record.title}' ({len(record.sample_tests)} samples)"
        )
        return record

    async def _extract(self, url: str, source_problem_id: str) -> ProblemRecord:
        raise NotImplementedError

    async def _open_page(self, ctx: BrowsingContext, url: str, settings: SourceSettings) -> int | None:
        """Navigate a browsing context and wait for the statement to render.

        Navigation failures and error statuses raise; a content wait that
        expires only gets logged.

        Returns:
            HTTP status of the page.
        """
        status = await ctx.navigate(
            url, wait_until=settings.wait_until, timeout_ms=settings.navigation_timeout_ms
        )
        raise_for_status(status, url)

        found = await ctx.wait_for(settings.content_selectors, settings.content_wait_timeout_ms)
        if not found:
            self.logger.info(
                f"Content did not appear within {settings.content_wait_timeout_ms}ms, "
                "parsing what rendered"
            )
        await ctx.settle(settings.settle_ms)
        return status

    def _build_record(
        self,
        url: str,
        source_problem_id: str,
        *,
        title: str | None,
        description: str | None,
        input_format: str | None = None,
        output_format: str | None = None,
        constraints: str | None = None,
        sample_tests: list[SampleTest] | None = None,
        difficulty: str | None = None,
        tags: list[str] | None = None,
    ) -> ProblemRecord:
        """Assemble the record for an extraction.

        Raises:
            ExtractionFailedError: Neither title nor description was found.
        """
        title = (title or "").strip()
        description = (description or "").strip()
        if not title and not _has_text(description):
            raise ExtractionFailedError(
                f"No title or statement found on {self.platform.value} page", url=url
            )

        now = datetime.now(UTC)
        return ProblemRecord(
            source=self.platform,
            source_problem_id=source_problem_id,
            url=canonicalize(url),
            title=title,
            description=description,
            input_format=input_format or None,
            output_format=output_format or None,
            constraints=constraints or None,
            sample_tests=sample_tests or [],
            difficulty=difficulty or None,
            tags=tags or [],
            created_at=now,
            updated_at=now,
        )

    def _log_extraction_start(self, url: str) -> None:
        self.logger.info(f"Starting extraction for {self.platform.value}: {url}")

    def _log_extraction_success(self, url: str, result: str) -> None:
        self.logger.info(f"Successfully extracted from {self.platform.value}: {result}")

    def _log_extraction_error(self, url: str, error: Exception) -> None:
        self.logger.error(f"Failed to extract from {self.platform.value} ({url}): {error}")


def _has_text(markup: str) -> bool:
    return bool(markup) and bool(BeautifulSoup(markup, "html.parser").get_text(strip=True))


class ExtractorRegistry:
    """Registry for managing source extractors."""

    def __init__(self) -> None:
        """Initialize empty extractor registry."""
        self._extractors: dict[Platform, ExtractorProtocol] = {}
        self.logger = logging.getLogger(f"{__name__}.registry")

    def register(self, extractor: ExtractorProtocol) -> None:
        """Register an extractor under its platform, replacing any previous one."""
        platform = extractor.get_platform()
        self._extractors[platform] = extractor
        self.logger.debug(f"Registered extractor for platform: {platform.value}")

    def get(self, platform: Platform) -> ExtractorProtocol | None:
        return self._extractors.get(platform)

    def get_all_platforms(self) -> list[Platform]:
        return list(self._extractors.keys())

    def __len__(self) -> int:
        return len(self._extractors)
