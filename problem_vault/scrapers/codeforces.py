"""Codeforces problem extractor.

Codeforces serves complete statements as static HTML, so the page is fetched
with aiohttp and parsed with BeautifulSoup. Formulas arrive as raw TeX in the
site's ``$$$...$$$`` convention. When Cloudflare answers the static request
with a challenge page, the page is loaded once more through the shared
headless browser.
"""

import re
from collections.abc import Callable

import aiohttp
from bs4 import BeautifulSoup, Tag

from ..config import HttpConfig, SourceSettings, config
from ..errors import SourceNotFoundError, UpstreamBlockedError, raise_for_status
from ..models import Platform, ProblemRecord
from ..services.browser_session import BrowserSessionManager
from ..services.http import create_session, fetch_page
from ..services.math_markup import normalize, normalize_html
from ..services.url_canonicalizer import canonicalize
from .base import BaseExtractor
from .cascade import Strategy, first_match
from .samples import associate_explanations, build_sample_tests, explanation_images, pre_text

INDEX_PATTERN = r"([A-Za-z][0-9]?)(?=[/?#]|$)"
CODEFORCES_URL_PATTERNS = (
    re.compile(r"codeforces\.com/problemset/problem/(\d+)/" + INDEX_PATTERN, re.IGNORECASE),
    re.compile(r"codeforces\.com/contest/(\d+)/problem/" + INDEX_PATTERN, re.IGNORECASE),
    re.compile(r"codeforces\.com/gym/(\d+)/problem/" + INDEX_PATTERN, re.IGNORECASE),
    re.compile(r"codeforces\.com/problemset/gymProblem/(\d+)/" + INDEX_PATTERN, re.IGNORECASE),
)

TITLE_PREFIX_RE = re.compile(r"^[A-Z][0-9]?\.\s*")
RATING_TAG_RE = re.compile(r"^\*(\d+)$")
CHALLENGE_MARKERS = (
    "<title>Just a moment...</title>",
    "cf-browser-verification",
    "Checking your browser before accessing",
    "Enable JavaScript and cookies to continue",
)
STATEMENT_SECTION_SELECTORS = ".header, .input-specification, .output-specification, .sample-tests, .note"


def is_challenge_page(html: str) -> bool:
    """Check whether a response is an anti-bot interstitial instead of the problem."""
    return "problem-statement" not in html and any(marker in html for marker in CHALLENGE_MARKERS)


def _section_body(section: Tag | None) -> Tag | None:
    """Copy a statement section without its section title."""
    if section is None:
        return None
    body = BeautifulSoup(str(section), "html.parser")
    for title in body.select(".section-title"):
        title.decompose()
    return body


def _title_from_header(soup: BeautifulSoup) -> str | None:
    el = soup.select_one(".problem-statement .header .title")
    return el.get_text(strip=True) if el else None


def _title_anywhere(soup: BeautifulSoup) -> str | None:
    el = soup.select_one(".title")
    return el.get_text(strip=True) if el else None


def _title_from_heading(soup: BeautifulSoup) -> str | None:
    el = soup.select_one(".problem-statement h1, .problem-statement h2")
    return el.get_text(strip=True) if el else None


TITLE_STRATEGIES = [
    Strategy("header-title", _title_from_header),
    Strategy("any-title", _title_anywhere),
    Strategy("statement-heading", _title_from_heading),
]


def _legend_after_header(statement: Tag) -> Tag | None:
    header = statement.select_one(".header")
    if header is None:
        return None
    legend = header.find_next_sibling("div")
    if legend is None or legend.get("class"):
        return None
    return legend


def _first_plain_div(statement: Tag) -> Tag | None:
    for child in statement.find_all("div", recursive=False):
        if not child.get("class"):
            return child
    return None


def _statement_without_sections(statement: Tag) -> Tag | None:
    remainder = BeautifulSoup(str(statement), "html.parser")
    for section in remainder.select(STATEMENT_SECTION_SELECTORS):
        section.decompose()
    return remainder if remainder.get_text(strip=True) else None


DESCRIPTION_STRATEGIES = [
    Strategy("legend-after-header", _legend_after_header),
    Strategy("first-plain-div", _first_plain_div),
    Strategy("statement-remainder", _statement_without_sections),
]


def _has_text(element: Tag) -> bool:
    return bool(element.get_text(strip=True))


def _samples_from_blocks(statement: Tag) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for block in statement.select(".sample-test"):
        inputs = block.select(".input pre")
        outputs = block.select(".output pre")
        pairs.extend((pre_text(i), pre_text(o)) for i, o in zip(inputs, outputs, strict=False))
    return pairs


class CodeforcesExtractor(BaseExtractor):
    """Codeforces extractor over static HTML with a browser fallback."""

    URL_PATTERNS = CODEFORCES_URL_PATTERNS

    def __init__(
        self,
        session_manager: BrowserSessionManager | None = None,
        http_config: HttpConfig | None = None,
        source_settings: SourceSettings | None = None,
        session_factory: Callable[[HttpConfig], aiohttp.ClientSession] = create_session,
    ) -> None:
        """Initialize Codeforces extractor.

        Args:
            session_manager: Shared browser, used only when static fetches
                are challenged. Without one a challenge is reported as blocked.
            http_config: HTTP settings for the static fetch.
            source_settings: Navigation settings for the browser fallback.
            session_factory: Creates the aiohttp session for one extraction.
        """
        super().__init__(Platform.CODEFORCES)
        self.session_manager = session_manager
        self.http_config = http_config or config.http
        self.source_settings = source_settings or config.source(Platform.CODEFORCES.value)
        self.session_factory = session_factory

    def _identifier_from_match(self, match: re.Match[str]) -> str:
        return f"{match.group(1)}{match.group(2).upper()}"

    async def _extract(self, url: str, source_problem_id: str) -> ProblemRecord:
        fetch_url = f"{canonicalize(url)}?locale=en"

        async with self.session_factory(self.http_config) as session:
            status, html = await fetch_page(session, fetch_url)

        if status == 403 or is_challenge_page(html):
            self.logger.warning(f"Static fetch challenged (HTTP {status}), retrying in browser")
            status, html = await self._fetch_rendered(fetch_url, status)
        else:
            raise_for_status(status, url)

        return self.parse_page(html, url, source_problem_id)

    async def _fetch_rendered(self, url: str, static_status: int) -> tuple[int | None, str]:
        if self.session_manager is None:
            raise UpstreamBlockedError(
                "Codeforces blocked the request and no browser is available",
                url=url,
                status_code=static_status,
            )

        async with self.session_manager.context() as ctx:
            status = await self._open_page(ctx, url, self.source_settings)
            html = await ctx.content()

        if is_challenge_page(html):
            raise UpstreamBlockedError(
                "Codeforces anti-bot challenge could not be passed", url=url, status_code=status
            )
        return status, html

    def parse_page(self, html: str, url: str, source_problem_id: str | None = None) -> ProblemRecord:
        """Build a record from a Codeforces problem page.

        Args:
            html: Page markup.
            url: Problem URL.
            source_problem_id: Known id, parsed from url when omitted.

        Raises:
            SourceNotFoundError: Page is Codeforces' "No such problem" notice.
            ExtractionFailedError: Neither title nor statement was found.
        """
        source_problem_id = source_problem_id or self.parse_identifier(url)
        soup = BeautifulSoup(html, "html.parser")
        statement = soup.select_one(".problem-statement")

        if statement is None and "No such problem" in html:
            raise SourceNotFoundError("Codeforces reports no such problem", url=url)

        title = first_match(soup, TITLE_STRATEGIES, "title", log=self.logger)
        if title:
            title = TITLE_PREFIX_RE.sub("", title).strip()

        description = None
        input_format = output_format = None
        samples = []
        if statement is not None:
            legend = first_match(
                statement, DESCRIPTION_STRATEGIES, "description", accept=_has_text, log=self.logger
            )
            description = normalize_html(legend) if legend is not None else None
            input_body = _section_body(statement.select_one(".input-specification"))
            output_body = _section_body(statement.select_one(".output-specification"))
            input_format = normalize(input_body) if input_body is not None else None
            output_format = normalize(output_body) if output_body is not None else None
            samples = build_sample_tests(_samples_from_blocks(statement))

            note = statement.select_one(".note")
            if note is not None:
                note_body = _section_body(note)
                samples = associate_explanations(
                    samples, normalize(note_body), explanation_images(note, url)
                )

        difficulty, tags = self._parse_tags(soup)
        return self._build_record(
            url,
            source_problem_id,
            title=title,
            description=description,
            input_format=input_format,
            output_format=output_format,
            sample_tests=samples,
            difficulty=difficulty,
            tags=tags,
        )

    def _parse_tags(self, soup: BeautifulSoup) -> tuple[str | None, list[str]]:
        difficulty = None
        tags: list[str] = []
        for box in soup.select(".tag-box"):
            text = box.get_text(strip=True)
            if not text:
                continue
            rating = RATING_TAG_RE.match(text)
            if rating:
                difficulty = rating.group(1)
            elif text not in tags:
                tags.append(text)
        return difficulty, tags
