"""AtCoder problem extractor.

AtCoder task pages carry the statement twice, in Japanese and English, inside
``span.lang-ja`` / ``span.lang-en`` blocks. The page is loaded in the shared
headless browser with ``lang=en`` so formulas get rendered the same way a
reader sees them, then the rendered markup is parsed with BeautifulSoup.
Every selection step rejects candidates containing Japanese text.
"""

import re

from bs4 import BeautifulSoup, Tag

from ..config import SourceSettings, config
from ..errors import AutomationUnavailableError
from ..models import Platform, ProblemRecord, SampleTest
from ..services.browser_session import BrowserSessionManager
from ..services.math_markup import normalize, normalize_html
from ..services.url_canonicalizer import canonicalize
from .base import BaseExtractor
from .cascade import Strategy, first_match, has_japanese, not_japanese
from .samples import (
    associate_explanations,
    build_sample_tests,
    explanation_images,
    pair_by_headers,
    pair_positionally,
)

ATCODER_URL_PATTERNS = (
    re.compile(r"atcoder\.jp/contests/([a-z0-9_-]+)/tasks/([a-z0-9_-]+)", re.IGNORECASE),
)

TASK_PREFIX_RE = re.compile(r"^[A-Z][A-Z0-9]*\s*-\s*")
EDITORIAL_SUFFIX_RE = re.compile(r"\s*Editorial.*$", re.DOTALL)
SCORE_RE = re.compile(r"Score\s*:?\s*(\d+)\s*points?", re.IGNORECASE)
SAMPLE_HEADING_RE = re.compile(r"^Sample\s+(Input|Output)\b", re.IGNORECASE)


def _clean_title(text: str) -> str:
    text = EDITORIAL_SUFFIX_RE.sub("", text.strip())
    return TASK_PREFIX_RE.sub("", text).strip()


def _title_from_span(soup: BeautifulSoup) -> str | None:
    el = soup.select_one("span.h2")
    if el is None:
        return None
    heading = BeautifulSoup(str(el), "html.parser")
    for link in heading.select("a, .btn"):
        link.decompose()
    return _clean_title(heading.get_text(" ", strip=True))


def _title_from_english_heading(soup: BeautifulSoup) -> str | None:
    el = soup.select_one(".lang-en h2, h2.lang-en, h3.lang-en")
    return _clean_title(el.get_text(" ", strip=True)) if el else None


def _title_from_page_title(soup: BeautifulSoup) -> str | None:
    if soup.title is None:
        return None
    text = soup.title.get_text(strip=True)
    text = re.sub(r"\s*-\s*AtCoder.*$", "", text)
    return _clean_title(text)


TITLE_STRATEGIES = [
    Strategy("span-h2", _title_from_span),
    Strategy("english-heading", _title_from_english_heading),
    Strategy("page-title", _title_from_page_title),
]


def _english_block(soup: BeautifulSoup) -> Tag | None:
    return soup.select_one("#task-statement .lang-en") or soup.select_one(".lang-en")


def _untagged_language_block(soup: BeautifulSoup) -> Tag | None:
    for block in soup.select("#task-statement span.lang > span"):
        if not has_japanese(block.get_text()):
            return block
    return None


def _whole_statement(soup: BeautifulSoup) -> Tag | None:
    return soup.select_one("#task-statement")


STATEMENT_ROOT_STRATEGIES = [
    Strategy("lang-en", _english_block),
    Strategy("non-japanese-lang-span", _untagged_language_block),
    Strategy("task-statement", _whole_statement),
]


def _heading_text(section: Tag) -> str:
    heading = section.find(["h3", "h4"])
    return heading.get_text(" ", strip=True) if heading else ""


def _section_body(section: Tag) -> BeautifulSoup:
    body = BeautifulSoup(str(section), "html.parser")
    heading = body.find(["h3", "h4"])
    if heading is not None:
        heading.decompose()
    return body


def _sections(root: Tag) -> dict[str, Tag]:
    """Map lower-cased h3 headings to their sections, first occurrence wins."""
    sections: dict[str, Tag] = {}
    for section in root.find_all("section"):
        heading = _heading_text(section).lower()
        if heading and heading not in sections:
            sections[heading] = section
    return sections


def _statement_section(root: Tag) -> Tag | None:
    for heading, section in _sections(root).items():
        if heading.startswith("problem statement") or heading == "statement":
            return _section_body(section)
    return None


def _first_non_sample_part(root: Tag) -> Tag | None:
    for part in root.select(".part"):
        heading = _heading_text(part)
        if heading and not SAMPLE_HEADING_RE.match(heading):
            return _section_body(part)
    return None


def _root_without_samples(root: Tag) -> Tag | None:
    body = BeautifulSoup(str(root), "html.parser")
    for section in body.find_all("section"):
        if SAMPLE_HEADING_RE.match(_heading_text(section)):
            section.decompose()
    return body if body.get_text(strip=True) else None


DESCRIPTION_STRATEGIES = [
    Strategy("problem-statement-section", _statement_section),
    Strategy("first-part", _first_non_sample_part),
    Strategy("statement-without-samples", _root_without_samples),
]


def _english_header(header: Tag) -> bool:
    return not has_japanese(header.get_text())


def _pairs_by_headers(root: Tag) -> list[tuple[str, str]]:
    return pair_by_headers(root, accept=_english_header)


def _pairs_by_sample_ids(root: Tag) -> list[tuple[str, str]]:
    pres = [
        pre
        for pre in root.select('pre[id^="pre-sample"]')
        if not any("copy" in cls for cls in pre.get("class", []))
    ]
    return pair_positionally(pres)


def _pairs_by_position(root: Tag) -> list[tuple[str, str]]:
    pres = [pre for pre in root.find_all("pre") if pre.find_parent(class_="io-style") is None]
    return pair_positionally(pres)


SAMPLE_STRATEGIES = [
    Strategy("sample-headers", _pairs_by_headers),
    Strategy("pre-sample-ids", _pairs_by_sample_ids),
    Strategy("positional-pre", _pairs_by_position),
]


class AtCoderExtractor(BaseExtractor):
    """AtCoder extractor over browser-rendered pages."""

    URL_PATTERNS = ATCODER_URL_PATTERNS

    def __init__(
        self,
        session_manager: BrowserSessionManager | None = None,
        source_settings: SourceSettings | None = None,
    ) -> None:
        super().__init__(Platform.ATCODER)
        self.session_manager = session_manager
        self.source_settings = source_settings or config.source(Platform.ATCODER.value)

    def _identifier_from_match(self, match: re.Match[str]) -> str:
        return f"{match.group(1).lower()}-{match.group(2).lower()}"

    async def _extract(self, url: str, source_problem_id: str) -> ProblemRecord:
        if self.session_manager is None:
            raise AutomationUnavailableError("AtCoder extraction needs a browser session", url=url)

        page_url = f"{canonicalize(url)}?lang=en"
        async with self.session_manager.context() as ctx:
            await self._open_page(ctx, page_url, self.source_settings)
            html = await ctx.content()

        return self.parse_page(html, url, source_problem_id)

    def parse_page(self, html: str, url: str, source_problem_id: str | None = None) -> ProblemRecord:
        """Build a record from an AtCoder task page.

        Raises:
            ExtractionFailedError: Neither title nor statement was found.
        """
        source_problem_id = source_problem_id or self.parse_identifier(url)
        soup = BeautifulSoup(html, "html.parser")

        title = first_match(soup, TITLE_STRATEGIES, "title", accept=not_japanese, log=self.logger)
        root = first_match(
            soup, STATEMENT_ROOT_STRATEGIES, "statement root", accept=not_japanese, log=self.logger
        )

        description = input_format = output_format = constraints = difficulty = None
        samples: list[SampleTest] = []
        if root is not None:
            statement = first_match(
                root, DESCRIPTION_STRATEGIES, "description", accept=not_japanese, log=self.logger
            )
            description = normalize_html(statement) if statement is not None else None

            sections = _sections(root)
            constraints = self._section_text(sections, "constraints")
            input_format = self._section_text(sections, "input")
            output_format = self._section_text(sections, "output")

            pairs = first_match(root, SAMPLE_STRATEGIES, "samples", log=self.logger) or []
            samples = self._attach_explanations(build_sample_tests(pairs), root, url)

            score = SCORE_RE.search(root.get_text(" "))
            difficulty = score.group(1) if score else None

        return self._build_record(
            url,
            source_problem_id,
            title=title,
            description=description,
            input_format=input_format,
            output_format=output_format,
            constraints=constraints,
            sample_tests=samples,
            difficulty=difficulty,
        )

    def _section_text(self, sections: dict[str, Tag], name: str) -> str | None:
        section = sections.get(name)
        if section is None:
            return None
        text = normalize(_section_body(section))
        return text if text and not has_japanese(text) else None

    def _attach_explanations(
        self, samples: list[SampleTest], root: Tag, url: str
    ) -> list[SampleTest]:
        """Attach the prose following each sample output block."""
        explanations: list[str] = []
        images: list[list[str]] = []
        for section in root.find_all("section"):
            heading = _heading_text(section)
            if not re.match(r"^Sample\s+Output\b", heading, re.IGNORECASE):
                continue
            body = _section_body(section)
            for pre in body.find_all("pre"):
                pre.decompose()
            explanations.append(normalize(body))
            images.append(explanation_images(body, url))

        if not samples or (not any(explanations) and not any(images)):
            return samples

        if len(explanations) == len(samples):
            return [
                sample.model_copy(
                    update={"explanation": text or None, "images": pictures or sample.images}
                )
                for sample, text, pictures in zip(samples, explanations, images, strict=True)
            ]

        self.logger.debug(
            f"{len(explanations)} explanation blocks for {len(samples)} samples, "
            "associating by ordinal references"
        )
        merged_images = [src for group in images for src in group]
        return associate_explanations(
            samples, "\n\n".join(text for text in explanations if text), merged_images
        )
