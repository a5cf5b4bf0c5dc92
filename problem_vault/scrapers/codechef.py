"""CodeChef problem extractor.

CodeChef problem pages are a client-rendered application: nothing useful is
in the initial HTML. The page is rendered in the shared headless browser and
a snapshot of the statement container, title, difficulty and tags is taken by
a script evaluated inside the page. If that evaluation fails the rendered
HTML is parsed instead. Samples come from the input/output table widget,
falling back to "Sample Input/Output" headers and then to plain positional
pairing of preformatted blocks.
"""

import re

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import SourceSettings, config
from ..errors import AutomationUnavailableError
from ..models import Platform, ProblemRecord, SampleTest
from ..services.browser_session import BrowserSessionManager, PageEvaluationError
from ..services.math_markup import normalize, normalize_html
from ..services.url_canonicalizer import canonicalize
from .base import BaseExtractor
from .cascade import Strategy, first_match
from .samples import (
    associate_explanations,
    build_sample_tests,
    explanation_images,
    pair_by_headers,
    pair_positionally,
    pre_text,
)

CODECHEF_URL_PATTERNS = (
    re.compile(r"codechef\.com/(?:[A-Za-z0-9_]+/)?problems/([A-Za-z0-9_-]+)", re.IGNORECASE),
)

CONTAINER_SELECTORS = ["#problem-statement", "[class*='problemBody']", ".problem-statement"]
SECTION_HEADINGS = ["h2", "h3", "h4"]
UI_CHROME_SELECTORS = (
    "button, [class*='copy'], [aria-label*='Copy'], [class*='icon'], [class*='input_output']"
)

SNAPSHOT_SCRIPT = """
() => {
    const pick = (selectors) => {
        for (const selector of selectors) {
            const el = document.querySelector(selector);
            if (el) return el;
        }
        return null;
    };
    const container = pick(['#problem-statement', '[class*="problemBody"]', '.problem-statement']);
    const titleEl = pick(['#problem-statement h3', 'h1', '[class*="problem"] h3']);
    const difficultyEl = document.querySelector('[class*="difficulty"], [class*="rating"]');

    const tags = [];
    document.querySelectorAll('[class*="tag"]:not([class*="tagline"])').forEach((el) => {
        const text = (el.textContent || '').trim();
        if (text && text.length < 30 && !tags.includes(text)) tags.push(text);
    });

    return {
        title: titleEl ? (titleEl.textContent || '').trim() : '',
        statementHtml: container ? container.innerHTML : '',
        difficulty: difficultyEl ? (difficultyEl.textContent || '').trim() : '',
        tags,
    };
}
"""


class CodeChefSnapshot(BaseModel):
    """Result of the in-page snapshot script."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    statement_html: str = Field(default="", alias="statementHtml")
    difficulty: str = ""
    tags: list[str] = Field(default_factory=list)


def _heading_blocks(container: Tag) -> list[tuple[str, Tag, list[Tag]]]:
    """List section headings with the sibling elements up to the next heading."""
    blocks: list[tuple[str, Tag, list[Tag]]] = []
    for heading in container.find_all(["h2", "h3", "h4", "strong"]):
        body: list[Tag] = []
        sibling = heading.find_next_sibling()
        while sibling is not None and sibling.name not in SECTION_HEADINGS:
            body.append(sibling)
            sibling = sibling.find_next_sibling()
        blocks.append((heading.get_text(" ", strip=True).lower(), heading, body))
    return blocks


def _fragment(elements: list[Tag]) -> BeautifulSoup:
    return BeautifulSoup("".join(str(el) for el in elements), "html.parser")


def _title_from_statement(soup: BeautifulSoup) -> str | None:
    el = soup.select_one("#problem-statement h3")
    return el.get_text(strip=True) if el else None


def _title_from_h1(soup: BeautifulSoup) -> str | None:
    el = soup.select_one("h1")
    return el.get_text(strip=True) if el else None


def _title_from_problem_block(soup: BeautifulSoup) -> str | None:
    el = soup.select_one("[class*='problem'] h3")
    return el.get_text(strip=True) if el else None


TITLE_STRATEGIES = [
    Strategy("statement-h3", _title_from_statement),
    Strategy("h1", _title_from_h1),
    Strategy("problem-block-h3", _title_from_problem_block),
]


def _pairs_from_io_tables(container: Tag) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for table in container.select("[class*='input_output__table']"):
        values = table.select_one("[class*='values__container']") or table
        pres = values.find_all("pre")
        if len(pres) >= 2:
            pairs.append((pre_text(pres[0]), pre_text(pres[1])))
    return pairs


def _pairs_from_headers(container: Tag) -> list[tuple[str, str]]:
    return pair_by_headers(container)


def _pairs_from_position(container: Tag) -> list[tuple[str, str]]:
    pres = [
        pre
        for pre in container.find_all("pre")
        if pre.find_parent(class_=re.compile("input_output")) is None
    ]
    return pair_positionally(pres)


SAMPLE_STRATEGIES = [
    Strategy("io-table", _pairs_from_io_tables),
    Strategy("sample-headers", _pairs_from_headers),
    Strategy("positional-pre", _pairs_from_position),
]

FORMAT_SECTIONS = {
    "input_format": ("input format", "input"),
    "output_format": ("output format", "output"),
    "constraints": ("constraints",),
}


class CodeChefExtractor(BaseExtractor):
    """CodeChef extractor over fully browser-rendered pages."""

    URL_PATTERNS = CODECHEF_URL_PATTERNS

    def __init__(
        self,
        session_manager: BrowserSessionManager | None = None,
        source_settings: SourceSettings | None = None,
    ) -> None:
        super().__init__(Platform.CODECHEF)
        self.session_manager = session_manager
        self.source_settings = source_settings or config.source(Platform.CODECHEF.value)

    def _identifier_from_match(self, match: re.Match[str]) -> str:
        return match.group(1).upper()

    async def _extract(self, url: str, source_problem_id: str) -> ProblemRecord:
        if self.session_manager is None:
            raise AutomationUnavailableError("CodeChef extraction needs a browser session", url=url)

        snapshot: CodeChefSnapshot | None = None
        html = ""
        async with self.session_manager.context() as ctx:
            await self._open_page(ctx, canonicalize(url), self.source_settings)
            try:
                raw = await ctx.evaluate(SNAPSHOT_SCRIPT)
                snapshot = CodeChefSnapshot.model_validate(raw)
            except (PageEvaluationError, ValidationError) as e:
                self.logger.warning(f"In-page snapshot failed, parsing rendered HTML: {e}")

            if snapshot is None or not snapshot.statement_html.strip():
                html = await ctx.content()

        if snapshot is not None and snapshot.statement_html.strip():
            return self.parse_snapshot(snapshot, url, source_problem_id)
        return self.parse_page(html, url, source_problem_id)

    def parse_snapshot(
        self, snapshot: CodeChefSnapshot, url: str, source_problem_id: str | None = None
    ) -> ProblemRecord:
        """Build a record from the in-page snapshot."""
        source_problem_id = source_problem_id or self.parse_identifier(url)
        container = BeautifulSoup(
            f"<div id='problem-statement'>{snapshot.statement_html}</div>", "html.parser"
        ).div
        return self._parse_container(
            container,
            url,
            source_problem_id,
            title=snapshot.title,
            difficulty=snapshot.difficulty,
            tags=snapshot.tags,
        )

    def parse_page(self, html: str, url: str, source_problem_id: str | None = None) -> ProblemRecord:
        """Build a record from rendered CodeChef HTML.

        Raises:
            ExtractionFailedError: Neither title nor statement was found.
        """
        source_problem_id = source_problem_id or self.parse_identifier(url)
        soup = BeautifulSoup(html, "html.parser")
        title = first_match(soup, TITLE_STRATEGIES, "title", log=self.logger)

        container = None
        for selector in CONTAINER_SELECTORS:
            container = soup.select_one(selector)
            if container is not None:
                break

        difficulty_el = soup.select_one("[class*='difficulty'], [class*='rating']")
        tags: list[str] = []
        for el in soup.select("[class*='tag']:not([class*='tagline'])"):
            text = el.get_text(strip=True)
            if text and len(text) < 30 and text not in tags:
                tags.append(text)

        return self._parse_container(
            container,
            url,
            source_problem_id,
            title=title,
            difficulty=difficulty_el.get_text(strip=True) if difficulty_el else None,
            tags=tags,
        )

    def _parse_container(
        self,
        container: Tag | None,
        url: str,
        source_problem_id: str,
        *,
        title: str | None,
        difficulty: str | None,
        tags: list[str],
    ) -> ProblemRecord:
        if container is None:
            return self._build_record(
                url,
                source_problem_id,
                title=title,
                description=None,
                difficulty=difficulty,
                tags=tags,
            )

        if not title:
            heading = container.find("h3")
            title = heading.get_text(strip=True) if heading else None

        pairs = first_match(container, SAMPLE_STRATEGIES, "samples", log=self.logger) or []
        samples = self._attach_explanations(build_sample_tests(pairs), container, url)
        sections = self._format_sections(container)

        return self._build_record(
            url,
            source_problem_id,
            title=title,
            description=self._description(container, title),
            input_format=sections.get("input_format"),
            output_format=sections.get("output_format"),
            constraints=sections.get("constraints"),
            sample_tests=samples,
            difficulty=difficulty,
            tags=tags,
        )

    def _format_sections(self, container: Tag) -> dict[str, str]:
        sections: dict[str, str] = {}
        for heading, _, body in _heading_blocks(container):
            label = heading.rstrip(":").strip()
            for field, names in FORMAT_SECTIONS.items():
                if field not in sections and label in names and body:
                    text = normalize(_fragment(body))
                    if text:
                        sections[field] = text
        return sections

    def _attach_explanations(
        self, samples: list[SampleTest], container: Tag, url: str
    ) -> list[SampleTest]:
        explanations: list[str] = []
        images: list[list[str]] = []
        for heading, _, body in _heading_blocks(container):
            if "explanation" not in heading or not body:
                continue
            fragment = _fragment(body)
            explanations.append(normalize(fragment))
            images.append(explanation_images(fragment, url))

        if not samples or not explanations:
            return samples

        if len(explanations) == len(samples):
            return [
                sample.model_copy(
                    update={"explanation": text or None, "images": pictures or sample.images}
                )
                for sample, text, pictures in zip(samples, explanations, images, strict=True)
            ]

        merged_images = [src for group in images for src in group]
        return associate_explanations(
            samples, "\n\n".join(text for text in explanations if text), merged_images
        )

    def _description(self, container: Tag, title: str | None) -> str | None:
        """Statement HTML without samples, explanations, format sections and UI chrome."""
        clone = BeautifulSoup(str(container), "html.parser")
        for el in clone.select(UI_CHROME_SELECTORS):
            el.decompose()

        for heading, element, body in _heading_blocks(clone):
            label = heading.rstrip(":").strip()
            split_out = any(label in names for names in FORMAT_SECTIONS.values())
            if "sample" in heading or "explanation" in heading or split_out:
                for el in [element, *body]:
                    el.extract()

        first_h3 = clone.find("h3")
        if first_h3 is not None and title and first_h3.get_text(strip=True) == title:
            first_h3.decompose()

        html = normalize_html(clone)
        return html if BeautifulSoup(html, "html.parser").get_text(strip=True) else None
