"""LeetCode problem extractor.

LeetCode renders problem pages client-side, but the same data is served by
its GraphQL API. The extractor sends one typed query per problem slug and
parses the returned statement HTML, so no browser is needed.
"""

import re
from collections.abc import Callable

import aiohttp
from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..config import HttpConfig, LeetCodeConfig, config
from ..errors import (
    ExtractionFailedError,
    SourceNotFoundError,
    SourceUnreachableError,
    UpstreamBlockedError,
    raise_for_status,
)
from ..models import Platform, ProblemRecord, SampleTest
from ..services.http import create_session
from ..services.math_markup import normalize, normalize_html
from .base import BaseExtractor
from .cascade import Strategy, first_match
from .samples import build_sample_tests, explanation_images, pre_text

LEETCODE_URL_PATTERNS = (
    re.compile(r"leetcode\.(?:com|cn)/problems/([a-z0-9-]+)", re.IGNORECASE),
    re.compile(r"leetcode\.(?:com|cn)/contest/[a-z0-9-]+/problems/([a-z0-9-]+)", re.IGNORECASE),
)

QUESTION_QUERY = """
query questionData($titleSlug: String!) {
  question(titleSlug: $titleSlug) {
    questionId
    questionFrontendId
    title
    titleSlug
    content
    difficulty
    isPaidOnly
    exampleTestcases
    topicTags {
      name
      slug
    }
  }
}
"""

LABELLED_EXAMPLE_RE = re.compile(
    r"Input\s*:\s*(?P<input>.*?)\s*Output\s*:\s*(?P<output>.*?)"
    r"(?:\s*Explanation\s*:\s*(?P<explanation>.*))?$",
    re.DOTALL | re.IGNORECASE,
)
CHALLENGE_MARKERS = ("Just a moment...", "cf-browser-verification", "challenge-platform")


class LeetCodeQuery(BaseModel):
    """GraphQL request body."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    operation_name: str = "questionData"
    query: str = QUESTION_QUERY
    variables: dict[str, str]

    @classmethod
    def for_slug(cls, slug: str) -> "LeetCodeQuery":
        return cls(variables={"titleSlug": slug})


class LeetCodeTopicTag(BaseModel):
    name: str
    slug: str | None = None


class LeetCodeQuestion(BaseModel):
    """Question payload returned by the API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    question_id: str | None = None
    question_frontend_id: str | None = None
    title: str | None = None
    title_slug: str | None = None
    content: str | None = None
    difficulty: str | None = None
    is_paid_only: bool = False
    example_testcases: str | None = None
    topic_tags: list[LeetCodeTopicTag] = Field(default_factory=list)


class LeetCodeData(BaseModel):
    question: LeetCodeQuestion | None = None


class LeetCodeResponse(BaseModel):
    data: LeetCodeData | None = None
    errors: list[dict[str, object]] | None = None


def _label(element: Tag) -> str | None:
    """Return the bold lead-in label of a paragraph or bare bold run, e.g. "example 1"."""
    if element.name in ("strong", "b"):
        strong = element
    elif element.name == "p":
        strong = element.find(["strong", "b"])
        if strong is None:
            return None
        if not element.get_text(" ", strip=True).startswith(strong.get_text(" ", strip=True)):
            return None
    else:
        return None
    label = strong.get_text(" ", strip=True).rstrip(":").strip().lower()
    return label or None


def _io_value(block: Tag, label: str) -> str | None:
    for strong in block.find_all(["strong", "b"]):
        if strong.get_text(strip=True).rstrip(":").lower() != label:
            continue
        paragraph = strong.find_parent("p") or strong.parent
        value = paragraph.select_one(".example-io") if paragraph else None
        if value is not None:
            return pre_text(value)
        if paragraph is not None:
            text = paragraph.get_text(" ", strip=True)
            return text.split(":", 1)[1].strip() if ":" in text else None
    return None


def _block_explanation(block: Tag) -> str | None:
    marker = None
    for strong in block.find_all(["strong", "b"]):
        if strong.get_text(strip=True).rstrip(":").lower() == "explanation":
            marker = strong
            break
    if marker is None:
        return None

    paragraph = marker.find_parent("p") or marker
    parts: list[str] = []
    lead = paragraph.get_text(" ", strip=True)
    if ":" in lead:
        parts.append(lead.split(":", 1)[1].strip())
    for sibling in paragraph.find_next_siblings():
        parts.append(normalize(sibling))
    text = "\n".join(part for part in parts if part)
    return text or None


def _examples_from_blocks(soup: BeautifulSoup, base_url: str) -> list[SampleTest]:
    samples: list[SampleTest] = []
    for block in soup.select(".example-block"):
        built = build_sample_tests([(_io_value(block, "input"), _io_value(block, "output"))])
        if not built:
            continue
        samples.append(
            built[0].model_copy(
                update={
                    "explanation": _block_explanation(block),
                    "images": explanation_images(block, base_url),
                }
            )
        )
    return samples


def _images_before(pre: Tag, base_url: str) -> list[str]:
    """Images between an example's heading and its <pre> block."""
    images: list[str] = []
    for sibling in pre.find_previous_siblings():
        if _label(sibling) is not None:
            break
        if sibling.name == "img":
            images[:0] = explanation_images(BeautifulSoup(str(sibling), "html.parser"), base_url)
        else:
            images[:0] = explanation_images(sibling, base_url)
    return images


def _examples_from_pre(soup: BeautifulSoup, base_url: str) -> list[SampleTest]:
    samples: list[SampleTest] = []
    for pre in soup.find_all("pre"):
        match = LABELLED_EXAMPLE_RE.search(pre_text(pre))
        if not match:
            continue
        built = build_sample_tests([(match.group("input"), match.group("output"))])
        if not built:
            continue
        explanation = (match.group("explanation") or "").strip() or None
        samples.append(
            built[0].model_copy(
                update={"explanation": explanation, "images": _images_before(pre, base_url)}
            )
        )
    return samples


def _split_content(soup: BeautifulSoup) -> tuple[BeautifulSoup, str | None]:
    """Separate the statement from the examples and constraints regions.

    A region runs from its bold label to the next bold lead-in, so trailing
    notes such as "Follow-up:" stay in the statement. Loose text between
    top-level elements travels with the region it sits in.

    Returns:
        Statement soup with those regions removed, and the constraints text.
    """
    constraints = BeautifulSoup("", "html.parser")
    mode: str | None = None
    for node in list(soup.children):
        if isinstance(node, Tag):
            label = _label(node)
            if label is not None:
                if label.startswith("example"):
                    mode = "example"
                elif label.startswith("constraint"):
                    mode = "constraints"
                else:
                    mode = None
                    continue
                node.extract()
                continue
            if "example-block" in (node.get("class") or []):
                node.extract()
                continue
        elif not node.strip():
            continue

        if mode == "example":
            node.extract()
        elif mode == "constraints":
            constraints.append(node.extract())

    constraints_text = None
    if constraints.contents:
        constraints_text = normalize(constraints) or None
    return soup, constraints_text


class LeetCodeExtractor(BaseExtractor):
    """LeetCode extractor over the GraphQL API."""

    URL_PATTERNS = LEETCODE_URL_PATTERNS

    def __init__(
        self,
        leetcode_config: LeetCodeConfig | None = None,
        http_config: HttpConfig | None = None,
        session_factory: Callable[[HttpConfig], aiohttp.ClientSession] = create_session,
    ) -> None:
        super().__init__(Platform.LEETCODE)
        self.leetcode_config = leetcode_config or config.leetcode
        self.http_config = http_config or config.http
        self.session_factory = session_factory

    def _identifier_from_match(self, match: re.Match[str]) -> str:
        return match.group(1).lower()

    async def _extract(self, url: str, source_problem_id: str) -> ProblemRecord:
        question = await self.fetch_question(source_problem_id, url)
        return self.build_from_question(question, url, source_problem_id)

    async def fetch_question(self, slug: str, url: str) -> LeetCodeQuestion:
        """Query the API for a problem slug.

        Raises:
            SourceNotFoundError: API reports no question for the slug.
            UpstreamBlockedError: Request refused or answered with a bot wall.
            SourceUnreachableError: Network failure.
            ExtractionFailedError: Response is not the expected JSON.
        """
        endpoint = self.leetcode_config.graphql_url
        body = LeetCodeQuery.for_slug(slug).model_dump(by_alias=True)
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Referer": f"{self.leetcode_config.base_url}/problems/{slug}/",
            "Origin": self.leetcode_config.base_url,
        }

        try:
            async with self.session_factory(self.http_config) as session:
                async with session.post(endpoint, json=body, headers=headers) as response:
                    status = response.status
                    text = await response.text()
        except TimeoutError as e:
            raise SourceUnreachableError(
                "LeetCode API request timed out", url=url, original_exception=e
            ) from e
        except aiohttp.ClientError as e:
            raise SourceUnreachableError(
                f"LeetCode API request failed: {e}", url=url, original_exception=e
            ) from e

        raise_for_status(status, url)

        try:
            payload = LeetCodeResponse.model_validate_json(text)
        except ValidationError as e:
            if any(marker in text for marker in CHALLENGE_MARKERS):
                raise UpstreamBlockedError(
                    "LeetCode answered with an anti-bot challenge", url=url, status_code=status
                ) from e
            raise ExtractionFailedError(
                "Unexpected response from LeetCode API", url=url, original_exception=e
            ) from e

        question = payload.data.question if payload.data else None
        if question is None:
            if payload.errors:
                self.logger.debug(f"LeetCode API errors for {slug}: {payload.errors}")
            raise SourceNotFoundError(f"LeetCode has no problem '{slug}'", url=url)
        return question

    def build_from_question(
        self, question: LeetCodeQuestion, url: str, source_problem_id: str | None = None
    ) -> ProblemRecord:
        """Build a record from an API question payload."""
        source_problem_id = source_problem_id or self.parse_identifier(url)

        description = constraints = None
        samples: list[SampleTest] = []
        if question.content:
            soup = BeautifulSoup(question.content, "html.parser")
            samples = first_match(
                soup,
                [
                    Strategy("example-block", lambda s: _examples_from_blocks(s, url)),
                    Strategy("labelled-pre", lambda s: _examples_from_pre(s, url)),
                ],
                "samples",
                log=self.logger,
            ) or []
            statement, constraints = _split_content(soup)
            description = normalize_html(statement) or None
        elif question.is_paid_only:
            self.logger.info(f"LeetCode problem {source_problem_id} is premium-only, no statement")

        return self._build_record(
            url,
            source_problem_id,
            title=question.title,
            description=description,
            constraints=constraints,
            sample_tests=samples,
            difficulty=question.difficulty,
            tags=[tag.name for tag in question.topic_tags],
        )
