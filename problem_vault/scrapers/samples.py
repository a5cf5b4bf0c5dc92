"""Sample test recovery shared by the extractors.

Inputs and outputs are published as preformatted blocks. They are paired by
their "Sample Input N" / "Sample Output N" headers where present and by
position otherwise; pairs with an empty side or leftover button labels are
dropped. Worked explanations published apart from the samples are attached to
the sample they talk about by scanning for ordinal references.
"""

import copy
import logging
import re
from collections.abc import Callable, Iterable
from urllib.parse import urljoin

from bs4 import Tag

from ..models import SampleTest

logger = logging.getLogger(__name__)

UI_CHROME_LABELS = frozenset(
    {
        "copy",
        "copied",
        "copied!",
        "copy to clipboard",
        "copy code",
        "copy input",
        "copy output",
        "run",
        "submit",
    }
)

HEADER_TAGS = ["h2", "h3", "h4", "h5", "h6", "strong", "b", "p", "label"]
SAMPLE_HEADER_RE = re.compile(r"\b(?:sample|example)\s+(input|output)\s*#?\s*(\d+)?", re.IGNORECASE)

ORDINAL_WORDS = (
    "first",
    "second",
    "third",
    "fourth",
    "fifth",
    "sixth",
    "seventh",
    "eighth",
    "ninth",
    "tenth",
)
ORDINAL_RE = re.compile(r"\b(" + "|".join(ORDINAL_WORDS) + r")\b", re.IGNORECASE)
NUMBERED_REF_RE = re.compile(
    r"\b(?:example|sample|test\s*case|test)\s*#?\s*(\d+)\b", re.IGNORECASE
)


def pre_text(pre: Tag) -> str:
    """Get the text of a preformatted block with line breaks preserved.

    Handles <br> line breaks and per-line <div> wrappers used by some
    statement renderers.
    """
    lines = pre.select(".test-example-line")
    if lines:
        text = "\n".join(line.get_text() for line in lines)
    else:
        block = copy.copy(pre)
        for br in block.find_all("br"):
            br.replace_with("\n")
        for button in block.find_all("button"):
            button.decompose()
        text = block.get_text()

    text = "\n".join(line.rstrip() for line in text.replace("\r\n", "\n").split("\n"))
    return text.strip("\n").strip()


def is_ui_chrome(text: str | None) -> bool:
    """Check whether text is just a leftover button label."""
    if text is None:
        return False
    return text.strip().lower() in UI_CHROME_LABELS


def build_sample_tests(pairs: Iterable[tuple[str | None, str | None]]) -> list[SampleTest]:
    """Validate raw input/output pairs into SampleTest objects.

    Pairs with an empty side or with UI chrome on either side are dropped.
    """
    samples: list[SampleTest] = []
    for index, (raw_input, raw_output) in enumerate(pairs):
        sample_input = (raw_input or "").strip()
        sample_output = (raw_output or "").strip()
        if not sample_input or not sample_output:
            logger.debug(f"Dropping sample pair {index}: empty input or output")
            continue
        if is_ui_chrome(sample_input) or is_ui_chrome(sample_output):
            logger.debug(f"Dropping sample pair {index}: looks like button text")
            continue
        samples.append(SampleTest(input=sample_input, output=sample_output))
    return samples


def _header_key(header: Tag) -> tuple[str, str | None] | None:
    text = header.get_text(" ", strip=True)
    if len(text) > 60:
        return None
    match = SAMPLE_HEADER_RE.search(text)
    if not match:
        return None
    return match.group(1).lower(), match.group(2)


def pair_by_headers(
    root: Tag, accept: Callable[[Tag], bool] | None = None
) -> list[tuple[str, str]]:
    """Pair preformatted blocks through their "Sample Input/Output N" headers.

    Args:
        root: Element to search.
        accept: Predicate a header must satisfy, e.g. a language filter.

    Returns:
        (input, output) texts ordered by the position of the input header.
    """
    inputs: dict[str, str] = {}
    outputs: dict[str, str] = {}
    order: list[str] = []
    seen_pres: set[int] = set()
    unnumbered = {"input": 0, "output": 0}

    for header in root.find_all(HEADER_TAGS):
        key = _header_key(header)
        if key is None:
            continue
        if accept is not None and not accept(header):
            continue

        kind, number = key
        pre = header.find_next("pre")
        if pre is None or id(pre) in seen_pres:
            continue
        if number is None:
            unnumbered[kind] += 1
            number = f"#{unnumbered[kind]}"

        target = inputs if kind == "input" else outputs
        if number in target:
            continue
        seen_pres.add(id(pre))
        target[number] = pre_text(pre)
        if kind == "input":
            order.append(number)

    return [(inputs[number], outputs[number]) for number in order if number in outputs]


def pair_positionally(pres: Iterable[Tag]) -> list[tuple[str, str]]:
    """Pair preformatted blocks two by two in document order.

    A trailing block without a partner is dropped.
    """
    texts = [text for text in (pre_text(pre) for pre in pres) if text and not is_ui_chrome(text)]
    return [(texts[i], texts[i + 1]) for i in range(0, len(texts) - 1, 2)]


def _reference_positions(text: str, sample_count: int) -> list[tuple[int, int]]:
    """Find the first position at which each sample is referred to."""
    first_seen: dict[int, int] = {}
    for match in ORDINAL_RE.finditer(text):
        index = ORDINAL_WORDS.index(match.group(1).lower())
        first_seen.setdefault(index, match.start())
    for match in NUMBERED_REF_RE.finditer(text):
        index = int(match.group(1)) - 1
        if index >= 0:
            position = first_seen.get(index)
            if position is None or match.start() < position:
                first_seen[index] = match.start()

    return sorted(
        ((position, index) for index, position in first_seen.items() if index < sample_count),
    )


def _sentence_start(text: str, position: int) -> int:
    """Move a reference position back to the start of its sentence or line."""
    start = text.rfind("\n", 0, position) + 1
    for mark in (". ", "! ", "? "):
        found = text.rfind(mark, 0, position)
        if found >= 0:
            start = max(start, found + len(mark))
    return start


def associate_explanations(
    samples: list[SampleTest],
    explanation: str | None,
    images: list[str] | None = None,
) -> list[SampleTest]:
    """Attach a separately published explanation block to the samples.

    The text is split at the sentence holding the first reference to each
    sample ("first", "second", "Example 2", "test case 3", ...) when those
    references appear in increasing order. Any other situation attaches the
    whole block to the first sample. Nothing is ever dropped.

    Args:
        samples: Samples in source order.
        explanation: Explanation text, already normalized.
        images: Image URLs found in the explanation block.

    Returns:
        New list of samples with explanations attached.
    """
    explanation = (explanation or "").strip()
    if not samples or (not explanation and not images):
        return list(samples)

    segments: dict[int, str] = {}
    references = _reference_positions(explanation, len(samples)) if len(samples) > 1 else []
    indices = [index for _, index in references]

    if len(references) >= 2 and indices == sorted(indices):
        starts = [0]
        for position, _ in references[1:]:
            starts.append(max(starts[-1], _sentence_start(explanation, position)))
        starts.append(len(explanation))
        for i, (_, index) in enumerate(references):
            segments[index] = explanation[starts[i] : starts[i + 1]].strip()
    elif len(references) == 1:
        segments[references[0][1]] = explanation
    else:
        if len(samples) > 1 and explanation:
            logger.debug("Explanation references are ambiguous, attaching to the first sample")
        segments[0] = explanation

    image_target = min(segments) if segments else 0
    result: list[SampleTest] = []
    for index, sample in enumerate(samples):
        update: dict[str, object] = {}
        segment = segments.get(index)
        if segment:
            update["explanation"] = (
                f"{sample.explanation}\n\n{segment}" if sample.explanation else segment
            )
        if images and index == image_target:
            update["images"] = list(dict.fromkeys([*sample.images, *images]))
        result.append(sample.model_copy(update=update) if update else sample)
    return result


def explanation_images(fragment: Tag | None, base_url: str) -> list[str]:
    """Collect absolute image URLs from an explanation fragment."""
    if fragment is None:
        return []
    images: list[str] = []
    for img in fragment.select("img[src]"):
        src = urljoin(base_url, str(img["src"]).strip())
        if src and src not in images:
            images.append(src)
    return images
