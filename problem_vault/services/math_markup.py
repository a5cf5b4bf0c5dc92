"""Math-markup normalizer.

Problem statements reach us with formulas in whatever state the source's
client-side renderer left them: MathJax v2 (original TeX kept in a
``script[type="math/tex"]`` next to the rendered frame), MathJax v3
(``mjx-container`` without preserved source), KaTeX (TeX kept in a MathML
annotation) or raw TeX inside ``<var>`` elements. Every engine also injects an
assistive copy of each formula for screen readers.

The normalizer reduces all of that to portable ``$...$`` / ``$$...$$`` markup,
deletes the assistive duplicates so no formula appears twice, and either
linearizes the fragment to plain text (normalize) or keeps its HTML structure
(normalize_html).
"""

import copy
import logging
import re
from typing import Any

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

logger = logging.getLogger(__name__)

MATHJAX_SCRIPT_SELECTOR = 'script[type^="math/tex"]'
MATHJAX_V2_FRAME_SELECTOR = (
    "span.MathJax, div.MathJax_Display, span.MathJax_SVG, div.MathJax_SVG_Display, "
    "span.MathJax_CHTML, div.MathJax_CHTML_Display"
)
MATHJAX_PREVIEW_SELECTOR = ".MathJax_Preview"
ASSISTIVE_SELECTORS = (
    ".MJX_Assistive_MathML, mjx-assistive-mml, .katex-mathml, "
    ".sr-only, .visually-hidden, .MathJax_Assistive_MathML"
)
TEX_ANNOTATION_SELECTOR = 'annotation[encoding="application/x-tex"]'

BLOCK_TAGS = frozenset(
    {
        "address", "article", "aside", "blockquote", "dd", "div", "dl", "dt",
        "figcaption", "figure", "footer", "h1", "h2", "h3", "h4", "h5", "h6",
        "header", "hr", "li", "main", "nav", "ol", "p", "pre", "section",
        "table", "tbody", "thead", "tfoot", "tr", "ul", "center",
    }
)
SKIPPED_TAGS = frozenset({"script", "style", "noscript", "template", "button"})
# Superscripts and subscripts attach to the preceding token
SCRIPT_TAGS = {"sup": "^", "sub": "_"}

_SIX_DOLLARS = re.compile(r"\$\$\$\$\$\$(.+?)\$\$\$\$\$\$", re.DOTALL)
_THREE_DOLLARS = re.compile(r"\$\$\$(.+?)\$\$\$", re.DOTALL)


def collapse_triple_dollars(text: str) -> str:
    """Rewrite the ``$$$x$$$`` inline convention to standard delimiters.

    ``$$$$$$x$$$$$$`` becomes ``$$x$$`` and ``$$$x$$$`` becomes ``$x$``.
    """
    text = _SIX_DOLLARS.sub(lambda m: f"$${m.group(1)}$$", text)
    return _THREE_DOLLARS.sub(lambda m: f"${m.group(1)}$", text)


def wrap_tex(tex: str, display: bool = False) -> str:
    """Wrap TeX source in inline or block delimiters."""
    tex = tex.strip()
    if not tex:
        return ""
    if tex.startswith("$") and tex.endswith("$"):
        return tex
    return f"$${tex}$$" if display else f"${tex}$"


class MathMarkupNormalizer:
    """Reduces rendered formulas in HTML fragments to portable markup."""

    def normalize(self, fragment: Tag | str) -> str:
        """Normalize formulas and linearize a fragment to plain text.

        Args:
            fragment: BeautifulSoup element or HTML string. Elements are
                copied, the caller's tree is never modified.

        Returns:
            Text with formulas as $...$ / $$...$$ and whitespace restored at
            tag boundaries.
        """
        root = self._prepare(fragment)
        if root is None:
            return ""
        return collapse_triple_dollars(_tidy_text(_linearize(root)))

    def normalize_html(self, fragment: Tag | str) -> str:
        """Normalize formulas but keep the fragment's HTML structure.

        Returns:
            Inner HTML of the fragment with formulas reduced to delimited TeX.
        """
        root = self._prepare(fragment)
        if root is None:
            return ""
        for node in root.select(", ".join(SKIPPED_TAGS)):
            node.decompose()
        html = "".join(str(child) for child in root.contents)
        return collapse_triple_dollars(html).strip()

    def _prepare(self, fragment: Tag | str | None) -> Tag | None:
        if fragment is None:
            return None
        if isinstance(fragment, str):
            root: Tag = BeautifulSoup(fragment, "html.parser")
        else:
            root = copy.copy(fragment)

        self._replace_mathjax_v2(root)
        self._replace_katex(root)
        self._replace_mathjax_v3(root)
        for node in root.select(ASSISTIVE_SELECTORS):
            node.decompose()
        self._replace_var_elements(root)
        return root

    def _replace_mathjax_v2(self, root: Tag) -> None:
        for preview in root.select(MATHJAX_PREVIEW_SELECTOR):
            preview.decompose()

        for frame in root.select(MATHJAX_V2_FRAME_SELECTOR):
            if frame.decomposed or frame.parent is None:
                continue
            sibling = frame.find_next_sibling()
            if (
                isinstance(sibling, Tag)
                and sibling.name == "script"
                and str(sibling.get("type", "")).startswith("math/tex")
            ):
                frame.decompose()
                continue
            # Rendered frame without its source script
            display = "Display" in " ".join(frame.get("class", []))
            self._safe_replace(frame, lambda el, d=display: wrap_tex(_assistive_text(el), d))

        for script in root.select(MATHJAX_SCRIPT_SELECTOR):
            display = "mode=display" in str(script.get("type", ""))
            self._safe_replace(script, lambda el, d=display: wrap_tex(el.string or el.get_text(), d))

    def _replace_katex(self, root: Tag) -> None:
        for katex in root.select(".katex"):
            display_parent = katex.find_parent(class_="katex-display")
            target = display_parent if display_parent is not None else katex
            if target.parent is None:
                continue

            def render(el: Tag, source: Tag = katex, display: bool = display_parent is not None) -> str:
                annotation = source.select_one(TEX_ANNOTATION_SELECTOR)
                if annotation is not None:
                    return wrap_tex(annotation.get_text(), display)
                html_part = source.select_one(".katex-html")
                return wrap_tex((html_part or source).get_text(), display)

            self._safe_replace(target, render)

    def _replace_mathjax_v3(self, root: Tag) -> None:
        for container in root.select("mjx-container"):
            if container.parent is None:
                continue
            display = str(container.get("display", "")).lower() == "true"
            self._safe_replace(container, lambda el, d=display: wrap_tex(_v3_source(el), d))

    def _replace_var_elements(self, root: Tag) -> None:
        for var in root.select("var"):
            text = var.get_text()
            stripped = text.strip()
            if not stripped:
                var.decompose()
            elif stripped.startswith("$"):
                var.replace_with(stripped)
            else:
                self._safe_replace(var, lambda el, s=stripped: wrap_tex(s))

    def _safe_replace(self, element: Tag, render: Any) -> None:
        """Replace a formula element, falling back to its raw delimited text."""
        try:
            replacement = render(element)
        except Exception as e:
            logger.debug(f"Formula extraction failed for <{element.name}>: {e}")
            raw = element.get_text().strip()
            replacement = f"${raw}$" if raw else ""
        element.replace_with(NavigableString(replacement))


def _assistive_text(element: Tag) -> str:
    assistive = element.select_one(".MJX_Assistive_MathML, .MathJax_Assistive_MathML")
    if assistive is not None:
        annotation = assistive.select_one(TEX_ANNOTATION_SELECTOR)
        if annotation is not None:
            return annotation.get_text()
        return assistive.get_text()
    return element.get_text()


def _v3_source(container: Tag) -> str:
    for attribute in ("data-latex", "aria-label"):
        value = container.get(attribute)
        if value:
            return str(value)

    assistive = container.select_one("mjx-assistive-mml")
    if assistive is not None:
        annotation = assistive.select_one(TEX_ANNOTATION_SELECTOR)
        if annotation is not None:
            return annotation.get_text()

    visible = copy.copy(container)
    for node in visible.select("mjx-assistive-mml"):
        node.decompose()
    return visible.get_text()


def _linearize(node: Tag) -> str:
    """Flatten a tree to text, separating content at tag boundaries."""
    parts: list[str] = []
    for child in node.children:
        if isinstance(child, PreformattedString):
            continue
        if isinstance(child, NavigableString):
            parts.append(str(child))
            continue
        if not isinstance(child, Tag) or child.name in SKIPPED_TAGS:
            continue
        if child.name == "br":
            parts.append("\n")
            continue
        if child.name == "pre":
            parts.append("\n" + child.get_text() + "\n")
            continue
        if child.name in SCRIPT_TAGS:
            inner = _linearize(child).strip()
            if inner:
                mark = SCRIPT_TAGS[child.name]
                parts.append(f"{mark}{inner}" if len(inner) == 1 else f"{mark}{{{inner}}}")
            continue

        inner = _linearize(child)
        if child.name in BLOCK_TAGS:
            parts.append("\n" + inner + "\n")
        else:
            parts.append(" " + inner + " ")
    return "".join(parts)


def _tidy_text(text: str) -> str:
    text = text.replace("\u00a0", " ")
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r" +([,.;:!?)\]])", r"\1", text)
    text = re.sub(r"([(\[]) +", r"\1", text)
    return text.strip()


default_normalizer = MathMarkupNormalizer()


def normalize(fragment: Tag | str) -> str:
    """Normalize a fragment to text using the default normalizer."""
    return default_normalizer.normalize(fragment)


def normalize_html(fragment: Tag | str) -> str:
    """Normalize a fragment keeping HTML using the default normalizer."""
    return default_normalizer.normalize_html(fragment)
