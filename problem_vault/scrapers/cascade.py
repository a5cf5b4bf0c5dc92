"""Layered selector fallback.

Each field of a problem page is located by an ordered list of strategies,
most specific first. The first strategy producing non-empty, accepted content
wins; a strategy that raises simply did not match.
"""

import logging
import re
from collections.abc import Callable
from typing import Any, NamedTuple

logger = logging.getLogger(__name__)

JAPANESE_RE = re.compile(r"[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")


class Strategy(NamedTuple):
    """Named field-location strategy."""

    name: str
    func: Callable[[Any], Any]


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple | dict):
        return not value
    return False


def first_match(
    root: Any,
    strategies: list[Strategy],
    field: str,
    accept: Callable[[Any], bool] | None = None,
    log: logging.Logger | None = None,
) -> Any:
    """Run strategies in order and return the first usable result.

    Args:
        root: Object handed to every strategy (usually a BeautifulSoup tree).
        strategies: Strategies in order of specificity.
        field: Field name, used in log messages.
        accept: Extra predicate a result must satisfy, e.g. a language filter.
        log: Logger to report decisions to, defaults to this module's.

    Returns:
        First non-empty accepted result, None when every strategy failed.
    """
    log = log or logger
    for strategy in strategies:
        try:
            value = strategy.func(root)
        except Exception as e:
            log.debug(f"{field}: strategy '{strategy.name}' raised {e!r}")
            continue

        if _is_empty(value):
            continue
        if accept is not None and not accept(value):
            log.debug(f"{field}: strategy '{strategy.name}' result rejected")
            continue

        log.debug(f"{field}: matched by strategy '{strategy.name}'")
        return value

    log.debug(f"{field}: no strategy matched")
    return None


def has_japanese(text: str | None) -> bool:
    """Check whether text contains Japanese script."""
    return bool(text) and JAPANESE_RE.search(text) is not None


def not_japanese(value: Any) -> bool:
    """accept= predicate rejecting candidates with Japanese text."""
    if isinstance(value, str):
        return not has_japanese(value)
    text = getattr(value, "get_text", None)
    if callable(text):
        return not has_japanese(text())
    return True
