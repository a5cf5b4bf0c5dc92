"""Canonical form of problem URLs.

Two URLs that point at the same problem should compare equal after
canonicalize(): trailing slashes, query strings, fragments and LeetCode's
"/description" tab suffix are dropped. Anything that cannot be parsed is
returned unchanged so the caller can still report a sensible error.
"""

import logging
import re
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)

LEETCODE_DESCRIPTION_SUFFIX = re.compile(r"(?:/description)+/?$", re.IGNORECASE)


def canonicalize(url: str) -> str:
    """Reduce a problem URL to its canonical form.

    Args:
        url: Absolute problem URL as supplied by a user.

    Returns:
        Scheme, host and path with trailing slashes removed, query and
        fragment dropped and the LeetCode description suffix stripped. The
        input unchanged when it is not an absolute http(s) URL.
    """
    candidate = url.strip()
    try:
        parts = urlsplit(candidate)
    except ValueError:
        logger.debug(f"Cannot parse URL for canonicalization: {url!r}")
        return url

    if parts.scheme not in ("http", "https") or not parts.netloc:
        return url

    path = parts.path
    host = parts.netloc.lower()
    if "leetcode" in host:
        path = LEETCODE_DESCRIPTION_SUFFIX.sub("", path.rstrip("/"))
    path = path.rstrip("/")

    return urlunsplit((parts.scheme.lower(), host, path, "", ""))


def same_problem_url(first: str, second: str) -> bool:
    """Check whether two URLs canonicalize to the same address."""
    return canonicalize(first) == canonicalize(second)
