"""Archiving pipeline package.

Routes problem URLs to the matching source extractor and coordinates the
duplicate check against the problem store before and after extraction.
"""

from .archiver import ProblemArchiver
from .dispatcher import PLATFORM_HOSTS, ProblemDispatcher, detect_platform, parse_problem

__all__ = [
    "PLATFORM_HOSTS",
    "ProblemArchiver",
    "ProblemDispatcher",
    "detect_platform",
    "parse_problem",
]
