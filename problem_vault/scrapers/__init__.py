"""Problem extractors package.

Contains source-specific extractors that turn a problem URL into a
ProblemRecord, plus the shared building blocks they are made of:

- ExtractorProtocol / BaseExtractor: unified extractor interface
- ExtractorRegistry: platform to extractor lookup used by the dispatcher
- cascade: ordered selector fallback strategies
- samples: sample test pairing and explanation association
"""

from .atcoder import AtCoderExtractor
from .base import BaseExtractor, ExtractorProtocol, ExtractorRegistry
from .codechef import CodeChefExtractor
from .codeforces import CodeforcesExtractor
from .leetcode import LeetCodeExtractor

__all__ = [
    "AtCoderExtractor",
    "BaseExtractor",
    "CodeChefExtractor",
    "CodeforcesExtractor",
    "ExtractorProtocol",
    "ExtractorRegistry",
    "LeetCodeExtractor",
]
