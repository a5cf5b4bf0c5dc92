"""Problem Vault extraction core.

Archives competitive-programming problems from Codeforces, AtCoder, CodeChef
and LeetCode into one uniform ProblemRecord so that solutions and notes can be
tracked against it.

The package is organised around the extraction pipeline:
- Platform detection and dispatch to a source-specific extractor
- Source extractors with layered selector fallbacks
- A shared headless-browser session manager for rendered sources
- Math markup normalization for formula-heavy statements
- URL canonicalization for duplicate detection
"""

__version__ = "0.1.0"
