"""Services package.

Shared infrastructure used by the extractors: the headless browser session
manager and its automation backends, plain HTTP access, math-markup
normalization, URL canonicalization and the problem store interface.
"""
