"""Typed structures shared across pipeline components."""

from __future__ import annotations

from typing import TypedDict

from ..models import ProblemRecord


class ArchiveResult(TypedDict, total=False):
    """Outcome of archiving one problem URL."""

    success: bool
    url: str
    canonical_url: str
    platform: str
    record: ProblemRecord | None
    from_store: bool
    error: str | None
    error_kind: str | None
    message: str | None
    processing_time_ms: int
