"""Persistence collaborator interface.

The extraction core never writes storage itself. Callers hand records to a
ProblemStore; the in-memory implementation backs the CLI and the tests.
"""

import asyncio
import logging
from typing import Protocol

from ..models import ProblemRecord
from .url_canonicalizer import canonicalize

logger = logging.getLogger(__name__)


class ProblemStore(Protocol):
    """Record store keyed by record id and canonical URL."""

    async def find_by_canonical_url(self, canonical_url: str) -> ProblemRecord | None:
        ...

    async def find_by_id(self, problem_id: str) -> ProblemRecord | None:
        ...

    async def upsert(self, record: ProblemRecord) -> ProblemRecord:
        """Insert or overwrite the stored copy of a record.

        Returns:
            The stored record.
        """
        ...


class InMemoryProblemStore:
    """Dictionary-backed ProblemStore."""

    def __init__(self) -> None:
        self._records: dict[str, ProblemRecord] = {}
        self._lock = asyncio.Lock()

    async def find_by_canonical_url(self, canonical_url: str) -> ProblemRecord | None:
        target = canonicalize(canonical_url)
        for record in self._records.values():
            if canonicalize(record.url) == target:
                return record
        return None

    async def find_by_id(self, problem_id: str) -> ProblemRecord | None:
        return self._records.get(problem_id)

    async def upsert(self, record: ProblemRecord) -> ProblemRecord:
        async with self._lock:
            existing = self._records.get(record.id)
            if existing is not None:
                # Keep the original creation time on re-extraction
                record = record.model_copy(update={"created_at": existing.created_at})
                logger.debug(f"Overwriting stored record {record.id}")
            self._records[record.id] = record
        return record

    def __len__(self) -> int:
        return len(self._records)
