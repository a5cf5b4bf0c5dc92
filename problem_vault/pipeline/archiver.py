"""Archive orchestration: duplicate check, extraction and persistence."""

import logging
from datetime import datetime

from ..errors import ProblemVaultError
from ..models import ProblemRecord
from ..services.problem_store import ProblemStore
from ..services.url_canonicalizer import canonicalize
from .dispatcher import ProblemDispatcher, detect_platform
from .messages import (
    ERROR_UNEXPECTED,
    PROBLEM_ALREADY_ARCHIVED,
    PROBLEM_ARCHIVED,
    error_message,
)
from .types import ArchiveResult

logger = logging.getLogger(__name__)


class ProblemArchiver:
    """Archives problems into a store, skipping extraction for known ones.

    Flow per URL: canonicalize, look the canonical URL up in the store,
    extract through the dispatcher, look the record id up in the store, and
    finally upsert. Either lookup hit returns the stored record.
    """

    def __init__(self, dispatcher: ProblemDispatcher, store: ProblemStore) -> None:
        self.dispatcher = dispatcher
        self.store = store

    async def archive(self, url: str) -> ArchiveResult:
        """Archive one problem URL.

        Args:
            url: Problem URL as supplied by the user.

        Returns:
            Archive result; errors are reported in it, never raised.
        """
        start_time = datetime.now()
        url = url.strip()
        canonical_url = canonicalize(url)
        platform = detect_platform(url)

        result: ArchiveResult = {
            "success": False,
            "url": url,
            "canonical_url": canonical_url,
            "platform": platform.value if platform else "unknown",
            "record": None,
            "from_store": False,
            "error": None,
            "error_kind": None,
            "message": None,
            "processing_time_ms": 0,
        }

        try:
            existing = await self.store.find_by_canonical_url(canonical_url)
            if existing is not None:
                logger.info(f"Problem already archived for {canonical_url}: {existing.id}")
                self._mark_stored(result, existing)
                return result

            logger.info(f"Parsing problem from URL: {url}")
            record = await self.dispatcher.dispatch(url)
            logger.info(f"Successfully parsed problem: {record.title}")

            existing = await self.store.find_by_id(record.id)
            if existing is not None:
                logger.info(f"Problem {record.id} already archived under another URL")
                self._mark_stored(result, existing)
                return result

            saved = await self.store.upsert(record)
            result["success"] = True
            result["record"] = saved
            result["message"] = PROBLEM_ARCHIVED

        except ProblemVaultError as e:
            logger.error(f"Failed to archive {url} ({e.kind.value}): {e}")
            result["error"] = error_message(e.kind)
            result["error_kind"] = e.kind.value

        except Exception as e:
            logger.error(f"Failed to archive {url}: {e}")
            result["error"] = ERROR_UNEXPECTED

        finally:
            elapsed = datetime.now() - start_time
            result["processing_time_ms"] = int(elapsed.total_seconds() * 1000)

        return result

    @staticmethod
    def _mark_stored(result: ArchiveResult, record: ProblemRecord) -> None:
        result["success"] = True
        result["record"] = record
        result["from_store"] = True
        result["message"] = PROBLEM_ALREADY_ARCHIVED
