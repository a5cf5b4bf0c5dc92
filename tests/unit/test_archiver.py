"""Tests for the archive flow on top of the dispatcher and store."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from problem_vault.errors import ErrorKind, SourceNotFoundError, UnsupportedPlatformError
from problem_vault.models import Platform, ProblemRecord, SampleTest
from problem_vault.pipeline.archiver import ProblemArchiver
from problem_vault.pipeline.messages import (
    ERROR_MESSAGES,
    ERROR_UNEXPECTED,
    PROBLEM_ALREADY_ARCHIVED,
    PROBLEM_ARCHIVED,
)
from problem_vault.services.problem_store import InMemoryProblemStore

URL = "https://codeforces.com/problemset/problem/158/A"


def make_record(url: str = URL, title: str = "Next Round") -> ProblemRecord:
    return ProblemRecord(
        source=Platform.CODEFORCES,
        source_problem_id="158A",
        url=url,
        title=title,
        description="Contestants advance.",
        sample_tests=[SampleTest(input="8 5", output="6")],
    )


def make_archiver(record=None, error=None, store=None):
    dispatcher = MagicMock()
    dispatcher.dispatch = AsyncMock(return_value=record, side_effect=error)
    store = store if store is not None else InMemoryProblemStore()
    return ProblemArchiver(dispatcher, store), dispatcher


class TestProblemArchiver:
    @pytest.mark.asyncio
    async def test_new_problem_is_stored(self):
        store = InMemoryProblemStore()
        archiver, dispatcher = make_archiver(make_record(), store=store)

        result = await archiver.archive(f"  {URL}  ")

        assert result["success"] is True
        assert result["from_store"] is False
        assert result["message"] == PROBLEM_ARCHIVED
        assert result["platform"] == "codeforces"
        assert result["url"] == URL
        assert result["record"].id == "codeforces-158A"
        assert result["error"] is None
        assert result["processing_time_ms"] >= 0
        assert await store.find_by_id("codeforces-158A") is not None
        dispatcher.dispatch.assert_awaited_once_with(URL)

    @pytest.mark.asyncio
    async def test_known_url_skips_extraction(self):
        store = InMemoryProblemStore()
        stored = await store.upsert(make_record())
        archiver, dispatcher = make_archiver(make_record(), store=store)

        result = await archiver.archive(f"{URL}/?locale=en#statement")

        assert result["success"] is True
        assert result["from_store"] is True
        assert result["message"] == PROBLEM_ALREADY_ARCHIVED
        assert result["record"] is stored
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_known_id_under_another_url(self):
        store = InMemoryProblemStore()
        stored = await store.upsert(make_record())
        contest_url = "https://codeforces.com/contest/158/problem/A"
        archiver, dispatcher = make_archiver(make_record(url=contest_url), store=store)

        result = await archiver.archive(contest_url)

        assert result["from_store"] is True
        assert result["record"] is stored
        dispatcher.dispatch.assert_awaited_once()
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_extraction_error_is_reported(self):
        archiver, _ = make_archiver(error=SourceNotFoundError("gone", url=URL))

        result = await archiver.archive(URL)

        assert result["success"] is False
        assert result["record"] is None
        assert result["error"] == ERROR_MESSAGES[ErrorKind.SOURCE_NOT_FOUND]
        assert result["error_kind"] == "source_not_found"
        assert "gone" not in result["error"]

    @pytest.mark.asyncio
    async def test_unsupported_platform(self):
        archiver, _ = make_archiver(
            error=UnsupportedPlatformError("Unsupported platform", url="https://example.com/p/1")
        )

        result = await archiver.archive("https://example.com/p/1")

        assert result["platform"] == "unknown"
        assert result["error_kind"] == "unsupported_platform"

    @pytest.mark.asyncio
    async def test_store_failure_is_unexpected(self):
        store = MagicMock()
        store.find_by_canonical_url = AsyncMock(side_effect=ConnectionError("db down"))
        archiver, _ = make_archiver(make_record(), store=store)

        result = await archiver.archive(URL)

        assert result["success"] is False
        assert result["error"] == ERROR_UNEXPECTED
        assert result["error_kind"] is None
