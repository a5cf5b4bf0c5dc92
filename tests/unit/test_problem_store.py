"""Tests for the in-memory problem store and the record model."""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from problem_vault.models import Platform, ProblemRecord, SampleTest, make_problem_id
from problem_vault.services.problem_store import InMemoryProblemStore


def make_record(**overrides) -> ProblemRecord:
    values = {
        "source": Platform.ATCODER,
        "source_problem_id": "abc300-abc300_a",
        "url": "https://atcoder.jp/contests/abc300/tasks/abc300_a",
        "title": "N-choice question",
    }
    values.update(overrides)
    return ProblemRecord(**values)


class TestInMemoryProblemStore:
    @pytest.mark.asyncio
    async def test_lookup_by_id_and_url(self):
        store = InMemoryProblemStore()
        record = await store.upsert(make_record())

        assert await store.find_by_id("atcoder-abc300-abc300_a") is record
        assert (
            await store.find_by_canonical_url("https://atcoder.jp/contests/abc300/tasks/abc300_a/")
            is record
        )
        assert await store.find_by_id("atcoder-missing") is None
        missing_url = "https://atcoder.jp/contests/abc301/tasks/abc301_a"
        assert await store.find_by_canonical_url(missing_url) is None

    @pytest.mark.asyncio
    async def test_upsert_keeps_creation_time(self):
        store = InMemoryProblemStore()
        first = await store.upsert(
            make_record(created_at=datetime.now(UTC) - timedelta(days=3))
        )

        second = await store.upsert(make_record(title="N-choice question (revised)"))

        assert len(store) == 1
        assert second.title == "N-choice question (revised)"
        assert second.created_at == first.created_at
        assert second.updated_at > first.created_at


class TestProblemRecord:
    def test_id_is_derived(self):
        record = make_record()
        assert record.id == "atcoder-abc300-abc300_a"
        assert make_problem_id(Platform.LEETCODE, "two-sum") == "leetcode-two-sum"

    def test_json_shape_is_camel_case(self):
        record = make_record(
            sample_tests=[SampleTest(input="1 2", output="3", explanation="1+2=3")],
            input_format="A B",
        )

        data = record.to_json_dict()

        assert data["id"] == "atcoder-abc300-abc300_a"
        assert data["source"] == "atcoder"
        assert data["sourceProblemId"] == "abc300-abc300_a"
        assert data["inputFormat"] == "A B"
        assert data["sampleTests"] == [
            {"input": "1 2", "output": "3", "explanation": "1+2=3", "images": []}
        ]
        assert isinstance(data["createdAt"], str)
        assert "source_problem_id" not in data

    def test_records_are_immutable(self):
        record = make_record()
        with pytest.raises(ValidationError):
            record.title = "changed"

    @pytest.mark.parametrize("field", ["input", "output"])
    def test_sample_sides_must_not_be_blank(self, field):
        values = {"input": "1", "output": "2", field: "  \n"}
        with pytest.raises(ValidationError):
            SampleTest(**values)
