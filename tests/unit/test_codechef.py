"""Tests for the CodeChef extractor."""

import pytest
from bs4 import BeautifulSoup

from problem_vault.errors import ExtractionFailedError, InvalidUrlFormatError
from problem_vault.models import Platform
from problem_vault.scrapers.codechef import CodeChefExtractor, CodeChefSnapshot
from problem_vault.services.browser_session import PageEvaluationError

URL = "https://www.codechef.com/problems/CANDYSPLIT"


def _snapshot_from_fixture(html: str) -> dict:
    soup = BeautifulSoup(html, "html.parser")
    statement = soup.select_one("#problem-statement")
    return {
        "title": "Chef and Candies",
        "statementHtml": statement.decode_contents(),
        "difficulty": "1200",
        "tags": ["Math", "Greedy"],
    }


class TestIdentifiers:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://www.codechef.com/problems/CANDYSPLIT", "CANDYSPLIT"),
            ("https://www.codechef.com/problems/candysplit/", "CANDYSPLIT"),
            ("https://www.codechef.com/START100A/problems/FLOW001", "FLOW001"),
        ],
    )
    def test_parse_identifier(self, url, expected):
        assert CodeChefExtractor().parse_identifier(url) == expected

    def test_invalid_url(self):
        with pytest.raises(InvalidUrlFormatError):
            CodeChefExtractor().parse_identifier("https://www.codechef.com/practice")


class TestParsePage:
    def test_rendered_page(self, load_fixture):
        record = CodeChefExtractor().parse_page(load_fixture("codechef_problem.html"), URL)

        assert record.source is Platform.CODECHEF
        assert record.id == "codechef-CANDYSPLIT"
        assert record.title == "Chef and Candies"
        assert "Chef has $N$ candies" in record.description
        assert "$K$ friends" in record.description
        assert "Chef and Candies" not in record.description
        assert "Input Format" not in record.description
        assert "YES" not in record.description
        assert "Test case 1" not in record.description
        assert record.input_format.startswith("The first line contains a single integer T")
        assert record.output_format.startswith("For each test case, output YES")
        assert [line for line in record.constraints.splitlines() if line] == [
            "1 ≤ T ≤ 100",
            "1 ≤ N, K ≤ 10^9",
        ]
        assert record.difficulty == "1200"
        assert record.tags == ["Math", "Greedy"]

    def test_samples_from_io_table(self, load_fixture):
        record = CodeChefExtractor().parse_page(load_fixture("codechef_problem.html"), URL)

        assert len(record.sample_tests) == 1
        sample = record.sample_tests[0]
        assert sample.input == "2\n6 3\n5 2"
        assert sample.output == "YES\nNO"
        assert "Test case 1: Chef gives 2 candies to each friend." in sample.explanation
        assert "Test case 2:" in sample.explanation

    def test_positional_fallback(self):
        html = (
            '<div id="problem-statement"><h3>Echo</h3><p>Print the input.</p>'
            "<pre>hello</pre><pre>hello</pre><pre>world</pre><pre>world</pre></div>"
        )
        record = CodeChefExtractor().parse_page(html, URL)
        assert [(s.input, s.output) for s in record.sample_tests] == [
            ("hello", "hello"),
            ("world", "world"),
        ]

    def test_empty_page_fails_extraction(self, load_fixture):
        with pytest.raises(ExtractionFailedError):
            CodeChefExtractor().parse_page(load_fixture("empty_page.html"), URL)


class TestSnapshot:
    def test_snapshot_model_aliases(self):
        snapshot = CodeChefSnapshot.model_validate({"statementHtml": "<p>x</p>"})
        assert snapshot.statement_html == "<p>x</p>"
        assert snapshot.tags == []

    def test_parse_snapshot_matches_page_parsing(self, load_fixture):
        html = load_fixture("codechef_problem.html")
        snapshot = CodeChefSnapshot.model_validate(_snapshot_from_fixture(html))

        from_snapshot = CodeChefExtractor().parse_snapshot(snapshot, URL)
        from_page = CodeChefExtractor().parse_page(html, URL)

        assert from_snapshot.title == from_page.title
        assert from_snapshot.sample_tests == from_page.sample_tests
        assert from_snapshot.input_format == from_page.input_format
        assert from_snapshot.tags == ["Math", "Greedy"]


class TestExtract:
    @pytest.mark.asyncio
    async def test_uses_in_page_snapshot(self, load_fixture, fake_session_manager):
        html = load_fixture("codechef_problem.html")
        manager = fake_session_manager(snapshot=_snapshot_from_fixture(html))

        record = await CodeChefExtractor(session_manager=manager).extract(URL)

        assert record.title == "Chef and Candies"
        assert record.sample_tests[0].output == "YES\nNO"
        manager.ctx.evaluate.assert_awaited_once()
        manager.ctx.content.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_back_to_rendered_html(self, load_fixture, fake_session_manager):
        manager = fake_session_manager(
            html=load_fixture("codechef_problem.html"),
            evaluate_error=PageEvaluationError("In-page evaluation timed out after 10.0s"),
        )

        record = await CodeChefExtractor(session_manager=manager).extract(URL)

        assert record.title == "Chef and Candies"
        manager.ctx.content.assert_awaited_once()
        assert manager.contexts_closed == 1

    @pytest.mark.asyncio
    async def test_empty_snapshot_falls_back_to_rendered_html(self, load_fixture, fake_session_manager):
        manager = fake_session_manager(
            html=load_fixture("codechef_problem.html"),
            snapshot={"title": "", "statementHtml": "", "difficulty": "", "tags": []},
        )

        record = await CodeChefExtractor(session_manager=manager).extract(URL)

        assert record.difficulty == "1200"
        manager.ctx.content.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_malformed_snapshot_falls_back(self, load_fixture, fake_session_manager):
        manager = fake_session_manager(
            html=load_fixture("codechef_problem.html"), snapshot={"tags": "not-a-list"}
        )

        record = await CodeChefExtractor(session_manager=manager).extract(URL)

        assert record.title == "Chef and Candies"

    @pytest.mark.asyncio
    async def test_structurally_empty_page(self, load_fixture, fake_session_manager):
        manager = fake_session_manager(html=load_fixture("empty_page.html"), snapshot={})

        with pytest.raises(ExtractionFailedError):
            await CodeChefExtractor(session_manager=manager).extract(URL)
