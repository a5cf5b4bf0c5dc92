"""Tests for the layered selector fallback."""

from problem_vault.scrapers.cascade import Strategy, first_match, has_japanese, not_japanese


def _boom(_):
    raise AttributeError("'NoneType' object has no attribute 'get_text'")


def test_first_non_empty_result_wins():
    strategies = [
        Strategy("none", lambda _: None),
        Strategy("blank", lambda _: "   "),
        Strategy("empty-list", lambda _: []),
        Strategy("real", lambda root: root.upper()),
        Strategy("later", lambda _: "never"),
    ]
    assert first_match("title", strategies, "title") == "TITLE"


def test_raising_strategy_is_skipped():
    strategies = [Strategy("broken", _boom), Strategy("fallback", lambda _: "ok")]
    assert first_match(None, strategies, "title") == "ok"


def test_accept_predicate_rejects_candidates():
    strategies = [Strategy("ja", lambda _: "足し算"), Strategy("en", lambda _: "Addition")]
    assert first_match(None, strategies, "title", accept=not_japanese) == "Addition"


def test_no_match_returns_none():
    assert first_match(None, [Strategy("broken", _boom)], "title") is None
    assert first_match(None, [], "title") is None


def test_has_japanese():
    assert has_japanese("問題文")
    assert has_japanese("ひらがな")
    assert has_japanese("カタカナ")
    assert not has_japanese("Problem Statement")
    assert not has_japanese("")
    assert not has_japanese(None)
