"""Global test configuration and fixtures.

Provides fixture pages, a fake browser session manager and a fake aiohttp
session factory so extractors can be exercised without network access or a
real browser.
"""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def test_environment():
    """Keep environment-driven settings from leaking into tests."""
    keys = ("BROWSER_BACKEND", "CHROMIUM_EXECUTABLE_PATH", "AWS_LAMBDA_FUNCTION_NAME", "VERCEL")
    original_env = {key: os.environ.pop(key, None) for key in keys}

    yield

    for key, original_value in original_env.items():
        if original_value is not None:
            os.environ[key] = original_value


@pytest.fixture
def load_fixture():
    """Read a file from tests/fixtures."""

    def _load(name: str) -> str:
        return (FIXTURES_DIR / name).read_text(encoding="utf-8")

    return _load


class FakeSessionManager:
    """Stands in for BrowserSessionManager with one scripted browsing context."""

    def __init__(
        self,
        html: str = "",
        status: int | None = 200,
        snapshot: Any = None,
        evaluate_error: Exception | None = None,
    ) -> None:
        self.ctx = MagicMock()
        self.ctx.navigate = AsyncMock(return_value=status)
        self.ctx.wait_for = AsyncMock(return_value=True)
        self.ctx.settle = AsyncMock()
        self.ctx.content = AsyncMock(return_value=html)
        self.ctx.evaluate = AsyncMock(return_value=snapshot, side_effect=evaluate_error)
        self.contexts_opened = 0
        self.contexts_closed = 0

    @asynccontextmanager
    async def context(self) -> AsyncIterator[MagicMock]:
        self.contexts_opened += 1
        try:
            yield self.ctx
        finally:
            self.contexts_closed += 1


@pytest.fixture
def fake_session_manager():
    """Factory for FakeSessionManager instances."""
    return FakeSessionManager


def make_session_factory(status: int = 200, text: str = "", error: Exception | None = None):
    """Build a session_factory whose sessions answer every request the same way.

    The returned factory is a MagicMock, so tests can assert on how many
    sessions were created and which requests were made.
    """
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)

    request = MagicMock()
    if error is not None:
        request.__aenter__.side_effect = error
    else:
        request.__aenter__.return_value = response

    session = MagicMock()
    session.get = MagicMock(return_value=request)
    session.post = MagicMock(return_value=request)

    session_cm = MagicMock()
    session_cm.__aenter__.return_value = session

    factory = MagicMock(return_value=session_cm)
    factory.session = session
    return factory


@pytest.fixture
def session_factory():
    """Factory for fake aiohttp session factories."""
    return make_session_factory
