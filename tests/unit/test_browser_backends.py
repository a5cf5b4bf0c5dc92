"""Tests for automation backend selection."""

import pytest

from problem_vault.config import BrowserConfig
from problem_vault.services.browser_backends import (
    BundledChromiumBackend,
    _needs_browser_install,
    is_serverless,
    select_backends,
)


def _names(backends):
    return [backend.name for backend in backends]


def test_auto_prefers_driver():
    assert _names(select_backends(BrowserConfig(backend="auto"), environ={})) == ["driver"]


def test_auto_keeps_bundled_fallback_when_configured():
    settings = BrowserConfig(backend="auto", chromium_executable_path="/opt/chromium/chrome")
    assert _names(select_backends(settings, environ={})) == ["driver", "bundled"]


@pytest.mark.parametrize("marker", ["AWS_LAMBDA_FUNCTION_NAME", "VERCEL"])
def test_serverless_uses_bundled_only(marker):
    environ = {marker: "1"}
    assert is_serverless(environ)
    assert _names(select_backends(BrowserConfig(backend="auto"), environ=environ)) == ["bundled"]


def test_explicit_preferences():
    assert _names(select_backends(BrowserConfig(backend="driver"), environ={"VERCEL": "1"})) == [
        "driver"
    ]
    assert _names(select_backends(BrowserConfig(backend="bundled"), environ={})) == ["bundled"]


def test_not_serverless():
    assert not is_serverless({})
    assert not is_serverless({"VERCEL": ""})


@pytest.mark.asyncio
async def test_bundled_backend_requires_executable(tmp_path):
    with pytest.raises(FileNotFoundError):
        await BundledChromiumBackend(BrowserConfig()).launch()

    missing = tmp_path / "chrome"
    with pytest.raises(FileNotFoundError):
        await BundledChromiumBackend(BrowserConfig(), executable_path=str(missing)).launch()


def test_needs_browser_install():
    assert _needs_browser_install("Executable doesn't exist at /root/.cache/ms-playwright/chromium")
    assert _needs_browser_install("Looks like Playwright was just installed. Please run playwright install")
    assert not _needs_browser_install("net::ERR_CONNECTION_RESET")
