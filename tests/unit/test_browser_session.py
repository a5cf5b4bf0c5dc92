"""Tests for the shared headless browser session manager.

Backends and browsers are replaced with mocks so launch memoization, backend
fallback, idle teardown and crash recovery can be checked without Chromium.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from problem_vault.config import BrowserConfig
from problem_vault.errors import AutomationUnavailableError, SourceUnreachableError
from problem_vault.services.browser_session import (
    BrowserSessionManager,
    BrowsingContext,
    PageEvaluationError,
)


def make_browser() -> MagicMock:
    context = MagicMock()
    context.add_init_script = AsyncMock()
    context.route = AsyncMock()
    context.close = AsyncMock()
    context.new_page = AsyncMock()

    browser = MagicMock()
    browser.is_connected.return_value = True
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    return browser


class FakeBackend:
    def __init__(self, name: str = "driver", error: Exception | None = None, delay: float = 0.0):
        self.name = name
        self.error = error
        self.delay = delay
        self.launch_count = 0
        self.shutdown_count = 0
        self.browsers: list[MagicMock] = []

    async def launch(self):
        self.launch_count += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        browser = make_browser()
        self.browsers.append(browser)
        return browser

    async def shutdown(self):
        self.shutdown_count += 1


def make_manager(*backends: FakeBackend, idle: float = 60.0) -> BrowserSessionManager:
    settings = BrowserConfig(idle_timeout_seconds=idle, block_heavy_resources=True)
    return BrowserSessionManager(settings=settings, backends=list(backends))


class TestLaunch:
    @pytest.mark.asyncio
    async def test_concurrent_first_use_launches_once(self):
        backend = FakeBackend(delay=0.05)
        manager = make_manager(backend)

        handles = await asyncio.gather(*(manager.acquire_context() for _ in range(5)))

        assert backend.launch_count == 1
        assert len({id(handle) for handle in handles}) == 5
        assert backend.browsers[0].new_context.await_count == 5
        assert manager.get_stats()["contexts_created"] == 5
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_browser_reused_across_contexts(self):
        backend = FakeBackend()
        manager = make_manager(backend)

        async with manager.context():
            pass
        async with manager.context():
            pass

        assert backend.launch_count == 1
        assert manager.is_running
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_context_setup(self):
        backend = FakeBackend()
        manager = make_manager(backend)

        async with manager.context():
            pass

        browser = backend.browsers[0]
        kwargs = browser.new_context.call_args.kwargs
        assert kwargs["locale"] == "en-US"
        assert kwargs["java_script_enabled"] is True
        raw_context = browser.new_context.return_value
        raw_context.add_init_script.assert_awaited_once()
        raw_context.route.assert_awaited_once()
        raw_context.close.assert_awaited_once()
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_falls_back_to_next_backend(self):
        driver = FakeBackend("driver", error=RuntimeError("Executable doesn't exist"))
        bundled = FakeBackend("bundled")
        manager = make_manager(driver, bundled)

        async with manager.context():
            assert manager.get_stats()["backend"] == "bundled"

        assert driver.launch_count == 1
        assert bundled.launch_count == 1
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_all_backends_failing(self):
        driver = FakeBackend("driver", error=RuntimeError("no driver"))
        bundled = FakeBackend("bundled", error=FileNotFoundError("no binary"))
        manager = make_manager(driver, bundled)

        with pytest.raises(AutomationUnavailableError) as exc_info:
            await manager.acquire_context()
        assert "no driver" in str(exc_info.value)

        with pytest.raises(AutomationUnavailableError):
            await manager.acquire_context()
        assert driver.launch_count == 2
        assert manager.get_stats()["launch_failures"] == 2
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_no_backends(self):
        manager = make_manager()
        with pytest.raises(AutomationUnavailableError):
            await manager.acquire_context()
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_dead_browser_during_context_creation(self):
        backend = FakeBackend()
        manager = make_manager(backend)
        async with manager.context():
            pass
        backend.browsers[0].new_context.side_effect = PlaywrightError("Target closed")

        with pytest.raises(AutomationUnavailableError):
            await manager.acquire_context()

        async with manager.context():
            pass
        assert backend.launch_count == 2
        await manager.shutdown()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_idle_teardown(self):
        backend = FakeBackend()
        manager = make_manager(backend, idle=0.05)

        async with manager.context():
            pass
        await asyncio.sleep(0.2)

        backend.browsers[0].close.assert_awaited_once()
        assert not manager.is_running
        assert backend.shutdown_count == 1
        assert manager.get_stats()["idle_shutdowns"] == 1

        async with manager.context():
            pass
        assert backend.launch_count == 2
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_idle_teardown_waits_for_open_contexts(self):
        backend = FakeBackend()
        manager = make_manager(backend, idle=0.05)

        handle = await manager.acquire_context()
        await asyncio.sleep(0.2)
        backend.browsers[0].close.assert_not_awaited()

        await manager.release_context(handle)
        await asyncio.sleep(0.2)
        backend.browsers[0].close.assert_awaited_once()
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_disconnect_triggers_relaunch(self):
        backend = FakeBackend()
        manager = make_manager(backend)
        async with manager.context():
            pass

        browser = backend.browsers[0]
        event, handler = browser.on.call_args.args
        assert event == "disconnected"
        browser.is_connected.return_value = False
        handler(browser)

        assert not manager.is_running
        async with manager.context():
            pass
        assert backend.launch_count == 2
        assert manager.get_stats()["disconnects"] == 1
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_closes_everything(self):
        backend = FakeBackend()
        manager = make_manager(backend)
        handle = await manager.acquire_context()

        await manager.shutdown()

        assert handle.closed
        backend.browsers[0].close.assert_awaited_once()
        assert backend.shutdown_count == 1
        assert manager.get_stats()["open_contexts"] == 0


class TestBrowsingContext:
    def make_context(self, page: MagicMock) -> BrowsingContext:
        raw_context = MagicMock()
        raw_context.new_page = AsyncMock(return_value=page)
        raw_context.close = AsyncMock()
        return BrowsingContext(raw_context, BrowserConfig())

    @pytest.mark.asyncio
    async def test_navigate_returns_status(self):
        page = MagicMock()
        page.goto = AsyncMock(return_value=MagicMock(status=200))
        ctx = self.make_context(page)

        assert await ctx.navigate("https://atcoder.jp", timeout_ms=1000) == 200
        page.goto.assert_awaited_once_with(
            "https://atcoder.jp", wait_until="domcontentloaded", timeout=1000
        )

    @pytest.mark.asyncio
    async def test_navigation_timeout_is_unreachable(self):
        page = MagicMock()
        page.goto = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 30000ms exceeded"))
        ctx = self.make_context(page)

        with pytest.raises(SourceUnreachableError):
            await ctx.navigate("https://atcoder.jp")

    @pytest.mark.asyncio
    async def test_wait_for_expiry_is_not_fatal(self):
        page = MagicMock()
        page.wait_for_selector = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout"))
        ctx = self.make_context(page)

        assert await ctx.wait_for(["#task-statement", "span.lang-en"], timeout_ms=10) is False
        page.wait_for_selector.assert_awaited_once_with(
            "#task-statement, span.lang-en", timeout=10, state="attached"
        )
        assert await ctx.wait_for([]) is True

    @pytest.mark.asyncio
    async def test_evaluate_timeout(self):
        async def slow(*args):
            await asyncio.sleep(1)

        page = MagicMock()
        page.evaluate = AsyncMock(side_effect=slow)
        ctx = self.make_context(page)

        with pytest.raises(PageEvaluationError):
            await ctx.evaluate("() => 1", timeout_ms=10)

    @pytest.mark.asyncio
    async def test_evaluate_script_error(self):
        page = MagicMock()
        page.evaluate = AsyncMock(side_effect=PlaywrightError("ReferenceError: x is not defined"))
        ctx = self.make_context(page)

        with pytest.raises(PageEvaluationError):
            await ctx.evaluate("() => x")

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        raw_context = MagicMock()
        raw_context.close = AsyncMock()
        ctx = BrowsingContext(raw_context, BrowserConfig())

        await ctx.close()
        await ctx.close()

        raw_context.close.assert_awaited_once()
