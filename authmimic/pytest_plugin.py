"""pytest plugin: browser, context, page and auth harness fixtures.

Registered through the ``pytest11`` entry point, so installing authmimic is
enough for a suite to request ``auth`` and ``auth_page``::

    async def test_admin_sees_panel(auth, auth_page):
        await auth.login_as("admin", page=auth_page)
        assert await verify_access(auth_page)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from playwright.async_api import BrowserContext, Page
from playwright.async_api import Error as PlaywrightError

from authmimic.browser import BrowserManager
from authmimic.config.logging import setup_logging
from authmimic.config.settings import Settings
from authmimic.harness import AuthHarness


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("authmimic")
    group.addoption(
        "--auth-mode",
        choices=("synthetic", "live"),
        default=None,
        help="Override E2E_AUTH_MODE for this run.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "e2e: drives a real browser")
    settings = Settings()
    setup_logging(settings.log_level, json_output=settings.log_json)


@pytest.fixture()
def auth_settings(request: pytest.FixtureRequest) -> Settings:
    """Settings for this test, with ``--auth-mode`` applied."""
    settings = Settings()
    mode = request.config.getoption("--auth-mode")
    if mode:
        settings = settings.model_copy(update={"auth_mode": mode})
    return settings


@pytest_asyncio.fixture()
async def auth_browser(auth_settings: Settings) -> AsyncGenerator[BrowserManager, None]:
    """A launched Chromium; the test is skipped when no browser is installed."""
    manager = BrowserManager(headless=auth_settings.headless)
    try:
        await manager.launch()
    except PlaywrightError as exc:
        await manager.close()
        pytest.skip(f"Chromium unavailable: {exc}")
    yield manager
    await manager.close()


@pytest_asyncio.fixture()
async def auth_context(auth_browser: BrowserManager) -> AsyncGenerator[BrowserContext, None]:
    context = await auth_browser.new_context()
    yield context
    await context.close()


@pytest_asyncio.fixture()
async def auth_page(auth_browser: BrowserManager, auth_context: BrowserContext) -> Page:
    return await auth_browser.new_page(auth_context)


@pytest_asyncio.fixture()
async def auth(
    auth_context: BrowserContext, auth_settings: Settings
) -> AsyncGenerator[AuthHarness, None]:
    """The harness of ``auth_context``; fixture failures fail the test at teardown."""
    harness = AuthHarness.for_context(auth_context, auth_settings)
    yield harness
    await harness.check()
