"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from authmimic.config.settings import Settings, get_settings
from authmimic.identity.registry import identity_for
from authmimic.identity.synthesizer import synthesize
from authmimic.models.domain import Identity, Session
from authmimic.types import Role

FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's E2E_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("E2E_"):
            monkeypatch.delenv(key)
    monkeypatch.delenv("CI", raising=False)
    get_settings.cache_clear()


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture()
def live_settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.setenv("E2E_AUTH_MODE", "live")
    monkeypatch.setenv("E2E_API_BASE_URL", "http://backend.test")
    monkeypatch.setenv("E2E_USER_PASSWORD", "user-pass")
    monkeypatch.setenv("E2E_OWNER_PASSWORD", "owner-pass")
    monkeypatch.setenv("E2E_ADMIN_PASSWORD", "admin-pass")
    return Settings(_env_file=None)


@pytest.fixture()
def owner() -> Identity:
    return identity_for(Role.OWNER)


@pytest.fixture()
def owner_session(owner: Identity) -> Session:
    return synthesize(owner, now=FIXED_NOW)


@pytest.fixture()
def admin() -> Identity:
    return identity_for(Role.ADMIN)


@pytest.fixture()
def admin_session(admin: Identity) -> Session:
    return synthesize(admin, now=FIXED_NOW)


@pytest.fixture()
def mock_context() -> MagicMock:
    """A BrowserContext stand-in whose coroutine methods are AsyncMocks."""
    context = MagicMock()
    context.route = AsyncMock()
    context.unroute = AsyncMock()
    context.add_cookies = AsyncMock()
    context.add_init_script = AsyncMock()
    context.clear_cookies = AsyncMock()
    return context


@pytest.fixture()
def mock_page(mock_context: MagicMock) -> MagicMock:
    page = MagicMock()
    page.url = "about:blank"
    page.context = mock_context
    page.goto = AsyncMock()
    page.evaluate = AsyncMock()
    return page


@pytest.fixture()
def make_route() -> Callable[..., MagicMock]:
    """Build a Playwright Route stand-in for one request."""

    def _make(
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        post_data: str | None = None,
    ) -> MagicMock:
        route = MagicMock()
        route.request.url = url
        route.request.method = method
        route.request.all_headers = AsyncMock(return_value=headers or {})
        route.request.post_data = post_data
        route.fulfill = AsyncMock()
        route.fallback = AsyncMock()
        route.abort = AsyncMock()
        return route

    return _make


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW
