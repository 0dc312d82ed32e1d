"""Functions test authors call: log in as a role, check access, open panel tabs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog
from playwright.async_api import Error as PlaywrightError

from authmimic.config.settings import get_settings
from authmimic.constants import CSRF_HEADER, DEFAULT_VISIBILITY_TIMEOUT_MS
from authmimic.exceptions import ConfigError, NavigationError
from authmimic.harness import AuthHarness
from authmimic.types import Role, Stage

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page

    from authmimic.config.settings import Settings
    from authmimic.models.domain import LoginResult

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Area:
    """A role-restricted part of the app and how to recognise it."""

    path: str
    indicators: tuple[str, ...]
    tabs: Mapping[str, str] = field(default_factory=dict)


AREAS: dict[str, Area] = {
    "admin": Area(
        path="/admin",
        indicators=(
            'text="Admin Dashboard"',
            'text="Administration"',
            '[data-testid="admin-panel"]',
            ".admin-dashboard",
        ),
        tabs={
            "dashboard": 'text="Dashboard"',
            "establishments": 'text="Establishments"',
            "employees": 'text="Employees"',
            "comments": 'text="Comments"',
            "users": 'text="Users"',
            "consumables": 'text="Consumables"',
            "claims": 'text="Claims"',
            "owners": 'text="Owners"',
            "verifications": 'text="Verifications"',
            "vip": 'text="VIP"',
        },
    ),
    "owner": Area(
        path="/my-establishments",
        indicators=('[data-testid="owner-dashboard"]', 'text="My Establishments"'),
    ),
    "user": Area(
        path="/dashboard",
        indicators=('[data-testid="user-dashboard"]', 'text="Dashboard"'),
    ),
}

_ACCESS_DENIED = "text=/access denied|unauthorized|forbidden/i"

API_REQUEST_JS = """
async ({ url, method, data, csrfToken, csrfHeader }) => {
    const headers = { 'Content-Type': 'application/json' };
    if (csrfToken) headers[csrfHeader] = csrfToken;
    const response = await fetch(url, {
        method,
        headers,
        credentials: 'include',
        body: method === 'GET' ? undefined : JSON.stringify(data ?? {}),
    });
    const text = await response.text();
    let body = text;
    try { body = JSON.parse(text); } catch (e) {}
    return { status: response.status, body };
}
"""


def _harness(page: Page, settings: Settings | None) -> AuthHarness:
    return AuthHarness.for_context(page.context, settings or get_settings())


def _area(name: str) -> Area:
    try:
        return AREAS[name]
    except KeyError:
        raise ConfigError(
            f"Unknown area {name!r} (known areas: {', '.join(AREAS)})", stage=Stage.NAVIGATION
        ) from None


async def login_as(
    page: Page,
    role: Role | str,
    overrides: Mapping[str, Any] | None = None,
    *,
    settings: Settings | None = None,
    fresh: bool = False,
    navigate_to: str | None = "/",
) -> LoginResult:
    """Log ``page``'s context in as ``role`` and open ``navigate_to``."""
    return await _harness(page, settings).login_as(
        role, page=page, overrides=overrides, fresh=fresh, navigate_to=navigate_to
    )


async def login_as_user(
    page: Page, overrides: Mapping[str, Any] | None = None, **kwargs: Any
) -> LoginResult:
    return await login_as(page, Role.USER, overrides, **kwargs)


async def login_as_owner(
    page: Page, overrides: Mapping[str, Any] | None = None, **kwargs: Any
) -> LoginResult:
    return await login_as(page, Role.OWNER, overrides, **kwargs)


async def login_as_admin(
    page: Page, overrides: Mapping[str, Any] | None = None, **kwargs: Any
) -> LoginResult:
    return await login_as(page, Role.ADMIN, overrides, **kwargs)


async def login_as_anonymous(page: Page, **kwargs: Any) -> LoginResult:
    return await login_as(page, Role.ANONYMOUS, **kwargs)


async def clear_auth(page: Page, *, settings: Settings | None = None) -> None:
    """Log the page's context out (cookies, storage and auth-check rules)."""
    await _harness(page, settings).logout()


async def verify_access(
    page: Page, area: str = "admin", *, settings: Settings | None = None
) -> bool:
    """Open ``area`` and report whether the app let the current identity in.

    Returns ``False`` on an access-denied page or when navigation fails.
    """
    target = _area(area)
    harness = _harness(page, settings)
    try:
        await harness.goto(page, target.path)
    except NavigationError as exc:
        logger.info("access_check_navigation_failed", area=area, error=exc.detail)
        return False

    granted = await _visible(_any_of(page, target.indicators))
    denied = False
    if not granted:
        denied = await _visible(page.locator(_ACCESS_DENIED).first, timeout=0)
    await harness.check()
    logger.debug("access_checked", area=area, granted=granted, denied=denied)
    return granted or not denied


async def navigate_to_tab(
    page: Page, tab: str, area: str = "admin", *, settings: Settings | None = None
) -> None:
    """Open ``area`` and click its ``tab``."""
    target = _area(area)
    selector = target.tabs.get(tab)
    if selector is None:
        known = ", ".join(target.tabs) or "none"
        raise ConfigError(
            f"Unknown {area} tab {tab!r} (known tabs: {known})", stage=Stage.NAVIGATION
        )

    await _harness(page, settings).goto(page, target.path)
    locator = page.locator(selector).first
    if not await _visible(locator):
        raise NavigationError(f"{area.capitalize()} tab not found: {tab}")
    try:
        await locator.click()
    except PlaywrightError as exc:
        raise NavigationError(f"Could not open {area} tab {tab}: {exc}") from exc
    logger.info("tab_opened", area=area, tab=tab)


async def navigate_to_admin_tab(page: Page, tab: str, **kwargs: Any) -> None:
    await navigate_to_tab(page, tab, "admin", **kwargs)


async def api_request(
    page: Page,
    login: LoginResult,
    path: str,
    data: Mapping[str, Any] | None = None,
    method: str = "POST",
    *,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Send a request from inside the page, carrying cookies and the login's CSRF token.

    Returns ``{"status": int, "body": ...}``.
    """
    resolved = settings or get_settings()
    url = path if "://" in path else f"{resolved.api_base_url.rstrip('/')}/{path.lstrip('/')}"
    try:
        result = await page.evaluate(
            API_REQUEST_JS,
            {
                "url": url,
                "method": method.upper(),
                "data": dict(data or {}),
                "csrfToken": login.csrf_token,
                "csrfHeader": CSRF_HEADER,
            },
        )
    except PlaywrightError as exc:
        raise NavigationError(f"{method.upper()} {url} failed in page: {exc}") from exc
    logger.debug("api_request_sent", method=method.upper(), url=url, status=result["status"])
    await _harness(page, resolved).check()
    return result


def _any_of(page: Page, selectors: tuple[str, ...]) -> Locator:
    """One locator matching whichever of ``selectors`` shows up first."""
    combined = page.locator(selectors[0])
    for selector in selectors[1:]:
        combined = combined.or_(page.locator(selector))
    return combined.first


async def _visible(locator: Locator, timeout: int = DEFAULT_VISIBILITY_TIMEOUT_MS) -> bool:
    try:
        if timeout:
            await locator.wait_for(state="visible", timeout=timeout)
            return True
        return await locator.is_visible()
    except PlaywrightError:
        return False
