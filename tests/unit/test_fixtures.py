from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from authmimic.exceptions import ConfigError, FixtureError, NavigationError
from authmimic.fixtures import (
    AREAS,
    api_request,
    clear_auth,
    login_as_admin,
    login_as_anonymous,
    login_as_owner,
    login_as_user,
    navigate_to_admin_tab,
    navigate_to_tab,
    verify_access,
)
from authmimic.harness import AuthHarness
from authmimic.identity.registry import identity_for
from authmimic.intercept.rules import RouteRule
from authmimic.types import Role


def _fake_locator(visible: bool) -> MagicMock:
    first = MagicMock()
    if visible:
        first.wait_for = AsyncMock()
    else:
        first.wait_for = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 3000ms"))
    first.is_visible = AsyncMock(return_value=visible)
    first.click = AsyncMock()
    wrapper = MagicMock()
    wrapper.first = first
    wrapper.visible = visible
    wrapper.or_ = MagicMock(side_effect=lambda other: _fake_locator(visible or other.visible))
    return wrapper


def _locators(page: MagicMock, visible: set[str]) -> dict[str, MagicMock]:
    """Make ``page.locator(selector).first`` visible only for ``visible`` selectors."""
    created: dict[str, MagicMock] = {}

    def locator(selector: str) -> MagicMock:
        if selector not in created:
            created[selector] = _fake_locator(selector in visible)
        return created[selector]

    page.locator = MagicMock(side_effect=locator)
    return created


def _broken_rule(method: str) -> RouteRule:
    return RouteRule("/api/broken", lambda _r: 1 / 0, method=method, name="broken")


@pytest.mark.unit
class TestLoginFixtures:
    async def test_login_as_owner_returns_identity_and_session(self, mock_page, settings) -> None:
        result = await login_as_owner(mock_page, settings=settings)
        assert result.identity is identity_for(Role.OWNER)
        assert result.session.subject_id == result.identity.id
        mock_page.goto.assert_awaited_once()

    async def test_login_as_user_with_overrides(self, mock_page, settings) -> None:
        result = await login_as_user(mock_page, {"display_name": "Nomad"}, settings=settings)
        assert result.identity.display_name == "Nomad"
        assert result.role == Role.USER

    async def test_login_as_admin_role(self, mock_page, settings) -> None:
        result = await login_as_admin(mock_page, settings=settings)
        assert result.role == Role.ADMIN
        assert result.identity.backend_role == "admin"

    async def test_login_as_anonymous(self, mock_page, settings) -> None:
        result = await login_as_anonymous(mock_page, settings=settings)
        assert result.session is None

    async def test_fixtures_share_the_context_harness(self, mock_page, settings) -> None:
        await login_as_owner(mock_page, settings=settings, navigate_to=None)
        harness = AuthHarness.for_context(mock_page.context, settings)
        assert harness.current.role == Role.OWNER

    async def test_clear_auth_logs_out(self, mock_page, settings) -> None:
        await login_as_owner(mock_page, settings=settings, navigate_to=None)
        await clear_auth(mock_page, settings=settings)
        assert AuthHarness.for_context(mock_page.context, settings).current is None

    async def test_broken_fixture_fails_the_login_itself(
        self, mock_page, settings, make_route
    ) -> None:
        harness = AuthHarness.for_context(mock_page.context, settings)
        await harness.interceptor.install([_broken_rule("GET")])

        async def load(*_args, **_kwargs) -> None:
            await harness.interceptor._dispatch(make_route("http://localhost:8080/api/broken"))

        mock_page.goto.side_effect = load
        with pytest.raises(FixtureError, match="broken"):
            await login_as_user(mock_page, settings=settings)


@pytest.mark.unit
class TestVerifyAccess:
    async def test_admin_indicator_visible(self, mock_page, settings) -> None:
        _locators(mock_page, visible={'[data-testid="admin-panel"]'})
        assert await verify_access(mock_page, settings=settings) is True
        assert mock_page.goto.call_args.args[0] == "http://localhost:3000/admin"

    async def test_access_denied_page(self, mock_page, settings) -> None:
        _locators(mock_page, visible={"text=/access denied|unauthorized|forbidden/i"})
        assert await verify_access(mock_page, settings=settings) is False

    async def test_neither_indicator_nor_denial(self, mock_page, settings) -> None:
        _locators(mock_page, visible=set())
        assert await verify_access(mock_page, settings=settings) is True

    async def test_navigation_failure_means_no_access(self, mock_page, settings) -> None:
        mock_page.goto.side_effect = PlaywrightError("net::ERR_ABORTED")
        assert await verify_access(mock_page, settings=settings) is False

    async def test_owner_area(self, mock_page, settings) -> None:
        _locators(mock_page, visible={'text="My Establishments"'})
        assert await verify_access(mock_page, "owner", settings=settings) is True
        assert mock_page.goto.call_args.args[0].endswith("/my-establishments")

    async def test_unknown_area(self, mock_page, settings) -> None:
        with pytest.raises(ConfigError, match="Unknown area"):
            await verify_access(mock_page, "billing", settings=settings)

    async def test_indicators_share_one_wait(self, mock_page, settings) -> None:
        locators = _locators(mock_page, visible=set())
        await verify_access(mock_page, settings=settings)

        indicators = AREAS["admin"].indicators
        locators[indicators[0]].or_.assert_called_once()
        assert all(locators[s].first.wait_for.await_count == 0 for s in indicators)


@pytest.mark.unit
class TestNavigateToTab:
    async def test_clicks_tab(self, mock_page, settings) -> None:
        locators = _locators(mock_page, visible={'text="Establishments"'})
        await navigate_to_admin_tab(mock_page, "establishments", settings=settings)
        locators['text="Establishments"'].first.click.assert_awaited_once()

    async def test_every_admin_tab_is_known(self) -> None:
        assert set(AREAS["admin"].tabs) == {
            "dashboard",
            "establishments",
            "employees",
            "comments",
            "users",
            "consumables",
            "claims",
            "owners",
            "verifications",
            "vip",
        }

    async def test_unknown_tab(self, mock_page, settings) -> None:
        with pytest.raises(ConfigError, match="Unknown admin tab 'payments'"):
            await navigate_to_tab(mock_page, "payments", settings=settings)
        mock_page.goto.assert_not_awaited()

    async def test_missing_tab_is_navigation_error(self, mock_page, settings) -> None:
        _locators(mock_page, visible=set())
        with pytest.raises(NavigationError, match="Admin tab not found: vip"):
            await navigate_to_tab(mock_page, "vip", settings=settings)


@pytest.mark.unit
class TestApiRequest:
    async def test_sends_login_csrf_token(self, mock_page, settings) -> None:
        login = await login_as_owner(mock_page, settings=settings, navigate_to=None)
        mock_page.evaluate.return_value = {"status": 201, "body": {"message": "ok"}}

        result = await api_request(
            mock_page, login, "/api/ownership-requests", {"establishment_id": "e1"}
        )

        script, argument = mock_page.evaluate.call_args.args
        assert "credentials: 'include'" in script
        assert argument["url"] == "http://localhost:8080/api/ownership-requests"
        assert argument["method"] == "POST"
        assert argument["csrfToken"] == login.csrf_token
        assert argument["csrfHeader"] == "x-csrf-token"
        assert result["status"] == 201

    async def test_evaluate_failure(self, mock_page, settings) -> None:
        login = await login_as_user(mock_page, settings=settings, navigate_to=None)
        mock_page.evaluate.side_effect = PlaywrightError("Execution context was destroyed")
        with pytest.raises(NavigationError, match="Execution context"):
            await api_request(mock_page, login, "/api/comments", {}, method="post")

    async def test_fixture_failure_behind_the_request_is_raised(
        self, mock_page, settings, make_route
    ) -> None:
        login = await login_as_owner(mock_page, settings=settings, navigate_to=None)
        harness = AuthHarness.for_context(mock_page.context, settings)
        await harness.interceptor.install([_broken_rule("POST")])

        async def fetch_in_page(*_args) -> dict:
            route = make_route("http://localhost:8080/api/broken", method="POST")
            await harness.interceptor._dispatch(route)
            return {"status": 0, "body": ""}

        mock_page.evaluate.side_effect = fetch_in_page
        with pytest.raises(FixtureError, match="broken"):
            await api_request(mock_page, login, "/api/broken", settings=settings)
