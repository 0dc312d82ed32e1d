"""Per-context orchestration of a login: identity, session, routes, cookies, navigation."""

from __future__ import annotations

import weakref
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin

import structlog

from authmimic.constants import DEFAULT_NAVIGATION_TIMEOUT_MS
from authmimic.exceptions import (
    AuthMimicError,
    ConfigError,
    CookieInstallError,
    LiveLoginError,
    NavigationError,
    OrderingError,
    RouteInstallError,
    SynthesisError,
)
from authmimic.identity.registry import (
    apply_overrides,
    coerce_role,
    generate_identity,
    identity_for,
)
from authmimic.intercept.interceptor import RouteInterceptor
from authmimic.intercept.role_rules import anonymous_rules, build_rules
from authmimic.mode import ModeSelector
from authmimic.models.domain import LoginResult
from authmimic.storage.installer import CookieStorageInstaller
from authmimic.types import AuthMode, Role, Stage
from authmimic.utils.timing import StageClock, timed

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Page

    from authmimic.config.settings import Settings
    from authmimic.intercept.rules import RouteRule

logger = structlog.get_logger(__name__)

_STAGE_ERRORS: dict[Stage, type[AuthMimicError]] = {
    Stage.REGISTRY: ConfigError,
    Stage.MODE: ConfigError,
    Stage.SYNTHESIS: SynthesisError,
    Stage.ROUTE_INSTALL: RouteInstallError,
    Stage.COOKIE_INSTALL: CookieInstallError,
    Stage.LIVE_LOGIN: LiveLoginError,
    Stage.NAVIGATION: NavigationError,
}

_BLANK_URLS = {"", "about:blank"}

_harnesses: weakref.WeakKeyDictionary[Any, AuthHarness] = weakref.WeakKeyDictionary()


@contextmanager
def stage(name: Stage, clock: StageClock | None = None, **fields: Any) -> Iterator[None]:
    """Tag any failure inside the block with the setup stage ``name``.

    authmimic errors without a stage get this one; other exceptions are
    wrapped in the stage's error type with the original chained.
    """
    with timed(name.value, **fields) as t:
        try:
            yield
        except AuthMimicError as exc:
            if exc.stage is None:
                exc.stage = name
            raise
        except Exception as exc:
            raise _STAGE_ERRORS[name](f"{type(exc).__name__}: {exc}", stage=name) from exc
        finally:
            if clock is not None:
                clock.record(name.value, t["elapsed"])


class AuthHarness:
    """Owns the interceptor and installer of one browser context.

    ``login_as`` runs every setup stage in order and must complete before the
    test navigates. Use ``AuthHarness.for_context`` to share one harness
    between fixtures acting on the same context.
    """

    def __init__(
        self,
        context: BrowserContext,
        settings: Settings,
        selector: ModeSelector | None = None,
    ) -> None:
        self._context = context
        self._settings = settings
        self.selector = selector or ModeSelector(settings)
        self.interceptor = RouteInterceptor(context)
        self.installer = CookieStorageInstaller(context, settings)
        self.clock = StageClock()
        self._current: LoginResult | None = None
        self._rule_names: tuple[str, ...] = ()

    @classmethod
    def for_context(cls, context: BrowserContext, settings: Settings) -> AuthHarness:
        """Return the harness bound to ``context``, creating it on first use."""
        harness = _harnesses.get(context)
        if harness is None:
            harness = cls(context, settings)
            _harnesses[context] = harness
            # the harness references its context, so the weak key alone never expires
            context.once("close", lambda _context: _harnesses.pop(context, None))
        return harness

    @property
    def context(self) -> BrowserContext:
        return self._context

    @property
    def current(self) -> LoginResult | None:
        return self._current

    @property
    def first_request_authenticated(self) -> bool | None:
        return self.interceptor.first_request_authenticated

    async def login_as(
        self,
        role: Role | str,
        *,
        page: Page | None = None,
        overrides: Mapping[str, Any] | None = None,
        fresh: bool = False,
        navigate_to: str | None = "/",
    ) -> LoginResult:
        """Make the context act as ``role`` and return the resulting identity and session.

        ``fresh`` asks for a generated identity instead of the canonical one.
        ``navigate_to`` is opened on ``page`` once everything is installed;
        pass ``None`` to stay put.
        """
        with stage(Stage.REGISTRY, self.clock):
            resolved = coerce_role(role)
            identity = generate_identity(resolved) if fresh else identity_for(resolved)
            identity = apply_overrides(identity, overrides)

        if page is not None:
            self._check_ordering(page)

        with stage(Stage.MODE, self.clock):
            mode = self.selector.mode

        acquire_stage = Stage.LIVE_LOGIN if mode == AuthMode.LIVE else Stage.SYNTHESIS
        with stage(acquire_stage, self.clock, role=resolved.value):
            result = await self.selector.acquire(identity, fresh=fresh)

        with stage(Stage.ROUTE_INSTALL, self.clock):
            await self._replace_rules(self._rules_for(result))

        with stage(Stage.COOKIE_INSTALL, self.clock):
            if result.session is not None:
                await self.installer.install(result.session, result.identity)
            elif self._current is not None:
                await self.installer.clear()

        self._current = result
        logger.info(
            "logged_in",
            role=result.role.value,
            email=result.identity.email,
            mode=result.mode.value,
            fell_back=result.fell_back,
            rules=len(self._rule_names),
        )

        if page is not None and navigate_to is not None:
            await self.goto(page, navigate_to)
        return result

    async def logout(self) -> None:
        """Drop the current identity: clear cookies and storage, answer auth checks with 401."""
        with stage(Stage.COOKIE_INSTALL, self.clock):
            await self.installer.clear()
        with stage(Stage.ROUTE_INSTALL, self.clock):
            rules = anonymous_rules() if self.selector.mode == AuthMode.SYNTHETIC else []
            await self._replace_rules(rules)
        previous = self._current
        self._current = None
        logger.info("logged_out", role=previous.role.value if previous else None)

    async def goto(self, page: Page, path: str) -> None:
        """Open ``path`` (relative to the app base URL) on ``page``.

        Fixture failures recorded while the page loaded are raised here.
        """
        url = urljoin(self._settings.app_base_url.rstrip("/") + "/", path.lstrip("/"))
        with stage(Stage.NAVIGATION, self.clock, url=url):
            await page.goto(
                url, wait_until="domcontentloaded", timeout=DEFAULT_NAVIGATION_TIMEOUT_MS
            )
        await self.check()

    async def check(self) -> None:
        """Raise the first fixture failure recorded in this context."""
        await self.interceptor.wait_for_probes()
        self.interceptor.raise_for_errors()

    def _check_ordering(self, page: Page) -> None:
        if self.interceptor.installed or page.url in _BLANK_URLS:
            return
        if self._settings.strict_ordering:
            raise OrderingError(
                f"Page already navigated to {page.url} before auth state was installed; "
                "log in before the first goto"
            )
        self.interceptor.note_navigation_before_install(page.url)

    def _rules_for(self, result: LoginResult) -> list[RouteRule]:
        if result.mode == AuthMode.LIVE:
            if not self._settings.layer_listing_rules_in_live:
                return []
            return build_rules(result.identity, result.session, include_auth=False)
        return build_rules(result.identity, result.session)

    async def _replace_rules(self, rules: list[RouteRule]) -> None:
        if self._rule_names:
            self.interceptor.remove(*self._rule_names)
        self._rule_names = tuple(rule.name for rule in rules)
        if rules:
            await self.interceptor.install(rules)
