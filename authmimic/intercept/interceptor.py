"""Context-scoped request interception that answers API calls from fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import structlog
from playwright.async_api import Error as PlaywrightError

from authmimic.constants import API_PATH_PREFIX, API_RESOURCE_TYPES, SESSION_COOKIE
from authmimic.exceptions import FixtureError, RouteInstallError
from authmimic.intercept.rules import RouteRule, any_path_match, select_rule
from authmimic.models.domain import InterceptedRequest

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Request, Route

logger = structlog.get_logger(__name__)


class RouteInterceptor:
    """Owns the route rules of exactly one browser context.

    A single dispatcher is registered with ``context.route``; it picks the
    most specific rule for each request, falls back to the network when none
    matches, and aborts the request when a rule's builder fails. Builder
    failures are kept and re-raised by ``raise_for_errors`` so that a broken
    fixture fails the test instead of looking like an application bug.
    """

    def __init__(self, context: BrowserContext, session_cookie: str = SESSION_COOKIE) -> None:
        self._context = context
        self._session_cookie = session_cookie
        self._rules: list[RouteRule] = []
        self._installed = False
        self._errors: list[FixtureError] = []
        self._handled: list[dict[str, Any]] = []
        self._first_api_request: dict[str, Any] | None = None
        self._probes: set[asyncio.Future[None]] = set()

    @property
    def rules(self) -> list[RouteRule]:
        return list(self._rules)

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def errors(self) -> list[FixtureError]:
        return list(self._errors)

    @property
    def handled(self) -> list[dict[str, Any]]:
        """Requests answered from fixtures, oldest first."""
        return list(self._handled)

    @property
    def first_request_authenticated(self) -> bool | None:
        """Whether the first API request of the context carried credentials.

        ``None`` until an API request has been observed.
        """
        if self._first_api_request is None:
            return None
        return bool(self._first_api_request["authenticated"])

    async def install(self, rules: Iterable[RouteRule]) -> None:
        """Add ``rules`` to the context. Must be awaited before navigation."""
        new_rules = list(rules)
        if not new_rules:
            raise RouteInstallError("No route rules to install")
        self._rules.extend(new_rules)
        if not self._installed:
            try:
                await self._context.route(self._should_intercept, self._dispatch)
            except PlaywrightError as exc:
                self._rules.clear()
                raise RouteInstallError(f"Could not register route handler: {exc}") from exc
            self._context.on("request", self._on_request)
            self._installed = True
        logger.info(
            "routes_installed",
            added=len(new_rules),
            total=len(self._rules),
            rules=[rule.name for rule in new_rules],
        )

    def remove(self, *names: str) -> int:
        """Drop the rules with the given names; returns how many were removed."""
        before = len(self._rules)
        self._rules = [rule for rule in self._rules if rule.name not in names]
        removed = before - len(self._rules)
        logger.debug("routes_removed", names=list(names), removed=removed)
        return removed

    async def uninstall(self) -> None:
        """Unregister the dispatcher and forget every rule."""
        if self._installed:
            await self._context.unroute(self._should_intercept, self._dispatch)
            self._context.remove_listener("request", self._on_request)
            self._installed = False
        self._rules.clear()
        logger.debug("routes_uninstalled")

    def note_navigation_before_install(self, url: str) -> None:
        """Record that a page loaded ``url`` before any auth state existed.

        Whatever that page fetched on first paint went out without
        credentials, so the first API request counts as unauthenticated.
        """
        if self._first_api_request is not None:
            return
        self._first_api_request = {"url": url, "authenticated": False}
        logger.warning("navigated_before_auth_install", url=url)

    async def wait_for_probes(self) -> None:
        """Wait for pending first-request inspections to finish."""
        if self._probes:
            await asyncio.gather(*self._probes)

    def raise_for_errors(self) -> None:
        """Raise the first recorded builder failure, if any."""
        if not self._errors:
            return
        first = self._errors[0]
        if len(self._errors) > 1:
            logger.error("fixture_builder_failures", count=len(self._errors))
        raise first

    def _should_intercept(self, url: str) -> bool:
        return any_path_match(self._rules, urlparse(url).path or "/")

    async def _dispatch(self, route: Route) -> None:
        request = route.request
        path = urlparse(request.url).path or "/"
        intercepted = InterceptedRequest(
            url=request.url,
            method=request.method,
            path=path,
            headers={k.lower(): v for k, v in (await request.all_headers()).items()},
            post_data=request.post_data,
        )
        cors = _cors_headers(intercepted)
        if intercepted.method == "OPTIONS" and cors:
            await route.fulfill(status=204, headers=cors)
            return

        rule = select_rule(self._rules, intercepted.method, path)
        if rule is None:
            await route.fallback()
            return

        try:
            response = await rule.respond(intercepted)
            body = response.render_body()
        except Exception as exc:
            error = FixtureError(
                f"Response builder {rule.name!r} failed for "
                f"{intercepted.method} {intercepted.url}: {exc}",
                rule=rule.name,
                url=intercepted.url,
            )
            error.__cause__ = exc
            self._errors.append(error)
            logger.error(
                "fixture_builder_failed",
                rule=rule.name,
                method=intercepted.method,
                url=intercepted.url,
                error=str(exc),
            )
            await route.abort("failed")
            return

        await route.fulfill(
            status=response.status,
            headers={**cors, **response.headers},
            content_type=response.content_type,
            body=body,
        )
        self._handled.append(
            {
                "rule": rule.name,
                "method": intercepted.method,
                "url": intercepted.url,
                "status": response.status,
            }
        )

    def _on_request(self, request: Request) -> None:
        if self._first_api_request is not None:
            return
        if request.resource_type not in API_RESOURCE_TYPES:
            return
        if not (urlparse(request.url).path or "").startswith(API_PATH_PREFIX):
            return
        self._first_api_request = {"url": request.url, "authenticated": False}
        probe = asyncio.ensure_future(self._probe(request, self._first_api_request))
        self._probes.add(probe)
        probe.add_done_callback(self._probes.discard)

    async def _probe(self, request: Request, record: dict[str, Any]) -> None:
        try:
            headers = await request.all_headers()
        except PlaywrightError as exc:
            logger.warning("first_api_request_probe_failed", url=record["url"], error=str(exc))
            return
        cookie_header = headers.get("cookie", "")
        has_cookie = any(
            part.strip().startswith(f"{self._session_cookie}=")
            for part in cookie_header.split(";")
        )
        has_bearer = headers.get("authorization", "").lower().startswith("bearer ")
        record["authenticated"] = has_cookie or has_bearer
        logger.debug(
            "first_api_request",
            url=record["url"],
            authenticated=record["authenticated"],
        )


def _cors_headers(request: InterceptedRequest) -> dict[str, str]:
    """Headers letting a cross-origin app read the fixture with credentials."""
    origin = request.header("origin")
    if not origin:
        return {}
    headers = {
        "access-control-allow-origin": origin,
        "access-control-allow-credentials": "true",
        "vary": "Origin",
    }
    if request.method == "OPTIONS":
        headers["access-control-allow-methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
        requested = request.header("access-control-request-headers")
        if requested:
            headers["access-control-allow-headers"] = requested
    return headers
