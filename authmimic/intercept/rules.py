"""Route rules and the precedence used to pick one for a request."""

from __future__ import annotations

import fnmatch
import inspect
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from authmimic.constants import API_PATH_PREFIX, CSRF_HEADER
from authmimic.models.domain import FixtureResponse, InterceptedRequest

ResponseBuilder = Callable[[InterceptedRequest], FixtureResponse | Awaitable[FixtureResponse]]

_WILDCARDS = "*?["


@dataclass(frozen=True)
class RouteRule:
    """Answer requests whose path matches ``url_pattern`` with a fixture payload.

    ``url_pattern`` is an fnmatch-style glob matched against the URL path.
    ``method`` of ``None`` matches every method. A ``catch_all`` rule matches
    every API request at the lowest precedence, so requests no other rule
    claims are still answered instead of reaching the network. When
    ``csrf_token`` is set the request must echo it in ``X-CSRF-Token``.
    """

    url_pattern: str
    response_builder: ResponseBuilder = field(repr=False)
    method: str | None = None
    name: str = ""
    catch_all: bool = False
    csrf_token: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.method is not None:
            object.__setattr__(self, "method", self.method.upper())
        if not self.name:
            object.__setattr__(self, "name", f"{self.method or 'ANY'} {self.url_pattern}")

    @property
    def literal_prefix(self) -> str:
        """Return the pattern up to its first wildcard."""
        for index, char in enumerate(self.url_pattern):
            if char in _WILDCARDS:
                return self.url_pattern[:index]
        return self.url_pattern

    @property
    def requires_csrf(self) -> bool:
        return self.csrf_token is not None

    def matches_path(self, path: str) -> bool:
        if self.catch_all and path.startswith(API_PATH_PREFIX):
            return True
        return fnmatch.fnmatchcase(path, self.url_pattern)

    def matches(self, method: str, path: str) -> bool:
        if self.method is not None and method.upper() != self.method:
            return False
        return self.matches_path(path)

    def specificity(self) -> tuple[int, int, int]:
        """Rank used to pick among several matching rules (higher wins)."""
        return (
            0 if self.catch_all else 1,
            len(self.literal_prefix),
            1 if self.method is not None else 0,
        )

    async def respond(self, request: InterceptedRequest) -> FixtureResponse:
        """Build the response for ``request``, enforcing the CSRF token first."""
        if self.csrf_token is not None and request.header(CSRF_HEADER) != self.csrf_token:
            return FixtureResponse(status=403, body={"error": "Invalid CSRF token"})
        result = self.response_builder(request)
        if inspect.isawaitable(result):
            result = await result
        if not isinstance(result, FixtureResponse):
            msg = f"builder returned {type(result).__name__}, expected FixtureResponse"
            raise TypeError(msg)
        return result


def select_rule(rules: Sequence[RouteRule], method: str, path: str) -> RouteRule | None:
    """Return the most specific rule matching ``method`` and ``path``.

    Ties go to the rule installed last.
    """
    best: RouteRule | None = None
    best_key: tuple[tuple[int, int, int], int] | None = None
    for index, rule in enumerate(rules):
        if not rule.matches(method, path):
            continue
        key = (rule.specificity(), index)
        if best_key is None or key > best_key:
            best, best_key = rule, key
    return best


def any_path_match(rules: Iterable[RouteRule], path: str) -> bool:
    return any(rule.matches_path(path) for rule in rules)


def json_rule(
    url_pattern: str,
    body: Any,
    *,
    method: str | None = None,
    status: int = 200,
    name: str = "",
    csrf_token: str | None = None,
) -> RouteRule:
    """Build a rule that always answers with the same JSON body."""
    response = FixtureResponse(status=status, body=body)

    def build(_request: InterceptedRequest) -> FixtureResponse:
        return response

    return RouteRule(
        url_pattern=url_pattern,
        response_builder=build,
        method=method,
        name=name,
        csrf_token=csrf_token,
    )
