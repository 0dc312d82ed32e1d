import json

import httpx
import pytest

from authmimic.exceptions import (
    ConfigError,
    LiveAuthenticationError,
    LiveLoginError,
    LiveTransportError,
    RoleMismatchError,
)
from authmimic.identity.registry import identity_for
from authmimic.live.adapter import (
    LiveLoginAdapter,
    identity_from_payload,
    resolve_role,
    role_satisfies,
)
from authmimic.types import AccountType, Role, SessionSource, Stage

_SET_COOKIES = [
    ("set-cookie", "auth-token=real.jwt.value; Path=/; HttpOnly; SameSite=Lax; Max-Age=3600"),
    ("set-cookie", "pattamap.sid=s%3Aabc; Path=/; HttpOnly"),
    ("set-cookie", "csrf-token=real-csrf; Path=/"),
]


def _backend(status: int = 200, user: dict | None = None, csrf: str | None = "real-csrf"):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if status >= 400:
            return httpx.Response(status, json={"error": "Invalid credentials"})
        body = {"message": "Login successful", "user": user, "csrfToken": csrf}
        return httpx.Response(status, json=body, headers=_SET_COOKIES)

    return handler, seen


def _adapter(settings, handler) -> LiveLoginAdapter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LiveLoginAdapter(settings, client=client)


_OWNER_USER = {
    "id": "7b0c3e0e-owner",
    "email": "owner@test.com",
    "pseudonym": "SeededOwner",
    "role": "user",
    "account_type": "establishment_owner",
}


@pytest.mark.unit
class TestRoleResolution:
    def test_resolve_role(self) -> None:
        assert resolve_role("admin", "regular") == Role.ADMIN
        assert resolve_role("super_admin", None) == Role.SUPER_ADMIN
        assert resolve_role("user", "establishment_owner") == Role.OWNER
        assert resolve_role("user", "regular") == Role.USER

    def test_admin_accepts_super_admin_only(self) -> None:
        assert role_satisfies(Role.ADMIN, Role.SUPER_ADMIN)
        assert not role_satisfies(Role.OWNER, Role.USER)
        assert not role_satisfies(Role.SUPER_ADMIN, Role.ADMIN)

    def test_identity_from_payload(self) -> None:
        identity = identity_from_payload(_OWNER_USER, identity_for(Role.OWNER))
        assert identity.id == "7b0c3e0e-owner"
        assert identity.display_name == "SeededOwner"
        assert identity.role == Role.OWNER
        assert identity.account_type == AccountType.ESTABLISHMENT_OWNER

    def test_unknown_account_type_treated_as_regular(self) -> None:
        identity = identity_from_payload(
            {"id": "1", "role": "user", "account_type": "alien"}, identity_for(Role.USER)
        )
        assert identity.account_type == AccountType.REGULAR


@pytest.mark.unit
class TestLogin:
    async def test_posts_credentials_and_parses_session(self, live_settings) -> None:
        handler, seen = _backend(user=_OWNER_USER)
        adapter = _adapter(live_settings, handler)

        identity, session = await adapter.authenticate(identity_for(Role.OWNER))

        request = seen[0]
        assert str(request.url) == "http://backend.test/api/auth/login"
        assert json.loads(request.content) == {
            "login": "owner@pattamap.com",
            "password": "owner-pass",
        }
        assert identity.id == "7b0c3e0e-owner"
        assert session.subject_id == identity.id
        assert session.source == SessionSource.LIVE
        assert session.token == "real.jwt.value"
        assert session.anti_forgery_token == "real-csrf"
        assert {cookie.name for cookie in session.cookies} == {
            "auth-token",
            "pattamap.sid",
            "csrf-token",
        }
        assert all(cookie.domain == "localhost" for cookie in session.cookies)

    async def test_login_returns_session(self, live_settings) -> None:
        handler, _ = _backend(user=_OWNER_USER)
        session = await _adapter(live_settings, handler).login(identity_for(Role.OWNER))
        assert session.role == Role.OWNER

    async def test_explicit_password_wins(self, live_settings) -> None:
        handler, seen = _backend(user=_OWNER_USER)
        await _adapter(live_settings, handler).login(identity_for(Role.OWNER), "override")
        assert json.loads(seen[0].content)["password"] == "override"

    async def test_rejected_credentials(self, live_settings) -> None:
        handler, _ = _backend(status=401)
        with pytest.raises(LiveAuthenticationError, match="Invalid credentials") as exc_info:
            await _adapter(live_settings, handler).login(identity_for(Role.OWNER))
        assert exc_info.value.status_code == 401
        assert exc_info.value.stage == Stage.LIVE_LOGIN
        assert not isinstance(exc_info.value, LiveTransportError)

    async def test_server_error_is_not_transport_error(self, live_settings) -> None:
        handler, _ = _backend(status=503)
        with pytest.raises(LiveLoginError) as exc_info:
            await _adapter(live_settings, handler).login(identity_for(Role.OWNER))
        assert type(exc_info.value) is LiveLoginError
        assert exc_info.value.status_code == 503

    async def test_rate_limit_is_not_a_credential_rejection(self, live_settings) -> None:
        adapter = _adapter(
            live_settings,
            lambda _r: httpx.Response(
                429, json={"error": "Too many attempts"}, headers={"Retry-After": "900"}
            ),
        )
        with pytest.raises(LiveLoginError, match="rate-limited the login request") as exc_info:
            await adapter.login(identity_for(Role.OWNER))
        assert type(exc_info.value) is LiveLoginError
        assert exc_info.value.status_code == 429
        assert "retry after 900s" in str(exc_info.value)

    async def test_missing_csrf_token(self, live_settings) -> None:
        handler, _ = _backend(user=_OWNER_USER, csrf=None)
        with pytest.raises(LiveLoginError, match="csrfToken"):
            await _adapter(live_settings, handler).login(identity_for(Role.OWNER))

    async def test_non_json_body(self, live_settings) -> None:
        adapter = _adapter(live_settings, lambda _r: httpx.Response(200, text="<html>"))
        with pytest.raises(LiveLoginError, match="non-JSON"):
            await adapter.login(identity_for(Role.OWNER))

    async def test_role_mismatch_fails_loudly(self, live_settings) -> None:
        handler, _ = _backend(user={**_OWNER_USER, "account_type": "regular"})
        with pytest.raises(RoleMismatchError) as exc_info:
            await _adapter(live_settings, handler).login(identity_for(Role.OWNER))
        assert exc_info.value.requested == "owner"
        assert exc_info.value.actual == "user"
        assert isinstance(exc_info.value, LiveAuthenticationError)

    async def test_super_admin_account_accepted_for_admin(self, live_settings) -> None:
        handler, _ = _backend(user={"id": "sa-1", "email": "admin@test.com", "role": "super_admin"})
        identity, session = await _adapter(live_settings, handler).authenticate(
            identity_for(Role.ADMIN)
        )
        assert identity.role == Role.ADMIN
        assert identity.backend_role == "super_admin"
        assert session.role == Role.ADMIN

    async def test_timeout_is_transport_error(self, live_settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(LiveTransportError, match="did not answer") as exc_info:
            await _adapter(live_settings, handler).login(identity_for(Role.OWNER))
        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)

    async def test_connection_refused_is_transport_error(self, live_settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(LiveTransportError, match="unreachable"):
            await _adapter(live_settings, handler).login(identity_for(Role.OWNER))

    async def test_missing_password_is_config_error(self, settings) -> None:
        handler, seen = _backend(user=_OWNER_USER)
        with pytest.raises(ConfigError, match="E2E_OWNER_PASSWORD"):
            await _adapter(settings, handler).login(identity_for(Role.OWNER))
        assert seen == []


@pytest.mark.unit
class TestRegister:
    async def test_register_posts_identity(self, live_settings) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"user": {"id": "new-id"}})

        identity = identity_for(Role.OWNER)
        registered = await _adapter(live_settings, handler).register(identity, "pw")

        payload = json.loads(seen[0].content)
        assert seen[0].url.path == "/api/auth/register"
        assert payload == {
            "email": identity.email,
            "pseudonym": identity.display_name,
            "password": "pw",
            "account_type": "establishment_owner",
        }
        assert registered.id == "new-id"

    async def test_duplicate_registration_rejected(self, live_settings) -> None:
        adapter = _adapter(
            live_settings, lambda _r: httpx.Response(409, json={"error": "Email taken"})
        )
        with pytest.raises(LiveAuthenticationError, match="Email taken"):
            await adapter.register(identity_for(Role.USER), "pw")
