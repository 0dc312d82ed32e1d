"""Real HTTP login against a running backend, normalised into a Session."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from authmimic.constants import LOGIN_PATH, REGISTER_PATH, SESSION_COOKIE
from authmimic.exceptions import (
    ConfigError,
    LiveAuthenticationError,
    LiveLoginError,
    LiveTransportError,
    RoleMismatchError,
)
from authmimic.live.cookies import parse_set_cookies
from authmimic.models.domain import CookieRecord, Identity, Session
from authmimic.types import AccountType, Role, SessionSource, Stage

if TYPE_CHECKING:
    from authmimic.config.settings import Settings

logger = structlog.get_logger(__name__)

_REJECTED_STATUSES = {400, 401, 403, 422}
_RATE_LIMITED = 429


def resolve_role(backend_role: str | None, account_type: str | None) -> Role:
    """Map the backend's ``role``/``account_type`` pair onto a simulated role."""
    if backend_role == "super_admin":
        return Role.SUPER_ADMIN
    if backend_role == "admin":
        return Role.ADMIN
    if account_type == AccountType.ESTABLISHMENT_OWNER:
        return Role.OWNER
    return Role.USER


def role_satisfies(requested: Role, actual: Role) -> bool:
    """Whether a backend account with ``actual`` role may stand in for ``requested``.

    A super-admin account is accepted for an admin login; nothing else is
    substituted.
    """
    if requested == actual:
        return True
    return requested == Role.ADMIN and actual == Role.SUPER_ADMIN


def identity_from_payload(user: dict[str, Any], requested: Identity) -> Identity:
    """Build the identity the backend actually authenticated."""
    account_type = user.get("account_type") or requested.account_type.value
    backend_role = user.get("role") or "user"
    try:
        parsed_account_type = AccountType(account_type)
    except ValueError:
        parsed_account_type = AccountType.REGULAR
    return Identity(
        id=str(user.get("id") or requested.id),
        email=user.get("email") or requested.email,
        display_name=user.get("pseudonym") or requested.display_name,
        role=resolve_role(backend_role, account_type),
        account_type=parsed_account_type,
        backend_role=backend_role,
    )


class LiveLoginAdapter:
    """Logs in against the real backend with a short, bounded timeout."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._base_url = settings.api_base_url.rstrip("/")
        self._timeout = httpx.Timeout(settings.live_login_timeout_s)
        self._client = client

    async def login(self, identity: Identity, password: str | None = None) -> Session:
        """Log ``identity`` in against the backend and return its session."""
        _, session = await self.authenticate(identity, password)
        return session

    async def authenticate(
        self, identity: Identity, password: str | None = None
    ) -> tuple[Identity, Session]:
        """Log ``identity`` in and return the authenticated identity and session.

        Raises ``LiveTransportError`` when the backend cannot be reached,
        ``LiveAuthenticationError`` when it rejects the credentials and
        ``RoleMismatchError`` when it authenticates another role.
        """
        secret = password or self._settings.password_for(identity.role)
        if not secret:
            raise ConfigError(
                f"Live login as {identity.role} needs "
                f"{self._settings.password_env_var(identity.role)}",
                stage=Stage.LIVE_LOGIN,
            )

        response = await self._post(LOGIN_PATH, {"login": identity.email, "password": secret})
        _raise_if_rate_limited(response, "login")
        if response.status_code in _REJECTED_STATUSES:
            raise LiveAuthenticationError(
                f"Backend rejected login for {identity.email}: {_error_text(response)}",
                status_code=response.status_code,
            )
        if response.is_error:
            raise LiveLoginError(
                f"Backend error during login for {identity.email}: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        body = _json_body(response)
        user = body.get("user")
        csrf_token = body.get("csrfToken")
        if not isinstance(user, dict) or not csrf_token:
            raise LiveLoginError(
                "Login response is missing 'user' or 'csrfToken'",
                status_code=response.status_code,
            )

        authenticated = identity_from_payload(user, identity)
        if not role_satisfies(identity.role, authenticated.role):
            raise RoleMismatchError(
                f"{identity.email} logged in as {authenticated.role}, "
                f"expected {identity.role}",
                requested=identity.role.value,
                actual=authenticated.role.value,
            )
        if authenticated.role != identity.role:
            authenticated = authenticated.model_copy(update={"role": identity.role})

        cookies = parse_set_cookies(
            response.headers.get_list("set-cookie"),
            domain=self._settings.cookie_domain,
        )
        if not any(cookie.name == SESSION_COOKIE for cookie in cookies):
            logger.warning("live_login_without_session_cookie", email=identity.email)

        session = self._session_from(authenticated, cookies, csrf_token)
        logger.info(
            "live_login_succeeded",
            email=authenticated.email,
            role=authenticated.role.value,
            backend_role=authenticated.backend_role,
            cookies=[cookie.name for cookie in cookies],
        )
        return authenticated, session

    async def register(self, identity: Identity, password: str) -> Identity:
        """Create ``identity`` on the backend (for freshly generated identities)."""
        response = await self._post(
            REGISTER_PATH,
            {
                "email": identity.email,
                "pseudonym": identity.display_name,
                "password": password,
                "account_type": identity.account_type.value,
            },
        )
        _raise_if_rate_limited(response, "registration")
        if response.status_code in _REJECTED_STATUSES or response.status_code == 409:
            raise LiveAuthenticationError(
                f"Backend rejected registration for {identity.email}: {_error_text(response)}",
                status_code=response.status_code,
            )
        if response.is_error:
            raise LiveLoginError(
                f"Backend error during registration: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        body = _json_body(response)
        user = body.get("user") if isinstance(body.get("user"), dict) else body
        registered = identity.model_copy(update={"id": str(user.get("id") or identity.id)})
        logger.info("live_user_registered", email=registered.email, user_id=registered.id)
        return registered

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            if self._client is not None:
                return await self._client.post(url, json=payload, timeout=self._timeout)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.post(url, json=payload)
        except httpx.TimeoutException as exc:
            raise LiveTransportError(
                f"Backend at {self._base_url} did not answer within "
                f"{self._settings.live_login_timeout_s}s"
            ) from exc
        except httpx.TransportError as exc:
            raise LiveTransportError(f"Backend at {self._base_url} unreachable: {exc}") from exc

    def _session_from(
        self, identity: Identity, cookies: tuple[CookieRecord, ...], csrf_token: str
    ) -> Session:
        issued_at = datetime.now(UTC).replace(microsecond=0)
        session_cookie = next((c for c in cookies if c.name == SESSION_COOKIE), None)
        if session_cookie is not None and session_cookie.expires is not None:
            expires_at = datetime.fromtimestamp(session_cookie.expires, UTC)
        else:
            expires_at = issued_at + timedelta(seconds=self._settings.session_lifetime_s)
        return Session(
            subject_id=identity.id,
            role=identity.role,
            issued_at=issued_at,
            expires_at=expires_at,
            token=session_cookie.value if session_cookie else "",
            anti_forgery_token=csrf_token,
            source=SessionSource.LIVE,
            cookies=cookies,
        )


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as exc:
        raise LiveLoginError(
            f"Backend returned a non-JSON body (HTTP {response.status_code})",
            status_code=response.status_code,
        ) from exc
    if not isinstance(body, dict):
        raise LiveLoginError("Backend returned a non-object JSON body")
    return body


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return f"{body['error']} (HTTP {response.status_code})"
    return f"HTTP {response.status_code}"


def _raise_if_rate_limited(response: httpx.Response, action: str) -> None:
    if response.status_code != _RATE_LIMITED:
        return
    retry_after = response.headers.get("retry-after")
    hint = f", retry after {retry_after}s" if retry_after else ""
    raise LiveLoginError(
        f"Backend rate-limited the {action} request (HTTP 429{hint}); "
        "unset E2E_AUTH_MODE to use synthetic sessions",
        status_code=_RATE_LIMITED,
    )
