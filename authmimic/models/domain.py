"""Records passed between the fixture components."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from authmimic.types import AccountType, AuthMode, Role, SameSite, SessionSource


class Identity(BaseModel):
    """A persona a test operates as."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    display_name: str
    role: Role
    account_type: AccountType = AccountType.REGULAR
    backend_role: str = "user"  # value the backend reports in user.role

    @property
    def is_authenticated(self) -> bool:
        return self.role != Role.ANONYMOUS

    def to_backend_user(self) -> dict[str, Any]:
        """Render the identity the way the backend serialises ``user``."""
        return {
            "id": self.id,
            "email": self.email,
            "pseudonym": self.display_name,
            "role": self.backend_role,
            "account_type": self.account_type.value,
        }


class CookieRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str
    domain: str = "localhost"
    path: str = "/"
    http_only: bool = True
    secure: bool = False
    same_site: SameSite = SameSite.LAX
    expires: float | None = None  # unix seconds; None for a session cookie

    def to_playwright(self) -> dict[str, Any]:
        """Return the mapping accepted by ``BrowserContext.add_cookies``."""
        cookie: dict[str, Any] = {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "httpOnly": self.http_only,
            "secure": self.secure,
            "sameSite": self.same_site.value,
        }
        if self.expires is not None:
            cookie["expires"] = self.expires
        return cookie


class Session(BaseModel):
    """Token/expiry pair standing in for an authenticated backend session."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    role: Role
    issued_at: datetime
    expires_at: datetime
    token: str
    refresh_token: str = ""
    anti_forgery_token: str
    source: SessionSource = SessionSource.SYNTHETIC
    cookies: tuple[CookieRecord, ...] = ()

    @property
    def expires_in(self) -> int:
        return int((self.expires_at - self.issued_at).total_seconds())

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) >= self.expires_at


class LoginResult(BaseModel):
    """What a login fixture hands back to the test."""

    model_config = ConfigDict(frozen=True)

    identity: Identity
    session: Session | None = None
    mode: AuthMode = AuthMode.SYNTHETIC
    fell_back: bool = False

    @model_validator(mode="after")
    def _session_references_identity(self) -> LoginResult:
        if self.session is not None and self.session.subject_id != self.identity.id:
            msg = (
                f"session subject {self.session.subject_id!r} does not reference "
                f"identity {self.identity.id!r}"
            )
            raise ValueError(msg)
        return self

    @property
    def csrf_token(self) -> str | None:
        return self.session.anti_forgery_token if self.session else None

    @property
    def role(self) -> Role:
        return self.identity.role


class InterceptedRequest(BaseModel):
    """The parts of an intercepted request a response builder may look at."""

    url: str
    method: str
    path: str
    headers: dict[str, str] = {}
    post_data: str | None = None

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    def json_body(self) -> Any:
        if not self.post_data:
            return None
        return json.loads(self.post_data)


class FixtureResponse(BaseModel):
    status: int = 200
    body: Any = None
    headers: dict[str, str] = {}
    content_type: str = "application/json"

    def render_body(self) -> str:
        if isinstance(self.body, str):
            return self.body
        return json.dumps(self.body)
