"""Rule sets that make the backend look like it is serving a given identity."""

from __future__ import annotations

from typing import Any

from authmimic import constants as c
from authmimic.identity.synthesizer import session_payload, supabase_user
from authmimic.intercept import payloads
from authmimic.intercept.rules import ResponseBuilder, RouteRule, json_rule
from authmimic.models.domain import FixtureResponse, Identity, InterceptedRequest, Session
from authmimic.types import Role

_UNAUTHENTICATED = {"error": "Authentication required", "isAuthenticated": False}


def auth_user_body(
    identity: Identity,
    *,
    xp: int = payloads.DEFAULT_XP,
    level: int = payloads.DEFAULT_LEVEL,
) -> dict[str, Any]:
    """Body of ``/api/auth/me`` for an authenticated identity."""
    return {
        "user": {
            **identity.to_backend_user(),
            "xp": xp,
            "level": level,
            "streak": payloads.DEFAULT_STREAK,
        },
        "isAuthenticated": True,
    }


def login_body(identity: Identity, session: Session) -> dict[str, Any]:
    """Body of a successful ``POST /api/auth/login``."""
    return {
        "message": "Login successful",
        "user": identity.to_backend_user(),
        "csrfToken": session.anti_forgery_token,
        "session": session_payload(session, identity),
    }


def anonymous_rules() -> list[RouteRule]:
    """Auth-check endpoints answering "not logged in"."""
    return [
        json_rule(path, _UNAUTHENTICATED, method="GET", status=401, name=f"anonymous {path}")
        for path in (c.AUTH_ME_PATH, c.AUTH_PROFILE_PATH, c.USERS_ME_PATH)
    ]


def auth_rules(identity: Identity, session: Session) -> list[RouteRule]:
    """Auth check, login, register, logout, CSRF and Supabase client endpoints."""
    me = auth_user_body(identity)
    csrf = session.anti_forgery_token
    supabase_session = session_payload(session, identity)

    def register(request: InterceptedRequest) -> FixtureResponse:
        submitted = request.json_body() or {}
        user = identity.to_backend_user()
        user["email"] = submitted.get("email", user["email"])
        user["pseudonym"] = submitted.get("pseudonym", user["pseudonym"])
        return FixtureResponse(
            status=201,
            body={"message": "Registration successful", "user": user, "csrfToken": csrf},
        )

    return [
        json_rule(c.AUTH_ME_PATH, me, method="GET", name="auth-me"),
        json_rule(c.AUTH_PROFILE_PATH, me, method="GET", name="auth-profile"),
        json_rule(c.USERS_ME_PATH, me, method="GET", name="users-me"),
        json_rule(c.LOGIN_PATH, login_body(identity, session), method="POST", name="auth-login"),
        RouteRule(c.REGISTER_PATH, register, method="POST", name="auth-register"),
        json_rule(
            c.LOGOUT_PATH,
            {"message": "Logged out successfully"},
            method="POST",
            name="auth-logout",
        ),
        json_rule(c.CSRF_TOKEN_PATH, {"csrfToken": csrf}, method="GET", name="csrf-token"),
        json_rule(c.SUPABASE_TOKEN_PATH, supabase_session, name="supabase-token"),
        json_rule(
            c.SUPABASE_SIGNUP_PATH,
            {"user": supabase_session["user"], "session": supabase_session},
            name="supabase-signup",
        ),
        json_rule(c.SUPABASE_USER_PATH, supabase_user(identity, session), name="supabase-user"),
        json_rule(c.SUPABASE_LOGOUT_PATH, {}, name="supabase-logout"),
        json_rule(
            c.GAMIFICATION_PROFILE_PATH,
            {
                "xp": payloads.DEFAULT_XP,
                "level": payloads.DEFAULT_LEVEL,
                "streak": payloads.DEFAULT_STREAK,
                "badges": payloads.rows(payloads.GAMIFICATION_BADGES),
                "rank": payloads.DEFAULT_RANK,
            },
            method="GET",
            name="gamification-profile",
        ),
    ]


def _created(message: str, key: str) -> ResponseBuilder:
    def build(request: InterceptedRequest) -> FixtureResponse:
        return FixtureResponse(
            status=201,
            body={"message": message, key: request.json_body() or {}},
        )

    return build


def listing_rules(identity: Identity, session: Session) -> list[RouteRule]:
    """Role-scoped listings and the mutating endpoints next to them."""
    csrf = session.anti_forgery_token
    role = identity.role

    if role == Role.USER:
        return [
            json_rule(
                c.FAVORITES_PATH,
                {"favorites": payloads.rows(payloads.FAVORITES)},
                method="GET",
                name="user-favorites",
            ),
            RouteRule(
                c.FAVORITES_PATH,
                _created("Added to favorites", "favorite"),
                method="POST",
                name="user-add-favorite",
                csrf_token=csrf,
            ),
            RouteRule(
                c.COMMENTS_PATH,
                _created("Comment created", "comment"),
                method="POST",
                name="user-create-comment",
                csrf_token=csrf,
            ),
        ]

    if role == Role.OWNER:
        owned = payloads.rows(payloads.OWNER_ESTABLISHMENTS)
        return [
            json_rule(
                c.OWNER_ESTABLISHMENTS_PATH,
                {"establishments": owned, "total": len(owned)},
                method="GET",
                name="owner-establishments",
            ),
            json_rule(
                c.OWNER_REQUESTS_PATH,
                {"requests": payloads.rows(payloads.OWNERSHIP_REQUESTS)},
                method="GET",
                name="owner-requests",
            ),
            RouteRule(
                c.OWNERSHIP_REQUESTS_PATH,
                _created("Ownership request submitted", "request"),
                method="POST",
                name="owner-create-request",
                csrf_token=csrf,
            ),
        ]

    if role in (Role.ADMIN, Role.SUPER_ADMIN):

        def approve(request: InterceptedRequest) -> FixtureResponse:
            establishment_id = request.path.rstrip("/").split("/")[-2]
            return FixtureResponse(
                body={
                    "message": "Establishment approved",
                    "establishment": {"id": establishment_id, "status": "approved"},
                }
            )

        return [
            json_rule(
                c.ADMIN_ESTABLISHMENTS_PATH,
                {"establishments": payloads.rows(payloads.ADMIN_ESTABLISHMENTS)},
                method="GET",
                name="admin-establishments",
            ),
            json_rule(
                c.ADMIN_EMPLOYEES_PATH,
                {"employees": payloads.rows(payloads.ADMIN_EMPLOYEES)},
                method="GET",
                name="admin-employees",
            ),
            json_rule(
                c.ADMIN_OWNERSHIP_REQUESTS_PATH,
                {"requests": payloads.rows(payloads.OWNERSHIP_REQUESTS)},
                method="GET",
                name="admin-ownership-requests",
            ),
            RouteRule(
                c.ADMIN_ESTABLISHMENT_APPROVE_PATH,
                approve,
                method="POST",
                name="admin-approve-establishment",
                csrf_token=csrf,
            ),
        ]

    return []


def build_rules(
    identity: Identity,
    session: Session | None,
    *,
    include_auth: bool = True,
    include_listings: bool = True,
) -> list[RouteRule]:
    """Return the full rule set for ``identity``.

    Every token in the rules comes from ``session``; nothing is generated here.
    """
    if not identity.is_authenticated or session is None:
        return anonymous_rules()
    rules: list[RouteRule] = []
    if include_auth:
        rules.extend(auth_rules(identity, session))
    if include_listings:
        rules.extend(listing_rules(identity, session))
    return rules
