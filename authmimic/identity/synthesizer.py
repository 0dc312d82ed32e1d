"""Synthetic session tokens for a given identity."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import structlog

from authmimic.constants import DEFAULT_SESSION_LIFETIME_S
from authmimic.exceptions import SynthesisError
from authmimic.models.domain import Identity, Session
from authmimic.types import SessionSource

logger = structlog.get_logger(__name__)


def synthesize(
    identity: Identity,
    *,
    now: datetime | None = None,
    lifetime: int = DEFAULT_SESSION_LIFETIME_S,
) -> Session:
    """Build a session and its anti-forgery token for ``identity``.

    The access token is an HS256 JWT carrying the same claims the backend puts
    in ``auth-token``, signed with a throwaway per-session key. The CSRF token
    comes from an independent random source. Both are generated here and
    nowhere else: route fixtures and request helpers read them from the
    returned ``Session``.
    """
    if not identity.is_authenticated:
        raise SynthesisError(f"Cannot synthesize a session for role {identity.role}")
    if lifetime <= 0:
        raise SynthesisError(f"Session lifetime must be positive, got {lifetime}")

    issued_at = (now or datetime.now(UTC)).replace(microsecond=0)
    expires_at = issued_at + timedelta(seconds=lifetime)

    claims = {
        "sub": identity.id,
        "userId": identity.id,
        "email": identity.email,
        "role": identity.backend_role,
        "account_type": identity.account_type.value,
        "aud": "authenticated",
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
        "jti": secrets.token_hex(8),
    }
    try:
        token = jwt.encode(claims, secrets.token_bytes(32), algorithm="HS256")
    except jwt.PyJWTError as exc:
        raise SynthesisError(f"Could not encode session token: {exc}") from exc

    session = Session(
        subject_id=identity.id,
        role=identity.role,
        issued_at=issued_at,
        expires_at=expires_at,
        token=token,
        refresh_token=secrets.token_urlsafe(24),
        anti_forgery_token=f"mock-csrf-{identity.role.value}-{secrets.token_hex(16)}",
        source=SessionSource.SYNTHETIC,
    )
    logger.debug(
        "session_synthesized",
        role=identity.role.value,
        subject_id=identity.id,
        expires_at=expires_at.isoformat(),
    )
    return session


def token_claims(session: Session) -> dict[str, Any]:
    """Decode the session token's claims without verifying its signature."""
    return jwt.decode(session.token, options={"verify_signature": False})


def session_payload(session: Session, identity: Identity) -> dict[str, Any]:
    """Render the Supabase-style session object the client stores and receives."""
    return {
        "access_token": session.token,
        "refresh_token": session.refresh_token,
        "token_type": "bearer",
        "expires_in": session.expires_in,
        "expires_at": int(session.expires_at.timestamp()),
        "user": supabase_user(identity, session),
    }


def supabase_user(identity: Identity, session: Session) -> dict[str, Any]:
    """Render ``identity`` the way the Supabase auth API returns a user."""
    stamp = session.issued_at.isoformat()
    return {
        "id": identity.id,
        "email": identity.email,
        "aud": "authenticated",
        "role": "authenticated",
        "user_metadata": {"pseudonym": identity.display_name, "avatar_url": None},
        "app_metadata": {
            "role": identity.backend_role,
            "account_type": identity.account_type.value,
        },
        "created_at": stamp,
        "updated_at": stamp,
    }
