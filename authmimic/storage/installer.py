"""Writes session cookies and client storage into a browser context."""

from __future__ import annotations

import json
import secrets
from typing import TYPE_CHECKING

import structlog
from playwright.async_api import Error as PlaywrightError

from authmimic.constants import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    SESSION_ID_COOKIE,
    SUPABASE_LEGACY_STORAGE_KEY,
    SUPABASE_STORAGE_KEY,
)
from authmimic.exceptions import CookieInstallError
from authmimic.identity.synthesizer import session_payload
from authmimic.models.domain import CookieRecord, Identity, Session
from authmimic.types import SameSite, SessionSource

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext

    from authmimic.config.settings import Settings

logger = structlog.get_logger(__name__)

# Runs before any page script; the Supabase client reads these keys on load.
SEED_STORAGE_JS = """
(data) => {
    try { localStorage; } catch (e) { return; }
    const existing = Object.keys(localStorage).find(
        (key) => key.startsWith('sb-') && key.endsWith('-auth-token')
    );
    const record = JSON.stringify({
        currentSession: data.session,
        expiresAt: data.session.expires_at,
    });
    localStorage.setItem(existing || data.storageKey, record);
    localStorage.setItem(data.legacyKey, record);
}
"""

CLEAR_STORAGE_JS = """
() => {
    try { localStorage; } catch (e) { return; }
    Object.keys(localStorage)
        .filter((key) => key.includes('supabase') || key.startsWith('sb-'))
        .forEach((key) => localStorage.removeItem(key));
}
"""


def synthetic_cookies(
    session: Session, *, domain: str = "localhost", secure: bool = False
) -> list[CookieRecord]:
    """Cookies the backend would set after a successful login."""
    expires = session.expires_at.timestamp()
    return [
        CookieRecord(
            name=SESSION_COOKIE,
            value=session.token,
            domain=domain,
            http_only=True,
            secure=secure,
            expires=expires,
        ),
        CookieRecord(
            name=SESSION_ID_COOKIE,
            value=f"s:{secrets.token_urlsafe(24)}",
            domain=domain,
            http_only=True,
            secure=secure,
        ),
        CookieRecord(
            name=CSRF_COOKIE,
            value=session.anti_forgery_token,
            domain=domain,
            http_only=False,
            secure=secure,
            same_site=SameSite.LAX,
            expires=expires,
        ),
    ]


class CookieStorageInstaller:
    """Installs cookies and storage for one browser context.

    ``install`` must be awaited before the first ``goto`` so the page sees the
    identity on first paint.
    """

    def __init__(self, context: BrowserContext, settings: Settings) -> None:
        self._context = context
        self._settings = settings

    def cookies_for(self, session: Session) -> list[CookieRecord]:
        if session.source == SessionSource.LIVE:
            return list(session.cookies)
        return synthetic_cookies(
            session,
            domain=self._settings.cookie_domain,
            secure=self._settings.cookie_secure,
        )

    async def install(self, session: Session, identity: Identity) -> list[CookieRecord]:
        """Write cookies, then seed client storage, for ``session``."""
        cookies = self.cookies_for(session)
        try:
            if cookies:
                await self._context.add_cookies([cookie.to_playwright() for cookie in cookies])
            await self._context.add_init_script(
                script=f"({SEED_STORAGE_JS})({self._storage_arg(session, identity)})"
            )
        except PlaywrightError as exc:
            raise CookieInstallError(f"Could not install auth state: {exc}") from exc

        logger.info(
            "auth_state_installed",
            role=identity.role.value,
            source=session.source.value,
            cookies=[cookie.name for cookie in cookies],
            domain=self._settings.cookie_domain,
        )
        return cookies

    async def clear(self) -> None:
        """Forget cookies and remove Supabase storage on the next document."""
        try:
            await self._context.clear_cookies()
            await self._context.add_init_script(script=f"({CLEAR_STORAGE_JS})()")
        except PlaywrightError as exc:
            raise CookieInstallError(f"Could not clear auth state: {exc}") from exc
        logger.info("auth_state_cleared")

    @staticmethod
    def _storage_arg(session: Session, identity: Identity) -> str:
        return json.dumps(
            {
                "session": session_payload(session, identity),
                "storageKey": SUPABASE_STORAGE_KEY,
                "legacyKey": SUPABASE_LEGACY_STORAGE_KEY,
            }
        )
