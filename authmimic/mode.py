"""Choice between synthetic and live sessions, with a visible live fallback."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

import structlog

from authmimic.exceptions import ConfigError, LiveTransportError
from authmimic.identity.synthesizer import synthesize
from authmimic.live.adapter import LiveLoginAdapter
from authmimic.models.domain import Identity, LoginResult
from authmimic.types import AuthMode, Role, Stage

if TYPE_CHECKING:
    from authmimic.config.settings import Settings

logger = structlog.get_logger(__name__)


def select_mode(settings: Settings) -> AuthMode:
    """Return the auth mode for this run.

    An explicit ``E2E_AUTH_MODE`` wins. Without one every run is synthetic,
    in CI and locally alike: live mode is strictly opt-in.
    """
    if settings.auth_mode is not None:
        return AuthMode(settings.auth_mode)
    return AuthMode.SYNTHETIC


def validate_live_config(settings: Settings, role: Role, *, fresh: bool = False) -> None:
    """Fail before any network activity when live mode cannot log ``role`` in."""
    if not settings.api_base_url:
        raise ConfigError("Live auth mode needs E2E_API_BASE_URL", stage=Stage.MODE)
    if fresh:
        return
    if not settings.email_for(role):
        raise ConfigError(
            f"Live auth mode needs E2E_{role.value.upper()}_EMAIL", stage=Stage.MODE
        )
    if not settings.password_for(role):
        raise ConfigError(
            f"Live auth mode needs {settings.password_env_var(role)} for role {role}",
            stage=Stage.MODE,
        )


class ModeSelector:
    """Turns an identity into a ``LoginResult`` in the mode chosen for the run.

    The mode is decided once, from the ``Settings`` handed in, and never
    re-read from the environment.
    """

    def __init__(self, settings: Settings, adapter: LiveLoginAdapter | None = None) -> None:
        self._settings = settings
        self._mode = select_mode(settings)
        self._adapter = adapter

    @property
    def mode(self) -> AuthMode:
        return self._mode

    @property
    def adapter(self) -> LiveLoginAdapter:
        if self._adapter is None:
            self._adapter = LiveLoginAdapter(self._settings)
        return self._adapter

    async def acquire(self, identity: Identity, *, fresh: bool = False) -> LoginResult:
        """Return the session for ``identity``.

        In live mode a transport failure falls back to a synthetic session
        when ``allow_live_fallback`` is set; credential and role errors always
        propagate.
        """
        if not identity.is_authenticated:
            return LoginResult(identity=identity, mode=self._mode)
        if self._mode == AuthMode.SYNTHETIC:
            return self._synthetic(identity)

        validate_live_config(self._settings, identity.role, fresh=fresh)
        try:
            return await self._live(identity, fresh=fresh)
        except LiveTransportError as exc:
            if not self._settings.allow_live_fallback:
                raise
            logger.warning(
                "live_login_fallback",
                role=identity.role.value,
                email=identity.email,
                api_base_url=self._settings.api_base_url,
                error=exc.detail,
            )
            return self._synthetic(identity, fell_back=True)

    def _synthetic(self, identity: Identity, *, fell_back: bool = False) -> LoginResult:
        session = synthesize(identity, lifetime=self._settings.session_lifetime_s)
        return LoginResult(
            identity=identity,
            session=session,
            mode=AuthMode.SYNTHETIC,
            fell_back=fell_back,
        )

    async def _live(self, identity: Identity, *, fresh: bool) -> LoginResult:
        if fresh:
            password = f"E2e-{secrets.token_urlsafe(12)}1!"
            registered = await self.adapter.register(identity, password)
            authenticated, session = await self.adapter.authenticate(registered, password)
        else:
            account = identity.model_copy(
                update={"email": self._settings.email_for(identity.role)}
            )
            authenticated, session = await self.adapter.authenticate(account)
        return LoginResult(identity=authenticated, session=session, mode=AuthMode.LIVE)
