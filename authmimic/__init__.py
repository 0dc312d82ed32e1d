"""Test identities and simulated sessions for Playwright end-to-end suites."""

from authmimic.fixtures import (
    api_request,
    clear_auth,
    login_as,
    login_as_admin,
    login_as_anonymous,
    login_as_owner,
    login_as_user,
    navigate_to_admin_tab,
    navigate_to_tab,
    verify_access,
)
from authmimic.harness import AuthHarness
from authmimic.identity.registry import generate_identity, identity_for
from authmimic.models.domain import Identity, LoginResult, Session
from authmimic.types import AuthMode, Role

__all__ = [
    "AuthHarness",
    "AuthMode",
    "Identity",
    "LoginResult",
    "Role",
    "Session",
    "api_request",
    "clear_auth",
    "generate_identity",
    "identity_for",
    "login_as",
    "login_as_admin",
    "login_as_anonymous",
    "login_as_owner",
    "login_as_user",
    "navigate_to_admin_tab",
    "navigate_to_tab",
    "verify_access",
]
