"""Canonical and generated identities for every simulated role."""

from __future__ import annotations

import secrets
import time
import uuid
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

import structlog

from authmimic.constants import GENERATED_EMAIL_DOMAIN
from authmimic.exceptions import ConfigError
from authmimic.models.domain import Identity
from authmimic.types import AccountType, Role, Stage

logger = structlog.get_logger(__name__)

_CANONICAL: Mapping[Role, Identity] = MappingProxyType(
    {
        Role.ANONYMOUS: Identity(
            id="anonymous",
            email="",
            display_name="Guest",
            role=Role.ANONYMOUS,
            backend_role="anonymous",
        ),
        Role.USER: Identity(
            id="mock-user-id-12345-e2e-test",
            email="test@pattamap.com",
            display_name="TestUser",
            role=Role.USER,
        ),
        Role.OWNER: Identity(
            id="mock-owner-id-12345-e2e-test",
            email="owner@pattamap.com",
            display_name="TestOwner",
            role=Role.OWNER,
            account_type=AccountType.ESTABLISHMENT_OWNER,
        ),
        Role.ADMIN: Identity(
            id="mock-admin-id-12345-e2e-test",
            email="admin@pattamap.com",
            display_name="AdminUser",
            role=Role.ADMIN,
            backend_role="admin",
        ),
        Role.SUPER_ADMIN: Identity(
            id="mock-superadmin-id-12345-e2e-test",
            email="superadmin@pattamap.com",
            display_name="SuperAdminUser",
            role=Role.SUPER_ADMIN,
            backend_role="super_admin",
        ),
    }
)

_EMAIL_PREFIX = {
    Role.USER: "test",
    Role.OWNER: "owner",
    Role.ADMIN: "admin",
    Role.SUPER_ADMIN: "superadmin",
}

_OVERRIDABLE = {"id", "email", "display_name", "account_type"}


def coerce_role(role: Role | str) -> Role:
    """Turn a role name into a ``Role``, failing at setup time for unknown names."""
    if isinstance(role, Role):
        return role
    try:
        return Role(str(role).strip().lower())
    except ValueError:
        known = ", ".join(r.value for r in Role)
        raise ConfigError(
            f"Unknown role {role!r} (known roles: {known})", stage=Stage.REGISTRY
        ) from None


def identity_for(role: Role | str) -> Identity:
    """Return the canonical identity for ``role``.

    The same object is returned on every call within a process, so route
    fixtures that refer to "the owner" stay consistent across tests.
    """
    return _CANONICAL[coerce_role(role)]


def generate_identity(role: Role | str) -> Identity:
    """Return a fresh identity with a collision-resistant email and name.

    Used in live mode where the backend enforces unique emails and pseudonyms.
    """
    resolved = coerce_role(role)
    if resolved == Role.ANONYMOUS:
        raise ConfigError("Cannot generate an anonymous identity", stage=Stage.REGISTRY)

    base = _CANONICAL[resolved]
    timestamp = int(time.time() * 1000)
    suffix = f"{timestamp}.{secrets.randbelow(1_000_000):06d}"
    prefix = _EMAIL_PREFIX[resolved]
    identity = base.model_copy(
        update={
            "id": str(uuid.uuid4()),
            "email": f"{prefix}.e2e.{suffix}@{GENERATED_EMAIL_DOMAIN}",
            "display_name": f"{prefix.capitalize()}User{suffix.replace('.', '')}",
        }
    )
    logger.debug("identity_generated", role=resolved.value, email=identity.email)
    return identity


def apply_overrides(identity: Identity, overrides: Mapping[str, Any] | None) -> Identity:
    """Return ``identity`` with selected fields replaced.

    The role and backend role cannot be overridden; use another fixture instead.
    """
    if not overrides:
        return identity
    unknown = set(overrides) - _OVERRIDABLE
    if unknown:
        raise ConfigError(
            f"Cannot override identity field(s): {', '.join(sorted(unknown))}",
            stage=Stage.REGISTRY,
        )
    update = dict(overrides)
    if "account_type" in update:
        try:
            update["account_type"] = AccountType(update["account_type"])
        except ValueError:
            raise ConfigError(
                f"Unknown account type {update['account_type']!r}", stage=Stage.REGISTRY
            ) from None
    return identity.model_copy(update=update)


def known_roles() -> tuple[Role, ...]:
    return tuple(_CANONICAL)
