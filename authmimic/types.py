"""Enums and type aliases for authmimic."""

from enum import StrEnum


class Role(StrEnum):
    ANONYMOUS = "anonymous"
    USER = "user"
    OWNER = "owner"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class AccountType(StrEnum):
    REGULAR = "regular"
    EMPLOYEE = "employee"
    ESTABLISHMENT_OWNER = "establishment_owner"


class AuthMode(StrEnum):
    SYNTHETIC = "synthetic"
    LIVE = "live"


class SessionSource(StrEnum):
    SYNTHETIC = "synthetic"
    LIVE = "live"


class Stage(StrEnum):
    REGISTRY = "registry"
    MODE = "mode"
    SYNTHESIS = "synthesis"
    ROUTE_INSTALL = "route-install"
    COOKIE_INSTALL = "cookie-install"
    LIVE_LOGIN = "live-login"
    NAVIGATION = "navigation"


class SameSite(StrEnum):
    STRICT = "Strict"
    LAX = "Lax"
    NONE = "None"
