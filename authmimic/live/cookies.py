"""Set-Cookie header parsing into cookie records."""

from __future__ import annotations

import time
from email.utils import parsedate_to_datetime

import structlog

from authmimic.models.domain import CookieRecord
from authmimic.types import SameSite

logger = structlog.get_logger(__name__)

_SAME_SITE = {"strict": SameSite.STRICT, "lax": SameSite.LAX, "none": SameSite.NONE}


def parse_set_cookie(header: str, *, domain: str, now: float | None = None) -> CookieRecord | None:
    """Parse one ``Set-Cookie`` header value.

    The domain is always rewritten to ``domain``: the browser under test talks
    to the app origin, not the API origin the header came from. Returns
    ``None`` for a header without a cookie name.
    """
    parts = [part.strip() for part in header.split(";")]
    name, sep, value = parts[0].partition("=")
    name = name.strip()
    if not sep or not name:
        logger.warning("set_cookie_unparseable", header=header[:40])
        return None

    attributes: dict[str, str] = {}
    flags: set[str] = set()
    for part in parts[1:]:
        if not part:
            continue
        key, has_value, attr_value = part.partition("=")
        if has_value:
            attributes[key.strip().lower()] = attr_value.strip()
        else:
            flags.add(key.strip().lower())

    expires: float | None = None
    if "max-age" in attributes:
        try:
            expires = (now if now is not None else time.time()) + int(attributes["max-age"])
        except ValueError:
            logger.warning("set_cookie_bad_max_age", cookie=name, value=attributes["max-age"])
    elif "expires" in attributes:
        try:
            expires = parsedate_to_datetime(attributes["expires"]).timestamp()
        except (TypeError, ValueError):
            logger.warning("set_cookie_bad_expires", cookie=name, value=attributes["expires"])

    secure = "secure" in flags
    same_site = _SAME_SITE.get(attributes.get("samesite", "lax").lower(), SameSite.LAX)
    if same_site == SameSite.NONE and not secure:
        # Chromium drops SameSite=None cookies that are not Secure
        same_site = SameSite.LAX

    return CookieRecord(
        name=name,
        value=value.strip().strip('"'),
        domain=domain,
        path=attributes.get("path", "/") or "/",
        http_only="httponly" in flags,
        secure=secure,
        same_site=same_site,
        expires=expires,
    )


def parse_set_cookies(
    headers: list[str], *, domain: str, now: float | None = None
) -> tuple[CookieRecord, ...]:
    """Parse every ``Set-Cookie`` header; later headers replace earlier ones by name."""
    by_name: dict[str, CookieRecord] = {}
    for header in headers:
        record = parse_set_cookie(header, domain=domain, now=now)
        if record is not None:
            by_name[record.name] = record
    return tuple(by_name.values())
