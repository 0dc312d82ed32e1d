"""Command-line entry point: write storage-state files and show the resolved mode."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from authmimic.browser import BrowserManager
from authmimic.config.logging import setup_logging
from authmimic.config.settings import Settings, get_settings
from authmimic.exceptions import AuthMimicError
from authmimic.harness import AuthHarness
from authmimic.mode import select_mode
from authmimic.types import Role

logger = structlog.get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authmimic",
        description="Test identities and sessions for Playwright suites.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    state_p = sub.add_parser(
        "storage-state", help="Log in as a role and save the context's storage state"
    )
    state_p.add_argument(
        "--role",
        required=True,
        choices=[role.value for role in Role if role != Role.ANONYMOUS],
        help="Role to log in as",
    )
    state_p.add_argument("--out", required=True, type=Path, help="Output JSON file")
    state_p.add_argument(
        "--goto",
        default=None,
        help="App path to open before saving, so localStorage is captured too",
    )
    state_p.add_argument("--mode", choices=("synthetic", "live"), default=None)

    sub.add_parser("mode", help="Print the auth mode the current environment selects")
    return parser


async def write_storage_state(
    settings: Settings, role: Role, out: Path, goto: str | None = None
) -> Path:
    """Log in as ``role`` in a fresh headless context and save its storage state."""
    manager = BrowserManager(headless=True, base_url=settings.app_base_url)
    await manager.launch()
    try:
        context = await manager.new_context()
        page = await manager.new_page(context)
        harness = AuthHarness(context, settings)
        result = await harness.login_as(role, page=page, navigate_to=goto)
        await harness.check()
        out.parent.mkdir(parents=True, exist_ok=True)
        await context.storage_state(path=str(out))
        logger.info(
            "storage_state_written",
            path=str(out),
            role=result.role.value,
            mode=result.mode.value,
            fell_back=result.fell_back,
        )
    finally:
        await manager.close()
    return out


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.log_json)

    if args.command == "mode":
        print(select_mode(settings).value)
        return 0

    if args.mode:
        settings = settings.model_copy(update={"auth_mode": args.mode})
    try:
        path = asyncio.run(write_storage_state(settings, Role(args.role), args.out, args.goto))
    except AuthMimicError as exc:
        print(f"authmimic: {exc}", file=sys.stderr)
        return 1
    print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
