"""
FarmLink Client Session Entry Point.

Bootstraps the entire dependency graph via constructor injection, opens
the durable client storage, restores any persisted session and resolves
the current location through the route gate.  Every subsystem is wired
here; there are no module-level globals.

Usage::

    python main.py                              # show session status
    python main.py login +233502345678 secret   # sign in
    python main.py switch-role farmer
    python main.py logout

Set ``DEVELOPMENT_MODE=true`` to answer every request from the fixture
responder instead of the backend.
"""

from __future__ import annotations

import argparse
import asyncio
import atexit
import sys
import traceback
from typing import Optional, Sequence

from farmlink.config import get_config
from farmlink.errors import ApiError
from farmlink.logger import StructuredLogger, get_logger
from farmlink.services import ServiceContainer, create_services, create_storage
from farmlink.ui.navigator import Navigator
from farmlink.ui.paths import DASHBOARD_PATH, LANDING_PATH


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="farmlink", description="FarmLink session client")
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("status", help="show the restored session (default)")

    login = commands.add_parser("login", help="sign in with phone number and password")
    login.add_argument("phone_number")
    login.add_argument("password")

    switch = commands.add_parser("switch-role", help="change the active role")
    switch.add_argument("role")

    commands.add_parser("logout", help="sign out and clear the stored session")
    return parser.parse_args(argv)


async def _run(
    args: argparse.Namespace,
    services: ServiceContainer,
    navigator: Navigator,
    logger: StructuredLogger,
) -> int:
    context = services["session_context"]
    registry = services["route_registry"]
    context.bootstrap()

    try:
        if args.command == "login":
            await context.login({"phone_number": args.phone_number, "password": args.password})
            navigator.redirect(DASHBOARD_PATH)
        elif args.command == "switch-role":
            await context.switch_role(args.role)
            navigator.redirect(DASHBOARD_PATH)
        elif args.command == "logout":
            context.logout()
    except ApiError as exc:
        logger.warning("Command failed: %s", exc.to_display(), extra={"code": str(exc.code)})
        sys.stderr.write(f"{exc.to_display()}\n")
        return 1
    finally:
        await services["api_client"].aclose()

    snapshot = context.snapshot
    decision = registry.resolve(navigator.current_path, snapshot)
    user = snapshot.user
    sys.stdout.write(
        f"user:     {user.full_name if user is not None else '-'}\n"
        f"roles:    {', '.join(user.roles) if user is not None else '-'}\n"
        f"role:     {snapshot.current_role or '-'}\n"
        f"location: {navigator.current_path} -> {decision.action}"
        f"{' ' + decision.target if decision.target else ''}\n"
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Application entry point: wire dependencies and run one command."""
    args = _parse_args(argv)
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting FarmLink client...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Durable client storage (encrypted at rest unless disabled)
    # ------------------------------------------------------------------
    storage = create_storage(config, get_logger("storage"))

    # SqliteStorage.close() is safe to call multiple times.
    atexit.register(storage.close)

    # ------------------------------------------------------------------
    # 3. Navigator and service container (single composition root)
    # ------------------------------------------------------------------
    navigator = Navigator(logger=get_logger("navigator"), initial_path=LANDING_PATH)
    services = create_services(config=config, storage=storage, navigator=navigator)

    try:
        return asyncio.run(_run(args, services, navigator, logger))
    finally:
        services["session_context"].close()
        storage.close()
        logger.info("FarmLink client shut down.")


def _show_fatal_error(exc: BaseException) -> None:
    """Report an unexpected error on stderr with its traceback."""
    detail = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    sys.stderr.write(f"FATAL: {type(exc).__name__}: {exc}\n{detail}")


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        _show_fatal_error(exc)
        sys.exit(1)
