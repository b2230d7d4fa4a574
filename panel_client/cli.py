from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import os
import sys
from dataclasses import replace
from pathlib import Path

from panel_client.client import AuthClient
from panel_client.config import LOGIN_ENTRY_POINT, ClientSettings
from panel_client.logging_conf import get_logger, setup_logging
from panel_client.types import AuthClientError
from panel_client.utils import SmokeError

logger = get_logger("panel_client.cli")

EXIT_SESSION_EXPIRED = 3


class CliNavigator:
    """The CLI's login entry point: tell the user to log in again."""

    def __init__(self) -> None:
        self.redirected = False

    def go_to_login(self) -> None:
        self.redirected = True
        print(
            f"Session expired ({LOGIN_ENTRY_POINT}); run `panel-client login` to sign in again.",
            file=sys.stderr,
        )


def _json_body(raw: str) -> object:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"invalid JSON body: {e}") from e


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments for the panel client."""
    parser = argparse.ArgumentParser(prog="panel-client", description="Admin panel API client")
    parser.add_argument("--api-base", default=None, help="Backend base URL (default: $API_BASE)")
    parser.add_argument("--session-file", default=None, help="Session file (default: $PANEL_SESSION_FILE)")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("login", "register"):
        p = sub.add_parser(name, help=f"{name} and store the session")
        p.add_argument("--email", required=True)
        p.add_argument("--password", default=os.getenv("PANEL_PASSWORD"))

    sub.add_parser("logout", help="forget the stored session")
    sub.add_parser("status", help="report whether a session is stored")

    req = sub.add_parser("request", help="send an authenticated request")
    req.add_argument("method", type=str.upper)
    req.add_argument("path")
    req.add_argument("--json", dest="body", type=_json_body, default=None, help="JSON request body")

    smoke = sub.add_parser("smoke", help="run the concurrent-refresh smoke check")
    smoke.add_argument("--concurrency", type=int, default=8)
    smoke.add_argument("--expiry-wait", type=float, default=1.5, dest="expiry_wait_s")
    smoke.add_argument("--timeout", type=float, default=20.0)
    return parser.parse_args(argv)


def _settings(args: argparse.Namespace) -> ClientSettings:
    settings = ClientSettings.from_env()
    if args.api_base:
        settings = replace(settings, api_base=args.api_base)
    if args.session_file:
        settings = replace(settings, session_file=Path(args.session_file))
    return settings


async def _run(args: argparse.Namespace) -> int:
    settings = _settings(args)
    if args.command == "smoke":
        from panel_client.smoke import run_smoke

        return await run_smoke(
            base_url=settings.api_base,
            concurrency=args.concurrency,
            expiry_wait_s=args.expiry_wait_s,
            timeout_s=args.timeout,
        )

    navigator = CliNavigator()
    async with AuthClient.create(settings, navigator=navigator) as client:
        if args.command in ("login", "register"):
            password = args.password or getpass.getpass("Password: ")
            flow = client.login if args.command == "login" else client.register
            await flow(args.email, password)
            print(json.dumps({"authenticated": True}))
            return 0
        if args.command == "logout":
            client.logout()
            print(json.dumps({"authenticated": False}))
            return 0
        if args.command == "status":
            authenticated = client.is_authenticated()
            print(json.dumps({"authenticated": authenticated}))
            return 0 if authenticated else 1

        options = {"json": args.body} if args.body is not None else {}
        resp = await client.request(args.path, method=args.method, **options)
        try:
            body = resp.json()
        except ValueError:
            body = resp.text
        print(json.dumps({"status": resp.status_code, "body": body}, ensure_ascii=False))
        if navigator.redirected:
            return EXIT_SESSION_EXPIRED
        return 0 if resp.is_success else 1


def main(argv: list[str] | None = None) -> None:
    setup_logging()
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        code = asyncio.run(_run(args))
    except AuthClientError as e:
        logger.error("cli.failed", extra={"event": "cli_failed", "error_code": e.code, "error": str(e)})
        print(json.dumps({"error_code": e.code, "error_message": str(e)}), file=sys.stderr)
        code = 1
    except SmokeError as e:
        logger.error("smoke.failed", extra={"event": "smoke_failed", "error": str(e)})
        code = 1
    raise SystemExit(code)


if __name__ == "__main__":
    main()
