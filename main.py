"""Command-line interface for the user directory service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from userapi.client import UserDirectoryClient, UserDirectoryError
from userapi.config import ServiceSettings, load_settings

logger = logging.getLogger("userapi.main")

_DEFAULT_SERVICE_URL = "http://127.0.0.1:8000"


def _add_client_options(parser: argparse.ArgumentParser, *, with_token: bool = True) -> None:
    parser.add_argument(
        "--service-url",
        default=None,
        help="Base URL of a running service (default: USERAPI_URL or http://127.0.0.1:8000)",
    )
    if with_token:
        parser.add_argument(
            "--token",
            default=None,
            help="Bearer token to send (default: USERAPI_TOKEN)",
        )


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User directory service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Bind address (overrides configuration)")
    serve_parser.add_argument("--port", type=int, default=None, help="Listen port (overrides configuration)")
    serve_parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (default: USERAPI_CONFIG or config/service.yaml)",
    )

    login_parser = subparsers.add_parser("login", help="Request a new access token")
    _add_client_options(login_parser, with_token=False)

    list_parser = subparsers.add_parser("list-users", help="List stored users")
    _add_client_options(list_parser)
    list_parser.add_argument("--page", type=int, default=None, help="Page number (default: 1)")
    list_parser.add_argument("--size", type=int, default=None, help="Page size (default: 100)")

    add_parser = subparsers.add_parser("add-user", help="Create a user")
    _add_client_options(add_parser)
    add_parser.add_argument("name", help="Display name of the new user")
    add_parser.add_argument("--email", default=None, help="Optional email address")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "login", "list-users", "add-user"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _resolve_service_url(value: str | None) -> str:
    return value or os.getenv("USERAPI_URL") or _DEFAULT_SERVICE_URL


def _resolve_token(value: str | None) -> str | None:
    return value or os.getenv("USERAPI_TOKEN")


def _serve(settings: ServiceSettings, *, host: str | None, port: int | None) -> None:
    from userapi.api import create_app
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting user directory API on http://%s:%s", bind_host, bind_port)

    app = create_app(settings=settings)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=settings.log_level.lower())


def _login(client: UserDirectoryClient) -> int:
    token = client.login()
    print("Issued token:")
    print(token)
    return 0


def _list_users(client: UserDirectoryClient, *, page: int | None, size: int | None) -> int:
    users = client.list_users(page=page, size=size)
    if not users:
        print("No users found.")
        return 0

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  Email")
    print("-" * 64)
    for user in users:
        print(f"{user.id:>4}  {user.name:<24}  {user.email or '<no email>'}")
    return 0


def _add_user(client: UserDirectoryClient, *, name: str, email: str | None) -> int:
    user = client.create_user(name, email)
    print(f"Created user #{user.id}: {user.name} <{user.email or 'no email set'}>")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)

    if args.command == "serve":
        config_path = Path(args.config).expanduser() if args.config else None
        settings = load_settings(config_path)
        logging.basicConfig(
            level=getattr(logging, settings.log_level),
            format="%(asctime)s [%(levelname)s] %(message)s",
        )
        _serve(settings, host=args.host, port=args.port)
        return 0

    logging.basicConfig(level=logging.WARNING, format="%(asctime)s [%(levelname)s] %(message)s")
    token = _resolve_token(getattr(args, "token", None))
    with UserDirectoryClient(_resolve_service_url(args.service_url), token) as client:
        try:
            if args.command == "login":
                return _login(client)
            if args.command == "list-users":
                return _list_users(client, page=args.page, size=args.size)
            if args.command == "add-user":
                return _add_user(client, name=args.name, email=args.email)
        except UserDirectoryError as exc:
            print(f"Request failed ({exc.status_code}): {exc.message}", file=sys.stderr)
            return 1

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
