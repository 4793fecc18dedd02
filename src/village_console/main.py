# src/village_console/main.py
"""
Command-line front end for the village management API client.

    village-client login --email admin@example.com
    village-client whoami
    village-client validate
    village-client get /apartments -p village_id=3 -p page=2
    village-client logout
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import colorlog
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from village_client import (
    ApiClient,
    ApiError,
    AuthService,
    ClientConfig,
    ConfigError,
    describe_error,
)
from village_client.utils.paths import get_default_root, get_logs_dir

EXIT_OK = 0
EXIT_API_ERROR = 1
EXIT_CONFIG_ERROR = 2

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="village-client",
        description="Talk to the village management API with a persisted session.",
    )
    parser.add_argument("--base-url", type=str, default=None, help="API base URL.")
    parser.add_argument(
        "--session-file", type=str, default=None, help="Where the session is stored."
    )
    parser.add_argument("--debug", action="store_true", help="Verbose console logging.")

    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and store the session.")
    login.add_argument("--email", required=True)
    login.add_argument("--password", default=None, help="Prompted for when omitted.")

    sub.add_parser("logout", help="Log out and clear the stored session.")
    sub.add_parser("whoami", help="Show the logged-in user.")
    sub.add_parser("validate", help="Check that the stored session is still valid.")

    get = sub.add_parser("get", help="GET an endpoint and print the JSON response.")
    get.add_argument("endpoint")
    get.add_argument(
        "-p",
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Query parameter (repeatable).",
    )
    return parser


def parse_params(pairs: Sequence[str]) -> Dict[str, str]:
    """Turn ["a=1", "b=x"] into {"a": "1", "b": "x"}."""
    params: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid parameter '{pair}', expected KEY=VALUE")
        params[key] = value
    return params


def configure_logging(log_dir: Path, debug: bool = False) -> None:
    """Colored console output plus a persistent log file."""
    console_handler = colorlog.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )

    file_handler = logging.FileHandler(log_dir / "village_client.log", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    console_handler.set_name("village_console")
    file_handler.set_name("village_file")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in list(root_logger.handlers):
        if handler.get_name() in ("village_console", "village_file"):
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    # Silence noisy transport loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def print_error(error: ApiError) -> None:
    details = describe_error(error)
    body = details.message
    if details.action:
        body += f"\n[dim]{details.action}[/dim]"
    console.print(Panel(body, title=f"[bold red]{details.title}[/bold red]", expand=False))


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data))


async def run_command(args: argparse.Namespace, config: ClientConfig) -> int:
    async with ApiClient(config) as client:
        client.set_token_refresh_handler(
            on_token_expired=lambda: console.print(
                "[yellow]Session expired. Please log in again.[/yellow]"
            )
        )
        auth = AuthService(client)

        if args.command == "login":
            password = args.password or Prompt.ask("Password", password=True)
            session = await auth.login(args.email, password)
            name = session.user.get("name") or session.user.get("email") or args.email
            console.print(f"[green]Logged in as[/green] [bold]{name}[/bold]")
            return EXIT_OK

        if args.command == "logout":
            await auth.logout()
            console.print("[green]Logged out.[/green]")
            return EXIT_OK

        if args.command == "whoami":
            if not auth.is_authenticated():
                console.print("[yellow]Not logged in.[/yellow]")
                return EXIT_API_ERROR
            print_json(await auth.fetch_current_user())
            return EXIT_OK

        if args.command == "validate":
            valid = await client.validate_token()
            if valid:
                console.print("[green]Session is valid.[/green]")
                return EXIT_OK
            console.print("[red]Session is not valid.[/red]")
            return EXIT_API_ERROR

        if args.command == "get":
            print_json(await client.get(args.endpoint, parse_params(args.param)))
            return EXIT_OK

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    root_dir = get_default_root()
    load_dotenv(root_dir / ".env")
    configure_logging(get_logs_dir(root_dir), debug=args.debug)

    try:
        config = ClientConfig.from_env(
            base_url=args.base_url, session_file=args.session_file
        )
        if args.command == "get":
            parse_params(args.param)
    except (ConfigError, ValueError) as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        return EXIT_CONFIG_ERROR

    try:
        return asyncio.run(run_command(args, config))
    except ApiError as e:
        logging.getLogger("village_console").debug(f"Command failed: {e!r}")
        print_error(e)
        return EXIT_API_ERROR


if __name__ == "__main__":
    sys.exit(main())
