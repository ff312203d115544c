"""
codex-router command line.

Keeps several Codex logins side by side and swaps ~/.codex/auth.json
between them:

    codex-router list
    codex-router add <name>
    codex-router save <name>
    codex-router switch <name>
    codex-router remove <name>
    codex-router current
"""

import argparse
import asyncio
import shlex
import subprocess
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, TextIO

import httpx

from codex_router import config
from codex_router.auth.codex_auth import CodexAuthStore
from codex_router.auth.errors import CodexRouterError
from codex_router.auth.oauth import TokenRefresher
from codex_router.auth.storage import ProfileStorage, validate_name
from codex_router.logging_setup import setup_logging

USAGE = """Usage:
  codex-router list                 List saved accounts
  codex-router add <name>           Login and save a new account
  codex-router save <name>          Save the current account without logging in
  codex-router switch <name>        Switch to a saved account
  codex-router remove <name>        Remove a saved account
  codex-router current              Show which saved account is active"""


class LoginError(Exception):
    pass


def run_login(command: str = None) -> int:
    """Run the interactive login with the terminal attached. Returns its exit code."""
    args = shlex.split(command or config.LOGIN_COMMAND)
    try:
        return subprocess.run(args).returncode
    except OSError as e:
        raise LoginError(f"Failed to launch `{' '.join(args)}`: {e}") from e


@dataclass
class RouterContext:
    auth_store: CodexAuthStore
    profiles: ProfileStorage
    refresher: TokenRefresher
    login: Callable[[], int] = run_login
    out: TextIO = field(default_factory=lambda: sys.stdout)
    err: TextIO = field(default_factory=lambda: sys.stderr)

    @classmethod
    def create(cls, home_dir: str = None) -> "RouterContext":
        return cls(
            auth_store=CodexAuthStore(home_dir),
            profiles=ProfileStorage(home_dir),
            refresher=TokenRefresher(),
        )

    def log(self, message: str) -> None:
        print(message, file=self.out)

    def error(self, message: str) -> None:
        print(message, file=self.err)


def _format_date(saved_at: str) -> str:
    try:
        return datetime.fromisoformat(saved_at.replace("Z", "+00:00")).astimezone().strftime("%x")
    except ValueError:
        return saved_at


def _active_token(ctx: RouterContext) -> Optional[str]:
    current = ctx.auth_store.read()
    return current.tokens.access_token if current else None


def cmd_list(ctx: RouterContext) -> int:
    accounts = ctx.profiles.list(_active_token(ctx))

    if not accounts:
        ctx.log("No saved accounts. Use `codex-router add <name>` to save your current account.")
        return 0

    ctx.log("Saved accounts:")
    for a in accounts:
        marker = " (active)" if a.is_active else ""
        ctx.log(f"  {a.name}{marker} - saved {_format_date(a.saved_at)}")
    return 0


def cmd_current(ctx: RouterContext) -> int:
    token = _active_token(ctx)
    if token is None:
        ctx.log(f"No active credentials at {ctx.auth_store.path()}.")
        return 1

    active = [a.name for a in ctx.profiles.list(token) if a.is_active]
    if not active:
        ctx.log("The active credentials do not match any saved account.")
        return 1

    ctx.log(", ".join(active))
    return 0


def cmd_add(ctx: RouterContext, name: str) -> int:
    validate_name(name)

    ctx.log("Starting login flow...")
    try:
        exit_code = ctx.login()
    except LoginError as e:
        ctx.error(f"Error: {e}")
        return 1

    if exit_code != 0:
        ctx.error(f"codex login exited with code {exit_code}.")
        return 1

    new_auth = ctx.auth_store.read()
    if new_auth is None:
        ctx.error("Error: Login did not produce credentials.")
        return 1

    ctx.profiles.upsert(name, new_auth)
    ctx.log(f"Account \"{name}\" saved.")
    return 0


def cmd_save(ctx: RouterContext, name: str) -> int:
    validate_name(name)

    current = ctx.auth_store.read()
    if current is None:
        ctx.error(f"Error: No credentials at {ctx.auth_store.path()}. Run `codex login` first.")
        return 1

    ctx.profiles.save(name, current)
    ctx.log(f"Account \"{name}\" saved.")
    return 0


async def cmd_switch(ctx: RouterContext, name: str) -> int:
    validate_name(name)

    account = ctx.profiles.load(name)
    if account is None:
        ctx.error(f"Error: Account \"{name}\" not found. Use `codex-router list` to see available accounts.")
        return 1

    outcome = await ctx.refresher.refresh_if_expired(account.credentials)
    ctx.auth_store.write(outcome.credentials)

    if outcome.refreshed:
        ctx.profiles.upsert(name, outcome.credentials)

    note = " (tokens refreshed)" if outcome.refreshed else ""
    ctx.log(f"Switched to account \"{name}\"{note}. Please restart Codex.")
    return 0


def cmd_remove(ctx: RouterContext, name: str) -> int:
    validate_name(name)

    if not ctx.profiles.remove(name):
        ctx.error(f"Account \"{name}\" not found.")
        return 1

    ctx.log(f"Account \"{name}\" removed.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="codex-router", description="Switch between saved Codex accounts")
    parser.add_argument("--home", default=None, help="Directory to use instead of the home directory")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Logging level (default: %(default)s)")

    parser.add_argument("command", nargs="?", help="list, add, save, switch, remove or current")
    parser.add_argument("name", nargs="?", help="Account name")
    return parser


def run(argv: List[str], ctx: RouterContext) -> int:
    return dispatch(build_parser().parse_args(argv), ctx)


def dispatch(args: argparse.Namespace, ctx: RouterContext) -> int:
    try:
        if args.command == "list":
            return cmd_list(ctx)
        if args.command == "current":
            return cmd_current(ctx)
        if args.command in ("add", "save", "switch", "remove") and args.name is not None:
            if args.command == "add":
                return cmd_add(ctx, args.name)
            if args.command == "save":
                return cmd_save(ctx, args.name)
            if args.command == "switch":
                return asyncio.run(cmd_switch(ctx, args.name))
            return cmd_remove(ctx, args.name)
    except (CodexRouterError, OSError, httpx.HTTPError) as e:
        ctx.error(f"Error: {e}")
        return 1

    ctx.log(USAGE)
    return 1


def main(argv: List[str] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    return dispatch(args, RouterContext.create(args.home))


if __name__ == "__main__":
    sys.exit(main())
