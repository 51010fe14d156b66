"""CLI entry point for cli-ai-agent."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from getpass import getpass
from pathlib import Path
from typing import Awaitable, Callable

from cli_ai_agent.app import AgentApp
from cli_ai_agent.auth.session import require_user
from cli_ai_agent.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from cli_ai_agent.core.types import Mode
from cli_ai_agent.errors import AgentError, Cancelled
from cli_ai_agent.log import get_logger, setup_logging
from cli_ai_agent.ui.terminal import RichTerminal, Terminal

logger = get_logger(__name__)


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config", default=str(DEFAULT_CONFIG_PATH), help="Path to config file"
    )
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log at DEBUG level to stderr"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cli-ai-agent",
        description="Terminal AI assistant with chat, tool calling and agent modes",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    login_parser = subparsers.add_parser("login", help="Store an access token")
    _add_common_args(login_parser)
    login_parser.add_argument("--token", help="Access token (prompted when omitted)")
    login_parser.add_argument("--refresh-token", help="Refresh token")
    login_parser.add_argument("--token-type", default="Bearer", help="Token type")
    login_parser.add_argument("--scope", help="Granted scope")
    login_parser.add_argument(
        "--expires-in", type=int, default=7 * 24 * 3600, help="Token lifetime in seconds"
    )

    logout_parser = subparsers.add_parser("logout", help="Delete the stored token")
    _add_common_args(logout_parser)

    whoami_parser = subparsers.add_parser("whoami", help="Show the authenticated user")
    _add_common_args(whoami_parser)

    wakeup_parser = subparsers.add_parser("wakeup", help="Wake up the AI agent and pick a mode")
    _add_common_args(wakeup_parser)
    wakeup_parser.add_argument("--conversation-id", help="Resume an existing conversation")

    chat_parser = subparsers.add_parser("chat", help="Start a chat session")
    _add_common_args(chat_parser)
    chat_parser.add_argument(
        "-m", "--mode", choices=[m.value for m in Mode], help="Conversation mode"
    )
    chat_parser.add_argument("--conversation-id", help="Resume an existing conversation")

    list_parser = subparsers.add_parser("conversations", help="List your conversations")
    _add_common_args(list_parser)
    list_parser.add_argument("-m", "--mode", choices=[m.value for m in Mode], help="Filter by mode")
    list_parser.add_argument("-n", "--limit", type=int, default=20, help="Maximum rows")

    check_parser = subparsers.add_parser("config-check", help="Validate configuration")
    _add_common_args(check_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        # Default to wakeup
        args = parser.parse_args(["wakeup"])

    try:
        config = load_config(args.config, args.env)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.verbose:
        setup_logging("DEBUG")
    else:
        setup_logging(config.log_level, config.log_file)

    if args.command == "config-check":
        sys.exit(_check_config(config, args.config))

    terminal = RichTerminal()
    commands: dict[str, Callable[[], Awaitable[int]]] = {
        "login": lambda: _login(config, terminal, args),
        "logout": lambda: _logout(config, terminal),
        "whoami": lambda: _whoami(config, terminal),
        "wakeup": lambda: _chat(config, terminal, None, args.conversation_id),
        "chat": lambda: _chat(config, terminal, args.mode, args.conversation_id),
        "conversations": lambda: _conversations(config, terminal, args.mode, args.limit),
    }
    sys.exit(_run(commands[args.command], terminal))


def _raise_interrupt(signum, frame) -> None:
    raise KeyboardInterrupt


def _run(action: Callable[[], Awaitable[int]], terminal: Terminal) -> int:
    """Run one command on a fresh event loop and map failures to exit codes."""
    # Prompts block the loop thread, so Ctrl+C must interrupt them directly.
    signal.signal(signal.SIGINT, _raise_interrupt)
    try:
        return asyncio.run(action())
    except (KeyboardInterrupt, Cancelled):
        terminal.warning("Cancelled.")
        return 0
    except AgentError as e:
        terminal.error(str(e))
        return 1
    except Exception as e:
        logger.exception("command_failed", error=str(e))
        terminal.error(f"Error: {e}")
        return 1


def _check_config(config: AppConfig, config_path: str) -> int:
    """Print a configuration summary."""
    source = config_path if Path(config_path).expanduser().exists() else "(defaults)"
    print(f"Configuration valid: {source}")
    print(f"  Data directory : {config.data_dir}")
    print(f"  Database       : {config.storage.db_path}")
    print(f"  Token file     : {config.auth.token_file}")
    print(f"  Log file       : {config.log_file or '(stderr)'}")
    print(f"  Model          : {config.ai.model} (max_tokens={config.ai.max_tokens})")
    print(f"  Tool steps     : {config.ai.max_tool_steps}")
    print(f"  API key        : {'set' if config.anthropic.api_key else 'NOT SET'}")
    return 0


async def _login(config: AppConfig, terminal: Terminal, args: argparse.Namespace) -> int:
    async with AgentApp(config) as app:
        token = args.token
        if not token:
            try:
                token = getpass("Access token: ").strip()
            except EOFError:
                raise Cancelled("Login cancelled") from None
        if not token:
            terminal.error("No token given.")
            return 1

        app.token_store.store_credential(
            access_token=token,
            refresh_token=args.refresh_token,
            token_type=args.token_type,
            scope=args.scope,
            expires_in=args.expires_in,
        )
        user = await app.resolver.resolve_user(token)
        if user is None:
            terminal.warning("Token saved, but no active session matches it yet.")
        else:
            terminal.success(f"Logged in as {user.display_name}.")
        terminal.info(f"Credentials saved to {app.token_store.path}")
        return 0


async def _logout(config: AppConfig, terminal: Terminal) -> int:
    async with AgentApp(config) as app:
        if app.token_store.clear():
            terminal.success("Logged out.")
        else:
            terminal.warning("You are not logged in.")
        return 0


async def _whoami(config: AppConfig, terminal: Terminal) -> int:
    async with AgentApp(config) as app:
        user = await require_user(app.token_store, app.resolver, config.auth.expiry_margin)
        terminal.panel(
            f"Name: {user.name or '-'}\nEmail: {user.email}\nID: {user.id}",
            title="Current User",
        )
        return 0


async def _chat(
    config: AppConfig, terminal: Terminal, mode: str | None, conversation_id: str | None
) -> int:
    async with AgentApp(config) as app:
        session = app.create_session(terminal)
        return await session.run(mode=mode, conversation_id=conversation_id)


async def _conversations(
    config: AppConfig, terminal: Terminal, mode: str | None, limit: int
) -> int:
    async with AgentApp(config) as app:
        user = await require_user(app.token_store, app.resolver, config.auth.expiry_margin)
        conversations = await app.conversation_repo.list_conversations(user.id, mode, limit)
        if not conversations:
            terminal.info("No conversations yet.")
            return 0
        for conv in conversations:
            terminal.message(
                f"{conv.id}  [{conv.mode.value:<5}]  {conv.updated_at:%Y-%m-%d %H:%M}  {conv.title}"
            )
        return 0


if __name__ == "__main__":
    main()
