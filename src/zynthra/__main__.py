"""CLI entry point for zynthra."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Awaitable, Callable

from zynthra.app import ZynthraApp
from zynthra.config import AppConfig, load_config
from zynthra.console import ConsoleChat
from zynthra.core.errors import ZynthraError
from zynthra.log import setup_logging


def _add_common_args(parser: argparse.ArgumentParser, with_user: bool = True) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")
    if with_user:
        parser.add_argument("-u", "--user", default="default", help="User id")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zynthra",
        description="Intent-routing personal assistant with shopping and SOS support",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    _add_common_args(subparsers.add_parser("chat", help="Interactive assistant console"))

    ask_parser = subparsers.add_parser("ask", help="Send one utterance and print the reply as JSON")
    _add_common_args(ask_parser)
    ask_parser.add_argument("text", help="What to say to the assistant")
    ask_parser.add_argument("--voice", action="store_true", help="Mark the input as voice")

    _add_common_args(subparsers.add_parser("stats", help="Show usage and learning statistics"))

    contact_parser = subparsers.add_parser("add-contact", help="Add or update an emergency contact")
    _add_common_args(contact_parser)
    contact_parser.add_argument("name")
    contact_parser.add_argument("phone")
    contact_parser.add_argument("--priority", type=int, default=None)

    address_parser = subparsers.add_parser("set-address", help="Save a delivery address")
    _add_common_args(address_parser)
    address_parser.add_argument("type", choices=["home", "work", "other"])
    address_parser.add_argument("address")
    address_parser.add_argument("--label", default=None, help="Label for 'other' addresses")

    _add_common_args(
        subparsers.add_parser("config-check", help="Validate configuration"), with_user=False
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        args = parser.parse_args(["chat", *(argv or [])])

    if args.command == "config-check":
        _check_config(args.config, args.env)
        return

    config = _load_or_exit(args.config, args.env)
    setup_logging(config.log_level, config.log_format)

    match args.command:
        case "chat":
            _run(config, lambda app: ConsoleChat(app, args.user).run())
        case "ask":
            _run(config, lambda app: _ask(app, args.user, args.text, args.voice))
        case "stats":
            _run(config, lambda app: _stats(app, args.user))
        case "add-contact":
            _run(config, lambda app: _add_contact(app, args.user, args.name, args.phone, args.priority))
        case "set-address":
            _run(config, lambda app: _set_address(app, args.user, args.type, args.address, args.label))


def _load_or_exit(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Copy config.example.yaml to config.yaml first.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    config = _load_or_exit(config_path, env_path)
    print(f"Configuration valid: {config_path}")
    print(f"  Data directory: {config.data_dir}")
    print(f"  Storage: {config.storage.db_path}")
    print(f"  History limit: {config.assistant.history_limit} turns")
    print(f"  Confidence threshold: {config.assistant.confidence_threshold}")
    print(f"  Collaborator timeout: {config.assistant.collaborator_timeout}s")
    platforms = ", ".join(f"{k} ({v.currency})" for k, v in config.commerce.platforms.items())
    print(f"  Platforms: {platforms} [default: {config.assistant.default_platform}]")
    print(f"  SOS: every {config.sos.update_interval_seconds}s, emergency number {config.sos.emergency_number}")
    print(f"  Seeded users: {', '.join(config.users) or '(none)'}")


def _run(config: AppConfig, body: Callable[[ZynthraApp], Awaitable[None]]) -> None:
    async def _async_main() -> None:
        async with ZynthraApp(config) as app:
            await body(app)

    try:
        asyncio.run(_async_main())
    except ZynthraError as e:
        print(f"Error: {e.user_message}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


async def _ask(app: ZynthraApp, user_id: str, text: str, is_voice: bool) -> None:
    reply = await app.process_input(user_id, text, is_voice=is_voice)
    print(json.dumps(reply.to_dict(), indent=2))


async def _stats(app: ZynthraApp, user_id: str) -> None:
    session = await app.sessions.get_session(user_id)
    print(json.dumps(session.stats(), indent=2))


async def _add_contact(app: ZynthraApp, user_id: str, name: str, phone: str, priority: int | None) -> None:
    session = await app.sessions.get_session(user_id)
    contact = await session.add_emergency_contact(name, phone, priority)
    print(f"Saved {contact.name} ({contact.phone}) with priority {contact.priority}.")


async def _set_address(app: ZynthraApp, user_id: str, kind: str, address: str, label: str | None) -> None:
    session = await app.sessions.get_session(user_id)
    await session.set_address(kind, address, label)
    print(f"Saved {label or kind} address.")


if __name__ == "__main__":
    main()
