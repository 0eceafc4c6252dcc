#!/usr/bin/env python3
"""
Command-line access to local memory.

Usage:
    localmemory search "what editor do I use" --limit 3
    localmemory profile --query "editor"
    localmemory wipe                      # asks for confirmation
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from config import load_config
from memory_client import LocalMemoryClient
from models import LocalMemoryError
from utils import init_logger, log


def build_client(config_path: str | None) -> LocalMemoryClient:
    config = load_config(config_path)
    init_logger(config.debug)
    return LocalMemoryClient.from_config(config)


async def cmd_search(client: LocalMemoryClient, query: str, limit: int) -> None:
    log.debug('cli search: query="%s" limit=%d', query, limit)
    results = await client.search(query, limit)

    if not results:
        print("No memories found.")
        return

    for r in results:
        score = f" ({r.similarity:.0%})" if r.similarity is not None else ""
        print(f"- {r.content}{score}")


async def cmd_profile(client: LocalMemoryClient, query: str | None) -> None:
    log.debug('cli profile: query="%s"', query or "(none)")
    profile = await client.get_profile(query)

    if not profile.static and not profile.dynamic:
        print("No profile information available yet.")
        return

    if profile.static:
        print("Stable Preferences:")
        for fact in profile.static:
            print(f"  - {fact}")

    if profile.dynamic:
        print("Recent Context:")
        for fact in profile.dynamic:
            print(f"  - {fact}")


async def cmd_wipe(client: LocalMemoryClient) -> None:
    db_path = client.db_path
    try:
        answer = input(f'This will permanently delete all memories in "{db_path}". Type "yes" to confirm: ')
    except EOFError:
        answer = ""
    if answer.strip().lower() != "yes":
        print("Aborted.")
        return

    log.debug('cli wipe: db="%s"', db_path)
    count = await client.wipe_all_memories()
    print(f"Wiped {count} memories.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="localmemory",
        description="Local memory commands",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to a JSON config file")
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search memories")
    search.add_argument("query", help="Search query")
    search.add_argument("--limit", type=int, default=5, help="Max results (default 5)")

    profile = sub.add_parser("profile", help="Show the user profile")
    profile.add_argument("--query", help="Optional query to focus the profile")

    sub.add_parser("wipe", help="Delete ALL memories")
    return parser


async def run(args: argparse.Namespace, client: LocalMemoryClient) -> None:
    try:
        if args.command == "search":
            await cmd_search(client, args.query, args.limit if args.limit > 0 else 5)
        elif args.command == "profile":
            await cmd_profile(client, args.query)
        elif args.command == "wipe":
            await cmd_wipe(client)
    finally:
        await client.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        client = build_client(args.config)
        asyncio.run(run(args, client))
    except LocalMemoryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nCancelled")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
