"""
M365 Readiness Engine command-line entry point

Usage:
    python -m m365_readiness --config config.json
    python -m m365_readiness --config config.json --entity <object-id> --entity <object-id>
    python -m m365_readiness --config config.json --delegated --max-depth 3
    python -m m365_readiness --list-permissions

All queries are read-only.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import EngineConfig
from .auth.authenticator import Authenticator
from .errors import AuthenticationError
from .session import Session
from .graph.client import GraphClient
from .directory.graph import GraphDirectoryClient
from .directory.resolver import GroupGraphResolver
from .resilience.health import TokenHealthMonitor
from .resilience.executor import ResilientExecutor
from .checks import BaseCheck, CheckResult, ConnectivityCheck, GroupMembershipCheck, run_checks

logger = logging.getLogger("m365_readiness")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return number


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return number


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="m365_readiness",
        description="M365 mail-service readiness checks (READ-ONLY)",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Path to JSON configuration file",
    )
    parser.add_argument(
        "--entity", "-e",
        action="append",
        default=None,
        help="Directory object ID to resolve group memberships for (repeatable)",
    )
    parser.add_argument(
        "--max-depth",
        type=_positive_int,
        default=None,
        help="Maximum group nesting depth to resolve (default: from config, 5)",
    )
    parser.add_argument(
        "--max-retries",
        type=_non_negative_int,
        default=None,
        help="Auth-failure retries per remote call (default: from config, 1)",
    )
    parser.add_argument(
        "--delegated",
        action="store_true",
        help="Use delegated (device-code) authentication instead of certificate",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON instead of a summary",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging",
    )
    parser.add_argument(
        "--list-permissions",
        action="store_true",
        help="List the Graph permissions the app registration needs and exit",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> EngineConfig:
    """Build engine configuration from the config file and CLI overrides."""
    if args.config and args.config.exists():
        config = EngineConfig.from_file(args.config)
    else:
        config = EngineConfig()

    if args.delegated:
        config.auth.mode = "delegated"
    if args.entity:
        config.checks.entities = list(args.entity)
    if args.max_depth is not None:
        config.resilience.max_depth = args.max_depth
    if args.max_retries is not None:
        config.resilience.max_retries = args.max_retries
    if args.verbose:
        config.verbose = True
    return config


def build_checks(
    config: EngineConfig,
    monitor: TokenHealthMonitor,
    resolver: GroupGraphResolver,
) -> list[BaseCheck]:
    checks: list[BaseCheck] = []
    if config.checks.enable_connectivity:
        checks.append(ConnectivityCheck(monitor))
    if config.checks.enable_group_membership:
        checks.append(GroupMembershipCheck(
            resolver,
            config.checks.entities,
            nesting_warning_level=config.checks.nesting_warning_level,
        ))
    return checks


def print_summary(results: dict[str, CheckResult]):
    print("\n" + "=" * 70)
    print(" READINESS SUMMARY")
    print("=" * 70)
    for name, result in results.items():
        status = "PASS" if result.passed else "FAIL"
        print(f"  [{status}] {name} ({result.metadata['duration_seconds']}s)")
        for w in result.warnings:
            print(f"      warning: {w}")
        for e in result.errors:
            print(f"      error:   {e}")

    memberships = results.get("group_membership")
    if memberships:
        for entity_id, records in memberships.data.get("memberships", {}).items():
            print(f"\n  {entity_id}:")
            for r in records:
                indent = "  " * r["nested_level"]
                print(f"    {indent}- {r['display_name'] or r['group_id']} (level {r['nested_level']})")
    print()


async def main_async(argv: Optional[list[str]] = None) -> int:
    """Async entry point. Returns the process exit code."""
    args = parse_args(argv)

    if args.list_permissions:
        for perm, reason in Authenticator.list_required_permissions().items():
            print(f"  {perm:<28s} {reason}")
        return 0

    config = build_config(args)
    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    if config.auth.mode == "certificate" and not config.auth.certificate:
        print("No certificate configuration available. Use --config or --delegated.")
        return 1
    if config.auth.mode == "delegated" and not config.auth.delegated:
        print("No delegated auth configuration available. Add 'auth.delegated' to the config.")
        return 1

    authenticator = Authenticator(config.auth)
    try:
        token = await authenticator.acquire_token()
    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        return 1
    session = Session(credential=token)

    async with GraphClient(session) as graph:
        client = GraphDirectoryClient(graph, authenticator)
        monitor = TokenHealthMonitor(client, session, config.resilience)
        executor = ResilientExecutor(monitor, config.resilience)
        resolver = GroupGraphResolver(client, executor, config.resilience.max_depth)

        results = await run_checks(build_checks(config, monitor, resolver))
        logger.debug(f"Graph client stats: {graph.get_stats()}")

    if args.json:
        print(json.dumps({k: v.to_dict() for k, v in results.items()}, indent=2, default=str))
    else:
        print_summary(results)

    return 0 if all(r.passed for r in results.values()) else 1


def main():
    """Synchronous entry point for `python -m m365_readiness`."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
