"""
dualcache command line: inspect and manipulate a cache described by a TOML config.

    python -m dualcache -c dualcache.toml stats
    python -m dualcache -c dualcache.toml put greeting "hello, dood!"
    python -m dualcache -c dualcache.toml get greeting
    python -m dualcache -c dualcache.toml invalidate --disk
"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from .config_manager import ConfigManager
from .configuration import CacheConfiguration
from .errors import DualCacheError
from .logging_utils import initLogging
from .orchestrator import DualCache

# Configure basic logging first
logging.basicConfig(format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.WARNING)
logger = logging.getLogger(__name__)


def parseArguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(prog="dualcache", description="Two-tier RAM + disk object cache, dood!")
    parser.add_argument(
        "-c",
        "--config",
        default="dualcache.toml",
        help="Path to configuration file (default: dualcache.toml)",
    )
    parser.add_argument(
        "--config-dir",
        action="append",
        help="Directory to search for .toml config files recursively (can be specified multiple times), dood!",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Pretty-print loaded configuration and exit, dood!",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("stats", help="Print cache statistics")

    getParser = subparsers.add_parser("get", help="Print value of a key")
    getParser.add_argument("key")

    putParser = subparsers.add_parser("put", help="Store a value")
    putParser.add_argument("key")
    putParser.add_argument("value")

    deleteParser = subparsers.add_parser("delete", help="Remove a key from both tiers")
    deleteParser.add_argument("key")

    invalidateParser = subparsers.add_parser("invalidate", help="Drop cached entries")
    tierGroup = invalidateParser.add_mutually_exclusive_group()
    tierGroup.add_argument("--ram", action="store_true", help="Only clear the RAM tier")
    tierGroup.add_argument("--disk", action="store_true", help="Only wipe the disk tier")

    args = parser.parse_args(argv)
    args.config = os.path.abspath(args.config)
    if args.config_dir:
        args.config_dir = [os.path.abspath(dirPath) for dirPath in args.config_dir]
    if args.command is None and not args.print_config:
        parser.error("a command is required, dood!")

    return args


def prettyPrintConfig(configManager: ConfigManager) -> None:
    """Pretty-print the loaded configuration, dood!"""
    print("=== dualcache Configuration ===")
    print()
    print(json.dumps(configManager.config, indent=2, ensure_ascii=False, sort_keys=True, default=str))
    print()
    print("=== Configuration loaded successfully, dood! ===")


def runCommand(cache: DualCache, args: argparse.Namespace) -> int:
    """Run one subcommand against the cache, returning the exit code"""
    match args.command:
        case "stats":
            stats = cache.getStats()
            stats["ramUsedBytes"] = cache.ramUsedBytes()
            stats["diskUsedBytes"] = cache.diskUsedBytes()
            print(json.dumps(stats, indent=2, ensure_ascii=False, sort_keys=True, default=str))
        case "get":
            value = cache.get(args.key)
            if value is None:
                print(f"Key '{args.key}' not found", file=sys.stderr)
                return 1
            print(value)
        case "put":
            cache.put(args.key, args.value)
        case "delete":
            cache.delete(args.key)
        case "invalidate":
            if args.ram:
                cache.invalidateRAM()
            elif args.disk:
                cache.invalidateDisk()
            else:
                cache.invalidate()
        case _:
            raise ValueError(f"Unknown command: {args.command}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parseArguments(argv)

    try:
        configManager = ConfigManager(configPath=args.config, configDirs=args.config_dir)
        if args.print_config:
            prettyPrintConfig(configManager)
            return 0

        initLogging(configManager.getLoggingConfig())
        configuration = CacheConfiguration.fromDict(configManager.getCacheConfig())
        with DualCache(configuration) as cache:
            return runCommand(cache, args)
    except DualCacheError as e:
        logger.error(f"dualcache failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
