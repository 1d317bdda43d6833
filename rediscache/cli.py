#!/usr/bin/env python3
"""
rediscache Command Line Tool

Runs a single cache operation against a Redis server through RedisCache.

Usage:
    python -m rediscache.cli get mykey
    python -m rediscache.cli put mykey myvalue
    python -m rediscache.cli delete mykey
    python -m rediscache.cli flushall
    python -m rediscache.cli health
    python -m rediscache.cli --host 10.0.0.5 --port 6380 get mykey

Environment Variables:
    REDIS_CACHE_HOST                   - Server address
    REDIS_CACHE_PORT                   - Server port
    REDIS_CACHE_RECONNECTION_DELAY_MS  - Backoff after a failed connect
    REDIS_CACHE_DEBUG                  - Enable debug logging (true/false)
"""

import argparse
import logging
import sys
from typing import List, Optional

from .cache.interface import CacheResult
from .cache.redis_cache import RedisCache
from .config.settings import settings

EXIT_OK = 0
EXIT_FAILURE = 1


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="rediscache: run one cache operation against Redis",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Redis server host",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Redis server port",
    )

    parser.add_argument(
        "--reconnection-delay-ms",
        type=int,
        default=settings.RECONNECTION_DELAY_MS,
        help="Minimum delay between failed connect attempts",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    get_parser = subparsers.add_parser("get", help="Print the value stored under KEY")
    get_parser.add_argument("key")

    put_parser = subparsers.add_parser("put", help="Store VALUE under KEY")
    put_parser.add_argument("key")
    put_parser.add_argument("value")

    delete_parser = subparsers.add_parser("delete", help="Delete KEY")
    delete_parser.add_argument("key")

    subparsers.add_parser("flushall", help="Delete ALL keys on the server")
    subparsers.add_parser("health", help="Report whether the server is reachable")

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr),
        ]
    )


def run_command(cache: RedisCache, args: argparse.Namespace) -> int:
    """Execute the selected subcommand and return the exit status."""
    if args.command == "get":
        results: List[CacheResult] = []
        cache.get(args.key, results.append)
        result = results[0]
        if not result.is_found:
            print("(not found)")
            return EXIT_FAILURE
        print(result.value.decode("utf-8", errors="replace"))
        return EXIT_OK

    if args.command == "put":
        cache.put(args.key, args.value.encode("utf-8"))
    elif args.command == "delete":
        cache.delete(args.key)
    elif args.command == "flushall":
        if not cache.flush_all():
            print("flush failed")
            return EXIT_FAILURE

    # put/delete report nothing themselves; health tells whether they went through
    healthy = cache.is_healthy()
    print("healthy" if healthy else "unhealthy")
    return EXIT_OK if healthy else EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line tool."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    cache = RedisCache(args.host, args.port, args.reconnection_delay_ms)
    with cache:
        return run_command(cache, args)


if __name__ == "__main__":
    sys.exit(main())
