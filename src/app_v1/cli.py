#!/usr/bin/env python3
"""
app-v1 command line

Usage:
    python -m app_v1                  # serve (default)
    python -m app_v1 serve --port 9000
    python -m app_v1 check-port       # is the configured port free?
    python -m app_v1 status           # query /app-v1 on a running server
"""

import argparse
import asyncio
import os
import socket
import sys
from typing import Optional, List

import httpx

from .core import Config, ConfigError, setup_logging
from .routes import APP_PATH
from .server import run_server


def check_port(config: Config) -> int:
    """Return 0 if the configured host/port can be bound, 1 otherwise."""
    print(f"Checking if port {config.port} is available on {config.host}...")

    family = socket.AF_INET6 if ":" in config.host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    if os.name != "nt":
        # Same option the server sets, so TIME_WAIT leftovers do not count as taken
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((config.host, config.port))
    except OSError as e:
        print(f"[ERROR] Port {config.port} is not available: {e}")
        print("Stop the process using it or set APP_PORT in your .env file.")
        return 1
    finally:
        sock.close()

    print(f"Port {config.port} is available.")
    return 0


def status(config: Config) -> int:
    """GET /app-v1 on the configured server and print what came back."""
    # 0.0.0.0 is a bind address, not something to connect to
    host = "127.0.0.1" if config.host in ("0.0.0.0", "") else config.host
    if ":" in host:
        host = f"[{host}]"
    url = f"http://{host}:{config.port}{APP_PATH}"

    try:
        response = httpx.get(url, timeout=5.0)
    except httpx.HTTPError as e:
        print(f"app-v1: ✗ Cannot connect to {url} ({e})")
        return 1

    if response.status_code != 200:
        print(f"app-v1: ✗ {url} returned {response.status_code}")
        return 1

    print(f"app-v1: ✓ {url} -> {response.text.strip()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="app-v1",
        description="app-v1 - static JSON endpoint with CORS and request logging",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  app-v1                        Serve on 0.0.0.0:8080
  app-v1 serve --port 9000      Serve on another port
  app-v1 check-port             Check that the port is free
  app-v1 status                 Query a running server
        """
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=["serve", "check-port", "status"],
        help="Command to run (default: serve)"
    )
    parser.add_argument("--host", help="Bind host (env APP_HOST, default 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Bind port (env APP_PORT, default 8080)")
    parser.add_argument("--log-level", help="Log level (env LOG_LEVEL, default INFO)")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Environment config with command line overrides applied."""
    config = Config.from_env()
    return Config(
        host=args.host or config.host,
        port=args.port if args.port is not None else config.port,
        log_level=args.log_level or config.log_level,
        shutdown_timeout=config.shutdown_timeout,
        backlog=config.backlog,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.command == "check-port":
        return check_port(config)
    if args.command == "status":
        return status(config)

    logger = setup_logging(config.log_level)
    return asyncio.run(run_server(config, logger))


if __name__ == "__main__":
    sys.exit(main())
