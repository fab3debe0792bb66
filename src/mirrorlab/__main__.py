"""
=============================================================================
MIRRORLAB CLI ENTRY POINT
=============================================================================

    # Defaults: 0.0.0.0:3000, or $PORT
    python -m mirrorlab

    # Port as the first argument
    python -m mirrorlab 8080

    # Tuning
    python -m mirrorlab --workers 16 --log-level DEBUG --log-format json

=============================================================================
CONFIGURATION PRECEDENCE
=============================================================================

    built-in defaults  <  environment (PORT, HOST, NODE_ENV, ...)  <  CLI

The environment is read once through ServerConfig.from_env(); any CLI
argument that was given replaces the matching field.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import ServerConfig
from .server import create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mirrorlab",
        description="HTTP mirror server: echoes requests back as JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m mirrorlab                       # $PORT or 3000
  python -m mirrorlab 8080                  # Custom port
  python -m mirrorlab --host 127.0.0.1      # Loopback only
  python -m mirrorlab --log-format json     # JSON access log

Routes:
  GET  /             Hello World!
  GET  /forms/post   HTML order form
  POST /post         Request mirror (JSON)
  GET  /health       Health check
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "port",
        nargs="?",
        type=int,
        default=None,
        help="Port to listen on (default: $PORT or 3000)",
    )

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: $HOST or 0.0.0.0)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Number of worker threads (default: $WORKERS or 8)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: $LOG_LEVEL or INFO)",
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: $LOG_FORMAT or text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"mirrorlab {__version__}",
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then whatever was given on the command line."""
    config = ServerConfig.from_env()

    if args.port is not None:
        config.port = args.port
    if args.host is not None:
        config.host = args.host
    if args.workers is not None:
        config.workers = args.workers
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    config.validate()
    return config


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    server = create_app(config)

    try:
        server.run()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
