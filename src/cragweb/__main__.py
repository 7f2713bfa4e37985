"""
=============================================================================
CRAG-WEB CLI ENTRY POINT
=============================================================================

Runs the demo application on a real socket.

=============================================================================
USAGE
=============================================================================

    # Run with defaults (127.0.0.1:8080, 4 workers)
    python -m cragweb

    # Custom port
    python -m cragweb --port 3000

    # Listen on all interfaces (for containers)
    python -m cragweb --host 0.0.0.0

    # JSON access logs
    python -m cragweb --log-format json

    # Installed console script
    crag-web --workers 8

Then:

    curl http://127.0.0.1:8080/hello                  → Hello, Crag-Web!
    curl -d 'ping' http://127.0.0.1:8080/echo         → ping
    curl http://127.0.0.1:8080/error                  → 500
    curl http://127.0.0.1:8080/anything-else          → 404 page

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, ServerConfig
from .errors import ServerBuildError
from .handlers import default_not_found_handler
from .http import Request, Response
from .server import Server, ServerBuilder, setup_logging


logger = logging.getLogger(__name__)


def build_app() -> ServerBuilder:
    """
    The demo application: /hello, /echo, /error and the 404 fallback.
    """
    builder = Server.build()

    @builder.get("/hello")
    def hello(request: Request) -> Response:
        return Response.ok("Hello, Crag-Web!")

    @builder.post("/echo")
    def echo(request: Request) -> Response:
        return Response.ok(request.body)

    @builder.get("/error")
    def error(request: Request) -> Response:
        raise RuntimeError("Intentional failure from /error")

    builder.register_error_handler(default_not_found_handler)
    return builder


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse CLI arguments. Defaults come from the CRAG_* environment.
    """
    defaults = ServerConfig.from_env()

    parser = argparse.ArgumentParser(
        prog="crag-web",
        description="Minimal multi-threaded HTTP/1.1 server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m cragweb                      # Run with defaults
  python -m cragweb --port 3000          # Custom port
  python -m cragweb --host 0.0.0.0       # Listen on all interfaces
  python -m cragweb --workers 8          # 8 worker threads
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on, 0 for any free port (default: {defaults.port})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=defaults.workers,
        help=f"Number of worker threads (default: {defaults.workers})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=defaults.log_level,
        help=f"Logging level (default: {defaults.log_level})"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=defaults.log_format,
        help=f"Log format (default: {defaults.log_format})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"crag-web {__version__}"
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Process exit status: 0 after a clean shutdown, 1 if the server
        could not be built.
    """
    try:
        args = parse_args(argv)
    except ValueError as e:
        # Malformed CRAG_* environment variable
        print(f"Error: {e}", file=sys.stderr)
        return 1

    config = ServerConfig(
        host=args.host,
        port=args.port,
        workers=args.workers,
        log_level=args.log_level,
        log_format=args.log_format,
    )

    setup_logging(config.log_level, config.log_format)

    try:
        server = build_app().finalize_from_config(config)
    except (ServerBuildError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with server:
        server.run()  # Blocks until Ctrl+C / SIGTERM

    return 0


if __name__ == "__main__":
    sys.exit(main())
