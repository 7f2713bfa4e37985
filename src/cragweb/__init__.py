"""
=============================================================================
CRAG-WEB - Minimal Multi-Threaded HTTP/1.1 Server
=============================================================================

A small HTTP server on raw sockets: one accept loop, a fixed pool of
worker threads, exact (method, path) routing and a fallback handler for
everything else.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──► job queue ──► N workers ──► dispatcher            │
    │                                                  │                   │
    │                     read + parse ◄───────────────┤                   │
    │                     route (frozen table) ◄───────┤                   │
    │                     handler(request) ◄───────────┤                   │
    │                     write + close ◄──────────────┘                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Supported:      GET and POST, HTTP/1.1 request line, Content-Length
    Not supported:  keep-alive, chunked bodies, TLS, HTTP/2, query strings

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    cragweb/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m cragweb)
    ├── server.py            # Server, ServerBuilder, setup_logging
    ├── dispatcher.py        # Per-connection read/parse/route/write
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # ServerBuildError hierarchy
    ├── core/                # Networking and concurrency
    │   ├── socket_server.py # Listening socket + accept loop
    │   ├── connection.py    # Connection wrapper
    │   └── thread_pool.py   # Fixed-size worker pool
    ├── http/                # Protocol
    │   ├── request.py       # Request model + parser
    │   ├── response.py      # Response model + serialization
    │   ├── router.py        # Router / frozen RoutingTable
    │   └── status_codes.py  # HTTP status enum
    ├── handlers/            # default_not_found_handler
    └── static/404.html      # Built-in not-found page

=============================================================================
QUICK START
=============================================================================

    from cragweb import Request, Response, Server

    def hello(request):
        return Response.ok("Hello, Crag-Web!")

    def not_found(request):
        return Response.not_found()

    server = (Server.build()
        .register_handler(Request.get("/hello"), hello)
        .register_error_handler(not_found)
        .finalize("127.0.0.1:8080", pool_size=4))

    server.run()

=============================================================================
"""

__version__ = "0.1.0"

from .config import ServerConfig
from .errors import (
    AddressResolutionError,
    BindError,
    DuplicateErrorHandler,
    InvalidPoolSize,
    MissingErrorHandler,
    ServerBuildError,
)
from .handlers import default_not_found_handler
from .http import HTTPStatus, Method, Request, Response, UNIDENTIFIED
from .server import Server, ServerBuilder, setup_logging

__all__ = [
    "Server",
    "ServerBuilder",
    "ServerConfig",
    "setup_logging",
    "Request",
    "Response",
    "Method",
    "HTTPStatus",
    "UNIDENTIFIED",
    "default_not_found_handler",
    "ServerBuildError",
    "MissingErrorHandler",
    "DuplicateErrorHandler",
    "InvalidPoolSize",
    "AddressResolutionError",
    "BindError",
    "__version__",
]
