"""
=============================================================================
SERVER AND SERVER BUILDER
=============================================================================

Ties the pieces together: routes are collected on a ServerBuilder, then
finalize() freezes them, binds the listening socket and starts the worker
pool. The result is a Server that only needs run().

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │     Server      │                          │
    │                        │  (Orchestrator) │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            │                    │                    │              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────────┐    │
    │    │SocketServer  │    │  ThreadPool  │    │ConnectionDispatch│    │
    │    │ (accept loop)│───►│ (N workers)  │───►│ parse/route/send │    │
    │    └──────────────┘    └──────────────┘    └────────┬─────────┘    │
    │                                                     │               │
    │                                                     ▼               │
    │                                            ┌──────────────────┐    │
    │                                            │  RoutingTable    │    │
    │                                            │  (frozen)        │    │
    │                                            └──────────────────┘    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BUILD ORDER
=============================================================================

    Server.build()                          → ServerBuilder
        .register_handler(Request.get("/hello"), hello)
        .register_error_handler(not_found)
        .finalize(("127.0.0.1", 8080), 4)   → Server

finalize() does its steps in a fixed order and stops at the first
failure:

    1. Freeze routes          MissingErrorHandler
    2. Check pool size        InvalidPoolSize
    3. Resolve address        AddressResolutionError
    4. Bind + listen          BindError
    5. Start workers          (socket is released if this fails)

All of these are ServerBuildError subclasses. Nothing is half-built: if
finalize() raises, no socket is left open and no worker is running.

=============================================================================
INTERVIEW QUESTIONS ABOUT WEB SERVERS
=============================================================================

Q: "Explain how a request flows through your server."
A: "1. Accept loop accepts a TCP connection
   2. Connection is queued on the thread pool
   3. A worker reads the header lines and parses the request line
   4. For POST, the worker reads Content-Length bytes of body
   5. The frozen routing table picks the handler (or the fallback)
   6. The handler returns a Response, serialized to bytes once
   7. Bytes are written and the connection is closed"

Q: "What happens during graceful shutdown?"
A: "1. Stop accepting new connections
   2. Release the listening socket
   3. Let the pool drain connections already queued
   4. Join the workers"

=============================================================================
"""

import json
import logging
import threading
from typing import Callable, Tuple

from .config import ServerConfig
from .core import Connection, PoolClosed, SocketServer, ThreadPool
from .core.socket_server import Address
from .dispatcher import ConnectionDispatcher
from .errors import InvalidPoolSize
from .http import Handler, Request, Router, RoutingTable


logger = logging.getLogger(__name__)


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per log record, for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, LOG_DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(level: str = "INFO", log_format: str = "text") -> None:
    """
    Configure the root logger for a server process.

    Libraries embedding the server should configure logging themselves
    and never call this.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logging.basicConfig(level=numeric_level, handlers=[handler])
    else:
        logging.basicConfig(
            level=numeric_level,
            format=LOG_FORMAT,
            datefmt=LOG_DATE_FORMAT,
        )

    logging.getLogger("cragweb").setLevel(numeric_level)


class ServerBuilder:
    """
    Collects routes, then builds a ready-to-run Server.

    =========================================================================
    USAGE
    =========================================================================

        builder = Server.build()

        @builder.get("/hello")
        def hello(request):
            return Response.ok("Hello, Crag-Web!")

        @builder.error_handler
        def not_found(request):
            return Response.not_found()

        server = builder.finalize("127.0.0.1:8080", pool_size=4)
        server.run()

    =========================================================================
    """

    def __init__(self):
        self._router = Router()

    @property
    def router(self) -> Router:
        return self._router

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register_handler(self, request: Request, handler: Handler) -> "ServerBuilder":
        """
        Route requests with request's (method, path) to handler.

        The body of request is ignored. Returns self for chaining.
        """
        self._router.add_route(request, handler)
        return self

    def register_error_handler(self, handler: Handler) -> "ServerBuilder":
        """
        Set the fallback handler for every unmatched request.

        Raises:
            DuplicateErrorHandler: On a second call.
        """
        self._router.set_error_handler(handler)
        return self

    def get(self, path: str) -> Callable[[Handler], Handler]:
        """Decorator registering a GET handler."""
        return self._router.get(path)

    def post(self, path: str) -> Callable[[Handler], Handler]:
        """Decorator registering a POST handler."""
        return self._router.post(path)

    def error_handler(self, handler: Handler) -> Handler:
        """Decorator form of register_error_handler()."""
        return self._router.error_handler(handler)

    # =========================================================================
    # FINALIZE
    # =========================================================================

    def finalize(
        self,
        address: Address,
        pool_size: int,
        backlog: int = 128,
        log_format: str = "text",
    ) -> "Server":
        """
        Build the server: freeze routes, bind, start workers.

        Args:
            address: (host, port) or "host:port". Port 0 picks a free port.
            pool_size: Number of worker threads, >= 1.
            backlog: Listen backlog.
            log_format: Access log format, "text" or "json".

        Raises:
            MissingErrorHandler: No fallback handler registered.
            InvalidPoolSize: pool_size < 1.
            AddressResolutionError: address does not resolve.
            BindError: address cannot be bound.
        """
        routes = self._router.freeze()

        if pool_size < 1:
            raise InvalidPoolSize(pool_size)

        socket_server = SocketServer(address, backlog=backlog)
        socket_server.bind()

        try:
            pool = ThreadPool.build(pool_size)
        except BaseException:
            socket_server.close()
            raise

        dispatcher = ConnectionDispatcher(routes, log_format=log_format)
        return Server(socket_server, pool, dispatcher)

    def finalize_from_config(self, config: ServerConfig) -> "Server":
        """
        finalize() with address, pool size, backlog and log format taken
        from config.

        Raises:
            ValueError: If config is invalid.
            ServerBuildError: As finalize().
        """
        config.validate()
        return self.finalize(
            config.address,
            config.workers,
            backlog=config.backlog,
            log_format=config.log_format,
        )


class Server:
    """
    A finalized server: bound socket, running workers, frozen routes.

    Create one with Server.build()...finalize(), not directly.

        with Server.build().register_error_handler(nf).finalize(addr, 4) as server:
            threading.Thread(target=server.run).start()
            ...
        # socket closed, workers joined
    """

    def __init__(
        self,
        socket_server: SocketServer,
        pool: ThreadPool,
        dispatcher: ConnectionDispatcher,
    ):
        self._socket_server = socket_server
        self._pool = pool
        self._dispatcher = dispatcher
        self._address = socket_server.address  # Cached: survives close()
        self._lock = threading.Lock()
        self._closed = False

    @staticmethod
    def build() -> ServerBuilder:
        """Start building a server."""
        return ServerBuilder()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def address(self) -> Tuple[str, int]:
        """The (host, port) actually bound."""
        return self._address

    @property
    def routes(self) -> RoutingTable:
        return self._dispatcher.routes

    @property
    def pool(self) -> ThreadPool:
        return self._pool

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """
        Run the accept loop on the calling thread until shutdown().

        On return the listening socket is closed and every queued
        connection has been handled.

        Raises:
            OSError: If accept() fails while running.
            RuntimeError: If the server was already closed.
        """
        host, port = self.address
        logger.info(
            f"Starting crag-web on {host}:{port} with {self._pool.size} workers"
        )
        for line in self.routes.describe():
            logger.debug(f"  route {line}")

        try:
            self._socket_server.start(self._handle_connection)
        finally:
            self._pool.shutdown(wait=True)
            logger.info("Server stopped")

    def shutdown(self) -> None:
        """
        Stop accepting connections. Thread-safe and idempotent.

        run() returns once the workers have drained the queue.
        """
        self._socket_server.shutdown()

    def close(self) -> None:
        """
        Shut down and release the socket and workers.

        Also works for a server that was finalized but never run.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self.shutdown()
        self._socket_server.close()
        self._pool.shutdown(wait=True)

    def __enter__(self) -> "Server":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """
        Queue a connection on the pool. Runs on the accept loop thread.

        Never reads from the connection.
        """
        try:
            self._pool.execute(self._dispatcher.dispatch, conn)
        except PoolClosed:
            logger.warning(f"[{conn.id}] Pool closed, dropping connection from {conn.client_ip}")
            conn.close()
