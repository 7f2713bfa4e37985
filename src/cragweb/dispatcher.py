"""
=============================================================================
CONNECTION DISPATCHER
=============================================================================

Everything that happens to one connection once a worker picks it up.

=============================================================================
PER-CONNECTION FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   ACCEPTED                                                           │
    │      │  parser.read_header_lines(conn.reader)                        │
    │      ▼                                                               │
    │   HEADER_READ                                                        │
    │      │  parse_request(lines) + read_body() for POST                  │
    │      ▼                                                               │
    │   PARSED                                                             │
    │      │  routes.lookup(request)                                       │
    │      ▼                                                               │
    │   ROUTED                                                             │
    │      │  handler(request)                                             │
    │      ▼                                                               │
    │   HANDLER_INVOKED                                                    │
    │      │  conn.send_response(response.to_bytes())                      │
    │      ▼                                                               │
    │   RESPONSE_WRITTEN ───────────────────────────────► CLOSED           │
    │                                                        ▲             │
    │   any exception, any state ──► ERROR ──► 500 ──────────┘             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Nothing is retried. Every failure (bad request line, truncated body,
handler exception or even sys.exit(), socket error) is caught here, logged, answered with
a fixed 500 (best effort) and the socket is closed. The failure never
leaves the connection it happened on.

=============================================================================
ACCESS LOG
=============================================================================

One line per connection on the "cragweb.access" logger:

    127.0.0.1 - - [16/Oct/2026:10:55:36 +0000] "GET /hello" 200 16 0.41ms

or, with log_format="json":

    {"connection_id": "a1b2c3d4", "method": "GET", "path": "/hello", ...}

Requests that never parsed are logged with "-" for method and path.

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from .core.connection import Connection, ConnectionState
from .http.request import HTTPParseError, Request, RequestParser, parse_request
from .http.response import INTERNAL_ERROR_BYTES
from .http.router import RoutingTable
from .http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("cragweb.access")


@dataclass
class AccessLog:
    """Structured access log entry for one connection."""

    connection_id: str
    client_ip: str
    method: str
    path: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "connection_id": self.connection_id,
            "client_ip": self.client_ip,
            "method": self.method,
            "path": self.path,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache-style single line."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class ConnectionDispatcher:
    """
    Runs one connection end-to-end on the calling (worker) thread.

    The dispatcher holds no per-connection state, so a single instance is
    shared by every worker. Its only collaborators are the frozen routing
    table and a stateless parser.

    Usage:
        dispatcher = ConnectionDispatcher(router.freeze())
        pool.execute(dispatcher.dispatch, conn)
    """

    def __init__(
        self,
        routes: RoutingTable,
        parser: Optional[RequestParser] = None,
        log_format: str = "text",
    ):
        """
        Args:
            routes: Frozen routing table, shared read-only.
            parser: Request parser. A default RequestParser if omitted.
            log_format: Access log format, "text" or "json".
        """
        self.routes = routes
        self.parser = parser or RequestParser()
        self.log_format = log_format

    def dispatch(self, conn: Connection) -> None:
        """
        Handle one connection: read, parse, route, invoke, write, close.

        Never raises for connection-scoped failures. The socket is always
        closed on return.
        """
        start_time = time.time()
        request: Optional[Request] = None
        status = HTTPStatus.INTERNAL_SERVER_ERROR
        sent = 0

        with conn:
            try:
                request = self._read_request(conn)

                handler = self.routes.lookup(request)
                conn.state = ConnectionState.ROUTED

                response = handler(request)
                conn.state = ConnectionState.HANDLER_INVOKED

                data = response.to_bytes()
                conn.send_response(data)
                status, sent = response.status, len(data)

            except HTTPParseError as e:
                logger.warning(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                sent = self._error_boundary(conn)

            except Exception as e:
                logger.exception(
                    f"[{conn.id}] Error handling connection in state "
                    f"{conn.state.value}: {e}"
                )
                sent = self._error_boundary(conn)

            except BaseException as e:
                # SystemExit from a handler must not take the worker with it.
                logger.exception(
                    f"[{conn.id}] Handler aborted in state {conn.state.value}: {e!r}"
                )
                sent = self._error_boundary(conn)

        self._log_access(conn, request, status, sent, start_time)

    def _read_request(self, conn: Connection) -> Request:
        """Header pass, then (for POST) the body pass."""
        lines = self.parser.read_header_lines(conn.reader)
        conn.state = ConnectionState.HEADER_READ

        request, content_length = parse_request(lines)
        if request.is_post:
            request.add_body(self.parser.read_body(conn.reader, content_length))
        conn.state = ConnectionState.PARSED
        return request

    def _error_boundary(self, conn: Connection) -> int:
        """
        Write the fixed 500 response, best effort.

        Returns:
            Number of bytes written (0 if the socket was already gone).
        """
        conn.state = ConnectionState.ERROR
        if conn.try_send(INTERNAL_ERROR_BYTES):
            return len(INTERNAL_ERROR_BYTES)
        return 0

    def _log_access(
        self,
        conn: Connection,
        request: Optional[Request],
        status: HTTPStatus,
        sent: int,
        start_time: float,
    ) -> None:
        if not access_logger.isEnabledFor(logging.INFO):
            return

        entry = AccessLog(
            connection_id=conn.id,
            client_ip=conn.client_ip,
            method=request.method.value if request else "-",
            path=request.path if request else "-",
            status_code=int(status),
            content_length=sent,
            duration_ms=(time.time() - start_time) * 1000,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            access_logger.info(json.dumps(entry.to_dict()))
        else:
            access_logger.info(entry.to_text())
