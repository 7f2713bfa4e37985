"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket for the lifetime of exactly one
request/response exchange.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP does not preserve message boundaries. A request sent as

    "GET /hello HTTP/1.1\r\nHost: x\r\n\r\n"

may arrive as "GET /hel" + "lo HTTP/1.1\r\nHo" + "st: x\r\n\r\n".

Rather than managing a byte buffer by hand, the connection exposes a
buffered binary reader (socket.makefile("rb")). Its readline() keeps
reading until it has a whole line, and read(n) keeps reading until it
has n bytes or the peer closes. That is all the request parser needs.

=============================================================================
CONNECTION LIFECYCLE
=============================================================================

    ACCEPTED ─► HEADER_READ ─► PARSED ─► ROUTED ─► HANDLER_INVOKED
                                                          │
                                                          ▼
                                 CLOSED ◄──── RESPONSE_WRITTEN

    Any state ─► ERROR ─► (500 written, best effort) ─► CLOSED

One connection carries one request. There is no keep-alive: after the
response (or the 500) the socket is shut down in both directions and
closed, whatever path was taken.

No read or write timeout is set. A client that stops sending holds its
worker until the OS gives up on the socket.

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Optional, Tuple


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """
    Where a connection is in its single request/response cycle.

    Useful for debugging: log the state when an error happens to see
    how far the request got.
    """
    ACCEPTED = "accepted"                # Just accepted, nothing read yet
    HEADER_READ = "header_read"          # Header lines read off the wire
    PARSED = "parsed"                    # Request (and POST body) built
    ROUTED = "routed"                    # Handler chosen
    HANDLER_INVOKED = "handler_invoked"  # Handler returned a response
    RESPONSE_WRITTEN = "response_written"
    ERROR = "error"                      # Error boundary hit
    CLOSED = "closed"                    # Socket released


@dataclass
class Connection:
    """
    Wrapper around an accepted client socket.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short unique identifier, used to tag log lines.
        state: Current ConnectionState.
        created_at: Timestamp when the connection was accepted.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.ACCEPTED
    created_at: float = field(default_factory=time.time)

    _reader: Optional[BinaryIO] = field(default=None, repr=False)

    def __post_init__(self):
        # Accepted sockets inherit the listener's timeout on some
        # platforms; connection I/O is always fully blocking.
        self.socket.settimeout(None)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    @property
    def reader(self) -> BinaryIO:
        """
        Buffered binary stream over the socket, created on first use.

        Used by RequestParser for readline() and read(n).
        """
        if self._reader is None:
            self._reader = self.socket.makefile("rb")
        return self._reader

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> None:
        """
        Write a whole serialized response.

        sendall() keeps writing until every byte is out; a plain send()
        might stop after a partial write.

        Raises:
            OSError: If the client went away.
        """
        self.socket.sendall(data)
        self.state = ConnectionState.RESPONSE_WRITTEN

    def try_send(self, data: bytes) -> bool:
        """
        Best-effort write used on the error path.

        Returns:
            True if the bytes went out, False if the socket is unusable.
        """
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.debug(f"[{self.id}] Error response not delivered: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Shut the connection down in both directions and release it.

        1. shutdown(SHUT_RDWR): sends FIN, stops further reads
        2. close the buffered reader (it holds a reference to the socket)
        3. close(): release the file descriptor

        Each step tolerates a socket the peer already tore down. Calling
        close() twice is harmless.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Already disconnected

        if self._reader is not None:
            try:
                self._reader.close()
            except OSError:
                pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age * 1000:.2f}ms")

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        """
        Allows:

            with conn:
                ...
            # conn is closed here, even if an exception escaped
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
