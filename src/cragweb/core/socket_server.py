"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket and runs the accept loop. The accept loop is
the only producer of work for the thread pool: it never reads or writes
request data itself, it just wraps each accepted socket in a Connection
and hands it to a callback.

=============================================================================
SOCKET LIFECYCLE (Server Side)
=============================================================================

    1. getaddrinfo()  Resolve "localhost:8080" to a concrete address
    2. socket()       Create the listening socket
    3. bind()         Reserve IP:PORT          ← failures here are fatal
    4. listen()       Kernel starts queueing connections (backlog)
    5. accept()       One new socket per client
    6. close()        Release the listening socket

Steps 1-4 happen in bind(), while the server is being built. If any of
them fails the socket is closed again and a ServerBuildError is raised,
so a half-built server never exists.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR:
    Restarting right after a stop would otherwise fail with "Address
    already in use" while old sockets sit in TIME_WAIT.

TCP_NODELAY:
    Disables Nagle's algorithm so small responses leave immediately.

Accept timeout:
    The listening socket has a short timeout so the accept loop wakes up
    regularly and notices shutdown(). Accepted sockets do NOT inherit it.

=============================================================================
SIGNAL HANDLING FOR GRACEFUL SHUTDOWN
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop, systemd) call shutdown() when
the server runs on the main thread. Python only allows installing signal
handlers from the main thread, so a server started from a background
thread (as the tests do) skips this step and relies on shutdown().

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple, Union

from ..errors import AddressResolutionError, BindError
from .connection import Connection


logger = logging.getLogger(__name__)


Address = Union[Tuple[str, int], str]


def split_address(address: Address) -> Tuple[str, int]:
    """
    Normalize an address to a (host, port) tuple.

    Accepts ("127.0.0.1", 8080), "127.0.0.1:8080" or "[::1]:8080".

    Raises:
        AddressResolutionError: If the string has no usable port.
    """
    if isinstance(address, str):
        host, sep, port_text = address.rpartition(":")
        if not sep or not port_text.isdigit():
            raise AddressResolutionError(f"Could not resolve address {address!r}")
        return host.strip("[]"), int(port_text)

    host, port = address
    return host, int(port)


def resolve_address(address: Address) -> Tuple[int, tuple]:
    """
    Resolve an address to (family, sockaddr), first result wins.

    Raises:
        AddressResolutionError: If the name does not resolve.
    """
    host, port = split_address(address)
    try:
        results = socket.getaddrinfo(
            host or None, port,
            type=socket.SOCK_STREAM,
            flags=socket.AI_PASSIVE,
        )
    except (socket.gaierror, UnicodeError, OverflowError) as e:
        raise AddressResolutionError(f"Could not resolve address {host}:{port}: {e}") from e

    if not results:
        raise AddressResolutionError(f"Could not resolve address {host}:{port}")

    family, _, _, _, sockaddr = results[0]
    return family, sockaddr


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            pool.execute(dispatcher.dispatch, conn)

        server = SocketServer(("127.0.0.1", 8080))
        server.bind()                          # may raise ServerBuildError
        server.start(handle_connection)        # blocks until shutdown()
    """

    def __init__(self, address: Address, backlog: int = 128, poll_interval: float = 0.5):
        """
        Args:
            address: Where to listen, (host, port) or "host:port".
            backlog: Maximum number of connections the kernel queues
                     before accept() picks them up.
            poll_interval: Accept timeout, i.e. how quickly the loop
                           notices shutdown().
        """
        self.requested_address = address
        self.backlog = backlog
        self.poll_interval = poll_interval

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The (host, port) actually bound. Resolves port 0 to the real port."""
        if self._socket is None:
            return split_address(self.requested_address)
        sockname = self._socket.getsockname()
        return sockname[0], sockname[1]

    def bind(self) -> None:
        """
        Resolve, bind and listen.

        Raises:
            AddressResolutionError: Address does not resolve.
            BindError: Address resolves but can't be bound or listened on.
        """
        family, sockaddr = resolve_address(self.requested_address)

        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.bind(sockaddr)
            sock.listen(self.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {sockaddr}: {e}")
            raise BindError(f"Failed to bind to {sockaddr}: {e}") from e

        sock.settimeout(self.poll_interval)
        self._socket = sock
        logger.info(f"Listening on {self.address[0]}:{self.address[1]}")

    def _setup_signals(self):
        """Route SIGINT/SIGTERM to shutdown(). Main thread only."""
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Run the accept loop until shutdown() is called.

            SocketServer.start(handler)
                └──► Accept loop (BLOCKS HERE)
                        └──► For each connection: handler(conn)

        Raises:
            RuntimeError: If bind() was not called first.
            OSError: If accept() fails while running. The accept loop has
                     no per-connection isolation, so this is fatal.
        """
        if self._socket is None:
            raise RuntimeError("SocketServer.bind() must be called before start()")

        self._running = True
        self._setup_signals()

        try:
            self._accept_loop(self._socket, connection_handler)
        finally:
            self._running = False
            self._restore_signals()
            self.close()

    def _accept_loop(
        self,
        listener: socket.socket,
        connection_handler: Callable[[Connection], None],
    ):
        # shutdown() before start() means the loop never accepts anything.
        while not self._shutdown_event.is_set():
            try:
                client_socket, client_address = listener.accept()
            except socket.timeout:
                continue  # Just a chance to check for shutdown
            except OSError as e:
                if self._shutdown_event.is_set():
                    break  # Socket closed by close() from another thread
                logger.error(f"Accept error: {e}")
                raise

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(socket=client_socket, address=client_address[:2])
            connection_handler(conn)

    def shutdown(self):
        """
        Ask the accept loop to stop.

        Safe to call from a signal handler or another thread, and more
        than once. The loop exits within poll_interval seconds. A server
        shut down before start() never accepts a connection.
        """
        if self._running and not self._shutdown_event.is_set():
            logger.info("Shutting down socket server...")
        self._shutdown_event.set()

    def close(self):
        """Release the listening socket. Idempotent."""
        sock, self._socket = self._socket, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass
            logger.info("Socket server stopped")
