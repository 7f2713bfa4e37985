"""
=============================================================================
CORE NETWORKING AND CONCURRENCY
=============================================================================

    socket_server.py   Listening socket + accept loop (single thread)
    connection.py      One accepted client socket, one request
    thread_pool.py     Fixed-size worker pool that bounds concurrency

Nothing in here knows about HTTP. The accept loop produces Connections,
the pool runs whatever callable it is given; the dispatcher glues the
two to the protocol layer.

=============================================================================
"""

from .socket_server import SocketServer, split_address, resolve_address
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool, PoolClosed, Worker, WorkerState

__all__ = [
    "SocketServer",     # Listening socket and accept loop
    "split_address",
    "resolve_address",
    "Connection",       # Wrapper for client socket
    "ConnectionState",  # Enum for connection lifecycle states
    "ThreadPool",       # Fixed set of worker threads
    "PoolClosed",
    "Worker",
    "WorkerState",
]
