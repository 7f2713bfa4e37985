"""
pytest configuration and fixtures.
"""

import io
import socket
import threading
import time
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cragweb import Server, default_not_found_handler
from cragweb.http import Request, Response


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /hello HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: */*\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b"name=crag&kind=web"
    return (
        b"POST /echo HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
        + body
    )


@pytest.fixture
def stream():
    """Factory for in-memory binary streams standing in for a socket."""
    return io.BytesIO


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def send_raw(port: int, data: bytes, timeout: float = 5.0) -> bytes:
    """
    Send raw bytes to the server and read until it closes the connection.

    Every response is followed by a close, so reading to EOF gets exactly
    one response.
    """
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as s:
        s.sendall(data)
        chunks = []
        while True:
            chunk = s.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class, despite the name

    def __init__(self, server: Server):
        self.server = server
        self.port = server.address[1]
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        # The socket is already listening after finalize(); wait until the
        # accept loop is actually running.
        for _ in range(50):  # 5 seconds max
            if self.server.is_running:
                return
            time.sleep(0.1)

        raise RuntimeError("Server failed to start")

    def request(self, data: bytes) -> bytes:
        return send_raw(self.port, data)

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

        self.server.close()


def build_test_app():
    """Builder with the demo routes: /hello, /echo, /error and a 404 fallback."""
    builder = Server.build()

    @builder.get("/hello")
    def hello(request: Request) -> Response:
        return Response.ok("Hello, Crag-Web!")

    @builder.post("/echo")
    def echo(request: Request) -> Response:
        return Response.ok(request.body)

    @builder.get("/error")
    def error(request: Request) -> Response:
        raise RuntimeError("boom")

    builder.register_error_handler(default_not_found_handler)
    return builder


@pytest.fixture
def test_server() -> Generator[TestServer, None, None]:
    """Create a test server on a free port."""
    server = build_test_app().finalize(("127.0.0.1", 0), 2)

    test_srv = TestServer(server)
    test_srv.start()

    yield test_srv

    test_srv.stop()
