"""
=============================================================================
HTTP RESPONSE MODEL
=============================================================================

Handlers return a Response; the dispatcher turns it into bytes exactly
once, right before writing it to the socket.

=============================================================================
WIRE FORMAT
=============================================================================

Every response has the same shape:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                  ← status line               │
    │    Content-Type: text/html\r\n                                      │
    │    Content-Length: 16\r\n               ← UTF-8 byte length of body │
    │    \r\n                                                             │
    │    Hello, Crag-Web!                     ← body                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

No Date, Server or Connection headers are sent. The connection is always
closed after one response, so the client reads until Content-Length is
satisfied and the peer hangs up.

=============================================================================
THE 404 PAGE ALWAYS WINS
=============================================================================

Response.not_found("some message") keeps "some message" on the object,
but to_bytes() ignores it and emits the built-in static/404.html page
instead. The message is there for logs and tests, never for the client.

    Response.not_found("no route for /x").to_bytes()
        → b"HTTP/1.1 404 Not Found\r\n...<h1>Oops!</h1>..."

=============================================================================
"""

from dataclasses import dataclass
from pathlib import Path

from .status_codes import HTTPStatus


HTML_CONTENT_TYPE = "text/html"

# Loaded once at import; process-wide and never mutated.
NOT_FOUND_PAGE = (
    Path(__file__).resolve().parent.parent / "static" / "404.html"
).read_text(encoding="utf-8")


@dataclass(frozen=True)
class Response:
    """
    An immutable HTTP response.

    =========================================================================
    VARIANTS
    =========================================================================

        Response.ok(body)             200, body sent as-is
        Response.not_found(message)   404, fixed NOT_FOUND_PAGE sent
        Response.internal_error()     500, empty body

    The status is the tag. Other status classes can be expressed by
    constructing Response(status=..., body=...) directly.

    =========================================================================
    """

    status: HTTPStatus = HTTPStatus.OK
    body: str = ""
    content_type: str = HTML_CONTENT_TYPE
    version: str = "HTTP/1.1"

    @classmethod
    def ok(cls, body: str = "") -> "Response":
        """200 OK carrying body."""
        return cls(HTTPStatus.OK, body)

    @classmethod
    def not_found(cls, message: str = "not found") -> "Response":
        """404 Not Found. message is informational only."""
        return cls(HTTPStatus.NOT_FOUND, message)

    @classmethod
    def internal_error(cls) -> "Response":
        """500 Internal Server Error with an empty body."""
        return cls(HTTPStatus.INTERNAL_SERVER_ERROR)

    @property
    def status_line(self) -> str:
        """
        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 404 Not Found"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def wire_body(self) -> str:
        """The body that actually goes on the wire."""
        if self.status == HTTPStatus.NOT_FOUND:
            return NOT_FOUND_PAGE
        return self.body

    def to_bytes(self) -> bytes:
        """
        Serialize the response for socket.sendall().

        Content-Length counts encoded bytes, not characters, so non-ASCII
        bodies are framed correctly.
        """
        body = self.wire_body.encode("utf-8")
        head = (
            f"{self.status_line}\r\n"
            f"Content-Type: {self.content_type}\r\n"
            f"Content-Length: {len(body)}\r\n"
            "\r\n"
        )
        return head.encode("utf-8") + body


# The error boundary writes this on any connection-scoped failure.
INTERNAL_ERROR_BYTES = Response.internal_error().to_bytes()
