"""
=============================================================================
HTTP REQUEST MODEL AND PARSER
=============================================================================

Turns the raw header lines of one connection into a Request object.

Crag-Web understands a deliberately tiny slice of HTTP/1.1:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHAT WE ACTUALLY READ                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   POST /submit HTTP/1.1\r\n        ← request line (3 tokens)        │
    │   ──┬─ ───┬─── ───┬────                                             │
    │     │     │       └── must be exactly "HTTP/1.1"                    │
    │     │     └────────── matched literally, no decoding                │
    │     └──────────────── GET or POST, nothing else                     │
    │                                                                      │
    │   Host: localhost\r\n              ← ignored                        │
    │   Content-Length: 5\r\n            ← only header we interpret       │
    │   \r\n                             ← end of headers                 │
    │   hello                            ← exactly 5 bytes (POST only)    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST IDENTITY
=============================================================================

A Request is used as a dictionary key by the routing table, so its
equality and hash only look at (method, path). The body is NOT part of
the identity:

    Request.post("/x", "a") == Request.post("/x", "b")    → True
    hash(Request.post("/x", "a")) == hash(Request.post("/x", "b"))

This is what lets every POST to /x reach the same handler no matter
what payload it carries.

=============================================================================
PARSE FAILURES
=============================================================================

Every way the request line can be wrong has its own exception class:

    ""                       → MissingMethod
    "GET"                    → MissingURI
    "GET /"                  → MissingProtocol
    "GET / HTTP/1.0"         → UnsupportedProtocol
    "GET / HTTP/1.1 extra"   → MalformedRequestLine
    "FOO / HTTP/1.1"         → UnsupportedMethod

A POST body that is shorter than its Content-Length is NOT a protocol
error: the client simply hung up. That is reported as IncompleteBody,
which is a ConnectionError (an I/O failure).

=============================================================================
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Iterable, List, Tuple


logger = logging.getLogger(__name__)


SUPPORTED_PROTOCOL = "HTTP/1.1"
CONTENT_LENGTH_PREFIX = "Content-Length:"


# =============================================================================
# EXCEPTIONS
# =============================================================================

class HTTPParseError(Exception):
    """
    Raised when the request line cannot be turned into a Request.

    Parse errors are local to one connection. The dispatcher catches them
    and answers with a 500 on that connection only.
    """


class MissingMethod(HTTPParseError):
    """The request line has no tokens at all."""


class MissingURI(HTTPParseError):
    """The request line stops after the method."""


class MissingProtocol(HTTPParseError):
    """The request line stops after the path."""


class MalformedRequestLine(HTTPParseError):
    """The request line has more than three tokens."""


class UnsupportedProtocol(HTTPParseError):
    """The protocol token is not exactly HTTP/1.1."""


class UnsupportedMethod(HTTPParseError):
    """The method is neither GET nor POST."""


class IncompleteBody(ConnectionError):
    """The stream closed before Content-Length body bytes arrived."""

    def __init__(self, expected: int, received: int):
        super().__init__(
            f"Connection closed after {received} of {expected} body bytes"
        )
        self.expected = expected
        self.received = received


# =============================================================================
# REQUEST MODEL
# =============================================================================

class Method(Enum):
    """
    The request variants the server knows about.

    UNIDENTIFIED is never produced by the parser. It only exists as the
    routing key under which the fallback handler is registered.
    """
    GET = "GET"
    POST = "POST"
    UNIDENTIFIED = "UNIDENTIFIED"


@dataclass(unsafe_hash=True)
class Request:
    """
    A parsed HTTP request.

    =========================================================================
    VARIANTS
    =========================================================================

        Request.get("/hello")            GET(path)
        Request.post("/echo", "hi")      POST(path, body)
        UNIDENTIFIED                     fallback routing key

    The body is excluded from __eq__ and __hash__ (compare=False), so it
    is safe to hash a Request even though add_body() mutates it once
    during parsing.

    =========================================================================
    """

    method: Method
    path: str
    body: str = field(default="", compare=False, hash=False)

    @classmethod
    def get(cls, path: str) -> "Request":
        """Build a GET request for path."""
        return cls(Method.GET, path)

    @classmethod
    def post(cls, path: str, body: str = "") -> "Request":
        """Build a POST request for path carrying body."""
        return cls(Method.POST, path, body)

    @property
    def is_post(self) -> bool:
        return self.method is Method.POST

    def add_body(self, body: str) -> None:
        """
        Attach the body read off the wire.

        Only POST requests carry a body; on any other variant this is a
        no-op.
        """
        if self.is_post:
            self.body = body

    def __str__(self) -> str:
        return f"{self.method.value} {self.path}"


# The key the fallback handler lives under in the routing table.
UNIDENTIFIED = Request(Method.UNIDENTIFIED, "")


# =============================================================================
# PURE PARSING FUNCTIONS
# =============================================================================

def parse_request_line(line: str) -> Request:
    """
    Parse a request line into a Request.

    =====================================================================
    REQUEST LINE FORMAT
    =====================================================================

        METHOD SP PATH SP PROTOCOL

        "GET /foo/bar HTTP/1.1"  →  Request.get("/foo/bar")
        "POST / HTTP/1.1"        →  Request.post("/", "")

    Tokens are split on any run of whitespace. Checks run in token
    order: presence of each token, then the protocol value, then extra
    tokens, and finally the method value.

    =====================================================================

    Args:
        line: The first header line, with or without its terminator.

    Returns:
        A GET or POST Request with an empty body.

    Raises:
        HTTPParseError: One of its subclasses, describing what is wrong.
    """
    logger.debug(f"Request line: {line.strip()!r}")
    parts = line.split()

    if not parts:
        raise MissingMethod("No method found")
    if len(parts) < 2:
        raise MissingURI("No URI found")
    if len(parts) < 3:
        raise MissingProtocol("No protocol found")

    method, uri, protocol = parts[:3]

    if protocol != SUPPORTED_PROTOCOL:
        raise UnsupportedProtocol(
            f"Server can only work with {SUPPORTED_PROTOCOL}, got {protocol!r}"
        )

    if len(parts) > 3:
        raise MalformedRequestLine(
            f"Invalid request line: extra values after parts: {parts[3:]}"
        )

    if method == Method.GET.value:
        return Request.get(uri)
    if method == Method.POST.value:
        return Request.post(uri)
    raise UnsupportedMethod(f"Invalid method {method!r}")


def parse_content_length(lines: Iterable[str]) -> int:
    """
    Find the body length in the header lines.

    Only the first line starting with "Content-Length:" (case-sensitive)
    is looked at. A missing header, or a value that is not a plain
    non-negative integer, means 0.
    """
    for line in lines:
        if not line.startswith(CONTENT_LENGTH_PREFIX):
            continue
        value = line.split(":")[1].strip()
        if value.isascii() and value.isdigit():
            return int(value)
        logger.debug(f"Ignoring unparsable Content-Length: {value!r}")
        return 0
    return 0


def parse_request(lines: Iterable[str]) -> Tuple[Request, int]:
    """
    Build a Request from the header lines of one message.

    Args:
        lines: Header lines, request line first.

    Returns:
        Tuple of (request, content_length). content_length is always 0
        for GET, whatever headers the client sent.

    Raises:
        HTTPParseError: If the request line is invalid or missing.
    """
    lines = iter(lines)
    first_line = next(lines, "")
    request = parse_request_line(first_line)

    if not request.is_post:
        return request, 0
    return request, parse_content_length(lines)


# =============================================================================
# STREAM PARSER
# =============================================================================

class RequestParser:
    """
    Reads and parses one request from a binary stream.

    The stream is anything with readline() and read(), e.g. the file
    object returned by socket.makefile("rb") or an io.BytesIO in tests.

    =========================================================================
    TWO PASSES
    =========================================================================

        1. read_header_lines()  lines up to the blank line (or EOF)
        2. parse_request()      request line + Content-Length
        3. read_body()          exactly Content-Length bytes (POST only)

    A body shorter than announced blocks until the bytes arrive or the
    peer closes the stream. There is no timeout.

    =========================================================================
    """

    def __init__(self, encoding: str = "utf-8"):
        """
        Args:
            encoding: Used to decode header lines and the body. Bytes that
                      do not decode are replaced, never rejected.
        """
        self.encoding = encoding

    def read_header_lines(self, stream: BinaryIO) -> List[str]:
        """
        Read header lines until the end-of-headers sentinel.

        A line that is empty once its CRLF / LF terminator is removed ends
        the headers, as does end of stream. Returned lines have their
        terminators stripped.
        """
        lines: List[str] = []
        while True:
            raw = stream.readline()
            if not raw:
                break
            line = raw.decode(self.encoding, errors="replace").rstrip("\r\n")
            if not line:
                break
            lines.append(line)
        return lines

    def read_body(self, stream: BinaryIO, length: int) -> str:
        """
        Read exactly length bytes of body.

        Raises:
            IncompleteBody: If the stream ends first.
        """
        if length <= 0:
            return ""

        chunks = []
        received = 0
        while received < length:
            chunk = stream.read(length - received)
            if not chunk:
                raise IncompleteBody(length, received)
            chunks.append(chunk)
            received += len(chunk)

        return b"".join(chunks).decode(self.encoding, errors="replace")

    def parse(self, stream: BinaryIO) -> Request:
        """
        Read a whole request (headers and, for POST, body) off the stream.

        Raises:
            HTTPParseError: Malformed request line.
            IncompleteBody: Truncated POST body.
            OSError: Any other I/O failure from the stream.
        """
        lines = self.read_header_lines(stream)
        request, content_length = parse_request(lines)

        if request.is_post:
            request.add_body(self.read_body(stream, content_length))

        return request
