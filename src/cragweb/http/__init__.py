"""
=============================================================================
HTTP PROTOCOL COMPONENTS
=============================================================================

    request.py       Request model + request-line / Content-Length parser
    response.py      Response model + wire serialization
    router.py        Router (builder) and frozen RoutingTable
    status_codes.py  HTTPStatus enum

Nothing in here touches sockets. The parser reads from any binary stream,
which keeps it easy to test with io.BytesIO.

=============================================================================
"""

from .request import (
    Request,
    Method,
    UNIDENTIFIED,
    RequestParser,
    parse_request,
    parse_request_line,
    parse_content_length,
    # Parse failures
    HTTPParseError,
    MissingMethod,
    MissingURI,
    MissingProtocol,
    MalformedRequestLine,
    UnsupportedProtocol,
    UnsupportedMethod,
    IncompleteBody,
)
from .response import Response, NOT_FOUND_PAGE, INTERNAL_ERROR_BYTES
from .router import Handler, Router, RoutingTable
from .status_codes import HTTPStatus

__all__ = [
    # Request model and parsing
    "Request",
    "Method",
    "UNIDENTIFIED",
    "RequestParser",
    "parse_request",
    "parse_request_line",
    "parse_content_length",
    "HTTPParseError",
    "MissingMethod",
    "MissingURI",
    "MissingProtocol",
    "MalformedRequestLine",
    "UnsupportedProtocol",
    "UnsupportedMethod",
    "IncompleteBody",

    # Responses
    "Response",
    "NOT_FOUND_PAGE",
    "INTERNAL_ERROR_BYTES",

    # Routing
    "Handler",
    "Router",
    "RoutingTable",

    # Status codes
    "HTTPStatus",
]
