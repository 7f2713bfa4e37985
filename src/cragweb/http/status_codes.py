"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server can put on the wire.

Crag-Web only ever emits a handful of statuses:

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  Code  │  When                                                     │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  200   │ A handler returned Response.ok(...)                       │
    │  404   │ A handler returned Response.not_found(...)                │
    │  500   │ Anything went wrong on the connection (parse error,       │
    │        │ handler exception, truncated body)                        │
    └────────┴───────────────────────────────────────────────────────────┘

New status classes are added here and in _STATUS_PHRASES; the
serializer needs no change.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    Extends IntEnum, so status codes compare equal to plain integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200

    # 4xx CLIENT ERRORS
    NOT_FOUND = 404

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      │
                      │      └── Reason phrase
                      └───────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """Check if this is a 2xx (success) status code."""
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        """Check if this is a 4xx (client error) status code."""
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        """Check if this is a 5xx (server error) status code."""
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """Check if this is an error status code (4xx or 5xx)."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
}
