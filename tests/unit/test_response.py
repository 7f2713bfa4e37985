"""
Unit tests for HTTP response serialization.
"""

import dataclasses

import pytest

from cragweb.http.response import (
    INTERNAL_ERROR_BYTES,
    NOT_FOUND_PAGE,
    Response,
)
from cragweb.http.status_codes import HTTPStatus


class TestResponse:
    """Tests for Response class."""

    def test_status_line(self):
        """Test status line generation."""
        assert Response.ok().status_line == "HTTP/1.1 200 OK"
        assert Response.not_found().status_line == "HTTP/1.1 404 Not Found"
        assert Response.internal_error().status_line == "HTTP/1.1 500 Internal Server Error"

    def test_ok_to_bytes(self):
        """Ok("hello") is a 200 with Content-Length 5 and body hello."""
        data = Response.ok("hello").to_bytes()

        assert data == (
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: text/html\r\n"
            b"Content-Length: 5\r\n"
            b"\r\n"
            b"hello"
        )

    def test_content_length_counts_bytes(self):
        """Non-ASCII bodies are framed by encoded length."""
        data = Response.ok("héllo").to_bytes()

        assert b"Content-Length: 6\r\n" in data
        assert data.endswith("héllo".encode("utf-8"))

    def test_empty_body(self):
        data = Response.ok("").to_bytes()

        assert b"Content-Length: 0\r\n" in data
        assert data.endswith(b"\r\n\r\n")

    def test_not_found_sends_fixed_page(self):
        """The built-in page wins over whatever message was carried."""
        response = Response.not_found("no route for /x")
        data = response.to_bytes()

        assert response.body == "no route for /x"
        assert b"no route for /x" not in data
        assert data.endswith(NOT_FOUND_PAGE.encode("utf-8"))
        assert f"Content-Length: {len(NOT_FOUND_PAGE.encode('utf-8'))}".encode() in data

    def test_not_found_page_is_loaded(self):
        assert "<h1>Oops!</h1>" in NOT_FOUND_PAGE

    def test_internal_error_has_empty_body(self):
        assert INTERNAL_ERROR_BYTES == (
            b"HTTP/1.1 500 Internal Server Error\r\n"
            b"Content-Type: text/html\r\n"
            b"Content-Length: 0\r\n"
            b"\r\n"
        )

    def test_is_immutable(self):
        response = Response.ok("x")

        with pytest.raises(dataclasses.FrozenInstanceError):
            response.body = "y"

    def test_explicit_status(self):
        data = Response(HTTPStatus.INTERNAL_SERVER_ERROR, "oops").to_bytes()

        assert data.startswith(b"HTTP/1.1 500 Internal Server Error\r\n")
        assert data.endswith(b"oops")


class TestHTTPStatus:
    """Tests for HTTPStatus enum."""

    def test_compares_to_int(self):
        assert HTTPStatus.OK == 200

    def test_every_status_has_a_phrase(self):
        assert all(status.phrase != "Unknown" for status in HTTPStatus)

    def test_categories(self):
        assert HTTPStatus.OK.is_success
        assert HTTPStatus.NOT_FOUND.is_client_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_server_error
        assert HTTPStatus.NOT_FOUND.is_error
        assert not HTTPStatus.OK.is_error
