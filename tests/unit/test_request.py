"""
Unit tests for HTTP request parsing.
"""

import pytest

from cragweb.http.request import (
    UNIDENTIFIED,
    HTTPParseError,
    IncompleteBody,
    MalformedRequestLine,
    Method,
    MissingMethod,
    MissingProtocol,
    MissingURI,
    Request,
    RequestParser,
    UnsupportedMethod,
    UnsupportedProtocol,
    parse_content_length,
    parse_request,
    parse_request_line,
)


class TestRequestModel:
    """Tests for the Request dataclass."""

    def test_get_has_empty_body(self):
        request = Request.get("/hello")

        assert request.method is Method.GET
        assert request.path == "/hello"
        assert request.body == ""

    def test_identity_ignores_body(self):
        """POST(/x, "a") and POST(/x, "b") are the same routing key."""
        a = Request.post("/x", "a")
        b = Request.post("/x", "b")

        assert a == b
        assert hash(a) == hash(b)
        assert {a: "handler"}[b] == "handler"

    def test_identity_includes_method(self):
        assert Request.get("/x") != Request.post("/x")

    def test_add_body_on_post(self):
        request = Request.post("/echo")
        request.add_body("payload")

        assert request.body == "payload"

    def test_add_body_is_noop_on_get(self):
        request = Request.get("/hello")
        request.add_body("ignored")

        assert request.body == ""

    def test_unidentified_is_distinct(self):
        assert UNIDENTIFIED.method is Method.UNIDENTIFIED
        assert UNIDENTIFIED != Request.get("")

    def test_str(self):
        assert str(Request.post("/echo", "x")) == "POST /echo"


class TestParseRequestLine:
    """Tests for parse_request_line()."""

    def test_get(self):
        assert parse_request_line("GET /foo/bar HTTP/1.1") == Request.get("/foo/bar")

    def test_post(self):
        request = parse_request_line("POST / HTTP/1.1")

        assert request == Request.post("/")
        assert request.body == ""

    def test_extra_whitespace_between_tokens(self):
        assert parse_request_line("GET   /hello \t HTTP/1.1") == Request.get("/hello")

    def test_path_is_literal(self):
        """No query splitting, no percent-decoding."""
        request = parse_request_line("GET /search?q=a%20b HTTP/1.1")

        assert request.path == "/search?q=a%20b"

    @pytest.mark.parametrize("line, error, message", [
        ("", MissingMethod, "No method found"),
        ("GET", MissingURI, "No URI found"),
        ("GET /", MissingProtocol, "No protocol found"),
    ])
    def test_missing_tokens(self, line, error, message):
        with pytest.raises(error, match=message):
            parse_request_line(line)

    def test_wrong_protocol(self):
        with pytest.raises(UnsupportedProtocol):
            parse_request_line("GET / HTTP/1.0")

    def test_protocol_is_case_sensitive(self):
        with pytest.raises(UnsupportedProtocol):
            parse_request_line("GET / http/1.1")

    def test_unsupported_method(self):
        with pytest.raises(UnsupportedMethod):
            parse_request_line("FOO / HTTP/1.1")

    def test_method_is_case_sensitive(self):
        with pytest.raises(UnsupportedMethod):
            parse_request_line("get / HTTP/1.1")

    def test_extra_tokens(self):
        with pytest.raises(MalformedRequestLine):
            parse_request_line("GET / HTTP/1.1 extra")

    def test_protocol_checked_before_extra_tokens(self):
        with pytest.raises(UnsupportedProtocol):
            parse_request_line("GET / HTTP/1.0 extra")

    def test_extra_tokens_checked_before_method(self):
        with pytest.raises(MalformedRequestLine):
            parse_request_line("FOO / HTTP/1.1 extra")

    def test_all_parse_errors_share_a_base(self):
        for line in ("", "GET", "GET /", "GET / HTTP/1.0", "FOO / HTTP/1.1"):
            with pytest.raises(HTTPParseError):
                parse_request_line(line)


class TestParseContentLength:
    """Tests for parse_content_length()."""

    def test_present(self):
        assert parse_content_length(["Host: x", "Content-Length: 42"]) == 42

    def test_absent(self):
        assert parse_content_length(["Host: x"]) == 0

    def test_unparsable(self):
        assert parse_content_length(["Content-Length: lots"]) == 0

    def test_negative(self):
        assert parse_content_length(["Content-Length: -5"]) == 0

    def test_header_name_is_case_sensitive(self):
        assert parse_content_length(["content-length: 5"]) == 0

    def test_first_header_wins(self):
        assert parse_content_length(["Content-Length: 3", "Content-Length: 9"]) == 3


class TestParseRequest:
    """Tests for parse_request() on header lines."""

    def test_get_ignores_content_length(self):
        request, length = parse_request(["GET /hello HTTP/1.1", "Content-Length: 10"])

        assert request == Request.get("/hello")
        assert length == 0

    def test_post_reads_content_length(self):
        request, length = parse_request(["POST /echo HTTP/1.1", "Content-Length: 5"])

        assert request == Request.post("/echo")
        assert length == 5

    def test_post_without_content_length(self):
        _, length = parse_request(["POST /echo HTTP/1.1"])

        assert length == 0

    def test_content_length_on_request_line_is_not_a_header(self):
        """Only lines after the request line are scanned."""
        with pytest.raises(HTTPParseError):
            parse_request(["Content-Length: 5"])

    def test_empty(self):
        with pytest.raises(MissingMethod):
            parse_request([])


class TestRequestParser:
    """Tests for RequestParser on byte streams."""

    def test_parse_simple_get(self, stream, sample_get_request: bytes):
        request = RequestParser().parse(stream(sample_get_request))

        assert request == Request.get("/hello")
        assert request.body == ""

    def test_parse_post_with_body(self, stream, sample_post_request: bytes):
        request = RequestParser().parse(stream(sample_post_request))

        assert request.method is Method.POST
        assert request.path == "/echo"
        assert request.body == "name=crag&kind=web"

    def test_body_length_matches_content_length(self, stream):
        raw = b"POST /x HTTP/1.1\r\nContent-Length: 3\r\n\r\nabcdef"
        request = RequestParser().parse(stream(raw))

        assert request.body == "abc"
        assert len(request.body) == 3

    def test_bare_lf_line_endings(self, stream):
        raw = b"POST /x HTTP/1.1\nContent-Length: 2\n\nhi"
        request = RequestParser().parse(stream(raw))

        assert request.body == "hi"

    def test_headers_end_at_eof(self, stream):
        request = RequestParser().parse(stream(b"GET /no-blank-line HTTP/1.1\r\n"))

        assert request == Request.get("/no-blank-line")

    def test_empty_stream(self, stream):
        with pytest.raises(MissingMethod):
            RequestParser().parse(stream(b""))

    def test_read_header_lines_strips_terminators(self, stream):
        lines = RequestParser().read_header_lines(
            stream(b"GET / HTTP/1.1\r\nHost: x\r\n\r\nignored")
        )

        assert lines == ["GET / HTTP/1.1", "Host: x"]

    def test_truncated_body(self, stream):
        raw = b"POST /x HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc"

        with pytest.raises(IncompleteBody) as exc_info:
            RequestParser().parse(stream(raw))

        assert exc_info.value.expected == 10
        assert exc_info.value.received == 3
        assert isinstance(exc_info.value, ConnectionError)

    def test_undecodable_body_is_replaced(self, stream):
        raw = b"POST /x HTTP/1.1\r\nContent-Length: 2\r\n\r\n\xff\xfe"
        request = RequestParser().parse(stream(raw))

        assert request.body == "\ufffd\ufffd"

    def test_utf8_body_counts_bytes(self, stream):
        body = "héllo".encode("utf-8")
        raw = b"POST /x HTTP/1.1\r\nContent-Length: %d\r\n\r\n" % len(body) + body
        request = RequestParser().parse(stream(raw))

        assert request.body == "héllo"
