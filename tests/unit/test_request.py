"""
Unit tests for HTTP request parsing.
"""

import pytest

from userserver.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Request line parts and client address."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/users/1"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Header names are lowercased."""
        request = parse_request(sample_get_request)

        assert request.headers["host"] == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "application/json"
        assert request.is_keep_alive is True

    def test_query_string_split_from_path(self, sample_get_request: bytes):
        """The query never reaches the router."""
        request = parse_request(sample_get_request)

        assert request.path == "/users/1"
        assert request.query_params == {"verbose": ["1"]}

    def test_parse_post_with_body(self, sample_post_request: bytes):
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/users"
        assert request.headers["content-type"] == "application/json"
        assert request.body == b'{"id": "1001", "name": "Komi Shouko"}'
        assert request.is_keep_alive is False

    def test_body_cut_to_content_length(self):
        """Bytes past Content-Length belong to the next request."""
        data = (
            b"POST /users HTTP/1.1\r\n"
            b"Content-Length: 2\r\n"
            b"\r\n"
            b"{}GET /users HTTP/1.1\r\n\r\n"
        )
        assert parse_request(data).body == b"{}"

    def test_percent_decoded_path(self):
        request = parse_request(b"GET /users/%31%32 HTTP/1.1\r\n\r\n")
        assert request.path == "/users/12"

    def test_unknown_method_accepted(self):
        """Unknown methods are the router's problem (404), not a parse error."""
        request = parse_request(b"BREW /users HTTP/1.1\r\n\r\n")
        assert request.method == "BREW"

    def test_repeated_headers_joined(self):
        data = (
            b"GET /users HTTP/1.1\r\n"
            b"Accept: application/json\r\n"
            b"Accept: text/plain\r\n"
            b"\r\n"
        )
        assert parse_request(data).headers["accept"] == "application/json, text/plain"

    def test_http10_closes_by_default(self):
        request = parse_request(b"GET /users HTTP/1.0\r\n\r\n")
        assert request.is_keep_alive is False

        request = parse_request(b"GET /users HTTP/1.0\r\nConnection: keep-alive\r\n\r\n")
        assert request.is_keep_alive is True


class TestRequestParserErrors:
    """Malformed input raises HTTPParseError with the status to send."""

    def test_invalid_request_line(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"INVALID\r\n\r\n")
        assert exc_info.value.status_code == 400

    def test_lowercase_method_rejected(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"get /users HTTP/1.1\r\n\r\n")

    def test_missing_header_terminator(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET /users HTTP/1.1\r\nHost: x\r\n")

    def test_unsupported_version(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET /users HTTP/2.0\r\n\r\n")

    @pytest.mark.parametrize("value", [b"abc", b"-1"])
    def test_bad_content_length(self, value: bytes):
        data = b"POST /users HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n"
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(data)
        assert exc_info.value.status_code == 400

    def test_short_body(self):
        data = b"POST /users HTTP/1.1\r\nContent-Length: 10\r\n\r\n{}"
        with pytest.raises(HTTPParseError):
            parse_request(data)

    def test_too_large(self):
        data = b"POST /users HTTP/1.1\r\n\r\n" + b"x" * 100
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(data, max_size=50)
        assert exc_info.value.status_code == 413


class TestChunkedBodies:
    """Transfer-Encoding: chunked requests."""

    def test_chunked_body_decoded(self):
        data = (
            b"POST /users HTTP/1.1\r\n"
            b"Transfer-Encoding: chunked\r\n"
            b"\r\n"
            b"c\r\n{\"id\": \"5\", \r\n"
            b"c;ext=1\r\n\"name\": \"x\"}\r\n"
            b"0\r\n"
            b"\r\n"
        )
        request = parse_request(data)
        assert request.body == b'{"id": "5", "name": "x"}'

    def test_coding_name_case_insensitive(self):
        data = b"POST /users HTTP/1.1\r\nTransfer-Encoding: Chunked\r\n\r\n2\r\n{}\r\n0\r\n\r\n"
        assert parse_request(data).body == b"{}"

    @pytest.mark.parametrize("data", [
        # coding other than plain chunked
        b"POST /users HTTP/1.1\r\nTransfer-Encoding: gzip\r\n\r\n",
        b"POST /users HTTP/1.1\r\nTransfer-Encoding: gzip, chunked\r\n\r\n0\r\n\r\n",
        # both framings at once
        b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\nContent-Length: 5\r\n\r\n0\r\n\r\n",
        # bad size line
        b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\nzz\r\n{}\r\n0\r\n\r\n",
        # data longer than its size
        b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n1\r\n{}\r\n0\r\n\r\n",
        # no last chunk
        b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n2\r\n{}\r\n",
    ])
    def test_rejected(self, data: bytes):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(data)
        assert exc_info.value.status_code == 400


class TestHTTPRequest:
    """Tests for HTTPRequest properties."""

    def test_path_params_start_empty(self):
        assert HTTPRequest(method="GET", path="/users/1").path_params == {}
