"""
Unit tests for HTTP response building.
"""

import json
from datetime import datetime, timezone

import pytest

from userserver.http.response import (
    HTTPResponse,
    ResponseBuilder,
    ok,
    not_found,
    bad_request,
    internal_error,
    error_message,
    error_response,
    format_http_date,
)
from userserver.http.status_codes import HTTPStatus


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        response = HTTPResponse(status=HTTPStatus.OK)
        assert response.status_line == "HTTP/1.1 200 OK"

        response = HTTPResponse(status=HTTPStatus.NOT_FOUND)
        assert response.status_line == "HTTP/1.1 404 Not Found"

    def test_to_bytes_includes_headers(self):
        response = HTTPResponse(
            status=HTTPStatus.OK,
            headers={"X-Custom": "value"},
            body=b"test",
        )

        result = response.to_bytes()

        assert result.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"X-Custom: value\r\n" in result
        assert b"Content-Length: 4\r\n" in result
        assert b"Date: " in result
        assert result.endswith(b"\r\n\r\ntest")

    def test_to_bytes_leaves_headers_alone(self):
        """Defaults are added to the wire form only."""
        response = HTTPResponse(body=b"{}")
        response.to_bytes()
        assert "Content-Length" not in response.headers

    def test_content_length_counts_bytes(self):
        """Non-ASCII text: length in UTF-8 bytes, not characters."""
        response = ok({"name": "Ødegaard"})
        assert response.body == '{"name": "Ødegaard"}'.encode("utf-8")
        assert b"Content-Length: 21\r\n" in response.to_bytes()


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_json_sets_body_and_content_type(self):
        data = {"id": "1001", "name": "Komi Shouko"}
        response = ResponseBuilder().json(data).build()

        assert response.headers["Content-Type"] == "application/json"
        assert json.loads(response.body) == data

    def test_status(self):
        response = ResponseBuilder().status(HTTPStatus.NOT_FOUND).build()
        assert response.status == HTTPStatus.NOT_FOUND

    def test_unserializable_leaves_builder_untouched(self):
        builder = ResponseBuilder().json({"ok": True})

        with pytest.raises(TypeError):
            builder.json({"bad": object()})

        response = builder.build()
        assert json.loads(response.body) == {"ok": True}

    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            ResponseBuilder().json({"x": float("nan")})

    def test_close_connection(self):
        response = ResponseBuilder().close_connection().build()
        assert response.headers["Connection"] == "close"

    def test_chaining(self):
        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .header("X-One", "1")
            .json([])
            .build())
        assert response.headers["X-One"] == "1"
        assert response.body == b"[]"


class TestHelpers:
    """The fixed error bodies and ok()."""

    def test_ok(self):
        response = ok([{"id": "1", "name": "a"}])
        assert response.status == HTTPStatus.OK
        assert json.loads(response.body) == [{"id": "1", "name": "a"}]

    @pytest.mark.parametrize("factory, status, message", [
        (bad_request, HTTPStatus.BAD_REQUEST, "bad request"),
        (not_found, HTTPStatus.NOT_FOUND, "not found"),
        (internal_error, HTTPStatus.INTERNAL_SERVER_ERROR, "internal server error"),
    ])
    def test_error_bodies(self, factory, status, message):
        response = factory()
        assert response.status == status
        assert response.headers["Content-Type"] == "application/json"
        assert json.loads(response.body) == {"error": message}

    @pytest.mark.parametrize("status, message", [
        (HTTPStatus.REQUEST_TIMEOUT, "bad request"),
        (HTTPStatus.PAYLOAD_TOO_LARGE, "bad request"),
        (HTTPStatus.SERVICE_UNAVAILABLE, "internal server error"),
    ])
    def test_transport_statuses_reuse_fixed_messages(self, status, message):
        assert error_message(status) == message
        response = error_response(status)
        assert response.status == status
        assert json.loads(response.body) == {"error": message}

    def test_format_http_date(self):
        dt = datetime(2026, 10, 19, 8, 5, 3, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Mon, 19 Oct 2026 08:05:03 GMT"
