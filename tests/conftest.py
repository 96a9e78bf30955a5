"""
pytest configuration and fixtures.
"""

import http.client
import json
import socket
import threading
import time
from typing import Any, Callable, Dict, Generator, Optional, Tuple
import pytest

from userserver import HTTPServer, ServerConfig, User, UserStore


@pytest.fixture
def sample_get_request() -> bytes:
    """Raw GET for one user."""
    return (
        b"GET /users/1?verbose=1 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Raw POST creating a user."""
    body = b'{"id": "1001", "name": "Komi Shouko"}'
    return (
        b"POST /users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
        + body
    )


@pytest.fixture
def seed() -> Dict[str, User]:
    """Lookup keys that differ from the record ids on purpose."""
    return {
        "1": User(id="1001", name="Komi Shouko"),
        "2": User(id="1002", name="Tadano Hitohito"),
    }


@pytest.fixture
def store(seed: Dict[str, User]) -> UserStore:
    return UserStore(seed)


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=8080,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class TestServer:
    """Runs an HTTPServer in a background thread for integration tests."""

    __test__ = False  # not a test class, despite the name

    def __init__(self, server: HTTPServer, port: int):
        self.server = server
        self.port = port
        self._thread: Optional[threading.Thread] = None

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        # Wait for the listen socket
        for _ in range(50):  # 5 seconds max
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                    s.connect(('127.0.0.1', self.port))
                    return
            except ConnectionRefusedError:
                time.sleep(0.1)

        raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, method: str, path: str, body: Any = None,
                headers: Optional[Dict[str, str]] = None) -> Tuple[int, Dict[str, str], bytes]:
        """
        One request on a fresh connection.

        `body` may be bytes/str (sent as-is) or anything else (JSON-encoded).

        Returns:
            (status, lower-cased headers, body bytes)
        """
        if body is not None and not isinstance(body, (bytes, str)):
            body = json.dumps(body)

        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=5)
        try:
            conn.request(method, path, body=body, headers=headers or {})
            response = conn.getresponse()
            data = response.read()
            return (
                response.status,
                {k.lower(): v for k, v in response.getheaders()},
                data,
            )
        finally:
            conn.close()


@pytest.fixture
def server_factory(free_port: int, seed: Dict[str, User]) -> Generator[Callable[..., TestServer], None, None]:
    """
    Start live servers on a free port, seeded with the `seed` fixture.

    Keyword arguments override ServerConfig fields. Every server started
    through the factory is stopped at teardown.
    """
    started = []

    def start(**overrides) -> TestServer:
        settings = dict(
            host="127.0.0.1",
            port=free_port,
            min_workers=2,
            max_workers=8,
            timeout=5.0,
            keep_alive=False,
            log_level="WARNING",
        )
        settings.update(overrides)

        server = HTTPServer(UserStore(seed), ServerConfig(**settings))
        test_srv = TestServer(server, settings["port"])
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield start

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(server_factory) -> TestServer:
    """A live server with keep-alive off, so every request gets a fresh connection."""
    return server_factory()
