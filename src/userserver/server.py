"""
=============================================================================
USER SERVER
=============================================================================

Ties the pieces together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ──accept──► ThreadPool ──worker──► _process_connection│
    │                               ▲                        │             │
    │                     readable  │   idle keep-alive      │             │
    │                    KeepAliveWatcher ◄──────────────────┤             │
    │                                                        │             │
    │                      Connection.read_request() ◄───────┤             │
    │                      RequestParser.parse()     ◄───────┤             │
    │                                                        ▼             │
    │             LoggingMiddleware ──► Router.dispatch ──► UserHandler    │
    │                                                        │             │
    │                                                        ▼             │
    │                                                   UserStore          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Errors before routing (unparseable request, read timeout, oversized
request, overload) are answered here with the fixed error bodies and the
connection is closed. Errors inside the chain become 500.

=============================================================================
"""

import logging
from typing import Callable, Mapping, Optional

from .config import ServerConfig
from .core import (
    SocketServer, Connection, ConnectionState, RequestTooLarge,
    ThreadPool, KeepAliveWatcher,
)
from .handlers import build_router
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus,
    error_response, internal_error,
)
from .middleware import MiddlewarePipeline, LoggingMiddleware
from .store import User, UserStore


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    The users service: three routes over one UserStore.

        store = UserStore({"1": User("1001", "Komi Shouko")})
        server = HTTPServer(store, ServerConfig(port=8080))
        server.run()          # blocks; server.shutdown() from elsewhere

    handle() runs a parsed request through the same middleware and router
    without any sockets, which is what most tests use.
    """

    def __init__(self, store: UserStore, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._store = store

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._keep_alive = KeepAliveWatcher(
            on_ready=self._resume_connection,
            idle_timeout=self.config.keep_alive_timeout,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._router = build_router(store)

        self._middleware = MiddlewarePipeline()
        self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))
        self._handler: Callable[[HTTPRequest], HTTPResponse] = self._middleware.wrap(
            self._router.dispatch
        )

        self._running = False

    # =========================================================================
    # IN-PROCESS DISPATCH
    # =========================================================================

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Run one request through middleware and router. Never raises."""
        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"Handler error for {request.method} {request.path}: {e}")
            return internal_error()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Serve until shutdown() or SIGINT/SIGTERM.

        Raises:
            OSError: If the listen address can't be bound.
        """
        if host:
            self.config.host = host
        if port:
            self.config.port = port

        self._setup_logging()
        self._running = True
        self._thread_pool.start()
        self._keep_alive.start()

        logger.info(
            f"Starting {self.config.server_name} on {self.config.host}:{self.config.port} "
            f"({len(self._store)} users, {self.config.min_workers}-{self.config.max_workers} workers)"
        )
        for line in self._router.describe():
            logger.info(f"  route {line}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Stop accepting connections; run() returns once workers finish."""
        self._socket_server.shutdown()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("userserver").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._keep_alive.stop()

        tasks = self._thread_pool.stats["tasks"]
        self._thread_pool.shutdown(wait=True, timeout=self.config.timeout)
        logger.info(
            f"Server stopped ({tasks['completed']} connection tasks served, "
            f"{tasks['failed']} failed)"
        )

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand an accepted connection to the pool (accept thread)."""
        self._submit(conn, block=True)

    def _resume_connection(self, conn: Connection):
        """Hand a parked connection with a new request back to the pool (watcher thread)."""
        self._submit(conn, block=False)

    def _submit(self, conn: Connection, block: bool):
        try:
            submitted = self._thread_pool.submit(
                self._process_connection,
                args=(conn,),
                block=block,
                queue_timeout=self.config.timeout if block else None,
            )
        except RuntimeError:
            logger.debug(f"[{conn.id}] Pool stopping, dropping connection")
            conn.close()
            return

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Serve what the client has sent so far (worker thread).

        Requests already sitting in the buffer (pipelining) are answered
        back to back. After that a kept-alive connection is parked with
        the keep-alive watcher and the worker goes back to the pool; the
        watcher resubmits it when the next request arrives.
        """
        try:
            keep_open = self._serve_one(conn)
            while keep_open and self._running and conn.has_buffered_data:
                keep_open = self._serve_one(conn)
        except Exception:
            conn.close()
            raise

        if keep_open and self._running:
            self._keep_alive.watch(conn)
        else:
            conn.close()

    def _serve_one(self, conn: Connection) -> bool:
        """
        read → parse → handle → send for one request.

        Returns:
            True if the connection should stay open for another request.
        """
        try:
            raw_request = conn.read_request()
        except TimeoutError:
            self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
            return False
        except RequestTooLarge as e:
            logger.warning(f"[{conn.id}] {e}")
            self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
            return False

        if raw_request is None:
            return False

        try:
            request = self._parser.parse(raw_request, conn.address)
        except HTTPParseError as e:
            logger.info(f"[{conn.id}] Malformed request: {e}")
            self._send_error(conn, HTTPStatus(e.status_code))
            return False

        conn.state = ConnectionState.PROCESSING
        response = self.handle(request)

        keep_alive = self.config.keep_alive and request.is_keep_alive
        response.headers["Connection"] = "keep-alive" if keep_alive else "close"

        if not conn.send_response(response.to_bytes()):
            return False
        if keep_alive:
            conn.set_keep_alive()
        return keep_alive

    def _send_error(self, conn: Connection, status: HTTPStatus):
        response = error_response(status)
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes())


def create_app(seed: Optional[Mapping[str, User]] = None,
               config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Build a store from `seed` and a server around it.

        app = create_app({"1": User("1001", "Komi Shouko")})
        app.run()
    """
    return HTTPServer(UserStore(seed), config)
