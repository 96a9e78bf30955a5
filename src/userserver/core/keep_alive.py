"""
=============================================================================
KEEP-ALIVE WATCHER
=============================================================================

An idle keep-alive connection must not pin a worker thread: with 16
workers, 16 quiet browsers would otherwise lock everyone else out.

Between requests a connection is parked here instead. One thread waits
on every parked socket at once with a selector and hands a connection
back to the pool only when it turns readable:

    worker ──watch(conn)──► pending ──► selector ──readable──► on_ready(conn)
                                            │                   (pool submit)
                                            └──idle too long──► close

The selector thread never reads from a client socket. A readable socket
can mean a new request or a closed peer; the worker that picks it up
finds out which.

A socketpair wakes the selector when a connection is parked or the
watcher is stopped.

=============================================================================
"""

import time
import queue
import socket
import logging
import selectors
import threading
from typing import Callable, List, Optional

from .connection import Connection


logger = logging.getLogger(__name__)


class KeepAliveWatcher:
    """
    Parks idle keep-alive connections off the worker pool.

        watcher = KeepAliveWatcher(on_ready=resubmit, idle_timeout=5.0)
        watcher.start()
        watcher.watch(conn)      # from a worker, after sending a response
        watcher.stop()           # closes everything still parked
    """

    def __init__(self, on_ready: Callable[[Connection], None],
                 idle_timeout: float = 5.0, poll_interval: float = 0.5):
        """
        Args:
            on_ready: Called from the watcher thread with a connection
                      that has data (or EOF) waiting.
            idle_timeout: Seconds a parked connection may stay silent.
            poll_interval: Upper bound on how late an idle connection is
                           noticed.
        """
        self._on_ready = on_ready
        self.idle_timeout = idle_timeout
        self._poll_interval = poll_interval

        self._pending: "queue.SimpleQueue[Connection]" = queue.SimpleQueue()

        # Created by start(), released by stop()
        self._selector: Optional[selectors.BaseSelector] = None
        self._wake_r: Optional[socket.socket] = None
        self._wake_w: Optional[socket.socket] = None

        self._lock = threading.Lock()
        self._running = False
        self._thread: Optional[threading.Thread] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self):
        with self._lock:
            if self._running:
                return
            self._selector = selectors.DefaultSelector()
            self._wake_r, self._wake_w = socket.socketpair()
            self._wake_r.setblocking(False)
            self._wake_w.setblocking(False)
            self._selector.register(self._wake_r, selectors.EVENT_READ, None)
            self._running = True

        self._thread = threading.Thread(target=self._run, name="keep-alive", daemon=True)
        self._thread.start()
        logger.debug(f"Keep-alive watcher started (idle timeout {self.idle_timeout}s)")

    def stop(self, timeout: float = 2.0):
        """Stop the watcher thread and close every parked connection."""
        with self._lock:
            if not self._running:
                return
            self._running = False

        self._wake()
        if self._thread is not None:
            self._thread.join(timeout=timeout)

        closed = self._close_all()
        self._selector.close()
        self._wake_r.close()
        self._wake_w.close()
        logger.debug(f"Keep-alive watcher stopped, closed {closed} idle connections")

    # =========================================================================
    # PARKING
    # =========================================================================

    def watch(self, conn: Connection):
        """
        Park `conn` until its next request arrives. Safe from any thread.

        After stop() the connection is closed instead.
        """
        with self._lock:
            if self._running:
                self._pending.put(conn)
                self._wake()
                return
        conn.close(linger=0)

    def _wake(self):
        try:
            self._wake_w.send(b"\0")
        except BlockingIOError:
            pass  # buffer full: a wake-up is already pending

    def _run(self):
        while self._running:
            for key, _ in self._selector.select(timeout=self._poll_interval):
                if key.data is None:
                    self._drain_wake()
                    continue
                self._selector.unregister(key.fileobj)
                self._release(key.data[0])

            self._register_pending()
            self._close_idle()

    def _drain_wake(self):
        try:
            while self._wake_r.recv(4096):
                pass
        except BlockingIOError:
            pass  # drained

    def _register_pending(self):
        while True:
            try:
                conn = self._pending.get_nowait()
            except queue.Empty:
                return

            deadline = time.monotonic() + self.idle_timeout
            try:
                self._selector.register(conn.socket, selectors.EVENT_READ, (conn, deadline))
            except (ValueError, OSError) as e:
                logger.debug(f"[{conn.id}] Can't watch connection: {e}")
                conn.close(linger=0)

    def _release(self, conn: Connection):
        try:
            self._on_ready(conn)
        except Exception:
            logger.exception(f"[{conn.id}] Failed to hand back connection")
            conn.close(linger=0)

    def _close_idle(self):
        now = time.monotonic()
        for key in list(self._selector.get_map().values()):
            if key.data is None:
                continue
            conn, deadline = key.data
            if now >= deadline:
                self._selector.unregister(key.fileobj)
                logger.debug(f"[{conn.id}] Keep-alive timeout")
                conn.close(linger=0)

    def _close_all(self) -> int:
        conns: List[Connection] = [
            key.data[0] for key in self._selector.get_map().values() if key.data is not None
        ]
        for conn in conns:
            self._selector.unregister(conn.socket)

        while True:
            try:
                conns.append(self._pending.get_nowait())
            except queue.Empty:
                break

        for conn in conns:
            conn.close(linger=0)
        return len(conns)
