"""
Transport and concurrency building blocks.

    socket_server.py   TCP accept loop
    connection.py      per-client buffered reads and writes
    thread_pool.py     bounded worker pool
    keep_alive.py      parks idle keep-alive connections off the pool
    rwlock.py          reader/writer lock used by the store
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLarge
from .thread_pool import ThreadPool
from .keep_alive import KeepAliveWatcher
from .rwlock import ReadWriteLock

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLarge",
    "ThreadPool",
    "KeepAliveWatcher",
    "ReadWriteLock",
]
