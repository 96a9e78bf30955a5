"""
=============================================================================
READER/WRITER LOCK
=============================================================================

A shared/exclusive lock for data that is read far more often than it is
written, like the user store.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    WHO MAY HOLD THE LOCK?                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Held by          │ New reader   │ New writer                      │
    │   ─────────────────┼──────────────┼──────────────                   │
    │   nobody           │ enters       │ enters                          │
    │   N readers        │ enters (*)   │ waits                           │
    │   one writer       │ waits        │ waits                           │
    │                                                                      │
    │   (*) unless a writer is already waiting: then the reader waits    │
    │       too, so a busy stream of readers can't starve writers.        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Python's threading module has Lock, RLock, Condition and Semaphore, but
no reader/writer lock. We build one on a single Condition: every state
change happens under the condition's internal mutex, and waiters are woken
with notify_all() whenever the lock becomes free.

=============================================================================
USAGE
=============================================================================

    lock = ReadWriteLock()

    with lock.read_locked():
        value = data[key]          # many threads at once

    with lock.write_locked():
        data[key] = value          # one thread, nobody reading

The context managers release on every exit path, including exceptions.

=============================================================================
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class ReadWriteLock:
    """
    Writer-preferring reader/writer lock.

    Attributes are private; inspect state through the read-only
    properties (useful in tests and debugging only, the values can
    change the moment they are returned).
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0             # Threads currently holding a shared lock
        self._writer = False          # True while a thread holds the exclusive lock
        self._writers_waiting = 0     # Writers blocked in acquire_write()

    # =========================================================================
    # SHARED (READ) SIDE
    # =========================================================================

    def acquire_read(self) -> None:
        """Block until no writer holds or is waiting for the lock."""
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers == 0:
                raise RuntimeError("release_read() called without a read lock held")
            self._readers -= 1
            if self._readers == 0:
                # Last reader out lets a waiting writer in
                self._cond.notify_all()

    # =========================================================================
    # EXCLUSIVE (WRITE) SIDE
    # =========================================================================

    def acquire_write(self) -> None:
        """Block until there are no readers and no other writer."""
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() called without the write lock held")
            self._writer = False
            self._cond.notify_all()

    # =========================================================================
    # SCOPED ACQUISITION
    # =========================================================================

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    @property
    def readers(self) -> int:
        """Number of threads currently holding the shared lock."""
        with self._cond:
            return self._readers

    @property
    def has_writer(self) -> bool:
        """True while some thread holds the exclusive lock."""
        with self._cond:
            return self._writer
