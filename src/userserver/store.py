"""
=============================================================================
USER STORE
=============================================================================

The in-memory, thread-safe home of every user record.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         UserStore                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   _lock  : ReadWriteLock          _users : Dict[str, User]          │
    │                                                                      │
    │   snapshot()  ── shared lock ───► copy all values ──► List[User]    │
    │   get(key)    ── shared lock ───► dict lookup     ──► User | None   │
    │   put(user)   ── exclusive lock ► _users[user.id] = user            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

RULES
-----
- The lock and the mapping are two separate fields. Every public method
  takes the lock itself with a `with` block, so it is always released,
  even if something inside raises.
- Nothing outside this class ever sees `_users`. Readers get a fresh list
  or an immutable (frozen) User, so no caller can mutate the store behind
  the lock's back.
- Nothing slow happens under the lock. JSON encoding is the caller's job
  and runs on the copied data after the lock is released.
- put() does no validation. An empty id is a perfectly legal key (and
  will collide with every other record that has an empty id).

The initial record set is a constructor argument, so tests can build a
store from any fixture and the CLI can ship its own default roster.

=============================================================================
"""

import json
import re
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping, Optional, Union

from .core.rwlock import ReadWriteLock


logger = logging.getLogger(__name__)

# json.loads keeps unpaired "\udXXX" escapes as lone surrogates, which
# cannot be encoded as UTF-8.
_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


@dataclass(frozen=True)
class User:
    """
    A single user record.

    `id` is supplied by the client on create and is the store key.
    `name` is free text. The dataclass is frozen so a record handed out
    by the store can be shared freely between threads.
    """

    id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "User":
        """
        Build a User from decoded JSON.

        Decoding is lenient about which keys are present, strict about types:
        - the value must be a JSON object (dict), anything else is rejected
        - keys match case-insensitively ("ID", "Name"); when several keys
          match the same field, the last one wins
        - missing fields and JSON null leave the field at ""
        - other values must be strings
        - unknown keys are ignored
        - lone UTF-16 surrogates (e.g. "\\ud800") become U+FFFD, so every
          stored string can be written back out as UTF-8

        Raises:
            ValueError: If the data does not have the User shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        fields = {"id": "", "name": ""}
        for key, value in data.items():
            name = key.casefold()
            if name not in fields or value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"field {key!r} must be a string")
            fields[name] = _LONE_SURROGATE.sub("\ufffd", value)

        return cls(**fields)

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "User":
        """
        Decode a request body into a User.

        Raises:
            ValueError: For invalid UTF-8, malformed JSON or the wrong shape.
                        (json.JSONDecodeError and UnicodeDecodeError are both
                        ValueError subclasses.)
        """
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return cls.from_dict(json.loads(raw))


class UserStore:
    """
    Concurrency-safe mapping of key → User.

    Usage:
        store = UserStore({"1": User(id="1001", name="Komi Shouko")})

        store.get("1")          # User(id='1001', name='Komi Shouko')
        store.put(User("2001", "X"))
        store.snapshot()        # [User(...), User(...)]
    """

    def __init__(self, seed: Optional[Mapping[str, User]] = None):
        """
        Args:
            seed: Initial records, keyed by lookup key. The key does not
                  have to equal the record's id.
        """
        self._lock = ReadWriteLock()
        self._users: Dict[str, User] = dict(seed or {})

    def snapshot(self) -> List[User]:
        """
        Copy of every record, in no particular order.

        Holds the shared lock for the whole iteration, so a concurrent
        put() can't change the dict size mid-loop.
        """
        with self._lock.read_locked():
            return list(self._users.values())

    def get(self, key: str) -> Optional[User]:
        """Exact-match lookup. Returns None if there is no record at `key`."""
        with self._lock.read_locked():
            return self._users.get(key)

    def put(self, user: User) -> None:
        """Insert or silently overwrite the record at `user.id`."""
        with self._lock.write_locked():
            replaced = user.id in self._users
            self._users[user.id] = user
        logger.debug(f"{'Replaced' if replaced else 'Stored'} user {user.id!r}")

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._users)
