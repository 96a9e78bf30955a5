"""
Unit tests for the user record and store.
"""

import threading

import pytest

from userserver.store import User, UserStore


class TestUser:
    """Tests for User decoding and encoding."""

    def test_to_dict_field_names(self):
        assert User("1001", "Komi Shouko").to_dict() == {"id": "1001", "name": "Komi Shouko"}

    def test_from_json_bytes_and_str(self):
        assert User.from_json(b'{"id": "1", "name": "a"}') == User("1", "a")
        assert User.from_json('{"id": "1", "name": "a"}') == User("1", "a")

    def test_from_json_unicode(self):
        assert User.from_json('{"id": "9", "name": "Gündoğan"}'.encode()) == User("9", "Gündoğan")

    def test_missing_fields(self):
        assert User.from_dict({}) == User("", "")

    @pytest.mark.parametrize("data", [None, [], "x", 1, {"id": 1}, {"name": ["a"]}])
    def test_wrong_shape(self, data):
        with pytest.raises(ValueError):
            User.from_dict(data)

    def test_keys_match_case_insensitively(self):
        assert User.from_dict({"ID": "5", "Name": "x"}) == User("5", "x")

    def test_last_case_variant_wins(self):
        assert User.from_json(b'{"id": "a", "ID": "b"}') == User("b", "")

    def test_null_field_keeps_empty(self):
        assert User.from_dict({"id": None, "name": "x"}) == User("", "x")

    def test_lone_surrogate_replaced(self):
        user = User.from_json(rb'{"id": "2001", "name": "a\ud800b"}')

        assert user == User("2001", "a\ufffdb")
        assert user.to_dict()["name"].encode("utf-8") == b"a\xef\xbf\xbdb"

    def test_surrogate_pair_kept(self):
        user = User.from_json(rb'{"id": "1", "name": "\ud83c\udfc6"}')
        assert user.name == "\U0001f3c6"

    def test_invalid_utf8(self):
        with pytest.raises(ValueError):
            User.from_json(b'{"id": "\xff"}')

    def test_frozen(self):
        user = User("1", "a")
        with pytest.raises(AttributeError):
            user.name = "b"


class TestUserStore:
    """Tests for UserStore."""

    def test_seed_is_copied(self, seed):
        store = UserStore(seed)
        seed["3"] = User("3", "c")
        assert store.get("3") is None
        assert len(store) == 2

    def test_get(self, store: UserStore):
        assert store.get("1") == User("1001", "Komi Shouko")
        assert store.get("1001") is None
        assert store.get("") is None

    def test_put_keys_by_id(self, store: UserStore):
        store.put(User("42", "x"))
        assert store.get("42") == User("42", "x")
        assert len(store) == 3

    def test_put_overwrites(self, store: UserStore):
        store.put(User("1", "replacement"))
        assert store.get("1") == User("1", "replacement")
        assert len(store) == 2

    def test_snapshot_is_a_copy(self, store: UserStore):
        snapshot = store.snapshot()
        store.put(User("42", "x"))
        assert len(snapshot) == 2
        assert len(store.snapshot()) == 3

    def test_empty(self):
        assert UserStore().snapshot() == []

    def test_concurrent_puts_all_land(self):
        """N threads each put a distinct user; all N are stored."""
        store = UserStore()
        n = 50
        barrier = threading.Barrier(n)

        def worker(i: int):
            barrier.wait()
            store.put(User(str(i), f"user-{i}"))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert len(store) == n
        assert {u.id for u in store.snapshot()} == {str(i) for i in range(n)}

    def test_snapshot_during_writes(self):
        """Readers never see a dict changing size mid-iteration."""
        store = UserStore()
        errors = []
        done = threading.Event()

        def writer():
            for i in range(500):
                store.put(User(str(i), "x"))
            done.set()

        def reader():
            while not done.is_set():
                try:
                    store.snapshot()
                except RuntimeError as e:
                    errors.append(e)

        threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []
        assert len(store) == 500
