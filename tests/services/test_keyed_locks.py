import threading
import time

from services.keyed_locks import KeyedLocks


def test_hold_releases_entry_after_use() -> None:
    locks = KeyedLocks()

    with locks.hold("a"):
        assert len(locks) == 1

    assert len(locks) == 0


def test_hold_serializes_same_key() -> None:
    locks = KeyedLocks()
    events: list[str] = []

    def second() -> None:
        with locks.hold("a"):
            events.append("second")

    with locks.hold("a"):
        thread = threading.Thread(target=second)
        thread.start()
        time.sleep(0.05)
        events.append("first")
    thread.join(timeout=5)

    assert events == ["first", "second"]


def test_different_keys_do_not_block() -> None:
    locks = KeyedLocks()

    with locks.hold("a"):
        with locks.hold("b"):
            assert len(locks) == 2


def test_single_flight_returns_computed_value() -> None:
    assert KeyedLocks().single_flight("k", lambda: 42) == 42
