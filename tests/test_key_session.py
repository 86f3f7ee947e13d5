"""Tests for KeySession: key slot, wipe on lock, reader/writer locking."""

import threading
import time

import pytest

from keysafe.vault.errors import Locked
from keysafe.vault.session import KeySession, ReadWriteLock


class TestKeySession:

    def test_starts_locked(self):
        session = KeySession()
        assert session.is_unlocked() is False
        with pytest.raises(Locked):
            session.current_key()

    def test_install_then_read(self):
        session = KeySession()
        session.install(b"k" * 32)
        assert session.is_unlocked() is True
        assert session.current_key() == b"k" * 32

    def test_current_key_is_a_copy(self):
        session = KeySession()
        session.install(b"k" * 32)
        key = session.current_key()
        assert isinstance(key, bytes)
        session.lock()
        # Borrowed copy is unaffected by the wipe
        assert key == b"k" * 32

    def test_install_copies_caller_buffer(self):
        session = KeySession()
        source = bytearray(b"a" * 32)
        session.install(source)
        source[:] = b"\x00" * 32
        assert session.current_key() == b"a" * 32

    def test_lock_zeroes_buffer(self):
        session = KeySession()
        session.install(b"k" * 32)
        slot = session._key
        session.lock()
        assert slot == bytearray(32)
        assert session._key is None

    def test_lock_is_idempotent(self):
        session = KeySession()
        session.lock()
        session.install(b"k" * 32)
        session.lock()
        session.lock()
        assert session.is_unlocked() is False

    def test_install_replaces_and_wipes_previous(self):
        session = KeySession()
        session.install(b"1" * 32)
        old_slot = session._key
        session.install(b"2" * 32)
        assert old_slot == bytearray(32)
        assert session.current_key() == b"2" * 32

    def test_sessions_are_independent(self):
        a, b = KeySession(), KeySession()
        a.install(b"a" * 32)
        assert b.is_unlocked() is False
        with pytest.raises(Locked):
            b.current_key()

    def test_concurrent_readers_and_lock(self):
        session = KeySession()
        session.install(b"k" * 32)
        errors = []
        results = []

        def reader():
            for _ in range(200):
                try:
                    results.append(session.current_key())
                except Locked:
                    results.append(None)
                except Exception as e:  # pragma: no cover - surfaced below
                    errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(8)]
        for t in threads:
            t.start()
        session.lock()
        for t in threads:
            t.join()

        assert errors == []
        # Every read saw either the whole key or no key, never a wiped buffer
        assert all(r in (b"k" * 32, None) for r in results)


class TestReadWriteLock:

    def test_readers_share(self):
        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=5)

        def reader():
            with lock.read():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        assert not any(t.is_alive() for t in threads)

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        order = []
        writer_in = threading.Event()

        def writer():
            with lock.write():
                writer_in.set()
                order.append("write-start")
                threading.Event().wait(0.05)
                order.append("write-end")

        def reader():
            writer_in.wait(timeout=5)
            with lock.read():
                order.append("read")

        w = threading.Thread(target=writer)
        r = threading.Thread(target=reader)
        w.start()
        r.start()
        w.join(timeout=5)
        r.join(timeout=5)
        assert order == ["write-start", "write-end", "read"]

    def test_waiting_writer_blocks_new_readers(self):
        lock = ReadWriteLock()
        order = []
        first_in = threading.Event()
        release_first = threading.Event()

        def first_reader():
            with lock.read():
                first_in.set()
                release_first.wait(timeout=5)
                order.append("read-1")

        def writer():
            with lock.write():
                order.append("write")

        def late_reader():
            with lock.read():
                order.append("read-2")

        r1 = threading.Thread(target=first_reader)
        r1.start()
        assert first_in.wait(timeout=5)

        w = threading.Thread(target=writer)
        w.start()
        deadline = time.monotonic() + 5
        while lock._writers_waiting == 0 and time.monotonic() < deadline:
            time.sleep(0.001)
        assert lock._writers_waiting == 1

        r2 = threading.Thread(target=late_reader)
        r2.start()
        time.sleep(0.05)
        # The late reader queues behind the pending writer
        assert order == []

        release_first.set()
        for t in (r1, w, r2):
            t.join(timeout=5)
        assert order == ["read-1", "write", "read-2"]
