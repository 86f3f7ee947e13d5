"""In-memory holder for the derived vault key.

The key lives in a single bytearray slot owned by KeySession. Readers get an
immutable copy for the duration of one operation; lock() overwrites the
buffer with zeros before dropping it.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Union

from .crypto import zero_buffer
from .errors import Locked


class ReadWriteLock:
    """
    Many concurrent readers or one exclusive writer.

    Writers take priority: once a writer is waiting, new readers queue
    behind it, so lock() cannot be starved by a steady stream of reads.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class KeySession:
    """
    Exclusive owner of the decrypted vault key.

    States: absent (locked) or present (unlocked). Each VaultManager owns
    its own session, so independent vaults never share key material.
    """

    def __init__(self):
        self._key: Optional[bytearray] = None
        self._lock = ReadWriteLock()

    def install(self, key: Union[bytes, bytearray]) -> None:
        """Store a copy of key, wiping whatever key was there before."""
        fresh = bytearray(key)
        with self._lock.write():
            old, self._key = self._key, fresh
        if old is not None:
            zero_buffer(old)

    def lock(self) -> None:
        """Wipe and drop the key. Locking a locked session is a no-op."""
        with self._lock.write():
            old, self._key = self._key, None
        if old is not None:
            zero_buffer(old)

    def is_unlocked(self) -> bool:
        with self._lock.read():
            return self._key is not None

    def current_key(self) -> bytes:
        """
        Return a copy of the key for one operation.

        Raises:
            Locked: No key is loaded.
        """
        with self._lock.read():
            if self._key is None:
                raise Locked()
            return bytes(self._key)
