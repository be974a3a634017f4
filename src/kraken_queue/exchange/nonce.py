from __future__ import annotations

import threading
import time


class NonceGenerator:
    """Strictly increasing nonce source for private calls.

    Seeded once from wall-clock microseconds so nonces stay ahead of those
    issued by earlier processes using the same key.
    """

    def __init__(self, start: int | None = None) -> None:
        seed = int(time.time() * 1_000_000) if start is None else int(start)
        self._next = seed
        self._lock = threading.Lock()

    @property
    def last(self) -> int:
        with self._lock:
            return self._next - 1

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
        return value
