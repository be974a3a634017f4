from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass

from kraken_queue.config.rate_limit import RateLimitConfig
from kraken_queue.errors import ConfigurationError
from kraken_queue.events import EVENT_ADMIT, EVENT_ENQUEUE, EventSink, guard_sink

logger = logging.getLogger("kraken_queue.queue")


@dataclass
class QueuedCall:
    cost: int
    signal: asyncio.Future[None]


class WeightedAdmissionQueue:
    """Admits calls in FIFO order against a decaying point budget.

    Two background tasks run while the queue is started: one lowers the
    consumed points by ``decay_amount`` every ``decay_interval_ms``, the other
    checks the head of the queue every ``poll_interval_ms`` and admits it if
    the remaining budget covers its cost. At most one call is admitted per
    poll, and a head that does not fit blocks everything behind it.

    ``stop()`` halts both tasks but leaves queued calls pending.
    """

    def __init__(self, config: RateLimitConfig, *, sink: EventSink | None = None) -> None:
        self._config = config
        self._sink = guard_sink(sink)
        self._points = 0
        self._pending: deque[QueuedCall] = deque()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    @property
    def current_points(self) -> int:
        return self._points

    @property
    def available_points(self) -> int:
        return self._config.max_points - self._points

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def enqueue(self, cost: int) -> asyncio.Future[None]:
        if cost < 0:
            raise ConfigurationError(f"cost must be >= 0, got {cost}")
        if cost > self._config.max_points:
            raise ConfigurationError(
                f"cost {cost} exceeds max_points {self._config.max_points}; "
                "the call could never be admitted"
            )
        signal: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._pending.append(QueuedCall(cost=cost, signal=signal))
        logger.debug("queued", extra={"cost": cost, "pending": len(self._pending)})
        self._sink.emit(EVENT_ENQUEUE, {"cost": cost, "pending": len(self._pending)})
        return signal

    async def wait_for(self, cost: int) -> None:
        signal = self.enqueue(cost)
        # Shielded: a caller giving up does not withdraw its entry.
        await asyncio.shield(signal)

    def cancel(self, signal: asyncio.Future[None]) -> bool:
        """Withdraw a call that has not been admitted yet.

        Returns False if the call is unknown or was already admitted.
        """
        for call in self._pending:
            if call.signal is signal:
                self._pending.remove(call)
                signal.cancel()
                return True
        return False

    def decay_once(self) -> None:
        new_points = max(0, self._points - self._config.decay_amount)
        if new_points != self._points:
            logger.debug("decay", extra={"points": new_points})
        self._points = new_points

    def admit_once(self) -> bool:
        if not self._pending:
            return False
        head = self._pending[0]
        if self.available_points < head.cost:
            return False
        self._pending.popleft()
        self._points += head.cost
        if not head.signal.done():
            head.signal.set_result(None)
        logger.debug(
            "admitted",
            extra={"cost": head.cost, "points": self._points, "pending": len(self._pending)},
        )
        self._sink.emit(
            EVENT_ADMIT,
            {"cost": head.cost, "points": self._points, "pending": len(self._pending)},
        )
        return True

    def start(self) -> None:
        if self._tasks:
            return
        logger.debug("queue_started", extra={"points": self._points})
        self._tasks = [
            asyncio.create_task(self._decay_loop(), name="kraken-queue-decay"),
            asyncio.create_task(self._admission_loop(), name="kraken-queue-admission"),
        ]

    def stop(self) -> None:
        if not self._tasks:
            return
        logger.debug("queue_stopped", extra={"pending": len(self._pending)})
        for task in self._tasks:
            task.cancel()
        self._tasks = []

    async def aclose(self) -> None:
        tasks = list(self._tasks)
        self.stop()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _decay_loop(self) -> None:
        interval_s = self._config.decay_interval_ms / 1000
        while True:
            await asyncio.sleep(interval_s)
            self.decay_once()

    async def _admission_loop(self) -> None:
        interval_s = self._config.poll_interval_ms / 1000
        while True:
            self.admit_once()
            await asyncio.sleep(interval_s)
