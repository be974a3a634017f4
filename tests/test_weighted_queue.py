import asyncio
import random

import pytest

from kraken_queue.config.rate_limit import RateLimitConfig
from kraken_queue.errors import ConfigurationError
from kraken_queue.ratelimit.queue import WeightedAdmissionQueue


def _config(**overrides: int) -> RateLimitConfig:
    values = {"max_points": 3, "decay_interval_ms": 1000, "decay_amount": 1, "poll_interval_ms": 1000}
    values.update(overrides)
    return RateLimitConfig(**values)


class _RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, object]]] = []

    def emit(self, event: str, fields: object) -> None:
        self.events.append((event, dict(fields)))  # type: ignore[call-overload]


def test_cost_above_max_points_rejected_before_enqueue() -> None:
    async def _run() -> None:
        queue = WeightedAdmissionQueue(_config(max_points=3))
        with pytest.raises(ConfigurationError):
            queue.enqueue(4)
        with pytest.raises(ConfigurationError):
            queue.enqueue(-1)
        assert queue.pending == 0

    asyncio.run(_run())


def test_admits_one_call_per_tick_in_fifo_order() -> None:
    async def _run() -> None:
        queue = WeightedAdmissionQueue(_config(max_points=5))
        signals = [queue.enqueue(1) for _ in range(3)]

        assert queue.admit_once() is True
        assert [s.done() for s in signals] == [True, False, False]
        assert queue.current_points == 1

        assert queue.admit_once() is True
        assert queue.admit_once() is True
        assert queue.admit_once() is False
        assert all(s.done() for s in signals)
        assert queue.current_points == 3

    asyncio.run(_run())


def test_expensive_head_blocks_cheaper_calls_behind_it() -> None:
    async def _run() -> None:
        queue = WeightedAdmissionQueue(_config(max_points=3, decay_amount=1))
        first = queue.enqueue(2)
        big = queue.enqueue(3)
        small = queue.enqueue(1)

        assert queue.admit_once() is True
        assert first.done()
        # 1 point left: the head needs 3, so the 1-point call waits too.
        assert queue.admit_once() is False
        assert not big.done() and not small.done()

        queue.decay_once()
        assert queue.admit_once() is False
        queue.decay_once()
        assert queue.current_points == 0
        assert queue.admit_once() is True
        assert big.done() and not small.done()

    asyncio.run(_run())


def test_decay_never_goes_below_zero() -> None:
    async def _run() -> None:
        queue = WeightedAdmissionQueue(_config(max_points=3, decay_amount=2))
        queue.enqueue(1)
        queue.admit_once()
        queue.decay_once()
        assert queue.current_points == 0
        queue.decay_once()
        assert queue.current_points == 0

    asyncio.run(_run())


def test_zero_cost_call_admitted_on_full_budget() -> None:
    async def _run() -> None:
        queue = WeightedAdmissionQueue(_config(max_points=2))
        queue.enqueue(2)
        free = queue.enqueue(0)
        queue.admit_once()
        assert queue.available_points == 0
        assert queue.admit_once() is True
        assert free.done()
        assert queue.current_points == 2

    asyncio.run(_run())


def test_random_costs_keep_order_and_budget() -> None:
    async def _run() -> None:
        rng = random.Random(7)
        queue = WeightedAdmissionQueue(_config(max_points=10, decay_amount=3))
        costs = [rng.randint(0, 10) for _ in range(200)]
        admitted: list[int] = []
        for index, cost in enumerate(costs):
            signal = queue.enqueue(cost)
            signal.add_done_callback(lambda _f, i=index: admitted.append(i))

        for _ in range(10_000):
            if queue.pending == 0:
                break
            queue.admit_once()
            assert 0 <= queue.current_points <= 10
            if rng.random() < 0.5:
                queue.decay_once()
                assert queue.current_points >= 0
            # Let done callbacks run.
            await asyncio.sleep(0)

        await asyncio.sleep(0)
        assert queue.pending == 0
        assert admitted == list(range(len(costs)))

    asyncio.run(_run())


def test_background_tasks_admit_waiting_calls() -> None:
    async def _run() -> list[int]:
        queue = WeightedAdmissionQueue(
            _config(max_points=2, decay_interval_ms=5, decay_amount=2, poll_interval_ms=1)
        )
        order: list[int] = []

        async def _caller(index: int) -> None:
            await queue.wait_for(1)
            order.append(index)

        queue.start()
        try:
            await asyncio.wait_for(asyncio.gather(*(_caller(i) for i in range(6))), timeout=5)
        finally:
            await queue.aclose()
        assert queue.running is False
        return order

    assert asyncio.run(_run()) == list(range(6))


def test_stop_leaves_pending_calls_unresolved() -> None:
    async def _run() -> None:
        queue = WeightedAdmissionQueue(
            _config(max_points=1, decay_interval_ms=60_000, poll_interval_ms=1)
        )
        queue.start()
        queue.start()
        first = queue.enqueue(1)
        second = queue.enqueue(1)
        await asyncio.wait_for(asyncio.shield(first), timeout=5)
        await queue.aclose()

        await asyncio.sleep(0.01)
        assert not second.done()
        assert queue.pending == 1

    asyncio.run(_run())


def test_cancelled_waiter_keeps_its_queue_entry() -> None:
    async def _run() -> None:
        queue = WeightedAdmissionQueue(_config(max_points=1))
        queue.enqueue(1)
        queue.admit_once()

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(queue.wait_for(1), timeout=0.01)
        assert queue.pending == 1

        queue.decay_once()
        assert queue.admit_once() is True
        assert queue.current_points == 1

    asyncio.run(_run())


def test_explicit_cancel_removes_pending_call() -> None:
    async def _run() -> None:
        queue = WeightedAdmissionQueue(_config(max_points=1))
        head = queue.enqueue(1)
        tail = queue.enqueue(1)

        assert queue.cancel(tail) is True
        assert tail.cancelled()
        assert queue.pending == 1
        assert queue.cancel(tail) is False

        queue.admit_once()
        assert queue.cancel(head) is False

    asyncio.run(_run())


def test_events_emitted_for_enqueue_and_admit() -> None:
    async def _run() -> _RecordingSink:
        sink = _RecordingSink()
        queue = WeightedAdmissionQueue(_config(max_points=3), sink=sink)
        queue.enqueue(2)
        queue.admit_once()
        return sink

    sink = asyncio.run(_run())
    assert sink.events == [
        ("enqueue", {"cost": 2, "pending": 1}),
        ("admit", {"cost": 2, "points": 2, "pending": 0}),
    ]


def test_failing_sink_does_not_stop_admission() -> None:
    class _BrokenSink:
        def emit(self, event: str, fields: object) -> None:
            if event == "admit":
                raise RuntimeError("sink down")

    async def _run() -> None:
        queue = WeightedAdmissionQueue(
            _config(max_points=5, decay_interval_ms=1000, poll_interval_ms=1),
            sink=_BrokenSink(),
        )
        queue.start()
        try:
            first = queue.enqueue(1)
            second = queue.enqueue(1)
            await asyncio.wait_for(asyncio.gather(first, second), timeout=5)
            assert queue.running is True
            assert queue.pending == 0
        finally:
            await queue.aclose()

    asyncio.run(_run())
