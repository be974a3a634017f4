from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

EVENT_ENQUEUE = "enqueue"
EVENT_ADMIT = "admit"
EVENT_SIGN = "sign"
EVENT_SEND_ATTEMPT = "send_attempt"
EVENT_RETRY = "retry"
EVENT_SUCCESS = "success"
EVENT_FAILURE = "failure"

logger = logging.getLogger("kraken_queue.events")


class EventSink(Protocol):
    def emit(self, event: str, fields: Mapping[str, Any]) -> None: ...


class NullEventSink:
    def emit(self, event: str, fields: Mapping[str, Any]) -> None:
        return


class GuardedEventSink:
    """Forwards to another sink; a failing sink is logged, never propagated."""

    def __init__(self, sink: EventSink) -> None:
        self._sink = sink

    def emit(self, event: str, fields: Mapping[str, Any]) -> None:
        try:
            self._sink.emit(event, fields)
        except Exception:
            logger.exception("event_sink_failed", extra={"event": event})


def guard_sink(sink: EventSink | None) -> EventSink:
    if sink is None:
        return NullEventSink()
    if isinstance(sink, (NullEventSink, GuardedEventSink)):
        return sink
    return GuardedEventSink(sink)


class LoggingEventSink:
    """Writes pipeline events to a logger, one record per event.

    Fields travel as ``extra`` so ``JsonFormatter`` can promote them.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        level: int = logging.DEBUG,
    ) -> None:
        self._logger = logger or logging.getLogger("kraken_queue.events")
        self._level = level

    def emit(self, event: str, fields: Mapping[str, Any]) -> None:
        level = logging.WARNING if event == EVENT_FAILURE else self._level
        self._logger.log(level, event, extra={"event": event, **fields})
