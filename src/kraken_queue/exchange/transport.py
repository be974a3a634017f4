from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

import httpx

from kraken_queue.errors import NetworkFailure, ResponseFormatError
from kraken_queue.events import EVENT_RETRY, EVENT_SEND_ATTEMPT, EventSink, guard_sink

logger = logging.getLogger("kraken_queue.client")

_DEFAULT_USER_AGENT = "kraken-queue Python API Client"
_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

RetryPredicate = Callable[[Exception], bool]


def is_network_error(error: Exception) -> bool:
    return isinstance(error, (httpx.TimeoutException, httpx.TransportError))


def never_retry(error: Exception) -> bool:
    return False


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    delay_seconds: float = 5.0
    should_retry: RetryPredicate = is_network_error

    @classmethod
    def single_attempt(cls) -> RetryPolicy:
        return cls(max_attempts=1, delay_seconds=0.0, should_retry=never_retry)

    def allows_another(self, *, attempt: int, error: Exception) -> bool:
        return attempt < self.max_attempts and self.should_retry(error)


class HttpTransport:
    """POSTs form bodies and returns raw response bytes.

    Only failures to complete the exchange are candidates for retry; any
    received response is returned to the caller whatever its status.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 5.0,
        user_agent: str = _DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
        sink: EventSink | None = None,
    ) -> None:
        self._sink = guard_sink(sink)
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(
        self,
        path: str,
        *,
        headers: Mapping[str, str],
        body: str,
        policy: RetryPolicy,
    ) -> bytes:
        request_headers = {"Content-Type": _FORM_CONTENT_TYPE, **headers}
        attempt = 0
        while True:
            attempt += 1
            self._sink.emit(EVENT_SEND_ATTEMPT, {"path": path, "attempt": attempt})
            try:
                response = await self._client.post(
                    path,
                    content=body.encode("utf-8"),
                    headers=request_headers,
                )
            except (httpx.TimeoutException, httpx.TransportError) as e:
                if not policy.allows_another(attempt=attempt, error=e):
                    raise NetworkFailure(
                        f"request to {path} failed: {type(e).__name__}: {e}",
                        attempts=attempt,
                    ) from e
                logger.warning(
                    "request_retry",
                    extra={"path": path, "attempt": attempt, "error": type(e).__name__},
                )
                self._sink.emit(
                    EVENT_RETRY,
                    {"path": path, "attempt": attempt, "error": type(e).__name__},
                )
                await asyncio.sleep(policy.delay_seconds)
                continue
            except httpx.DecodingError as e:
                # A response arrived, so this attempt is final.
                raise ResponseFormatError(f"{type(e).__name__}: {e}") from e
            except httpx.RequestError as e:
                raise NetworkFailure(
                    f"request to {path} failed: {type(e).__name__}: {e}",
                    attempts=attempt,
                ) from e
            return response.content
