from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal
from types import TracebackType
from typing import Any, Literal

import httpx
from pydantic import ValidationError

from kraken_queue.config.rate_limit import RateLimitConfig, for_tier
from kraken_queue.errors import ConfigurationError, KrakenError, RemoteError, ResponseFormatError
from kraken_queue.events import (
    EVENT_FAILURE,
    EVENT_SIGN,
    EVENT_SUCCESS,
    EventSink,
    guard_sink,
)
from kraken_queue.exchange.cost_table import KRAKEN_COST_TABLE, CostTable
from kraken_queue.exchange.nonce import NonceGenerator
from kraken_queue.exchange.signing import Signer, encode_params, ordered_items
from kraken_queue.exchange.transport import HttpTransport, RetryPolicy, is_network_error
from kraken_queue.ratelimit.queue import WeightedAdmissionQueue
from kraken_queue.types import RequestEnvelope, ResponseEnvelope

logger = logging.getLogger("kraken_queue.client")

_API_VERSION = "0"
_DEFAULT_TIMEOUT_SECONDS = 5.0
_DEFAULT_MAX_ATTEMPTS = 5
_DEFAULT_RETRY_DELAY_SECONDS = 5.0

Side = Literal["buy", "sell"]


def parse_response(body: bytes) -> Any:
    try:
        envelope = ResponseEnvelope.model_validate_json(body)
    except ValidationError as e:
        raise ResponseFormatError(str(e), body=body) from e
    code = envelope.hard_error()
    if code is not None:
        raise RemoteError(code)
    for notice in envelope.notices():
        logger.warning("remote_notice", extra={"code": notice})
    return envelope.result


class KrakenClient:
    def __init__(
        self,
        *,
        api_key: str = "",
        api_secret: str = "",
        base_url: str = "https://api.kraken.com",
        rate_limit: RateLimitConfig | None = None,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
        retry_delay_seconds: float = _DEFAULT_RETRY_DELAY_SECONDS,
        cost_table: CostTable = KRAKEN_COST_TABLE,
        nonce: NonceGenerator | None = None,
        sink: EventSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        # Decoded eagerly so a bad secret fails before the first request.
        self._signer = Signer(api_secret) if api_secret else None
        self._cost_table = cost_table
        self._nonce = nonce or NonceGenerator()
        self._sink = guard_sink(sink)
        self._max_attempts = int(max(1, max_attempts))
        self._retry_delay_seconds = float(max(0.0, retry_delay_seconds))
        self._queue = WeightedAdmissionQueue(rate_limit or for_tier(2), sink=self._sink)
        self._transport = HttpTransport(
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            transport=transport,
            sink=self._sink,
        )

    @property
    def queue(self) -> WeightedAdmissionQueue:
        return self._queue

    @property
    def cost_table(self) -> CostTable:
        return self._cost_table

    def start(self) -> None:
        self._queue.start()

    async def aclose(self) -> None:
        await self._queue.aclose()
        await self._transport.aclose()

    async def __aenter__(self) -> KrakenClient:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def api(self, method: str, params: Mapping[str, Any] | None = None) -> Any:
        category = self._cost_table.classify(method)
        logger.info("api_call", extra={"method": method})
        if category == "public":
            return await self.public_method(method, params)
        return await self.private_method(method, params)

    async def public_method(self, method: str, params: Mapping[str, Any] | None = None) -> Any:
        await self._admit(method)
        envelope = self._build_public(method, params or {})
        return await self._dispatch(method, envelope)

    async def private_method(self, method: str, params: Mapping[str, Any] | None = None) -> Any:
        if self._signer is None:
            raise ConfigurationError("KRAKEN_API_SECRET is required for private endpoints")
        await self._admit(method)
        envelope = self._build_private(self._signer, method, params or {})
        return await self._dispatch(method, envelope)

    async def server_time(self) -> int:
        data = await self.api("Time")
        return int(data["unixtime"])

    async def assets(self, *, asset: str | None = None) -> dict[str, Any]:
        return await self.api("Assets", {"asset": asset})

    async def ticker(self, *, pair: str) -> dict[str, Any]:
        return await self.api("Ticker", {"pair": pair})

    async def balance(self) -> dict[str, Decimal]:
        data = await self.api("Balance")
        return {asset: Decimal(str(amount)) for asset, amount in (data or {}).items()}

    async def open_orders(self, *, trades: bool = False) -> dict[str, Any]:
        return await self.api("OpenOrders", {"trades": trades or None})

    async def add_order(
        self,
        *,
        pair: str,
        side: Side,
        ordertype: str,
        volume: Decimal,
        price: Decimal | None = None,
        validate: bool = False,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "pair": pair,
            "type": side,
            "ordertype": ordertype,
            "volume": volume,
            "price": price,
        }
        if validate:
            params["validate"] = True
        return await self.api("AddOrder", params)

    async def cancel_order(self, *, txid: str) -> dict[str, Any]:
        return await self.api("CancelOrder", {"txid": txid})

    async def _admit(self, method: str) -> None:
        # Calls made outside `async with` start the queue on first use.
        self._queue.start()
        await self._queue.wait_for(self._cost_table.cost_of(method))

    def _build_public(self, method: str, params: Mapping[str, Any]) -> RequestEnvelope:
        path = f"/{_API_VERSION}/public/{method}"
        items = tuple(ordered_items(params))
        return RequestEnvelope(path=path, params=items, post_data=encode_params(items))

    def _build_private(
        self,
        signer: Signer,
        method: str,
        params: Mapping[str, Any],
    ) -> RequestEnvelope:
        path = f"/{_API_VERSION}/private/{method}"
        items = [(k, v) for k, v in ordered_items(params) if k != "nonce"]
        nonce = self._nonce.next()
        items.append(("nonce", str(nonce)))
        signature = signer.sign(path, items, nonce)
        self._sink.emit(EVENT_SIGN, {"method": method, "nonce": nonce})
        return RequestEnvelope(
            path=path,
            params=tuple(items),
            post_data=encode_params(items),
            signature=signature,
        )

    def _retry_policy(self, method: str) -> RetryPolicy:
        if not self._cost_table.is_retryable(method):
            return RetryPolicy.single_attempt()
        return RetryPolicy(
            max_attempts=self._max_attempts,
            delay_seconds=self._retry_delay_seconds,
            should_retry=is_network_error,
        )

    async def _dispatch(
        self,
        method: str,
        envelope: RequestEnvelope,
    ) -> Any:
        headers: dict[str, str] = {}
        if envelope.signed:
            headers = {"API-Key": self._api_key, "API-Sign": envelope.signature or ""}
        try:
            body = await self._transport.send(
                envelope.path,
                headers=headers,
                body=envelope.post_data,
                policy=self._retry_policy(method),
            )
            result = parse_response(body)
        except KrakenError as e:
            self._sink.emit(EVENT_FAILURE, {"method": method, "error": type(e).__name__})
            raise
        self._sink.emit(EVENT_SUCCESS, {"method": method})
        return result
