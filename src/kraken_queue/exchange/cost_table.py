from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from kraken_queue.errors import ConfigurationError, UnknownMethodError
from kraken_queue.types import MethodCategory

_DEFAULT_COST = 1


@dataclass(frozen=True)
class CostEntry:
    method: str
    category: MethodCategory
    cost: int = _DEFAULT_COST
    retryable: bool = True


class CostTable:
    """Static lookup of remote methods: category, point cost, retry flag."""

    def __init__(self, entries: Iterable[CostEntry]) -> None:
        table: dict[str, CostEntry] = {}
        for entry in entries:
            if entry.method in table:
                raise ConfigurationError(f"duplicate cost table entry: {entry.method}")
            if entry.cost < 0:
                raise ConfigurationError(
                    f"cost must be >= 0: method={entry.method} cost={entry.cost}"
                )
            table[entry.method] = entry
        self._entries = table

    def __contains__(self, method: object) -> bool:
        return method in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CostEntry]:
        return iter(self._entries.values())

    def get(self, method: str) -> CostEntry | None:
        return self._entries.get(method)

    def classify(self, method: str) -> MethodCategory:
        entry = self._entries.get(method)
        if entry is None:
            raise UnknownMethodError(method)
        return entry.category

    def cost_of(self, method: str) -> int:
        entry = self._entries.get(method)
        return entry.cost if entry is not None else _DEFAULT_COST

    def is_retryable(self, method: str) -> bool:
        entry = self._entries.get(method)
        return entry.retryable if entry is not None else True

    def methods(self, category: MethodCategory) -> list[str]:
        return [e.method for e in self._entries.values() if e.category == category]


_PUBLIC = ("Time", "Assets", "AssetPairs", "Ticker", "Depth", "Trades", "Spread", "OHLC")
_PRIVATE = (
    "Balance",
    "TradeBalance",
    "OpenOrders",
    "ClosedOrders",
    "QueryOrders",
    "TradesHistory",
    "QueryTrades",
    "OpenPositions",
    "Ledgers",
    "QueryLedgers",
    "TradeVolume",
    "AddOrder",
    "CancelOrder",
    "DepositMethods",
    "DepositAddresses",
    "DepositStatus",
    "WithdrawInfo",
    "Withdraw",
    "WithdrawStatus",
    "WithdrawCancel",
)
# Ledger/trade history queries are charged double; order placement and
# cancellation are tracked by a separate matching-engine counter.
_COSTS = {
    "TradesHistory": 2,
    "QueryTrades": 2,
    "Ledgers": 2,
    "QueryLedgers": 2,
    "TradeVolume": 2,
    "OHLC": 2,
    "AddOrder": 0,
    "CancelOrder": 0,
}
# Side-effecting calls: resending after an ambiguous network failure could
# execute them twice.
NON_RETRYABLE = frozenset({"AddOrder", "CancelOrder", "Withdraw", "WithdrawCancel"})


def _build_default_table() -> CostTable:
    entries: list[CostEntry] = []
    for category, names in (("public", _PUBLIC), ("private", _PRIVATE)):
        for name in names:
            entries.append(
                CostEntry(
                    method=name,
                    category=category,  # type: ignore[arg-type]
                    cost=_COSTS.get(name, _DEFAULT_COST),
                    retryable=name not in NON_RETRYABLE,
                )
            )
    return CostTable(entries)


KRAKEN_COST_TABLE = _build_default_table()
