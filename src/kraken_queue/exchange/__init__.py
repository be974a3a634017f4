__all__ = [
    "KRAKEN_COST_TABLE",
    "CostEntry",
    "CostTable",
    "HttpTransport",
    "KrakenClient",
    "NonceGenerator",
    "RetryPolicy",
    "Signer",
]

from kraken_queue.exchange.cost_table import KRAKEN_COST_TABLE, CostEntry, CostTable
from kraken_queue.exchange.kraken import KrakenClient
from kraken_queue.exchange.nonce import NonceGenerator
from kraken_queue.exchange.signing import Signer
from kraken_queue.exchange.transport import HttpTransport, RetryPolicy
