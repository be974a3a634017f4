__all__ = ["QueuedCall", "WeightedAdmissionQueue"]

from kraken_queue.ratelimit.queue import QueuedCall, WeightedAdmissionQueue
