__all__ = [
    "TIER_PRESETS",
    "RateLimitConfig",
    "for_tier",
    "load_rate_limit_config",
]

from kraken_queue.config.rate_limit import (
    TIER_PRESETS,
    RateLimitConfig,
    for_tier,
    load_rate_limit_config,
)
