from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kraken_queue.errors import ConfigurationError

DEFAULT_TIER = 2
DEFAULT_POLL_INTERVAL_MS = 2_000


class RateLimitConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_points: int = Field(default=15, ge=0)
    decay_interval_ms: int = Field(default=3_000, gt=0)
    decay_amount: int = Field(default=1, ge=0)
    poll_interval_ms: int = Field(default=DEFAULT_POLL_INTERVAL_MS, gt=0)


# Kraken verification tiers: Starter has no private API access, so tiers
# start at 2 (Intermediate).
TIER_PRESETS: dict[int, RateLimitConfig] = {
    2: RateLimitConfig(max_points=15, decay_interval_ms=3_000, decay_amount=1),
    3: RateLimitConfig(max_points=20, decay_interval_ms=2_000, decay_amount=1),
    4: RateLimitConfig(max_points=20, decay_interval_ms=1_000, decay_amount=1),
}


def for_tier(tier: int, *, poll_interval_ms: int | None = None) -> RateLimitConfig:
    preset = TIER_PRESETS.get(tier)
    if preset is None:
        raise ConfigurationError(f"Unsupported tier level {tier}")
    if poll_interval_ms is None:
        return preset
    return _validated({**preset.model_dump(), "poll_interval_ms": poll_interval_ms})


class RateLimitFile(BaseModel):
    tier: Optional[int] = None
    max_points: Optional[int] = None
    decay_interval_ms: Optional[int] = None
    decay_amount: Optional[int] = None
    poll_interval_ms: Optional[int] = None

    def resolve(self) -> RateLimitConfig:
        base = for_tier(self.tier if self.tier is not None else DEFAULT_TIER)
        overrides = self.model_dump(exclude={"tier"}, exclude_none=True)
        return _validated({**base.model_dump(), **overrides})


def _validated(raw: dict[str, Any]) -> RateLimitConfig:
    try:
        return RateLimitConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"invalid rate limit config: {e}") from e


def load_rate_limit_config(path: Path) -> RateLimitConfig:
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    section = raw.get("rate_limit", raw)
    try:
        parsed = RateLimitFile.model_validate(section)
    except ValidationError as e:
        raise ConfigurationError(f"invalid rate limit config: {e}") from e
    return parsed.resolve()
