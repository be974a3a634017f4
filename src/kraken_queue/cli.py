from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer

from kraken_queue.config.rate_limit import TIER_PRESETS, RateLimitConfig, load_rate_limit_config
from kraken_queue.errors import KrakenError
from kraken_queue.events import LoggingEventSink
from kraken_queue.exchange import KRAKEN_COST_TABLE, KrakenClient
from kraken_queue.logging_utils import configure_logging
from kraken_queue.settings import Settings

app = typer.Typer(no_args_is_help=True, add_completion=False)
logger = logging.getLogger("kraken_queue")


def _parse_params(values: list[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"expected key=value, got {raw!r}")
        params[key] = value
    return params


def _build_client(settings: Settings, rate_limit: RateLimitConfig) -> KrakenClient:
    return KrakenClient(
        api_key=settings.kraken_api_key,
        api_secret=settings.kraken_api_secret,
        base_url=settings.base_url,
        rate_limit=rate_limit,
        timeout_seconds=settings.timeout_seconds,
        max_attempts=settings.max_attempts,
        retry_delay_seconds=settings.retry_delay_seconds,
        sink=LoggingEventSink(),
    )


def _resolve_rate_limit(settings: Settings, config: Optional[Path]) -> RateLimitConfig:
    if config is None:
        return settings.rate_limit()
    if not config.exists():
        raise typer.BadParameter(f"config file not found: {config}")
    return load_rate_limit_config(config)


@app.command()
def show_config() -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    redacted = settings.model_dump()
    redacted["kraken_api_secret"] = "***" if redacted["kraken_api_secret"] else ""
    logger.info("loaded_config")
    typer.echo(redacted)


@app.command()
def tiers() -> None:
    """
    Print the rate limit presets per verification tier.
    """
    for tier, preset in sorted(TIER_PRESETS.items()):
        typer.echo({"tier": tier, **preset.model_dump()})


@app.command()
def health() -> None:
    """
    Call the public Time method and print server time.
    """
    settings = Settings()
    configure_logging(settings.log_level)

    async def _run() -> None:
        async with _build_client(settings, settings.rate_limit()) as client:
            server_time = await client.server_time()
            typer.echo({"ok": True, "server_time": server_time})

    asyncio.run(_run())


@app.command()
def call(
    method: str = typer.Argument(..., help="Remote method name, e.g. Ticker or Balance."),
    param: list[str] = typer.Option([], "--param", "-p", help="Request parameter key=value."),
    config: Optional[Path] = typer.Option(
        None,
        help="Rate limit config file (TOML). Defaults to the KRAKEN_TIER preset.",
    ),
) -> None:
    """
    Run one API call through the rate limit queue and print the result.
    """
    settings = Settings()
    configure_logging(settings.log_level)

    try:
        params = _parse_params(param)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    entry = KRAKEN_COST_TABLE.get(method)
    if entry is not None and entry.category == "private" and not settings.has_credentials():
        raise typer.BadParameter(
            f"{method} is a private method; set KRAKEN_API_KEY and KRAKEN_API_SECRET"
        )
    try:
        rate_limit = _resolve_rate_limit(settings, config)
    except KrakenError as e:
        raise typer.BadParameter(str(e)) from e

    async def _run() -> Any:
        async with _build_client(settings, rate_limit) as client:
            return await client.api(method, params)

    try:
        result = asyncio.run(_run())
    except KrakenError as e:
        typer.echo({"ok": False, "error": type(e).__name__, "message": str(e)}, err=True)
        raise typer.Exit(code=1) from e
    typer.echo(json.dumps(result, indent=2, default=str))
