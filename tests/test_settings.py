import pytest

from kraken_queue.errors import ConfigurationError
from kraken_queue.settings import Settings


def test_rate_limit_resolves_tier_preset() -> None:
    settings = Settings(KRAKEN_TIER=3, KRAKEN_POLL_INTERVAL_MS=250)
    cfg = settings.rate_limit()
    assert cfg.max_points == 20
    assert cfg.decay_interval_ms == 2000
    assert cfg.decay_amount == 1
    assert cfg.poll_interval_ms == 250


def test_unsupported_tier_is_configuration_error() -> None:
    settings = Settings(KRAKEN_TIER=1)
    with pytest.raises(ConfigurationError):
        settings.rate_limit()


def test_has_credentials_requires_key_and_secret() -> None:
    assert Settings(KRAKEN_API_KEY="k", KRAKEN_API_SECRET="").has_credentials() is False
    assert Settings(KRAKEN_API_KEY="k", KRAKEN_API_SECRET="c2VjcmV0").has_credentials() is True


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KRAKEN_MAX_ATTEMPTS", "2")
    monkeypatch.setenv("KRAKEN_RETRY_DELAY_SECONDS", "0.5")
    settings = Settings()
    assert settings.max_attempts == 2
    assert settings.retry_delay_seconds == 0.5
