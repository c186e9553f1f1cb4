"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from hf_monitor.config import (
    AppConfig,
    LiqwidConfig,
    MonitorConfig,
    NotionConfig,
    StateConfig,
    TelegramConfig,
    ThresholdsConfig,
)
from hf_monitor.models import LoanSnapshot

# 2024-01-01T00:00:00Z
START_MS = 1_704_067_200_000


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Controllable epoch-millis clock."""

    def __init__(self, start_ms: int = START_MS) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, *, minutes: float = 0, hours: float = 0) -> None:
        self.now += int((minutes * 60 + hours * 3600) * 1000)


class InMemoryStore:
    """KeyValueStore double with TTL expiry driven by a FakeClock."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self.values: dict[str, str] = {}
        self.metadata: dict[str, str | None] = {}
        self.ttls: dict[str, int | None] = {}
        self._expires_at: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and self._clock() >= expires_at:
            self.values.pop(key, None)
            self._expires_at.pop(key, None)
        return self.values.get(key)

    async def put(
        self,
        key: str,
        value: str,
        expiration_ttl: int | None = None,
        metadata: str | None = None,
    ) -> None:
        self.values[key] = value
        self.metadata[key] = metadata
        self.ttls[key] = expiration_ttl
        if expiration_ttl is None:
            self._expires_at.pop(key, None)
        else:
            self._expires_at[key] = self._clock() + expiration_ttl * 1000


class FakeLoanSource:
    """LoanSource double returning a fixed set of loans."""

    def __init__(self, loans: list[LoanSnapshot] | None = None) -> None:
        self.loans = list(loans or [])
        self.error: Exception | None = None
        self.calls: list[str] = []

    async def fetch_loans(self, payment_address: str) -> list[LoanSnapshot]:
        self.calls.append(payment_address)
        if self.error is not None:
            raise self.error
        return list(self.loans)

    async def fetch_market_prices(self, symbols: list[str]):
        raise NotImplementedError


class RecordingNotifier:
    """Notifier double that records every message."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.sent: list[tuple[str, str]] = []

    async def send(self, level, message: str) -> bool:
        self.sent.append((level.value, message))
        return self.result

    def levels(self) -> list[str]:
        return [level for level, _ in self.sent]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> InMemoryStore:
    return InMemoryStore(clock)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def sample_thresholds() -> ThresholdsConfig:
    return ThresholdsConfig(hf_warn=1.7, hf_crit=1.5)


@pytest.fixture()
def sample_app_config(sample_thresholds: ThresholdsConfig) -> AppConfig:
    return AppConfig(
        monitor=MonitorConfig(
            payment_address="cf9ae333b77108aa162b8ad736789988931a0b5a79d57f8b6f816fb8",
            check_interval_minutes=2,
            price_update_interval_minutes=60,
            error_alert_cooldown_hours=12,
            thresholds=sample_thresholds,
        ),
        liqwid=LiqwidConfig(graphql_url="https://liqwid.example.com/graphql"),
        state=StateConfig(redis_url=""),
        telegram=TelegramConfig(
            enabled=True,
            alert_bot_token="fake-alert-token",
            log_bot_token="fake-log-token",
            chat_id="12345",
        ),
        notion=NotionConfig(enabled=False),
    )


@pytest.fixture()
def critical_loan() -> LoanSnapshot:
    return LoanSnapshot(id="L1", health_factor=1.4, asset_symbol="ADA")


@pytest.fixture()
def warning_loan() -> LoanSnapshot:
    return LoanSnapshot(id="L2", health_factor=1.6, asset_symbol="DJED")


@pytest.fixture()
def safe_loan() -> LoanSnapshot:
    return LoanSnapshot(id="L3", health_factor=2.4, asset_symbol="iUSD")


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    monitor:
      payment_address: "addr_test_123456"
      check_interval_minutes: 5
      thresholds:
        hf_warn: 1.8
        hf_crit: 1.4
    liqwid:
      graphql_url: "https://liqwid.example.com/graphql"
      request_timeout: 10
    state:
      redis_url: "redis://localhost:6379/0"
      key_prefix: "hf:"
    telegram:
      enabled: true
      alert_bot_token: "tok1"
      log_bot_token: "tok2"
      chat_id: "999"
    notion:
      enabled: true
      prices_db_id: "db123"
      api_token: "secret"
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


@pytest.fixture()
def loan_source() -> FakeLoanSource:
    return FakeLoanSource()
