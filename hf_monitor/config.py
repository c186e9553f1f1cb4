"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThresholdsConfig:
    hf_warn: float = 1.7
    hf_crit: float = 1.5


@dataclass(frozen=True)
class MonitorConfig:
    payment_address: str = ""
    check_interval_minutes: int = 2
    price_update_interval_minutes: int = 60
    error_alert_cooldown_hours: int = 12
    thresholds: ThresholdsConfig = field(default_factory=ThresholdsConfig)


@dataclass(frozen=True)
class LiqwidConfig:
    graphql_url: str = "https://v2.api.liqwid.finance/graphql"
    user_agent: str = "CardanoDefiHelper/1.0"
    request_timeout: int = 30
    loans_cache_ttl: int = 60
    prices_cache_ttl: int = 300


@dataclass(frozen=True)
class StateConfig:
    redis_url: str = ""
    key_prefix: str = ""


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""
    max_retries: int = 3


@dataclass(frozen=True)
class NotionConfig:
    enabled: bool = False
    prices_db_id: str = ""
    api_token: str = ""


@dataclass(frozen=True)
class AppConfig:
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    liqwid: LiqwidConfig = field(default_factory=LiqwidConfig)
    state: StateConfig = field(default_factory=StateConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    notion: NotionConfig = field(default_factory=NotionConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


def _as_bool(value: Any) -> bool:
    # "${FLAG}" interpolation leaves strings behind
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_thresholds(raw: dict[str, Any]) -> ThresholdsConfig:
    return ThresholdsConfig(
        hf_warn=float(raw.get("hf_warn", 1.7)),
        hf_crit=float(raw.get("hf_crit", 1.5)),
    )


def _build_monitor(raw: dict[str, Any]) -> MonitorConfig:
    return MonitorConfig(
        payment_address=str(raw.get("payment_address", "")),
        check_interval_minutes=int(raw.get("check_interval_minutes", 2)),
        price_update_interval_minutes=int(
            raw.get("price_update_interval_minutes", 60)
        ),
        error_alert_cooldown_hours=int(raw.get("error_alert_cooldown_hours", 12)),
        thresholds=_build_thresholds(raw.get("thresholds", {})),
    )


def _build_liqwid(raw: dict[str, Any]) -> LiqwidConfig:
    return LiqwidConfig(
        graphql_url=raw.get("graphql_url", LiqwidConfig.graphql_url),
        user_agent=raw.get("user_agent") or LiqwidConfig.user_agent,
        request_timeout=int(raw.get("request_timeout", 30)),
        loans_cache_ttl=int(raw.get("loans_cache_ttl", 60)),
        prices_cache_ttl=int(raw.get("prices_cache_ttl", 300)),
    )


def _build_state(raw: dict[str, Any]) -> StateConfig:
    return StateConfig(
        redis_url=raw.get("redis_url", ""),
        key_prefix=raw.get("key_prefix", ""),
    )


def _build_telegram(raw: dict[str, Any]) -> TelegramConfig:
    return TelegramConfig(
        enabled=_as_bool(raw.get("enabled", False)),
        alert_bot_token=raw.get("alert_bot_token", ""),
        log_bot_token=raw.get("log_bot_token", ""),
        chat_id=str(raw.get("chat_id", "")),
        max_retries=int(raw.get("max_retries", 3)),
    )


def _build_notion(raw: dict[str, Any]) -> NotionConfig:
    return NotionConfig(
        enabled=_as_bool(raw.get("enabled", False)),
        prices_db_id=raw.get("prices_db_id", ""),
        api_token=raw.get("api_token", ""),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (two levels up from this file).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        monitor=_build_monitor(raw.get("monitor", {})),
        liqwid=_build_liqwid(raw.get("liqwid", {})),
        state=_build_state(raw.get("state", {})),
        telegram=_build_telegram(raw.get("telegram", {})),
        notion=_build_notion(raw.get("notion", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.monitor.payment_address:
        raise ValueError("A payment address must be configured")

    if not cfg.liqwid.graphql_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Liqwid GraphQL URL must be an http(s) URL: '{cfg.liqwid.graphql_url}'"
        )

    thresholds = cfg.monitor.thresholds
    if thresholds.hf_warn <= 0 or thresholds.hf_crit <= 0:
        raise ValueError("Health factor thresholds must be positive")
    if thresholds.hf_crit >= thresholds.hf_warn:
        raise ValueError(
            f"hf_crit ({thresholds.hf_crit}) must be below hf_warn ({thresholds.hf_warn})"
        )

    if cfg.telegram.enabled and (
        not cfg.telegram.alert_bot_token or not cfg.telegram.chat_id
    ):
        raise ValueError("Telegram is enabled but bot token or chat id is missing")

    if cfg.notion.enabled and not cfg.notion.prices_db_id:
        raise ValueError("Notion is enabled but no prices database id is set")
