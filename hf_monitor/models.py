"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RiskLevel(str, Enum):
    """Risk tier derived from a loan's health factor."""

    SAFE = "safe"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertLevel(str, Enum):
    """Severity of a message sent through a notifier."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    ERROR = "error"


# Only these levels carry per-loan cooldown state.
THROTTLED_LEVELS = frozenset({AlertLevel.WARNING, AlertLevel.CRITICAL})


@dataclass(frozen=True)
class CollateralInfo:
    """Single collateral backing a loan."""

    id: str
    asset_symbol: str
    qtoken_name: str
    qtoken_amount: float
    health_factor: float
    exchange_rate: float


@dataclass(frozen=True)
class LoanSnapshot:
    """Current state of one loan, fetched fresh every cycle."""

    id: str
    health_factor: float
    asset_symbol: str
    price: float = 0.0
    ltv: float | None = None
    collaterals: tuple[CollateralInfo, ...] = ()


@dataclass(frozen=True)
class AlertRecord:
    """Last alert emitted for a loan, as persisted under ``alert:{loanId}``."""

    level: AlertLevel
    timestamp: int
    asset_symbol: str

    def to_dict(self) -> dict[str, object]:
        return {
            "level": self.level.value,
            "timestamp": self.timestamp,
            "assetSymbol": self.asset_symbol,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, object]) -> AlertRecord:
        return cls(
            level=AlertLevel(raw["level"]),
            timestamp=int(raw["timestamp"]),  # type: ignore[arg-type]
            asset_symbol=str(raw.get("assetSymbol", "")),
        )


@dataclass(frozen=True)
class AssetPrice:
    """Market price as reported by the loan data source."""

    price_ada: float
    exchange_rate: float
    updated_at: str
    price_updated_at: str


@dataclass(frozen=True)
class PriceInfo:
    """Price row pushed to the price mirror."""

    price_ada: float
    updated_at: str
    exchange_rate: float | None = None
    source_updated_at: str | None = None


@dataclass(frozen=True)
class MirrorUpdateResult:
    """Outcome of pushing a batch of prices to the mirror."""

    updated: int = 0
    errors: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class LoanResult:
    """Per-loan outcome of one monitoring cycle."""

    loan_id: str
    asset_symbol: str
    health_factor: float
    risk: RiskLevel
    alert_sent: bool = False
    suppressed: bool = False
    failed: bool = False


@dataclass(frozen=True)
class CycleSummary:
    """What one monitoring cycle did."""

    checked: int = 0
    results: tuple[LoanResult, ...] = ()
    prices_synced: bool = False
    error: str = ""

    @property
    def alerts_sent(self) -> tuple[LoanResult, ...]:
        return tuple(r for r in self.results if r.alert_sent)

    @property
    def suppressed(self) -> tuple[LoanResult, ...]:
        return tuple(r for r in self.results if r.suppressed)

    @property
    def failed(self) -> tuple[LoanResult, ...]:
        return tuple(r for r in self.results if r.failed)

    @property
    def ok(self) -> bool:
        return not self.error

