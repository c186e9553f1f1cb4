"""Monitoring cycle orchestration — loans, alerts, price mirror, failure alerts."""
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone

from ..clients import LiqwidClient
from ..config import AppConfig
from ..interfaces.key_value_store import KeyValueStore
from ..interfaces.loan_source import LoanSource
from ..interfaces.notifier import Notifier
from ..interfaces.price_mirror import PriceMirror
from ..interfaces.price_provider import PriceProvider
from ..logging_setup import ExecutionLogger
from ..mirrors import NotionPriceMirror
from ..models import (
    AlertLevel,
    AlertRecord,
    CycleSummary,
    LoanResult,
    LoanSnapshot,
    RiskLevel,
)
from ..notifications import TelegramNotifier
from ..oracles import LiqwidPriceProvider
from ..risk import classify
from ..state import build_store
from .alert_manager import AlertManager, Clock, now_ms

logger = logging.getLogger(__name__)

PRICE_UPDATE_KEY = "lastPriceUpdateTime"
ERROR_ALERT_KEY = "lastErrorAlertTime"

# Mirror symbols that Liqwid spells differently.
_SOURCE_SYMBOL_ALIASES = {"ADA": "Ada"}

_STATUS_LABELS = {
    RiskLevel.SAFE: "✅ Safe",
    RiskLevel.WARNING: "⚠️ WARNING",
    RiskLevel.CRITICAL: "🚨 CRITICAL",
}


class Monitor:
    """Runs monitoring cycles for the configured payment address."""

    def __init__(
        self,
        config: AppConfig,
        loan_source: LoanSource,
        notifiers: list[Notifier],
        store: KeyValueStore | None = None,
        price_provider: PriceProvider | None = None,
        price_mirror: PriceMirror | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self._config = config
        self._thresholds = config.monitor.thresholds
        self._loan_source = loan_source
        self._notifiers = list(notifiers)
        self._store = store
        self._price_provider = price_provider
        self._price_mirror = price_mirror
        self._clock = clock
        self._alerts = AlertManager(store, clock=clock)

        self._price_interval_ms = config.monitor.price_update_interval_minutes * 60 * 1000
        self._error_cooldown_ms = config.monitor.error_alert_cooldown_hours * 60 * 60 * 1000

    @classmethod
    def from_config(cls, config: AppConfig) -> Monitor:
        """Wire up the production collaborators described by ``config``."""
        client = LiqwidClient(config.liqwid)

        notifiers: list[Notifier] = []
        if config.telegram.enabled:
            notifiers.append(TelegramNotifier(config.telegram))

        price_mirror: PriceMirror | None = None
        if config.notion.enabled:
            if config.notion.api_token:
                price_mirror = NotionPriceMirror(config.notion)
            else:
                logger.warning("Notion API token not provided, price mirroring disabled")

        return cls(
            config,
            loan_source=client,
            notifiers=notifiers,
            store=build_store(config.state),
            price_provider=LiqwidPriceProvider(client),
            price_mirror=price_mirror,
        )

    async def close(self) -> None:
        close = getattr(self._store, "close", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------
    # Formatting helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _format_address(address: str) -> str:
        if len(address) > 16:
            return f"{address[:10]}...{address[-6:]}"
        return address

    def _now_str(self) -> str:
        return datetime.fromtimestamp(self._clock() / 1000, tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S"
        )

    @staticmethod
    def _iso_ms(timestamp_ms: int) -> str:
        return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()

    def _build_alert(self, loan: LoanSnapshot, level: AlertLevel) -> str:
        if level is AlertLevel.CRITICAL:
            header = f"🚨 CRITICAL: {loan.asset_symbol} loan has health factor {loan.health_factor:.2f}"
            threshold = self._thresholds.hf_crit
            advice = "⚠️ Add collateral or repay debt immediately!"
        else:
            header = f"⚠️ WARNING: {loan.asset_symbol} loan has health factor {loan.health_factor:.2f}"
            threshold = self._thresholds.hf_warn
            advice = "Consider adding collateral or repaying part of the loan."
        return (
            f"{header}\n"
            f"\n"
            f"Loan: {loan.id}\n"
            f"Threshold: {threshold:.2f}\n"
            f"\n"
            f"{advice}\n"
            f"\n"
            f"Wallet: {self._format_address(self._config.monitor.payment_address)}"
        )

    # ------------------------------------------------------------------
    # Notification dispatch
    # ------------------------------------------------------------------

    async def _send(self, level: AlertLevel, message: str) -> bool:
        """True when at least one notifier delivered the message."""
        delivered = False
        for notifier in self._notifiers:
            try:
                delivered = await notifier.send(level, message) or delivered
            except Exception as e:
                logger.error("Notifier send failed: %s", e)
        return delivered

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    async def _read_timestamp(self, key: str) -> int | None:
        """Stored epoch-millis under ``key``; None when absent or unreadable."""
        if self._store is None:
            return None
        try:
            raw = await self._store.get(key)
            return int(raw) if raw else None
        except Exception as e:
            logger.error("Could not read %s from state store: %s", key, e)
            return None

    async def last_alert(self, loan_id: str) -> AlertRecord | None:
        return await self._alerts.get_last_alert(loan_id)

    # ------------------------------------------------------------------
    # Core workflows
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleSummary:
        """One monitoring pass. Never raises; failures end in an error alert."""
        log = ExecutionLogger(logger, {"execution_id": uuid.uuid4().hex[:12]})
        log.info("Health factor monitor started")

        results: list[LoanResult] = []
        checked = 0
        try:
            loans = await self._loan_source.fetch_loans(
                self._config.monitor.payment_address
            )
            checked = len(loans)
            log.info("Fetched %d loans from Liqwid", checked)

            for loan in loans:
                results.append(await self._process_loan(loan, log))

            summary = CycleSummary(checked=checked, results=tuple(results))
            log.info(
                "Health factor check completed: %d checked, %d alerts sent, "
                "%d suppressed, %d failed",
                summary.checked,
                len(summary.alerts_sent),
                len(summary.suppressed),
                len(summary.failed),
            )
            for result in results:
                log.debug(
                    "  %s (%s): HF %.4f → %s",
                    result.loan_id,
                    result.asset_symbol,
                    result.health_factor,
                    result.risk.value,
                )

            synced = await self._sync_prices(log)
            return replace(summary, prices_synced=synced)
        except Exception as e:
            log.exception("Health factor monitor failed: %s", e)
            await self._send_error_alert(e, log)
            return CycleSummary(
                checked=checked,
                results=tuple(results),
                error=str(e) or type(e).__name__,
            )

    async def _process_loan(
        self, loan: LoanSnapshot, log: logging.LoggerAdapter
    ) -> LoanResult:
        """Classify one loan and alert if its tier and cooldown allow it."""
        risk = classify(loan.health_factor, self._thresholds.hf_warn, self._thresholds.hf_crit)
        result = LoanResult(
            loan_id=loan.id,
            asset_symbol=loan.asset_symbol,
            health_factor=loan.health_factor,
            risk=risk,
        )
        if risk is RiskLevel.SAFE:
            return result

        level = AlertLevel(risk.value)
        log.warning(
            "%s health factor detected: loan %s (%s) HF %.4f",
            level.value.capitalize(),
            loan.id,
            loan.asset_symbol,
            loan.health_factor,
        )

        try:
            if not await self._alerts.should_send_alert(loan.id, level, loan.asset_symbol):
                log.info("%s alert suppressed due to cooldown: %s", level.value.capitalize(), loan.id)
                return replace(result, suppressed=True)

            if not await self._send(level, self._build_alert(loan, level)):
                log.error("Failed to deliver %s alert for loan %s", level.value, loan.id)
                return replace(result, failed=True)

            await self._alerts.record_alert(loan.id, level, loan.asset_symbol)
            return replace(result, alert_sent=True)
        except Exception as e:
            log.error("Error processing loan %s: %s", loan.id, e)
            return replace(result, failed=True)

    async def _sync_prices(self, log: logging.LoggerAdapter) -> bool:
        """Mirror prices when the throttle window has passed. True if synced."""
        if self._price_mirror is None or self._price_provider is None:
            log.info("Price mirror not configured, skipping price update")
            return False

        try:
            now = self._clock()
            last = await self._read_timestamp(PRICE_UPDATE_KEY)
            if last is not None and now - last < self._price_interval_ms:
                log.info(
                    "Price update skipped due to throttling (last update %s)",
                    self._iso_ms(last),
                )
                return False

            symbols = await self._price_mirror.get_asset_symbols()
            log.info("Found %d assets in price mirror", len(symbols))
            if not symbols:
                log.info("No assets found in price mirror, skipping price update")
                return False

            source_symbols = [_SOURCE_SYMBOL_ALIASES.get(s, s) for s in symbols]
            prices = await self._price_provider.get_prices(source_symbols)
            log.info("Fetched prices for %d assets", len(prices))

            result = await self._price_mirror.update_prices(prices)
            log.info(
                "Price mirror updated: %d rows, %d errors",
                result.updated,
                len(result.errors),
            )
            if result.errors and not result.updated:
                log.error("Every price row failed to update; throttle timer not reset")
                return False

            if self._store is not None:
                await self._store.put(
                    PRICE_UPDATE_KEY,
                    str(now),
                    metadata=json.dumps(
                        {"updated": result.updated, "errors": len(result.errors)}
                    ),
                )
            return True
        except Exception as e:
            log.error("Failed to update price mirror: %s", e)
            return False

    async def _send_error_alert(
        self, error: Exception, log: logging.LoggerAdapter
    ) -> None:
        """Report a failed cycle, at most once per error cooldown window."""
        try:
            now = self._clock()
            last = await self._read_timestamp(ERROR_ALERT_KEY)
            if last is not None and now - last < self._error_cooldown_ms:
                log.info(
                    "Error alert skipped due to rate limiting (last alert %s)",
                    self._iso_ms(last),
                )
                return

            message = str(error) or type(error).__name__
            delivered = await self._send(
                AlertLevel.ERROR, f"🔥 ERROR: Health Factor Monitor failed: {message}"
            )
            if not delivered:
                log.error("Error alert could not be delivered")
                return

            if self._store is not None:
                await self._store.put(ERROR_ALERT_KEY, str(now))
            log.info("Error alert sent and cooldown timer started")
        except Exception as e:
            log.error("Failed to send error alert: %s", e)

    async def generate_report(self) -> None:
        """Send an informational status report covering every loan."""
        address = self._config.monitor.payment_address
        loans = await self._loan_source.fetch_loans(address)

        lines: list[str] = []
        for loan in loans:
            risk = classify(loan.health_factor, self._thresholds.hf_warn, self._thresholds.hf_crit)
            lines.append(
                f"{loan.asset_symbol} · {_STATUS_LABELS[risk]}\n"
                f"  Loan: {loan.id}\n"
                f"  HF: {loan.health_factor:.2f}"
            )

        body = "\n\n".join(lines) if lines else "No active loans found."
        report = (
            f"📋 Health Factor Report\n"
            f"\n"
            f"━━ {self._format_address(address)} ━━\n"
            f"\n"
            f"{body}\n"
            f"\n"
            f"Thresholds: warn < {self._thresholds.hf_warn:.2f} · "
            f"critical < {self._thresholds.hf_crit:.2f}\n"
            f"{self._now_str()} UTC"
        )

        await self._send(AlertLevel.INFO, report)
        logger.info("Health factor report sent")

    async def run_continuous(self, check_interval_minutes: int | None = None) -> None:
        """Run monitoring cycles forever, one every ``check_interval_minutes``."""
        interval = check_interval_minutes or self._config.monitor.check_interval_minutes
        logger.info(
            "Starting continuous monitoring (checking every %d minutes)", interval
        )

        while True:
            await self.run_cycle()
            await asyncio.sleep(interval * 60)
