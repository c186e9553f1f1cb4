"""Alert cooldown handling — suppresses repeated alerts for the same loan.

One ``AlertRecord`` per loan is kept in the state store under
``alert:{loanId}``. A new warning/critical alert is allowed when there is no
record, when the loan escalated from warning to critical, or when the
cooldown has elapsed since the recorded alert. Every failure path allows the
alert.
"""
from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Callable

from ..interfaces.key_value_store import KeyValueStore
from ..models import THROTTLED_LEVELS, AlertLevel, AlertRecord

logger = logging.getLogger(__name__)

COOLDOWN_MS = 10 * 60 * 1000
# Must outlive the cooldown, or an expired record reads as "never alerted".
RECORD_TTL_SECONDS = 3600

Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def alert_key(loan_id: str) -> str:
    return f"alert:{loan_id}"


class AlertManager:
    """Per-loan alert cooldown backed by an optional key-value store."""

    def __init__(
        self,
        store: KeyValueStore | None,
        clock: Clock = now_ms,
        cooldown_ms: int = COOLDOWN_MS,
    ) -> None:
        self._store = store
        self._clock = clock
        self._cooldown_ms = cooldown_ms

    async def should_send_alert(
        self, loan_id: str, level: AlertLevel, asset_symbol: str
    ) -> bool:
        """Return True when an alert of ``level`` for ``loan_id`` may go out now."""
        if self._store is None:
            return True

        if level not in THROTTLED_LEVELS:
            return True

        try:
            stored = await self._store.get(alert_key(loan_id))
            if not stored:
                return True

            last = AlertRecord.from_dict(json.loads(stored))

            if level == AlertLevel.CRITICAL and last.level == AlertLevel.WARNING:
                logger.info(
                    "Loan %s (%s) escalated from warning to critical", loan_id, asset_symbol
                )
                return True

            elapsed = self._clock() - last.timestamp
            if elapsed >= self._cooldown_ms:
                return True

            logger.debug(
                "Cooldown active for loan %s: last %s alert %.1f min ago",
                loan_id,
                last.level.value,
                elapsed / 60000,
            )
            return False
        except Exception as e:
            logger.error("Error checking alert cooldown for %s: %s", loan_id, e)
            return True

    async def record_alert(
        self, loan_id: str, level: AlertLevel, asset_symbol: str
    ) -> None:
        """Overwrite the loan's AlertRecord. Failures are logged, never raised."""
        if self._store is None or level not in THROTTLED_LEVELS:
            return
        level = AlertLevel(level)

        record = AlertRecord(level=level, timestamp=self._clock(), asset_symbol=asset_symbol)
        metadata = {
            "assetSymbol": asset_symbol,
            "level": level.value,
            "createdAt": datetime.fromtimestamp(
                record.timestamp / 1000, tz=timezone.utc
            ).isoformat(),
        }

        try:
            await self._store.put(
                alert_key(loan_id),
                json.dumps(record.to_dict()),
                expiration_ttl=RECORD_TTL_SECONDS,
                metadata=json.dumps(metadata),
            )
        except Exception as e:
            logger.error("Error recording alert for %s: %s", loan_id, e)

    async def get_last_alert(self, loan_id: str) -> AlertRecord | None:
        """Last recorded alert for ``loan_id``, or None if absent or unreadable."""
        if self._store is None:
            return None

        try:
            stored = await self._store.get(alert_key(loan_id))
            if not stored:
                return None
            return AlertRecord.from_dict(json.loads(stored))
        except Exception as e:
            logger.error("Error fetching last alert for %s: %s", loan_id, e)
            return None
