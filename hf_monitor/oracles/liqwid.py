"""Liqwid market price provider."""
from __future__ import annotations

import logging

from ..errors import PriceProviderError
from ..interfaces.loan_source import LoanSource
from ..models import PriceInfo

logger = logging.getLogger(__name__)


class LiqwidPriceProvider:
    """Prices for mirrored assets, denominated in ADA.

    Liqwid reports market prices in USD; when ADA is among the requested
    symbols every price is divided by the ADA price.
    """

    name = "Liqwid Finance"
    source_url = "https://liqwid.finance/"

    def __init__(self, source: LoanSource) -> None:
        self._source = source

    async def get_prices(self, symbols: list[str]) -> dict[str, PriceInfo]:
        if not symbols:
            return {}

        try:
            raw_prices = await self._source.fetch_market_prices(symbols)
        except Exception as e:
            logger.error("Error fetching prices from Liqwid: %s", e)
            raise PriceProviderError("Failed to fetch prices from Liqwid") from e

        ada_price = 1.0
        ada = raw_prices.get("ADA")
        if ada is not None and ada.price_ada:
            ada_price = ada.price_ada

        prices = {
            symbol: PriceInfo(
                price_ada=price.price_ada / ada_price,
                exchange_rate=price.exchange_rate,
                updated_at=price.updated_at,
                source_updated_at=price.price_updated_at,
            )
            for symbol, price in raw_prices.items()
        }

        logger.info("Fetched prices from %s:", self.name)
        for symbol, info in sorted(prices.items()):
            logger.info("  %s: %.6f ADA", symbol, info.price_ada)
        return prices
