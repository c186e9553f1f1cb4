"""Liqwid Finance GraphQL client."""
from __future__ import annotations

import logging
import ssl
import time
from typing import Any

import aiohttp
import certifi

from ..config import LiqwidConfig
from ..errors import LoanSourceError
from ..models import AssetPrice, CollateralInfo, LoanSnapshot

logger = logging.getLogger(__name__)

LOANS_SNAPSHOT_QUERY = """
query GetLoansSnapshot($addresses: [String!]!) {
  liqwid {
    data {
      loans(input: { paymentKeys: $addresses }) {
        results {
          id
          healthFactor
          LTV
          asset {
            symbol
            price
          }
          collaterals {
            id
            asset {
              symbol
            }
            qTokenName
            qTokenAmount
            healthFactor
            market {
              exchangeRate
            }
          }
        }
      }
    }
  }
}
"""

MARKET_PRICES_QUERY = """
query GetMarketPrices($marketIds: [String!]) {
  liqwid {
    data {
      markets(input: { ids: $marketIds }) {
        results {
          asset {
            id
            symbol
            price
            priceUpdatedAt
          }
          exchangeRate
          updatedAt
        }
      }
    }
  }
}
"""


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    return float(value)


class LiqwidClient:
    """Fetch loans and market prices from the Liqwid GraphQL API."""

    def __init__(self, config: LiqwidConfig) -> None:
        self.graphql_url = config.graphql_url
        self.user_agent = config.user_agent
        self.timeout = config.request_timeout
        self.loans_cache_ttl = config.loans_cache_ttl
        self.prices_cache_ttl = config.prices_cache_ttl
        # key -> (expires_at, data)
        self._cache: dict[str, tuple[float, Any]] = {}

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _cache_get(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, data = entry
        if time.monotonic() > expires_at:
            del self._cache[key]
            return None
        return data

    def _cache_set(self, key: str, data: Any, ttl_seconds: int) -> None:
        self._cache[key] = (time.monotonic() + ttl_seconds, data)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def execute(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """POST a GraphQL query and return its ``data`` payload."""
        headers = {"Content-Type": "application/json", "User-Agent": self.user_agent}
        payload = {"query": query, "variables": variables}

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.post(
                    self.graphql_url,
                    json=payload,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise LoanSourceError(
                            f"GraphQL request failed: HTTP {response.status} - {text}"
                        )
                    body = await response.json()
        except LoanSourceError:
            raise
        except Exception as e:
            raise LoanSourceError(str(e) or type(e).__name__) from e

        if body.get("errors"):
            raise LoanSourceError(f"GraphQL errors: {body['errors']}")
        if not body.get("data"):
            raise LoanSourceError("GraphQL response missing data")
        return body["data"]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_loans(self, payment_address: str) -> list[LoanSnapshot]:
        """Current loans for a payment address (cached briefly)."""
        if not payment_address:
            raise LoanSourceError("Payment address is required")

        cache_key = f"loans:{payment_address}"
        cached = self._cache_get(cache_key)
        if cached is not None:
            logger.debug("Using cached loans for %s", payment_address)
            return cached

        try:
            data = await self.execute(LOANS_SNAPSHOT_QUERY, {"addresses": [payment_address]})
            loans = self._parse_loans(data)
        except LoanSourceError as e:
            raise LoanSourceError(
                f"Failed to fetch loans for address {payment_address}: {e}"
            ) from e

        self._cache_set(cache_key, loans, self.loans_cache_ttl)
        return loans

    async def fetch_market_prices(self, symbols: list[str]) -> dict[str, AssetPrice]:
        """Market prices keyed by asset symbol (cached for a few minutes)."""
        if not symbols:
            raise LoanSourceError("At least one symbol is required")

        cache_key = "prices:" + ",".join(sorted(symbols))
        cached = self._cache_get(cache_key)
        if cached is not None:
            return cached

        try:
            data = await self.execute(MARKET_PRICES_QUERY, {"marketIds": list(symbols)})
            prices = self._parse_prices(data)
        except LoanSourceError as e:
            raise LoanSourceError(
                f"Failed to fetch prices for symbols: {', '.join(symbols)}: {e}"
            ) from e

        self._cache_set(cache_key, prices, self.prices_cache_ttl)
        return prices

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_loans(data: dict[str, Any]) -> list[LoanSnapshot]:
        results = (
            data.get("liqwid", {}).get("data", {}).get("loans", {}).get("results") or []
        )
        loans: list[LoanSnapshot] = []
        try:
            for loan in results:
                collaterals = tuple(
                    CollateralInfo(
                        id=col["id"],
                        asset_symbol=col["asset"]["symbol"],
                        qtoken_name=col.get("qTokenName", ""),
                        qtoken_amount=_to_float(col.get("qTokenAmount")),
                        health_factor=_to_float(col.get("healthFactor")),
                        exchange_rate=_to_float(
                            (col.get("market") or {}).get("exchangeRate")
                        ),
                    )
                    for col in loan.get("collaterals") or []
                )
                ltv = loan.get("LTV")
                loans.append(
                    LoanSnapshot(
                        id=loan["id"],
                        # A loan without a reported health factor carries no debt.
                        health_factor=_to_float(loan.get("healthFactor"), float("inf")),
                        asset_symbol=loan["asset"]["symbol"],
                        price=_to_float(loan["asset"].get("price")),
                        ltv=float(ltv) if ltv not in (None, "") else None,
                        collaterals=collaterals,
                    )
                )
        except (KeyError, TypeError, ValueError) as e:
            raise LoanSourceError(f"Failed to transform loans response: {e}") from e
        return loans

    @staticmethod
    def _parse_prices(data: dict[str, Any]) -> dict[str, AssetPrice]:
        results = (
            data.get("liqwid", {}).get("data", {}).get("markets", {}).get("results") or []
        )
        prices: dict[str, AssetPrice] = {}
        try:
            for market in results:
                asset = market["asset"]
                prices[asset["symbol"]] = AssetPrice(
                    price_ada=_to_float(asset.get("price")),
                    exchange_rate=_to_float(market.get("exchangeRate")),
                    updated_at=market.get("updatedAt", ""),
                    price_updated_at=asset.get("priceUpdatedAt", ""),
                )
        except (KeyError, TypeError, ValueError) as e:
            raise LoanSourceError(f"Failed to transform prices response: {e}") from e
        return prices
