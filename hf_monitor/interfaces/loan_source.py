"""Loan source protocol — lending protocol data access."""
from typing import Protocol

from ..models import AssetPrice, LoanSnapshot


class LoanSource(Protocol):
    """Abstract interface for fetching loans and market prices."""

    async def fetch_loans(self, payment_address: str) -> list[LoanSnapshot]: ...

    async def fetch_market_prices(
        self, symbols: list[str]
    ) -> dict[str, AssetPrice]: ...
