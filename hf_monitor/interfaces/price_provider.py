"""Price provider protocol — price feed abstraction."""
from typing import Protocol

from ..models import PriceInfo


class PriceProvider(Protocol):
    """Abstract interface for fetching asset prices."""

    @property
    def name(self) -> str: ...

    @property
    def source_url(self) -> str: ...

    async def get_prices(self, symbols: list[str]) -> dict[str, PriceInfo]: ...
