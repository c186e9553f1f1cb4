"""Price mirror protocol — external price database."""
from typing import Protocol

from ..models import MirrorUpdateResult, PriceInfo


class PriceMirror(Protocol):
    """Abstract interface for the database prices are mirrored into."""

    async def get_asset_symbols(self) -> list[str]: ...

    async def update_prices(
        self, prices: dict[str, PriceInfo]
    ) -> MirrorUpdateResult: ...
