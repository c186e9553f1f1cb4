"""Notion price database mirror."""
from __future__ import annotations

import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..config import NotionConfig
from ..errors import PriceMirrorError
from ..models import MirrorUpdateResult, PriceInfo

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
# The prices database holds one row per asset; a single page covers it.
PAGE_SIZE = 100

TITLE_PROPERTY = "Asset"
PRICE_PROPERTY = "ADA Price"
EXCHANGE_RATE_PROPERTY = "Exchange Rate (qToken)"


def _row_symbol(row: dict[str, Any]) -> str | None:
    title = row.get("properties", {}).get(TITLE_PROPERTY, {}).get("title") or []
    if title and title[0].get("plain_text"):
        return title[0]["plain_text"]
    return None


class NotionPriceMirror:
    """Keep a Notion database of asset prices up to date."""

    def __init__(self, config: NotionConfig) -> None:
        if not config.prices_db_id:
            raise ValueError("Notion prices database id is required")
        if not config.api_token:
            raise ValueError("Notion API token is required")
        self.database_id = config.prices_db_id
        self.api_token = config.api_token

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Notion-Version": NOTION_VERSION,
            "Authorization": f"Bearer {self.api_token}",
        }

    async def _request(
        self, method: str, path: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        url = f"{NOTION_API_URL}{path}"
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.request(
                    method, url, json=payload, headers=self._headers()
                ) as response:
                    if response.status != 200:
                        raise PriceMirrorError(
                            f"Notion {method} {path} failed: HTTP {response.status}"
                        )
                    return await response.json()
        except PriceMirrorError:
            raise
        except Exception as e:
            raise PriceMirrorError(f"Notion {method} {path} failed: {e}") from e

    async def query_rows(self) -> list[dict[str, Any]]:
        """All rows of the prices database."""
        data = await self._request(
            "POST", f"/databases/{self.database_id}/query", {"page_size": PAGE_SIZE}
        )
        return data.get("results") or []

    async def get_asset_symbols(self) -> list[str]:
        """Asset symbols listed in the database's title column."""
        rows = await self.query_rows()
        return [symbol for symbol in map(_row_symbol, rows) if symbol is not None]

    async def update_prices(self, prices: dict[str, PriceInfo]) -> MirrorUpdateResult:
        """Upsert one row per symbol; per-row failures are collected, not raised."""
        rows = await self.query_rows()
        pages_by_symbol = {
            symbol: row["id"]
            for row in rows
            if (symbol := _row_symbol(row)) is not None
        }

        updated = 0
        errors: list[tuple[str, str]] = []
        for symbol, info in prices.items():
            properties = self._properties(symbol, info)
            try:
                page_id = pages_by_symbol.get(symbol)
                if page_id:
                    await self._request("PATCH", f"/pages/{page_id}", {"properties": properties})
                else:
                    await self._request(
                        "POST",
                        "/pages",
                        {
                            "parent": {"database_id": self.database_id},
                            "properties": properties,
                        },
                    )
                updated += 1
            except PriceMirrorError as e:
                logger.error("Error writing price row for %s: %s", symbol, e)
                errors.append((symbol, str(e)))

        return MirrorUpdateResult(updated=updated, errors=tuple(errors))

    @staticmethod
    def _properties(symbol: str, info: PriceInfo) -> dict[str, Any]:
        # "Last Updated" is Notion's own last_edited_time column.
        return {
            TITLE_PROPERTY: {"title": [{"text": {"content": symbol}}]},
            PRICE_PROPERTY: {"number": info.price_ada},
            EXCHANGE_RATE_PROPERTY: {"number": info.exchange_rate or None},
        }
