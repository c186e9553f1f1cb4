"""Protocol interfaces for the health factor monitor."""
from .key_value_store import KeyValueStore
from .loan_source import LoanSource
from .notifier import Notifier
from .price_mirror import PriceMirror
from .price_provider import PriceProvider

__all__ = ["KeyValueStore", "LoanSource", "Notifier", "PriceMirror", "PriceProvider"]
