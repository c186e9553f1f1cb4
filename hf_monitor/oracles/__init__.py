"""Price providers."""
from .liqwid import LiqwidPriceProvider

__all__ = ["LiqwidPriceProvider"]
