"""Lending protocol API clients."""
from .liqwid import LiqwidClient

__all__ = ["LiqwidClient"]
