"""Price mirror databases."""
from .notion import NotionPriceMirror

__all__ = ["NotionPriceMirror"]
