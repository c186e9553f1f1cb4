"""Notifier protocol — notification channel abstraction."""
from typing import Protocol

from ..models import AlertLevel


class Notifier(Protocol):
    """Abstract interface for sending notifications."""

    async def send(self, level: AlertLevel, message: str) -> bool: ...
