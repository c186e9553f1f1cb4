"""Service modules"""
from .alert_manager import AlertManager
from .monitor import Monitor

__all__ = ["AlertManager", "Monitor"]
