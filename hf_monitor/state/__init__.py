"""Persistent monitor state."""
from .redis_store import RedisStore, build_store

__all__ = ["RedisStore", "build_store"]
