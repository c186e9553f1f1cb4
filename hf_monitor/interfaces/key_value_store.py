"""Key-value store protocol — persistent monitor state."""
from typing import Protocol


class KeyValueStore(Protocol):
    """String key/value store with optional per-key expiration."""

    async def get(self, key: str) -> str | None: ...

    async def put(
        self,
        key: str,
        value: str,
        expiration_ttl: int | None = None,
        metadata: str | None = None,
    ) -> None: ...
