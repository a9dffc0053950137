"""
TTL Store Module

In-memory key-value storage with per-entry expiry, backing the reference
line-protocol server. Every entry expires: a missing TTL falls back to the
default from settings.
"""

import time
from typing import Any, Dict, Optional, Tuple

from ..config.settings import settings


class TTLStore:
    """
    In-memory key-value store where every entry carries an expiry time.

    Expiry is lazy (checked on read) with an optional active sweep through
    cleanup_expired().

    Internal Storage:
        Format: key -> (value, expires_at)
        expires_at is a time.monotonic() deadline.

    Attributes:
        default_ttl: TTL in seconds applied when set() gets none
    """

    def __init__(self, default_ttl: int = None):
        self.default_ttl = default_ttl if default_ttl is not None else settings.DEFAULT_TTL
        self._store: Dict[str, Tuple[str, float]] = {}

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """
        Insert or overwrite a key-value pair (last write wins).

        Args:
            key: The key to store
            value: The value to associate with the key
            ttl: Time-to-live in seconds (None = default_ttl)

        Returns:
            True on success
        """
        if ttl is None:
            ttl = self.default_ttl
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")

        self._store[key] = (value, time.monotonic() + ttl)
        return True

    def get(self, key: str) -> Optional[str]:
        """
        Retrieve the value for a given key.

        Returns:
            The value if found and not expired, None otherwise
        """
        entry = self._store.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at <= time.monotonic():
            # Lazy expiration
            self._store.pop(key, None)
            return None
        return value

    def size(self) -> int:
        """Number of stored keys, including expired keys not yet swept."""
        return len(self._store)

    def clear(self) -> None:
        """Remove all keys from the store."""
        self._store.clear()

    def cleanup_expired(self) -> int:
        """
        Remove all expired keys from the store (active expiration).

        Returns:
            Number of keys removed
        """
        now = time.monotonic()
        to_delete = [k for k, (_, exp) in self._store.items() if exp <= now]
        for key in to_delete:
            self._store.pop(key, None)
        return len(to_delete)

    def get_stats(self) -> Dict[str, Any]:
        """Return total, expired and active key counts."""
        now = time.monotonic()
        total = len(self._store)
        expired = sum(1 for _, (_, expires_at) in self._store.items() if expires_at <= now)

        return {
            "total_keys": total,
            "expired_keys": expired,
            "active_keys": total - expired,
            "default_ttl": self.default_ttl,
        }
