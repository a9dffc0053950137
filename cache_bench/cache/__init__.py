"""In-memory store backing the reference line-protocol server."""

from .store import TTLStore

__all__ = ["TTLStore"]
