"""Line protocol module for cache-bench."""

from .commands import (
    ACK,
    ERROR_PREFIX,
    MISS_MARKER,
    Command,
    CommandType,
    Reply,
    ReplyKind,
)
from .parser import ProtocolParser

__all__ = [
    "ACK",
    "ERROR_PREFIX",
    "MISS_MARKER",
    "Command",
    "CommandType",
    "Reply",
    "ReplyKind",
    "ProtocolParser",
]
