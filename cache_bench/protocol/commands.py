"""
Protocol Command and Reply Definitions

This module defines the data structures shared by the line-protocol client
and the reference server.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

MISS_MARKER = "NOT_FOUND"
ACK = "OK"
ERROR_PREFIX = "ERROR"


class CommandType(Enum):
    """Enumeration of supported command types."""
    GET = auto()
    SET = auto()
    SETEX = auto()
    QUIT = auto()
    UNKNOWN = auto()


class ReplyKind(Enum):
    """Enumeration of reply kinds."""
    VALUE = auto()
    MISS = auto()
    ACK = auto()
    ERROR = auto()


@dataclass
class Command:
    """
    Represents a protocol command.

    Attributes:
        type: The type of command (GET, SET, SETEX, QUIT, UNKNOWN)
        key: The key for the operation (empty for QUIT)
        value: The value for SET/SETEX (empty otherwise)
        ttl: Time-to-live in seconds; None means the server default
        raw: The original raw command string
        error: Why the command was rejected (UNKNOWN only)
    """
    type: CommandType
    key: str = ""
    value: str = ""
    ttl: Optional[int] = None
    raw: str = ""
    error: str = ""

    @property
    def is_valid(self) -> bool:
        """Check if the command is valid for its type."""
        if self.type == CommandType.UNKNOWN:
            return False
        if self.type == CommandType.QUIT:
            return True
        if self.type == CommandType.GET:
            return bool(self.key)
        if self.type == CommandType.SET:
            return bool(self.key)
        if self.type == CommandType.SETEX:
            return bool(self.key) and self.ttl is not None and self.ttl > 0
        return False


@dataclass
class Reply:
    """
    Represents a protocol reply.

    Attributes:
        kind: VALUE, MISS, ACK or ERROR
        value: The value returned by a GET hit
        message: Error description for ERROR replies
    """
    kind: ReplyKind
    value: Optional[str] = None
    message: str = ""

    @classmethod
    def hit(cls, value: str) -> "Reply":
        """Create a GET reply carrying a value."""
        return cls(kind=ReplyKind.VALUE, value=value)

    @classmethod
    def miss(cls) -> "Reply":
        """Create a GET reply for an absent key."""
        return cls(kind=ReplyKind.MISS)

    @classmethod
    def ack(cls) -> "Reply":
        """Create the acknowledgement for SET/SETEX."""
        return cls(kind=ReplyKind.ACK)

    @classmethod
    def error(cls, message: str) -> "Reply":
        """Create an error reply."""
        return cls(kind=ReplyKind.ERROR, message=message)
