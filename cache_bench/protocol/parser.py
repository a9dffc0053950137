"""
Protocol Parser Module

Encodes and decodes both directions of the cache line protocol.

Protocol Format:
    Request:  <COMMAND> [ARGS...]\\n
    Reply:    <VALUE> | NOT_FOUND | OK | ERROR <message>\\n

Commands:
    GET <key>                  -> <value> | NOT_FOUND
    SET <key> <value>          -> OK       (server default TTL)
    SETEX <key> <ttl> <value>  -> OK
    QUIT                       -> (connection closed)

Values are the remainder of the line and may contain spaces but never a
newline. Keys contain no whitespace.
"""

from .commands import (
    ACK,
    ERROR_PREFIX,
    MISS_MARKER,
    Command,
    CommandType,
    Reply,
    ReplyKind,
)
from ..config.settings import settings


class ProtocolParser:
    """Parser for the cache line protocol."""

    def __init__(self, max_key_length: int = None):
        self.max_key_length = (
            max_key_length if max_key_length is not None else settings.MAX_KEY_LENGTH
        )

    # ------------------------------------------------------------------
    # Client side
    # ------------------------------------------------------------------

    def format_request(self, command: Command) -> str:
        """
        Format a command into a newline-terminated request line.

        Raises:
            ValueError: if the key or value would corrupt the framing.

        Examples:
            >>> parser = ProtocolParser()
            >>> parser.format_request(Command(CommandType.SET, key="foo", value="bar"))
            'SET foo bar\\n'
            >>> parser.format_request(Command(CommandType.GET, key="foo"))
            'GET foo\\n'
        """
        if command.type == CommandType.QUIT:
            return "QUIT\n"

        self.validate_key(command.key)

        if command.type == CommandType.GET:
            return f"GET {command.key}\n"

        if "\n" in command.value or "\r" in command.value:
            raise ValueError("value must not contain line breaks")

        if command.type == CommandType.SET:
            return f"SET {command.key} {command.value}\n"
        if command.type == CommandType.SETEX:
            if command.ttl is None or command.ttl <= 0:
                raise ValueError(f"ttl must be a positive integer, got {command.ttl!r}")
            return f"SETEX {command.key} {command.ttl} {command.value}\n"

        raise ValueError(f"cannot format {command.type.name} command")

    def validate_key(self, key: str) -> None:
        """Reject keys the whitespace-delimited protocol cannot carry."""
        if not key:
            raise ValueError("key must not be empty")
        if any(ch.isspace() for ch in key):
            raise ValueError(f"key must not contain whitespace: {key!r}")
        if len(key) > self.max_key_length:
            raise ValueError(
                f"key longer than {self.max_key_length} characters"
            )

    def parse_response(self, line: str, command_type: CommandType) -> Reply:
        """
        Decode a reply line for a request of the given type.

        The line is trimmed of surrounding whitespace before it is
        interpreted.

        Raises:
            ValueError: if a SET reply is neither an ack nor an error.
        """
        text = line.strip()

        if text == ERROR_PREFIX or text.startswith(ERROR_PREFIX + " "):
            return Reply.error(text[len(ERROR_PREFIX):].strip())

        if command_type == CommandType.GET:
            if text == MISS_MARKER:
                return Reply.miss()
            return Reply.hit(text)

        if text == ACK:
            return Reply.ack()

        raise ValueError(f"unexpected reply to {command_type.name}: {text[:64]!r}")

    # ------------------------------------------------------------------
    # Server side
    # ------------------------------------------------------------------

    def parse_request(self, data: str) -> Command:
        """
        Parse a raw request line into a Command object.

        Returns a Command with type=UNKNOWN (and ``error`` set) for invalid
        or malformed requests.

        Examples:
            >>> parser = ProtocolParser()
            >>> cmd = parser.parse_request("SET weathers sunny 25")
            >>> cmd.type == CommandType.SET
            True
            >>> cmd.value
            'sunny 25'
        """
        raw = data.rstrip("\r\n").lstrip()
        if not raw.strip():
            return Command(type=CommandType.UNKNOWN, raw=raw, error="empty command")

        command_name = raw.split(maxsplit=1)[0].upper()

        if command_name == "GET":
            return self._parse_get(raw)
        if command_name == "SET":
            return self._parse_set(raw)
        if command_name == "SETEX":
            return self._parse_setex(raw)
        if command_name == "QUIT":
            if len(raw.split()) == 1:
                return Command(type=CommandType.QUIT, raw=raw)
            return Command(type=CommandType.UNKNOWN, raw=raw, error="QUIT takes no arguments")

        return Command(type=CommandType.UNKNOWN, raw=raw, error="unknown command")

    def _parse_get(self, raw: str) -> Command:
        """
        Parse a GET command.

        Format: GET <key>
        """
        parts = raw.split()
        if len(parts) != 2:
            return Command(type=CommandType.UNKNOWN, raw=raw, error="usage: GET <key>")
        if len(parts[1]) > self.max_key_length:
            return Command(type=CommandType.UNKNOWN, raw=raw, error="key too long")
        return Command(type=CommandType.GET, key=parts[1], raw=raw)

    def _parse_set(self, raw: str) -> Command:
        """
        Parse a SET command.

        Format: SET <key> <value...>

        A missing value is the empty string.
        """
        parts = raw.split(maxsplit=2)
        if len(parts) < 2:
            return Command(type=CommandType.UNKNOWN, raw=raw, error="usage: SET <key> <value>")
        key = parts[1]
        value = parts[2] if len(parts) == 3 else ""
        if len(key) > self.max_key_length:
            return Command(type=CommandType.UNKNOWN, raw=raw, error="key too long")
        return Command(type=CommandType.SET, key=key, value=value, raw=raw)

    def _parse_setex(self, raw: str) -> Command:
        """
        Parse a SETEX command.

        Format: SETEX <key> <ttl> <value...>
        """
        parts = raw.split(maxsplit=3)
        if len(parts) < 3:
            return Command(
                type=CommandType.UNKNOWN, raw=raw, error="usage: SETEX <key> <ttl> <value>"
            )
        key, ttl_text = parts[1], parts[2]
        value = parts[3] if len(parts) == 4 else ""
        if len(key) > self.max_key_length:
            return Command(type=CommandType.UNKNOWN, raw=raw, error="key too long")
        try:
            ttl = int(ttl_text)
        except ValueError:
            return Command(type=CommandType.UNKNOWN, raw=raw, error="ttl must be an integer")
        if ttl <= 0:
            return Command(type=CommandType.UNKNOWN, raw=raw, error="ttl must be positive")
        return Command(type=CommandType.SETEX, key=key, value=value, ttl=ttl, raw=raw)

    def format_response(self, reply: Reply) -> str:
        """
        Format a Reply object into a newline-terminated reply line.

        Examples:
            >>> parser = ProtocolParser()
            >>> parser.format_response(Reply.ack())
            'OK\\n'
            >>> parser.format_response(Reply.miss())
            'NOT_FOUND\\n'
            >>> parser.format_response(Reply.error("unknown command"))
            'ERROR unknown command\\n'
        """
        if reply.kind == ReplyKind.VALUE:
            return f"{reply.value}\n"
        if reply.kind == ReplyKind.MISS:
            return f"{MISS_MARKER}\n"
        if reply.kind == ReplyKind.ACK:
            return f"{ACK}\n"
        if reply.message:
            return f"{ERROR_PREFIX} {reply.message}\n"
        return f"{ERROR_PREFIX}\n"
