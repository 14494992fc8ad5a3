"""
Implementation of the HH42 thermometer line protocol.

The host writes ``T\\r\\n`` to request a reading. The device answers with
ASCII lines terminated by ``\\r\\n``: either a reading such as ``23.50C``,
``-1.2`` or ``98.6 F``, or an echo/prompt artifact (``T``, ``>``).
"""
from dataclasses import dataclass
from typing import List, Optional

POLL_COMMAND = b"T\r\n"
POLL_INTERVAL_SECONDS = 0.524
LINE_TERMINATOR = "\r\n"
IGNORED_LINES = (">", "T")
UNITS = ("C", "F")

_DIGITS = "0123456789"
# Whitespace as JavaScript trim() and \s see it, restricted to Latin-1.
# str.strip() would also remove \x1c-\x1f and \x85.
_WHITESPACE = " \t\n\r\f\v\xa0"

class LineKind:
    """Classification of a received line."""
    READING = "reading"            # Temperature value with optional unit
    IGNORED = "ignored"            # Echo or prompt artifact
    UNRECOGNIZED = "unrecognized"  # Anything else

@dataclass(frozen=True)
class Reading:
    """A parsed temperature reading."""
    value: float
    unit: str = ""

    def as_dict(self):
        return {"temperature_value": self.value, "unit": self.unit}

@dataclass(frozen=True)
class ParseResult:
    """Tagged result of parsing one line."""
    kind: str
    line: str
    reading: Optional[Reading] = None

class LineBuffer:
    """
    Accumulates received bytes and splits them into complete lines.

    After every feed the buffer holds only the unterminated tail that
    follows the last line terminator.
    """

    def __init__(self):
        self._pending = ""

    @property
    def pending(self) -> str:
        """Text received after the last line terminator."""
        return self._pending

    def feed(self, chunk: bytes) -> List[str]:
        """
        Append a chunk and return the lines it completed, in order.

        Bytes are decoded one-to-one as Latin-1 so no byte is ever rejected
        or merged with its neighbours.
        """
        self._pending += chunk.decode("latin-1")
        lines = self._pending.split(LINE_TERMINATOR)
        self._pending = lines.pop()
        return lines

    def clear(self) -> None:
        self._pending = ""

class Protocol:
    """
    Parses HH42 response lines.

    A reading line is, after trimming: an optional ``-`` (or one whitespace
    character), one or more digits, a decimal point, one or more digits, at
    most one whitespace character, then an optional ``C`` or ``F``.
    """

    @staticmethod
    def parse_line(line: str) -> ParseResult:
        """
        Classify a single line received from the thermometer.

        Args:
            line: Line without its terminator

        Returns:
            ParseResult: READING with a Reading, IGNORED, or UNRECOGNIZED
        """
        trimmed = line.strip(_WHITESPACE)

        if trimmed in IGNORED_LINES:
            return ParseResult(LineKind.IGNORED, trimmed)

        number_end = Protocol._scan_number(trimmed)
        if number_end is None:
            return ParseResult(LineKind.UNRECOGNIZED, trimmed)

        pos = number_end
        if pos < len(trimmed) and trimmed[pos] in _WHITESPACE:
            pos += 1
        if pos < len(trimmed) and trimmed[pos] in UNITS:
            pos += 1
        if pos != len(trimmed):
            return ParseResult(LineKind.UNRECOGNIZED, trimmed)

        value = float(trimmed[:number_end])
        unit = trimmed[-1] if trimmed[-1] in UNITS else ""
        return ParseResult(LineKind.READING, trimmed, Reading(value, unit))

    @staticmethod
    def _scan_number(text: str) -> Optional[int]:
        """
        Scan ``[-|ws]digits.digits`` from the start of text.

        Returns:
            Optional[int]: Index just past the number, or None if absent
        """
        pos = 0
        if text[:1] == "-" or (text[:1] and text[0] in _WHITESPACE):
            pos = 1

        start = pos
        while pos < len(text) and text[pos] in _DIGITS:
            pos += 1
        if pos == start or text[pos:pos + 1] != ".":
            return None

        pos += 1
        start = pos
        while pos < len(text) and text[pos] in _DIGITS:
            pos += 1
        if pos == start:
            return None

        return pos
