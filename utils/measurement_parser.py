"""Free-text measurement parser.

Turns one chat message into measurement records. Accepted input::

    DATE: 2023-05-15          <- optional date header, applies to every line
    Weight - 75.3             <- key - value
    "Chest" - 117,8           <- quoted key, comma decimal
    Biceps 41.9               <- key value

Pairs may also be given on one line separated by commas::

    "Weight" - 75.3, "Chest" - 117.8

The parser is a pure function: no I/O, no shared state. A message either
parses completely or raises ``ParseError``; partial results are never
returned.
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

# digits, optionally followed by a "." or "," decimal part
NUMBER = r"[0-9]+(?:[.,][0-9]+)?"


class ParseError(ValueError):
    """A message fragment could not be resolved into a key and a number."""

    def __init__(self, fragment: str, reason: str = "Invalid format in pair"):
        self.fragment = fragment
        self.reason = reason
        super().__init__(f"{reason}: {fragment}")


@dataclass(frozen=True)
class ParsedRecord:
    """One measurement parsed from a message.

    ``timestamp`` is only set when the message carried a date header;
    ``None`` means the caller stamps the record with the current time.
    """

    key: str
    value: float
    timestamp: Optional[datetime] = None


# ============================================================================
# Date header
# ============================================================================

@dataclass(frozen=True)
class DatePattern:
    """A date header dialect: an anchored regex and its field order."""

    regex: re.Pattern
    day_first: bool

    def extract(self, text: str) -> Optional[tuple[Optional[datetime], str]]:
        """Match at the start of ``text``.

        Returns None when the shape doesn't match. A matching shape that is
        not a real calendar date gives ``(None, text)``: the date counts as
        absent and the text is left untouched.
        """
        match = self.regex.match(text)
        if match is None:
            return None
        first, second, third = (int(part) for part in match.group("a", "b", "c"))
        year, month, day = (third, second, first) if self.day_first else (first, second, third)
        try:
            timestamp = datetime(year, month, day, tzinfo=timezone.utc)
        except ValueError:
            return None, text
        return timestamp, text[match.end():].lstrip()


_YMD = r"(?P<a>[0-9]{4})(?P<sep>[-/.])(?P<b>[0-9]{1,2})(?P=sep)(?P<c>[0-9]{1,2})"
_DMY = r"(?P<a>[0-9]{1,2})(?P<sep>[-/.])(?P<b>[0-9]{1,2})(?P=sep)(?P<c>[0-9]{4})"
_LABEL = r"date:\s*"
_TOKEN_END = r"(?=\s|$)"

# Tried in order, first shape match wins. New dialects go at the end.
DATE_PATTERNS: tuple[DatePattern, ...] = (
    DatePattern(re.compile(_LABEL + _YMD + _TOKEN_END, re.IGNORECASE), day_first=False),
    DatePattern(re.compile(_LABEL + _DMY + _TOKEN_END, re.IGNORECASE), day_first=True),
    DatePattern(re.compile(_YMD + _TOKEN_END), day_first=False),
    DatePattern(re.compile(_DMY + _TOKEN_END), day_first=True),
)


def extract_date(text: str) -> tuple[Optional[datetime], str]:
    """Split a leading date header off ``text``.

    Returns the header's date (UTC midnight) and the remaining text, or
    ``(None, text)`` when there is no valid header.
    """
    for pattern in DATE_PATTERNS:
        result = pattern.extract(text)
        if result is not None:
            return result
    return None, text


# ============================================================================
# Fragments
# ============================================================================

# A comma that is not a decimal separator (not wedged between two digits)
_LIST_COMMA = re.compile(r"(?<![0-9]),|,(?![0-9])")


def split_fragments(text: str) -> list[str]:
    """Split a message body into trimmed, non-empty pair fragments.

    The whole message is either comma-separated (when it contains a list
    comma) or newline-separated.
    """
    if _LIST_COMMA.search(text):
        pieces = _LIST_COMMA.split(text)
    else:
        pieces = text.split("\n")
    return [piece.strip() for piece in pieces if piece.strip()]


# ============================================================================
# Pair grammars
# ============================================================================

_QUOTED_DASH = re.compile(rf'"(?P<key>[^"]*)"\s*-\s*(?P<value>{NUMBER})')
# greedy key: the split happens at the last dash
_UNQUOTED_DASH = re.compile(rf"(?P<key>.*)-\s*(?P<value>{NUMBER})")
# no dash in the key; dashed fragments belong to the dash forms
_SPACE_SEPARATED = re.compile(rf"(?P<key>[^-]*?)\s+(?P<value>{NUMBER})")

PairGrammar = Callable[[str], Optional[tuple[str, str]]]


def _grammar(regex: re.Pattern) -> PairGrammar:
    def match_pair(fragment: str) -> Optional[tuple[str, str]]:
        match = regex.fullmatch(fragment)
        if match is None:
            return None
        return match.group("key"), match.group("value")
    return match_pair


match_quoted_dash = _grammar(_QUOTED_DASH)
match_unquoted_dash = _grammar(_UNQUOTED_DASH)
match_space_separated = _grammar(_SPACE_SEPARATED)

PAIR_GRAMMARS: tuple[PairGrammar, ...] = (
    match_quoted_dash,
    match_unquoted_dash,
    match_space_separated,
)


def _clean_key(raw: str) -> str:
    key = raw.strip()
    if len(key) >= 2 and key[0] == key[-1] == '"':
        key = key[1:-1].strip()
    return key


def parse_value(text: str, fragment: str) -> float:
    """Parse a dot- or comma-decimal numeral."""
    try:
        value = float(text.replace(",", "."))
    except ValueError:
        raise ParseError(fragment, "Invalid number in pair") from None
    if not math.isfinite(value):
        raise ParseError(fragment, "Invalid number in pair")
    return value


def parse_fragment(fragment: str) -> tuple[str, float]:
    """Resolve one fragment into ``(key, value)`` or raise ParseError."""
    for grammar in PAIR_GRAMMARS:
        pair = grammar(fragment)
        if pair is not None:
            break
    else:
        raise ParseError(fragment)

    raw_key, raw_value = pair
    key = _clean_key(raw_key)
    if not key:
        raise ParseError(fragment, "Missing metric name in pair")
    return key, parse_value(raw_value, fragment)


def parse_message(message: str) -> list[ParsedRecord]:
    """Parse a chat message into measurement records.

    Args:
        message: Raw message text

    Returns:
        One record per non-empty fragment, in message order. All records
        share the header date when the message starts with one.

    Raises:
        ParseError: If any fragment is malformed
    """
    timestamp, body = extract_date(message.strip())
    return [
        ParsedRecord(key=key, value=value, timestamp=timestamp)
        for key, value in map(parse_fragment, split_fragments(body))
    ]
