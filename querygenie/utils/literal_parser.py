"""
Restrictive parser for MongoDB shell argument literals.

Models often emit shell syntax rather than strict JSON, e.g.
`{ status: 'active', createdAt: { $gte: ISODate("2024-01-01") } }`.
This parser accepts exactly one data literal and nothing else: objects,
arrays, strings, numbers, booleans, null, regex literals and a handful of
BSON constructors. There is no evaluation of any kind, so function calls,
operators and statements are rejected.
"""

import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from bson import ObjectId
from bson.errors import InvalidId

_NUMBER_RE = re.compile(r"[+-]?(?:0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][\w$]*")
_SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b",
    "f": "\f", "v": "\v", "0": "\0",
}
_MONGO_REGEX_OPTIONS = set("imsx")


class LiteralParseError(ValueError):
    """Raised when the input is not a single plain data literal."""


def parse_js_literal(text: str) -> Any:
    """Parse a single JavaScript-style data literal into Python values."""
    parser = _LiteralParser(text)
    value = parser.parse_value()
    parser.skip_whitespace()
    if not parser.at_end():
        raise parser.error("Unexpected trailing input")
    return value


def _parse_date(value: Any) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        date_str = value.strip()
        if date_str.endswith("Z"):
            date_str = date_str[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(date_str)
        except ValueError as e:
            raise LiteralParseError(f"Invalid date: {value!r}") from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise LiteralParseError(f"Invalid date: {value!r}")


def _parse_object_id(value: Any) -> ObjectId:
    if value is None:
        return ObjectId()
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as e:
        raise LiteralParseError(f"Invalid ObjectId: {value!r}") from e


def _parse_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise LiteralParseError(f"Invalid integer: {value!r}") from e


# Constructors that produce data, keyed by name. `new` is accepted in front of any of them.
_CONSTRUCTORS: Dict[str, Callable[[Any], Any]] = {
    "ObjectId": _parse_object_id,
    "ISODate": _parse_date,
    "Date": _parse_date,
    "NumberInt": _parse_int,
    "NumberLong": _parse_int,
}

_KEYWORDS = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
}


class _LiteralParser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def error(self, message: str) -> LiteralParseError:
        return LiteralParseError(f"{message} at position {self.pos}")

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def expect(self, char: str) -> None:
        self.skip_whitespace()
        if self.peek() != char:
            raise self.error(f"Expected {char!r}")
        self.pos += 1

    def parse_value(self) -> Any:
        self.skip_whitespace()
        char = self.peek()
        if not char:
            raise self.error("Unexpected end of input")
        if char == "{":
            return self.parse_object()
        if char == "[":
            return self.parse_array()
        if char in "\"'":
            return self.parse_string()
        if char == "/":
            return self.parse_regex()
        if char.isdigit() or char in "+-.":
            return self.parse_number()
        return self.parse_identifier_value()

    def parse_object(self) -> Dict[str, Any]:
        self.expect("{")
        result: Dict[str, Any] = {}
        while True:
            self.skip_whitespace()
            if self.peek() == "}":
                self.pos += 1
                return result
            key = self.parse_key()
            self.expect(":")
            result[key] = self.parse_value()
            self.skip_whitespace()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != "}":
                raise self.error("Expected ',' or '}'")

    def parse_key(self) -> str:
        char = self.peek()
        if char in "\"'":
            return self.parse_string()
        if char.isdigit():
            return str(self.parse_number())
        match = _IDENTIFIER_RE.match(self.text, self.pos)
        if not match:
            raise self.error("Expected object key")
        self.pos = match.end()
        return match.group()

    def parse_array(self) -> List[Any]:
        self.expect("[")
        result: List[Any] = []
        while True:
            self.skip_whitespace()
            if self.peek() == "]":
                self.pos += 1
                return result
            result.append(self.parse_value())
            self.skip_whitespace()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != "]":
                raise self.error("Expected ',' or ']'")

    def parse_string(self) -> str:
        quote = self.peek()
        self.pos += 1
        chars: List[str] = []
        while True:
            if self.at_end():
                raise self.error("Unterminated string")
            char = self.text[self.pos]
            self.pos += 1
            if char == quote:
                return "".join(chars)
            if char != "\\":
                chars.append(char)
                continue
            if self.at_end():
                raise self.error("Unterminated string")
            escaped = self.text[self.pos]
            self.pos += 1
            if escaped in _SIMPLE_ESCAPES:
                chars.append(_SIMPLE_ESCAPES[escaped])
            elif escaped in "ux":
                width = 4 if escaped == "u" else 2
                digits = self.text[self.pos:self.pos + width]
                if len(digits) != width or not all(c in "0123456789abcdefABCDEF" for c in digits):
                    raise self.error("Invalid escape sequence")
                chars.append(chr(int(digits, 16)))
                self.pos += width
            else:
                chars.append(escaped)

    def parse_number(self) -> Any:
        match = _NUMBER_RE.match(self.text, self.pos)
        if not match:
            raise self.error("Invalid number")
        self.pos = match.end()
        raw = match.group()
        if raw.lstrip("+-")[:2].lower() == "0x":
            return int(raw, 16)
        if any(c in raw for c in ".eE"):
            return float(raw)
        return int(raw)

    def parse_regex(self) -> Dict[str, str]:
        self.pos += 1
        start = self.pos
        in_class = False
        while True:
            if self.at_end():
                raise self.error("Unterminated regular expression")
            char = self.text[self.pos]
            if char == "\\":
                self.pos += 2
                continue
            if char == "[":
                in_class = True
            elif char == "]":
                in_class = False
            elif char == "/" and not in_class:
                break
            elif char == "\n":
                raise self.error("Unterminated regular expression")
            self.pos += 1
        pattern = self.text[start:self.pos]
        self.pos += 1
        flags_start = self.pos
        while self.peek().isalpha():
            self.pos += 1
        flags = self.text[flags_start:self.pos]
        options = "".join(flag for flag in flags if flag in _MONGO_REGEX_OPTIONS)
        return {"$regex": pattern, "$options": options}

    def parse_identifier_value(self) -> Any:
        match = _IDENTIFIER_RE.match(self.text, self.pos)
        if not match:
            raise self.error(f"Unexpected character {self.peek()!r}")
        name = match.group()
        self.pos = match.end()

        if name in _KEYWORDS:
            return _KEYWORDS[name]

        if name == "new":
            self.skip_whitespace()
            match = _IDENTIFIER_RE.match(self.text, self.pos)
            if not match or match.group() not in _CONSTRUCTORS:
                raise self.error("Only data constructors may follow 'new'")
            name = match.group()
            self.pos = match.end()

        if name not in _CONSTRUCTORS:
            raise self.error(f"Unsupported identifier {name!r}")

        self.expect("(")
        self.skip_whitespace()
        argument = None
        if self.peek() != ")":
            argument = self.parse_value()
        self.expect(")")
        return _CONSTRUCTORS[name](argument)
