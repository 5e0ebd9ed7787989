"""ICU MessageFormat syntax validation.

Supports literal text with apostrophe quoting, simple arguments ``{name}``,
formatted arguments ``{n, number[, style]}`` and the complex forms
``plural``, ``selectordinal`` and ``select``. The parser only validates
structure and collects argument names; it never formats messages.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_SIMPLE_TYPES = frozenset({"number", "date", "time", "spellout", "ordinal", "duration"})
_PLURAL_TYPES = frozenset({"plural", "selectordinal"})
_PLURAL_CATEGORIES = frozenset({"zero", "one", "two", "few", "many", "other"})
_EXPLICIT_SELECTOR_RE = re.compile(r"^=\d+$")
_SYNTAX_CHARS = frozenset("{}")
_DOUBLE_CURLY_RE = re.compile(r"\{\{[^{}\r\n]+?\}\}")


class IcuSyntaxError(ValueError):
    """Raised when a message violates ICU MessageFormat syntax."""

    def __init__(self, message: str, position: int) -> None:
        super().__init__(message)
        self.position = position


@dataclass(slots=True)
class IcuValidationResult:
    """Outcome of validating one message."""

    valid: bool
    error: str | None = None
    arguments: list[str] = field(default_factory=list)


def validate_icu_syntax(text: str) -> IcuValidationResult:
    """Validate ``text``; errors are reported in the result, never raised."""

    try:
        arguments = parse_icu_arguments(text)
    except IcuSyntaxError as exc:
        return IcuValidationResult(valid=False, error=str(exc))
    return IcuValidationResult(valid=True, arguments=arguments)


def parse_icu_arguments(text: str) -> list[str]:
    """Return argument names in order of first appearance; raise on bad syntax."""

    parser = _IcuParser(text)
    parser.parse()
    return parser.arguments


def mask_templates(text: str) -> str:
    """Blank out ``{{name}}`` templates, keeping every other character position."""

    return _DOUBLE_CURLY_RE.sub(lambda match: " " * len(match.group(0)), text)


def looks_like_icu(text: str) -> bool:
    """True when any brace remains once double-curly templates are masked."""

    return any(char in _SYNTAX_CHARS for char in mask_templates(text))


class _IcuParser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.arguments: list[str] = []

    def parse(self) -> None:
        self._parse_message(depth=0, in_plural=False)
        if self.pos < len(self.text):
            raise IcuSyntaxError(f"Unmatched '}}' at position {self.pos}", self.pos)

    def _parse_message(self, *, depth: int, in_plural: bool) -> None:
        text = self.text
        while self.pos < len(text):
            char = text[self.pos]
            if char == "'":
                self._skip_quoted(in_plural=in_plural)
            elif char == "{":
                self._parse_argument()
            elif char == "}":
                if depth == 0:
                    raise IcuSyntaxError(f"Unmatched '}}' at position {self.pos}", self.pos)
                return
            else:
                self.pos += 1

    def _skip_quoted(self, *, in_plural: bool) -> None:
        text = self.text
        nxt = text[self.pos + 1] if self.pos + 1 < len(text) else ""
        if nxt == "'":
            self.pos += 2
            return
        if nxt in _SYNTAX_CHARS or (in_plural and nxt == "#"):
            closing = text.find("'", self.pos + 1)
            # An unterminated quote runs to the end of the message.
            self.pos = len(text) if closing == -1 else closing + 1
            return
        self.pos += 1

    def _parse_argument(self) -> None:
        start = self.pos
        self.pos += 1
        self._skip_whitespace()
        name = self._read_token(stop=",{}")
        if not name:
            if self.pos >= len(self.text):
                raise IcuSyntaxError(f"Unclosed brace at position {start}", start)
            raise IcuSyntaxError(f"Empty argument name at position {start}", start)
        if name not in self.arguments:
            self.arguments.append(name)
        self._skip_whitespace()
        char = self._peek()
        if char is None:
            raise IcuSyntaxError(f"Unclosed brace at position {start}", start)
        if char == "}":
            self.pos += 1
            return
        if char != ",":
            raise IcuSyntaxError(f"Unexpected character '{char}' in argument at position {self.pos}", self.pos)

        self.pos += 1
        self._skip_whitespace()
        arg_type = self._read_token(stop=",{}")
        if not arg_type:
            raise IcuSyntaxError(f"Missing argument type for '{name}' at position {self.pos}", self.pos)
        self._skip_whitespace()

        if arg_type in _SIMPLE_TYPES:
            self._finish_simple_argument(start)
        elif arg_type in _PLURAL_TYPES or arg_type == "select":
            self._parse_options(start, name=name, arg_type=arg_type)
        else:
            raise IcuSyntaxError(f"Unknown argument type '{arg_type}' for '{name}'", self.pos)

    def _finish_simple_argument(self, start: int) -> None:
        char = self._peek()
        if char is None:
            raise IcuSyntaxError(f"Unclosed brace at position {start}", start)
        if char == ",":
            self.pos += 1
            style_end = self._find_style_end()
            if style_end == -1:
                raise IcuSyntaxError(f"Unclosed brace at position {start}", start)
            if not self.text[self.pos:style_end].strip():
                raise IcuSyntaxError(f"Empty argument style at position {self.pos}", self.pos)
            self.pos = style_end + 1
            return
        if char != "}":
            raise IcuSyntaxError(f"Unexpected character '{char}' in argument at position {self.pos}", self.pos)
        self.pos += 1

    def _find_style_end(self) -> int:
        depth = 0
        for index in range(self.pos, len(self.text)):
            char = self.text[index]
            if char == "{":
                depth += 1
            elif char == "}":
                if depth == 0:
                    return index
                depth -= 1
        return -1

    def _parse_options(self, start: int, *, name: str, arg_type: str) -> None:
        if self._peek() != ",":
            if self._peek() is None:
                raise IcuSyntaxError(f"Unclosed brace at position {start}", start)
            raise IcuSyntaxError(f"Expected ',' after '{arg_type}' in argument '{name}'", self.pos)
        self.pos += 1
        is_plural = arg_type in _PLURAL_TYPES
        selectors: list[str] = []
        while True:
            self._skip_whitespace()
            char = self._peek()
            if char is None:
                raise IcuSyntaxError(f"Unclosed brace at position {start}", start)
            if char == "}":
                self.pos += 1
                break
            if is_plural and not selectors and self.text.startswith("offset:", self.pos):
                self._parse_offset()
                continue
            selector_position = self.pos
            selector = self._read_token(stop="{}")
            if not selector:
                raise IcuSyntaxError(f"Expected selector in '{name}' at position {self.pos}", self.pos)
            if is_plural and selector not in _PLURAL_CATEGORIES and not _EXPLICIT_SELECTOR_RE.match(selector):
                raise IcuSyntaxError(
                    f"Invalid {arg_type} selector '{selector}' at position {selector_position}",
                    selector_position,
                )
            if selector in selectors:
                raise IcuSyntaxError(
                    f"Duplicate selector '{selector}' at position {selector_position}",
                    selector_position,
                )
            selectors.append(selector)
            self._skip_whitespace()
            if self._peek() != "{":
                raise IcuSyntaxError(f"Expected '{{' after selector '{selector}'", self.pos)
            message_start = self.pos
            self.pos += 1
            self._parse_message(depth=1, in_plural=is_plural)
            if self._peek() != "}":
                raise IcuSyntaxError(f"Unclosed brace at position {message_start}", message_start)
            self.pos += 1

        if not selectors:
            raise IcuSyntaxError(f"'{arg_type}' argument '{name}' has no options", start)
        if "other" not in selectors:
            raise IcuSyntaxError(f"Missing 'other' option in {arg_type} argument '{name}'", start)

    def _parse_offset(self) -> None:
        self.pos += len("offset:")
        self._skip_whitespace()
        digits_start = self.pos
        while self.pos < len(self.text) and self.text[self.pos].isdigit():
            self.pos += 1
        if self.pos == digits_start:
            raise IcuSyntaxError(f"Invalid plural offset at position {digits_start}", digits_start)

    def _read_token(self, *, stop: str) -> str:
        begin = self.pos
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char.isspace() or char in stop:
                break
            self.pos += 1
        return self.text[begin:self.pos]

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _peek(self) -> str | None:
        return self.text[self.pos] if self.pos < len(self.text) else None
