# src/httpsim/globs.py
"""Glob patterns used by resource rules.

Syntax (case-sensitive, no path separators, so ``*`` crosses ``/``):

    *            any sequence of characters
    ?            any single character
    [abc] [a-z]  one character from the class; ``[!...]`` negates it
    {a,b*}       any of the comma-separated alternatives, which may nest
    \\x           the literal character x

A ``GlobPattern`` built without a source is the "no constraint" matcher
and accepts every candidate, including ``""``.

Usage:
    pattern = GlobPattern.compile("/api/{users,orders}/*")
    pattern.match("/api/users/42")   # True
    MATCH_ALL.match("")              # True
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema


class InvalidPatternError(ValueError):
    """Raised when a glob pattern cannot be compiled."""


def _translate_class(text: str, start: int, parts: list[str]) -> int:
    """Translate the character class opened just before ``start``.

    Returns the index after the closing ``]``.
    """
    i = start
    negate = i < len(text) and text[i] == "!"
    if negate:
        i += 1
    items: list[str] = []
    while True:
        if i >= len(text):
            raise InvalidPatternError(f"unclosed '[' in glob pattern {text!r}")
        char = text[i]
        if char == "]":
            break
        if char == "\\":
            i += 1
            if i >= len(text):
                raise InvalidPatternError(f"unclosed '[' in glob pattern {text!r}")
            char = text[i]
        i += 1
        if i + 1 < len(text) and text[i] == "-" and text[i + 1] != "]":
            high = text[i + 1]
            i += 2
            if high < char:
                raise InvalidPatternError(f"invalid range {char}-{high} in glob pattern {text!r}")
            items.append(f"{re.escape(char)}-{re.escape(high)}")
        else:
            items.append(re.escape(char))
    if not items:
        raise InvalidPatternError(f"empty character class in glob pattern {text!r}")
    parts.append("[" + ("^" if negate else "") + "".join(items) + "]")
    return i + 1


def _translate(text: str) -> str:
    """Translate glob text into an equivalent regular expression."""
    parts: list[str] = []
    depth = 0
    i = 0
    while i < len(text):
        char = text[i]
        i += 1
        if char == "\\":
            if i >= len(text):
                raise InvalidPatternError(f"trailing '\\' in glob pattern {text!r}")
            parts.append(re.escape(text[i]))
            i += 1
        elif char == "*":
            # Runs of * are one wildcard.
            if not parts or parts[-1] != ".*":
                parts.append(".*")
        elif char == "?":
            parts.append(".")
        elif char == "[":
            i = _translate_class(text, i, parts)
        elif char == "{":
            depth += 1
            parts.append("(?:")
        elif char == "," and depth:
            parts.append("|")
        elif char == "}" and depth:
            depth -= 1
            parts.append(")")
        else:
            parts.append(re.escape(char))
    if depth:
        raise InvalidPatternError(f"unclosed '{{' in glob pattern {text!r}")
    return "".join(parts)


class GlobPattern:
    """Compiled glob expression.

    Equality and hashing use the source string, so two patterns written
    the same way are the same dictionary key.
    """

    __slots__ = ("_regex", "_source")

    def __init__(self) -> None:
        self._source: str | None = None
        self._regex: re.Pattern[str] | None = None

    @classmethod
    def compile(cls, pattern: str | bytes) -> GlobPattern:
        """Compile a glob pattern.

        Args:
            pattern: Pattern text. Bytes must be valid UTF-8.

        Returns:
            Compiled pattern.

        Raises:
            InvalidPatternError: If the pattern is not valid UTF-8 or breaks
                glob syntax (unclosed class or alternation, trailing escape,
                empty class, reversed range).
        """
        if isinstance(pattern, bytes):
            try:
                text = pattern.decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidPatternError(f"invalid UTF-8 in glob pattern: {pattern!r}") from e
        elif isinstance(pattern, str):
            text = pattern
            try:
                text.encode("utf-8")
            except UnicodeEncodeError as e:
                raise InvalidPatternError(f"invalid UTF-8 in glob pattern: {pattern!r}") from e
        else:
            raise InvalidPatternError(f"glob pattern must be a string, got {type(pattern).__name__}")

        regex = re.compile(_translate(text), re.DOTALL)

        compiled = cls()
        compiled._source = text
        compiled._regex = regex
        return compiled

    @property
    def source(self) -> str | None:
        """Original pattern text, or None for the match-all pattern."""
        return self._source

    @property
    def is_match_all(self) -> bool:
        return self._regex is None

    def match(self, candidate: str) -> bool:
        """Return True if candidate matches this pattern."""
        if self._regex is None:
            return True
        return self._regex.fullmatch(candidate) is not None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GlobPattern):
            return NotImplemented
        return self._source == other._source

    def __hash__(self) -> int:
        return hash(self._source)

    def __str__(self) -> str:
        return "" if self._source is None else self._source

    def __repr__(self) -> str:
        if self._source is None:
            return "GlobPattern()"
        return f"GlobPattern.compile({self._source!r})"

    @classmethod
    def _validate(cls, value: Any) -> GlobPattern:
        if isinstance(value, GlobPattern):
            return value
        if value is None:
            return MATCH_ALL
        return cls.compile(value)

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(lambda pattern: pattern.source),
        )


MATCH_ALL = GlobPattern()
