"""
Buffer scanning for completion.

Everything here is a pure function of the buffer text and cursor offset:
- prefix extraction and the comment/string predicate
- recent-usage history inside the enclosing function clause
- function definitions in the buffer
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

QUALIFIER_SEPARATOR = ":"

# Atom characters allowed in a function name at the start of a clause.
DEFINITION_NAME_CHARS = "A-Za-z0-9_@"

# A clause or attribute starts at column 0 with a lowercase atom, a quoted
# atom or a dash.
BLOCK_START_PATTERN = re.compile(r"^(?=[a-z'\-])", re.MULTILINE)


@dataclass(frozen=True)
class BufferContext:
    """Snapshot of a document at the moment completion was triggered."""

    uri: str
    text: str
    offset: int
    language_id: str | None = None

    def text_before_cursor(self) -> str:
        return self.text[: self.offset]


@dataclass(frozen=True)
class PrefixContext:
    """The symbol being typed at the cursor."""

    prefix: str
    in_comment_or_string: bool
    qualifier: str | None

    @property
    def function_part(self) -> str:
        if self.qualifier is None:
            return self.prefix
        return self.prefix[len(self.qualifier) + 1 :]

    @classmethod
    def from_buffer(cls, buffer: BufferContext, symbol_chars: str) -> PrefixContext:
        prefix = extract_prefix(buffer.text, buffer.offset, symbol_chars)
        module, _ = split_qualified(prefix)
        return cls(
            prefix=prefix,
            in_comment_or_string=in_comment_or_string(buffer.text, buffer.offset),
            qualifier=module,
        )


def split_qualified(symbol: str) -> tuple[str | None, str]:
    """Split ``module:function`` into its parts. Unqualified gives (None, symbol)."""
    if QUALIFIER_SEPARATOR not in symbol:
        return None, symbol
    module, _, function = symbol.partition(QUALIFIER_SEPARATOR)
    return module, function


@lru_cache(maxsize=16)
def _prefix_pattern(symbol_chars: str) -> re.Pattern:
    return re.compile(f"[{symbol_chars}]+$")


def extract_prefix(text: str, offset: int, symbol_chars: str) -> str:
    """Scan backward from ``offset`` over ``symbol_chars`` on the current line."""
    line_start = text.rfind("\n", 0, offset) + 1
    match = _prefix_pattern(symbol_chars).search(text, line_start, offset)
    return match.group(0) if match else ""


def in_comment_or_string(text: str, offset: int) -> bool:
    """
    Check whether ``offset`` lies inside an Erlang comment or string literal.

    Quoted atoms and character literals ($x) are skipped so that a quote or
    percent sign inside them does not open a string or comment.
    """
    i = 0
    end = min(offset, len(text))
    while i < end:
        char = text[i]
        if char == "%":
            newline = text.find("\n", i)
            if newline == -1 or newline >= end:
                return True
            i = newline + 1
        elif char == '"' or char == "'":
            closing = _find_closing_quote(text, i + 1, char)
            if closing == -1 or closing >= end:
                return char == '"'
            i = closing + 1
        elif char == "$":
            # $c or $\c
            i += 3 if text[i + 1 : i + 2] == "\\" else 2
        else:
            i += 1
    return False


def _find_closing_quote(text: str, start: int, quote: str) -> int:
    i = start
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == quote:
            return i
        i += 1
    return -1


def find_block_start(text: str, offset: int, window: int) -> int:
    """Offset where the function clause enclosing ``offset`` begins."""
    window_start = max(0, offset - window)
    start = window_start
    for match in BLOCK_START_PATTERN.finditer(text, window_start, offset):
        start = match.start()
    return start


def scan_history(
    buffer: BufferContext,
    prefix: str,
    symbol_chars: str,
    limit: int = 5,
    window: int = 4000,
) -> list[str]:
    """
    Tokens starting with ``prefix`` used earlier in the enclosing clause.

    Most recent first, each token once, at most ``limit`` tokens. The token
    under the cursor and the prefix itself are not reported.
    """
    if not prefix or limit <= 0:
        return []

    block_start = find_block_start(buffer.text, buffer.offset, window)
    pattern = re.compile(
        f"(?<![{symbol_chars}]){re.escape(prefix)}[{symbol_chars}]*"
    )

    matches = list(pattern.finditer(buffer.text, block_start, buffer.offset))
    history: list[str] = []
    for match in reversed(matches):
        if match.end() == buffer.offset:
            continue
        token = match.group(0)
        if token == prefix or token in history:
            continue
        history.append(token)
        if len(history) >= limit:
            break

    return history


def scan_definitions(text: str, prefix: str) -> list[str]:
    """Names of functions defined in ``text`` that start with ``prefix``."""
    if not prefix:
        return []

    pattern = re.compile(
        f"^({re.escape(prefix)}[{DEFINITION_NAME_CHARS}]*)\\(", re.MULTILINE
    )
    names: list[str] = []
    for match in pattern.finditer(text):
        name = match.group(1)
        if name not in names:
            names.append(name)
    return names


def enclosing_call(
    text: str, offset: int, symbol_chars: str, window: int = 2000
) -> tuple[str, int] | None:
    """
    Find the call whose argument list contains ``offset``.

    Returns the called symbol (``lists:map``) and the index of the argument
    under the cursor, or None when the cursor is not inside a call.
    """
    depth = 0
    commas = 0
    i = offset - 1
    stop = max(0, offset - window)
    while i >= stop:
        char = text[i]
        if char in ")]}":
            depth += 1
        elif char in "[{":
            if depth == 0:
                return None
            depth -= 1
        elif char == "(":
            if depth == 0:
                symbol = extract_prefix(text, i, symbol_chars)
                if not symbol:
                    return None
                return symbol, commas
            depth -= 1
        elif char == "," and depth == 0:
            commas += 1
        elif char in ".;" and depth == 0 and text[i + 1 : i + 2] in ("", "\n", " "):
            # End of a previous expression or clause.
            return None
        i -= 1
    return None
