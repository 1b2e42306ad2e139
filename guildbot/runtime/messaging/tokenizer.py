"""Split chat messages into command tokens.

Words are separated by whitespace.  Single or double quotes group words into
one token and are removed.  Backslashes have no special meaning, so Windows
paths and regexes survive untouched.
"""

from __future__ import annotations

import shlex
from collections.abc import Iterable

from ..errors import InvalidArguments

_QUOTES = "'\""


def tokenize(text: str) -> list[str]:
    """Return the tokens of *text*; raise ``InvalidArguments`` on an unclosed quote."""
    lexer = shlex.shlex(text, posix=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    lexer.escape = ""
    try:
        return list(lexer)
    except ValueError as exc:
        raise InvalidArguments(f"Could not parse arguments: {exc}") from exc


def quote(token: str) -> str:
    """Quote *token* so that ``tokenize`` reads it back as a single token."""
    if token and not any(ch.isspace() or ch in _QUOTES for ch in token):
        return token
    if '"' not in token:
        return f'"{token}"'
    if "'" not in token:
        return f"'{token}'"
    # Both quote characters: adjacent quoted pieces concatenate into one token.
    pieces = token.split('"')
    return "'\"'".join(f'"{piece}"' for piece in pieces)


def join(tokens: Iterable[str]) -> str:
    """Canonical inverse of ``tokenize``."""
    return " ".join(quote(token) for token in tokens)
