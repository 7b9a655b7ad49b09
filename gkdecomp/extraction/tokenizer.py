"""Lexical helpers shared by the text-driven extraction strategies."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

__all__ = [
    "LUA_KEYWORDS",
    "Token",
    "tokenize",
    "mask_literals",
    "match_blocks",
    "parse_number",
    "numbers_in",
]

LUA_KEYWORDS = frozenset(
    {
        "and",
        "break",
        "continue",
        "do",
        "else",
        "elseif",
        "end",
        "false",
        "for",
        "function",
        "goto",
        "if",
        "in",
        "local",
        "nil",
        "not",
        "or",
        "repeat",
        "return",
        "then",
        "true",
        "until",
        "while",
    }
)

_TOKEN_RE = re.compile(
    r"""
    (?P<comment>--\[(?P<ceq>=*)\[.*?\](?P=ceq)\]|--[^\n]*)
  | (?P<string>"(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*'|\[(?P<seq>=*)\[.*?\](?P=seq)\])
  | (?P<number>0[xX][0-9a-fA-F_]+|\d[\d_]*(?:\.\d*)?(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)
  | (?P<name>[A-Za-z_]\w*)
  | (?P<op>\.\.\.|\.\.|==|~=|<=|>=|//|::|[-+*/%^#<>=(){}\[\];:,.])
    """,
    re.VERBOSE | re.DOTALL,
)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    start: int
    end: int
    line: int

    @property
    def is_keyword(self) -> bool:
        return self.kind == "name" and self.text in LUA_KEYWORDS


def tokenize(source: str) -> List[Token]:
    """Split ``source`` into tokens, dropping whitespace and comments.

    Characters that start no known token are skipped one at a time.
    """

    tokens: List[Token] = []
    pos = 0
    line = 1
    length = len(source)
    while pos < length:
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            if source[pos] == "\n":
                line += 1
            pos += 1
            continue
        kind = match.lastgroup or "op"
        if kind in ("ceq", "seq"):
            kind = "comment" if match.group("comment") else "string"
        text = match.group(0)
        if kind != "comment":
            tokens.append(Token(kind, text, match.start(), match.end(), line))
        line += text.count("\n")
        pos = match.end()
    return tokens


def mask_literals(source: str) -> str:
    """Blank out comments and string literals, preserving offsets and newlines."""

    def _blank(match: "re.Match[str]") -> str:
        return re.sub(r"[^\n]", " ", match.group(0))

    pieces: List[str] = []
    last = 0
    for token_match in _TOKEN_RE.finditer(source):
        if token_match.group("comment") is None and token_match.group("string") is None:
            continue
        pieces.append(source[last : token_match.start()])
        pieces.append(_blank(token_match))
        last = token_match.end()
    pieces.append(source[last:])
    return "".join(pieces)


_OPENERS = frozenset({"if", "function", "while", "for", "do", "repeat"})


@dataclass
class _OpenBlock:
    index: int
    word: str
    awaiting_do: bool = False


def match_blocks(tokens: Sequence[Token]) -> Dict[int, int]:
    """Map the token index of each block opener to the index of its closer.

    ``while``/``for`` consume the ``do`` that follows them; ``repeat`` closes
    on ``until``.  Openers without a closer are absent from the result.
    """

    pairs: Dict[int, int] = {}
    stack: List[_OpenBlock] = []
    for index, token in enumerate(tokens):
        if not token.is_keyword:
            continue
        word = token.text
        if word == "do" and stack and stack[-1].awaiting_do:
            stack[-1].awaiting_do = False
            continue
        if word in _OPENERS:
            stack.append(_OpenBlock(index, word, awaiting_do=word in ("while", "for")))
        elif word == "end":
            while stack and stack[-1].word == "repeat":
                stack.pop()
            if stack:
                pairs[stack.pop().index] = index
        elif word == "until" and stack and stack[-1].word == "repeat":
            pairs[stack.pop().index] = index
    return pairs


def parse_number(text: str) -> Optional[int]:
    """Return the integer value of a Lua numeric literal (floats truncate)."""

    cleaned = text.replace("_", "")
    try:
        if cleaned.lower().startswith("0x"):
            return int(cleaned, 16)
        if any(ch in cleaned for ch in ".eE"):
            return int(float(cleaned))
        return int(cleaned)
    except (ValueError, OverflowError):
        return None


_NUMBER_RE = re.compile(r"(?<![\w.])(0[xX][0-9a-fA-F]+|\d+(?:\.\d+)?)(?![\w.])")


def numbers_in(text: str, limit: int = 3) -> List[int]:
    """Return up to ``limit`` integer literals appearing in ``text``."""

    values: List[int] = []
    for match in _NUMBER_RE.finditer(text):
        value = parse_number(match.group(1))
        if value is not None:
            values.append(value)
        if len(values) >= limit:
            break
    return values
