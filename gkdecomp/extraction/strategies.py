"""Instruction synthesis strategies used by :mod:`gkdecomp.extraction.cascade`.

Every strategy turns readable script text into a sequence of
:class:`~gkdecomp.vm.instruction.Instruction` records.  None of them recovers
real bytecode: the sequences are synthetic approximations that are good
enough to drive the graph, liveness and rendering stages.
"""

from __future__ import annotations

import abc
import contextlib
import enum
import io
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..config import DecompilerConfig
from ..exceptions import ExtractionError
from ..runtime_capture.reflection import ReflectionHook
from ..vm.instruction import Instruction, InstructionSpec, assemble
from ..vm.opcode_constants import NOOP_OPCODE, normalize_mnemonic
from ..vm.opcodes import Opcode
from .tokenizer import Token, mask_literals, match_blocks, numbers_in, parse_number, tokenize

LOG = logging.getLogger(__name__)

__all__ = [
    "StrategyKind",
    "StrategyContext",
    "ExtractionStrategy",
    "PatternTaggingStrategy",
    "ExecutionTraceStrategy",
    "SignatureScanStrategy",
    "TokenSynthesisStrategy",
    "default_strategies",
]


class StrategyKind(enum.Enum):
    PATTERN_TAGGING = "pattern_tagging"
    EXECUTION_TRACE = "execution_trace"
    SIGNATURE_SCAN = "signature_scan"
    TOKEN_SYNTHESIS = "token_synthesis"


@dataclass
class StrategyContext:
    config: DecompilerConfig
    hook: Optional[ReflectionHook] = None
    script: Any = None


class ExtractionStrategy(abc.ABC):
    """One way of deriving instructions from script text."""

    kind: StrategyKind

    def is_enabled(self, context: StrategyContext) -> bool:
        return True

    @abc.abstractmethod
    def derive(self, text: str, context: StrategyContext) -> Tuple[Instruction, ...]:
        """Return the derived instructions, raising on failure."""

    def _finish(self, specs: Sequence[InstructionSpec], context: StrategyContext) -> Tuple[Instruction, ...]:
        if len(specs) > context.config.max_instructions:
            LOG.debug(
                "%s produced %d instructions; truncating to %d",
                self.kind.value,
                len(specs),
                context.config.max_instructions,
            )
        return assemble(specs, strategy=self.kind.value, limit=context.config.max_instructions)


# ---------------------------------------------------------------------------
# Pattern tagging
# ---------------------------------------------------------------------------

_CALL_EXCLUDED = r"(?:and|or|not|if|elseif|while|until|return|in|function|local)"

# Earlier entries win when two matches start at the same offset.
_TAG_PATTERNS: Tuple[Tuple[str, Opcode, "re.Pattern[str]"], ...] = (
    ("closure", Opcode.NEWCLOSURE, re.compile(r"\bfunction\b(?:\s+[\w.:]+)?\s*\(")),
    ("local", Opcode.MOVE, re.compile(r"\blocal\s+(?!function\b)\w+")),
    ("return", Opcode.RETURN, re.compile(r"\breturn\b")),
    ("if", Opcode.JUMPIF, re.compile(r"\bif\b")),
    ("while", Opcode.JUMPBACK, re.compile(r"\bwhile\b")),
    ("for", Opcode.FORNPREP, re.compile(r"\bfor\b")),
    ("namecall", Opcode.NAMECALL, re.compile(r"[.:][A-Za-z_]\w*\s*\(")),
    ("call", Opcode.CALL, re.compile(r"\b(?!%s\b)[A-Za-z_]\w*\s*\(" % _CALL_EXCLUDED)),
)

_TAG_JUMPS = frozenset({Opcode.JUMPIF, Opcode.JUMPBACK})


@dataclass(frozen=True)
class _Tag:
    start: int
    end: int
    priority: int
    name: str
    opcode: Opcode


def _parses_as_lua(text: str) -> bool:
    try:
        from luaparser import ast
    except ImportError as exc:
        raise ExtractionError("luaparser is not available") from exc
    # luaparser's ANTLR error listener prints to stderr; keep it in the log.
    noise = io.StringIO()
    try:
        with contextlib.redirect_stderr(noise):
            ast.parse(text)
    except Exception as exc:
        LOG.debug("luaparser rejected the text: %s", exc)
        return False
    finally:
        if noise.getvalue():
            LOG.debug("luaparser diagnostics: %s", noise.getvalue().strip())
    return True


class PatternTaggingStrategy(ExtractionStrategy):
    """Tag structural constructs found by regular expressions.

    Only text that parses as Lua is considered.  Matches of every pattern are
    merged in source order; a match overlapping an earlier one is dropped.
    """

    kind = StrategyKind.PATTERN_TAGGING

    def derive(self, text: str, context: StrategyContext) -> Tuple[Instruction, ...]:
        if not text.strip():
            raise ExtractionError("no text to tag")
        if not _parses_as_lua(text):
            raise ExtractionError("text does not parse as lua")

        masked = mask_literals(text)
        tags = self._collect(masked)
        if not tags:
            raise ExtractionError("no structural patterns matched")

        closers = self._closer_ends(text)
        specs: List[InstructionSpec] = []
        for position, tag in enumerate(tags):
            if tag.opcode in _TAG_JUMPS:
                closer_end = closers.get(tag.start)
                operands: Tuple[int, ...] = (1, 0, 0)
                if closer_end is not None:
                    target = next(
                        (index for index in range(position + 1, len(tags)) if tags[index].start >= closer_end),
                        len(tags),
                    )
                    operands = (target - position, 0, 0)
            else:
                line_end = masked.find("\n", tag.start)
                if line_end < 0:
                    line_end = len(masked)
                operands = tuple(numbers_in(masked[tag.end : line_end]))
            specs.append(
                InstructionSpec(
                    tag.opcode,
                    operands,
                    metadata={"pattern": tag.name, "span": (tag.start, tag.end)},
                )
            )
        return self._finish(specs, context)

    @staticmethod
    def _collect(masked: str) -> List[_Tag]:
        candidates: List[_Tag] = []
        for priority, (name, opcode, pattern) in enumerate(_TAG_PATTERNS):
            for match in pattern.finditer(masked):
                candidates.append(_Tag(match.start(), match.end(), priority, name, opcode))
        candidates.sort(key=lambda tag: (tag.start, tag.priority))

        tags: List[_Tag] = []
        last_end = -1
        for tag in candidates:
            if tag.start < last_end:
                continue
            tags.append(tag)
            last_end = tag.end
        return tags

    @staticmethod
    def _closer_ends(text: str) -> Dict[int, int]:
        tokens = tokenize(text)
        return {tokens[opener].start: tokens[closer].end for opener, closer in match_blocks(tokens).items()}


# ---------------------------------------------------------------------------
# Execution trace sampling
# ---------------------------------------------------------------------------


class ExecutionTraceStrategy(ExtractionStrategy):
    """Turn line events reported by the reflection hook into ``COVERAGE``."""

    kind = StrategyKind.EXECUTION_TRACE

    def is_enabled(self, context: StrategyContext) -> bool:
        return context.config.deep_analysis and context.hook is not None

    def derive(self, text: str, context: StrategyContext) -> Tuple[Instruction, ...]:
        if context.hook is None:
            raise ExtractionError("no reflection hook configured")
        lines = context.hook.trace_lines(
            text,
            max_events=context.config.max_hook_events,
            timeout=context.config.hook_timeout,
        )
        if not lines:
            raise ExtractionError("trace produced no line events")
        specs = [
            InstructionSpec(Opcode.COVERAGE, (line, 0, 0), metadata={"line": line, "synthetic": True})
            for line in lines[: context.config.max_hook_events]
        ]
        return self._finish(specs, context)


# ---------------------------------------------------------------------------
# Signature scanning
# ---------------------------------------------------------------------------

SIGNATURES: Tuple[Tuple[str, ...], ...] = (
    ("LOADK", "CALL"),
    ("GETGLOBAL", "CALL"),
    ("MOVE", "RETURN"),
    ("JUMP", "LABEL"),
)


def _signature_pattern(words: Sequence[str]) -> "re.Pattern[str]":
    body = r"\b.*?\b".join("(%s)" % re.escape(word) for word in words)
    return re.compile(r"\b%s\b" % body, re.DOTALL)


class SignatureScanStrategy(ExtractionStrategy):
    """Look for disassembly-like mnemonic fragments in the text.

    Each occurrence of a signature contributes the opcodes its words name
    (words that are not mnemonics, such as ``LABEL``, contribute nothing).
    Integers following a mnemonic on its line become its operands.
    """

    kind = StrategyKind.SIGNATURE_SCAN

    def __init__(self, signatures: Sequence[Sequence[str]] = SIGNATURES) -> None:
        self._signatures = [(tuple(words), _signature_pattern(words)) for words in signatures]

    def derive(self, text: str, context: StrategyContext) -> Tuple[Instruction, ...]:
        hits: List[Tuple[int, int, Tuple[str, ...], "re.Match[str]"]] = []
        for order, (words, pattern) in enumerate(self._signatures):
            for match in pattern.finditer(text):
                hits.append((match.start(), order, words, match))
        if not hits:
            raise ExtractionError("no known opcode signature found")
        hits.sort(key=lambda hit: (hit[0], hit[1]))

        specs: List[InstructionSpec] = []
        for _start, _order, words, match in hits:
            for group, word in enumerate(words, start=1):
                opcode = normalize_mnemonic(word)
                if opcode is None:
                    continue
                word_end = match.end(group)
                line_end = text.find("\n", word_end)
                rest = text[word_end:] if line_end < 0 else text[word_end:line_end]
                specs.append(
                    InstructionSpec(
                        opcode,
                        numbers_in(rest),
                        metadata={"signature": "-".join(words), "synthetic": True},
                    )
                )
        if not specs:
            raise ExtractionError("matched signatures name no opcodes")
        return self._finish(specs, context)


# ---------------------------------------------------------------------------
# Token synthesis
# ---------------------------------------------------------------------------

_KEYWORD_OPCODES: Dict[str, Opcode] = {
    "function": Opcode.NEWCLOSURE,
    "return": Opcode.RETURN,
    "if": Opcode.JUMPIF,
    "while": Opcode.JUMPBACK,
    "for": Opcode.FORNPREP,
    "local": Opcode.MOVE,
    "not": Opcode.NOT,
    "and": Opcode.AND,
    "or": Opcode.OR,
    "nil": Opcode.LOADNIL,
    "true": Opcode.LOADB,
    "false": Opcode.LOADB,
}

_OPERATOR_OPCODES: Dict[str, Opcode] = {
    "+": Opcode.ADD,
    "-": Opcode.SUB,
    "*": Opcode.MUL,
    "/": Opcode.DIV,
    "%": Opcode.MOD,
    "^": Opcode.POW,
    "..": Opcode.CONCAT,
    "#": Opcode.LENGTH,
}

_SYNTHESIS_JUMPS = frozenset({"if", "while"})


def _call_arity(tokens: Sequence[Token], open_index: int) -> int:
    depth = 0
    commas = 0
    for index in range(open_index, len(tokens)):
        text = tokens[index].text if tokens[index].kind == "op" else ""
        if text in ("(", "{", "["):
            depth += 1
        elif text in (")", "}", "]"):
            depth -= 1
            if depth == 0:
                return 0 if index == open_index + 1 else commas + 1
        elif text == "," and depth == 1:
            commas += 1
    return commas + 1


def _in_function_header(tokens: Sequence[Token], name_index: int) -> bool:
    index = name_index - 1
    while index >= 0 and (
        (tokens[index].kind == "name" and not tokens[index].is_keyword) or tokens[index].text in (".", ":")
    ):
        index -= 1
    return index >= 0 and tokens[index].text == "function" and tokens[index].is_keyword


class TokenSynthesisStrategy(ExtractionStrategy):
    """Derive one instruction per meaningful token.

    Keywords without an opcode of their own become ``NOP``; identifiers that
    are not called and punctuation are dropped.  ``if`` and ``while`` carry
    the forward offset to the instruction following their matching ``end``.
    """

    kind = StrategyKind.TOKEN_SYNTHESIS

    def derive(self, text: str, context: StrategyContext) -> Tuple[Instruction, ...]:
        tokens = tokenize(text)
        if not tokens:
            raise ExtractionError("text contains no tokens")
        blocks = match_blocks(tokens)
        for_closers = {closer for opener, closer in blocks.items() if tokens[opener].text == "for"}

        entries: List[List[Any]] = []
        spec_index: Dict[int, int] = {}
        constants: Dict[str, int] = {}
        for index, token in enumerate(tokens):
            converted = self._convert(tokens, index, token, for_closers, constants)
            if converted is None:
                continue
            opcode, operands = converted
            spec_index[index] = len(entries)
            entries.append([opcode, list(operands), {"token": token.text, "line": token.line}])

        for opener, closer in blocks.items():
            if tokens[opener].text not in _SYNTHESIS_JUMPS:
                continue
            own = spec_index[opener]
            entries[own][1][0] = spec_index[closer] + 1 - own

        if not entries:
            raise ExtractionError("no tokens mapped to instructions")
        specs = [InstructionSpec(opcode, tuple(operands), metadata=meta) for opcode, operands, meta in entries]
        return self._finish(specs, context)

    @staticmethod
    def _convert(
        tokens: Sequence[Token],
        index: int,
        token: Token,
        for_closers: Set[int],
        constants: Dict[str, int],
    ) -> Optional[Tuple[Opcode, Tuple[int, ...]]]:
        if token.kind == "number":
            return Opcode.LOADN, (0, parse_number(token.text) or 0, 0)
        if token.kind == "string":
            slot = constants.setdefault(token.text, len(constants))
            return Opcode.LOADK, (0, slot, 0)
        if token.is_keyword:
            if token.text == "end" and index in for_closers:
                return Opcode.FORNLOOP, (0, 0, 0)
            if token.text == "true":
                return Opcode.LOADB, (0, 1, 0)
            if token.text in _SYNTHESIS_JUMPS:
                return _KEYWORD_OPCODES[token.text], (1, 0, 0)
            return _KEYWORD_OPCODES.get(token.text, NOOP_OPCODE), (0, 0, 0)
        if token.kind == "name":
            following = tokens[index + 1] if index + 1 < len(tokens) else None
            if following is None or following.text != "(" or _in_function_header(tokens, index):
                return None
            previous = tokens[index - 1] if index > 0 else None
            arity = _call_arity(tokens, index + 1)
            if previous is not None and previous.text in (".", ":"):
                return Opcode.NAMECALL, (0, arity, 0)
            return Opcode.CALL, (0, arity, 0)
        if token.kind == "op" and token.text in _OPERATOR_OPCODES:
            return _OPERATOR_OPCODES[token.text], (0, 0, 0)
        return None


def default_strategies() -> List[ExtractionStrategy]:
    """Return the cascade's strategies in the order they are attempted."""

    return [
        PatternTaggingStrategy(),
        ExecutionTraceStrategy(),
        SignatureScanStrategy(),
        TokenSynthesisStrategy(),
    ]
