"""Shared opcode classes and mnemonic normalisation."""

from __future__ import annotations

import re
from typing import Dict, Optional, Tuple

from .opcodes import Opcode

__all__ = [
    "JUMP_OPCODES",
    "UNCONDITIONAL_OPCODES",
    "RETURN_OPCODES",
    "BLOCK_START_OPCODES",
    "BLOCK_END_OPCODES",
    "NOOP_OPCODE",
    "is_jump",
    "is_unconditional",
    "is_return",
    "is_block_start",
    "is_block_end",
    "normalize_mnemonic",
]


JUMP_OPCODES = frozenset(
    {
        Opcode.JUMP,
        Opcode.JUMPBACK,
        Opcode.JUMPIF,
        Opcode.JUMPIFNOT,
        Opcode.JUMPIFEQ,
        Opcode.JUMPIFLE,
        Opcode.JUMPIFLT,
        Opcode.JUMPIFNOTEQ,
        Opcode.JUMPIFNOTLE,
        Opcode.JUMPIFNOTLT,
        Opcode.JUMPX,
    }
)

RETURN_OPCODES = frozenset({Opcode.RETURN})

# Control never falls through these.
UNCONDITIONAL_OPCODES = frozenset({Opcode.JUMP, Opcode.JUMPX}) | RETURN_OPCODES

BLOCK_START_OPCODES = frozenset(
    {Opcode.NEWCLOSURE, Opcode.JUMPIF, Opcode.FORNPREP, Opcode.FORGLOOP}
)

BLOCK_END_OPCODES = frozenset(
    {Opcode.RETURN, Opcode.JUMP, Opcode.FORNLOOP, Opcode.FORGLOOP_INEXT}
)

NOOP_OPCODE = Opcode.NOP


def is_jump(opcode: int) -> bool:
    return opcode in JUMP_OPCODES


def is_unconditional(opcode: int) -> bool:
    return opcode in UNCONDITIONAL_OPCODES


def is_return(opcode: int) -> bool:
    return opcode in RETURN_OPCODES


def is_block_start(opcode: int) -> bool:
    return opcode in BLOCK_START_OPCODES


def is_block_end(opcode: int) -> bool:
    return opcode in BLOCK_END_OPCODES


# Textual forms frequently encountered in disassembly listings.  The lookup
# uses sanitised (alphanumeric) strings so callers can pass values containing
# punctuation or mixed case.
_MNEMONIC_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "MOVE": ("MOVE", "MOV", "COPY", "SETREG"),
    "LOADK": ("LOADK", "LOADCONST", "PUSHK", "PUSHCONST"),
    "LOADB": ("LOADB", "LOADBOOL"),
    "LOADN": ("LOADN", "LOADNUM", "LOADINT"),
    "LOADNIL": ("LOADNIL",),
    "GETGLOBAL": ("GETGLOBAL", "GETGLOBALS"),
    "SETGLOBAL": ("SETGLOBAL",),
    "GETUPVAL": ("GETUPVAL", "GETUPVALUE"),
    "SETUPVAL": ("SETUPVAL", "SETUPVALUE"),
    "GETTABLE": ("GETTABLE", "INDEX", "TABLEGET"),
    "SETTABLE": ("SETTABLE", "TABLESET"),
    "NEWTABLE": ("NEWTABLE", "MAKETABLE"),
    "NEWCLOSURE": ("NEWCLOSURE", "CLOSURE", "MAKECLOSURE"),
    "NAMECALL": ("NAMECALL", "SELF"),
    "CALL": ("CALL", "INVOKE", "CALLFN", "CALLFUNC"),
    "RETURN": ("RETURN", "RET"),
    "JUMP": ("JUMP", "JMP"),
    "JUMPIF": ("JUMPIF", "JIF", "TEST"),
    "JUMPIFNOT": ("JUMPIFNOT", "JIFNOT"),
    "ADD": ("ADD", "PLUS"),
    "SUB": ("SUB",),
    "MUL": ("MUL", "MULT"),
    "DIV": ("DIV", "DIVIDE"),
    "MOD": ("MOD", "MODULO"),
    "POW": ("POW", "POWER"),
    "CONCAT": ("CONCAT", "CONCATENATE"),
    "LENGTH": ("LENGTH", "LEN"),
    "FORNPREP": ("FORNPREP", "FORPREP"),
    "FORNLOOP": ("FORNLOOP", "FORLOOP"),
}

_SYNONYM_LOOKUP: Dict[str, Opcode] = {
    alias: Opcode[canonical]
    for canonical, aliases in _MNEMONIC_SYNONYMS.items()
    for alias in aliases
}


def _sanitize(text: str | None) -> str:
    if not text:
        return ""
    return re.sub(r"[^A-Z0-9_]", "", str(text).upper())


def normalize_mnemonic(mnemonic: str | None) -> Optional[Opcode]:
    """Return the opcode spelled by *mnemonic*, accepting common synonyms."""

    cleaned = _sanitize(mnemonic)
    if not cleaned:
        return None
    if cleaned in Opcode.__members__:
        return Opcode[cleaned]
    return _SYNONYM_LOOKUP.get(cleaned.replace("_", ""))
