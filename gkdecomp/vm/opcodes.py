"""Luau opcode table used by the synthesized instruction traces."""

from __future__ import annotations

import enum

__all__ = ["Opcode", "opcode_name"]


class Opcode(enum.IntEnum):
    NOP = 0
    BREAK = 1
    LOADNIL = 2
    LOADB = 3
    LOADN = 4
    LOADK = 5
    MOVE = 6
    GETGLOBAL = 7
    SETGLOBAL = 8
    GETUPVAL = 9
    SETUPVAL = 10
    CLOSEUPVALS = 11
    GETIMPORT = 12
    GETTABLE = 13
    SETTABLE = 14
    GETTABLEKS = 15
    SETTABLEKS = 16
    GETTABLEN = 17
    SETTABLEN = 18
    NEWCLOSURE = 19
    NAMECALL = 20
    CALL = 21
    RETURN = 22
    JUMP = 23
    JUMPBACK = 24
    JUMPIF = 25
    JUMPIFNOT = 26
    JUMPIFEQ = 27
    JUMPIFLE = 28
    JUMPIFLT = 29
    JUMPIFNOTEQ = 30
    JUMPIFNOTLE = 31
    JUMPIFNOTLT = 32
    ADD = 33
    SUB = 34
    MUL = 35
    DIV = 36
    MOD = 37
    POW = 38
    ADDK = 39
    SUBK = 40
    MULK = 41
    DIVK = 42
    MODK = 43
    POWK = 44
    AND = 45
    OR = 46
    ANDK = 47
    ORK = 48
    CONCAT = 49
    NOT = 50
    MINUS = 51
    LENGTH = 52
    NEWTABLE = 53
    DUPTABLE = 54
    SETLIST = 55
    FORNPREP = 56
    FORNLOOP = 57
    FORGLOOP = 58
    FORGPREP_INEXT = 59
    FORGLOOP_INEXT = 60
    FORGPREP_NEXT = 61
    FORGLOOP_NEXT = 62
    GETVARARGS = 63
    DUPCLOSURE = 64
    PREPVARARGS = 65
    LOADKX = 66
    JUMPX = 67
    FASTCALL = 68
    COVERAGE = 69
    CAPTURE = 70
    SUBRK = 71
    DIVRK = 72
    FASTCALL1 = 73
    FASTCALL2 = 74
    FASTCALL2K = 75


def opcode_name(value: int) -> str:
    """Return the mnemonic for ``value`` or ``"UNKNOWN"`` outside the table."""

    try:
        return Opcode(value).name
    except ValueError:
        return "UNKNOWN"
