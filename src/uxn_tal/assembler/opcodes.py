"""
Uxn Instruction Set Definition
==============================

Every Uxn instruction is a single byte: a 5-bit base operation plus three
orthogonal mode bits.

    bit:   7     6     5     4 3 2 1 0
         keep  return short  base opcode

Mode Bits
---------
- **short (2)** 0x20: operate on 16-bit values
- **return (r)** 0x40: operate on the return stack
- **keep (k)** 0x80: leave the operands on the stack

Special Encodings
-----------------
Base opcode 0x00 is LIT, but only with the keep bit set. The other three
combinations of the zero base are the immediate instructions, which carry a
16-bit relative operand:

| Byte | Name  | Operand |
|------|-------|---------|
| 0x00 | BRK   | none    |
| 0x20 | JCI   | short   |
| 0x40 | JMI   | short   |
| 0x60 | JSI   | short   |
| 0x80 | LIT   | byte    |
| 0xA0 | LIT2  | short   |
| 0xC0 | LITr  | byte    |
| 0xE0 | LIT2r | short   |

Mnemonics are written uppercase with mode suffixes in any order
(``ADD2k``, ``LDAkr2``); each suffix may appear once.
"""

import logging
from dataclasses import dataclass
from typing import NamedTuple

from uxn_tal.assembler.runes import GRAMMAR_MODES, GRAMMAR_OPS
from uxn_tal.errors import InternalError, UnknownOpcodeError

logger = logging.getLogger(__name__)


# =============================================================================
# Mode Bits
# =============================================================================

SHORT_MODE = 0x20
RETURN_MODE = 0x40
KEEP_MODE = 0x80
BASE_MASK = 0x1F

_SUFFIX_BITS = {"2": SHORT_MODE, "k": KEEP_MODE, "r": RETURN_MODE}


# =============================================================================
# Opcode Table
# =============================================================================

# Index in this tuple is the base opcode
BASE_MNEMONICS = (
    "LIT", "INC", "POP", "NIP", "SWP", "ROT", "DUP", "OVR",
    "EQU", "NEQ", "GTH", "LTH", "JMP", "JCN", "JSR", "STH",
    "LDZ", "STZ", "LDR", "STR", "LDA", "STA", "DEI", "DEO",
    "ADD", "SUB", "MUL", "DIV", "AND", "ORA", "EOR", "SFT",
)

BASE_OPCODES = {name: index for index, name in enumerate(BASE_MNEMONICS)}

BRK = 0x00
JCI = 0x20
JMI = 0x40
JSI = 0x60
LIT = 0x80
LIT2 = 0xA0
LITR = 0xC0
LIT2R = 0xE0

# Names of the zero-base bytes that do not follow the suffix rule
SPECIAL_OPCODES = {
    "BRK": BRK,
    "JCI": JCI,
    "JMI": JMI,
    "JSI": JSI,
}

_SPECIAL_NAMES = {value: name for name, value in SPECIAL_OPCODES.items()}

IMMEDIATE_OPCODES = frozenset({JCI, JMI, JSI})


class OpcodeParts(NamedTuple):
    """A decoded instruction byte."""
    base: int
    short: bool
    ret: bool
    keep: bool


@dataclass(frozen=True)
class InstructionWord:
    """
    A parsed mnemonic.

    Attributes:
        name: Mnemonic as written in the source (e.g. "ADD2k")
        base: Base opcode (0x00-0x1F)
        short: Short mode flag
        ret: Return mode flag
        keep: Keep mode flag
        opcode: The encoded instruction byte
    """
    name: str
    base: int
    short: bool = False
    ret: bool = False
    keep: bool = False
    opcode: int = 0

    @property
    def mnemonic(self) -> str:
        return opcode_name(self.opcode)


# =============================================================================
# Encode / Decode
# =============================================================================

def encode(base: int, short: bool = False, ret: bool = False, keep: bool = False) -> int:
    """Combine a base opcode with mode flags into an instruction byte."""
    if not 0 <= base <= BASE_MASK:
        raise ValueError(f"base opcode out of range: {base}")
    byte = base
    if short:
        byte |= SHORT_MODE
    if ret:
        byte |= RETURN_MODE
    if keep:
        byte |= KEEP_MODE
    return byte


def decode(byte: int) -> OpcodeParts:
    """Split an instruction byte into base opcode and mode flags."""
    if not 0 <= byte <= 0xFF:
        raise ValueError(f"opcode byte out of range: {byte}")
    return OpcodeParts(
        base=byte & BASE_MASK,
        short=bool(byte & SHORT_MODE),
        ret=bool(byte & RETURN_MODE),
        keep=bool(byte & KEEP_MODE),
    )


def mode_suffix(short: bool, ret: bool, keep: bool) -> str:
    """Canonical suffix string, in the order 2, k, r."""
    return ("2" if short else "") + ("k" if keep else "") + ("r" if ret else "")


def opcode_name(byte: int) -> str:
    """
    Reference mnemonic for any byte value.

    Examples:
        >>> opcode_name(0x18)
        'ADD'
        >>> opcode_name(0xb8)
        'ADD2k'
        >>> opcode_name(0xa0)
        'LIT2'
    """
    if byte in _SPECIAL_NAMES:
        return _SPECIAL_NAMES[byte]
    parts = decode(byte)
    if parts.base == 0:
        # LIT always carries the keep bit; it is implied by the name
        return "LIT" + mode_suffix(parts.short, parts.ret, False)
    return BASE_MNEMONICS[parts.base] + mode_suffix(parts.short, parts.ret, parts.keep)


def operand_size(byte: int) -> int:
    """Number of inline operand bytes that follow an instruction byte."""
    if byte in IMMEDIATE_OPCODES:
        return 2
    parts = decode(byte)
    if parts.base == 0 and parts.keep:
        return 2 if parts.short else 1
    return 0


# =============================================================================
# Mnemonic Lookup
# =============================================================================

def looks_like_opcode(word: str) -> bool:
    """
    True if a word has the shape of an instruction.

    The first three characters must name a known operation and the rest
    must be mode characters. Words such as ``ADDRESS`` therefore stay
    available as label or macro names.
    """
    if len(word) < 3:
        return False
    base, suffix = word[:3], word[3:]
    if base not in BASE_OPCODES and base not in SPECIAL_OPCODES:
        return False
    return all(ch in _SUFFIX_BITS for ch in suffix)


def parse_mnemonic(word: str) -> InstructionWord:
    """
    Parse an instruction word into an InstructionWord.

    Raises:
        UnknownOpcodeError: If the base is unknown, a mode character is
            invalid or repeated, or a special opcode carries modes.
    """
    if len(word) < 3:
        raise UnknownOpcodeError(word)
    base_name, suffix = word[:3], word[3:]

    if base_name in SPECIAL_OPCODES:
        if suffix:
            raise UnknownOpcodeError(word, f"{base_name} takes no mode suffix")
        byte = SPECIAL_OPCODES[base_name]
        return InstructionWord(name=word, base=0, opcode=byte)

    if base_name not in BASE_OPCODES:
        raise UnknownOpcodeError(word)

    seen = set()
    for ch in suffix:
        if ch not in _SUFFIX_BITS:
            raise UnknownOpcodeError(word, f"invalid mode '{ch}'")
        if ch in seen:
            raise UnknownOpcodeError(word, f"duplicate mode '{ch}'")
        seen.add(ch)

    base = BASE_OPCODES[base_name]
    short = "2" in seen
    ret = "r" in seen
    keep = "k" in seen or base == 0
    return InstructionWord(
        name=word,
        base=base,
        short=short,
        ret=ret,
        keep=keep,
        opcode=encode(base, short, ret, keep),
    )


def lookup(word: str) -> int:
    """Return the instruction byte for a mnemonic."""
    return parse_mnemonic(word).opcode


def is_opcode(word: str) -> bool:
    """True if a word is a valid instruction mnemonic."""
    if not looks_like_opcode(word):
        return False
    try:
        parse_mnemonic(word)
    except UnknownOpcodeError:
        return False
    return True


# =============================================================================
# Table Validation
# =============================================================================

def validate_opcode_table() -> None:
    """
    Check the opcode table against the grammar terminals.

    Raises:
        InternalError: If an operation is missing from either side, the
            table has duplicates, or a generated name fails to round-trip.
    """
    table_ops = set(BASE_MNEMONICS) | {"BRK"}
    grammar_ops = set(GRAMMAR_OPS)

    if len(BASE_MNEMONICS) != 32 or len(set(BASE_MNEMONICS)) != 32:
        raise InternalError("opcode table must list 32 unique base operations")

    missing_in_table = sorted(grammar_ops - table_ops)
    if missing_in_table:
        raise InternalError(
            "grammar operations missing from opcode table: " + ", ".join(missing_in_table)
        )
    missing_in_grammar = sorted(table_ops - grammar_ops)
    if missing_in_grammar:
        raise InternalError(
            "opcode table operations missing from grammar: " + ", ".join(missing_in_grammar)
        )
    if set(GRAMMAR_MODES) != set(_SUFFIX_BITS):
        raise InternalError("grammar mode characters do not match the encoder")

    for byte in range(256):
        name = opcode_name(byte)
        if lookup(name) != byte:
            raise InternalError(f"opcode {byte:#04x} does not round-trip through '{name}'")

    logger.debug("opcode table validated: %d operations", len(table_ops))


validate_opcode_table()
