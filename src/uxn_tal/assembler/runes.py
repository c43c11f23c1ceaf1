"""
TAL Runes
=========

A rune is a single punctuation character that gives the word it starts a
dedicated meaning. The lexer classifies every word by its first character
through this table.

Rune Table
----------
| Rune | Role                | Example          | Emits                  |
|------|---------------------|------------------|------------------------|
| |    | absolute padding    | |0100            | moves the cursor       |
| $    | relative padding    | $2               | advances the cursor    |
| @    | parent label        | @on-reset        | defines a label        |
| &    | child label         | &loop            | defines parent/loop    |
| #    | literal number      | #12 #1234        | LIT 12 / LIT2 1234     |
| "    | raw ascii           | "hello           | raw bytes              |
| '    | raw char            | 'a               | one raw byte           |
| .    | zero-page literal   | .Console/write   | LIT zz                 |
| ,    | relative literal    | ,loop            | LIT rr                 |
| ;    | absolute literal    | ;text            | LIT2 aaaa              |
| -    | raw zero-page       | -var             | zz                     |
| _    | raw relative        | _loop            | rr                     |
| =    | raw absolute        | =text            | aaaa                   |
| !    | immediate jump      | !loop            | JMI aaaa               |
| ?    | conditional jump    | ?done            | JCI aaaa               |
| ( )  | comment             | ( note )         | nothing                |
| { }  | lambda              | ?{ ... }         | anonymous label        |
| [ ]  | inline group        | [ #01 #02 ]      | contents only          |
| %    | macro               | %INC2 { #0001 }  | nothing                |
| ~    | include             | ~lib.tal         | included source        |
"""

from enum import Enum
from typing import Optional


class Rune(Enum):
    """Punctuation characters with a meaning of their own in TAL."""
    PAD_ABSOLUTE = "|"
    PAD_RELATIVE = "$"
    LITERAL_NUMBER = "#"
    LABEL_PARENT = "@"
    LABEL_CHILD = "&"
    RAW_ASCII = '"'
    RAW_CHAR = "'"
    ZERO_PAGE = "."
    RELATIVE = ","
    ABSOLUTE = ";"
    RAW_ZERO_PAGE = "-"
    RAW_RELATIVE = "_"
    RAW_ABSOLUTE = "="
    IMMEDIATE_JUMP = "!"
    CONDITIONAL_JUMP = "?"
    COMMENT_OPEN = "("
    COMMENT_CLOSE = ")"
    LAMBDA_OPEN = "{"
    LAMBDA_CLOSE = "}"
    GROUP_OPEN = "["
    GROUP_CLOSE = "]"
    MACRO = "%"
    INCLUDE = "~"

    @property
    def char(self) -> str:
        return self.value


_BY_CHAR = {rune.value: rune for rune in Rune}


def classify(char: str) -> Optional[Rune]:
    """Return the rune for a character, or None for ordinary characters."""
    if len(char) != 1:
        return None
    return _BY_CHAR.get(char)


def is_rune(char: str) -> bool:
    return classify(char) is not None


# =============================================================================
# Rune Groups
# =============================================================================

PADDING_RUNES = frozenset({Rune.PAD_ABSOLUTE, Rune.PAD_RELATIVE})

LITERAL_ADDRESSING_RUNES = frozenset({Rune.ZERO_PAGE, Rune.RELATIVE, Rune.ABSOLUTE})

RAW_ADDRESSING_RUNES = frozenset(
    {Rune.RAW_ZERO_PAGE, Rune.RAW_RELATIVE, Rune.RAW_ABSOLUTE}
)

ADDRESSING_RUNES = LITERAL_ADDRESSING_RUNES | RAW_ADDRESSING_RUNES

IMMEDIATE_RUNES = frozenset({Rune.IMMEDIATE_JUMP, Rune.CONDITIONAL_JUMP})

# Every rune that may start a label reference
REFERENCE_RUNES = ADDRESSING_RUNES | IMMEDIATE_RUNES

ZERO_PAGE_RUNES = frozenset({Rune.ZERO_PAGE, Rune.RAW_ZERO_PAGE})

RELATIVE_RUNES = frozenset({Rune.RELATIVE, Rune.RAW_RELATIVE})

ABSOLUTE_RUNES = frozenset({Rune.ABSOLUTE, Rune.RAW_ABSOLUTE})

# Bytes emitted by a reference, opcode included
_REFERENCE_WIDTHS = {
    Rune.ZERO_PAGE: 2,
    Rune.RELATIVE: 2,
    Rune.ABSOLUTE: 3,
    Rune.RAW_ZERO_PAGE: 1,
    Rune.RAW_RELATIVE: 1,
    Rune.RAW_ABSOLUTE: 2,
    Rune.IMMEDIATE_JUMP: 3,
    Rune.CONDITIONAL_JUMP: 3,
}

# Width of a bare-word subroutine call (JSI + short)
CALL_WIDTH = 3


def reference_width(rune: Optional[Rune]) -> int:
    """
    Number of bytes a reference occupies in the ROM.

    ``None`` stands for a bare-word subroutine call.
    """
    if rune is None:
        return CALL_WIDTH
    try:
        return _REFERENCE_WIDTHS[rune]
    except KeyError:
        raise ValueError(f"rune '{rune.char}' does not form a reference") from None


def operand_offset(rune: Optional[Rune]) -> int:
    """Offset of the address operand from the start of the reference."""
    if rune in RAW_ADDRESSING_RUNES:
        return 0
    return 1


# =============================================================================
# Grammar Terminals
# =============================================================================

# Base operation terminals of the TAL grammar. The opcode table is checked
# against this list at import time.
GRAMMAR_OPS = (
    "BRK", "LIT", "INC", "POP", "NIP", "SWP", "ROT", "DUP", "OVR",
    "EQU", "NEQ", "GTH", "LTH", "JMP", "JCN", "JSR", "STH",
    "LDZ", "STZ", "LDR", "STR", "LDA", "STA", "DEI", "DEO",
    "ADD", "SUB", "MUL", "DIV", "AND", "ORA", "EOR", "SFT",
)

# Mode suffix terminals, in canonical order
GRAMMAR_MODES = ("2", "k", "r")
