"""
TAL Lexer
=========

This module converts TAL source text into a stream of positioned tokens.

TAL is whitespace-delimited: every token is a run of non-whitespace
characters (a "word"), classified by its first character through the rune
table in ``runes.py``. Words that start with no rune are instructions, raw
hex, macro calls or subroutine calls.

Token Types
-----------
| Word          | Token           | Value                        |
|---------------|-----------------|------------------------------|
| ADD2k         | INSTRUCTION     | InstructionWord              |
| #12 #1234     | HEX_LITERAL     | NumberValue(value, short)    |
| #+300         | DEC_LITERAL     | NumberValue(value, short)    |
| 'a            | CHAR_LITERAL    | int                          |
| 12 abcd       | RAW_HEX         | NumberValue(value, short)    |
| "hello        | RAW_STRING      | bytes                        |
| @label        | LABEL_DEF       | name                         |
| &sub          | SUBLABEL_DEF    | name                         |
| .x ,x ;x      | REF_*           | name ("{" for a lambda)      |
| -x _x =x      | REF_RAW_*       | name                         |
| !x ?x         | REF_JMI/REF_JCI | name                         |
| word          | REF_JSI         | name                         |
| .Device/field | DEVICE_ACCESS   | (device, field)              |
| |0100 |label  | PADDING(_LABEL) | address / name               |
| $2 $label     | SKIP(_LABEL)    | count / name                 |
| %NAME         | MACRO_DEF       | name                         |
| NAME          | MACRO_CALL      | name                         |
| ~file.tal     | INCLUDE         | path                         |
| ( ... )       | COMMENT         | text                         |
| [ ] { }       | BRACKET/BRACE   | None                         |

Literal width is decided by digit count, not magnitude: ``#12`` is a byte
and ``#0012`` is a short.

Example
-------
>>> from uxn_tal.assembler.lexer import Lexer
>>> for token in Lexer("#12 #1234 ADD2", "example.tal").tokenize():
...     print(token)
Token(HEX_LITERAL, #12, 1:1)
Token(HEX_LITERAL, #1234, 1:5)
Token(INSTRUCTION, 'ADD2', 1:11)
Token(EOF, 1:15)
"""

import logging
import string
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, NamedTuple, Optional, Union

from uxn_tal.assembler.devicemap import DeviceMap
from uxn_tal.assembler.opcodes import looks_like_opcode, parse_mnemonic
from uxn_tal.assembler.runes import Rune, classify
from uxn_tal.errors import (
    AssemblerError,
    AssemblySyntaxError,
    ExpectedIdentifierError,
    InvalidNumberError,
    SourceLocation,
    UnknownOpcodeError,
    Utf8DecodeError,
)

logger = logging.getLogger(__name__)

HEX_DIGITS = frozenset(string.hexdigits)
LOWER_HEX_DIGITS = frozenset(string.digits + "abcdef")

# Reference name standing for "the lambda opened here"
LAMBDA_NAME = "{"


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Classification of TAL tokens."""

    # Code and data
    INSTRUCTION = auto()      # ADD2k
    HEX_LITERAL = auto()      # #12, #1234
    DEC_LITERAL = auto()      # #+300
    CHAR_LITERAL = auto()     # 'a
    RAW_HEX = auto()          # 12, abcd
    RAW_STRING = auto()       # "text

    # Labels
    LABEL_DEF = auto()        # @name
    SUBLABEL_DEF = auto()     # &name

    # References, one per addressing rune
    REF_ZERO_PAGE = auto()        # .name
    REF_RELATIVE = auto()         # ,name
    REF_ABSOLUTE = auto()         # ;name
    REF_RAW_ZERO_PAGE = auto()    # -name
    REF_RAW_RELATIVE = auto()     # _name
    REF_RAW_ABSOLUTE = auto()     # =name
    REF_JMI = auto()              # !name
    REF_JCI = auto()              # ?name
    REF_JSI = auto()              # name (bare word)
    DEVICE_ACCESS = auto()        # .Device/field

    # Padding
    PADDING = auto()          # |0100
    PADDING_LABEL = auto()    # |label
    SKIP = auto()             # $2
    SKIP_LABEL = auto()       # $label

    # Preprocessor
    MACRO_DEF = auto()        # %NAME
    MACRO_CALL = auto()       # NAME
    INCLUDE = auto()          # ~file.tal
    COMMENT = auto()          # ( ... )

    # Structure
    BRACKET_OPEN = auto()     # [
    BRACKET_CLOSE = auto()    # ]
    BRACE_OPEN = auto()       # {
    BRACE_CLOSE = auto()      # }

    NEWLINE = auto()
    EOF = auto()


# Reference token type for each addressing rune
REFERENCE_TOKENS = {
    Rune.ZERO_PAGE: TokenType.REF_ZERO_PAGE,
    Rune.RELATIVE: TokenType.REF_RELATIVE,
    Rune.ABSOLUTE: TokenType.REF_ABSOLUTE,
    Rune.RAW_ZERO_PAGE: TokenType.REF_RAW_ZERO_PAGE,
    Rune.RAW_RELATIVE: TokenType.REF_RAW_RELATIVE,
    Rune.RAW_ABSOLUTE: TokenType.REF_RAW_ABSOLUTE,
    Rune.IMMEDIATE_JUMP: TokenType.REF_JMI,
    Rune.CONDITIONAL_JUMP: TokenType.REF_JCI,
}

# Inverse mapping; REF_JSI has no rune
TOKEN_RUNES = {token_type: rune for rune, token_type in REFERENCE_TOKENS.items()}
TOKEN_RUNES[TokenType.REF_JSI] = None

REFERENCE_TYPES = frozenset(TOKEN_RUNES)

_STANDALONE = {
    "[": TokenType.BRACKET_OPEN,
    "]": TokenType.BRACKET_CLOSE,
    "{": TokenType.BRACE_OPEN,
    "}": TokenType.BRACE_CLOSE,
}


class NumberValue(NamedTuple):
    """A numeric literal and whether it is emitted as a short."""
    value: int
    short: bool


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token with its source position.

    Attributes:
        type: The TokenType classification
        value: Kind-dependent payload (see module docstring)
        text: The word exactly as written
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        offset: Character offset in source (0-indexed)
        filename: Name of the source file
    """
    type: TokenType
    value: Any
    text: str
    line: int
    column: int
    offset: int = 0
    filename: str = "<input>"

    def __repr__(self) -> str:
        if self.value is None:
            return f"Token({self.type.name}, {self.line}:{self.column})"
        if isinstance(self.value, NumberValue):
            return f"Token({self.type.name}, {self.text}, {self.line}:{self.column})"
        if self.type is TokenType.INSTRUCTION:
            return f"Token({self.type.name}, {self.text!r}, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        return SourceLocation(self.filename, self.line, self.column)

    @property
    def is_reference(self) -> bool:
        return self.type in REFERENCE_TYPES


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes TAL source code.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = lexer.tokenize()

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
        macros: Macro names known so far; bare words matching one become
            MACRO_CALL tokens
    """

    def __init__(
        self,
        source: Union[str, bytes],
        filename: str = "<input>",
        device_map: Optional[DeviceMap] = None,
        macros: Optional[set[str]] = None,
    ):
        """
        Initialize the lexer with source code.

        Args:
            source: TAL source, as text or UTF-8 bytes
            filename: Name of the source file (for error messages)
            device_map: Devices that ``.Device/field`` words refer to
            macros: Macro names defined before this source (e.g. by the
                file that includes it)

        Raises:
            Utf8DecodeError: If bytes are given that are not valid UTF-8
        """
        if isinstance(source, (bytes, bytearray)):
            try:
                source = bytes(source).decode("utf-8")
            except UnicodeDecodeError as e:
                raise Utf8DecodeError(
                    f"source is not valid UTF-8 (byte {e.start}: {e.reason})",
                    location=SourceLocation(filename, 1, 1),
                ) from e

        self.source = source
        self.filename = filename
        self.device_map = device_map if device_map is not None else DeviceMap.default()
        self.macros = set(macros) if macros else set()

        # Current position in source
        self._pos = 0
        self._line = 1
        self._column = 1
        self._line_start_pos = 0

        # Start of the word being scanned
        self._word_line = 1
        self._word_column = 1
        self._word_pos = 0
        self._word_line_start = 0

    def tokenize(self) -> list[Token]:
        """
        Tokenize the whole source.

        Returns:
            Tokens in source order, ending with an EOF token

        Raises:
            AssemblerError: On the first malformed word
        """
        tokens = []
        while not self._at_end():
            char = self._peek()
            if char == "\n":
                tokens.append(self._make_token(TokenType.NEWLINE, None, "\n", here=True))
                self._advance()
                continue
            if char.isspace():
                self._advance()
                continue
            tokens.append(self._scan_token())

        tokens.append(self._make_token(TokenType.EOF, None, "", here=True))
        logger.debug("%s: %d tokens", self.filename, len(tokens))
        return tokens

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line and column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    def _mark_word_start(self) -> None:
        self._word_line = self._line
        self._word_column = self._column
        self._word_pos = self._pos
        self._word_line_start = self._line_start_pos

    def _read_word(self) -> str:
        """Consume characters up to the next whitespace."""
        start = self._pos
        while not self._at_end() and not self._peek().isspace():
            self._advance()
        return self.source[start:self._pos]

    # =========================================================================
    # Token Creation
    # =========================================================================

    def _make_token(self, token_type: TokenType, value: Any, text: str, here: bool = False) -> Token:
        """Create a token at the current word start (or the cursor when ``here``)."""
        if here:
            line, column, offset = self._line, self._column, self._pos
        else:
            line, column, offset = self._word_line, self._word_column, self._word_pos
        return Token(
            type=token_type,
            value=value,
            text=text,
            line=line,
            column=column,
            offset=offset,
            filename=self.filename,
        )

    def _word_location(self) -> SourceLocation:
        return SourceLocation(self.filename, self._word_line, self._word_column)

    def _source_line(self) -> str:
        line_end = self.source.find("\n", self._word_line_start)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._word_line_start:line_end]

    def _error(self, message: str, error_class: type = AssemblySyntaxError, hint: Optional[str] = None) -> AssemblerError:
        """Create an error located at the start of the current word."""
        return error_class(
            message,
            location=self._word_location(),
            hint=hint,
            source_line=self._source_line(),
        )

    # =========================================================================
    # Comments
    # =========================================================================

    def _scan_comment(self) -> Token:
        """
        Scan a parenthesized comment, counting nested parentheses.

        Raises:
            AssemblySyntaxError: If the source ends inside the comment
        """
        start = self._pos
        depth = 0
        while not self._at_end():
            char = self._advance()
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    text = self.source[start:self._pos]
                    # Trailing characters glued to ')' belong to the comment
                    text += self._read_word()
                    return self._make_token(TokenType.COMMENT, text, text)
        raise self._error("unterminated comment", hint="comments are closed with ')'")

    # =========================================================================
    # Main Token Scanner
    # =========================================================================

    def _scan_token(self) -> Token:
        """Scan one whitespace-delimited word and classify it."""
        self._mark_word_start()

        if self._peek() == "(":
            return self._scan_comment()

        word = self._read_word()

        if word in _STANDALONE:
            return self._make_token(_STANDALONE[word], None, word)

        rune = classify(word[0])
        rest = word[1:]

        if rune is None:
            return self._scan_bare_word(word)

        if rune is Rune.COMMENT_CLOSE:
            raise self._error("unmatched ')'")
        if rune in (Rune.GROUP_OPEN, Rune.GROUP_CLOSE, Rune.LAMBDA_OPEN, Rune.LAMBDA_CLOSE):
            raise self._error(
                f"'{word[0]}' must stand alone",
                hint=f"separate '{word[0]}' from '{rest}' with whitespace",
            )
        if rune is Rune.LITERAL_NUMBER:
            return self._scan_literal(word, rest)
        if rune is Rune.RAW_CHAR:
            return self._scan_char(word, rest)
        if rune is Rune.RAW_ASCII:
            return self._make_token(TokenType.RAW_STRING, rest.encode("utf-8"), word)
        if rune in REFERENCE_TOKENS:
            return self._scan_reference(word, rune, rest)
        if rune in (Rune.PAD_ABSOLUTE, Rune.PAD_RELATIVE):
            return self._scan_padding(word, rune, rest)

        # The remaining runes all introduce a name
        if not rest:
            raise self._error_identifier(word[0])
        if rune is Rune.LABEL_PARENT:
            return self._make_token(TokenType.LABEL_DEF, rest, word)
        if rune is Rune.LABEL_CHILD:
            return self._make_token(TokenType.SUBLABEL_DEF, rest, word)
        if rune is Rune.MACRO:
            self.macros.add(rest)
            return self._make_token(TokenType.MACRO_DEF, rest, word)
        if rune is Rune.INCLUDE:
            return self._make_token(TokenType.INCLUDE, rest, word)

        raise self._error(f"unknown rune '{word[0]}'")

    def _error_identifier(self, rune_char: str) -> ExpectedIdentifierError:
        return ExpectedIdentifierError(
            rune_char,
            location=self._word_location(),
            source_line=self._source_line(),
        )

    # =========================================================================
    # Word Scanners
    # =========================================================================

    def _scan_bare_word(self, word: str) -> Token:
        """Instruction, raw hex, macro call or subroutine call."""
        if looks_like_opcode(word):
            try:
                instruction = parse_mnemonic(word)
            except UnknownOpcodeError as e:
                raise UnknownOpcodeError(
                    word,
                    e.reason,
                    location=self._word_location(),
                    source_line=self._source_line(),
                ) from None
            return self._make_token(TokenType.INSTRUCTION, instruction, word)

        if len(word) in (2, 4) and all(c in LOWER_HEX_DIGITS for c in word):
            number = NumberValue(int(word, 16), len(word) == 4)
            return self._make_token(TokenType.RAW_HEX, number, word)

        if word in self.macros:
            return self._make_token(TokenType.MACRO_CALL, word, word)

        return self._make_token(TokenType.REF_JSI, word, word)

    def _scan_literal(self, word: str, digits: str) -> Token:
        """
        ``#HH`` / ``#HHHH`` hex literals and ``#+N`` decimal literals.

        Raises:
            InvalidNumberError: On a bad digit or digit count
        """
        if digits.startswith("+"):
            return self._scan_decimal(word, digits[1:])

        if not digits:
            raise self._error("expected hex digits after '#'", InvalidNumberError)
        if not all(c in HEX_DIGITS for c in digits):
            raise self._error(
                f"invalid hex literal '{word}'",
                InvalidNumberError,
                hint="use #HH for a byte, #HHHH for a short or #+N for decimal",
            )
        if len(digits) not in (2, 4):
            raise self._error(
                f"hex literal '{word}' has {len(digits)} digits",
                InvalidNumberError,
                hint="literals take exactly 2 (byte) or 4 (short) hex digits",
            )
        number = NumberValue(int(digits, 16), len(digits) == 4)
        return self._make_token(TokenType.HEX_LITERAL, number, word)

    def _scan_decimal(self, word: str, digits: str) -> Token:
        if not digits or not digits.isdigit() or not digits.isascii():
            raise self._error(f"invalid decimal literal '{word}'", InvalidNumberError)
        value = int(digits)
        if value > 0xFFFF:
            raise self._error(
                f"decimal literal {value} does not fit in 16 bits",
                InvalidNumberError,
            )
        number = NumberValue(value, value > 0xFF)
        return self._make_token(TokenType.DEC_LITERAL, number, word)

    def _scan_char(self, word: str, rest: str) -> Token:
        if not rest:
            raise self._error("expected a character after \"'\"")
        if len(rest) != 1:
            raise self._error(
                f"character literal '{word}' has more than one character",
                hint='use a "string for several characters',
            )
        encoded = rest.encode("utf-8")
        if len(encoded) != 1:
            raise self._error(f"character '{rest}' does not fit in one byte")
        return self._make_token(TokenType.CHAR_LITERAL, encoded[0], word)

    def _scan_reference(self, word: str, rune: Rune, name: str) -> Token:
        if not name:
            raise self._error_identifier(rune.char)

        if rune is Rune.ZERO_PAGE and name != LAMBDA_NAME:
            device, sep, field_name = name.partition("/")
            if sep and self.device_map.resolve(device, field_name) is not None:
                return self._make_token(TokenType.DEVICE_ACCESS, (device, field_name), word)

        return self._make_token(REFERENCE_TOKENS[rune], name, word)

    def _scan_padding(self, word: str, rune: Rune, target: str) -> Token:
        absolute = rune is Rune.PAD_ABSOLUTE
        if not target:
            raise self._error(f"expected an address or label after '{rune.char}'")
        if all(c in HEX_DIGITS for c in target):
            if len(target) > 4:
                raise self._error(
                    f"padding '{word}' is wider than 16 bits",
                    InvalidNumberError,
                )
            token_type = TokenType.PADDING if absolute else TokenType.SKIP
            return self._make_token(token_type, int(target, 16), word)

        token_type = TokenType.PADDING_LABEL if absolute else TokenType.SKIP_LABEL
        return self._make_token(token_type, target, word)


def tokenize(
    source: Union[str, bytes],
    filename: str = "<input>",
    device_map: Optional[DeviceMap] = None,
) -> list[Token]:
    """Tokenize TAL source in one call."""
    return Lexer(source, filename, device_map=device_map).tokenize()
