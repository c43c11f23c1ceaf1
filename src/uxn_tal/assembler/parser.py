"""
TAL Parser
==========

This module converts the token stream from the lexer into a flat list of
assembly nodes that the code generator walks twice.

Parsing happens in two stages:

1. **Expansion**: macro definitions are collected and removed, macro calls
   are replaced by their bodies and include directives by the tokens of the
   included source. This runs over an explicit stack of token frames, so
   nesting depth is bounded by ``max_depth`` rather than by the interpreter
   stack.

2. **Structure**: the expanded tokens become nodes. Sublabel names are
   qualified with their parent label, lambdas get synthetic labels, and
   brackets, comments and newlines disappear.

Node Types
----------
| Node        | Source                 | Bytes                     |
|-------------|------------------------|---------------------------|
| Instruction | ADD2k                  | 1                         |
| Literal     | #12 / #1234 / #+300    | 2 / 3                     |
| RawData     | 12 abcd 'a "text       | len(data)                 |
| LabelDef    | @label &sub }          | 0                         |
| LabelRef    | .x ,x ;x -x _x =x !x ?x word {   | 1-3             |
| DeviceRef   | .Console/write         | 2                         |
| Padding     | |0100 |label $2 $label | 0 (moves the cursor)      |

Lambdas
-------
``{`` opens an anonymous block and ``}`` closes it. Each block gets the
label ``λNN`` (NN: two hex digits of a counter in order of opening), which
``}`` defines at the address after the block body. A bare ``{`` is a
subroutine call to the block end; a reference rune followed by ``{`` (e.g.
``?{``, ``!{``, ``;{``) references it with that rune:

    #00 ?{ ( skipped when zero ) #01 }   ->   ... JCI λ00 ... @λ00

The same token stream always produces the same names, so both assembler
passes agree on them.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from uxn_tal.assembler.devicemap import DeviceMap
from uxn_tal.assembler.lexer import (
    LAMBDA_NAME,
    TOKEN_RUNES,
    Lexer,
    Token,
    TokenType,
)
from uxn_tal.assembler.opcodes import is_opcode
from uxn_tal.assembler.runes import Rune
from uxn_tal.errors import (
    AssemblySyntaxError,
    DuplicateLabelError,
    FileReadError,
    InternalError,
    LabelReferenceError,
    SourceLocation,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64

# (path, location of the directive) -> (source text, filename)
IncludeLoader = Callable[[str, SourceLocation], tuple[str, str]]


def lambda_label(index: int) -> str:
    """Synthetic label name of the ``index``-th lambda."""
    return f"λ{index:02x}"


# =============================================================================
# Node Data Classes
# =============================================================================

@dataclass
class Instruction:
    """An opcode byte, e.g. ``ADD2k``."""
    opcode: int
    name: str
    location: SourceLocation


@dataclass
class Literal:
    """
    A literal number pushed with LIT (byte) or LIT2 (short).

    Attributes:
        value: The number
        short: True for LIT2 + 2 bytes, False for LIT + 1 byte
    """
    value: int
    short: bool
    location: SourceLocation


@dataclass
class RawData:
    """Bytes emitted as-is (raw hex, characters and strings)."""
    data: bytes
    location: SourceLocation


@dataclass
class LabelDef:
    """
    A label definition.

    Attributes:
        name: Fully-qualified name (``parent`` or ``parent/child``)
        kind: "label", "sublabel" or "lambda"
    """
    name: str
    kind: str
    location: SourceLocation


@dataclass
class LabelRef:
    """
    A reference to a label.

    Attributes:
        rune: The addressing rune, or None for a bare-word subroutine call
        name: Fully-qualified target name
    """
    rune: Optional[Rune]
    name: str
    location: SourceLocation


@dataclass
class DeviceRef:
    """A ``.Device/field`` port reference, emitted as LIT + port address."""
    device: str
    field: str
    location: SourceLocation

    @property
    def name(self) -> str:
        return f"{self.device}/{self.field}"


@dataclass
class Padding:
    """
    Cursor movement.

    Exactly one of ``address`` and ``label`` is set. Relative padding adds
    the value to the cursor; absolute padding replaces it.
    """
    address: Optional[int]
    label: Optional[str]
    relative: bool
    location: SourceLocation


Node = Union[Instruction, Literal, RawData, LabelDef, LabelRef, DeviceRef, Padding]


@dataclass
class MacroDef:
    """A macro: its name and the tokens of its body (braces excluded)."""
    name: str
    body: list[Token]
    location: SourceLocation


@dataclass
class _Frame:
    """A token list being expanded, with its read position."""
    tokens: list[Token]
    index: int = 0
    macro: Optional[str] = None
    include: Optional[str] = None


# =============================================================================
# Parser Implementation
# =============================================================================

class Parser:
    """
    Parses TAL tokens into assembly nodes.

    Usage:
        tokens = Lexer(source, filename).tokenize()
        nodes = Parser(tokens, filename, source=source).parse()
    """

    def __init__(
        self,
        tokens: list[Token],
        filename: str = "<input>",
        source: Optional[str] = None,
        include_loader: Optional[IncludeLoader] = None,
        device_map: Optional[DeviceMap] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        """
        Initialize the parser.

        Args:
            tokens: Tokens from the lexer
            filename: Source filename for error reporting
            source: Source text, used to quote lines in error messages
            include_loader: Resolves ``~path`` directives to source text
            device_map: Device map handed to the lexer for included files
            max_depth: Maximum nesting of macro expansions and includes
        """
        self._tokens = tokens
        self._filename = filename
        self._include_loader = include_loader
        self._device_map = device_map if device_map is not None else DeviceMap.default()
        self._max_depth = max_depth

        self.macros: dict[str, MacroDef] = {}
        self.includes: list[str] = []

        self.sources: dict[str, str] = {}
        if source is not None:
            self.sources[filename] = source

    def parse(self) -> list[Node]:
        """
        Parse all tokens into nodes.

        Returns:
            Nodes in emission order

        Raises:
            AssemblerError: On the first error found
        """
        tokens = self.expand()
        nodes = self._build_nodes(tokens)
        logger.debug(
            "%s: %d nodes, %d macros, %d includes",
            self._filename, len(nodes), len(self.macros), len(self.includes),
        )
        return nodes

    # =========================================================================
    # Error Helpers
    # =========================================================================

    def _source_line(self, token: Token) -> Optional[str]:
        source = self.sources.get(token.filename)
        if source is None:
            return None
        lines = source.splitlines()
        if 0 < token.line <= len(lines):
            return lines[token.line - 1]
        return None

    def _syntax_error(self, message: str, token: Token, hint: Optional[str] = None) -> AssemblySyntaxError:
        return AssemblySyntaxError(
            message,
            location=token.location,
            hint=hint,
            source_line=self._source_line(token),
        )

    # =========================================================================
    # Stage 1: Macro and Include Expansion
    # =========================================================================

    def expand(self) -> list[Token]:
        """
        Expand macros and includes into a flat token list.

        Raises:
            InternalError: On recursive or too deeply nested macros
            FileReadError: On circular or unresolvable includes
            DuplicateLabelError: If a macro is defined twice
        """
        output: list[Token] = []
        stack = [_Frame(self._tokens)]

        while stack:
            frame = stack[-1]
            if frame.index >= len(frame.tokens):
                stack.pop()
                continue

            token = frame.tokens[frame.index]
            frame.index += 1

            if token.type is TokenType.EOF:
                continue

            if token.type is TokenType.MACRO_DEF:
                self._define_macro(token, frame)
                continue

            if token.type in (TokenType.MACRO_CALL, TokenType.REF_JSI) and token.value in self.macros:
                stack.append(self._enter_macro(token, stack))
                continue

            if token.type is TokenType.MACRO_CALL:
                # Named as a macro by the lexer but never given a body
                raise self._syntax_error(f"macro '{token.value}' has no body", token)

            if token.type is TokenType.INCLUDE:
                stack.append(self._enter_include(token, stack))
                continue

            output.append(token)

        return output

    def _define_macro(self, token: Token, frame: _Frame) -> None:
        """Read ``{ body }`` after ``%NAME`` from the current frame."""
        name = token.value
        if name in self.macros:
            raise DuplicateLabelError(
                name,
                location=token.location,
                original_location=self.macros[name].location,
                source_line=self._source_line(token),
            )
        if is_opcode(name) or _is_raw_hex(name):
            raise self._syntax_error(
                f"invalid macro name '{name}'",
                token,
                hint="macro names must not be opcodes or hex numbers",
            )

        tokens = frame.tokens
        while frame.index < len(tokens) and tokens[frame.index].type in (
            TokenType.NEWLINE, TokenType.COMMENT,
        ):
            frame.index += 1
        if frame.index >= len(tokens) or tokens[frame.index].type is not TokenType.BRACE_OPEN:
            raise self._syntax_error(f"expected '{{' after macro '{name}'", token)
        frame.index += 1

        body = []
        depth = 1
        while frame.index < len(tokens):
            body_token = tokens[frame.index]
            frame.index += 1
            if _opens_brace(body_token):
                depth += 1
            elif body_token.type is TokenType.BRACE_CLOSE:
                depth -= 1
                if depth == 0:
                    self.macros[name] = MacroDef(name, body, token.location)
                    logger.debug("macro %s: %d tokens", name, len(body))
                    return
            body.append(body_token)

        raise self._syntax_error(f"unterminated body of macro '{name}'", token)

    def _enter_macro(self, token: Token, stack: list[_Frame]) -> _Frame:
        name = token.value
        active = [frame.macro for frame in stack if frame.macro is not None]
        if name in active:
            chain = " -> ".join(active[active.index(name):] + [name])
            raise InternalError(
                f"recursive macro expansion: {chain}",
                location=token.location,
                source_line=self._source_line(token),
            )
        if len(stack) > self._max_depth:
            raise InternalError(
                f"macro expansion of '{name}' nested deeper than {self._max_depth} levels",
                location=token.location,
                source_line=self._source_line(token),
            )
        return _Frame(self.macros[name].body, macro=name)

    def _enter_include(self, token: Token, stack: list[_Frame]) -> _Frame:
        path = token.value
        if self._include_loader is None:
            raise FileReadError(
                path,
                "no include loader configured",
                location=token.location,
                source_line=self._source_line(token),
            )
        if len(stack) > self._max_depth:
            raise FileReadError(
                path,
                f"includes nested deeper than {self._max_depth} levels",
                location=token.location,
                source_line=self._source_line(token),
            )

        source, filename = self._include_loader(path, token.location)
        active = [frame.include for frame in stack if frame.include is not None]
        if filename in active or filename == self._filename:
            raise FileReadError(
                path,
                "circular include",
                location=token.location,
                source_line=self._source_line(token),
            )

        self.sources[filename] = source
        self.includes.append(filename)
        logger.debug("including %s", filename)

        lexer = Lexer(source, filename, device_map=self._device_map, macros=set(self.macros))
        return _Frame(lexer.tokenize(), include=filename)

    # =========================================================================
    # Stage 2: Node Construction
    # =========================================================================

    def _build_nodes(self, tokens: list[Token]) -> list[Node]:
        nodes: list[Node] = []
        scope: Optional[str] = None
        lambda_count = 0
        lambdas: list[tuple[int, Token]] = []
        brackets: list[Token] = []

        for token in tokens:
            kind = token.type
            location = token.location

            if kind in (TokenType.NEWLINE, TokenType.COMMENT):
                continue

            if kind is TokenType.BRACKET_OPEN:
                brackets.append(token)
            elif kind is TokenType.BRACKET_CLOSE:
                if not brackets:
                    raise self._syntax_error("unmatched ']'", token)
                brackets.pop()

            elif kind is TokenType.INSTRUCTION:
                nodes.append(Instruction(token.value.opcode, token.text, location))
            elif kind in (TokenType.HEX_LITERAL, TokenType.DEC_LITERAL):
                nodes.append(Literal(token.value.value, token.value.short, location))
            elif kind is TokenType.RAW_HEX:
                width = 2 if token.value.short else 1
                nodes.append(RawData(token.value.value.to_bytes(width, "big"), location))
            elif kind is TokenType.CHAR_LITERAL:
                nodes.append(RawData(bytes([token.value]), location))
            elif kind is TokenType.RAW_STRING:
                nodes.append(RawData(token.value, location))

            elif kind is TokenType.LABEL_DEF:
                scope = token.value.partition("/")[0]
                nodes.append(LabelDef(token.value, "label", location))
            elif kind is TokenType.SUBLABEL_DEF:
                if scope is None:
                    raise LabelReferenceError(
                        f"sublabel '&{token.value}' has no parent label",
                        location=location,
                        source_line=self._source_line(token),
                    )
                nodes.append(LabelDef(f"{scope}/{token.value}", "sublabel", location))

            elif kind is TokenType.BRACE_OPEN or (token.is_reference and token.value == LAMBDA_NAME):
                lambdas.append((lambda_count, token))
                name = lambda_label(lambda_count)
                lambda_count += 1
                rune = TOKEN_RUNES.get(kind)
                nodes.append(LabelRef(rune, name, location))
            elif kind is TokenType.BRACE_CLOSE:
                if not lambdas:
                    raise self._syntax_error("unmatched '}'", token)
                index, _ = lambdas.pop()
                nodes.append(LabelDef(lambda_label(index), "lambda", location))

            elif token.is_reference:
                name = self._qualify(token, scope)
                nodes.append(LabelRef(TOKEN_RUNES[kind], name, location))
            elif kind is TokenType.DEVICE_ACCESS:
                device, field_name = token.value
                nodes.append(DeviceRef(device, field_name, location))

            elif kind is TokenType.PADDING:
                nodes.append(Padding(token.value, None, False, location))
            elif kind is TokenType.SKIP:
                nodes.append(Padding(token.value, None, True, location))
            elif kind is TokenType.PADDING_LABEL:
                nodes.append(Padding(None, self._qualify(token, scope), False, location))
            elif kind is TokenType.SKIP_LABEL:
                nodes.append(Padding(None, self._qualify(token, scope), True, location))

            else:
                raise InternalError(
                    f"unexpected token {kind.name} after expansion",
                    location=location,
                )

        if lambdas:
            _, token = lambdas[-1]
            raise self._syntax_error("unclosed '{'", token, hint="every '{' needs a matching '}'")
        if brackets:
            raise self._syntax_error("unclosed '['", brackets[-1])

        return nodes

    def _qualify(self, token: Token, scope: Optional[str]) -> str:
        """Expand ``&name`` and ``/name`` to ``scope/name``."""
        name = token.value
        if name[0] not in "&/":
            return name
        if scope is None:
            raise LabelReferenceError(
                f"sublabel reference '{token.text}' has no parent label",
                location=token.location,
                source_line=self._source_line(token),
            )
        return f"{scope}/{name[1:]}"


def _opens_brace(token: Token) -> bool:
    return token.type is TokenType.BRACE_OPEN or (
        token.is_reference and token.value == LAMBDA_NAME
    )


def _is_raw_hex(word: str) -> bool:
    return len(word) in (2, 4) and all(c in "0123456789abcdef" for c in word)


def parse_source(
    source: str,
    filename: str = "<input>",
    include_loader: Optional[IncludeLoader] = None,
    device_map: Optional[DeviceMap] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[Node]:
    """
    Tokenize and parse TAL source in one call.

    Args:
        source: TAL source text
        filename: Source filename for error messages
        include_loader: Resolves ``~path`` directives
        device_map: Devices available to ``.Device/field`` references
        max_depth: Maximum nesting of macro expansions and includes

    Returns:
        Parsed nodes
    """
    tokens = Lexer(source, filename, device_map=device_map).tokenize()
    parser = Parser(
        tokens,
        filename,
        source=source,
        include_loader=include_loader,
        device_map=device_map,
        max_depth=max_depth,
    )
    return parser.parse()
