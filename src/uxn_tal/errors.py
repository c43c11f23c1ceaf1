"""
uxn-tal Error Hierarchy
=======================

Every error raised by the toolchain derives from TalError, so callers can
catch the whole family with a single except clause.

Exception Hierarchy
-------------------
TalError (base)
├── AssemblerError (assembly pipeline)
│   ├── AssemblySyntaxError - malformed source text
│   ├── ExpectedIdentifierError - rune not followed by a name
│   ├── FileReadError - source or include cannot be read
│   ├── UnknownOpcodeError - bad mnemonic or mode suffix
│   ├── InvalidNumberError - malformed or out of range literal
│   ├── Utf8DecodeError - source bytes are not UTF-8
│   ├── UndefinedLabelError - reference to a label never defined
│   ├── DuplicateLabelError - label defined twice
│   ├── InvalidAddressingError - reference out of reach of its rune
│   ├── RomTooLargeError - write past the 64KB address space
│   ├── InvalidPaddingError - padding outside the address space
│   ├── LabelReferenceError - malformed label reference
│   └── InternalError - broken invariant (e.g. recursive macro)
├── BackendError - external tool integration
└── DisassemblyError - disassembler misuse

Error messages follow this format:
    filename:line:column: error: description
        source_line_text
        ^
    hint: suggestion for fixing (when available)

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class TalError(Exception):
    """
    Base exception for all uxn-tal errors.

        try:
            rom = assemble_file("hello.tal")
        except TalError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A position in TAL source, used by tokens, nodes, symbols and errors.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(TalError):
    """
    Base exception for errors detected while assembling a program.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The offending source line, verbatim (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Render the message with location, source context and hint.

        Example output:
            hello.tal:3:5: error: undefined label 'on-rset'
                ;on-rset .System/vector DEO2
                ^
            hint: did you mean 'on-reset'?
        """
        if self.location:
            lines = [f"{self.location}: error: {self.message}"]
        else:
            lines = [f"error: {self.message}"]

        if self.source_line is not None and self.location is not None:
            lines.append(f"    {self.source_line}")
            if self.location.column > 0:
                lines.append(" " * (3 + self.location.column) + "^")

        if self.hint:
            lines.append(f"hint: {self.hint}")

        return "\n".join(lines)


class AssemblySyntaxError(AssemblerError):
    """
    Malformed TAL source.

    Examples:
        - Unterminated comment ``( ...``
        - Unbalanced lambda braces
        - Wrong number of hex digits after ``#``
    """
    pass


class ExpectedIdentifierError(AssemblerError):
    """A rune that introduces a name (``@``, ``&``, ``;``...) has none."""

    def __init__(
        self,
        rune: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.rune = rune
        super().__init__(
            f"expected identifier after '{rune}'",
            location=location,
            source_line=source_line,
        )


class FileReadError(AssemblerError):
    """
    A source or include file could not be read.

    Raised when the file is missing, unreadable, included circularly or
    when an include is met without a loader to resolve it.
    """

    def __init__(
        self,
        path: str,
        reason: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        search_paths: Optional[list[str]] = None,
    ):
        self.path = path
        self.reason = reason
        self.search_paths = search_paths or []

        hint = None
        if self.search_paths:
            hint = "searched in: " + ", ".join(self.search_paths)

        super().__init__(
            f"cannot read '{path}': {reason}",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class UnknownOpcodeError(AssemblerError):
    """Unknown base mnemonic, or an invalid/duplicated mode suffix."""

    def __init__(
        self,
        word: str,
        reason: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.word = word
        self.reason = reason
        message = f"unknown opcode '{word}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, location=location, source_line=source_line)


class InvalidNumberError(AssemblerError):
    """A numeric literal is malformed or does not fit its width."""
    pass


class Utf8DecodeError(AssemblerError):
    """Source bytes are not valid UTF-8."""
    pass


class UndefinedLabelError(AssemblerError):
    """
    Reference to a label that is never defined.

    Only raised once the address pass has seen the whole program, so
    forward references never trigger it. Similar names found in the
    symbol table are offered as a hint.
    """

    def __init__(
        self,
        label: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_labels: Optional[list[str]] = None,
    ):
        self.label = label
        self.similar_labels = similar_labels or []

        if not hint and self.similar_labels:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_labels[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undefined label '{label}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateLabelError(AssemblerError):
    """A fully-qualified label (or macro name) is defined twice."""

    def __init__(
        self,
        label: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.label = label
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{label}' was first defined at {original_location}"

        super().__init__(
            f"duplicate label '{label}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class InvalidAddressingError(AssemblerError):
    """
    A reference cannot reach its target with the rune used.

    Relative runes (``,`` and ``_``) carry a signed byte, so the target
    must lie within -128..127 of the slot after the operand. Zero-page
    runes (``.`` and ``-``) need a target below 0x100.
    """
    pass


class RomTooLargeError(AssemblerError):
    """A write landed past the end of the 64KB address space."""
    pass


class InvalidPaddingError(AssemblerError):
    """Padding moved the cursor outside the 64KB address space."""
    pass


class LabelReferenceError(AssemblerError):
    """A label reference is malformed (e.g. sublabel with no parent)."""
    pass


class InternalError(AssemblerError):
    """
    A broken invariant inside the toolchain.

    Also raised for recursive macro expansion, which would otherwise
    never terminate.
    """
    pass


# =============================================================================
# Other Exceptions
# =============================================================================

class BackendError(TalError):
    """Failure reported by an external assembler or emulator backend."""
    pass


class DisassemblyError(TalError):
    """Invalid arguments passed to the disassembler."""
    pass
