"""
uxn-tal - TAL Assembler and Disassembler for Uxn
================================================

This package provides an assembler for TAL, the assembly language of the
Uxn virtual machine, and a disassembler for the ROMs it produces.

Uxn is a stack machine with a 64KB address space. Programs are loaded at
0x0100 and talk to peripherals through a 256-byte device page, reached
with the DEI and DEO instructions.

Main Components
---------------
- **assembler**: TAL assembler (uxntal)
    Converts TAL source files (.tal) to ROM images (.rom) and symbol files
    (.rom.sym)

- **disassembler**: ROM disassembler (uxndis)
    Lists the instructions of a ROM, with labels from a symbol file

Quick Start
-----------
Assemble a program:
    >>> from uxn_tal.assembler import Assembler
    >>> asm = Assembler()
    >>> code = asm.assemble_file("hello.tal")
    >>> asm.write_rom("hello.rom")

Or use the command-line tools:
    $ uxntal hello.tal hello.rom -s
    $ uxndis hello.rom --sym hello.rom.sym

Reference Documentation
-----------------------
- Uxn: https://wiki.xxiivv.com/site/uxn.html
- TAL: https://wiki.xxiivv.com/site/uxntal.html
- Varvara devices: https://wiki.xxiivv.com/site/varvara.html

Version History
---------------
1.0.0 - Initial release with assembler, symbol files and disassembler
"""

__version__ = "1.0.0"
__author__ = "Hugo José Pinto & Contributors"

# =============================================================================
# Public API Exports
# =============================================================================

from uxn_tal.assembler import (
    Assembler,
    DeviceMap,
    assemble,
    assemble_file,
)
from uxn_tal.disassembler import DisassembledInstruction, UxnDisassembler, disassemble
from uxn_tal.errors import (
    TalError,
    SourceLocation,
    AssemblerError,
    AssemblySyntaxError,
    ExpectedIdentifierError,
    FileReadError,
    UnknownOpcodeError,
    InvalidNumberError,
    Utf8DecodeError,
    UndefinedLabelError,
    DuplicateLabelError,
    InvalidAddressingError,
    RomTooLargeError,
    InvalidPaddingError,
    LabelReferenceError,
    InternalError,
    BackendError,
    DisassemblyError,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Assembler
    "Assembler",
    "DeviceMap",
    "assemble",
    "assemble_file",
    # Disassembler
    "UxnDisassembler",
    "DisassembledInstruction",
    "disassemble",
    # Exception hierarchy
    "TalError",
    "SourceLocation",
    "AssemblerError",
    "AssemblySyntaxError",
    "ExpectedIdentifierError",
    "FileReadError",
    "UnknownOpcodeError",
    "InvalidNumberError",
    "Utf8DecodeError",
    "UndefinedLabelError",
    "DuplicateLabelError",
    "InvalidAddressingError",
    "RomTooLargeError",
    "InvalidPaddingError",
    "LabelReferenceError",
    "InternalError",
    "BackendError",
    "DisassemblyError",
]
