"""
TAL Assembler for Uxn
=====================

This package assembles TAL, the assembly language of the Uxn virtual
machine, into ROM images that Uxn emulators load at address 0x0100.

Main Components
---------------
- **Assembler**: Facade that runs the whole pipeline and writes outputs
- **Lexer**: Splits source into whitespace-delimited, rune-classified tokens
- **Parser**: Expands macros and includes, builds nodes, names lambdas
- **CodeGenerator**: Two-pass address computation and byte emission
- **Rom**: Bounds-checked 64KB output buffer
- **DeviceMap**: ``.Device/field`` port addresses
- **SymbolTable**: Labels and their addresses, plus symbol file output

Assembly Process
----------------
1. **Lexing**: source text -> tokens (opcodes, literals, runes)
2. **Parsing**: tokens -> nodes (macros expanded, includes spliced)
3. **Code Generation** (two-pass):
   - Pass 1: label addresses
   - Pass 2: bytes, with every reference resolved

Example Usage
-------------
>>> from uxn_tal.assembler import assemble
>>> assemble("|0100 #12 #1234")
b'\\x80\\x12\\xa0\\x124'
"""

from uxn_tal.assembler.assembler import (
    Assembler,
    FileIncludeLoader,
    assemble,
    assemble_file,
)
from uxn_tal.assembler.codegen import CodeGenerator
from uxn_tal.assembler.devicemap import (
    Device,
    DeviceField,
    DeviceMap,
    parse_device_maps,
)
from uxn_tal.assembler.lexer import Lexer, Token, TokenType, tokenize
from uxn_tal.assembler.opcodes import decode, encode, lookup, opcode_name
from uxn_tal.assembler.parser import Parser, parse_source
from uxn_tal.assembler.rom import Rom
from uxn_tal.assembler.runes import Rune, classify
from uxn_tal.assembler.symbols import (
    Symbol,
    SymbolTable,
    generate_binary,
    generate_text,
)

__all__ = [
    # Main interface
    "Assembler",
    "FileIncludeLoader",
    "assemble",
    "assemble_file",
    # Components
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    "Parser",
    "parse_source",
    "CodeGenerator",
    "Rom",
    "Rune",
    "classify",
    # Opcodes
    "encode",
    "decode",
    "lookup",
    "opcode_name",
    # Devices
    "Device",
    "DeviceField",
    "DeviceMap",
    "parse_device_maps",
    # Symbols
    "Symbol",
    "SymbolTable",
    "generate_binary",
    "generate_text",
]
