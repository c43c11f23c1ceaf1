"""
Uxn Disassembler
================

Disassembles Uxn ROM bytes back into TAL-style mnemonics. This is the
inverse of the assembler's code generation, and is independent of it: it
only looks at the bytes.

ROM files carry no header and are loaded at 0x0100, so offset 0 of a ROM
is reported as address 0x0100.

Operands
--------
Four families of bytes carry inline operands that must not be decoded as
instructions:

| Bytes             | Name          | Operand | Rendered as       |
|-------------------|---------------|---------|-------------------|
| 0x80 / 0xa0       | LIT / LIT2    | 1 / 2   | #12 / #1234       |
| 0xc0 / 0xe0       | LITr / LIT2r  | 1 / 2   | LITr 12           |
| 0x20 / 0x40 / 0x60| JCI / JMI / JSI | 2     | ?0123 / !0123 / 0123 |

The immediate jumps store an offset relative to the end of the
instruction; the rendered value is the absolute target address.

Disassembly never fails on malformed input: a ROM that ends in the middle
of an operand yields a final partial instruction with the bytes available.

Usage:
    instructions = disassemble(rom_bytes)
    for instr in instructions:
        print(instr)

    disasm = UxnDisassembler(symbol_table={0x0100: "on-reset"})
    print(disasm.disassemble_to_text(rom_bytes))
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from uxn_tal.assembler.devicemap import DeviceMap
from uxn_tal.assembler.opcodes import (
    IMMEDIATE_OPCODES,
    JCI,
    JMI,
    decode,
    opcode_name,
    operand_size,
)
from uxn_tal.assembler.rom import ADDRESS_SPACE, PROGRAM_START
from uxn_tal.errors import DisassemblyError

logger = logging.getLogger(__name__)

# Base opcodes whose byte operand is a device port
_DEVICE_OPS = frozenset({0x16, 0x17})  # DEI, DEO

_IMMEDIATE_PREFIX = {JCI: "?", JMI: "!"}


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class DisassembledInstruction:
    """
    A single disassembled Uxn instruction.

    Attributes:
        address: Address of the instruction byte
        opcode: The instruction byte
        mnemonic: Reference name (e.g. "ADD2k", "LIT2", "JCI")
        raw_bytes: All bytes of the instruction, operand included
        literal: Operand value of LIT forms and immediate jumps, None when
            there is no operand or it is truncated
        target: Absolute target address of an immediate jump
        partial: True if the ROM ended inside the operand
        comment: Annotation (symbol or device port names)
    """
    address: int
    opcode: int
    mnemonic: str
    raw_bytes: bytes
    literal: Optional[int] = None
    target: Optional[int] = None
    partial: bool = False
    comment: str = ""

    @property
    def size(self) -> int:
        return len(self.raw_bytes)

    @property
    def base(self) -> int:
        return decode(self.opcode).base

    @property
    def short(self) -> bool:
        return decode(self.opcode).short

    @property
    def ret(self) -> bool:
        return decode(self.opcode).ret

    @property
    def keep(self) -> bool:
        return decode(self.opcode).keep

    @property
    def is_literal(self) -> bool:
        return self.base == 0 and self.keep

    @property
    def text(self) -> str:
        """The instruction as TAL source."""
        if self.partial:
            operand = "".join(f"{b:02x}" for b in self.raw_bytes[1:])
            return f"{self.mnemonic} {operand}".rstrip()
        if self.opcode in IMMEDIATE_OPCODES:
            prefix = _IMMEDIATE_PREFIX.get(self.opcode, "")
            return f"{prefix}{self.target:04x}"
        if self.is_literal:
            width = 4 if self.short else 2
            if self.ret:
                return f"{self.mnemonic} {self.literal:0{width}x}"
            return f"#{self.literal:0{width}x}"
        return self.mnemonic

    def __str__(self) -> str:
        """Format as listing line: ADDRESS  BYTES  TEXT"""
        hex_bytes = " ".join(f"{b:02x}" for b in self.raw_bytes).ljust(8)
        line = f"{self.address:04x}  {hex_bytes}  {self.text}"
        if self.comment:
            line = f"{line:<32} ( {self.comment} )"
        return line.rstrip()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "address": self.address,
            "opcode": self.opcode,
            "mnemonic": self.mnemonic,
            "text": self.text,
            "size": self.size,
            "bytes": [f"{b:02x}" for b in self.raw_bytes],
            "literal": self.literal,
            "target": self.target,
            "partial": self.partial,
            "comment": self.comment,
        }


# =============================================================================
# Uxn Disassembler
# =============================================================================

class UxnDisassembler:
    """
    Disassembler for Uxn ROMs.

    Attributes:
        _symbol_table: Address -> name, used to annotate jump targets
        device_map: Used to name DEI/DEO ports
    """

    def __init__(
        self,
        symbol_table: Optional[dict[int, str]] = None,
        device_map: Optional[DeviceMap] = None,
    ):
        self._symbol_table = dict(symbol_table or {})
        self.device_map = device_map if device_map is not None else DeviceMap.default()

    def disassemble_one(self, data: bytes, address: int = PROGRAM_START, offset: int = 0) -> DisassembledInstruction:
        """
        Disassemble the instruction at ``data[offset]``.

        Args:
            data: ROM bytes
            address: Address of ``data[offset]``
            offset: Position of the instruction in ``data``

        Raises:
            DisassemblyError: If offset is outside the data
        """
        if not 0 <= offset < len(data):
            raise DisassemblyError(f"offset {offset} outside data of length {len(data)}")

        opcode = data[offset]
        mnemonic = opcode_name(opcode)
        wanted = operand_size(opcode)
        raw = bytes(data[offset:offset + 1 + wanted])

        if len(raw) - 1 < wanted:
            return DisassembledInstruction(
                address=address,
                opcode=opcode,
                mnemonic=mnemonic,
                raw_bytes=raw,
                partial=True,
                comment="incomplete instruction",
            )

        instr = DisassembledInstruction(address=address, opcode=opcode, mnemonic=mnemonic, raw_bytes=raw)
        if wanted:
            instr.literal = int.from_bytes(raw[1:], "big")
        if opcode in IMMEDIATE_OPCODES:
            instr.target = (address + 3 + instr.literal) & 0xFFFF
            instr.comment = self._symbol_table.get(instr.target, "")
        return instr

    def disassemble(
        self,
        data: bytes,
        start_address: int = PROGRAM_START,
        count: Optional[int] = None,
        max_bytes: Optional[int] = None,
    ) -> list[DisassembledInstruction]:
        """
        Disassemble instructions in one forward pass.

        Args:
            data: ROM bytes
            start_address: Address of the first byte (0x0100 for ROM files)
            count: Maximum number of instructions (None = all)
            max_bytes: Maximum number of bytes to process (None = all)

        Raises:
            DisassemblyError: If start_address is outside the address space
        """
        if not 0 <= start_address < ADDRESS_SPACE:
            raise DisassemblyError(f"start address {start_address:#x} outside the address space")

        result = []
        offset = 0
        while offset < len(data):
            if count is not None and len(result) >= count:
                break
            if max_bytes is not None and offset >= max_bytes:
                break

            instr = self.disassemble_one(data, start_address + offset, offset)
            result.append(instr)
            offset += instr.size

        self._annotate_devices(result)
        logger.debug("disassembled %d instructions from %d bytes", len(result), offset)
        return result

    def _annotate_devices(self, instructions: list[DisassembledInstruction]) -> None:
        """Name the port of ``LIT zz DEI/DEO`` pairs."""
        for current, following in zip(instructions, instructions[1:]):
            if (
                current.is_literal
                and not current.short
                and current.literal is not None
                and following.base in _DEVICE_OPS
                and not current.comment
            ):
                name = self.device_map.name_for_address(current.literal)
                if name:
                    current.comment = name

    def disassemble_to_text(
        self,
        data: bytes,
        start_address: int = PROGRAM_START,
        count: Optional[int] = None,
    ) -> str:
        """
        Disassemble and return a listing, with ``@label`` lines for known symbols.
        """
        lines = []
        for instr in self.disassemble(data, start_address, count):
            name = self._symbol_table.get(instr.address)
            if name:
                lines.append(f"@{name}")
            lines.append(str(instr))
        return "\n".join(lines)

    def add_symbol(self, address: int, name: str) -> None:
        self._symbol_table[address] = name

    def add_symbols(self, symbols: dict[int, str]) -> None:
        self._symbol_table.update(symbols)


def disassemble(
    rom: bytes,
    callback: Optional[Callable[[DisassembledInstruction], None]] = None,
    base: int = PROGRAM_START,
) -> list[DisassembledInstruction]:
    """
    Disassemble a ROM, calling ``callback`` for each instruction in order.

    Returns:
        The disassembled instructions
    """
    instructions = UxnDisassembler().disassemble(rom, start_address=base)
    if callback is not None:
        for instr in instructions:
            callback(instr)
    return instructions
