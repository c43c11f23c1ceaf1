"""
Uxn Code Generator
==================

This module turns parsed TAL nodes into a ROM image in two passes.

Pass 1 (Addresses)
------------------
- Walk the nodes with a cursor starting at 0x0100
- Compute each node's width without writing anything
- Define every label at the cursor value where it appears
- Apply padding, which may move the cursor backwards

Pass 2 (Emission)
-----------------
- Walk the same nodes again, writing bytes to the Rom
- Resolve every reference against the completed symbol table, so forward
  references work and undefined labels are reported only now
- Check that each label lands where pass 1 put it
- Code (opcodes, literals, references) always counts towards the ROM
  length; raw data only up to its last non-zero byte

Reference Encodings
-------------------
Relative offsets are measured from the slot after the operand's consumer,
``target - (operand_address + 2)``, which is where the VM's program
counter points when the jump executes.

| Rune | Bytes        | Operand                              |
|------|--------------|--------------------------------------|
| .    | LIT zz       | target, must be < 0x100              |
| ,    | LIT rr       | signed byte offset                   |
| ;    | LIT2 aaaa    | target                               |
| -    | zz           | target, must be < 0x100              |
| _    | rr           | signed byte offset                   |
| =    | aaaa         | target                               |
| !    | JMI rrrr     | 16-bit offset                        |
| ?    | JCI rrrr     | 16-bit offset                        |
| word | JSI rrrr     | 16-bit offset                        |
"""

import logging
from typing import Optional

from uxn_tal.assembler.devicemap import DeviceMap
from uxn_tal.assembler.opcodes import JCI, JMI, JSI, LIT, LIT2
from uxn_tal.assembler.parser import (
    DeviceRef,
    Instruction,
    LabelDef,
    LabelRef,
    Literal,
    Node,
    Padding,
    RawData,
)
from uxn_tal.assembler.rom import ADDRESS_SPACE, PROGRAM_START, Rom
from uxn_tal.assembler.runes import (
    ABSOLUTE_RUNES,
    RELATIVE_RUNES,
    ZERO_PAGE_RUNES,
    Rune,
    operand_offset,
    reference_width,
)
from uxn_tal.assembler.symbols import SymbolTable
from uxn_tal.errors import (
    InternalError,
    InvalidAddressingError,
    InvalidPaddingError,
    RomTooLargeError,
    SourceLocation,
    UndefinedLabelError,
)

logger = logging.getLogger(__name__)

_IMMEDIATE_OPCODES = {
    Rune.IMMEDIATE_JUMP: JMI,
    Rune.CONDITIONAL_JUMP: JCI,
    None: JSI,
}


class CodeGenerator:
    """
    Generates a Uxn ROM from parsed nodes.

    A CodeGenerator is good for one compilation: ``generate`` fills its Rom
    and symbol table, which stay available for output afterwards.

    Usage:
        codegen = CodeGenerator()
        rom = codegen.generate(nodes)
        symbols = codegen.symbols
    """

    def __init__(
        self,
        device_map: Optional[DeviceMap] = None,
        sources: Optional[dict[str, str]] = None,
    ):
        """
        Initialize the code generator.

        Args:
            device_map: Devices that references may name
            sources: Source text per filename, for quoting lines in errors
        """
        self.device_map = device_map if device_map is not None else DeviceMap.default()
        self.symbols = SymbolTable()
        self.rom = Rom()
        self._sources = sources or {}
        self._pc = PROGRAM_START
        self._generated = False

    def generate(self, nodes: list[Node]) -> bytes:
        """
        Assemble nodes into ROM bytes.

        Returns:
            The ROM file contents (from 0x0100 to the highest byte written)

        Raises:
            AssemblerError: On the first error; no partial ROM is returned
        """
        if self._generated:
            raise InternalError("CodeGenerator instances generate a single program")
        self._generated = True

        self._pass1(nodes)
        logger.debug("pass 1: %d symbols, cursor ends at %#06x", len(self.symbols), self._pc)

        self._pass2(nodes)
        program = self.rom.program()
        logger.debug("pass 2: %d bytes emitted", len(program))
        return program

    def get_code(self) -> bytes:
        return self.rom.program()

    def get_symbols(self) -> dict[str, int]:
        return self.symbols.as_dict()

    # =========================================================================
    # Error Helpers
    # =========================================================================

    def _source_line(self, location: SourceLocation) -> Optional[str]:
        source = self._sources.get(location.filename)
        if source is None:
            return None
        lines = source.splitlines()
        if 0 < location.line <= len(lines):
            return lines[location.line - 1]
        return None

    def _undefined(self, name: str, location: SourceLocation) -> UndefinedLabelError:
        return UndefinedLabelError(
            name,
            location=location,
            source_line=self._source_line(location),
            similar_labels=self.symbols.similar(name),
        )

    # =========================================================================
    # Pass 1: Address Computation
    # =========================================================================

    def _pass1(self, nodes: list[Node]) -> None:
        self._pc = PROGRAM_START
        for node in nodes:
            if isinstance(node, LabelDef):
                self.symbols.define(
                    node.name,
                    self._pc,
                    location=node.location,
                    kind=node.kind,
                    source_line=self._source_line(node.location),
                )
            elif isinstance(node, Padding):
                self._pc = self._padding_target(node, self._pc)
            else:
                self._pc += self._node_width(node)
                if self._pc > ADDRESS_SPACE:
                    raise RomTooLargeError(
                        f"program extends past the 64KB address space (to {self._pc:#x})",
                        location=node.location,
                        source_line=self._source_line(node.location),
                    )

    def _node_width(self, node: Node) -> int:
        if isinstance(node, Instruction):
            return 1
        if isinstance(node, Literal):
            return 3 if node.short else 2
        if isinstance(node, RawData):
            return len(node.data)
        if isinstance(node, LabelRef):
            return reference_width(node.rune)
        if isinstance(node, DeviceRef):
            return 2
        raise InternalError(f"no width for node {type(node).__name__}", location=node.location)

    def _padding_target(self, node: Padding, cursor: int) -> int:
        """
        Cursor value after a padding node.

        Padding to a label uses the address already defined in pass 1, so
        the label must appear before the padding.
        """
        if node.label is not None:
            symbol = self.symbols.lookup(node.label)
            if symbol is not None:
                value = symbol.address
            else:
                value = self.device_map.resolve_path(node.label)
                if value is None:
                    raise self._undefined(node.label, node.location)
        else:
            value = node.address

        target = cursor + value if node.relative else value
        if target > ADDRESS_SPACE:
            raise InvalidPaddingError(
                f"padding to {target:#x} is outside the 64KB address space",
                location=node.location,
                source_line=self._source_line(node.location),
            )
        return target

    # =========================================================================
    # Pass 2: Emission
    # =========================================================================

    def _pass2(self, nodes: list[Node]) -> None:
        rom = self.rom
        for node in nodes:
            rom.location = node.location

            if isinstance(node, LabelDef):
                self._check_label(node)
            elif isinstance(node, Padding):
                rom.pad_to(self._padding_target(node, rom.position))
            elif isinstance(node, Instruction):
                rom.write_byte(node.opcode)
                rom.extend_length()
            elif isinstance(node, Literal):
                self._emit_literal(node)
            elif isinstance(node, RawData):
                rom.write_bytes(node.data)
            elif isinstance(node, LabelRef):
                self._emit_reference(node)
            elif isinstance(node, DeviceRef):
                self._emit_device(node)
            else:
                raise InternalError(
                    f"cannot emit node {type(node).__name__}", location=node.location
                )

    def _check_label(self, node: LabelDef) -> None:
        symbol = self.symbols.lookup(node.name)
        if symbol is None or symbol.address != self.rom.position:
            raise InternalError(
                f"label '{node.name}' moved between passes",
                location=node.location,
            )

    def _emit_literal(self, node: Literal) -> None:
        if node.short:
            self.rom.write_byte(LIT2)
            self.rom.write_short(node.value)
        else:
            self.rom.write_byte(LIT)
            self.rom.write_byte(node.value)
        self.rom.extend_length()

    def _resolve(self, node: LabelRef) -> int:
        """Target address of a reference: labels first, then devices."""
        symbol_id = self.symbols.id_of(node.name)
        if symbol_id is not None:
            return self.symbols.get(symbol_id).address
        address = self.device_map.resolve_path(node.name)
        if address is not None:
            return address
        raise self._undefined(node.name, node.location)

    def _emit_reference(self, node: LabelRef) -> None:
        rune = node.rune
        target = self._resolve(node)
        operand_address = self.rom.position + operand_offset(rune)

        if rune in ZERO_PAGE_RUNES:
            if target > 0xFF:
                raise InvalidAddressingError(
                    f"'{node.name}' at {target:#06x} is not in the zero-page",
                    location=node.location,
                    hint="use ';' or '=' for absolute addresses",
                    source_line=self._source_line(node.location),
                )
            if rune is Rune.ZERO_PAGE:
                self.rom.write_byte(LIT)
            self.rom.write_byte(target)

        elif rune in RELATIVE_RUNES:
            offset = target - operand_address - 2
            if not -128 <= offset <= 127:
                direction = "forward" if offset > 0 else "backward"
                raise InvalidAddressingError(
                    f"relative reference to '{node.name}' is too far "
                    f"({offset} bytes {direction})",
                    location=node.location,
                    hint="relative references reach -128 to +127 bytes; use ';' or '!' instead",
                    source_line=self._source_line(node.location),
                )
            if rune is Rune.RELATIVE:
                self.rom.write_byte(LIT)
            self.rom.write_byte(offset & 0xFF)

        elif rune in ABSOLUTE_RUNES:
            if rune is Rune.ABSOLUTE:
                self.rom.write_byte(LIT2)
            self.rom.write_short(target)

        else:
            offset = target - operand_address - 2
            self.rom.write_byte(_IMMEDIATE_OPCODES[rune])
            self.rom.write_short(offset & 0xFFFF)

        self.rom.extend_length()

    def _emit_device(self, node: DeviceRef) -> None:
        address = self.device_map.resolve(node.device, node.field)
        if address is None:
            raise self._undefined(node.name, node.location)
        self.rom.write_byte(LIT)
        self.rom.write_byte(address)
        self.rom.extend_length()
