"""
ROM Image Buffer
================

The Rom is the assembler's output buffer. It mirrors the Uxn address space:
addresses run from 0x0000 to 0xFFFF and programs are loaded at 0x0100, so
the bytes written below that (the zero page) are never part of a ROM file.

Cursor and Extents
------------------
- ``position``: where the next write lands. Padding moves it anywhere in
  the address space, including backwards over bytes already written.
- ``size``: highest address written + 1. It only ever grows; padding alone
  does not change it.
- ``length``: end of the ROM file. Like uxnasm, a write only extends it
  when the byte is non-zero, so trailing zero data is dropped from the
  file. Code writes call ``extend_length`` to keep their zero bytes (a
  final ``BRK``, a ``#00`` operand).

ROM files run from 0x0100 to ``length``.

Overwriting a region after moving backwards is legal and is how vectors and
headers are patched in after the code they point to.
"""

import logging
from typing import Optional

from uxn_tal.errors import (
    InvalidAddressingError,
    InvalidPaddingError,
    RomTooLargeError,
    SourceLocation,
)

logger = logging.getLogger(__name__)

ADDRESS_SPACE = 0x10000
PROGRAM_START = 0x0100


class Rom:
    """
    A bounds-checked 64KB byte buffer with a write cursor.

    Example:
        >>> rom = Rom()
        >>> rom.write_byte(0x80)
        >>> rom.write_byte(0x12)
        >>> rom.program()
        b'\\x80\\x12'
    """

    def __init__(self, start: int = PROGRAM_START):
        self._buffer = bytearray()
        self._position = start
        self._size = 0
        self._length = 0
        self.location: Optional[SourceLocation] = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def position(self) -> int:
        return self._position

    @property
    def size(self) -> int:
        return self._size

    @property
    def length(self) -> int:
        return self._length

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def write_byte(self, value: int) -> None:
        """Write one byte at the cursor and advance it."""
        self.write_byte_at(self._position, value)
        self._position += 1

    def write_short(self, value: int) -> None:
        """Write a big-endian 16-bit value at the cursor and advance it."""
        self.write_byte((value >> 8) & 0xFF)
        self.write_byte(value & 0xFF)

    def write_bytes(self, data: bytes) -> None:
        for value in data:
            self.write_byte(value)

    def write_byte_at(self, address: int, value: int) -> None:
        """
        Write one byte without moving the cursor.

        Raises:
            RomTooLargeError: If the address is past the 64KB space.
            InvalidAddressingError: If the address is in the zero page.
        """
        if address >= ADDRESS_SPACE:
            raise RomTooLargeError(
                f"write at {address:#06x} is past the end of the 64KB address space",
                location=self.location,
            )
        if address < PROGRAM_START:
            raise InvalidAddressingError(
                f"writing in zero-page at {address:#06x}",
                location=self.location,
                hint="use |0100 before emitting code or data",
            )
        self._ensure_capacity(address + 1)
        self._buffer[address] = value & 0xFF
        if address + 1 > self._size:
            self._size = address + 1
        if value & 0xFF and address + 1 > self._length:
            self._length = address + 1

    def write_short_at(self, address: int, value: int) -> None:
        self.write_byte_at(address, (value >> 8) & 0xFF)
        self.write_byte_at(address + 1, value & 0xFF)

    def extend_length(self) -> None:
        """Extend the file to the cursor, keeping zero bytes written up to it."""
        if self._position > self._length:
            self._length = self._position

    # -------------------------------------------------------------------------
    # Cursor Movement
    # -------------------------------------------------------------------------

    def pad_to(self, address: int) -> None:
        """
        Move the cursor to an absolute address.

        Moving backwards is allowed. The backing buffer is extended with
        zeros up to the new cursor but ``size`` and ``length`` are unchanged.

        Raises:
            InvalidPaddingError: If the address is outside the 64KB space.
        """
        if not 0 <= address <= ADDRESS_SPACE:
            raise InvalidPaddingError(
                f"padding to {address:#x} is outside the 64KB address space",
                location=self.location,
            )
        if address < self._position:
            logger.debug("padding backwards from %#06x to %#06x", self._position, address)
        self._ensure_capacity(address)
        self._position = address

    def advance(self, count: int) -> None:
        """Move the cursor forward by ``count`` bytes."""
        self.pad_to(self._position + count)

    def _ensure_capacity(self, end: int) -> None:
        if end > len(self._buffer):
            self._buffer.extend(bytes(end - len(self._buffer)))

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def read_byte(self, address: int) -> int:
        if address < len(self._buffer):
            return self._buffer[address]
        return 0

    def data(self) -> bytes:
        """Every byte from address 0 up to ``size``."""
        return bytes(self._buffer[:self._size])

    def program(self, start: int = PROGRAM_START) -> bytes:
        """
        The ROM file contents: bytes from ``start`` up to ``length``.

        Returns an empty string of bytes if nothing was written past ``start``.
        """
        if self._length <= start:
            return b""
        return bytes(self._buffer[start:self._length])

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"Rom(position={self._position:#06x}, size={self._size:#x}, length={self._length:#x})"
