"""
Symbol Table and Symbol Files
=============================

Labels are stored in an arena: each new name gets the next integer id and
keeps it for the whole compilation. The address pass defines symbols, and
the emission pass resolves references against the completed table.

Symbol Files
------------
Two formats are written, both in definition order:

Text (``.sym.txt``), one symbol per line::

    on-reset 0100
    on-reset/loop 0106

Binary (``.sym``), the format read by Uxn emulators and debuggers. Each
symbol is its address as a big-endian short followed by its name and a
NUL byte::

    01 00 6f 6e 2d 72 65 73 65 74 00    on-reset @ 0x0100
"""

import difflib
import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from uxn_tal.errors import DuplicateLabelError, SourceLocation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Symbol:
    """
    A defined label.

    Attributes:
        id: Arena index, assigned in definition order
        name: Fully-qualified name
        address: Address in the Uxn address space
        location: Where the label was defined
        kind: "label", "sublabel" or "lambda"
    """
    id: int
    name: str
    address: int
    location: Optional[SourceLocation] = None
    kind: str = "label"


class SymbolTable:
    """
    Arena of symbols with a name index.

    Example:
        >>> table = SymbolTable()
        >>> table.define("on-reset", 0x0100).id
        0
        >>> table.lookup("on-reset").address
        256
    """

    def __init__(self):
        self._symbols: list[Symbol] = []
        self._index: dict[str, int] = {}

    def define(
        self,
        name: str,
        address: int,
        location: Optional[SourceLocation] = None,
        kind: str = "label",
        source_line: Optional[str] = None,
    ) -> Symbol:
        """
        Add a symbol.

        Raises:
            DuplicateLabelError: If the name is already defined
        """
        if name in self._index:
            original = self._symbols[self._index[name]]
            raise DuplicateLabelError(
                name,
                location=location,
                original_location=original.location,
                source_line=source_line,
            )
        symbol = Symbol(len(self._symbols), name, address, location, kind)
        self._symbols.append(symbol)
        self._index[name] = symbol.id
        return symbol

    def lookup(self, name: str) -> Optional[Symbol]:
        symbol_id = self._index.get(name)
        if symbol_id is None:
            return None
        return self._symbols[symbol_id]

    def id_of(self, name: str) -> Optional[int]:
        return self._index.get(name)

    def get(self, symbol_id: int) -> Symbol:
        return self._symbols[symbol_id]

    def similar(self, name: str, limit: int = 3) -> list[str]:
        """Names close to ``name``, for "did you mean" hints."""
        return difflib.get_close_matches(name, self._index.keys(), n=limit, cutoff=0.6)

    def as_dict(self) -> dict[str, int]:
        return {symbol.name: symbol.address for symbol in self._symbols}

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._symbols)

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, name: object) -> bool:
        return name in self._index


# =============================================================================
# Sizes
# =============================================================================

def infer_sizes(symbols: list[Symbol], end: int) -> dict[str, int]:
    """
    Estimate how many bytes each symbol covers.

    A symbol extends to the next symbol (in definition order) with a higher
    address, or to ``end`` if there is none.
    """
    sizes = {}
    for position, symbol in enumerate(symbols):
        limit = end
        for later in symbols[position + 1:]:
            if later.address > symbol.address:
                limit = later.address
                break
        sizes[symbol.name] = max(limit - symbol.address, 0)
    return sizes


# =============================================================================
# Symbol File Generation
# =============================================================================

def generate_text(symbols) -> str:
    """Text symbol file: ``name addr`` lines, addresses as 4 hex digits."""
    return "".join(f"{symbol.name} {symbol.address:04x}\n" for symbol in symbols)


def generate_text_with_sizes(symbols, end: int) -> str:
    """Text symbol file with a size column: ``name addr size``."""
    symbols = list(symbols)
    sizes = infer_sizes(symbols, end)
    return "".join(
        f"{symbol.name} {symbol.address:04x} {sizes[symbol.name]:04x}\n"
        for symbol in symbols
    )


def generate_binary(symbols) -> bytes:
    """Binary symbol file: big-endian address, name, NUL for each symbol."""
    output = bytearray()
    for symbol in symbols:
        output += (symbol.address & 0xFFFF).to_bytes(2, "big")
        output += symbol.name.encode("utf-8")
        output.append(0)
    return bytes(output)


def parse_binary(data: bytes) -> dict[int, str]:
    """
    Read a binary symbol file into an address -> name mapping.

    When several names share an address the first one wins. A truncated
    trailing record is ignored.
    """
    names: dict[int, str] = {}
    pos = 0
    while pos + 2 < len(data):
        address = int.from_bytes(data[pos:pos + 2], "big")
        end = data.find(b"\x00", pos + 2)
        if end == -1:
            break
        name = data[pos + 2:end].decode("utf-8", errors="replace")
        names.setdefault(address, name)
        pos = end + 1
    logger.debug("read %d symbols", len(names))
    return names
