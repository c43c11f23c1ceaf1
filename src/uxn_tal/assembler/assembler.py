"""
Uxn Assembler - Main Interface
==============================

This module provides the Assembler class, the primary interface for turning
TAL source into Uxn ROMs. It coordinates the lexer, parser and code
generator and writes the ROM and symbol files.

Example Usage
-------------
>>> from uxn_tal.assembler import Assembler
>>>
>>> asm = Assembler()
>>> rom = asm.assemble('''
... |0100 @on-reset
...     ;hello print-str BRK
... @print-str ( str* -- )
...     LDAk .Console/write DEO INC2 LDAk ?print-str POP2 JMP2r
... @hello "Hello 0a 00
... ''')
>>> asm.get_symbols()["print-str"]
263
>>> asm.write_rom("hello.rom")
>>> asm.write_symbols("hello.rom.sym")

Command-Line Usage
------------------
    $ uxntal hello.tal hello.rom --symbols
"""

import logging
from pathlib import Path
from typing import Optional, Union

from uxn_tal.assembler.codegen import CodeGenerator
from uxn_tal.assembler.devicemap import DeviceMap
from uxn_tal.assembler.lexer import Lexer
from uxn_tal.assembler.parser import DEFAULT_MAX_DEPTH, IncludeLoader, Parser
from uxn_tal.assembler.rom import ADDRESS_SPACE, PROGRAM_START
from uxn_tal.assembler.symbols import (
    SymbolTable,
    generate_binary,
    generate_text,
    generate_text_with_sizes,
)
from uxn_tal.errors import FileReadError, InternalError, SourceLocation

logger = logging.getLogger(__name__)


class FileIncludeLoader:
    """
    Resolves ``~path`` includes from the filesystem.

    A path is looked up relative to the directory of the including file
    first, then in each search path in order.
    """

    def __init__(self, search_paths: Optional[list[Union[str, Path]]] = None):
        self.search_paths = [Path(p) for p in (search_paths or [])]

    def resolve(self, path: str, including_file: str) -> Optional[Path]:
        candidates = []
        if not including_file.startswith("<"):
            candidates.append(Path(including_file).parent / path)
        candidates.extend(directory / path for directory in self.search_paths)
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    def __call__(self, path: str, location: SourceLocation) -> tuple[str, str]:
        resolved = self.resolve(path, location.filename)
        if resolved is None:
            raise FileReadError(
                path,
                "file not found",
                location=location,
                search_paths=[str(p) for p in self.search_paths],
            )
        try:
            source = resolved.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise FileReadError(path, f"not valid UTF-8 ({e.reason})", location=location) from e
        except OSError as e:
            raise FileReadError(path, e.strerror or str(e), location=location) from e
        return source, str(resolved)


class Assembler:
    """
    Main TAL assembler class.

    Each call to ``assemble`` is independent: it builds a fresh lexer,
    parser, code generator and Rom. The results of the latest call stay
    available through ``get_code``, ``get_symbols`` and the ``write_*``
    methods.

    Attributes:
        device_map: Devices available to ``.Device/field`` references
        include_paths: Directories searched for ``~path`` includes
        max_macro_depth: Maximum nesting of macro expansions and includes
    """

    def __init__(
        self,
        device_map: Optional[DeviceMap] = None,
        include_paths: Optional[list[Union[str, Path]]] = None,
        max_macro_depth: int = DEFAULT_MAX_DEPTH,
        include_loader: Optional[IncludeLoader] = None,
    ):
        """
        Initialize the assembler.

        Args:
            device_map: Device map to use (default: the Varvara devices)
            include_paths: Directories to search for include files
            max_macro_depth: Maximum nesting of macro expansions
            include_loader: Custom include resolver; replaces the
                filesystem loader built from ``include_paths``
        """
        self.device_map = device_map if device_map is not None else DeviceMap.default()
        self.include_paths = [Path(p) for p in (include_paths or [])]
        self.max_macro_depth = max_macro_depth
        self._include_loader = include_loader
        self._codegen: Optional[CodeGenerator] = None

    # =========================================================================
    # Assembly
    # =========================================================================

    def assemble(self, source: Union[str, bytes], filename: str = "<input>") -> bytes:
        """
        Assemble TAL source into ROM bytes.

        Args:
            source: TAL source text (or UTF-8 bytes)
            filename: Name used in error messages

        Returns:
            The ROM file contents, loaded at 0x0100

        Raises:
            AssemblerError: On the first error found
        """
        return self._assemble(source, filename, self.include_paths)

    assemble_string = assemble

    def assemble_file(self, filepath: Union[str, Path]) -> bytes:
        """
        Assemble a TAL file.

        The file's directory is searched first for its includes, for this
        call only.

        Raises:
            FileReadError: If the file cannot be read
            AssemblerError: If assembly fails
        """
        filepath = Path(filepath)
        self._codegen = None
        try:
            data = filepath.read_bytes()
        except OSError as e:
            raise FileReadError(str(filepath), e.strerror or str(e)) from e

        search_paths = [filepath.parent]
        search_paths.extend(p for p in self.include_paths if p != filepath.parent)

        logger.debug("assembling %s", filepath)
        return self._assemble(data, str(filepath), search_paths)

    def _assemble(
        self,
        source: Union[str, bytes],
        filename: str,
        search_paths: list[Path],
    ) -> bytes:
        # A failed call leaves no results behind
        self._codegen = None

        lexer = Lexer(source, filename, device_map=self.device_map)
        tokens = lexer.tokenize()

        loader = self._include_loader or FileIncludeLoader(search_paths)
        parser = Parser(
            tokens,
            filename,
            source=lexer.source,
            include_loader=loader,
            device_map=self.device_map,
            max_depth=self.max_macro_depth,
        )
        nodes = parser.parse()

        codegen = CodeGenerator(self.device_map, sources=parser.sources)
        code = codegen.generate(nodes)

        self._codegen = codegen
        logger.info(
            "Assembled %s in %d bytes (%.2f%% used), %d labels, %d macros",
            filename,
            len(code),
            100 * len(code) / (ADDRESS_SPACE - PROGRAM_START),
            len(codegen.symbols),
            len(parser.macros),
        )
        return code

    # =========================================================================
    # Results
    # =========================================================================

    def _require_result(self) -> CodeGenerator:
        if self._codegen is None:
            raise InternalError("nothing has been assembled yet")
        return self._codegen

    def get_code(self) -> bytes:
        return self._require_result().get_code()

    def get_symbols(self) -> dict[str, int]:
        """Label name -> address, in definition order."""
        return self._require_result().get_symbols()

    @property
    def symbol_table(self) -> SymbolTable:
        return self._require_result().symbols

    def get_symbols_text(self, sizes: bool = False) -> str:
        codegen = self._require_result()
        if sizes:
            return generate_text_with_sizes(codegen.symbols, codegen.rom.size)
        return generate_text(codegen.symbols)

    def get_symbols_binary(self) -> bytes:
        return generate_binary(self._require_result().symbols)

    # =========================================================================
    # Output Methods
    # =========================================================================

    def write_rom(self, filepath: Union[str, Path]) -> None:
        code = self.get_code()
        Path(filepath).write_bytes(code)
        logger.debug("wrote %d bytes to %s", len(code), filepath)

    def write_symbols(self, filepath: Union[str, Path]) -> None:
        """Write the binary symbol file read by Uxn emulators."""
        Path(filepath).write_bytes(self.get_symbols_binary())
        logger.debug("wrote symbols to %s", filepath)

    def write_symbols_text(self, filepath: Union[str, Path], sizes: bool = False) -> None:
        Path(filepath).write_text(self.get_symbols_text(sizes), encoding="utf-8")
        logger.debug("wrote text symbols to %s", filepath)


def assemble(
    source: Union[str, bytes],
    filename: str = "<input>",
    device_map: Optional[DeviceMap] = None,
) -> bytes:
    """
    Convenience function to assemble TAL source.

    Raises:
        AssemblerError: If assembly fails
    """
    return Assembler(device_map=device_map).assemble(source, filename)


def assemble_file(
    filepath: Union[str, Path],
    device_map: Optional[DeviceMap] = None,
    include_paths: Optional[list[Union[str, Path]]] = None,
) -> bytes:
    """
    Convenience function to assemble a TAL file.

    Raises:
        AssemblerError: If assembly fails
    """
    asm = Assembler(device_map=device_map, include_paths=include_paths)
    return asm.assemble_file(filepath)
