"""
uxndis - Uxn ROM Disassembler Command-Line Interface
====================================================

Usage Examples
--------------
Disassemble a ROM:
    $ uxndis hello.rom

With labels from the symbol file written by ``uxntal -s``:
    $ uxndis hello.rom --sym hello.rom.sym

Output to file, without the byte column:
    $ uxndis hello.rom -o hello.lst --no-bytes

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

import logging
from pathlib import Path
from typing import Optional

import click

from uxn_tal import __version__
from uxn_tal.assembler.symbols import parse_binary
from uxn_tal.cli.errors import handle_cli_exception
from uxn_tal.cli.uxntal import setup_logging
from uxn_tal.disassembler import UxnDisassembler

logger = logging.getLogger(__name__)


def parse_address(text: str) -> int:
    """Parse a base address given as 0x-prefixed hex, $-prefixed hex or decimal."""
    try:
        if text.lower().startswith("0x"):
            value = int(text, 16)
        elif text.startswith("$"):
            value = int(text[1:], 16)
        else:
            value = int(text)
    except ValueError as e:
        raise click.BadParameter(f"invalid address '{text}'", param_hint="--base") from e
    if not 0 <= value <= 0xFFFF:
        raise click.BadParameter("address must be 0-65535 (0x0000-0xFFFF)", param_hint="--base")
    return value


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file (default: stdout)",
)
@click.option(
    "--sym",
    "sym_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Binary symbol file used to label addresses",
)
@click.option(
    "--base",
    type=str,
    default="0x0100",
    help="Address of the first byte (hex with 0x prefix or decimal). Default: 0x0100",
)
@click.option(
    "--no-bytes",
    is_flag=True,
    help="Omit raw bytes from output (show only address and instruction)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="uxndis")
def main(
    input_file: Path,
    output: Optional[Path],
    sym_file: Optional[Path],
    base: str,
    no_bytes: bool,
    verbose: bool,
) -> None:
    """
    Disassemble a Uxn ROM.

    INPUT_FILE is the ROM to disassemble.
    """
    setup_logging(verbose)

    try:
        base_address = parse_address(base)
        data = input_file.read_bytes()
        symbol_table = parse_binary(sym_file.read_bytes()) if sym_file else {}

        if verbose:
            click.echo(f"Input file: {input_file} ({len(data)} bytes)", err=True)
            click.echo(f"Base address: {base_address:04x}", err=True)
            click.echo(f"Symbols: {len(symbol_table)}", err=True)

        disasm = UxnDisassembler(symbol_table=symbol_table)
        instructions = disasm.disassemble(data, start_address=base_address)

        lines = [f"( Disassembly of {input_file.name}, {len(data)} bytes )", ""]
        for instr in instructions:
            name = symbol_table.get(instr.address)
            if name:
                lines.append(f"@{name}")
            if no_bytes:
                line = f"{instr.address:04x}  {instr.text}"
                if instr.comment:
                    line += f"  ( {instr.comment} )"
                lines.append(line)
            else:
                lines.append(str(instr))

        result = "\n".join(lines) + "\n"
        if output:
            output.write_text(result, encoding="utf-8")
            if verbose:
                click.echo(f"Output written to: {output}", err=True)
        else:
            click.echo(result, nl=False)

        logger.debug("disassembled %d instructions", len(instructions))

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Disassembly")


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
