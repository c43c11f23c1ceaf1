"""
uxntal - TAL Assembler Command-Line Interface
=============================================

This module implements the command-line interface for the TAL assembler.

Usage Examples
--------------
Basic assembly:
    $ uxntal hello.tal

With output file:
    $ uxntal hello.tal hello.rom

Write the binary symbol file used by emulators (hello.rom.sym):
    $ uxntal hello.tal -s

With include paths and extra device declarations:
    $ uxntal -I ./lib --devices devices.tal program.tal

Verbose mode:
    $ uxntal -v hello.tal
"""

import logging
from pathlib import Path
from typing import Optional

import click

from uxn_tal import __version__
from uxn_tal.assembler import Assembler, DeviceMap, parse_device_maps
from uxn_tal.cli.errors import handle_cli_exception


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


def load_device_map(path: Optional[Path]) -> DeviceMap:
    """The default devices, plus those declared in ``path``."""
    device_map = DeviceMap.default()
    if path is None:
        return device_map
    try:
        declared = parse_device_maps(path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--devices") from e
    return device_map.merge(declared)


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.argument(
    "output_file",
    required=False,
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.option(
    "-s", "--symbols",
    is_flag=True,
    help="Write the binary symbol file next to the ROM (OUTPUT.sym)",
)
@click.option(
    "--text-symbols",
    is_flag=True,
    help="Write a text symbol listing next to the ROM (OUTPUT.sym.txt)",
)
@click.option(
    "-I", "--include",
    multiple=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Add include search path (can be repeated)",
)
@click.option(
    "--devices",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="TAL file whose |xx @Device $n &field declarations extend the device map",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="uxntal")
def main(
    input_file: Path,
    output_file: Optional[Path],
    symbols: bool,
    text_symbols: bool,
    include: tuple[Path, ...],
    devices: Optional[Path],
    verbose: bool,
) -> None:
    """
    Assemble TAL source into a Uxn ROM.

    INPUT_FILE is the TAL source file. OUTPUT_FILE defaults to the input
    name with a .rom suffix.

    \b
    Examples:
        uxntal hello.tal                # Outputs hello.rom
        uxntal hello.tal out.rom -s     # Also writes out.rom.sym
        uxntal -I lib/ hello.tal        # Add include path
    """
    setup_logging(verbose)
    output = output_file if output_file is not None else input_file.with_suffix(".rom")

    try:
        asm = Assembler(
            device_map=load_device_map(devices),
            include_paths=list(include),
        )

        if verbose:
            click.echo(f"Assembling {input_file}...")

        code = asm.assemble_file(input_file)
        asm.write_rom(output)

        if symbols:
            sym_path = output.with_name(output.name + ".sym")
            asm.write_symbols(sym_path)
            if verbose:
                click.echo(f"Wrote symbols to {sym_path}")

        if text_symbols:
            txt_path = output.with_name(output.name + ".sym.txt")
            asm.write_symbols_text(txt_path, sizes=True)
            if verbose:
                click.echo(f"Wrote text symbols to {txt_path}")

        click.echo(
            f"Assembled {output} in {len(code)} bytes "
            f"({100 * len(code) / 0xFF00:.2f}% used), {len(asm.get_symbols())} labels."
        )

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
