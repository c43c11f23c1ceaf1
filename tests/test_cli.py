# =============================================================================
# test_cli.py - Command-Line Interface Tests
# =============================================================================
# Tests for the uxntal and uxndis commands, run through Click's CliRunner.
# =============================================================================

from pathlib import Path

import pytest
from click.testing import CliRunner

from uxn_tal import __version__
from uxn_tal.cli.errors import ExitCode
from uxn_tal.cli.uxndis import main as uxndis
from uxn_tal.cli.uxntal import main as uxntal

HELLO = """\
|0100 @on-reset
    #41 .Console/write DEO
    BRK
"""

HELLO_ROM = bytes([0x80, 0x41, 0x80, 0x18, 0x17, 0x00])


@pytest.fixture
def runner():
    return CliRunner()


class TestUxntal:
    """Test the assembler command."""

    def test_default_output(self, runner):
        with runner.isolated_filesystem():
            Path("hello.tal").write_text(HELLO)
            result = runner.invoke(uxntal, ["hello.tal"])
            assert result.exit_code == 0, result.output
            assert Path("hello.rom").read_bytes() == HELLO_ROM
            assert "6 bytes" in result.output

    def test_output_and_symbols(self, runner):
        with runner.isolated_filesystem():
            Path("hello.tal").write_text(HELLO)
            result = runner.invoke(uxntal, ["hello.tal", "out.rom", "-s", "--text-symbols"])
            assert result.exit_code == 0, result.output
            assert Path("out.rom").read_bytes() == HELLO_ROM
            assert Path("out.rom.sym").read_bytes() == b"\x01\x00on-reset\x00"
            assert Path("out.rom.sym.txt").read_text() == "on-reset 0100 0006\n"

    def test_include_path(self, runner):
        with runner.isolated_filesystem():
            Path("lib").mkdir()
            Path("lib/emit.tal").write_text("%EMIT { .Console/write DEO }\n")
            Path("main.tal").write_text("~emit.tal\n|0100 #41 EMIT BRK\n")
            result = runner.invoke(uxntal, ["-I", "lib", "main.tal"])
            assert result.exit_code == 0, result.output
            assert Path("main.rom").read_bytes() == HELLO_ROM

    def test_device_declarations(self, runner):
        with runner.isolated_filesystem():
            Path("devices.tal").write_text("|f0 @Debug &out $1\n")
            Path("main.tal").write_text("|0100 #01 .Debug/out DEO\n")
            result = runner.invoke(uxntal, ["--devices", "devices.tal", "main.tal"])
            assert result.exit_code == 0, result.output
            assert Path("main.rom").read_bytes() == bytes([0x80, 0x01, 0x80, 0xF0, 0x17])

    def test_invalid_device_declarations(self, runner):
        with runner.isolated_filesystem():
            Path("devices.tal").write_text("|100 @Far &out $1\n")
            Path("main.tal").write_text("BRK\n")
            result = runner.invoke(uxntal, ["--devices", "devices.tal", "main.tal"])
            assert result.exit_code == ExitCode.INVALID_ARGS

    def test_assembly_error(self, runner):
        with runner.isolated_filesystem():
            Path("bad.tal").write_text("|0100 ;nowhere\n")
            result = runner.invoke(uxntal, ["bad.tal"])
            assert result.exit_code == ExitCode.BUILD_ERROR
            assert "undefined label 'nowhere'" in result.output
            assert not Path("bad.rom").exists()

    def test_missing_input(self, runner):
        result = runner.invoke(uxntal, ["does-not-exist.tal"])
        assert result.exit_code == 2

    def test_version(self, runner):
        result = runner.invoke(uxntal, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestUxndis:
    """Test the disassembler command."""

    def test_listing(self, runner):
        with runner.isolated_filesystem():
            Path("hello.rom").write_bytes(HELLO_ROM)
            result = runner.invoke(uxndis, ["hello.rom"])
            assert result.exit_code == 0, result.output
            assert "0100  80 41     #41" in result.output
            assert "( Console/write )" in result.output
            assert "BRK" in result.output

    def test_symbols(self, runner):
        with runner.isolated_filesystem():
            Path("hello.rom").write_bytes(HELLO_ROM)
            Path("hello.rom.sym").write_bytes(b"\x01\x00on-reset\x00")
            result = runner.invoke(uxndis, ["hello.rom", "--sym", "hello.rom.sym"])
            assert result.exit_code == 0, result.output
            assert "@on-reset" in result.output

    def test_no_bytes_to_file(self, runner):
        with runner.isolated_filesystem():
            Path("hello.rom").write_bytes(HELLO_ROM)
            result = runner.invoke(uxndis, ["hello.rom", "--no-bytes", "-o", "hello.lst"])
            assert result.exit_code == 0, result.output
            listing = Path("hello.lst").read_text()
            assert "0100  #41\n" in listing
            assert "0105  BRK\n" in listing

    def test_base_address(self, runner):
        with runner.isolated_filesystem():
            Path("hello.rom").write_bytes(HELLO_ROM)
            result = runner.invoke(uxndis, ["hello.rom", "--base", "0x8000", "--no-bytes"])
            assert result.exit_code == 0, result.output
            assert "8000  #41" in result.output

    def test_invalid_base(self, runner):
        with runner.isolated_filesystem():
            Path("hello.rom").write_bytes(HELLO_ROM)
            result = runner.invoke(uxndis, ["hello.rom", "--base", "zz"])
            assert result.exit_code == ExitCode.INVALID_ARGS
            assert "invalid address" in result.output
