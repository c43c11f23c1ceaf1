# =============================================================================
# test_assembler.py - Assembler Integration Tests
# =============================================================================
# Tests for the complete pipeline: source text in, ROM bytes out.
#
# Test coverage includes:
#   - Literal, raw and instruction emission
#   - Every reference rune, forward and backward
#   - Relative and zero-page range errors
#   - Padding, overwrites and the extent of the ROM file
#   - Lambdas and macros through to bytes
#   - Includes from the filesystem
#   - ROM and symbol file output
# =============================================================================

import pytest
from uxn_tal.assembler import Assembler, assemble, assemble_file
from uxn_tal.assembler.devicemap import Device, DeviceField, DeviceMap
from uxn_tal.errors import (
    DuplicateLabelError,
    FileReadError,
    InternalError,
    InvalidAddressingError,
    RomTooLargeError,
    UndefinedLabelError,
)

HELLO = """\
( hello.tal )

|0100 @on-reset ( -> )
    ;hello print-str
    BRK

@print-str ( str* -- )
    &while
        LDAk .Console/write DEO
        INC2 LDAk ?&while
    POP2 JMP2r

@hello "Hello 0a 00
"""


# =============================================================================
# Basic Emission Tests
# =============================================================================

class TestEmission:
    """Test the bytes emitted for literals, raw data and instructions."""

    def test_byte_literal(self):
        assert assemble("|0100 #12") == bytes([0x80, 0x12])

    def test_short_literal(self):
        assert assemble("|0100 #1234") == bytes([0xA0, 0x12, 0x34])

    def test_decimal_literals(self):
        assert assemble("#+10 #+300") == bytes([0x80, 0x0A, 0xA0, 0x01, 0x2C])

    def test_instructions(self):
        assert assemble("ADD ADD2k JMP2r BRK") == bytes([0x18, 0xB8, 0x6C, 0x00])

    def test_raw_data(self):
        assert assemble("12 abcd 'a \"hi") == b"\x12\xab\xcdahi"

    def test_device_port(self):
        assert assemble("#41 .Console/write DEO") == bytes([0x80, 0x41, 0x80, 0x18, 0x17])

    def test_custom_device(self):
        devices = DeviceMap.default().with_device(Device(0xF0, "Debug", (DeviceField("out", 1),)))
        assert assemble(".Debug/out DEO", device_map=devices) == bytes([0x80, 0xF0, 0x17])

    def test_empty_program(self):
        assert assemble("( nothing )") == b""


# =============================================================================
# Reference Tests
# =============================================================================

class TestReferences:
    """Test each reference rune."""

    def test_absolute_forward(self):
        assert assemble("|0100 ;data BRK @data 12") == bytes([0xA0, 0x01, 0x04, 0x00, 0x12])

    def test_raw_absolute(self):
        assert assemble("|0100 =data @data") == bytes([0x01, 0x02])

    def test_zero_page(self):
        code = assemble("|00 @var $1 |0100 .var LDZ -var")
        assert code == bytes([0x80, 0x00, 0x10, 0x00])

    def test_zero_page_out_of_range(self):
        with pytest.raises(InvalidAddressingError):
            assemble("|0100 @far .far")

    def test_relative_backward(self):
        assert assemble("|0100 @loop ,loop JMP") == bytes([0x80, 0xFD, 0x0C])

    def test_relative_forward(self):
        assert assemble("|0100 ,skip JMP BRK @skip") == bytes([0x80, 0x01, 0x0C, 0x00])

    def test_raw_relative(self):
        assert assemble("|0100 @here _here") == bytes([0xFE])

    def test_relative_too_far_forward(self):
        with pytest.raises(InvalidAddressingError) as exc_info:
            assemble("|0100 ,far JMP $100 @far")
        assert "too far" in str(exc_info.value)

    def test_relative_too_far_backward(self):
        with pytest.raises(InvalidAddressingError):
            assemble("|0100 @back $100 ,back JMP")

    def test_relative_limits(self):
        """An offset of exactly 127 is still reachable."""
        code = assemble("|0100 ,end JMP $7f @end")
        assert code[:2] == bytes([0x80, 0x7F])

    def test_immediate_jump(self):
        assert assemble("|0100 !end BRK @end") == bytes([0x40, 0x00, 0x01, 0x00])

    def test_conditional_jump_backward(self):
        assert assemble("|0100 @loop ?loop") == bytes([0x20, 0xFF, 0xFD])

    def test_subroutine_call(self):
        code = assemble("|0100 routine BRK @routine JMP2r")
        assert code == bytes([0x60, 0x00, 0x01, 0x00, 0x6C])

    def test_absolute_device_path(self):
        assert assemble(";Console/write") == bytes([0xA0, 0x00, 0x18])

    def test_undefined_label(self):
        with pytest.raises(UndefinedLabelError) as exc_info:
            assemble("|0100 ;nowhere")
        assert exc_info.value.label == "nowhere"

    def test_undefined_label_suggestion(self):
        with pytest.raises(UndefinedLabelError) as exc_info:
            assemble("|0100 @on-reset ;on-rset")
        assert exc_info.value.similar_labels == ["on-reset"]
        assert "did you mean" in str(exc_info.value)

    def test_duplicate_label(self):
        with pytest.raises(DuplicateLabelError):
            assemble("|0100 @a #01 @a")

    def test_error_message_points_at_word(self):
        with pytest.raises(UndefinedLabelError) as exc_info:
            assemble("|0100\n  #01 ;nowhere", "prog.tal")
        lines = str(exc_info.value).splitlines()
        assert lines[0].startswith("prog.tal:2:7: error:")
        assert lines[1] == "      #01 ;nowhere"
        assert lines[2] == " " * 10 + "^"


# =============================================================================
# Padding Tests
# =============================================================================

class TestPadding:
    """Test cursor movement and the extent of the ROM."""

    def test_two_regions(self):
        code = assemble("|0100 #01 |FFE0 #02")
        assert len(code) == 0xFFE2 - 0x0100
        assert code[:2] == bytes([0x80, 0x01])
        assert code[-2:] == bytes([0x80, 0x02])
        assert not any(code[2:-2])

    def test_trailing_padding_not_in_rom(self):
        assert assemble("|0100 #01 $10") == bytes([0x80, 0x01])

    def test_trailing_zero_data_not_in_rom(self):
        assert assemble("|0100 #01 00 00") == bytes([0x80, 0x01])
        assert assemble('|0100 ;hello BRK @hello "Hi 00') == bytes(
            [0xA0, 0x01, 0x04, 0x00, 0x48, 0x69]
        )

    def test_inner_zero_data_kept(self):
        assert assemble("|0100 00 00 12") == bytes([0x00, 0x00, 0x12])

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("|0100 BRK", [0x00]),
            ("|0100 #00", [0x80, 0x00]),
            ("|0100 #0000", [0xA0, 0x00, 0x00]),
            ("|0000 @zero |0100 -zero", [0x00]),
            ("|0000 @zero |0100 =zero", [0x00, 0x00]),
            ("|0100 !next @next", [0x40, 0x00, 0x00]),
        ],
    )
    def test_trailing_zero_code_kept(self, source, expected):
        assert assemble(source) == bytes(expected)

    def test_padding_to_label_overwrites(self):
        assert assemble("|0100 @start 00 00 00 |start 12") == bytes([0x12])

    def test_padding_to_undefined_label(self):
        with pytest.raises(UndefinedLabelError):
            assemble("|0100 |later @later")

    def test_last_byte_of_memory(self):
        code = assemble("|ffff 12")
        assert len(code) == 0xFF00
        assert code[-1] == 0x12

    def test_rom_too_large(self):
        with pytest.raises(RomTooLargeError):
            assemble("|ffff #12")

    def test_zero_page_write(self):
        with pytest.raises(InvalidAddressingError):
            assemble("|0000 #12")


# =============================================================================
# Lambda and Macro Tests
# =============================================================================

class TestLambdasAndMacros:
    """Test anonymous blocks and macros through to bytes."""

    def test_conditional_lambda(self):
        asm = Assembler()
        code = asm.assemble("|0100 #01 ?{ #02 } BRK")
        assert code == bytes([0x80, 0x01, 0x20, 0x00, 0x02, 0x80, 0x02, 0x00])
        assert asm.get_symbols()["λ00"] == 0x0107

    def test_lambda_address(self):
        code = assemble("|0100 ;{ \"hi 00 } BRK")
        assert code[:3] == bytes([0xA0, 0x01, 0x06])

    def test_macro(self):
        assert assemble("%EMIT { .Console/write DEO } #41 EMIT") == bytes(
            [0x80, 0x41, 0x80, 0x18, 0x17]
        )

    def test_recursive_macro(self):
        with pytest.raises(InternalError):
            assemble("%LOOP { LOOP } LOOP")


# =============================================================================
# Facade Tests
# =============================================================================

class TestAssembler:
    """Test the Assembler class and its outputs."""

    def test_hello_world(self):
        asm = Assembler()
        code = asm.assemble(HELLO, "hello.tal")
        symbols = asm.get_symbols()
        assert list(symbols) == ["on-reset", "print-str", "print-str/while", "hello"]
        assert symbols["on-reset"] == 0x0100
        assert symbols["print-str"] == 0x0107
        assert code.endswith(b"Hello\n")

    def test_results_before_assembly(self):
        with pytest.raises(InternalError):
            Assembler().get_code()

    def test_each_assembly_is_independent(self):
        asm = Assembler()
        asm.assemble("|0100 @a #01")
        code = asm.assemble("|0100 @a #02")
        assert code == bytes([0x80, 0x02])
        assert asm.get_symbols() == {"a": 0x0100}

    def test_failed_assembly_clears_results(self):
        asm = Assembler()
        asm.assemble("|0100 #01")
        with pytest.raises(UndefinedLabelError):
            asm.assemble("|0100 ;nowhere")
        with pytest.raises(InternalError):
            asm.get_code()
        with pytest.raises(InternalError):
            asm.get_symbols_binary()

    def test_bytes_source(self):
        assert Assembler().assemble(b"|0100 #12") == bytes([0x80, 0x12])

    def test_symbol_outputs(self):
        asm = Assembler()
        asm.assemble("|0100 @on-reset BRK @data 12 34")
        assert asm.get_symbols_text() == "on-reset 0100\ndata 0101\n"
        assert asm.get_symbols_text(sizes=True) == "on-reset 0100 0001\ndata 0101 0002\n"
        assert asm.get_symbols_binary() == b"\x01\x00on-reset\x00\x01\x01data\x00"
        assert asm.symbol_table.lookup("data").kind == "label"

    def test_write_files(self, tmp_path):
        asm = Assembler()
        asm.assemble(HELLO, "hello.tal")
        asm.write_rom(tmp_path / "hello.rom")
        asm.write_symbols(tmp_path / "hello.rom.sym")
        asm.write_symbols_text(tmp_path / "hello.sym.txt")
        assert (tmp_path / "hello.rom").read_bytes() == asm.get_code()
        assert (tmp_path / "hello.rom.sym").read_bytes().startswith(b"\x01\x00on-reset\x00")
        assert (tmp_path / "hello.sym.txt").read_text().startswith("on-reset 0100\n")


# =============================================================================
# File and Include Tests
# =============================================================================

class TestFiles:
    """Test assembling files with includes."""

    def test_include_relative_to_source(self, tmp_path):
        (tmp_path / "lib").mkdir()
        (tmp_path / "lib" / "util.tal").write_text("@util #01 JMP2r\n")
        main = tmp_path / "main.tal"
        main.write_text("|0100 util BRK\n~lib/util.tal\n")
        code = assemble_file(main)
        assert code == bytes([0x60, 0x00, 0x01, 0x00, 0x80, 0x01, 0x6C])

    def test_include_search_path(self, tmp_path):
        lib = tmp_path / "lib"
        lib.mkdir()
        (lib / "macros.tal").write_text("%TWO { #02 }\n")
        main = tmp_path / "main.tal"
        main.write_text("~macros.tal\n|0100 TWO\n")
        assert assemble_file(main, include_paths=[lib]) == bytes([0x80, 0x02])

    def test_missing_include(self, tmp_path):
        main = tmp_path / "main.tal"
        main.write_text("~nope.tal\n")
        with pytest.raises(FileReadError) as exc_info:
            assemble_file(main)
        assert exc_info.value.location.line == 1

    def test_circular_include(self, tmp_path):
        (tmp_path / "a.tal").write_text("~b.tal\n")
        (tmp_path / "b.tal").write_text("~a.tal\n")
        main = tmp_path / "main.tal"
        main.write_text("~a.tal\n")
        with pytest.raises(FileReadError):
            assemble_file(main)

    def test_missing_source(self, tmp_path):
        with pytest.raises(FileReadError):
            assemble_file(tmp_path / "nope.tal")

    def test_source_directory_not_kept_between_files(self, tmp_path):
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        (tmp_path / "a" / "lib.tal").write_text("%ONE { #01 }\n")
        (tmp_path / "a" / "one.tal").write_text("~lib.tal\n|0100 ONE\n")
        (tmp_path / "b" / "two.tal").write_text("~lib.tal\n|0100 ONE\n")

        asm = Assembler()
        assert asm.assemble_file(tmp_path / "a" / "one.tal") == bytes([0x80, 0x01])
        assert asm.include_paths == []
        with pytest.raises(FileReadError):
            asm.assemble_file(tmp_path / "b" / "two.tal")
