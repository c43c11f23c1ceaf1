# =============================================================================
# test_runes.py - Rune Table Unit Tests
# =============================================================================
# Tests for rune classification and reference widths.
# =============================================================================

import pytest
from uxn_tal.assembler.runes import (
    ADDRESSING_RUNES,
    REFERENCE_RUNES,
    Rune,
    classify,
    is_rune,
    operand_offset,
    reference_width,
)


class TestClassify:
    """Test character classification."""

    def test_every_rune_classifies_to_itself(self):
        for rune in Rune:
            assert classify(rune.char) is rune

    def test_ordinary_characters(self):
        assert classify("a") is None
        assert classify("0") is None
        assert not is_rune("A")

    def test_only_single_characters(self):
        assert classify("||") is None
        assert classify("") is None

    def test_groups(self):
        assert Rune.ABSOLUTE in ADDRESSING_RUNES
        assert Rune.IMMEDIATE_JUMP not in ADDRESSING_RUNES
        assert Rune.IMMEDIATE_JUMP in REFERENCE_RUNES
        assert Rune.LABEL_PARENT not in REFERENCE_RUNES


class TestReferenceWidth:
    """Test the byte count of each reference form."""

    @pytest.mark.parametrize("rune, width", [
        (Rune.ZERO_PAGE, 2),
        (Rune.RELATIVE, 2),
        (Rune.ABSOLUTE, 3),
        (Rune.RAW_ZERO_PAGE, 1),
        (Rune.RAW_RELATIVE, 1),
        (Rune.RAW_ABSOLUTE, 2),
        (Rune.IMMEDIATE_JUMP, 3),
        (Rune.CONDITIONAL_JUMP, 3),
        (None, 3),
    ])
    def test_width(self, rune, width):
        assert reference_width(rune) == width

    def test_non_reference_rune(self):
        with pytest.raises(ValueError):
            reference_width(Rune.LABEL_PARENT)

    def test_operand_offset(self):
        """Raw forms have no opcode before the operand."""
        assert operand_offset(Rune.RAW_ABSOLUTE) == 0
        assert operand_offset(Rune.RAW_RELATIVE) == 0
        assert operand_offset(Rune.ABSOLUTE) == 1
        assert operand_offset(None) == 1
