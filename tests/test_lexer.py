# =============================================================================
# test_lexer.py - Lexer Unit Tests
# =============================================================================
# Tests for the TAL lexer/tokenizer.
#
# Test coverage includes:
#   - Literal formats: #HH, #HHHH, #+decimal, 'c, "string, raw hex
#   - Every rune and the token type it produces
#   - Device access words resolved through the device map
#   - Nested comments and standalone structural characters
#   - Position tracking and error conditions
# =============================================================================

import pytest
from uxn_tal.assembler.lexer import Lexer, NumberValue, TokenType
from uxn_tal.errors import (
    AssemblySyntaxError,
    ExpectedIdentifierError,
    InvalidNumberError,
    UnknownOpcodeError,
    Utf8DecodeError,
)


# =============================================================================
# Helper Function
# =============================================================================

def tokenize(source: str) -> list:
    """
    Helper to tokenize and filter out structural tokens (EOF, NEWLINE).
    Tests are focused on meaningful tokens, not structural ones.
    """
    lexer = Lexer(source, "<test>")
    return [t for t in lexer.tokenize() if t.type not in (TokenType.EOF, TokenType.NEWLINE)]


def types(source: str) -> list:
    return [t.type for t in tokenize(source)]


# =============================================================================
# Literal Tests
# =============================================================================

class TestLiterals:
    """Test numeric, character and string literals."""

    def test_byte_literal(self):
        token, = tokenize("#12")
        assert token.type == TokenType.HEX_LITERAL
        assert token.value == NumberValue(0x12, False)

    def test_short_literal(self):
        token, = tokenize("#1234")
        assert token.value == NumberValue(0x1234, True)

    def test_width_follows_digit_count(self):
        """#0012 is a short even though the value fits in a byte."""
        token, = tokenize("#0012")
        assert token.value == NumberValue(0x12, True)

    def test_uppercase_hex_digits(self):
        token, = tokenize("#AB")
        assert token.value.value == 0xAB

    def test_odd_digit_count(self):
        with pytest.raises(InvalidNumberError):
            tokenize("#123")

    def test_invalid_digits(self):
        with pytest.raises(InvalidNumberError):
            tokenize("#zz")

    def test_missing_digits(self):
        with pytest.raises(InvalidNumberError):
            tokenize("#")

    def test_decimal_literal(self):
        small, large = tokenize("#+12 #+300")
        assert small.type == TokenType.DEC_LITERAL
        assert small.value == NumberValue(12, False)
        assert large.value == NumberValue(300, True)

    def test_decimal_out_of_range(self):
        with pytest.raises(InvalidNumberError):
            tokenize("#+70000")

    def test_char_literal(self):
        token, = tokenize("'a")
        assert token.type == TokenType.CHAR_LITERAL
        assert token.value == 0x61

    def test_char_literal_too_long(self):
        with pytest.raises(AssemblySyntaxError):
            tokenize("'ab")

    def test_raw_string(self):
        token, = tokenize('"hello')
        assert token.type == TokenType.RAW_STRING
        assert token.value == b"hello"

    def test_raw_hex(self):
        byte, short = tokenize("ab cdef")
        assert byte.type == TokenType.RAW_HEX
        assert byte.value == NumberValue(0xAB, False)
        assert short.value == NumberValue(0xCDEF, True)


# =============================================================================
# Word Classification Tests
# =============================================================================

class TestWords:
    """Test instructions, labels and references."""

    def test_instruction(self):
        token, = tokenize("ADD2k")
        assert token.type == TokenType.INSTRUCTION
        assert token.value.opcode == 0xB8

    def test_bad_instruction_has_location(self):
        with pytest.raises(UnknownOpcodeError) as exc_info:
            tokenize("#01\n  ADD22")
        assert exc_info.value.location.line == 2
        assert exc_info.value.location.column == 3
        assert "^" in str(exc_info.value)

    def test_labels(self):
        parent, child = tokenize("@on-reset &loop")
        assert parent.type == TokenType.LABEL_DEF
        assert parent.value == "on-reset"
        assert child.type == TokenType.SUBLABEL_DEF
        assert child.value == "loop"

    @pytest.mark.parametrize("word, token_type", [
        (".var", TokenType.REF_ZERO_PAGE),
        (",loop", TokenType.REF_RELATIVE),
        (";text", TokenType.REF_ABSOLUTE),
        ("-var", TokenType.REF_RAW_ZERO_PAGE),
        ("_loop", TokenType.REF_RAW_RELATIVE),
        ("=text", TokenType.REF_RAW_ABSOLUTE),
        ("!loop", TokenType.REF_JMI),
        ("?done", TokenType.REF_JCI),
        ("print-str", TokenType.REF_JSI),
    ])
    def test_references(self, word, token_type):
        token, = tokenize(word)
        assert token.type == token_type
        assert token.is_reference
        assert token.value == word.lstrip(".,;-_=!?")

    def test_device_access(self):
        token, = tokenize(".Console/write")
        assert token.type == TokenType.DEVICE_ACCESS
        assert token.value == ("Console", "write")

    def test_unknown_device_field_is_label_reference(self):
        token, = tokenize(".Console/nope")
        assert token.type == TokenType.REF_ZERO_PAGE
        assert token.value == "Console/nope"

    def test_lambda_reference(self):
        token, = tokenize("?{")
        assert token.type == TokenType.REF_JCI
        assert token.value == "{"

    @pytest.mark.parametrize("rune", ["@", "&", ";", ",", "%", "~"])
    def test_rune_without_name(self, rune):
        with pytest.raises(ExpectedIdentifierError) as exc_info:
            tokenize(rune)
        assert exc_info.value.rune == rune


# =============================================================================
# Padding Tests
# =============================================================================

class TestPadding:
    """Test absolute and relative padding."""

    def test_absolute(self):
        token, = tokenize("|0100")
        assert token.type == TokenType.PADDING
        assert token.value == 0x0100

    def test_relative(self):
        token, = tokenize("$2")
        assert token.type == TokenType.SKIP
        assert token.value == 2

    def test_to_label(self):
        absolute, relative = tokenize("|start $size")
        assert absolute.type == TokenType.PADDING_LABEL
        assert absolute.value == "start"
        assert relative.type == TokenType.SKIP_LABEL
        assert relative.value == "size"

    def test_too_wide(self):
        with pytest.raises(InvalidNumberError):
            tokenize("|10000")


# =============================================================================
# Preprocessor and Structure Tests
# =============================================================================

class TestStructure:
    """Test macros, includes, comments and brackets."""

    def test_macro_definition_and_call(self):
        assert types("%INC3 { INC INC INC } INC3") == [
            TokenType.MACRO_DEF,
            TokenType.BRACE_OPEN,
            TokenType.INSTRUCTION,
            TokenType.INSTRUCTION,
            TokenType.INSTRUCTION,
            TokenType.BRACE_CLOSE,
            TokenType.MACRO_CALL,
        ]

    def test_include(self):
        token, = tokenize("~lib/util.tal")
        assert token.type == TokenType.INCLUDE
        assert token.value == "lib/util.tal"

    def test_nested_comment(self):
        assert types("( outer ( inner ) still comment ) #01") == [
            TokenType.COMMENT,
            TokenType.HEX_LITERAL,
        ]

    def test_unterminated_comment(self):
        with pytest.raises(AssemblySyntaxError):
            tokenize("#01 ( never closed")

    def test_unmatched_close_paren(self):
        with pytest.raises(AssemblySyntaxError):
            tokenize(")")

    def test_brackets(self):
        assert types("[ #01 ]") == [
            TokenType.BRACKET_OPEN,
            TokenType.HEX_LITERAL,
            TokenType.BRACKET_CLOSE,
        ]

    def test_structural_characters_stand_alone(self):
        with pytest.raises(AssemblySyntaxError):
            tokenize("[#01")


# =============================================================================
# Source Handling Tests
# =============================================================================

class TestSource:
    """Test positions and byte input."""

    def test_positions(self):
        first, second = tokenize("#12\n  ADD")
        assert (first.line, first.column) == (1, 1)
        assert (second.line, second.column) == (2, 3)
        assert second.location.filename == "<test>"

    def test_newline_tokens(self):
        tokens = Lexer("#01\n#02", "<test>").tokenize()
        assert [t.type for t in tokens] == [
            TokenType.HEX_LITERAL,
            TokenType.NEWLINE,
            TokenType.HEX_LITERAL,
            TokenType.EOF,
        ]

    def test_utf8_bytes(self):
        tokens = Lexer('"héllo'.encode("utf-8")).tokenize()
        assert tokens[0].value == "héllo".encode("utf-8")

    def test_invalid_utf8(self):
        with pytest.raises(Utf8DecodeError):
            Lexer(b"\xff\xfe #01")
