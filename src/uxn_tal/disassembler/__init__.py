"""
Uxn TAL Disassembler Module
===========================

This module turns Uxn ROM bytes back into TAL-style listings. It is used by
the ``uxndis`` command and by tests that check assembled output.

Usage:
    from uxn_tal.disassembler import UxnDisassembler, disassemble

    instructions = disassemble(rom_bytes)

    disasm = UxnDisassembler(symbol_table={0x0100: "on-reset"})
    print(disasm.disassemble_to_text(rom_bytes))

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

from .uxn import DisassembledInstruction, UxnDisassembler, disassemble

__all__ = [
    "UxnDisassembler",
    "DisassembledInstruction",
    "disassemble",
]
