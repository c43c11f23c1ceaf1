"""
Uxn TAL Command-Line Interface
==============================

This package provides command-line tools for Uxn development:

- **uxntal**: TAL assembler
- **uxndis**: ROM disassembler

Each tool is implemented as a Click-based CLI application.
"""

__all__ = ["uxntal", "uxndis"]
