"""Bundled ByteVM programs used by the ``demo`` command and the tests."""

from typing import Dict, List

from .asm import assemble
from .isa import (
    Instruction, PUSH, PRINT_CHAR, PRINT, HALT,
    ADD, SUB, MUL, DIV, MOD, serialize_program,
)


def print_string_program(text: str) -> bytes:
    """One PUSH/PRINT_CHAR pair per character, then HALT."""
    instructions: List[Instruction] = []
    for byte in text.encode('latin-1'):
        instructions += [PUSH(byte), PRINT_CHAR]
    instructions.append(HALT)
    return serialize_program(instructions)


HELLO_WORLD = print_string_program("Hello World\n")

COUNTDOWN_SOURCE = """\
        PUSH 3
loop:   DUP
        PRINT
        PUSH 1
        SUB
        DUP
        PUSH loop
        JNZ
        POP
        HALT
"""

COUNTDOWN = assemble(COUNTDOWN_SOURCE)

# Prints 30, 7, 42, 3, -1 (the last computed as (2 - 7) % 4)
ARITHMETIC = serialize_program([
    PUSH(10), PUSH(20), ADD, PRINT,
    PUSH(10), PUSH(3), SUB, PRINT,
    PUSH(6), PUSH(7), MUL, PRINT,
    PUSH(13), PUSH(4), DIV, PRINT,
    PUSH(2), PUSH(7), SUB, PUSH(4), MOD, PRINT,
    HALT,
])

DEMOS: Dict[str, bytes] = {
    'hello': HELLO_WORLD,
    'countdown': COUNTDOWN,
    'arith': ARITHMETIC,
}
