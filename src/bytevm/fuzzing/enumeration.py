"""
Enumeration-based test generation for ByteVM.

This module provides exhaustive test generation by systematically enumerating
all possible programs within bounded model spaces. Unlike probabilistic fuzzing,
enumeration provides guaranteed coverage of the bounded model.
"""

from typing import Iterator, List

from bytevm.isa import (
    Opcode, Instruction, INVALID_OPCODE_BYTES, serialize_program,
    PUSH, POP, DUP, SWAP, ADD, SUB, MUL, DIV, MOD,
    JMP, JZ, JNZ, PRINT, PRINT_CHAR, HALT,
)
from .expression import Expr, Const, BINARY_OPS, compile_expr


# ============================================================
# Configuration
# ============================================================

# Interesting constants for boundary value analysis
BOUNDARY_CONSTANTS = [
    0,           # Zero (division by zero, JZ taken)
    1,           # One (identity)
    2,           # Small value
    7,
    0x7F,        # Signed byte max
    0x80,        # Signed byte min as unsigned
    0xFF,        # Byte max (PUSH max)
]

# Minimal interesting constants for smaller test suites
MINIMAL_CONSTANTS = [0, 1, 3, 7]

# Instructions that pop at least one operand
POPPING_INSTRUCTIONS = [POP, DUP, PRINT, PRINT_CHAR, JMP]
BINARY_INSTRUCTIONS = [SWAP, ADD, SUB, MUL, DIV, MOD, JZ, JNZ]


# ============================================================
# Expression Enumeration
# ============================================================

def enumerate_expressions(depth: int, constants: List[int]) -> Iterator[Expr]:
    """
    Exhaustively enumerate all expressions up to given depth.

    Args:
        depth: Maximum expression tree depth (0 = constants only)
        constants: List of constant values to use

    Yields:
        All possible expressions within the depth bound

    Example:
        depth=0: [Const(0), Const(1), ...]
        depth=1: All Add/Sub/Mul/Div/Mod pairs of constants, then the constants
    """
    if depth == 0:
        for c in constants:
            yield Const(c)
    else:
        sub_exprs = list(enumerate_expressions(depth - 1, constants))

        for left in sub_exprs:
            for right in sub_exprs:
                for op in BINARY_OPS:
                    yield op(left, right)

        for c in constants:
            yield Const(c)


def enumerate_expression_programs(max_depth: int,
                                  constants: List[int] = MINIMAL_CONSTANTS) -> Iterator[bytes]:
    """Yield compiled programs for every expression up to max_depth."""
    for depth in range(max_depth + 1):
        for expr in enumerate_expressions(depth, constants):
            yield compile_expr(expr)


# ============================================================
# Boundary Value Tests
# ============================================================

def enumerate_division_sign_tests() -> Iterator[bytes]:
    """
    Enumerate DIV/MOD over every sign combination of dividend and divisor.

    Negative operands are built as 0 - n, since PUSH only carries a byte.
    Includes zero divisors, which must fault.
    """
    magnitudes = [0, 1, 3, 7, 0xFF]

    def signed(value: int, negative: bool) -> List[Instruction]:
        if negative:
            return [PUSH(0), PUSH(value), SUB]
        return [PUSH(value)]

    for op in (DIV, MOD):
        for dividend in magnitudes:
            for divisor in magnitudes:
                for neg_dividend in (False, True):
                    for neg_divisor in (False, True):
                        yield serialize_program(
                            signed(dividend, neg_dividend)
                            + signed(divisor, neg_divisor)
                            + [op, PRINT, HALT]
                        )


def enumerate_stack_underflow_tests() -> Iterator[bytes]:
    """
    Enumerate test cases that should trigger stack underflow.

    Yields:
        Bytecode that should fault with StackUnderflow
    """
    for instr in POPPING_INSTRUCTIONS + BINARY_INSTRUCTIONS:
        yield serialize_program([instr, HALT])

    # One value, but need two
    for value in MINIMAL_CONSTANTS:
        for instr in BINARY_INSTRUCTIONS:
            yield serialize_program([PUSH(value), instr, HALT])


def enumerate_invalid_opcode_tests() -> Iterator[bytes]:
    """Every undefined byte, alone and after a valid prefix."""
    for byte in INVALID_OPCODE_BYTES:
        yield bytes([byte])
        yield serialize_program([PUSH(1), PRINT]) + bytes([byte])


def enumerate_jump_target_tests() -> Iterator[bytes]:
    """
    Jumps to every address of a fixed-size program and just past it.

    Each program is: PUSH 1; PUSH target; <jump>; HALT, padded to a fixed
    length with HALT, so targets 0..length-1 are valid and the rest fault.
    Targets inside the prefix can loop forever; run these with a step budget.
    """
    length = 8
    for jump in (JMP, JZ, JNZ):
        for target in range(length + 2):
            body = [PUSH(1), PUSH(target), jump, HALT]
            code = serialize_program(body)
            yield code + bytes([Opcode.HALT]) * (length - len(code))


# ============================================================
# Comprehensive Test Suites
# ============================================================

def generate_comprehensive_suite(max_expr_depth: int = 1) -> Iterator[bytes]:
    """
    Generate comprehensive exhaustive test suite with deduplication.

    Combines expression enumeration with targeted boundary tests, removing
    any duplicates to ensure each test is unique.

    Args:
        max_expr_depth: Maximum expression tree depth (1-2 recommended)

    Yields:
        Bytecode for comprehensive test suite (deduplicated)
    """
    seen = set()

    sources = [
        enumerate_expression_programs(max_depth=max_expr_depth, constants=BOUNDARY_CONSTANTS),
        enumerate_division_sign_tests(),
        enumerate_stack_underflow_tests(),
        enumerate_invalid_opcode_tests(),
        enumerate_jump_target_tests(),
    ]
    for source in sources:
        for bytecode in source:
            if bytecode not in seen:
                seen.add(bytecode)
                yield bytecode
