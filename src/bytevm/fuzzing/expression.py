"""Expression tree ADT: byte constants and the five arithmetic operations."""
from __future__ import annotations
from dataclasses import dataclass
from random import Random
from typing import Callable, List, Union

from bytevm.isa import (
    Instruction, DivisionByZero, serialize_program,
    PUSH, ADD, SUB, MUL, DIV, MOD, PRINT, HALT,
)
from bytevm.machine import to_int32, trunc_div, trunc_mod


UINT8_MAX = 0xFF


def _default_const_generator(rng: Random) -> int:
    """Default constant generator: any value a PUSH immediate can hold."""
    return rng.randint(0, UINT8_MAX)


@dataclass(frozen=True)
class Const:
    """A constant that fits in a PUSH immediate byte."""
    value: int

    def __post_init__(self):
        if not isinstance(self.value, int):
            raise TypeError(f"Const value must be int, got {type(self.value)}")
        if self.value < 0 or self.value > UINT8_MAX:
            raise ValueError(f"Const value must be in [0, {UINT8_MAX}], got {self.value}")


@dataclass(frozen=True)
class Add:
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Sub:
    """left - right"""
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Mul:
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Div:
    """left / right, truncated toward zero."""
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Mod:
    """Remainder of Div; sign follows left."""
    left: Expr
    right: Expr


Expr = Union[Const, Add, Sub, Mul, Div, Mod]

BINARY_OPS = (Add, Sub, Mul, Div, Mod)

_OPCODE_FOR = {Add: ADD, Sub: SUB, Mul: MUL, Div: DIV, Mod: MOD}


# =============================================================================
# Compilation (Expr -> ByteVM Bytecode)
# =============================================================================

def compile_expr_to_instructions(expr: Expr) -> List[Instruction]:
    """
    Compile an expression tree to a list of ByteVM instructions.

    Uses post-order traversal: compile left operand, compile right operand,
    then emit the operation. The left operand is pushed first, so it is the
    minuend/dividend of the non-commutative operations.

    Examples:
        Const(5)                -> [PUSH 5]
        Sub(Const(10), Const(3)) -> [PUSH 10, PUSH 3, SUB]
    """
    match expr:
        case Const(value=val):
            return [PUSH(val)]
        case Add() | Sub() | Mul() | Div() | Mod():
            return (compile_expr_to_instructions(expr.left)
                    + compile_expr_to_instructions(expr.right)
                    + [_OPCODE_FOR[type(expr)]])
        case _:
            raise ValueError(f"Unknown expression type: {expr}")


def compile_expr(expr: Expr) -> bytes:
    """Compile an expression to a complete program that prints its value and halts."""
    return serialize_program(compile_expr_to_instructions(expr) + [PRINT, HALT])


# =============================================================================
# Evaluation (the oracle)
# =============================================================================

def evaluate_expr(expr: Expr) -> int:
    """
    Evaluate an expression with int32 wrapping semantics.

    Raises:
        DivisionByZero: If any Div or Mod has a zero right operand
    """
    match expr:
        case Const(value=val):
            return val
        case Add(left=left, right=right):
            return to_int32(evaluate_expr(left) + evaluate_expr(right))
        case Sub(left=left, right=right):
            return to_int32(evaluate_expr(left) - evaluate_expr(right))
        case Mul(left=left, right=right):
            return to_int32(evaluate_expr(left) * evaluate_expr(right))
        case Div(left=left, right=right) | Mod(left=left, right=right):
            dividend = evaluate_expr(left)
            divisor = evaluate_expr(right)
            if divisor == 0:
                raise DivisionByZero(f"{type(expr).__name__} by zero in {expr}")
            op = trunc_div if isinstance(expr, Div) else trunc_mod
            return to_int32(op(dividend, divisor))
        case _:
            raise ValueError(f"Unknown expression type: {expr}")


# =============================================================================
# Random Expression Generation
# =============================================================================


def random_expr(rng: Random, max_depth: int = 3,
                const_generator: Callable[[Random], int] = _default_const_generator) -> Expr:
    """
    Generate a random expression tree.

    At each level, randomly chooses between:
    - Const (40% probability)
    - Add, Sub, Mul (15% each)
    - Div, Mod (7.5% each)

    When max_depth reaches 0, only generates Const to ensure termination.

    Args:
        rng: Random number generator (use Random(seed) for reproducibility)
        max_depth: Maximum depth of the expression tree
        const_generator: Callable that generates constant values.
                         Defaults to random byte values.
    """
    if max_depth <= 0:
        return Const(const_generator(rng))

    choice = rng.random()

    if choice < 0.4:
        return Const(const_generator(rng))
    elif choice < 0.55:
        cls = Add
    elif choice < 0.70:
        cls = Sub
    elif choice < 0.85:
        cls = Mul
    elif choice < 0.925:
        cls = Div
    else:
        cls = Mod

    return cls(
        random_expr(rng, max_depth - 1, const_generator),
        random_expr(rng, max_depth - 1, const_generator)
    )
