"""
ByteVM execution engine.

Fetch-decode-execute over an immutable byte program with a fixed-capacity
operand stack of signed 32-bit integers. Faults are terminal: the fault is
recorded on the machine and no further instruction runs.
"""

import logging
from enum import Enum
from typing import List, Optional

from .config import DEFAULT_CONFIG, VMConfig
from .isa import (
    Opcode, VMFault, decode_opcode,
    StackUnderflow, StackOverflow, DivisionByZero,
    InvalidJumpTarget, ProgramBoundsExceeded,
)
from .output import OutputSink, StreamSink

logger = logging.getLogger(__name__)

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1

# =============================================================================
# int32 arithmetic
# =============================================================================

def to_int32(value: int) -> int:
    """Wrap an arbitrary integer to signed 32-bit two's complement."""
    return ((value - INT32_MIN) & 0xFFFFFFFF) + INT32_MIN


def trunc_div(dividend: int, divisor: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(dividend) // abs(divisor)
    return quotient if (dividend < 0) == (divisor < 0) else -quotient


def trunc_mod(dividend: int, divisor: int) -> int:
    """Remainder of trunc_div; its sign follows the dividend."""
    return dividend - divisor * trunc_div(dividend, divisor)

# =============================================================================
# Operand Stack
# =============================================================================

class OperandStack:
    """Bounded LIFO of int32 values backed by a preallocated slot array."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"Stack capacity must be positive, got {capacity}")
        self._slots: List[int] = [0] * capacity
        self._top = 0

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def push(self, value: int) -> None:
        if self._top == len(self._slots):
            raise StackOverflow(f"Stack overflow (capacity {len(self._slots)})")
        self._slots[self._top] = value
        self._top += 1

    def pop(self) -> int:
        if self._top == 0:
            raise StackUnderflow("Stack underflow")
        self._top -= 1
        return self._slots[self._top]

    def snapshot(self) -> List[int]:
        """Live values, bottom first."""
        return self._slots[:self._top]

    def __len__(self) -> int:
        return self._top

    def __repr__(self) -> str:
        return f"OperandStack({self.snapshot()!r}, capacity={self.capacity})"

# =============================================================================
# Execution Engine
# =============================================================================

class Status(Enum):
    RUNNING = 'RUNNING'
    HALTED = 'HALTED'
    FAULTED = 'FAULTED'


# Operands each instruction pops
_ARITY = {
    Opcode.PUSH: 0, Opcode.POP: 1, Opcode.DUP: 1, Opcode.SWAP: 2,
    Opcode.ADD: 2, Opcode.SUB: 2, Opcode.MUL: 2, Opcode.DIV: 2, Opcode.MOD: 2,
    Opcode.JMP: 1, Opcode.JZ: 2, Opcode.JNZ: 2, Opcode.NOP: 0,
    Opcode.PRINT: 1, Opcode.PRINT_CHAR: 1, Opcode.HALT: 0,
}


class VM:
    """
    A single run of a ByteVM program.

    Usage:
        vm = VM(program, sink=RecordingSink())
        status = vm.run()
        if status is Status.FAULTED:
            print(vm.fault)
    """

    def __init__(self, instructions: bytes, config: VMConfig = DEFAULT_CONFIG,
                 sink: Optional[OutputSink] = None):
        self.instructions = bytes(instructions)
        self.config = config
        self.sink: OutputSink = sink if sink is not None else StreamSink()
        self.stack = OperandStack(config.stack_capacity)
        self.ip = 0
        self.status = Status.RUNNING
        self.fault: Optional[VMFault] = None
        self.steps = 0

    # ──────────────────────────────────────────────
    # Driving
    # ──────────────────────────────────────────────

    def run(self, max_steps: Optional[int] = None) -> Status:
        """
        Step until the machine halts or faults.

        ``max_steps`` (defaulting to the config's) bounds the number of
        instructions executed by this call. Running out of budget leaves the
        machine RUNNING; calling run() again resumes it.
        """
        budget = max_steps if max_steps is not None else self.config.max_steps
        executed = 0
        while self.status is Status.RUNNING:
            if budget is not None and executed >= budget:
                logger.info("Step budget of %d exhausted at ip %d", budget, self.ip)
                break
            self.step()
            executed += 1
        return self.status

    def step(self) -> Status:
        """Execute exactly one instruction."""
        if self.status is not Status.RUNNING:
            raise RuntimeError(f"Cannot step a {self.status.value} machine")

        address = self.ip
        try:
            self._execute(address)
        except VMFault as fault:
            fault.address = address
            self.fault = fault
            self.status = Status.FAULTED
            logger.debug("Fault: %s", fault)
        self.steps += 1
        return self.status

    # ──────────────────────────────────────────────
    # Fetch / decode / execute
    # ──────────────────────────────────────────────

    def _fetch(self, offset: int) -> int:
        if not (0 <= offset < len(self.instructions)):
            raise ProgramBoundsExceeded(offset)
        return self.instructions[offset]

    def _check_target(self, target: int) -> int:
        if not (0 <= target < len(self.instructions)):
            raise InvalidJumpTarget(target)
        return target

    def _execute(self, address: int) -> None:
        opcode = decode_opcode(self._fetch(address))
        stack = self.stack

        needed = _ARITY[opcode]
        if len(stack) < needed:
            raise StackUnderflow(f"{opcode.name} needs {needed} operand{'s' if needed > 1 else ''}")

        if self.config.trace:
            logger.debug("%04d %-10s stack=%s", address, opcode.name, stack.snapshot())

        next_ip = address + opcode.size

        match opcode:
            case Opcode.PUSH:
                stack.push(self._fetch(address + 1))

            case Opcode.POP:
                stack.pop()

            case Opcode.DUP:
                x = stack.pop()
                stack.push(x)
                stack.push(x)

            case Opcode.SWAP:
                a = stack.pop()
                b = stack.pop()
                stack.push(a)
                stack.push(b)

            case Opcode.ADD:
                a = stack.pop()
                b = stack.pop()
                stack.push(to_int32(a + b))

            case Opcode.SUB:
                a = stack.pop()
                b = stack.pop()
                stack.push(to_int32(b - a))

            case Opcode.MUL:
                a = stack.pop()
                b = stack.pop()
                stack.push(to_int32(a * b))

            case Opcode.DIV | Opcode.MOD:
                a = stack.pop()
                b = stack.pop()
                if a == 0:
                    raise DivisionByZero(f"{opcode.name} by zero")
                result = trunc_div(b, a) if opcode is Opcode.DIV else trunc_mod(b, a)
                stack.push(to_int32(result))

            case Opcode.JMP:
                next_ip = self._check_target(stack.pop())

            case Opcode.JZ | Opcode.JNZ:
                target = self._check_target(stack.pop())
                value = stack.pop()
                if (value == 0) == (opcode is Opcode.JZ):
                    next_ip = target

            case Opcode.NOP:
                pass

            case Opcode.PRINT:
                self.sink.emit_number(stack.pop())

            case Opcode.PRINT_CHAR:
                self.sink.emit_byte(stack.pop() & 0xFF)

            case Opcode.HALT:
                self.status = Status.HALTED
                return

        self.ip = next_ip


def execute_bytecode(bytecode: bytes, config: VMConfig = DEFAULT_CONFIG,
                     sink: Optional[OutputSink] = None,
                     raise_on_fault: bool = False) -> VM:
    """Convenience function to run bytecode on a fresh machine and return it."""
    vm = VM(bytecode, config=config, sink=sink)
    vm.run()
    if raise_on_fault and vm.fault is not None:
        raise vm.fault
    return vm
