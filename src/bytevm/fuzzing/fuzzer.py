"""
Fuzzer for ByteVM - checks the engine against an expression oracle and for robustness.

Each generated case is a bytecode program plus, when one is known, the
expected result:
- expression programs carry the value (or DivisionByZero fault) computed by
  the independent expression evaluator
- random and structure-aware programs carry no expectation; for them the
  only bug is the engine raising something other than a VMFault

Every run is bounded by a step budget, since random jumps can loop forever.
"""

from dataclasses import dataclass
from enum import Enum
import random
from typing import Callable, List, Optional

from bytevm.config import VMConfig
from bytevm.isa import (
    Opcode, JUMP_OPCODES, INVALID_OPCODE_BYTES, VMFault, InvalidInstruction, deserialize_program,
)
from bytevm.machine import VM, Status
from bytevm.output import RecordingSink
from .expression import random_expr, compile_expr, evaluate_expr, UINT8_MAX


# =============================================================================
# Configuration Constants
# =============================================================================

# Structure-aware generation probabilities
PROB_PUSH = 0.40
PROB_STACK_OP = 0.15
PROB_ARITHMETIC = 0.20
PROB_JUMP = 0.10
PROB_OUTPUT = 0.10
PROB_INVALID_OPCODE = 0.05

PROB_TRUNCATED_PUSH = 0.05

# Mixed strategy probabilities (equal weight)
PROB_RANDOM_STRATEGY = 0.25
PROB_STRUCTURED_STRATEGY = 0.25
PROB_EXPRESSION_DEFAULT = 0.25
PROB_EXPRESSION_FULL_RANGE = 0.25

DEFAULT_MAX_STEPS = 10_000


@dataclass
class GeneratorConfig:
    """Configuration for bytecode generators."""
    max_length: int = 20              # For random generator
    max_instructions: int = 12        # For structured generator
    max_depth: int = 3                # For expression generator


DEFAULT_CONFIG = GeneratorConfig()


# =============================================================================
# Execution Results
# =============================================================================

@dataclass(frozen=True)
class ExecutionResult:
    """Base class for execution results - used as a union type."""


@dataclass(frozen=True)
class Success(ExecutionResult):
    output: bytes


@dataclass(frozen=True)
class Faulted(ExecutionResult):
    kind: str


@dataclass(frozen=True)
class Timeout(ExecutionResult):
    pass


@dataclass(frozen=True)
class Crash(ExecutionResult):
    reason: str


@dataclass(frozen=True)
class FuzzCase:
    bytecode: bytes
    expected: Optional[ExecutionResult] = None


# =============================================================================
# Instruction Selection
# =============================================================================

class InstructionChoice(Enum):
    """Enum for instruction groups in structure-aware generation."""
    PUSH = "push"
    STACK_OP = "stack"
    ARITHMETIC = "arithmetic"
    JUMP = "jump"
    OUTPUT = "output"
    INVALID = "invalid"


_GROUPS = {
    InstructionChoice.STACK_OP: [Opcode.POP, Opcode.DUP, Opcode.SWAP, Opcode.NOP],
    InstructionChoice.ARITHMETIC: [Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.DIV, Opcode.MOD],
    InstructionChoice.JUMP: sorted(JUMP_OPCODES),
    InstructionChoice.OUTPUT: [Opcode.PRINT, Opcode.PRINT_CHAR, Opcode.HALT],
}


def choose_instruction() -> InstructionChoice:
    """Choose instruction group based on configured probabilities."""
    weights = [
        (InstructionChoice.PUSH, int(PROB_PUSH * 100)),
        (InstructionChoice.STACK_OP, int(PROB_STACK_OP * 100)),
        (InstructionChoice.ARITHMETIC, int(PROB_ARITHMETIC * 100)),
        (InstructionChoice.JUMP, int(PROB_JUMP * 100)),
        (InstructionChoice.OUTPUT, int(PROB_OUTPUT * 100)),
        (InstructionChoice.INVALID, int(PROB_INVALID_OPCODE * 100)),
    ]
    choices, probs = zip(*weights)
    return random.choices(choices, weights=probs)[0]


# =============================================================================
# Bytecode Generators
# =============================================================================

def generate_random_bytes(max_length: int = DEFAULT_CONFIG.max_length) -> FuzzCase:
    """Generate completely random bytes - no structure consideration."""
    length = random.randint(1, max_length)
    return FuzzCase(bytes(random.randint(0, 255) for _ in range(length)))


def generate_structure_aware_bytecode(max_instructions: int = DEFAULT_CONFIG.max_instructions) -> FuzzCase:
    """
    Generate structure-aware bytecode with optional fuzzing.

    Creates instruction sequences that respect the encoding, with PUSH
    operands biased toward small values so jumps often land inside the
    program. It can still produce invalid opcodes and a truncated trailing
    PUSH to exercise fault handling.
    """
    chunks = []
    num_instructions = random.randint(1, max_instructions)

    for _ in range(num_instructions):
        instruction_type = choose_instruction()

        if instruction_type == InstructionChoice.PUSH:
            # Small chance of a truncated PUSH (must be the last byte)
            if random.random() < PROB_TRUNCATED_PUSH:
                chunks.append(bytes([Opcode.PUSH]))
                break
            value = random.choice([random.randint(0, 2 * max_instructions), random.randint(0, 255)])
            chunks.append(bytes([Opcode.PUSH, value]))

        elif instruction_type == InstructionChoice.INVALID:
            chunks.append(bytes([random.choice(INVALID_OPCODE_BYTES)]))
            break

        else:
            chunks.append(bytes([random.choice(_GROUPS[instruction_type])]))

    return FuzzCase(b''.join(chunks))


def generate_expression_bytecode(
    max_depth: int = DEFAULT_CONFIG.max_depth,
    max_value: Optional[int] = None
) -> FuzzCase:
    """
    Generate an expression program together with its expected result.

    Args:
        max_depth: Maximum depth of the expression tree
        max_value: Maximum value for random constants. If None, samples from
                   [0-9, UINT8_MAX]. Otherwise, uses random.randint(0, max_value).
    """
    if max_value is None:
        const_values = [*range(0, 10), UINT8_MAX]
        def const_generator(rng: random.Random) -> int:
            return rng.choice(const_values)
    else:
        def const_generator(rng: random.Random) -> int:
            return rng.randint(0, max_value)

    rng = random.Random(random.getrandbits(64))
    expr = random_expr(rng, max_depth=max_depth, const_generator=const_generator)
    try:
        expected: ExecutionResult = Success(f"{evaluate_expr(expr)}\n".encode('ascii'))
    except VMFault as e:
        expected = Faulted(type(e).__name__)
    return FuzzCase(compile_expr(expr), expected)


def generate_mixed_strategy_bytecode(max_instructions: int = DEFAULT_CONFIG.max_instructions) -> FuzzCase:
    """
    Generate bytecode using a mixed strategy, randomly selecting between:
    1. Completely random bytes
    2. Structure-aware bytecode (with potential invalid bytecode)
    3. Expression bytecode with default values
    4. Expression bytecode with the full byte range
    """
    strategy_roll = random.random()

    if strategy_roll < PROB_RANDOM_STRATEGY:
        return generate_random_bytes()
    elif strategy_roll < PROB_RANDOM_STRATEGY + PROB_STRUCTURED_STRATEGY:
        return generate_structure_aware_bytecode(max_instructions=max_instructions)
    elif strategy_roll < PROB_RANDOM_STRATEGY + PROB_STRUCTURED_STRATEGY + PROB_EXPRESSION_DEFAULT:
        return generate_expression_bytecode(max_depth=DEFAULT_CONFIG.max_depth, max_value=None)
    else:
        return generate_expression_bytecode(max_depth=DEFAULT_CONFIG.max_depth, max_value=UINT8_MAX)


# Generator registry for dispatch
GENERATORS: dict[str, Callable[[], FuzzCase]] = {
    "random": generate_random_bytes,
    "structured": generate_structure_aware_bytecode,
    "expression": generate_expression_bytecode,
    "mixed": generate_mixed_strategy_bytecode,
}


# =============================================================================
# Execution
# =============================================================================

def execute_with_engine(bytecode: bytes, max_steps: int = DEFAULT_MAX_STEPS) -> ExecutionResult:
    """Run bytecode on a fresh machine and classify the outcome."""
    sink = RecordingSink()
    try:
        vm = VM(bytecode, config=VMConfig(max_steps=max_steps), sink=sink)
        status = vm.run()
    except Exception as e:
        return Crash(f"engine raised exception: {repr(e)}")

    if status is Status.HALTED:
        return Success(sink.getvalue())
    if status is Status.FAULTED:
        return Faulted(type(vm.fault).__name__)
    return Timeout()


def compare_results(expected: Optional[ExecutionResult], actual: ExecutionResult) -> bool:
    """
    Compare execution results for equivalence.

    Returns True if results match, considering:
    - A crash never matches
    - Without an expectation, any non-crash result is acceptable
    - Otherwise results must be equal (same output, or same fault kind)
    """
    if isinstance(actual, Crash):
        return False
    return expected is None or expected == actual


# =============================================================================
# Statistics Tracking
# =============================================================================

@dataclass
class FuzzingStatistics:
    """Tracks fuzzing run statistics."""
    total_tests: int = 0
    bugs_found: int = 0
    crashes: int = 0
    faults: int = 0
    timeouts: int = 0
    oracle_checked: int = 0

    @property
    def halted(self) -> int:
        return self.total_tests - self.faults - self.timeouts - self.crashes

    @property
    def correct_tests(self) -> int:
        return self.total_tests - self.bugs_found

    @property
    def bug_rate(self) -> float:
        return (self.bugs_found / self.total_tests * 100) if self.total_tests > 0 else 0.0

    def record_test(self, case: FuzzCase, result: ExecutionResult, results_match: bool) -> None:
        """Record results of a single test."""
        self.total_tests += 1

        if case.expected is not None:
            self.oracle_checked += 1

        if isinstance(result, Faulted):
            self.faults += 1
        elif isinstance(result, Timeout):
            self.timeouts += 1
        elif isinstance(result, Crash):
            self.crashes += 1

        if not results_match:
            self.bugs_found += 1

    def print_summary(self) -> None:
        """Print formatted summary of results."""
        print("\n" + "=" * 60)
        print("Fuzzer Summary")
        print("-" * 40)
        print(f"Total tests run:           {self.total_tests}")
        print(f"Checked against oracle:    {self.oracle_checked}")
        print(f"Halted:                    {self.halted}")
        print(f"Faulted:                   {self.faults}")
        print(f"Step budget exhausted:     {self.timeouts}")
        print(f"Engine crashes:            {self.crashes}")
        print(f"Bugs found:                {self.bugs_found}")
        print(f"Correct:                   {self.correct_tests}")

        if self.bugs_found > 0:
            print(f"Bug detection rate:     {self.bug_rate:.1f}%")
        else:
            print("\nNo bugs detected!")


# =============================================================================
# Bug Reporting
# =============================================================================

def report_bug(test_num: int, case: FuzzCase, actual: ExecutionResult) -> None:
    """Print detailed bug report."""
    print(f"\nTest {test_num}: Bug found")
    print(f"  Bytecode: {case.bytecode.hex()}")
    try:
        instructions = deserialize_program(case.bytecode)
        print(f"    {[str(i) for i in instructions]}")
    except InvalidInstruction:
        pass
    print(f"  Expected: {case.expected}")
    print(f"  Actual:   {actual}")


def print_header(num_tests: int, generator: str, max_steps: int) -> None:
    """Print fuzzer run header."""
    print(f"ByteVM Fuzzer - Running {num_tests} tests")
    print(f"Generator: {generator}")
    print(f"Step budget: {max_steps}")
    print("=" * 60)


# =============================================================================
# Fuzzer Main Logic
# =============================================================================

def run_single_test(case: FuzzCase, max_steps: int = DEFAULT_MAX_STEPS) -> tuple[ExecutionResult, bool]:
    """
    Run a single fuzzing test case.

    Returns:
        Tuple of (engine_result, results_match)
    """
    result = execute_with_engine(case.bytecode, max_steps=max_steps)
    return result, compare_results(case.expected, result)


def run_fuzzer(
    num_tests: int = 1000,
    seed: Optional[int] = None,
    generator: str = "mixed",
    max_steps: int = DEFAULT_MAX_STEPS
) -> FuzzingStatistics:
    """
    Run the fuzzer for a specified number of tests.

    Args:
        num_tests: Number of random test cases to generate
        seed: Random seed for reproducibility
        generator: Generator type: "random", "structured", "expression", or "mixed"
        max_steps: Step budget for each program

    Returns:
        FuzzingStatistics object with results
    """
    if seed is not None:
        random.seed(seed)

    try:
        generator_func = GENERATORS[generator]
    except KeyError:
        raise ValueError(f"Unknown generator: {generator}. Available: {', '.join(GENERATORS)}") from None

    stats = FuzzingStatistics()
    print_header(num_tests, generator, max_steps)

    for i in range(num_tests):
        case = generator_func()
        result, matches = run_single_test(case, max_steps=max_steps)

        stats.record_test(case, result, matches)

        if not matches:
            report_bug(i + 1, case, result)

    stats.print_summary()
    return stats


# =============================================================================
# CLI Entry Point
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Fuzzer for ByteVM")
    parser.add_argument(
        "-n", "--num-tests",
        type=int,
        default=1000,
        help="Number of random test cases to run (default: 1000)"
    )
    parser.add_argument(
        "-s", "--seed",
        type=int,
        default=None,
        help="Random seed for reproducibility"
    )
    parser.add_argument(
        "-g", "--generator",
        type=str,
        default="mixed",
        choices=list(GENERATORS),
        help="Generator type (default: %(default)s)"
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=DEFAULT_MAX_STEPS,
        help="Step budget per program (default: %(default)s)"
    )

    args = parser.parse_args(argv)

    stats = run_fuzzer(
        num_tests=args.num_tests,
        seed=args.seed,
        generator=args.generator,
        max_steps=args.max_steps
    )
    return 1 if stats.bugs_found else 0


if __name__ == "__main__":
    import sys
    sys.exit(main())
