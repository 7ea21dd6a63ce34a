"""
Tests for enumeration-based test generation.

Verifies that enumeration produces complete, deterministic, and duplicate-free
test suites, and that the engine agrees with the expression oracle on them.

Run with: uv run pytest tests/test_enumeration.py
"""

from bytevm.config import VMConfig
from bytevm.isa import (
    Opcode, deserialize_program, InvalidInstruction,
    StackUnderflow, DivisionByZero, InvalidOpcode, InvalidJumpTarget,
)
from bytevm.machine import Status, execute_bytecode
from bytevm.output import RecordingSink
from bytevm.fuzzing.enumeration import (
    enumerate_expressions,
    enumerate_expression_programs,
    enumerate_division_sign_tests,
    enumerate_stack_underflow_tests,
    enumerate_invalid_opcode_tests,
    enumerate_jump_target_tests,
    generate_comprehensive_suite,
    BOUNDARY_CONSTANTS,
    MINIMAL_CONSTANTS,
)
from bytevm.fuzzing.expression import Const, Div, Mod, evaluate_expr, compile_expr


def run(bytecode: bytes, max_steps: int = 10_000):
    sink = RecordingSink()
    vm = execute_bytecode(bytecode, VMConfig(max_steps=max_steps), sink)
    return vm, sink


def test_expression_enumeration():
    """Tests for expression enumeration."""
    print("Expression Enumeration Tests")
    print("=" * 50)

    constants = [0, 1, 2]
    expressions = list(enumerate_expressions(0, constants))
    assert len(expressions) == 3
    assert all(isinstance(e, Const) for e in expressions)
    print("✓ Depth 0 enumeration")

    # 2 * 2 pairs * 5 operators + 2 constants
    constants = [0, 1]
    expressions = list(enumerate_expressions(1, constants))
    assert len(expressions) == 22
    print("✓ Depth 1 enumeration")

    expressions = list(enumerate_expressions(2, constants))
    expr_strings = [str(e) for e in expressions]
    assert len(expr_strings) == len(set(expr_strings))
    print("✓ No duplicate expressions")

    programs = list(enumerate_expression_programs(max_depth=1, constants=[0, 1]))
    for bytecode in programs:
        instructions = deserialize_program(bytecode)
        assert instructions[-1].opcode is Opcode.HALT
        assert instructions[-2].opcode is Opcode.PRINT
    print("✓ Expression programs print and halt")


def test_engine_matches_oracle():
    """Every enumerated expression prints what the evaluator computes."""
    print("\nOracle Agreement Tests")
    print("=" * 50)

    checked = 0
    faults = 0
    for depth in range(2):
        for expr in enumerate_expressions(depth, MINIMAL_CONSTANTS):
            vm, sink = run(compile_expr(expr))
            try:
                expected = evaluate_expr(expr)
            except DivisionByZero:
                assert isinstance(vm.fault, DivisionByZero), expr
                assert len(sink) == 0
                faults += 1
            else:
                assert vm.status is Status.HALTED, (expr, vm.fault)
                assert sink.numbers == [expected], expr
            checked += 1
    assert faults > 0
    print(f"✓ {checked} expressions agree ({faults} divide by zero)")

    assert evaluate_expr(Div(Const(7), Const(2))) == 3
    assert evaluate_expr(Mod(Const(7), Const(3))) == 1
    print("✓ Oracle spot checks")


def test_boundary_value_tests():
    """Tests for boundary value test generation."""
    print("\nBoundary Value Tests")
    print("=" * 50)

    tests = list(enumerate_division_sign_tests())
    assert len(tests) == 2 * 5 * 5 * 4
    zero_divisor = 0
    for bytecode in tests:
        vm, sink = run(bytecode)
        if isinstance(vm.fault, DivisionByZero):
            zero_divisor += 1
        else:
            assert vm.status is Status.HALTED
            assert len(sink.numbers) == 1
    assert zero_divisor == 2 * 5 * 2 * 2
    print(f"✓ Division sign tests ({len(tests)} tests, {zero_divisor} divide by zero)")

    tests = list(enumerate_stack_underflow_tests())
    assert len(tests) >= 20
    for bytecode in tests:
        vm, _ = run(bytecode)
        assert isinstance(vm.fault, StackUnderflow), bytecode.hex()
    print(f"✓ Stack underflow tests ({len(tests)} tests, all trigger underflow)")

    tests = list(enumerate_invalid_opcode_tests())
    assert len(tests) == 2 * (256 - 16)
    for bytecode in tests:
        vm, sink = run(bytecode)
        assert isinstance(vm.fault, InvalidOpcode)
        assert vm.fault.address == len(bytecode) - 1
    print(f"✓ Invalid opcode tests ({len(tests)} tests)")

    tests = list(enumerate_jump_target_tests())
    invalid = 0
    for bytecode in tests:
        vm, _ = run(bytecode, max_steps=5_000)
        assert vm.status in (Status.HALTED, Status.FAULTED, Status.RUNNING)
        if isinstance(vm.fault, InvalidJumpTarget):
            assert vm.fault.target >= len(bytecode)
            invalid += 1
    assert invalid == 3 * 2
    print(f"✓ Jump target tests ({len(tests)} tests, {invalid} out of range)")


def test_comprehensive_suite():
    """Tests for comprehensive enumeration suite."""
    print("\nComprehensive Suite Tests")
    print("=" * 50)

    suite = list(generate_comprehensive_suite(max_expr_depth=1))
    assert len(suite) == len(set(suite))
    print(f"✓ No duplicates ({len(suite)} unique tests)")

    valid_count = 0
    for bytecode in suite:
        try:
            deserialize_program(bytecode)
            valid_count += 1
        except InvalidInstruction:
            pass
    assert 0 < valid_count < len(suite)
    print(f"✓ Deserializable ({valid_count}/{len(suite)} valid)")

    suite_set = set(suite)
    assert all(t in suite_set for t in enumerate_division_sign_tests())
    print("✓ Includes boundary tests")


def test_determinism():
    """Tests for deterministic enumeration behavior."""
    print("\nDeterminism Tests")
    print("=" * 50)

    suite1 = list(generate_comprehensive_suite(max_expr_depth=1))
    suite2 = list(generate_comprehensive_suite(max_expr_depth=1))
    assert suite1 == suite2
    print("✓ Enumeration is deterministic")

    exprs1 = list(enumerate_expressions(1, MINIMAL_CONSTANTS))
    exprs2 = list(enumerate_expressions(1, MINIMAL_CONSTANTS))
    assert [str(e) for e in exprs1] == [str(e) for e in exprs2]
    print("✓ Expression enumeration order stable")


def test_boundary_constants():
    """Tests for boundary constant definitions."""
    print("\nBoundary Constants Tests")
    print("=" * 50)

    assert 0 in BOUNDARY_CONSTANTS
    assert 1 in BOUNDARY_CONSTANTS
    assert 0xFF in BOUNDARY_CONSTANTS
    assert all(0 <= c <= 0xFF for c in BOUNDARY_CONSTANTS)
    print(f"✓ BOUNDARY_CONSTANTS fit PUSH and include critical values ({len(BOUNDARY_CONSTANTS)} total)")

    assert len(MINIMAL_CONSTANTS) <= 10
    assert 0 in MINIMAL_CONSTANTS
    print(f"✓ MINIMAL_CONSTANTS is minimal ({len(MINIMAL_CONSTANTS)} constants)")
