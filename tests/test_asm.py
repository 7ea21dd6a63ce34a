"""
Tests for the ByteVM assembler and disassembler.

Run with: uv run pytest tests/test_asm.py
"""

from bytevm.asm import AssemblyError, assemble, assemble_instructions, disassemble
from bytevm.isa import PUSH, PRINT_CHAR, HALT, JNZ, serialize_program
from bytevm.programs import COUNTDOWN, COUNTDOWN_SOURCE


def test_assemble():
    print("Assembler Tests")
    print("=" * 50)

    assert assemble("PUSH 10\nPUSH 20\nADD\nPRINT\nHALT\n") == bytes([1, 10, 1, 20, 5, 14, 16])
    print("✓ Basic program")

    assert assemble("push 0x48 ; hex operand\nprint_char # comment\nhalt") == bytes([1, 0x48, 15, 16])
    print("✓ Case-insensitive mnemonics, hex literals, comments")

    assert assemble_instructions("PUSH 'H'\nPUSH ';'\nPUSH '\\n'") == [PUSH(72), PUSH(59), PUSH(10)]
    print("✓ Character literals and escapes")

    assert assemble_instructions("PUSH '\\\\' ; backslash\nPUSH '\\'' # quote") == [PUSH(92), PUSH(39)]
    print("✓ Escaped backslash and quote literals before a comment")

    assert COUNTDOWN == bytes([1, 3, 3, 14, 1, 1, 6, 3, 1, 2, 12, 2, 16])
    print("✓ Labels resolve to instruction addresses")

    source = "start:\n  PUSH 1\n  PUSH end\n  JNZ\nend: HALT"
    assert assemble_instructions(source) == [PUSH(1), PUSH(5), JNZ, HALT]
    print("✓ Forward references and labels on their own line")


def test_assembly_errors():
    print("\nAssembly Error Tests")
    print("=" * 50)

    cases = [
        ("PUSH 1\nFROB", 2, "unknown mnemonic"),
        ("PUSH 256", 1, "does not fit"),
        ("PUSH -1", 1, "does not fit"),
        ("PUSH", 1, "operand"),
        ("ADD 3", 1, "operand"),
        ("PUSH nowhere", 1, "undefined label"),
        ("a: NOP\na: NOP", 2, "duplicate label"),
    ]
    for source, line, fragment in cases:
        try:
            assemble(source)
            assert False, f"Should have raised for {source!r}"
        except AssemblyError as e:
            assert e.line == line, (source, e.line)
            assert fragment in str(e), (source, str(e))
    print(f"✓ {len(cases)} malformed sources rejected with line numbers")


def test_disassemble():
    print("\nDisassembler Tests")
    print("=" * 50)

    listing = disassemble(COUNTDOWN)
    assert listing[0] == "0000: PUSH 3"
    assert listing[1] == "0002: DUP"
    assert listing[-1] == "0012: HALT"
    assert len(listing) == len(COUNTDOWN_SOURCE.strip().splitlines())
    print("✓ Countdown listing")

    listing = disassemble(serialize_program([PUSH(72), PRINT_CHAR]) + bytes([0xFF, 0x01]))
    assert listing == [
        "0000: PUSH 72",
        "0002: PRINT_CHAR",
        "0003: .byte 0xFF",
        "0004: .byte 0x01  ; truncated PUSH",
    ]
    print("✓ Unknown and truncated bytes are listed, not rejected")
