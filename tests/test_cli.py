"""
Tests for the bytevm command line.

Run with: uv run pytest tests/test_cli.py
"""

import logging

from bytevm.cli import EXIT_BUDGET, EXIT_FAULTED, EXIT_HALTED, EXIT_OK, EXIT_USAGE, load_program, main
from bytevm.programs import COUNTDOWN, COUNTDOWN_SOURCE


def test_demo(capsysbinary):
    assert main(["demo", "hello"]) == EXIT_HALTED
    assert capsysbinary.readouterr().out == b"Hello World\n"

    assert main(["demo", "countdown"]) == EXIT_HALTED
    assert capsysbinary.readouterr().out == b"3\n2\n1\n"

    assert main(["demo", "arith"]) == EXIT_HALTED
    assert capsysbinary.readouterr().out == b"30\n7\n42\n3\n-1\n"


def test_run_formats(tmp_path, capsysbinary):
    binary = tmp_path / "countdown.bin"
    binary.write_bytes(COUNTDOWN)
    source = tmp_path / "countdown.asm"
    source.write_text(COUNTDOWN_SOURCE)
    hexdump = tmp_path / "countdown.hex"
    hexdump.write_text(COUNTDOWN.hex(" "))

    for path in (binary, source, hexdump):
        assert load_program(path) == COUNTDOWN
        assert main(["run", str(path)]) == EXIT_HALTED
        assert capsysbinary.readouterr().out == b"3\n2\n1\n"

    assert load_program(source, "asm") == COUNTDOWN


def test_run_exit_codes(tmp_path, capsysbinary):
    faulty = tmp_path / "faulty.asm"
    faulty.write_text("PUSH 1\nPRINT\nPOP\n")
    assert main(["run", str(faulty)]) == EXIT_FAULTED
    assert capsysbinary.readouterr().out == b"1\n"

    loop = tmp_path / "loop.asm"
    loop.write_text("top: PUSH top\nJMP\n")
    assert main(["run", str(loop), "--max-steps", "100"]) == EXIT_BUDGET

    deep = tmp_path / "deep.asm"
    deep.write_text("PUSH 1\nPUSH 2\nPUSH 3\nHALT\n")
    assert main(["run", str(deep), "--stack-capacity", "2"]) == EXIT_FAULTED

    bad = tmp_path / "bad.asm"
    bad.write_text("FROB\n")
    assert main(["run", str(bad)]) == EXIT_USAGE
    assert main(["run", str(tmp_path / "missing.bin")]) == EXIT_USAGE


def test_asm_and_disasm(tmp_path, capsys):
    source = tmp_path / "countdown.asm"
    source.write_text(COUNTDOWN_SOURCE)
    assert main(["asm", str(source)]) == EXIT_OK
    assert (tmp_path / "countdown.bin").read_bytes() == COUNTDOWN

    out = tmp_path / "other.bin"
    assert main(["asm", str(source), "-o", str(out)]) == EXIT_OK
    assert out.read_bytes() == COUNTDOWN

    capsys.readouterr()
    assert main(["disasm", str(out)]) == EXIT_OK
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "0000: PUSH 3"
    assert lines[-1] == "0012: HALT"


def test_fault_reported_once(tmp_path, capsysbinary, caplog):
    faulty = tmp_path / "underflow.asm"
    faulty.write_text("POP\n")
    assert main(["run", str(faulty)]) == EXIT_FAULTED

    reported = [r for r in caplog.records if r.levelno >= logging.WARNING]
    assert len(reported) == 1
    assert reported[0].getMessage() == "StackUnderflow: POP needs 1 operand (at ip 0)"
