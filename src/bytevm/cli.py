"""
ByteVM command line.

    bytevm run program.bin
    bytevm run countdown.asm --trace
    bytevm asm countdown.asm -o countdown.bin
    bytevm disasm countdown.bin
    bytevm demo hello
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .asm import AssemblyError, assemble, disassemble
from .config import DEFAULT_STACK_CAPACITY, VMConfig
from .machine import VM, Status
from .output import StreamSink
from .programs import DEMOS

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_HALTED = 0
EXIT_FAULTED = 1
EXIT_USAGE = 2
EXIT_BUDGET = 3

FORMATS = ['auto', 'bin', 'hex', 'asm']
_SUFFIX_FORMATS = {'.asm': 'asm', '.s': 'asm', '.hex': 'hex'}


def load_program(path: Path, fmt: str = 'auto') -> bytes:
    """Read a program file as raw bytes, a hex dump, or assembly source."""
    if fmt == 'auto':
        fmt = _SUFFIX_FORMATS.get(path.suffix.lower(), 'bin')
    if fmt == 'bin':
        return path.read_bytes()
    text = path.read_text(encoding='utf-8')
    if fmt == 'hex':
        return bytes.fromhex(''.join(text.split()))
    return assemble(text)


def run_program(program: bytes, config: VMConfig) -> int:
    vm = VM(program, config=config, sink=StreamSink())
    status = vm.run()
    if status is Status.HALTED:
        logger.info("Halted after %d steps", vm.steps)
        return EXIT_HALTED
    if status is Status.FAULTED:
        logger.error("%s: %s", type(vm.fault).__name__, vm.fault)
        return EXIT_FAULTED
    logger.error("Step budget exhausted after %d steps (ip %d)", vm.steps, vm.ip)
    return EXIT_BUDGET


def _config_from_args(args: argparse.Namespace) -> VMConfig:
    return VMConfig(
        stack_capacity=args.stack_capacity,
        max_steps=args.max_steps,
        trace=args.trace,
    )


def cmd_run(args: argparse.Namespace) -> int:
    program = load_program(Path(args.program), args.format)
    return run_program(program, _config_from_args(args))


def cmd_demo(args: argparse.Namespace) -> int:
    return run_program(DEMOS[args.name], _config_from_args(args))


def cmd_asm(args: argparse.Namespace) -> int:
    source = Path(args.source)
    bytecode = assemble(source.read_text(encoding='utf-8'))
    output = Path(args.output) if args.output else source.with_suffix('.bin')
    output.write_bytes(bytecode)
    logger.info("Wrote %d bytes to %s", len(bytecode), output)
    return EXIT_OK


def cmd_disasm(args: argparse.Namespace) -> int:
    program = load_program(Path(args.program), args.format)
    for line in disassemble(program):
        print(line)
    return EXIT_OK


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--stack-capacity",
        type=int,
        default=DEFAULT_STACK_CAPACITY,
        help="Operand stack capacity (default: %(default)s)"
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Stop after this many instructions (default: unbounded)"
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Log every executed instruction"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bytevm", description="Stack-based bytecode interpreter")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable info logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run", help="Execute a program")
    p_run.add_argument("program", help="Program file")
    p_run.add_argument("-f", "--format", choices=FORMATS, default="auto",
                       help="Program file format (default: by suffix, else bin)")
    _add_run_options(p_run)
    p_run.set_defaults(func=cmd_run)

    p_demo = sub.add_parser("demo", help="Run a bundled program")
    p_demo.add_argument("name", choices=sorted(DEMOS))
    _add_run_options(p_demo)
    p_demo.set_defaults(func=cmd_demo)

    p_asm = sub.add_parser("asm", help="Assemble source text to bytecode")
    p_asm.add_argument("source", help="Assembly source file")
    p_asm.add_argument("-o", "--output", help="Output file (default: SOURCE with .bin suffix)")
    p_asm.set_defaults(func=cmd_asm)

    p_disasm = sub.add_parser("disasm", help="List the instructions of a program")
    p_disasm.add_argument("program", help="Program file")
    p_disasm.add_argument("-f", "--format", choices=FORMATS, default="auto")
    p_disasm.set_defaults(func=cmd_disasm)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose:
        level = logging.INFO
    if getattr(args, "trace", False):
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    try:
        return args.func(args)
    except (AssemblyError, OSError, ValueError) as e:
        logger.error("%s", e)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
